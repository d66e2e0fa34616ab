"""Offset math over a sequence of block lengths.

A block ``i`` spans lines ``[start_i, end_i)`` where ends are the running
sums of the lengths. All functions are pure.
"""

from collections.abc import Sequence
from itertools import accumulate


def block_ends(lengths: Sequence[int]) -> list[int]:
    return list(accumulate(lengths))


def block_starts(lengths: Sequence[int]) -> list[int]:
    return [0, *block_ends(lengths)[:-1]] if lengths else []


def highlight_index(lengths: Sequence[int], offset: int) -> int | None:
    """Index of the block containing ``offset``, or None past the content."""
    for idx, end in enumerate(accumulate(lengths)):
        if end > offset:
            return idx
    return None


def next_file_target(lengths: Sequence[int], offset: int) -> int:
    """Start of the block after the one containing ``offset``.

    Within (or past) the last block the offset is returned unchanged.
    """
    for end in block_ends(lengths)[:-1]:
        if offset < end:
            return end
    return offset


def prev_file_target(lengths: Sequence[int], offset: int) -> int:
    """Start of the current block, or of the previous one when already there."""
    if not lengths:
        return offset
    idx = highlight_index(lengths, offset)
    if idx is None:
        idx = len(lengths) - 1
    starts = block_starts(lengths)
    if offset > starts[idx]:
        return starts[idx]
    if idx > 0:
        return starts[idx - 1]
    return 0
