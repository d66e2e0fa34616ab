"""Runtime settings from the environment."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class ConfigError(Exception):
    """A setting has an invalid value."""


@dataclass(frozen=True)
class Settings:
    initial_window_size: int = 10
    context_lines: int = 3
    log_file: Path | None = None


def _expect_int(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigError(f"{name} must be at least {minimum}, got {value}")
    return value


def load_settings(env: Mapping[str, str] | None = None, log_file: Path | None = None) -> Settings:
    """Read settings from ``GIV_*`` environment variables."""
    env = os.environ if env is None else env
    settings = Settings(
        initial_window_size=_expect_int(env, "GIV_WINDOW_SIZE", 10, 1),
        context_lines=_expect_int(env, "GIV_CONTEXT_LINES", 3, 0),
        log_file=Path(env["GIV_LOG_FILE"]) if env.get("GIV_LOG_FILE") else None,
    )
    if log_file is not None:
        settings = replace(settings, log_file=log_file)
    return settings


def configure_logging(settings: Settings) -> None:
    """Send logs to the configured file; the terminal belongs to the UI."""
    if settings.log_file is None:
        logging.getLogger("giv").addHandler(logging.NullHandler())
        return
    logging.basicConfig(filename=settings.log_file, level=logging.DEBUG, format=LOG_FORMAT)
