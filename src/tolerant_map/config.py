"""Environment driven settings and logging setup for :mod:`tolerant_map`."""

from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

ENV_VERBOSE = "TOLERANT_MAP_VERBOSE"
ENV_MSGPACK_MAX_BUFFER = "TOLERANT_MAP_MSGPACK_MAX_BUFFER"
ENV_COERCE_STRING_KEYS = "TOLERANT_MAP_COERCE_STRING_KEYS"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}

PACKAGE_LOGGER = "tolerant_map"


@dataclass(frozen=True)
class Settings:
    """Runtime knobs read from the process environment."""

    verbose: bool = False
    msgpack_max_buffer_size: int = 0
    coerce_string_keys: bool = True


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag (1/0, true/false, yes/no, on/off), got {value!r}")


def _parse_size(name: str, value: str) -> int:
    try:
        size = int(value.strip() or "0")
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer byte count, got {value!r}") from exc
    if size < 0:
        raise ValueError(f"{name} must not be negative, got {size}")
    return size


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from ``environ`` (defaults to :data:`os.environ`)."""

    env = os.environ if environ is None else environ
    defaults = Settings()
    verbose = defaults.verbose
    max_buffer = defaults.msgpack_max_buffer_size
    coerce = defaults.coerce_string_keys
    if ENV_VERBOSE in env:
        verbose = _parse_bool(ENV_VERBOSE, env[ENV_VERBOSE])
    if ENV_MSGPACK_MAX_BUFFER in env:
        max_buffer = _parse_size(ENV_MSGPACK_MAX_BUFFER, env[ENV_MSGPACK_MAX_BUFFER])
    if ENV_COERCE_STRING_KEYS in env:
        coerce = _parse_bool(ENV_COERCE_STRING_KEYS, env[ENV_COERCE_STRING_KEYS])
    return Settings(verbose=verbose, msgpack_max_buffer_size=max_buffer, coerce_string_keys=coerce)


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = load_settings()
    if settings.verbose:
        configure_logging(True)
    return settings


def reset_settings() -> None:
    """Forget cached settings so the next lookup re-reads the environment."""

    get_settings.cache_clear()


def configure_logging(verbose: bool) -> None:
    """Route decode diagnostics to the root handler when ``verbose`` is set."""

    logger = logging.getLogger(PACKAGE_LOGGER)
    if verbose:
        if not logging.getLogger().handlers:
            logging.basicConfig(level=logging.INFO)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.NOTSET)


__all__ = [
    "ENV_COERCE_STRING_KEYS",
    "ENV_MSGPACK_MAX_BUFFER",
    "ENV_VERBOSE",
    "Settings",
    "configure_logging",
    "get_settings",
    "load_settings",
    "reset_settings",
]
