from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from .errors import EnvironmentValueError

VERBOSE_ENV = "ALCOTEST_VERBOSE"
COMPACT_ENV = "ALCOTEST_COMPACT"
TAIL_ERRORS_ENV = "ALCOTEST_TAIL_ERRORS"
SHOW_ERRORS_ENV = "ALCOTEST_SHOW_ERRORS"
QUICK_TESTS_ENV = "ALCOTEST_QUICK_TESTS"
COLOR_ENV = "ALCOTEST_COLOR"

COLOR_CHOICES = ["auto", "always", "never"]

_TRUE_VALUES = {"true", "yes", "y", "1"}
_FALSE_VALUES = {"", "false", "no", "n", "0"}

_color_mode = "auto"


def default_log_dir() -> Path:
    return Path.cwd() / "_build" / "_tests"


def env_value(name: str) -> Optional[str]:
    return os.environ.get(name)


def env_flag(name: str) -> bool:
    value = env_value(name)
    if value is None:
        return False
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise EnvironmentValueError(name, value, "expected a boolean such as 'true' or 'false'")


def set_color(mode: Optional[str]) -> None:
    """Select how result markers are styled: auto, always or never."""
    global _color_mode
    if mode is None:
        mode = "auto"
    if mode not in COLOR_CHOICES:
        raise ValueError(f"invalid color mode {mode!r}")
    _color_mode = mode


def color_enabled() -> bool:
    if _color_mode == "always":
        return True
    if _color_mode == "never":
        return False
    return sys.stdout.isatty()
