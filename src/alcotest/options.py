from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Pattern, Union

from .ranges import IntSet

logger = logging.getLogger(__name__)

NEGATIVE_LIMIT_ERROR = "numeric limit must be nonnegative or 'unlimited'"


class _Unlimited:
    def __repr__(self) -> str:
        return "UNLIMITED"

    def __str__(self) -> str:
        return "unlimited"


UNLIMITED = _Unlimited()


@dataclass(frozen=True)
class Limit:
    lines: int

    def __post_init__(self) -> None:
        if self.lines < 0:
            raise ValueError(NEGATIVE_LIMIT_ERROR)

    def __str__(self) -> str:
        return str(self.lines)


TailLimit = Union[Limit, _Unlimited]


def parse_limit(text: str) -> TailLimit:
    if text == "unlimited":
        return UNLIMITED
    try:
        lines = int(text)
    except ValueError:
        raise ValueError("invalid numeric limit") from None
    return Limit(lines)


def format_limit(limit: TailLimit) -> str:
    if limit is UNLIMITED:
        return "unlimited"
    return str(limit.lines)


@dataclass(frozen=True)
class TestFilter:
    __test__ = False

    name: Optional[Pattern[str]] = None
    indices: Optional[IntSet] = None

    def matches_suite(self, suite: str) -> bool:
        return self.name is None or self.name.search(suite) is not None

    def matches_index(self, index: int) -> bool:
        return self.indices is None or index in self.indices


@dataclass(frozen=True)
class RuntimeOptions:
    verbose: bool = False
    compact: bool = False
    tail_errors: Optional[TailLimit] = None
    show_errors: bool = False
    quick_only: bool = False
    json: bool = False
    log_dir: Optional[Path] = None


def resolve_runtime_options(
    defaults: RuntimeOptions,
    *,
    verbose: bool,
    compact: bool,
    tail_errors: Optional[TailLimit],
    show_errors: bool,
    quick_only: bool,
    json: bool,
    log_dir: Path,
) -> RuntimeOptions:
    """Merge command-line values over the caller's defaults.

    Booleans can only be switched on: a default of True survives a False flag.
    ``tail_errors`` takes the flag when one was given and falls back to the
    default otherwise. ``log_dir`` always comes from the command line, which
    already supplies its own default directory.
    """
    options = RuntimeOptions(
        verbose=verbose or defaults.verbose,
        compact=compact or defaults.compact,
        tail_errors=tail_errors if tail_errors is not None else defaults.tail_errors,
        show_errors=show_errors or defaults.show_errors,
        quick_only=quick_only or defaults.quick_only,
        json=json or defaults.json,
        log_dir=log_dir,
    )
    logger.debug("resolved runtime options: %s", options)
    return options
