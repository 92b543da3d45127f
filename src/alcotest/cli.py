from __future__ import annotations

import argparse
import logging
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Generic, Optional, Pattern, Sequence, Tuple, TypeVar

from .config import (
    COLOR_CHOICES,
    COLOR_ENV,
    COMPACT_ENV,
    QUICK_TESTS_ENV,
    SHOW_ERRORS_ENV,
    TAIL_ERRORS_ENV,
    VERBOSE_ENV,
    default_log_dir,
    env_flag,
    env_value,
    set_color,
)
from .errors import CliParseError, EnvironmentValueError
from .options import (
    RuntimeOptions,
    TailLimit,
    TestFilter,
    parse_limit,
    resolve_runtime_options,
)
from .ranges import IntSet, parse_int_ranges
from .tests import Suite

logger = logging.getLogger(__name__)

T = TypeVar("T")

COMMANDS = ("test", "list")


@dataclass
class ArgsTerm(Generic[T]):
    """Extra command-line arguments owned by the test suite itself.

    ``add_arguments`` registers them on the parser of every command that runs
    tests; ``extract`` turns the parsed namespace into the value handed to each
    test body.
    """

    add_arguments: Callable[[argparse.ArgumentParser], None]
    extract: Callable[[argparse.Namespace], T]


NO_ARGS: ArgsTerm[None] = ArgsTerm(
    add_arguments=lambda parser: None, extract=lambda namespace: None
)


class HelpRequested(Exception):
    pass


class ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        sys.stderr.write(f"{self.prog}: error: {message}\n")
        raise CliParseError(message)

    def exit(self, status: int = 0, message: Optional[str] = None) -> None:  # type: ignore[override]
        if message:
            self._print_message(message, sys.stderr)
        raise HelpRequested(status)


def range_list(text: str) -> IntSet:
    try:
        return parse_int_ranges(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def limit(text: str) -> TailLimit:
    try:
        return parse_limit(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def regex(text: str) -> Pattern[str]:
    try:
        return re.compile(text)
    except re.error as exc:
        raise argparse.ArgumentTypeError(
            f"Perl-compatible regexp parse error: {exc}"
        ) from None


def existing_dir(text: str) -> Path:
    path = Path(text)
    if not path.exists():
        raise argparse.ArgumentTypeError(f"no '{text}' directory")
    if not path.is_dir():
        raise argparse.ArgumentTypeError(f"'{text}' is not a directory")
    return path


def add_color_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--color",
        choices=COLOR_CHOICES,
        default=None,
        metavar="WHEN",
        help=f"Colorize the output: auto, always or never (env: {COLOR_ENV})",
    )


def add_runtime_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Display the test outputs. WARNING: when using this option the "
        f"output logs will not be available for further inspection (env: {VERBOSE_ENV})",
    )
    parser.add_argument(
        "-c",
        "--compact",
        action="store_true",
        help=f"Compact the output of the tests (env: {COMPACT_ENV})",
    )
    parser.add_argument(
        "--tail-errors",
        dest="tail_errors",
        type=limit,
        default=None,
        metavar="N",
        help="Show only the last N lines of output in case of an error "
        f"(env: {TAIL_ERRORS_ENV})",
    )
    parser.add_argument(
        "-e",
        "--show-errors",
        dest="show_errors",
        action="store_true",
        help=f"Display the test errors (env: {SHOW_ERRORS_ENV})",
    )
    parser.add_argument(
        "-q",
        "--quick-tests",
        dest="quick_only",
        action="store_true",
        help=f"Run only the quick tests (env: {QUICK_TESTS_ENV})",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Display JSON for the results, to be used by a script",
    )
    parser.add_argument(
        "-o",
        dest="log_dir",
        type=existing_dir,
        default=None,
        metavar="DIR",
        help="Where to store the log files of the tests",
    )


def add_test_filter(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "name_regex",
        nargs="?",
        type=regex,
        default=None,
        metavar="NAME_REGEX",
        help="A regular expression matching the names of tests to run",
    )
    parser.add_argument(
        "testcases",
        nargs="?",
        type=range_list,
        default=None,
        metavar="TESTCASES",
        help="A comma-separated list of test case numbers (and ranges of "
        "numbers) to run, e.g: '4,6-10,19'",
    )


def build_parser(
    command: Optional[str], exec_name: str, args: ArgsTerm[Any]
) -> ArgumentParser:
    if command == "list":
        parser = ArgumentParser(
            prog=f"{exec_name} list", description="List all available tests."
        )
        add_color_flag(parser)
        return parser

    if command == "test":
        parser = ArgumentParser(
            prog=f"{exec_name} test", description="Run a subset of the tests."
        )
        add_test_filter(parser)
    else:
        parser = ArgumentParser(
            prog=exec_name,
            description="Run all the tests.",
            epilog="commands:\n"
            "  test    Run a subset of the tests.\n"
            "  list    List all available tests.",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
    add_runtime_flags(parser)
    add_color_flag(parser)
    args.add_arguments(parser)
    return parser


def runtime_flags(
    parser: ArgumentParser, namespace: argparse.Namespace, defaults: RuntimeOptions
) -> RuntimeOptions:
    try:
        verbose = namespace.verbose or env_flag(VERBOSE_ENV)
        compact = namespace.compact or env_flag(COMPACT_ENV)
        show_errors = namespace.show_errors or env_flag(SHOW_ERRORS_ENV)
        quick_only = namespace.quick_only or env_flag(QUICK_TESTS_ENV)
        tail_errors = namespace.tail_errors
        if tail_errors is None:
            raw = env_value(TAIL_ERRORS_ENV)
            if raw is not None:
                try:
                    tail_errors = parse_limit(raw)
                except ValueError as exc:
                    raise EnvironmentValueError(TAIL_ERRORS_ENV, raw, str(exc)) from None
    except EnvironmentValueError as exc:
        parser.error(str(exc))

    log_dir = namespace.log_dir if namespace.log_dir is not None else default_log_dir()
    return resolve_runtime_options(
        defaults,
        verbose=verbose,
        compact=compact,
        tail_errors=tail_errors,
        show_errors=show_errors,
        quick_only=quick_only,
        json=namespace.json,
        log_dir=log_dir,
    )


def resolve_color(parser: ArgumentParser, namespace: argparse.Namespace) -> str:
    if namespace.color is not None:
        return namespace.color
    raw = env_value(COLOR_ENV)
    if raw is None:
        return "auto"
    if raw not in COLOR_CHOICES:
        parser.error(
            str(EnvironmentValueError(COLOR_ENV, raw, "expected auto, always or never"))
        )
    return raw


def positional_filter(namespace: argparse.Namespace) -> Optional[TestFilter]:
    if namespace.name_regex is None and namespace.testcases is None:
        return None
    return TestFilter(name=namespace.name_regex, indices=namespace.testcases)


def dispatch(
    engine: Any,
    name: str,
    args: ArgsTerm[Any],
    tests: Sequence[Suite],
    *,
    defaults: RuntimeOptions,
    default_filter: Optional[TestFilter] = None,
    and_exit: bool = True,
    argv: Optional[Sequence[str]] = None,
) -> Any:
    """Parse ``argv`` and hand the resulting options to ``engine``.

    The engine supplies ``run``, ``list_tests`` and ``unit``; whatever the
    selected one returns is returned here.
    """
    if argv is None:
        argv = sys.argv
    exec_name = os.path.basename(argv[0]) if argv else name
    words = list(argv[1:])
    command = words[0] if words and words[0] in COMMANDS else None
    if command is not None:
        words = words[1:]
    logger.debug("command %s with arguments %s", command or "default", words)

    parser = build_parser(command, exec_name, args)
    try:
        namespace = parser.parse_args(words)
    except HelpRequested:
        if and_exit:
            raise SystemExit(0)
        return engine.unit()

    if command == "list":
        set_color(resolve_color(parser, namespace))
        return engine.list_tests(name, tests)

    options = runtime_flags(parser, namespace, defaults)
    test_filter: Optional[TestFilter] = None
    if command == "test":
        test_filter = positional_filter(namespace)
        if test_filter is None:
            test_filter = default_filter
    set_color(resolve_color(parser, namespace))

    call_args: Tuple[Any, ...] = ()
    if args is not NO_ARGS:
        call_args = (args.extract(namespace),)
    return engine.run(name, tests, options, test_filter, call_args)
