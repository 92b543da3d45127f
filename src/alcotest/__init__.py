from __future__ import annotations

import contextlib
import json
import logging
import re
import sys
import time
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, NoReturn, Optional, Sequence, Tuple

from .cli import NO_ARGS, ArgsTerm, dispatch
from .config import color_enabled
from .errors import AlcotestError, CliParseError, TestError, TestFailure
from .options import UNLIMITED, Limit, RuntimeOptions, TailLimit, TestFilter
from .ranges import IntSet
from .tests import Speed, Suite, TestCase, flatten, test_case

__all__ = [
    "AlcotestError",
    "ArgsTerm",
    "CliParseError",
    "IntSet",
    "Limit",
    "NO_ARGS",
    "Runner",
    "RuntimeOptions",
    "Speed",
    "TestCase",
    "TestError",
    "TestFailure",
    "TestFilter",
    "TestResult",
    "UNLIMITED",
    "check",
    "fail",
    "run",
    "run_with_args",
    "test_case",
]

logger = logging.getLogger(__name__)

UNSAFE_PATH_CHARS_RE = re.compile(r"[^A-Za-z0-9_.-]")

COLORS = {"passed": "32", "failed": "31", "skipped": "33"}
MARKERS = {"passed": "[OK]", "failed": "[FAIL]", "skipped": "[SKIP]"}
COMPACT_MARKERS = {"passed": ".", "failed": "F", "skipped": "S"}


def fail(message: str) -> NoReturn:
    raise TestFailure(message)


def check(expected: Any, actual: Any, message: str = "") -> None:
    if expected != actual:
        prefix = f"{message}\n" if message else ""
        fail(f"{prefix}Expected: {expected!r}\nReceived: {actual!r}")


@dataclass
class TestResult:
    __test__ = False

    suite: str
    index: int
    case: TestCase
    status: str
    message: Optional[str] = None
    output_file: Optional[Path] = None

    @classmethod
    def error(
        cls,
        suite: str,
        index: int,
        case: TestCase,
        message: str,
        output_file: Optional[Path],
    ) -> "TestResult":
        return cls(
            suite=suite,
            index=index,
            case=case,
            status="failed",
            message=message,
            output_file=output_file,
        )

    @classmethod
    def success(
        cls, suite: str, index: int, case: TestCase, output_file: Optional[Path]
    ) -> "TestResult":
        return cls(
            suite=suite, index=index, case=case, status="passed", output_file=output_file
        )

    @classmethod
    def skip(cls, suite: str, index: int, case: TestCase) -> "TestResult":
        return cls(suite=suite, index=index, case=case, status="skipped")

    def is_success(self) -> bool:
        return self.status == "passed"


def describe_exception(exc: BaseException) -> str:
    if isinstance(exc, TestFailure):
        return str(exc)
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()


def styled(text: str, status: str) -> str:
    if not color_enabled():
        return text
    return f"\x1b[{COLORS[status]}m{text}\x1b[0m"


def test_name(num: int) -> str:
    return "test" if num == 1 else "tests"


def tail_lines(content: str, limit: Optional[TailLimit]) -> List[str]:
    lines = content.splitlines()
    if limit is None or limit is UNLIMITED:
        return lines
    if limit.lines == 0:
        return []
    return lines[-limit.lines:]


def print_result(result: TestResult, options: RuntimeOptions) -> None:
    if options.json:
        return
    if options.compact:
        print(styled(COMPACT_MARKERS[result.status], result.status), end="")
        sys.stdout.flush()
        return
    marker = styled(f"{MARKERS[result.status]:<6}", result.status)
    print(f"  {marker}  {result.suite}  {result.index:>3}  {result.case.name}.")
    sys.stdout.flush()


def print_failure(result: TestResult, options: RuntimeOptions) -> None:
    header = f"-- {result.suite}.{result.index:03d} [{result.case.name}] Failed --"
    print(styled(header, "failed"))
    if result.output_file is not None and result.output_file.is_file():
        content = result.output_file.read_text(encoding="utf-8", errors="replace")
        lines = tail_lines(content, options.tail_errors)
        print(f"in `{result.output_file}`:")
        for line in lines:
            print(line)
    if result.message:
        print(result.message)


class Session:
    """Results of one run, plus where each test body's output goes."""

    def __init__(
        self, name: str, options: RuntimeOptions, test_filter: Optional[TestFilter]
    ) -> None:
        self.name = name
        self.options = options
        self.test_filter = test_filter
        self.results: List[TestResult] = []
        self.start_time = time.time()

    def plan(self, tests: Sequence[Suite]) -> List[Tuple[str, int, TestCase, bool]]:
        """Return ``(suite, index, case, should_run)`` for every selected case."""
        selected: List[Tuple[str, int, TestCase, bool]] = []
        for suite, index, case in flatten(tests):
            if self.test_filter is not None and not (
                self.test_filter.matches_suite(suite)
                and self.test_filter.matches_index(index)
            ):
                continue
            should_run = case.is_quick() or not self.options.quick_only
            selected.append((suite, index, case, should_run))
        return selected

    def start(self) -> None:
        if not self.options.json:
            print(f"Testing `{self.name}`.")

    def output_path(self, suite: str, index: int) -> Optional[Path]:
        if self.options.verbose or self.options.log_dir is None:
            return None
        directory = Path(self.options.log_dir) / UNSAFE_PATH_CHARS_RE.sub("_", self.name)
        return directory / f"{UNSAFE_PATH_CHARS_RE.sub('_', suite)}.{index:03d}.output"

    @contextlib.contextmanager
    def capture(self, suite: str, index: int) -> Iterator[Optional[Path]]:
        path = self.output_path(suite, index)
        if path is None:
            yield None
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("capturing output of %s.%03d in %s", suite, index, path)
        with open(path, "w", encoding="utf-8") as handle:
            with contextlib.redirect_stdout(handle), contextlib.redirect_stderr(handle):
                yield path

    def record(self, result: TestResult) -> None:
        self.results.append(result)
        print_result(result, self.options)

    def failures(self) -> List[TestResult]:
        return [result for result in self.results if result.status == "failed"]

    def report(self) -> bool:
        failures = self.failures()
        ran = sum(1 for result in self.results if result.status != "skipped")
        duration = time.time() - self.start_time

        if self.options.json:
            print(
                json.dumps(
                    {
                        "success": ran - len(failures),
                        "failures": len(failures),
                        "time": round(duration, 3),
                    }
                )
            )
            return not failures

        if self.options.compact:
            print()
        shown = failures if self.options.show_errors else failures[:1]
        for result in shown:
            print()
            print_failure(result, self.options)
        if len(shown) < len(failures):
            print(
                f"\n... with {len(failures) - len(shown)} more errors. "
                "Use -e to display all of them."
            )
        if self.options.log_dir is not None and not self.options.verbose:
            print(f"The full test results are available in `{self.options.log_dir}`.")

        if failures:
            noun = "failure" if len(failures) == 1 else "failures"
            print(f"{len(failures)} {noun}! in {duration:.3f}s. {ran} {test_name(ran)} run.")
        else:
            print(f"Test Successful in {duration:.3f}s. {ran} {test_name(ran)} run.")
        return not failures


class Runner:
    """Runs plain function tests one after the other."""

    def __init__(self, and_exit: bool = True) -> None:
        self.and_exit = and_exit

    def unit(self) -> Any:
        return None

    def list_tests(self, name: str, tests: Sequence[Suite]) -> Any:
        for suite, index, case in flatten(tests):
            print(f"{suite}  {index:>3}  {case.name}.")
        return self.unit()

    def run(
        self,
        name: str,
        tests: Sequence[Suite],
        options: RuntimeOptions,
        test_filter: Optional[TestFilter],
        args: Tuple[Any, ...] = (),
    ) -> Any:
        session = Session(name, options, test_filter)
        session.start()
        for suite, index, case, should_run in session.plan(tests):
            if not should_run:
                session.record(TestResult.skip(suite, index, case))
                continue
            with session.capture(suite, index) as output_file:
                try:
                    case.fn(*args)
                    result = TestResult.success(suite, index, case, output_file)
                except Exception as exc:
                    result = TestResult.error(
                        suite, index, case, describe_exception(exc), output_file
                    )
            session.record(result)
        return self.finish(session)

    def finish(self, session: Session) -> None:
        success = session.report()
        if self.and_exit:
            raise SystemExit(0 if success else 1)
        if not success:
            failures = len(session.failures())
            raise TestError(
                f"{failures} {test_name(failures)} failed in `{session.name}`"
            )
        return None


def _runtime_defaults(
    verbose: bool,
    compact: bool,
    tail_errors: Optional[TailLimit],
    quick_only: bool,
    show_errors: bool,
    json: bool,
    log_dir: Optional[Path],
) -> RuntimeOptions:
    return RuntimeOptions(
        verbose=verbose,
        compact=compact,
        tail_errors=tail_errors,
        show_errors=show_errors,
        quick_only=quick_only,
        json=json,
        log_dir=Path(log_dir) if log_dir is not None else None,
    )


def run_with_args(
    name: str,
    args: ArgsTerm[Any],
    tests: Sequence[Suite],
    *,
    and_exit: bool = True,
    verbose: bool = False,
    compact: bool = False,
    tail_errors: Optional[TailLimit] = None,
    quick_only: bool = False,
    show_errors: bool = False,
    json: bool = False,
    test_filter: Optional[TestFilter] = None,
    log_dir: Optional[Path] = None,
    argv: Optional[Sequence[str]] = None,
) -> None:
    defaults = _runtime_defaults(
        verbose, compact, tail_errors, quick_only, show_errors, json, log_dir
    )
    return dispatch(
        Runner(and_exit=and_exit),
        name,
        args,
        tests,
        defaults=defaults,
        default_filter=test_filter,
        and_exit=and_exit,
        argv=argv,
    )


def run(name: str, tests: Sequence[Suite], **options: Any) -> None:
    """Run ``tests`` according to the command line; test bodies take no argument."""
    return run_with_args(name, NO_ARGS, tests, **options)
