"""
Asyncio flavour of the test runner.

Test bodies return awaitables and each one races against a timer. When the
timer wins, the test fails with ``"<name> timed out after <duration>"``. The
body is left running on the event loop rather than cancelled, so it may still
produce output or side effects after its failure has been reported.
``asyncio.run`` cancels whatever is still pending once the loop shuts down.

Usage::

    async def test_fetch():
        ...

    asyncio.run(alcotest.aio.run("client", [
        ("fetch", [alcotest.aio.test_case("fetch once", "Quick", test_fetch)]),
    ]))
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence, Tuple

from . import Runner, Session, TestResult, _runtime_defaults, describe_exception, fail
from .cli import NO_ARGS, ArgsTerm, dispatch
from .options import RuntimeOptions, TailLimit, TestFilter
from .tests import Suite, TestCase
from .tests import test_case as plain_test_case

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0

SPAN_UNITS = [
    (86400.0, "d"),
    (3600.0, "h"),
    (60.0, "m"),
    (1.0, "s"),
    (1e-3, "ms"),
    (1e-6, "us"),
    (1e-9, "ns"),
]


def format_span(seconds: float) -> str:
    """Render a duration the way people write it: ``1ms``, ``2s``, ``1.5m``."""
    if seconds == 0:
        return "0s"
    magnitude = abs(seconds)
    size, suffix = SPAN_UNITS[-1]
    for size, suffix in SPAN_UNITS:
        if magnitude >= size:
            break
    value = f"{seconds / size:.3f}".rstrip("0").rstrip(".")
    return f"{value}{suffix}"


def _discard_outcome(name: str, task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        logger.debug("abandoned test %s was cancelled", name)
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("abandoned test %s finished with %r", name, exc)


async def run_test(
    timeout: float, name: str, fn: Callable[..., Awaitable[Any]], *args: Any
) -> Any:
    body = asyncio.ensure_future(fn(*args))
    done, _ = await asyncio.wait({body}, timeout=timeout)
    if body in done:
        return body.result()
    logger.debug("%s exceeded %s, leaving it running", name, format_span(timeout))
    body.add_done_callback(functools.partial(_discard_outcome, name))
    fail(f"{name} timed out after {format_span(timeout)}")


def test_case(
    name: str,
    speed: object,
    fn: Callable[..., Awaitable[Any]],
    timeout: float = DEFAULT_TIMEOUT,
) -> TestCase:
    return plain_test_case(name, speed, functools.partial(run_test, timeout, name, fn))


test_case.__test__ = False


def test_case_sync(
    name: str, speed: object, fn: Callable[..., Any], timeout: float = DEFAULT_TIMEOUT
) -> TestCase:
    """Declare a plain function test; its result is wrapped in a finished future."""

    def completed(*args: Any) -> "asyncio.Future[Any]":
        future = asyncio.get_running_loop().create_future()
        future.set_result(fn(*args))
        return future

    return test_case(name, speed, completed, timeout=timeout)


test_case_sync.__test__ = False


async def _unit() -> None:
    return None


class AsyncRunner(Runner):
    """Runs awaitable tests sequentially on the current event loop."""

    def unit(self) -> Awaitable[None]:
        return _unit()

    async def run(  # type: ignore[override]
        self,
        name: str,
        tests: Sequence[Suite],
        options: RuntimeOptions,
        test_filter: Optional[TestFilter],
        args: Tuple[Any, ...] = (),
    ) -> None:
        session = Session(name, options, test_filter)
        session.start()
        for suite, index, case, should_run in session.plan(tests):
            if not should_run:
                session.record(TestResult.skip(suite, index, case))
                continue
            with session.capture(suite, index) as output_file:
                try:
                    outcome = case.fn(*args)
                    if inspect.isawaitable(outcome):
                        await outcome
                    result = TestResult.success(suite, index, case, output_file)
                except Exception as exc:
                    result = TestResult.error(
                        suite, index, case, describe_exception(exc), output_file
                    )
            session.record(result)
        return self.finish(session)


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
) -> Awaitable[None]:
    defaults = _runtime_defaults(
        verbose, compact, tail_errors, quick_only, show_errors, json, log_dir
    )
    return dispatch(
        AsyncRunner(and_exit=and_exit),
        name,
        args,
        tests,
        defaults=defaults,
        default_filter=test_filter,
        and_exit=and_exit,
        argv=argv,
    )


def run(name: str, tests: Sequence[Suite], **options: Any) -> Awaitable[None]:
    return run_with_args(name, NO_ARGS, tests, **options)
