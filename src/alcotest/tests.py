from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence, Tuple


class Speed(enum.Enum):
    QUICK = "Quick"
    SLOW = "Slow"


@dataclass
class TestCase:
    __test__ = False

    name: str
    speed: Speed
    fn: Callable[..., Any]

    def is_quick(self) -> bool:
        return self.speed is Speed.QUICK


Suite = Tuple[str, Sequence[TestCase]]


def parse_speed(speed: object) -> Speed:
    if isinstance(speed, Speed):
        return speed
    if isinstance(speed, str):
        for candidate in Speed:
            if candidate.value.lower() == speed.lower():
                return candidate
    raise ValueError(f"unknown test speed {speed!r}, expected 'Quick' or 'Slow'")


def test_case(name: str, speed: object, fn: Callable[..., Any]) -> TestCase:
    return TestCase(name=name, speed=parse_speed(speed), fn=fn)


test_case.__test__ = False


def flatten(tests: Sequence[Suite]) -> List[Tuple[str, int, TestCase]]:
    """Number the cases of every suite from zero, keeping declaration order."""
    result: List[Tuple[str, int, TestCase]] = []
    for suite, cases in tests:
        for index, case in enumerate(cases):
            result.append((suite, index, case))
    return result
