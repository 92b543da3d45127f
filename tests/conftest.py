import pytest

from alcotest import config

ALCOTEST_VARIABLES = [
    config.VERBOSE_ENV,
    config.COMPACT_ENV,
    config.TAIL_ERRORS_ENV,
    config.SHOW_ERRORS_ENV,
    config.QUICK_TESTS_ENV,
    config.COLOR_ENV,
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for variable in ALCOTEST_VARIABLES:
        monkeypatch.delenv(variable, raising=False)
    yield
    config.set_color("auto")
