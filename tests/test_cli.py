import re

import pytest

from alcotest import config
from alcotest.cli import NO_ARGS, ArgsTerm, dispatch
from alcotest.errors import CliParseError
from alcotest.options import UNLIMITED, Limit, RuntimeOptions, TestFilter


class RecordingEngine:
    def __init__(self):
        self.runs = []
        self.listed = 0

    def unit(self):
        return "unit"

    def run(self, name, tests, options, test_filter, args):
        self.runs.append((options, test_filter, args))
        return "ran"

    def list_tests(self, name, tests):
        self.listed += 1
        return "listed"


def invoke(argv, defaults=None, default_filter=None, args=NO_ARGS, and_exit=False):
    engine = RecordingEngine()
    result = dispatch(
        engine,
        "suite",
        args,
        [],
        defaults=defaults or RuntimeOptions(),
        default_filter=default_filter,
        and_exit=and_exit,
        argv=["prog"] + argv,
    )
    return engine, result


def test_default_command_runs_everything(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    engine, result = invoke([])
    assert result == "ran"
    options, test_filter, args = engine.runs[0]
    assert test_filter is None
    assert args == ()
    assert options == RuntimeOptions(log_dir=tmp_path / "_build" / "_tests")


def test_default_command_ignores_programmatic_filter():
    engine, _ = invoke([], default_filter=TestFilter(name=re.compile("x")))
    assert engine.runs[0][1] is None


def test_runtime_flags(tmp_path):
    engine, _ = invoke(
        ["-v", "-c", "-e", "-q", "--json", "--tail-errors", "5", "-o", str(tmp_path)]
    )
    options = engine.runs[0][0]
    assert options == RuntimeOptions(
        verbose=True,
        compact=True,
        tail_errors=Limit(5),
        show_errors=True,
        quick_only=True,
        json=True,
        log_dir=tmp_path,
    )


def test_long_flag_names():
    engine, _ = invoke(["--verbose", "--compact", "--show-errors", "--quick-tests"])
    options = engine.runs[0][0]
    assert options.verbose and options.compact
    assert options.show_errors and options.quick_only


def test_defaults_cannot_be_switched_off():
    engine, _ = invoke([], defaults=RuntimeOptions(verbose=True, tail_errors=UNLIMITED))
    options = engine.runs[0][0]
    assert options.verbose
    assert options.tail_errors is UNLIMITED


def test_environment_enables_flags(monkeypatch):
    monkeypatch.setenv("ALCOTEST_VERBOSE", "true")
    monkeypatch.setenv("ALCOTEST_QUICK_TESTS", "1")
    monkeypatch.setenv("ALCOTEST_SHOW_ERRORS", "no")
    monkeypatch.setenv("ALCOTEST_TAIL_ERRORS", "unlimited")
    engine, _ = invoke([])
    options = engine.runs[0][0]
    assert options.verbose
    assert options.quick_only
    assert not options.show_errors
    assert options.tail_errors is UNLIMITED


def test_explicit_flag_beats_environment(monkeypatch):
    monkeypatch.setenv("ALCOTEST_TAIL_ERRORS", "unlimited")
    monkeypatch.setenv("ALCOTEST_COMPACT", "false")
    engine, _ = invoke(["--tail-errors=3", "-c"])
    options = engine.runs[0][0]
    assert options.tail_errors == Limit(3)
    assert options.compact


def test_invalid_boolean_environment_value(monkeypatch):
    monkeypatch.setenv("ALCOTEST_COMPACT", "maybe")
    with pytest.raises(CliParseError, match="ALCOTEST_COMPACT"):
        invoke([])


def test_invalid_tail_errors_environment_value(monkeypatch):
    monkeypatch.setenv("ALCOTEST_TAIL_ERRORS", "-4")
    with pytest.raises(CliParseError, match="nonnegative"):
        invoke([])


def test_negative_tail_errors_flag():
    with pytest.raises(CliParseError, match="must be nonnegative or 'unlimited'"):
        invoke(["--tail-errors=-1"])


def test_missing_log_dir(tmp_path):
    with pytest.raises(CliParseError, match="directory"):
        invoke(["-o", str(tmp_path / "missing")])


def test_unknown_flag_is_a_parse_error(capsys):
    with pytest.raises(CliParseError):
        invoke(["--frobnicate"])
    assert "usage:" in capsys.readouterr().err


def test_test_command_parses_positional_filter():
    engine, _ = invoke(["test", "pars.*", "4,6-10,19"])
    test_filter = engine.runs[0][1]
    assert test_filter.name.pattern == "pars.*"
    assert test_filter.indices == {4, 6, 7, 8, 9, 10, 19}


def test_positional_filter_replaces_programmatic_filter():
    default_filter = TestFilter(name=re.compile("lexer"), indices=frozenset({1}))
    engine, _ = invoke(["test", "parser"], default_filter=default_filter)
    test_filter = engine.runs[0][1]
    assert test_filter.name.pattern == "parser"
    assert test_filter.indices is None


def test_programmatic_filter_used_without_positionals():
    default_filter = TestFilter(name=re.compile("lexer"))
    engine, _ = invoke(["test", "-v"], default_filter=default_filter)
    options, test_filter, _ = engine.runs[0]
    assert test_filter is default_filter
    assert options.verbose


def test_descending_range_is_rejected():
    with pytest.raises(CliParseError, match="comma-separated list"):
        invoke(["test", "parser", "5..3"])


def test_malformed_regex_is_rejected():
    with pytest.raises(CliParseError, match="Perl-compatible regexp parse error"):
        invoke(["test", "("])


def test_list_command_does_not_run():
    engine, result = invoke(["list"])
    assert result == "listed"
    assert engine.listed == 1
    assert engine.runs == []


def test_list_command_rejects_runtime_flags():
    with pytest.raises(CliParseError):
        invoke(["list", "-v"])


def test_help_returns_unit_without_exit(capsys):
    engine, result = invoke(["--help"])
    assert result == "unit"
    assert engine.runs == []
    out = capsys.readouterr().out
    assert "--tail-errors" in out
    assert "list" in out


def test_help_exits_zero_with_exit():
    with pytest.raises(SystemExit) as excinfo:
        invoke(["test", "--help"], and_exit=True)
    assert excinfo.value.code == 0


def test_user_arguments_reach_tests():
    def add_arguments(parser):
        parser.add_argument("--count", type=int, default=1)

    term = ArgsTerm(add_arguments=add_arguments, extract=lambda namespace: namespace.count)
    engine, _ = invoke(["--count", "3"], args=term)
    assert engine.runs[0][2] == (3,)
    engine, _ = invoke(["test", "suite", "--count", "5"], args=term)
    assert engine.runs[0][2] == (5,)


def test_color_flag():
    invoke(["--color=always"])
    assert config.color_enabled()
    invoke(["list", "--color", "never"])
    assert not config.color_enabled()


def test_color_environment(monkeypatch):
    monkeypatch.setenv("ALCOTEST_COLOR", "always")
    invoke([])
    assert config.color_enabled()


def test_invalid_color_environment(monkeypatch):
    monkeypatch.setenv("ALCOTEST_COLOR", "purple")
    with pytest.raises(CliParseError, match="ALCOTEST_COLOR"):
        invoke([])
