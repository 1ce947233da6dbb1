"""
Step definitions for the CLI feature.

`main()` is called in-process with an argv list; output is captured with
capsys and the REPL reads from a patched `input`.
"""

import json

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from cmdcontract.cli import main
from cmdcontract.config import ROOT_ENV

# Load scenarios from feature file
scenarios("../features/cli.feature")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def test_context():
    """Shared context for passing data between steps."""
    return {"root": None, "code": None, "out": "", "err": ""}


# =============================================================================
# Given Steps
# =============================================================================


@given("the markov contract is on disk")
def on_disk(markov_contract, test_context):
    test_context["root"] = markov_contract


@given("CMDC_ROOT points at the contract")
def root_from_env(monkeypatch, test_context):
    monkeypatch.setenv(ROOT_ENV, str(test_context["root"]))


@given(parsers.parse("the REPL will read '{lines}'"))
def repl_input(monkeypatch, lines: str):
    pending = iter(json.loads(lines))

    def fake_input(prompt=""):
        try:
            return next(pending)
        except StopIteration:
            raise EOFError from None

    monkeypatch.setattr("builtins.input", fake_input)


# =============================================================================
# When Steps
# =============================================================================


def _invoke(capsys, test_context, argv):
    test_context["code"] = main(argv)
    captured = capsys.readouterr()
    test_context["out"], test_context["err"] = captured.out, captured.err


@when(parsers.parse("I invoke cmdc with '{argv}'"))
def invoke(capsys, test_context, argv: str):
    _invoke(capsys, test_context, ["--root", str(test_context["root"])] + json.loads(argv))


@when(parsers.parse("I invoke cmdc without a root with '{argv}'"))
def invoke_without_root(capsys, test_context, argv: str):
    _invoke(capsys, test_context, json.loads(argv))


@when(parsers.parse("I invoke cmdc on an empty directory with '{argv}'"))
def invoke_empty(capsys, tmp_path, test_context, argv: str):
    empty = tmp_path / "empty"
    empty.mkdir()
    _invoke(capsys, test_context, ["--root", str(empty)] + json.loads(argv))


# =============================================================================
# Then Steps
# =============================================================================


@then(parsers.parse("the exit code is {code:d}"))
def check_code(test_context, code: int):
    assert test_context["code"] == code, test_context["err"]


@then(parsers.parse('stdout contains "{text}"'))
def check_stdout(test_context, text: str):
    assert text in test_context["out"]


@then(parsers.parse('stdout does not contain "{text}"'))
def check_stdout_excludes(test_context, text: str):
    assert text not in test_context["out"]


@then(parsers.parse('stderr contains "{text}"'))
def check_stderr(test_context, text: str):
    assert text in test_context["err"]


@then(parsers.parse('stdout is JSON with command "{name}"'))
def check_manifest_json(test_context, name: str):
    assert name in json.loads(test_context["out"])["commands"]
