"""
Step definitions for the command execution feature.

These tests verify the execute path end to end:
- handlers receive normalized arguments (and `ctx` when they ask for it)
- side effects update the session only after success
- handler failures are returned as results, never raised
"""

import json

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

# Load scenarios from feature file
scenarios("../features/command_execution.feature")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def test_context():
    """Shared context for passing data between steps."""
    return {"engine": None, "state": None, "result": None, "emitted": []}


# =============================================================================
# Given Steps
# =============================================================================


@given("the markov contract")
def markov(markov_engine, test_context):
    test_context["engine"] = markov_engine


@given("a fresh session")
def fresh_session(test_context):
    test_context["state"] = test_context["engine"].new_state()


@given(parsers.parse('the handler for "{name}" returns "{value}"'))
def register_handler(test_context, name: str, value: str):
    test_context["engine"].register(name, lambda: value)


# =============================================================================
# When Steps
# =============================================================================


@when(parsers.parse("I run '{line}'"))
def run_line(test_context, line: str):
    test_context["result"] = test_context["engine"].execute(
        line, test_context["state"], output_sink=test_context["emitted"].append
    )


# =============================================================================
# Then Steps
# =============================================================================


def _output(test_context):
    result = test_context["result"]
    assert result.ok, f"Expected success, got {result.error_kind}: {result.error}"
    return result.output


@then("the run succeeds")
def check_success(test_context):
    _output(test_context)


@then(parsers.parse("the output is '{expected}'"))
def check_output(test_context, expected: str):
    assert _output(test_context) == json.loads(expected)


@then(parsers.parse('the output contains "{text}"'))
def check_output_contains(test_context, text: str):
    assert text in _output(test_context)


@then(parsers.parse('the output does not contain "{text}"'))
def check_output_excludes(test_context, text: str):
    assert text not in _output(test_context)


@then(parsers.parse('the handler emitted "{line}"'))
def check_emitted(test_context, line: str):
    assert line in test_context["emitted"]


@then("the run requests exit")
def check_exit(test_context):
    assert test_context["result"].exit is True


@then(parsers.parse('the session state "{key}" is "{value}"'))
def check_state(test_context, key: str, value: str):
    assert test_context["state"].get(key) == value


@then(parsers.parse('the session state "{key}" is unset'))
def check_state_unset(test_context, key: str):
    assert test_context["state"].get(key) is None


@then(parsers.parse('the run fails with "{kind}" mentioning "{text}"'))
def check_failure(test_context, kind: str, text: str):
    result = test_context["result"]
    assert not result.ok, f"Expected failure, got {result.output}"
    assert result.error_kind == kind, result.error
    assert text in result.error
