"""
Step definitions for the HTTP API feature.

The app is built around the markov engine and driven with FastAPI's
TestClient; no server is started.
"""

import json

import pytest
from fastapi.testclient import TestClient
from pytest_bdd import given, parsers, scenarios, then, when

from cmdcontract.api import create_app

# Load scenarios from feature file
scenarios("../features/http_api.feature")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def test_context():
    """Shared context for passing data between steps."""
    return {"client": None, "response": None}


# =============================================================================
# Given Steps
# =============================================================================


@given("the markov contract is served")
def served(markov_engine, test_context):
    test_context["client"] = TestClient(create_app(markov_engine))


# =============================================================================
# When Steps
# =============================================================================


@when(parsers.parse('I GET "{path}"'))
def get(test_context, path: str):
    test_context["response"] = test_context["client"].get(path)


@when(parsers.parse("I POST '{body}' to \"{path}\""))
def post(test_context, body: str, path: str):
    test_context["response"] = test_context["client"].post(path, json=json.loads(body))


# =============================================================================
# Then Steps
# =============================================================================


@then(parsers.parse("the response status is {status:d}"))
def check_status(test_context, status: int):
    response = test_context["response"]
    assert response.status_code == status, response.text


@then(parsers.parse('the response field "{field}" is "{value}"'))
def check_field(test_context, field: str, value: str):
    assert test_context["response"].json()[field] == value


@then(parsers.parse('the listed commands include "{name}"'))
def check_listed(test_context, name: str):
    names = [command["name"] for command in test_context["response"].json()["commands"]]
    assert name in names


@then(parsers.parse('the listed commands do not include "{name}"'))
def check_not_listed(test_context, name: str):
    names = [command["name"] for command in test_context["response"].json()["commands"]]
    assert name not in names


@then(parsers.parse('the response state "{key}" is "{value}"'))
def check_state(test_context, key: str, value: str):
    assert test_context["response"].json()["state"][key] == value


@then(parsers.parse('the response messages include "{message}"'))
def check_messages(test_context, message: str):
    assert message in test_context["response"].json()["messages"]


@then(parsers.parse('the error kind is "{kind}"'))
def check_error_kind(test_context, kind: str):
    assert test_context["response"].json()["detail"]["error_kind"] == kind
