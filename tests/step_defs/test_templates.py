"""
Step definitions for the templates feature.
"""

import json

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from cmdcontract.kernel.literal import LiteralSyntaxError, parse_literal
from cmdcontract.kernel.template import TemplateError, evaluate_condition, render

# Load scenarios from feature file
scenarios("../features/templates.feature")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def test_context():
    """Shared context for passing data between steps."""
    return {"contexts": {}, "rendered": None, "error": None}


# =============================================================================
# Given Steps
# =============================================================================


@given(parsers.parse("the template context '{contexts}'"))
def template_context(test_context, contexts: str):
    test_context["contexts"] = json.loads(contexts)


# =============================================================================
# When Steps
# =============================================================================


@when(parsers.parse('I render "{template}"'))
def render_template(test_context, template: str):
    test_context["error"] = None
    try:
        test_context["rendered"] = render(template, test_context["contexts"])
    except TemplateError as e:
        test_context["error"] = e


# =============================================================================
# Then Steps
# =============================================================================


@then(parsers.parse('the condition "{expression}" is {outcome}'))
def check_condition(test_context, expression: str, outcome: str):
    assert evaluate_condition(expression, test_context["contexts"]) is (outcome == "true")


@then(parsers.parse("the rendered value is '{expected}'"))
def check_rendered(test_context, expected: str):
    assert test_context["error"] is None, test_context["error"]
    assert test_context["rendered"] == json.loads(expected)


@then(parsers.parse('rendering fails mentioning "{text}"'))
def check_render_failure(test_context, text: str):
    assert test_context["error"] is not None
    assert text in str(test_context["error"])


@then(parsers.parse("the literal '{text}' parses to '{expected}'"))
def check_literal(text: str, expected: str):
    assert parse_literal(text) == json.loads(expected)


@then(parsers.parse("the literal '{text}' is rejected"))
def check_literal_rejected(text: str):
    with pytest.raises(LiteralSyntaxError):
        parse_literal(text)
