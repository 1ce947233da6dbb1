"""
Step definitions for the command chaining feature.

Each scenario writes a small descriptor tree, then builds the engine in the
When step so handlers and the depth limit can be set up first. Declared
commands get a handler returning None unless a step supplies one; every
handler call is counted.
"""

import json
from collections import Counter

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from cmdcontract.kernel.engine import ContractEngine

# Load scenarios from feature file
scenarios("../features/command_chaining.feature")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def test_context():
    """Shared context for passing data between steps."""
    return {
        "handlers": {},
        "calls": Counter(),
        "max_chain_depth": 16,
        "state": None,
        "result": None,
    }


def _returning(value):
    return lambda **_: value


def _raising(message):
    def handler(**_):
        raise RuntimeError(message)

    return handler


def _counted(name, handler, calls):
    def wrapper(**kwargs):
        calls[name] += 1
        return handler(**kwargs)

    return wrapper


# =============================================================================
# Given Steps
# =============================================================================


@given(parsers.parse('a contract root named "{name}"'))
def contract_root(contract, name: str):
    contract.contract(name=name, version="1.0.0")


@given(parsers.parse('command "{name}" is declared'))
def declare_command(contract, test_context, name: str):
    contract.command(".", name, parameters={})
    test_context["handlers"].setdefault(name, _returning(None))


@given(parsers.parse("command \"{name}\" is declared with parameters '{parameters}'"))
def declare_command_with_parameters(contract, test_context, name: str, parameters: str):
    contract.command(".", name, parameters=json.loads(parameters))
    test_context["handlers"].setdefault(name, _returning(None))


@given(parsers.parse("command \"{name}\" routes to \"{target}\" with '{rule}'"))
def route(contract, name: str, target: str, rule: str):
    contract.routes(".", name, next={target: json.loads(rule)})


@given(parsers.parse("command \"{name}\" has next '{value}'"))
def raw_next(contract, name: str, value: str):
    contract.routes(".", name, next=json.loads(value))


@given(parsers.parse('command "{name}" has no handler'))
def no_handler(test_context, name: str):
    test_context["handlers"].pop(name, None)


@given(parsers.parse('command "{name}" sets state "{key}" to "{template}"'))
def set_state(contract, name: str, key: str, template: str):
    contract.runtime(".", name, sideEffects={"setState": {key: template}})


@given(parsers.parse('"{namespace}" is mounted as a target defining "{name}"'))
def mount_target(contract, namespace: str, name: str):
    contract.contract(targets={namespace: namespace})
    contract.contract(namespace, name=namespace)
    contract.command(namespace, name, parameters={})


@given(parsers.parse("the handler for \"{name}\" returns '{value}'"))
def handler_returns(test_context, name: str, value: str):
    test_context["handlers"][name] = _returning(json.loads(value))


@given(parsers.parse('the handler for "{name}" echoes its arguments'))
def handler_echoes(test_context, name: str):
    test_context["handlers"][name] = lambda **kwargs: kwargs


@given(parsers.parse('the handler for "{name}" raises "{message}"'))
def handler_raises(test_context, name: str, message: str):
    test_context["handlers"][name] = _raising(message)


@given(parsers.parse("the chain depth limit is {limit:d}"))
def depth_limit(test_context, limit: int):
    test_context["max_chain_depth"] = limit


# =============================================================================
# When Steps
# =============================================================================


@when(parsers.parse("I execute '{line}'"))
def execute(contract, test_context, line: str):
    handlers = {
        name: _counted(name, handler, test_context["calls"])
        for name, handler in test_context["handlers"].items()
    }
    engine = ContractEngine.from_directory(
        contract.root, handlers=handlers, max_chain_depth=test_context["max_chain_depth"]
    )
    test_context["state"] = engine.new_state()
    test_context["result"] = engine.execute(line, test_context["state"])


# =============================================================================
# Then Steps
# =============================================================================


@then(parsers.parse("the chain output is '{expected}'"))
def check_output(test_context, expected: str):
    result = test_context["result"]
    assert result.ok, f"Expected success, got {result.error_kind}: {result.error}"
    assert result.output == json.loads(expected)


@then(parsers.parse('the chain fails with "{kind}" mentioning "{text}"'))
def check_failure(test_context, kind: str, text: str):
    result = test_context["result"]
    assert not result.ok, f"Expected failure, got {result.output}"
    assert result.error_kind == kind, result.error
    assert text in result.error


@then(parsers.parse('the session state "{key}" is "{value}"'))
def check_state(test_context, key: str, value: str):
    assert test_context["state"].get(key) == value


@then(parsers.parse('the handler for "{name}" ran {count:d} times'))
def check_calls(test_context, name: str, count: int):
    assert test_context["calls"][name] == count
