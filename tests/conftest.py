"""
Pytest configuration and shared fixtures for contract engine tests.
"""
import json
from pathlib import Path
from typing import Any, Dict

import pytest

from cmdcontract.kernel.engine import ContractEngine


def _merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class ContractBuilder:
    """Writes descriptor files below a temporary contract root."""

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def directory(self, relative: str) -> Path:
        path = self.root if relative in ("", ".") else self.root / relative
        path.mkdir(parents=True, exist_ok=True)
        return path

    def update(self, relative: str, filename: str, patch: Dict[str, Any]) -> Path:
        path = self.directory(relative) / filename
        current = json.loads(path.read_text()) if path.exists() else {}
        path.write_text(json.dumps(_merge(current, patch), indent=2))
        return path

    def contract(self, relative: str = ".", **fields: Any) -> Path:
        return self.update(relative, "contract.json", fields)

    def command(self, relative: str, name: str, **properties: Any) -> Path:
        properties.setdefault("commandType", "custom")
        return self.update(relative, "commands.json", {name: properties})

    def runtime(self, relative: str, name: str, **properties: Any) -> Path:
        return self.update(relative, "runtime.json", {name: properties})

    def help(self, relative: str, name: str, **properties: Any) -> Path:
        return self.update(relative, "help.json", {name: properties})

    def routes(self, relative: str, name: str, **properties: Any) -> Path:
        return self.update(relative, "routes.json", {name: properties})

    def file(self, relative: str, filename: str, content: str) -> Path:
        path = self.directory(relative) / filename
        path.write_text(content)
        return path


@pytest.fixture
def contract(tmp_path):
    """An empty contract root to build descriptor trees in."""
    return ContractBuilder(tmp_path / "contract")


# =============================================================================
# Markov contract: a small text-generation command set
# =============================================================================


def train(file, modelType, order):
    return {"file": file, "modelType": modelType, "order": order}


def generate(model, length, ctx):
    ctx.emit(f"generating from {model}")
    return f"{length} words from {model}"


def lookup(query, by=None):
    return {"query": query, "by": by}


def explode():
    raise RuntimeError("boom")


def status():
    return "ok"


MARKOV_HANDLERS = {
    "train": train,
    "generate": generate,
    "lookup": lookup,
    "explode": explode,
    "kernel/status": status,
}

SHOUT_HANDLER = '''
def shout(text):
    return text.upper()
'''


def build_markov_contract(builder: ContractBuilder) -> Path:
    builder.contract(
        name="markov",
        version="1.0.0",
        description="Markov text generator",
        prompt="markov> ",
        stateDefaults={"currentModel": None},
        sources={"lib": "lib"},
        targets={"kernel": "kernel"},
    )

    builder.command(
        ".",
        "train",
        parameters={
            "file": {"type": "string", "required": True},
            "modelType": {
                "type": "string",
                "required": True,
                "enum": ["markov", "ngram", "hmm"],
            },
            "order": {"type": "integer", "default": 2, "min": 1, "max": 10},
        },
    )
    builder.command(
        ".",
        "generate",
        parameters={
            "model": {"type": "string", "required": True},
            "length": {"type": "integer", "default": 50, "min": 1, "max": 500},
        },
    )
    builder.command(
        ".",
        "use",
        commandType="internal",
        parameters={"modelName": {"type": "string", "required": True}},
    )
    builder.command(
        ".",
        "delete",
        commandType="internal",
        parameters={"modelName": {"type": "string", "required": True}},
    )
    builder.command(
        ".",
        "lookup",
        parameters={
            "query": {"type": "integer|string", "required": True},
            "by": {"type": "string", "enum": ["id", "title"]},
        },
    )
    builder.command(".", "explode")
    builder.command(".", "orphan")
    builder.command(
        ".", "help", commandType="internal", parameters={"command": {"type": "string"}}
    )
    builder.command(".", "exit", commandType="internal")

    builder.runtime(
        ".", "train", sideEffects={"setState": {"currentModel": "{{input.file | basename}}"}}
    )
    builder.runtime(".", "generate", parameters={"model": {"runtimeFallback": "currentModel"}})
    builder.runtime(
        ".",
        "use",
        sideEffects={"setState": {"currentModel": {"fromParam": "modelName"}}},
        successOutput="Now using {{modelName}}",
    )
    builder.runtime(
        ".", "delete", sideEffects={"clearStateIf": {"currentModel": {"fromParam": "modelName"}}}
    )
    builder.runtime(
        ".",
        "lookup",
        parameters={
            "query": {
                "transform": {
                    "then": {"query": "{{value}}", "by": "id"},
                    "else": {"query": "{{value}}", "by": "title"},
                }
            }
        },
    )
    builder.runtime(".", "exit", sideEffects={"builtin": "exit"})

    builder.help(
        ".",
        "train",
        description="Train a model from a corpus file",
        examples=['train("corpus.txt", markov)'],
        parameters={"file": {"description": "Corpus file"}},
    )
    builder.help(".", "generate", description="Generate text from the current model")

    builder.contract("lib", name="lib", description="Shared commands")
    builder.command(
        "lib",
        "shout",
        commandType="external-method",
        source="./",
        methodName="shout",
        parameters={"text": {"type": "string", "required": True}},
    )
    builder.command(
        "lib",
        "dump",
        handler="json.dumps",
        parameters={"obj": {"type": "object", "required": True}},
    )
    builder.help("lib", "train", description="Library train", syntax="train(file, modelType)")
    builder.file("lib", "handler.py", SHOUT_HANDLER)

    builder.contract("kernel", name="kernel")
    builder.command("kernel", "status")

    return builder.root


@pytest.fixture
def markov_contract(contract):
    """Root of a contract with train/generate/use/delete, a lib source and a kernel target."""
    return build_markov_contract(contract)


@pytest.fixture
def markov_engine(markov_contract):
    return ContractEngine.from_directory(markov_contract, handlers=MARKOV_HANDLERS)
