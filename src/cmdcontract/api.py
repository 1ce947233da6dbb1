"""
HTTP API for a contract directory.

Every request to /execute runs in its own SessionState, seeded from the
manifest's stateDefaults plus the state the client sends, and the
resulting state is returned so the client can carry it forward.

Run with: CMDC_ROOT=path/to/contract uvicorn cmdcontract.api:app --port 8000
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from .config import resolve_max_chain_depth, resolve_root
from .kernel.engine import ContractEngine
from .kernel.help import signature

# --- Pydantic Models ---


class ExecuteRequest(BaseModel):
    """Request body for command execution."""

    input: str
    state: Optional[Dict[str, Any]] = None


class ExecuteResponse(BaseModel):
    ok: bool
    output: Any = None
    exit: bool = False
    messages: List[str] = []
    state: Dict[str, Any] = {}


class CommandSummary(BaseModel):
    name: str
    command_type: str
    description: Optional[str] = None
    signature: str
    parameters: Dict[str, Any] = {}


class CommandListResponse(BaseModel):
    commands: List[CommandSummary]
    count: int


# --- App ---


def create_app(engine: Optional[ContractEngine] = None) -> FastAPI:
    """
    Build the app. Without an engine, one is loaded from CMDC_ROOT on the
    first request that needs it.
    """
    app = FastAPI(
        title="cmdcontract API",
        description="HTTP interface to a command contract",
        version="0.1.0",
    )
    app.state.engine = engine

    def get_engine(request: Request) -> ContractEngine:
        if request.app.state.engine is None:
            request.app.state.engine = ContractEngine.from_directory(
                resolve_root(), max_chain_depth=resolve_max_chain_depth()
            )
        return request.app.state.engine

    def summarize(spec) -> CommandSummary:
        return CommandSummary(
            name=spec.name,
            command_type=spec.command_type.value,
            description=spec.description,
            signature=signature(spec),
            parameters={
                name: param.model_dump(by_alias=True, exclude_none=True)
                for name, param in spec.parameters.items()
            },
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "service": "cmdcontract"}

    @app.get("/commands", response_model=CommandListResponse)
    def list_commands(request: Request):
        """Directly addressable commands (target commands are reached by chaining)."""
        specs = get_engine(request).list_commands()
        return CommandListResponse(commands=[summarize(spec) for spec in specs], count=len(specs))

    @app.get("/commands/{name:path}")
    def describe_command(name: str, request: Request):
        spec = get_engine(request).describe(name)
        if spec is None:
            raise HTTPException(status_code=404, detail=f"Unknown command: {name}")
        return spec.model_dump(by_alias=True, exclude_none=True)

    @app.post("/execute", response_model=ExecuteResponse)
    def execute(body: ExecuteRequest, request: Request):
        """
        Parse and run one command line.

        Failures return 400 with the error kind and message.
        """
        engine = get_engine(request)
        state = engine.new_state(body.state)
        messages: List[str] = []

        result = engine.execute(body.input, state, output_sink=messages.append)
        if not result.ok:
            raise HTTPException(
                status_code=400,
                detail={"error_kind": result.error_kind, "error_message": result.error},
            )

        return ExecuteResponse(
            ok=True,
            output=result.output,
            exit=result.exit,
            messages=messages,
            state=state.snapshot(),
        )

    return app


app = create_app()


# --- Main entry point for direct execution ---

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
