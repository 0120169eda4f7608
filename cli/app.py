from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config, read_serve_port
from cli.render import render_history, render_status


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for running and inspecting the plant monitor bridge.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Bridge API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("history")
def history_command(ctx: typer.Context) -> None:
    """Show readings persisted in the last 24 hours."""
    state = _get_state(ctx)
    render_history(state.client.get_history())


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show broker connectivity and cache state."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("ping")
def ping_command(ctx: typer.Context) -> None:
    """Call the keep-alive endpoint."""
    state = _get_state(ctx)
    payload = state.client.keep_alive()
    typer.secho(str(payload.get("status")), fg=typer.colors.GREEN)


@app.command("serve")
def serve_command(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Port to listen on (defaults to PORT env or 3000).",
    ),
) -> None:
    """Run the bridge service."""
    import uvicorn

    listen_port = port if port is not None else read_serve_port()
    typer.echo(f"Dashboard available on port {listen_port}")
    uvicorn.run("app.main:app", host=host, port=listen_port)
