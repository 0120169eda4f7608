from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_HISTORY_COLUMNS = ("created_at", "temperature", "humidity", "light", "soil")


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_history(records: List[Dict[str, Any]]) -> None:
    echo_heading(f"History ({len(records)} records, newest first)")
    if not records:
        typer.echo("No readings persisted in the window.")
        return
    typer.echo("  ".join(_HISTORY_COLUMNS))
    for record in records:
        typer.echo("  ".join(str(record.get(column)) for column in _HISTORY_COLUMNS))


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Bridge Status")
    connected = bool(payload.get("broker_connected"))
    typer.secho(
        f"broker: {'online' if connected else 'offline'}",
        fg=typer.colors.GREEN if connected else typer.colors.RED,
    )
    echo_key_values(
        [
            ("last_message_at", payload.get("last_message_at")),
            ("reading_cached", payload.get("reading_cached")),
            ("reading_updated_at", payload.get("reading_updated_at")),
            ("viewer_count", payload.get("viewer_count")),
            ("messages_received", payload.get("messages_received")),
            ("messages_invalid", payload.get("messages_invalid")),
        ]
    )
