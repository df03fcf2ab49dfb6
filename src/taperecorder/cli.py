from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from taperecorder.cassette import FileTapeCassette
from taperecorder.config.loader import load_settings
from taperecorder.playback import CATEGORY, DURATION, EXCEPTION_IN_OPERATION, RECORDED_AT
from taperecorder.recording import DataEntry, Recording

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()

_PREVIEW_LIMIT = 160


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Inspect recordings stored in a file cassette."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _resolve_cassette(cassette: Optional[str], config: Optional[str]) -> FileTapeCassette:
    if cassette is not None:
        return FileTapeCassette(Path(cassette))
    if config is None:
        raise ValueError("Either --cassette or --config is required")
    settings = load_settings(Path(config))
    if settings.cassette.type != "file" or settings.cassette.path is None:
        raise ValueError("Configured cassette is not a file cassette")
    return FileTapeCassette(Path(settings.cassette.path))


def _preview(value: Any) -> str:
    text = json.dumps(value, ensure_ascii=False, sort_keys=True)
    if len(text) > _PREVIEW_LIMIT:
        text = text[: _PREVIEW_LIMIT - 3] + "..."
    return text


def _fmt(value: object) -> str:
    if value is None:
        return "n/a"
    return str(value)


@app.command("list")
def list_recordings(
    cassette: Optional[str] = typer.Option(None, "--cassette", help="Cassette directory"),
    config: Optional[str] = typer.Option(None, "--config", help="Recorder config file"),
    category: Optional[str] = typer.Option(None, "--category", help="Only this category"),
) -> None:
    """List stored recordings."""
    try:
        tape = _resolve_cassette(cassette, config)
        recordings: list[Recording] = []
        for recording_id in tape.list_recording_ids(category):
            recording = tape.get_recording(recording_id)
            if recording is not None:
                recordings.append(recording)
    except Exception as exc:
        console.print(f"[red]Failed to load cassette:[/red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title="Recordings", show_lines=False)
    table.add_column("Recording")
    table.add_column("Category")
    table.add_column("Recorded at")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Status")
    for recording in recordings:
        metadata = recording.get_metadata()
        failed = metadata.get(EXCEPTION_IN_OPERATION)
        status = "[red]RAISED[/red]" if failed else "[green]OK[/green]"
        table.add_row(
            escape(recording.id),
            escape(_fmt(metadata.get(CATEGORY))),
            _fmt(metadata.get(RECORDED_AT)),
            _fmt(metadata.get(DURATION)),
            status,
        )
    console.print(table)
    console.print(f"{len(recordings)} recording(s) in {tape.directory}")


@app.command()
def show(
    recording_id: str = typer.Argument(..., help="Recording id, e.g. category/uuid"),
    cassette: Optional[str] = typer.Option(None, "--cassette", help="Cassette directory"),
    config: Optional[str] = typer.Option(None, "--config", help="Recorder config file"),
) -> None:
    """Show the metadata and entries of one recording."""
    try:
        tape = _resolve_cassette(cassette, config)
        recording = tape.get_recording(recording_id)
    except Exception as exc:
        console.print(f"[red]Failed to load recording:[/red] {exc}")
        raise typer.Exit(code=1)
    if recording is None:
        console.print(f"[red]Recording not found:[/red] {recording_id}")
        raise typer.Exit(code=1)

    metadata_table = Table(title=f"Recording {recording.id}", show_lines=False)
    metadata_table.add_column("Metadata")
    metadata_table.add_column("Value")
    for key, value in recording.get_metadata().items():
        metadata_table.add_row(escape(key), escape(_preview(value)))
    console.print(metadata_table)

    entries_table = Table(title="Entries", show_lines=False)
    entries_table.add_column("Key")
    entries_table.add_column("Kind")
    entries_table.add_column("Deferred")
    entries_table.add_column("Value")
    for key in recording.get_all_keys():
        entry = recording.get_data(key)
        if isinstance(entry, DataEntry):
            kind = "data"
            value = entry.value
        else:
            kind = "[red]failure[/red]"
            value = entry.payload
        entries_table.add_row(
            escape(key), kind, "yes" if entry.is_deferred else "no", escape(_preview(value))
        )
    console.print(entries_table)
