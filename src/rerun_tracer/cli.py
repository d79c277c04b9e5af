from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .dependency import DependencyGraph
from .errors import TracerError
from .ledger import LEDGER_FILE, RunLedger
from .serializers import get_serializer
from .snapshot.loader import PreviousSnapshot, SnapshotLoader
from .utils import canonical_dumps

app = typer.Typer(help="rerun-tracer cache inspection")
console = Console()

CONFIG_OPTION = typer.Option(None, "--config", exists=True, dir_okay=False)
CACHE_PATH_OPTION = typer.Option(None, "--cache-path", file_okay=False)
JSON_OPTION = typer.Option(False, "--json")
FILES_ARGUMENT = typer.Argument(..., help="Project-relative file names, e.g. /app/models.py")

ledger_app = typer.Typer(help="Run ledger commands")


@app.callback()
def main() -> None:
    pass


def _settings(config: Optional[Path], cache_path: Optional[Path]) -> Settings:
    settings = load_settings(config)
    if cache_path is not None:
        settings = settings.model_copy(update={"cache_path": cache_path})
    return settings


def _load_snapshot(settings: Settings) -> PreviousSnapshot:
    loader = SnapshotLoader(settings.cache_path, get_serializer(settings.serializer))
    try:
        snapshot = loader.load()
    except TracerError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc
    if snapshot is None:
        console.print(f"no snapshot found under {settings.cache_path}")
        raise typer.Exit(code=1)
    return snapshot


@app.command("last-run")
def last_run_cmd(
    config: Optional[Path] = CONFIG_OPTION,
    cache_path: Optional[Path] = CACHE_PATH_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    settings = _settings(config, cache_path)
    loader = SnapshotLoader(settings.cache_path, get_serializer(settings.serializer))
    try:
        record = loader.load_last_run()
    except TracerError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc
    if record is None:
        console.print(f"no snapshot found under {settings.cache_path}")
        raise typer.Exit(code=1)
    payload = record.model_dump(mode="json")
    if as_json:
        print(canonical_dumps(payload).decode("utf-8"))
        return
    table = Table(title=f"Last run {record.run_id[:12]}")
    table.add_column("field")
    table.add_column("value", justify="right")
    for key in sorted(payload):
        table.add_row(key, str(payload[key]))
    console.print(table)


@app.command("dependents")
def dependents_cmd(
    files: List[str] = FILES_ARGUMENT,
    config: Optional[Path] = CONFIG_OPTION,
    cache_path: Optional[Path] = CACHE_PATH_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Show which example files depend on the given source files."""
    snapshot = _load_snapshot(_settings(config, cache_path))
    report = {
        file_name: snapshot.reverse_dependency.get(
            file_name, {"example_count": 0, "examples": {}}
        )
        for file_name in files
    }
    if as_json:
        print(canonical_dumps(report).decode("utf-8"))
        return
    table = Table(title="Reverse dependency")
    table.add_column("file")
    table.add_column("examples", justify="right")
    table.add_column("example files")
    for file_name, entry in report.items():
        origins = ", ".join(f"{name} ({count})" for name, count in entry["examples"].items())
        table.add_row(file_name, str(entry["example_count"]), origins or "-")
    console.print(table)


@app.command("impacted")
def impacted_cmd(
    files: List[str] = FILES_ARGUMENT,
    config: Optional[Path] = CONFIG_OPTION,
    cache_path: Optional[Path] = CACHE_PATH_OPTION,
) -> None:
    """List example ids whose recorded dependencies include any given file."""
    snapshot = _load_snapshot(_settings(config, cache_path))
    graph = DependencyGraph()
    for example_id, dependent_files in snapshot.dependency.items():
        for file_name in dependent_files:
            graph.record_dependency(example_id, file_name)
    for example_id in graph.impacted_examples(files):
        print(example_id)


@ledger_app.command("verify")
def ledger_verify_cmd(
    config: Optional[Path] = CONFIG_OPTION,
    cache_path: Optional[Path] = CACHE_PATH_OPTION,
) -> None:
    settings = _settings(config, cache_path)
    ok, message = RunLedger.verify_chain(settings.cache_path / LEDGER_FILE)
    console.print({"ok": ok, "message": message})
    if not ok:
        raise typer.Exit(code=1)


app.add_typer(ledger_app, name="ledger")


if __name__ == "__main__":
    app()
