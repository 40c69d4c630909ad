"""Typer-based CLI for ResourceDownload with Pydantic v2 configuration."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel

from ImportKit.ResourceDownload.config import (
    export_config_schema,
    load_config,
    validate_config_file,
)
from ImportKit.ResourceDownload.downloader import download_resources
from ImportKit.ResourceDownload.errors import PreconditionError
from ImportKit.ResourceDownload.progress import TqdmProgressSink
from ImportKit.ResourceDownload.summary import format_run_summary

console = Console()
app = typer.Typer(help="ImportKit ResourceDownload")

# ============================================================================
# Setup
# ============================================================================


def _setup_logging(verbose: bool) -> None:
    """Setup logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _read_records(path: Path) -> list[dict[str, Any]]:
    """Read a JSON array or JSON Lines file of records."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
        if not isinstance(data, list):
            raise ValueError(f"{path} must contain a JSON array of records")
        return data
    return [json.loads(line) for line in text.splitlines() if line.strip()]


def _write_records(path: Path, records: list[dict[str, Any]]) -> None:
    if path.suffix.lower() == ".json":
        path.write_text(json.dumps(records, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        return
    lines = [json.dumps(record, ensure_ascii=False) for record in records]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


# ============================================================================
# Commands
# ============================================================================


@app.command()
def localize(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Records (.json or .jsonl)"),
    media_dir: Path = typer.Option(..., "--media-dir", "-m", help="Base media directory"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: overwrite input)"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
        envvar="IMPORTKIT_CONFIG",
    ),
    workers: Optional[int] = typer.Option(None, "--workers", help="Concurrent downloads"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
) -> None:
    """Download resources referenced by records and rewrite their fields."""
    _setup_logging(verbose)

    try:
        cli_overrides: dict[str, Any] = {}
        if workers:
            cli_overrides["concurrency_limit"] = workers
        cfg = load_config(path=config, cli_overrides=cli_overrides)
        records = _read_records(input_path)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    try:
        summary = asyncio.run(
            download_resources(
                records,
                cfg,
                directory_resolver=media_dir,
                progress=TqdmProgressSink(),
            )
        )
    except PreconditionError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=2)

    target = output or input_path
    _write_records(target, records)

    console.print(Panel(format_run_summary(summary), title="ResourceDownload"))
    console.print(f"[green]✓ Wrote {len(records)} records to {target}[/green]")


@app.command("validate-config")
def validate_config(
    config_file: str = typer.Argument(..., help="Config file to validate"),
) -> None:
    """Validate a configuration file."""
    try:
        validate_config_file(config_file)
    except ValueError as e:
        console.print(f"[red]✗ Invalid config:[/red] {e}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ Config valid:[/green] {config_file}")


@app.command()
def schema() -> None:
    """Print the JSON Schema of the configuration."""
    typer.echo(json.dumps(export_config_schema(), indent=2))


def main() -> None:
    """Invoke the Typer application."""

    app()


if __name__ == "__main__":  # pragma: no cover - manual CLI invocation helper
    main()
