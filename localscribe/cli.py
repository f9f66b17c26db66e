"""
localscribe.cli - Typer CLI entry point.

Provides the transcribe, export, models, serve and init commands.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from localscribe import __version__
from localscribe.config import (
    BUILTIN_MODELS,
    CONFIG_FILENAME,
    SUPPORTED_LANGUAGES,
    create_default_config,
    load_config,
    write_config,
)
from localscribe.exceptions import (
    CancellationError,
    ConfigError,
    DependencyError,
    ExportError,
    InputError,
    TranscriptionError,
)
from localscribe.logging import configure_logging
from localscribe.utils import format_duration, format_eta, format_megabytes

app = typer.Typer(
    name="localscribe",
    help="Local speech-to-text with word timestamps, speaker tags and subtitle export.\n\n"
    "Audio never leaves the machine: models are downloaded once and run locally.",
    add_completion=False,
)
console = Console()

STATE_DESCRIPTIONS = {
    "initializing": "Initializing model...",
    "downloading": "Downloading model weights...",
    "inferring": "Transcribing media...",
}


def version_callback(value: bool) -> None:
    if value:
        console.print(f"localscribe {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """localscribe - local speech-to-text toolkit."""
    pass


def _print_dependency_error(e: DependencyError) -> None:
    console.print(f"[red]Error: {e}[/red]")
    if e.install_hint:
        console.print(f"[dim]  {e.install_hint}[/dim]")


@app.command("init")
def init_config(
    path: str = typer.Option(".", "--path", "-d", help="Directory to write the config in"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
) -> None:
    """Write a default localscribe.yaml."""
    config_path = Path(path) / CONFIG_FILENAME
    if config_path.exists() and not force:
        console.print(f"[red]Error: '{config_path}' already exists[/red]")
        raise typer.Exit(1)

    write_config(create_default_config(), config_path)
    console.print(f"[green]✓[/green] Wrote {config_path}")


@app.command("transcribe")
def transcribe(
    media: Path = typer.Argument(..., help="Audio or video file to transcribe"),
    model: str | None = typer.Option(
        None, "--model", "-m", help="Model id, e.g. openai/whisper-base"
    ),
    device: str | None = typer.Option(None, "--device", "-d", help="Compute device: cpu or gpu"),
    language: str | None = typer.Option(None, "--language", "-l", help="Spoken language"),
    backend: str | None = typer.Option(
        None, "--backend", "-b", help="Engine backend: transformers or faster"
    ),
    output_format: str = typer.Option(
        "srt", "--format", "-f", help="Output format: srt, vtt, json or txt"
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file path"),
    pause_threshold: float | None = typer.Option(
        None, "--pause-threshold", help="Silence in seconds that switches speaker"
    ),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging"),
) -> None:
    """Transcribe a media file and write subtitles or a transcript."""
    from localscribe.audio import load_media
    from localscribe.controller import TaskState
    from localscribe.export.subtitles import SubtitleFormat, write_subtitles
    from localscribe.models import SAMPLE_RATE, ProgressSnapshot
    from localscribe.session import build_request, create_controller

    configure_logging(verbose)

    try:
        config = load_config(
            config_path,
            model_id=model,
            device=device,
            language=language,
            backend=backend,
            pause_threshold=pause_threshold,
        )
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    try:
        fmt = SubtitleFormat(output_format.lower())
    except ValueError:
        console.print(f"[red]Error: Unknown format '{output_format}'[/red]")
        raise typer.Exit(1)

    try:
        samples = load_media(media)
    except InputError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except DependencyError as e:
        _print_dependency_error(e)
        raise typer.Exit(1)

    console.print(
        f"[cyan]Transcribing {media.name}[/cyan] "
        f"[dim]({format_duration(len(samples) / SAMPLE_RATE)}, {config.model_id} on "
        f"{config.device.upper()})[/dim]"
    )

    with Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.fields[stats]}"),
        console=console,
        transient=True,
    ) as progress:
        bar = progress.add_task(STATE_DESCRIPTIONS["initializing"], total=None, stats="")

        def on_state_change(state: TaskState) -> None:
            description = STATE_DESCRIPTIONS.get(state.value)
            if description:
                progress.update(bar, description=description)
            if state == TaskState.INFERRING:
                progress.update(bar, total=None, stats="")

        def on_progress(snapshot: ProgressSnapshot) -> None:
            stats = f"{format_megabytes(snapshot.loaded)} / {format_megabytes(snapshot.total)}"
            if snapshot.speed > 0:
                stats += f"  {snapshot.speed_mb:.1f} MB/s  ETA {format_eta(snapshot.eta)}"
            progress.update(
                bar,
                total=snapshot.total or None,
                completed=snapshot.loaded,
                stats=stats,
            )

        controller = create_controller(
            config, on_progress=on_progress, on_state_change=on_state_change
        )
        try:
            result = controller.run(build_request(samples, config))
        except KeyboardInterrupt:
            console.print("[yellow]Processing cancelled by user.[/yellow]")
            raise typer.Exit(130)
        except CancellationError as e:
            console.print(f"[yellow]{e}[/yellow]")
            raise typer.Exit(130)
        except (TranscriptionError, InputError) as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)

    output_path = output or media.with_suffix(f".{fmt.value}")
    try:
        write_subtitles(result, output_path, fmt)
    except (ExportError, OSError) as e:
        console.print(f"[red]Error writing {output_path}: {e}[/red]")
        raise typer.Exit(1)

    speakers = ", ".join(result.speakers) or "-"
    console.print(
        f"[green]✓[/green] {len(result.chunks)} words, "
        f"{format_duration(result.duration_seconds)}, speakers: {speakers}"
    )
    console.print(f"[dim]  {output_path}[/dim]")


@app.command("export")
def export(
    transcript: Path = typer.Argument(..., help="Transcript JSON written by 'transcribe -f json'"),
    output_format: str = typer.Option("srt", "--format", "-f", help="srt, vtt or txt"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file path"),
) -> None:
    """Convert a saved JSON transcript to subtitles."""
    import json

    from localscribe.export.subtitles import write_subtitles
    from localscribe.io import read_json

    try:
        data = read_json(transcript)
    except FileNotFoundError:
        console.print(f"[red]Error: File not found: {transcript}[/red]")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: Invalid JSON in {transcript}: {e}[/red]")
        raise typer.Exit(1)

    if not isinstance(data, dict):
        console.print("[red]Error: Transcript JSON must be an object[/red]")
        raise typer.Exit(1)

    output_path = output or transcript.with_suffix(f".{output_format.lower()}")
    try:
        write_subtitles(data, output_path, output_format)
    except ExportError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Exported to {output_path}")


@app.command("models")
def list_models(
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """List built-in models and whether they have been downloaded."""
    from localscribe.models import ModelDescriptor
    from localscribe.registry import JsonModelRegistry

    try:
        config = load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    registry = JsonModelRegistry(config.cache_registry_path)

    table = Table(title="Models")
    table.add_column("Model", style="cyan")
    table.add_column("Size", style="green")
    table.add_column("Notes")
    table.add_column("Status", style="yellow")

    for model_id, info in BUILTIN_MODELS.items():
        cached = registry.was_model_cached(ModelDescriptor(model_id=model_id))
        status = "[green]Ready[/green]" if cached else "[dim]Not downloaded[/dim]"
        marker = " (default)" if model_id == config.model_id else ""
        table.add_row(
            f"{model_id}{marker}",
            f"~{info['size_mb']}MB",
            f"{info['label']} - {info['note']}",
            status,
        )

    console.print(table)
    console.print(f"[dim]Languages: {', '.join(SUPPORTED_LANGUAGES)}[/dim]")


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging"),
) -> None:
    """Run the HTTP transcription endpoint."""
    import uvicorn

    from localscribe.server import create_app

    configure_logging(verbose)

    try:
        config = load_config(config_path, server_host=host, server_port=port)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[cyan]Serving on http://{config.server_host}:{config.server_port}[/cyan] "
        f"[dim]({config.model_id})[/dim]"
    )
    uvicorn.run(create_app(config), host=config.server_host, port=config.server_port)


if __name__ == "__main__":
    app()
