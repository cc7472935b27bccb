"""Command-line interface for captionflow using Typer.

Features:
- `transcribe` command for captioning a local video or audio file.
- `serve` command for running the REST API with uvicorn.
- `check-key` command for diagnosing the configured STT API key.
"""

import asyncio
import mimetypes
import os
import pathlib
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from captionflow import __version__
from captionflow.config import PipelineConfig, SegmentationConfig
from captionflow.errors import CaptionflowError
from captionflow.formatting import get_formatter_spec
from captionflow.formatting.refine import merge_overlapping_captions
from captionflow.stt.providers import HUGGINGFACE, PROVIDER_KEY_ENV, inspect_api_key
from captionflow.transcription.pipeline import PipelineResult, TranscriptionPipeline
from captionflow.utils.constant import (
    API_SERVER_NAME,
    API_SERVER_PORT,
    CAPTION_MERGE_GAP_SEC,
    DEFAULT_SEGMENT_LEN_SEC,
)
from captionflow.utils.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def _display_summary(result: PipelineResult, output_path: pathlib.Path, caption_count: int) -> None:
    """Render the per-run diagnostics as a Rich table."""
    console = Console()
    table = Table(title="Transcription Summary", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="green")
    table.add_column("Value", style="yellow")

    coverage = result.timeline.coverage
    table.add_row("Output", str(output_path))
    table.add_row("Language", result.language)
    table.add_row("Duration (s)", f"{result.duration:.1f}")
    table.add_row("Segments", str(result.segment_count))
    table.add_row("Failed Segments", str(result.orchestration.failed_count))
    table.add_row("Captions", str(caption_count))
    table.add_row("Timeline Offset (s)", f"{result.timeline.offset_applied:.2f}")
    table.add_row("Coverage", f"{coverage:.0%}" if coverage is not None else "n/a")
    table.add_row("Elapsed (s)", f"{result.elapsed_sec:.1f}")

    console.print(table)


def version_callback(value: bool) -> None:
    """Show the application's version and exit.

    Raises:
        typer.Exit: Always raised after printing when value is True.

    """
    if value:
        print(f"captionflow version: {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="captionflow",
    help="Generate time-aligned captions for long videos via remote speech-to-text.",
    add_completion=False,
)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show the application's version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Print help when no subcommand is given.

    Raises:
        typer.Exit: Raised to terminate after displaying help.

    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command()
def transcribe(
    input_file: Annotated[
        pathlib.Path,
        typer.Argument(
            help="Video or audio file to caption.",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    language: Annotated[
        str, typer.Option("--language", "-l", help="Spoken language: hi, en or auto.")
    ] = "auto",
    output_format: Annotated[
        str,
        typer.Option(
            "--output-format", "--format", "-f", help="Output format: srt, vtt, json or txt."
        ),
    ] = "srt",
    output_dir: Annotated[
        pathlib.Path,
        typer.Option(
            "--output-dir",
            "-o",
            help="Directory for the caption file.",
            file_okay=False,
            resolve_path=True,
        ),
    ] = pathlib.Path("./output"),
    segment_len: Annotated[
        float,
        typer.Option("--segment-len", help="Segment length in seconds.", min=1.0),
    ] = DEFAULT_SEGMENT_LEN_SEC,
    merge: Annotated[
        bool,
        typer.Option("--merge/--no-merge", help="Merge overlapping or adjacent captions."),
    ] = False,
    merge_gap: Annotated[
        float,
        typer.Option("--merge-gap", help="Largest gap in seconds that still merges.", min=0.0),
    ] = CAPTION_MERGE_GAP_SEC,
    highlight_words: Annotated[
        bool,
        typer.Option("--highlight-words", help="Emphasize every word (srt/vtt only)."),
    ] = False,
    overwrite: Annotated[
        bool, typer.Option("--overwrite", help="Overwrite an existing caption file.")
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable verbose logging.")
    ] = False,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Only print errors.")
    ] = False,
) -> None:
    """Caption a local media file and write the result to ``--output-dir``.

    Raises:
        typer.Exit: With code 1 on any transcription error, 2 on bad options.

    """
    configure_logging(verbose=verbose, quiet=quiet)

    try:
        spec = get_formatter_spec(output_format)
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc

    output_path = output_dir / f"{input_file.stem}{spec.file_extension}"
    if output_path.exists() and not overwrite:
        typer.echo(f"Error: {output_path} exists (use --overwrite)", err=True)
        raise typer.Exit(code=2)

    mime_type, _ = mimetypes.guess_type(input_file.name)
    config = PipelineConfig(segmentation=SegmentationConfig(segment_len_sec=segment_len))
    pipeline = TranscriptionPipeline(config)

    try:
        result = asyncio.run(pipeline.run(input_file.read_bytes(), mime_type, language))
    except (CaptionflowError, ValueError) as exc:
        logger.debug("Transcription failed", exc_info=True)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    captions = result.captions
    if merge:
        captions = merge_overlapping_captions(captions, merge_gap)

    content = spec.render(captions, highlight_words=highlight_words)

    output_dir.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")

    if not quiet:
        failed = result.orchestration.failed_count
        typer.echo(
            f"Wrote {len(captions)} captions to {output_path} "
            f"({result.segment_count} segments, {failed} failed, {result.elapsed_sec:.1f}s)"
        )
        if verbose:
            _display_summary(result, output_path, len(captions))


@app.command()
def serve(
    host: str = typer.Option(
        API_SERVER_NAME,
        "--host",
        help="Server hostname or IP address to bind to.",
    ),
    port: int = typer.Option(
        API_SERVER_PORT,
        "--port",
        help="Server port number.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode with verbose logging.",
    ),
) -> None:
    """Launch the REST API with uvicorn."""
    configure_logging(level="DEBUG" if debug else "INFO")

    from captionflow.api import create_app

    app_instance = create_app()

    import uvicorn

    logger.info("Starting captionflow API on %s:%d", host, port)
    uvicorn.run(
        app_instance,
        host=host,
        port=port,
        log_level="debug" if debug else "info",
    )


@app.command("check-key")
def check_key(
    provider: Annotated[
        str,
        typer.Option("--provider", "-p", help="Provider whose key to check: huggingface or openai."),
    ] = HUGGINGFACE,
) -> None:
    """Diagnose formatting problems with the STT API key (never prints the key).

    Raises:
        typer.Exit: With code 1 when the key is missing or malformed.

    """
    if provider not in PROVIDER_KEY_ENV:
        typer.echo(f"Error: unknown provider {provider!r}", err=True)
        raise typer.Exit(code=2)

    diagnostics = inspect_api_key(os.getenv(PROVIDER_KEY_ENV[provider]), provider)
    typer.echo(f"Provider:   {diagnostics.provider}")
    typer.echo(f"Variable:   {diagnostics.env_var}")
    typer.echo(f"Key set:    {'yes' if diagnostics.key_exists else 'no'}")
    if diagnostics.key_exists:
        typer.echo(f"Key length: {diagnostics.key_length}")
        typer.echo(f"Key prefix: {diagnostics.key_prefix}")
    for issue in diagnostics.issues:
        typer.echo(f"  - {issue}")
    for recommendation in diagnostics.recommendations:
        typer.echo(f"  * {recommendation}")

    if not diagnostics.ok:
        raise typer.Exit(code=1)
    typer.echo("Key format looks valid.")


if __name__ == "__main__":
    app()
