"""Main CLI interface using Typer."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from layoutran import __version__
from layoutran.core.exceptions import LayoutranError
from layoutran.core.models import ImageBlock, TableBlock, TextBlock
from layoutran.core.pipeline import DocumentPipeline
from layoutran.translation.backends import BACKENDS, create_backend
from layoutran.utils.config_loader import load_pipeline_config
from layoutran.utils.logger import setup_logger

app = typer.Typer(
    name="layoutran",
    help="layoutran: layout-faithful document translation",
    add_completion=False
)

console = Console()


def _preview(text: str, width: int = 60) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= width else text[:width - 1] + "…"


@app.command()
def translate(
    input_file: Path = typer.Argument(..., help="Input PDF or DOCX file"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Output file path"),
    target_lang: Optional[str] = typer.Option(None, "-t", "--target", help="Target language"),
    output_format: Optional[str] = typer.Option(None, "-f", "--format", help="Output format (pdf/docx/json)"),
    backend: Optional[str] = typer.Option(None, "-b", "--backend", help="Translation backend (free/libre)"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML configuration file"),
    ocr: Optional[bool] = typer.Option(None, "--ocr/--no-ocr", help="OCR pages without a text layer"),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level"),
):
    """Translate a document and regenerate it with the same layout."""
    setup_logger(log_level)

    if not input_file.exists():
        console.print(f"[red]Error: Input file not found: {input_file}[/red]")
        raise typer.Exit(1)

    try:
        config = load_pipeline_config(config_path)
    except (FileNotFoundError, LayoutranError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if target_lang:
        config.target_lang = target_lang
        config.extraction.target_language = target_lang
    if output_format:
        config.output_format = output_format.lower()
    if backend:
        config.translation.backend = backend
    if ocr is not None:
        config.enable_ocr = ocr

    if output is None:
        output = input_file.with_name(f"{input_file.stem}_{config.target_lang}.{config.output_format}")

    console.print(f"[bold blue]layoutran {__version__}[/bold blue]")
    console.print(f"Input: {input_file}")
    console.print(f"Output: {output}")
    console.print(f"Target: {config.target_lang} ({config.output_format})")
    console.print(f"Backend: {config.translation.backend}\n")

    async def _run():
        async with DocumentPipeline(config) as pipeline:
            with Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                TimeElapsedColumn(),
                console=console,
                transient=False
            ) as progress:
                task = progress.add_task("[cyan]Translating...", total=None)
                result = await pipeline.run_file(input_file, output,
                                                 config.target_lang, config.output_format)
                progress.update(task, description="[green]✓ Done")
            return result

    try:
        result = asyncio.run(_run())
    except LayoutranError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        if e.suggestion:
            console.print(f"[dim]{e.suggestion}[/dim]")
        raise typer.Exit(1)

    stats = result.stats
    summary = Table(title="Run Summary", show_header=True, header_style="bold cyan")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", justify="right", style="green")
    summary.add_row("Text blocks", str(len(result.layout.text_blocks)))
    summary.add_row("Tables", str(len(result.layout.tables)))
    summary.add_row("Images", str(len(result.layout.image_blocks)))
    summary.add_row("Translated", str(stats.get("translated", 0)))
    summary.add_row("Degraded", str(stats.get("degraded", 0)))
    summary.add_row("Provider calls", str(stats.get("provider_calls", 0)))
    summary.add_row("Cache hits", str(stats.get("cache_hits", 0)))
    summary.add_row("Retries", str(stats.get("retries", 0)))
    summary.add_row("Time", f"{result.duration:.2f}s")
    console.print(summary)

    if result.failed_blocks:
        console.print(f"[yellow]{result.failed_blocks} items kept their original text[/yellow]")
    console.print(f"\n[bold green]Translation Complete![/bold green]\nOutput: {output}")


@app.command()
def inspect(
    input_file: Path = typer.Argument(..., help="PDF or DOCX file to analyze"),
    as_json: bool = typer.Option(False, "--json", help="Print the layout as JSON"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML configuration file"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
):
    """Extract a document's layout and show its blocks."""
    setup_logger(log_level)

    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)

    async def _extract():
        async with DocumentPipeline(load_pipeline_config(config_path)) as pipeline:
            return await pipeline.extract(input_file.read_bytes(), input_file.suffix)

    try:
        layout = asyncio.run(_extract())
    except (FileNotFoundError, LayoutranError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if as_json:
        console.print_json(layout.to_json())
        return

    console.print(f"\n[bold]Layout of {input_file.name}[/bold]")
    console.print(f"Pages: {layout.page_count}  Size: {layout.page_size.width:.0f}x"
                  f"{layout.page_size.height:.0f}  Orientation: {layout.orientation}")
    m = layout.margins
    console.print(f"Margins: top {m.top:.0f}, right {m.right:.0f}, bottom {m.bottom:.0f}, "
                  f"left {m.left:.0f}  Columns: {len(layout.columns)}\n")

    blocks_table = Table(show_header=True, header_style="bold cyan")
    blocks_table.add_column("ID", style="cyan")
    blocks_table.add_column("Page", justify="right")
    blocks_table.add_column("Type")
    blocks_table.add_column("Lang")
    blocks_table.add_column("Dir")
    blocks_table.add_column("Content", style="dim")

    for block in layout.blocks:
        if isinstance(block, TextBlock):
            blocks_table.add_row(block.id, str(block.page_index), block.kind.value,
                                 block.language or "-", block.direction.value, _preview(block.text))
        elif isinstance(block, TableBlock):
            rows, cols = block.shape
            blocks_table.add_row(block.id, str(block.page_index), "table", "-",
                                 block.style.direction.value, f"{rows}x{cols} grid")
        elif isinstance(block, ImageBlock):
            blocks_table.add_row(block.id, str(block.page_index), "image", "-", "-",
                                 f"{len(block.image_data)} bytes")
    console.print(blocks_table)


@app.command()
def backends():
    """List available translation backends."""
    console.print("\n[bold]Available Translation Backends[/bold]\n")
    for name in sorted(BACKENDS):
        try:
            backend = create_backend(name)
            available = backend.is_available()
            status = "✓ Available" if available else "✗ Not configured"
            color = "green" if available else "yellow"
            console.print(f"[{color}]{status}[/{color}] {name}")
        except LayoutranError as e:
            console.print(f"[red]✗ Error[/red] {name}: {e.message}")


def cli():
    """Main CLI entry point."""
    if len(sys.argv) == 1:
        console.print(f"[bold blue]layoutran {__version__}[/bold blue]")
        console.print("[dim]Type 'layoutran --help' for usage information[/dim]\n")
        return

    app()


if __name__ == "__main__":
    cli()
