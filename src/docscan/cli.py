"""docscan CLI."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from docscan.config import PAGE_SIZES, settings
from docscan.errors import DocScanError
from docscan.models import ImageFile, ImageZone, InMemoryImage, TextZone
from docscan.pipeline import DocumentPipeline, DocumentRenderer
from docscan.storage import load_document, save_document

app = typer.Typer(
    name="docscan",
    help="Reconstruct photographed document pages as PDF",
    add_completion=False,
)
console = Console()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def make_renderer(page_size: str) -> DocumentRenderer:
    key = page_size.lower()
    if key not in PAGE_SIZES:
        raise typer.BadParameter(
            f"Unknown page size '{page_size}', expected one of: {', '.join(PAGE_SIZES)}",
            param_hint="--page-size",
        )
    width, height = PAGE_SIZES[key]
    return DocumentRenderer(page_width=width, page_height=height)


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, help="Logging level"),
) -> None:
    """Reconstruct photographed document pages as PDF."""
    setup_logging(log_level)


@app.command()
def scan(
    image_path: str = typer.Argument(..., help="Path to the page photograph"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output PDF path"),
    model_dir: Optional[str] = typer.Option(
        None, "--model-dir", help="Also save the document model to this directory"
    ),
    page_size: str = typer.Option(settings.page_size, help="Output page size (a4, letter)"),
    no_perspective: bool = typer.Option(
        False, "--no-perspective", help="Skip page outline detection"
    ),
) -> None:
    """Reconstruct a single page photograph."""
    source = Path(image_path)
    output_path = Path(output) if output else source.with_suffix(".pdf")
    renderer = make_renderer(page_size)

    console.print(f"[bold blue]Scanning:[/bold blue] {source}")
    pipeline = DocumentPipeline(
        renderer=renderer,
        correct_perspective=False if no_perspective else None,
    )
    try:
        result = pipeline.process(source, output_path)
        if model_dir:
            model_path = save_document(result.document, model_dir)
            console.print(f"[dim]Document model: {model_path}[/dim]")
    except DocScanError as e:
        console.print(f"[bold red]Failed:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1)

    document = result.document
    console.print(
        f"[green]Wrote {result.output_path}[/green] "
        f"({len(document.text_zones)} text zones, {len(document.image_zones)} images)"
    )


@app.command()
def render(
    model_path: str = typer.Argument(..., help="Saved document.json or its directory"),
    output: str = typer.Option(..., "--output", "-o", help="Output PDF path"),
    page_size: str = typer.Option(settings.page_size, help="Output page size (a4, letter)"),
) -> None:
    """Render a saved document model to PDF."""
    renderer = make_renderer(page_size)
    try:
        document = load_document(model_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]{escape(str(e))}[/bold red]")
        raise typer.Exit(code=1)

    written = renderer.render(document, Path(output))
    console.print(f"[green]Wrote {written}[/green]")


@app.command()
def inspect(
    model_path: str = typer.Argument(..., help="Saved document.json or its directory"),
) -> None:
    """Show the elements of a saved document model."""
    try:
        document = load_document(model_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]{escape(str(e))}[/bold red]")
        raise typer.Exit(code=1)

    table = Table(title=f"{document.image_width}x{document.image_height} page")
    table.add_column("#", justify="right")
    table.add_column("Kind")
    table.add_column("Rect (x, y, w, h)")
    table.add_column("Content")

    for index, element in enumerate(document.elements):
        if isinstance(element, TextZone):
            content = element.text.replace("\n", " / ")
            if len(content) > 60:
                content = content[:57] + "..."
            kind = "text (inverted)" if element.is_inverted else "text"
        elif isinstance(element, ImageZone):
            kind = "image"
            if isinstance(element.payload, ImageFile):
                content = element.payload.path
            elif isinstance(element.payload, InMemoryImage):
                content = "%dx%d pixels" % element.payload.size
            else:
                content = "[yellow]missing payload[/yellow]"
        table.add_row(str(index), kind, str(element.rect.to_tuple()), content)

    console.print(table)


if __name__ == "__main__":
    app()
