"""Main CLI entry point using Typer."""
from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from facetransfer.exceptions import FaceTransferError

app = typer.Typer(
    name="facetransfer",
    help="Transfer faces, keywords, stacks and GPS from an Aperture library into a Lightroom catalog.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


@app.command()
def transfer(
    catalog: Optional[Path] = typer.Argument(
        None,
        help="Lightroom catalog (.lrcat). Defaults to FACETRANSFER_CATALOG.",
    ),
    library: Optional[Path] = typer.Argument(
        None,
        help="Aperture library bundle (.aplibrary). Defaults to FACETRANSFER_LIBRARY.",
    ),
    faces_root: Optional[str] = typer.Option(
        None,
        "--faces-root",
        help="Name of the keyword holding all persons (default: 'Faces from Aperture'). "
             "Overrides FACETRANSFER_FACES_ROOT env var.",
    ),
    tags_root: Optional[str] = typer.Option(
        None,
        "--tags-root",
        help="Name of the keyword holding all other keywords (default: 'Tags from Aperture'). "
             "An empty name puts keywords at the top level. Overrides FACETRANSFER_TAGS_ROOT env var.",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Run everything, then roll the catalog back"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Replace the catalog's faces, keywords and stacks with the library's, and copy GPS positions.

    [bold]Close Lightroom and back up the catalog first.[/bold]
    """
    from dotenv import load_dotenv
    load_dotenv()

    from facetransfer.db.connection import get_catalog_path, get_library_path
    from facetransfer.pipeline.session import DEFAULT_FACES_ROOT, DEFAULT_TAGS_ROOT, TransferOptions
    from facetransfer.pipeline.transfer import run_transfer

    options = TransferOptions(
        faces_root=faces_root if faces_root is not None else os.getenv("FACETRANSFER_FACES_ROOT", DEFAULT_FACES_ROOT),
        tags_root=tags_root if tags_root is not None else os.getenv("FACETRANSFER_TAGS_ROOT", DEFAULT_TAGS_ROOT),
        dry_run=dry_run,
        verbose=verbose,
    )
    if not options.faces_root:
        console.print("[red]The faces root keyword needs a name.[/red]")
        raise typer.Exit(1)

    catalog_path = catalog or get_catalog_path()
    library_path = library or get_library_path()
    console.print(f"[bold]Catalog:[/bold] {catalog_path}")
    console.print(f"[bold]Library:[/bold] {library_path}")

    try:
        run_transfer(catalog_path, library_path, options)
    except (FaceTransferError, sqlite3.Error) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        console.print("[red]Transfer aborted, catalog left unchanged.[/red]")
        raise typer.Exit(1)

    if not dry_run:
        console.print("[green]Looks good.[/green]")


@app.command()
def resolve(
    file_name: str = typer.Argument(..., help="Original file name of the catalog image."),
    modified: int = typer.Argument(..., help="File modification date (seconds since 2001-01-01)."),
    library: Optional[Path] = typer.Option(
        None,
        "--library",
        "-l",
        help="Aperture library bundle. Defaults to FACETRANSFER_LIBRARY.",
    ),
    copy_name: str = typer.Option("", "--copy-name", help="Catalog copy name, e.g. VERSION-2"),
) -> None:
    """Show which library master and version a catalog image would be matched to."""
    from dotenv import load_dotenv
    load_dotenv()

    from facetransfer.db.connection import get_library_path, library_store_paths, open_readonly
    from facetransfer.readers.library import LibraryReader
    from facetransfer.readers.resolver import IdentityResolver

    library_db, faces_db = library_store_paths(library or get_library_path())
    lib_conn = faces_conn = None
    try:
        lib_conn = open_readonly(library_db)
        faces_conn = open_readonly(faces_db)
        resolver = IdentityResolver(LibraryReader(lib_conn, faces_conn))
        master_uuid = resolver.resolve_master(file_name, modified)
        if master_uuid is None:
            raise typer.Exit(1)
        version = resolver.select_version(master_uuid, copy_name)
        faces = resolver.reader.faces_for_master(master_uuid)
        keywords = resolver.reader.keywords_for_version(version.version_id) if version else []
    except (FaceTransferError, sqlite3.Error) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)
    finally:
        for conn in (lib_conn, faces_conn):
            if conn is not None:
                conn.close()

    table = Table(title=f"Match: {file_name}", show_header=True, header_style="bold cyan")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Master", master_uuid)
    if version is not None:
        table.add_row("Version", str(version.version_number))
        table.add_row("Stack", version.stack_uuid or "[dim]—[/dim]")
        gps = f"{version.latitude}, {version.longitude}" if version.has_gps else "[dim]—[/dim]"
        table.add_row("GPS", gps)
        table.add_row("Keywords", ", ".join(keywords) or "[dim]—[/dim]")
    else:
        table.add_row("Version", "[yellow]none[/yellow]")
    table.add_row("Faces", ", ".join(f.name or "[Unnamed]" for f in faces) or "[dim]—[/dim]")
    console.print(table)
