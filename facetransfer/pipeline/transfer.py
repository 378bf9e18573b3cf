"""Transfer — one pass over every catalog image, inside one catalog transaction.

Run order
---------
1. Pre-flight: every table the run touches must exist in its store.
2. Prepare the catalog: drop the keyword tree with everything derived from
   it, recreate the keyword roots, drop all stacks.
3. Per image: resolve the library master and version once, then transfer
   faces, collect keywords and stack membership, and write GPS.
4. Rebuild stacks and free keywords from what was collected, compose keyword
   names, regenerate the co-occurrence table.
5. Print statistics and commit.

Failures of a single face, link or GPS write are rolled back to their own
savepoint, reported and counted; anything else aborts the run and rolls the
whole catalog back.  ``dry_run`` rolls back even a successful run.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
from rich.table import Table

from facetransfer.db.connection import (
    catalog_transaction,
    library_store_paths,
    open_catalog,
    open_readonly,
)
from facetransfer.db.schema import CATALOG_TABLES, FACES_TABLES, LIBRARY_TABLES, check_tables
from facetransfer.models import CatalogImage, TransferStats
from facetransfer.pipeline.passes.faces import run_faces
from facetransfer.pipeline.passes.gps import transfer_gps
from facetransfer.pipeline.passes.keywords import collect_keywords, recreate_keywords
from facetransfer.pipeline.passes.stacks import collect_stack, create_stacks, remove_all_stacks
from facetransfer.pipeline.session import TransferOptions, TransferSession
from facetransfer.readers.library import LibraryReader

console = Console()


def load_images(conn: sqlite3.Connection) -> list[CatalogImage]:
    """Every catalog image that has a file record, in id order."""
    rows = conn.execute(
        """SELECT I.id_local, I.orientation, I.copyName,
                  F.originalFilename, F.externalModTime
           FROM Adobe_images I, AgLibraryFile F, AgLibraryFolder O, AgLibraryRootFolder R
           WHERE I.rootFile = F.id_local
             AND F.folder = O.id_local
             AND O.rootFolder = R.id_local
           ORDER BY I.id_local"""
    ).fetchall()
    return [
        CatalogImage(
            image_id=r["id_local"],
            file_name=r["originalFilename"] or "",
            modified=int(r["externalModTime"] or 0),
            orientation_code=r["orientation"] or "",
            copy_name=r["copyName"] or "",
        )
        for r in rows
    ]


def _section(title: str) -> None:
    console.print(f"\n[bold cyan]{title}[/bold cyan]")


def print_stats(stats: TransferStats, verbose: bool = False) -> None:
    table = Table(title="Statistics", show_header=True, header_style="bold cyan")
    table.add_column("Item", style="bold")
    table.add_column("Count", justify="right")
    labels = {
        "images": "Images analysed",
        "images_without_faces": "Images without faces",
        "inserted_faces": "Inserted faces",
        "people": "People",
        "unknown_faces": "Unknown faces",
        "keywords_created": "Keywords created",
        "keyword_links": "Keyword links",
        "stacks_created": "Stacks created",
        "gps_updated": "GPS updated",
        "failures": "Failures",
    }
    for key, value in stats.to_dict().items():
        style = "red" if key == "failures" and value else None
        table.add_row(labels[key], str(value), style=style)
    console.print(table)

    if verbose and stats.people:
        people = Table(title="Faces per person", show_header=True, header_style="bold cyan")
        people.add_column("Name", style="bold")
        people.add_column("Faces", justify="right")
        for name, count in sorted(stats.people.items()):
            people.add_row(name, str(count))
        console.print(people)


def prepare_catalog(session: TransferSession) -> None:
    """Drop keywords and stacks, then recreate the keyword roots."""
    keywords = session.keywords
    keywords.remove_all_keywords()
    keywords.ensure_roots(session.options.faces_root, session.options.tags_root)
    remove_all_stacks(session)


def process_image(session: TransferSession, image: CatalogImage) -> None:
    """Run every per-image pass for *image*."""
    session.stats.images += 1
    match = session.resolver.match(image)
    if not match.found:
        session.stats.images_without_faces += 1
        return
    run_faces(session, image, match.master_uuid)
    if match.version is None:
        return
    collect_keywords(session, image, match.version)
    collect_stack(session, image, match.version)
    transfer_gps(session, image, match.version)


def transfer_images(session: TransferSession, images: list[CatalogImage]) -> None:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("({task.completed}/{task.total})"),
        console=console,
        disable=session.verbose,
    ) as progress:
        task = progress.add_task("Images", total=len(images))
        for image in images:
            process_image(session, image)
            progress.advance(task)


def finish_catalog(session: TransferSession) -> None:
    """Run-level rebuilds that need the data of every image."""
    _section("Creating stacks")
    created = create_stacks(session)
    console.print(f"  {created} stack(s)")

    _section("Recreating keywords")
    links = recreate_keywords(session)
    console.print(f"  {len(session.tag_cache)} keyword(s), {links} link(s)")
    session.keywords.mark_person_children()
    session.keywords.normalize_names()

    _section("Rebuilding keyword co-occurrences")
    images = session.usage.rebuild_cooccurrences()
    console.print(f"  {images} image(s) with more than one keyword")


def run(
    catalog: sqlite3.Connection,
    library: sqlite3.Connection,
    faces: sqlite3.Connection,
    options: TransferOptions | None = None,
) -> TransferStats:
    """Transfer into an open catalog.  Commits unless ``options.dry_run``.

    Raises on fatal errors after rolling the catalog back.
    """
    options = options or TransferOptions()
    check_tables(catalog, CATALOG_TABLES, "catalog")
    check_tables(library, LIBRARY_TABLES, "library store")
    check_tables(faces, FACES_TABLES, "faces store")

    session = TransferSession(catalog, LibraryReader(library, faces), options)
    with catalog_transaction(catalog, commit=not options.dry_run):
        _section("Preparing catalog")
        prepare_catalog(session)

        images = load_images(catalog)
        _section("Transferring face information")
        console.print(f"  {len(images)} image(s) in catalog")
        transfer_images(session, images)

        finish_catalog(session)

        _section("Statistics")
        print_stats(session.stats, verbose=options.verbose)

    if options.dry_run:
        console.print("[yellow]Dry run: catalog rolled back.[/yellow]")
    else:
        console.print("[green]Done.[/green]")
    return session.stats


def run_transfer(
    catalog_path: Path,
    library_path: Path,
    options: TransferOptions | None = None,
) -> TransferStats:
    """Open the catalog and the library bundle at the given paths and transfer."""
    library_db, faces_db = library_store_paths(library_path)
    catalog = open_catalog(catalog_path)
    library = faces = None
    try:
        library = open_readonly(library_db)
        faces = open_readonly(faces_db)
        return run(catalog, library, faces, options)
    finally:
        for conn in (faces, library, catalog):
            if conn is not None:
                conn.close()
