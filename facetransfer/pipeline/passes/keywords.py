"""Keyword pass — free keywords of the source version, collected per image and rebuilt at the end."""
from __future__ import annotations

import sqlite3

from rich.console import Console

from facetransfer.db.connection import savepoint
from facetransfer.exceptions import FaceTransferError
from facetransfer.models import CatalogImage, SourceVersion
from facetransfer.pipeline.session import TransferSession
from facetransfer.readers.library import nfc

console = Console(stderr=True)


def collect_keywords(session: TransferSession, image: CatalogImage, version: SourceVersion) -> list[str]:
    """Remember the keyword names of *version* for *image*."""
    names = session.reader.keywords_for_version(version.version_id)
    session.keywords_by_image[image.image_id] = names
    return names


def recreate_keywords(session: TransferSession) -> int:
    """Create each collected keyword once and link it to its images.

    Names are compared in composed form, so "Jürgen" stored decomposed and
    composed becomes one keyword.  A failing keyword creation is fatal; a
    failing link is reported and skipped.  Returns the number of links made.
    """
    keywords = session.keywords
    linked = 0
    for image_id, names in session.keywords_by_image.items():
        for raw_name in names:
            name = nfc(raw_name)
            keyword_id = session.tag_cache.get(name)
            if keyword_id is None:
                keyword_id = keywords.create_keyword(name, keywords.tag_parent_id)
                session.tag_cache[name] = keyword_id
                session.stats.keywords_created += 1
                if session.verbose:
                    console.print(f"  [dim]Created keyword '{name}'[/dim]")
            try:
                with savepoint(session.catalog, "keyword_link"):
                    created = session.usage.link(image_id, keyword_id)
            except (sqlite3.Error, FaceTransferError) as exc:
                console.print(
                    f"[red]Error:[/red] Failed to connect image {image_id} with keyword '{name}': {exc}"
                )
                session.stats.failures += 1
                continue
            if created:
                linked += 1
    session.stats.keyword_links += linked
    return linked
