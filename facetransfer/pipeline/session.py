"""State of one transfer run.

Everything that changes while a run progresses (the id counter handle, the
memoized keyword roots, the run-wide keyword cache, statistics) hangs off a
``TransferSession`` that is passed to every pass, so two sessions never share
state.
"""
from __future__ import annotations

import dataclasses
import sqlite3

from facetransfer.db.ids import IdAllocator
from facetransfer.models import TransferStats
from facetransfer.pipeline.keywords import KeywordTree
from facetransfer.pipeline.popularity import KeywordUsage
from facetransfer.readers.library import LibraryReader
from facetransfer.readers.resolver import IdentityResolver

DEFAULT_FACES_ROOT = "Faces from Aperture"
DEFAULT_TAGS_ROOT = "Tags from Aperture"


@dataclasses.dataclass
class TransferOptions:
    faces_root: str = DEFAULT_FACES_ROOT
    tags_root: str = DEFAULT_TAGS_ROOT
    dry_run: bool = False
    verbose: bool = False


class TransferSession:
    """Connections, allocator, keyword tree and statistics of one run."""

    def __init__(
        self,
        catalog: sqlite3.Connection,
        reader: LibraryReader,
        options: TransferOptions | None = None,
    ) -> None:
        self.catalog = catalog
        self.reader = reader
        self.options = options or TransferOptions()
        self.ids = IdAllocator(catalog)
        self.keywords = KeywordTree(catalog, self.ids)
        self.usage = KeywordUsage(catalog, self.ids)
        self.resolver = IdentityResolver(reader, verbose=self.options.verbose)
        self.stats = TransferStats()
        # Composed keyword name → id of the free keyword created for it this run
        self.tag_cache: dict[str, int] = {}
        # Catalog image id → free keyword names of its source version
        self.keywords_by_image: dict[int, list[str]] = {}
        # Source stack UUID → catalog image ids, in first-seen order
        self.stacks: dict[str, list[int]] = {}

    @property
    def verbose(self) -> bool:
        return self.options.verbose
