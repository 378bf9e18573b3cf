"""Database layer for facetransfer — catalog and library connections, id allocation."""
from __future__ import annotations

from facetransfer.db.connection import open_catalog, open_readonly, library_store_paths
from facetransfer.db.ids import IdAllocator

__all__ = ["open_catalog", "open_readonly", "library_store_paths", "IdAllocator"]
