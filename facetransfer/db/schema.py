"""Tables the transfer reads and writes, and a pre-flight check for them.

Neither store is created or migrated here: the catalog and the library are
owned by their applications.  The check only makes sure a run does not fail
half-way because a table is missing.
"""
from __future__ import annotations

import sqlite3

from facetransfer.exceptions import SchemaError

CATALOG_TABLES = (
    "Adobe_images",
    "AgLibraryFile",
    "AgLibraryFolder",
    "AgLibraryRootFolder",
    "AgLibraryKeyword",
    "AgLibraryKeywordImage",
    "AgLibraryKeywordPopularity",
    "AgLibraryKeywordCooccurrence",
    "AgLibraryKeywordSynonym",
    "AgLibraryKeywordFace",
    "AgLibraryFace",
    "AgLibraryFaceCluster",
    "AgLibraryFaceData",
    "Adobe_libraryImageFaceProcessHistory",
    "AgLibraryFolderStack",
    "AgLibraryFolderStackData",
    "AgLibraryFolderStackImage",
    "AgHarvestedExifMetadata",
    "Adobe_AdditionalMetadata",
    "Adobe_variablesTable",
)

LIBRARY_TABLES = ("RKMaster", "RKVersion", "RKKeyword", "RKKeywordForVersion")

FACES_TABLES = ("RKDetectedFace", "RKFaceName")


def missing_tables(conn: sqlite3.Connection, required: tuple[str, ...]) -> list[str]:
    """Return the names in *required* that are not tables of *conn*."""
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    present = {r[0] for r in rows}
    return [name for name in required if name not in present]


def check_tables(conn: sqlite3.Connection, required: tuple[str, ...], store: str) -> None:
    """Raise SchemaError if *conn* lacks any of the *required* tables."""
    missing = missing_tables(conn, required)
    if missing:
        raise SchemaError(store, missing)
