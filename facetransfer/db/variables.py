"""Access to the catalog's key/value configuration table (``Adobe_variablesTable``)."""
from __future__ import annotations

import sqlite3
import uuid
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from facetransfer.db.ids import IdAllocator

# Names of the configuration cells the transfer uses
ENTITY_ID_COUNTER = "Adobe_entityIDCounter"
KEYWORD_ROOT_ID = "AgLibraryKeyword_rootTagID"
NEW_PERSON_KEYWORD_PARENT = "AgLibraryKeywords_newPersonKeywordParent"
NEW_KEYWORD_PARENT = "AgLibraryKeywords_newKeywordParent"
POPULARITY_INCREMENT = "LibraryKeywordSuggestions_popularityIncrement"


def new_global_id() -> str:
    """A fresh ``id_global`` value (upper-case UUID, as the catalog writes them)."""
    return str(uuid.uuid4()).upper()


def as_int(value: Any) -> int | None:
    """Coerce a configuration value to int; values are stored as text or numbers."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None


def as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class VariablesTable:
    """Read and write named cells of ``Adobe_variablesTable``."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def get(self, name: str) -> Any:
        """Return the raw value of *name*, or None if the cell does not exist."""
        row = self.conn.execute(
            "SELECT value FROM Adobe_variablesTable WHERE name = ?", [name]
        ).fetchone()
        return row["value"] if row else None

    def exists(self, name: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM Adobe_variablesTable WHERE name = ?", [name]
        ).fetchone()
        return row is not None

    def update(self, name: str, value: Any) -> int:
        """Set *name* to *value*.  Returns the number of rows changed."""
        cur = self.conn.execute(
            "UPDATE Adobe_variablesTable SET value = ? WHERE name = ?", [value, name]
        )
        return cur.rowcount

    def upsert(self, name: str, value: Any, ids: IdAllocator) -> None:
        """Update *name* if present, else insert it with a newly allocated id."""
        if self.exists(name):
            self.update(name, value)
            return
        self.conn.execute(
            """INSERT INTO Adobe_variablesTable (id_local, id_global, name, type, value)
               VALUES (?, ?, ?, NULL, ?)""",
            [ids.next_id(), new_global_id(), name, value],
        )
