"""Entity id allocation.

The catalog does not use SQLite rowids: every row in every table takes its
``id_local`` from one central counter, ``Adobe_entityIDCounter``.  The
transfer is the only writer while it runs, so the counter needs no locking.
A multi-writer version would need a lock around ``next_id`` or block-wise
allocation.
"""
from __future__ import annotations

import sqlite3

from facetransfer.db.variables import ENTITY_ID_COUNTER, VariablesTable, as_int
from facetransfer.exceptions import IdAllocationError


class IdAllocator:
    """Hands out ``id_local`` values from the catalog's persisted counter."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.variables = VariablesTable(conn)
        self.allocated = 0

    def next_id(self) -> int:
        """Return the current counter value and persist counter + 1."""
        try:
            current = as_int(self.variables.get(ENTITY_ID_COUNTER))
            if current is None or current < 0:
                raise IdAllocationError(f"{ENTITY_ID_COUNTER} is missing or invalid")
            if self.variables.update(ENTITY_ID_COUNTER, current + 1) != 1:
                raise IdAllocationError(f"Could not advance {ENTITY_ID_COUNTER}")
        except sqlite3.Error as exc:
            raise IdAllocationError(f"Failed to get next id_local: {exc}") from exc
        self.allocated += 1
        return current
