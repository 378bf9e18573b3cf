"""Keyword tree of the catalog.

Every keyword row carries a ``genealogy`` string describing its position in
the tree: the parent's genealogy followed by ``/<digits><id>``, where
``<digits>`` is the number of decimal digits of the id.  A keyword with id
42 under a parent with genealogy ``/1R`` therefore has genealogy
``/1R/242``.  The genealogy depends on the id, so a keyword is written in two
steps: insert, then set the genealogy.
"""
from __future__ import annotations

import sqlite3

from facetransfer.db.ids import IdAllocator
from facetransfer.db.variables import (
    KEYWORD_ROOT_ID,
    NEW_KEYWORD_PARENT,
    NEW_PERSON_KEYWORD_PARENT,
    VariablesTable,
    as_int,
    new_global_id,
)
from facetransfer.exceptions import StoreError
from facetransfer.models import KeywordType
from facetransfer.readers.library import nfc

# Seconds since 2001-01-01 UTC, the catalog's timestamp convention
COCOA_NOW_SQL = "(julianday('now') - 2440587.5)*86400.0 - strftime('%s','2001-01-01 00:00:00')"

# Tables emptied before the keyword tree is rebuilt
KEYWORD_TABLES = (
    "AgLibraryKeyword",
    "AgLibraryKeywordCooccurrence",
    "AgLibraryKeywordFace",
    "AgLibraryKeywordImage",
    "AgLibraryKeywordPopularity",
    "AgLibraryKeywordSynonym",
)


def genealogy_segment(keyword_id: int) -> str:
    """``/<digit count><id>``, e.g. 42 → ``/242``."""
    digits = str(keyword_id)
    return f"/{len(digits)}{digits}"


class KeywordTree:
    """Create and look up catalog keywords; owns the memoized root ids of a run."""

    def __init__(self, conn: sqlite3.Connection, ids: IdAllocator) -> None:
        self.conn = conn
        self.ids = ids
        self.variables = VariablesTable(conn)
        self.global_root_id: int | None = None
        self.person_root_id: int | None = None
        self.tag_root_id: int | None = None
        self._genealogy_cache: dict[int, str] = {}

    # ── lookup ─────────────────────────────────────────────────────────────

    def genealogy(self, keyword_id: int) -> str:
        if keyword_id not in self._genealogy_cache:
            row = self.conn.execute(
                "SELECT genealogy FROM AgLibraryKeyword WHERE id_local = ?", [keyword_id]
            ).fetchone()
            if row is None:
                raise StoreError(f"Keyword {keyword_id} does not exist")
            self._genealogy_cache[keyword_id] = row["genealogy"] or ""
        return self._genealogy_cache[keyword_id]

    def find_person_keyword(self, name: str) -> int | None:
        """Id of the person keyword *name* below the person root, or None."""
        if self.person_root_id is None:
            raise StoreError("Keyword roots have not been created")
        row = self.conn.execute(
            """SELECT id_local
               FROM AgLibraryKeyword
               WHERE genealogy LIKE ?
                 AND name IS ?
                 AND keywordType = 'person'""",
            [self.genealogy(self.person_root_id) + "%", name],
        ).fetchone()
        return row["id_local"] if row else None

    @property
    def tag_parent_id(self) -> int:
        """Parent of free keywords: the tag root, or the global root without one."""
        parent = self.tag_root_id if self.tag_root_id is not None else self.global_root_id
        if parent is None:
            raise StoreError("Keyword roots have not been created")
        return parent

    # ── creation ───────────────────────────────────────────────────────────

    def create_keyword(
        self,
        name: str,
        parent_id: int,
        keyword_type: KeywordType = KeywordType.UNTYPED,
    ) -> int:
        """Insert keyword *name* below *parent_id* and return its id."""
        parent_genealogy = self.genealogy(parent_id)
        keyword_id = self.ids.next_id()
        self.conn.execute(
            f"""INSERT INTO AgLibraryKeyword
                    (id_local, id_global, dateCreated, imageCountCache, keywordType,
                     lastApplied, lc_name, name, parent)
                VALUES (?, ?, {COCOA_NOW_SQL}, NULL, ?, {COCOA_NOW_SQL}, ?, ?, ?)""",
            [keyword_id, new_global_id(), keyword_type.value, name.lower(), name, parent_id],
        )
        genealogy = parent_genealogy + genealogy_segment(keyword_id)
        self.conn.execute(
            "UPDATE AgLibraryKeyword SET genealogy = ? WHERE id_local = ?",
            [genealogy, keyword_id],
        )
        self._genealogy_cache[keyword_id] = genealogy
        return keyword_id

    def person_keyword(self, name: str) -> int:
        """Existing or newly created person keyword *name* below the person root."""
        root_id = self.person_root_id
        if root_id is None:
            raise StoreError("Keyword roots have not been created")
        existing = self.find_person_keyword(name)
        if existing is not None:
            return existing
        return self.create_keyword(name, root_id, KeywordType.PERSON)

    def ensure_roots(self, person_root_name: str, tag_root_name: str = "") -> None:
        """Recreate the global root and the person/tag roots below it.

        Must run after ``remove_all_keywords``: the global root keeps the id
        recorded in the catalog's configuration, so it cannot coexist with an
        old root row.
        """
        root_id = as_int(self.variables.get(KEYWORD_ROOT_ID))
        if root_id is None or root_id < 0:
            raise StoreError(f"{KEYWORD_ROOT_ID} is missing or invalid")

        self.conn.execute(
            f"""INSERT INTO AgLibraryKeyword
                    (id_local, id_global, dateCreated, imageCountCache, keywordType,
                     lastApplied, lc_name, name, parent)
                VALUES (?, ?, {COCOA_NOW_SQL}, NULL, NULL, NULL, NULL, NULL, NULL)""",
            [root_id, new_global_id()],
        )
        root_genealogy = genealogy_segment(root_id)
        self.conn.execute(
            "UPDATE AgLibraryKeyword SET genealogy = ? WHERE id_local = ?",
            [root_genealogy, root_id],
        )
        self._genealogy_cache = {root_id: root_genealogy}
        self.global_root_id = root_id

        self.person_root_id = self.create_keyword(person_root_name, root_id)
        self.variables.upsert(NEW_PERSON_KEYWORD_PARENT, self.person_root_id, self.ids)

        self.tag_root_id = None
        if tag_root_name:
            self.tag_root_id = self.create_keyword(tag_root_name, root_id)
            self.variables.upsert(NEW_KEYWORD_PARENT, self.tag_root_id, self.ids)

    def mark_person_children(self) -> int:
        """Retype untyped direct children of the person root as persons."""
        cur = self.conn.execute(
            """UPDATE AgLibraryKeyword
               SET keywordType = 'person'
               WHERE keywordType IS NULL
                 AND parent = ?""",
            [self.person_root_id],
        )
        return cur.rowcount

    # ── bulk maintenance ──────────────────────────────────────────────────

    def remove_all_keywords(self) -> None:
        for table in KEYWORD_TABLES:
            self.conn.execute(f"DELETE FROM {table}")
        self._genealogy_cache.clear()
        self.global_root_id = self.person_root_id = self.tag_root_id = None

    def normalize_names(self) -> int:
        """Rewrite every keyword name in composed Unicode form.  Returns rows changed."""
        rows = self.conn.execute(
            "SELECT id_local, lc_name, name FROM AgLibraryKeyword"
        ).fetchall()
        changed = 0
        for row in rows:
            lc_name = nfc(row["lc_name"]) if row["lc_name"] else None
            name = nfc(row["name"]) if row["name"] else None
            if lc_name == row["lc_name"] and name == row["name"]:
                continue
            self.conn.execute(
                "UPDATE AgLibraryKeyword SET lc_name = ?, name = ? WHERE id_local = ?",
                [lc_name, name, row["id_local"]],
            )
            changed += 1
        return changed
