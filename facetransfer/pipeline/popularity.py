"""Keyword assignment, popularity and co-occurrence bookkeeping.

Whenever a keyword is applied, its popularity grows by the catalog-wide
increment ``LibraryKeywordSuggestions_popularityIncrement``, and the increment
itself grows by 10%.  Keywords applied later therefore gain more per use,
which ranks recently used keywords first in the catalog's suggestions.

The co-occurrence table counts, for every ordered pair of distinct keywords,
the images carrying both.  It is not patched as links are written: it is
deleted and regenerated once every link of the run exists.
"""
from __future__ import annotations

import sqlite3
from itertools import combinations

from facetransfer.db.ids import IdAllocator
from facetransfer.db.variables import POPULARITY_INCREMENT, VariablesTable, as_float

POPULARITY_GROWTH = 1.1
_DEFAULT_INCREMENT = 1.0


class KeywordUsage:
    """Writes keyword↔image links and keeps popularity/co-occurrence in step."""

    def __init__(self, conn: sqlite3.Connection, ids: IdAllocator) -> None:
        self.conn = conn
        self.ids = ids
        self.variables = VariablesTable(conn)

    # ── links ──────────────────────────────────────────────────────────────

    def is_linked(self, image_id: int, keyword_id: int) -> bool:
        row = self.conn.execute(
            "SELECT count(*) AS cnt FROM AgLibraryKeywordImage WHERE image = ? AND tag = ?",
            [image_id, keyword_id],
        ).fetchone()
        return row["cnt"] > 0

    def link(self, image_id: int, keyword_id: int) -> bool:
        """Assign *keyword_id* to *image_id* once.

        Returns True if a link was created (and popularity incremented), False
        if the image already carried the keyword.
        """
        if self.is_linked(image_id, keyword_id):
            return False
        self.conn.execute(
            "INSERT INTO AgLibraryKeywordImage (id_local, image, tag) VALUES (?, ?, ?)",
            [self.ids.next_id(), image_id, keyword_id],
        )
        self.increment_popularity(keyword_id)
        return True

    # ── popularity ─────────────────────────────────────────────────────────

    def popularity_increment(self) -> float:
        """Current catalog-wide increment; initialized to 1.0 if the cell is missing."""
        value = as_float(self.variables.get(POPULARITY_INCREMENT))
        if value is None:
            self.variables.upsert(POPULARITY_INCREMENT, _DEFAULT_INCREMENT, self.ids)
            return _DEFAULT_INCREMENT
        return value

    def increment_popularity(self, keyword_id: int) -> float:
        """Record one use of *keyword_id*.  Returns its new popularity."""
        step = self.popularity_increment()
        self.variables.update(POPULARITY_INCREMENT, step * POPULARITY_GROWTH)

        row = self.conn.execute(
            """SELECT id_local, occurrences, popularity
               FROM AgLibraryKeywordPopularity
               WHERE tag = ?""",
            [keyword_id],
        ).fetchone()
        if row is None:
            row_id, occurrences, popularity = self.ids.next_id(), 0, 0.0
        else:
            row_id = row["id_local"]
            occurrences = int(row["occurrences"] or 0)
            popularity = float(row["popularity"] or 0.0)

        occurrences += 1
        popularity += step
        self.conn.execute(
            """INSERT OR REPLACE INTO AgLibraryKeywordPopularity
                   (id_local, occurrences, popularity, tag)
               VALUES (?, ?, ?, ?)""",
            [row_id, occurrences, popularity, keyword_id],
        )
        return popularity

    # ── co-occurrence ─────────────────────────────────────────────────────

    def _bump_cooccurrence(self, tag1: int, tag2: int) -> None:
        row = self.conn.execute(
            """SELECT id_local, value
               FROM AgLibraryKeywordCooccurrence
               WHERE tag1 = ?
                 AND tag2 = ?""",
            [tag1, tag2],
        ).fetchone()
        if row is not None:
            self.conn.execute(
                "UPDATE AgLibraryKeywordCooccurrence SET value = ? WHERE id_local = ?",
                [int(row["value"] or 0) + 1, row["id_local"]],
            )
            return
        self.conn.execute(
            """INSERT INTO AgLibraryKeywordCooccurrence (id_local, tag1, tag2, value)
               VALUES (?, ?, ?, 1)""",
            [self.ids.next_id(), tag1, tag2],
        )

    def rebuild_cooccurrences(self) -> int:
        """Regenerate the whole co-occurrence table.  Returns images considered."""
        self.conn.execute("DELETE FROM AgLibraryKeywordCooccurrence")
        images = self.conn.execute(
            """SELECT image
               FROM AgLibraryKeywordImage
               GROUP BY image
               HAVING COUNT(image) > 1
               ORDER BY image"""
        ).fetchall()
        for img in images:
            rows = self.conn.execute(
                """SELECT tag
                   FROM AgLibraryKeywordImage
                   WHERE image = ?
                   GROUP BY tag
                   ORDER BY MIN(id_local)""",
                [img["image"]],
            ).fetchall()
            tags = [r["tag"] for r in rows]
            for tag1, tag2 in combinations(tags, 2):
                self._bump_cooccurrence(tag1, tag2)
                self._bump_cooccurrence(tag2, tag1)
        return len(images)
