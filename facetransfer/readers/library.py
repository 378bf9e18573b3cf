"""Queries against the two read-only library stores (``Library.apdb`` and ``Faces.db``)."""
from __future__ import annotations

import sqlite3
import unicodedata
from typing import Any

from facetransfer.models import FaceRegion, Point, SourceVersion

# Upper bound for versionNumber when the copy name does not name a version
LATEST_VERSION = 2**63 - 1


def nfc(text: str) -> str:
    """Return *text* in composed Unicode form.

    The library stores names decomposed ("o" + COMBINING DIAERESIS); the catalog
    compares names byte-wise, so every name is composed before it is written.
    """
    return unicodedata.normalize("NFC", text)


class LibraryReader:
    """Read access to the library's main store and its faces store."""

    def __init__(self, library: sqlite3.Connection, faces: sqlite3.Connection) -> None:
        self.library = library
        self.faces = faces

    # ── masters ───────────────────────────────────────────────────────────

    def masters_by_name_and_date(self, file_name: str, modified: int) -> list[dict[str, Any]]:
        """Masters with this file name and modification date, non-missing first."""
        rows = self.library.execute(
            """SELECT uuid, isMissing
               FROM RKMaster
               WHERE fileName = ?
                 AND fileModificationDate = ?
               GROUP BY imagePath
               ORDER BY isMissing""",
            [file_name, modified],
        ).fetchall()
        return [dict(r) for r in rows]

    def masters_by_date(self, modified: int, limit: int = 2) -> list[str]:
        """UUIDs of masters with this modification date (at most *limit*)."""
        rows = self.library.execute(
            "SELECT uuid FROM RKMaster WHERE fileModificationDate = ? LIMIT ?",
            [modified, limit],
        ).fetchall()
        return [r["uuid"] for r in rows]

    # ── versions ──────────────────────────────────────────────────────────

    def latest_version_at_most(self, master_uuid: str, max_number: int) -> SourceVersion | None:
        """The version of *master_uuid* with the largest versionNumber <= *max_number*."""
        row = self.library.execute(
            """SELECT modelId, versionNumber, stackUuid, exifLatitude, exifLongitude
               FROM RKVersion
               WHERE masterUuid = ?
                 AND versionNumber <= ?
               ORDER BY versionNumber DESC
               LIMIT 1""",
            [master_uuid, max_number],
        ).fetchone()
        if row is None:
            return None
        return SourceVersion(
            version_id=row["modelId"],
            version_number=row["versionNumber"],
            stack_uuid=row["stackUuid"] or "",
            latitude=row["exifLatitude"],
            longitude=row["exifLongitude"],
        )

    def keywords_for_version(self, version_id: int) -> list[str]:
        """Names of the keywords assigned to a version, as stored (not normalized)."""
        rows = self.library.execute(
            """SELECT K.name
               FROM RKKeyword K, RKKeywordForVersion V
               WHERE K.modelId = V.keywordId
                 AND V.versionId = ?""",
            [version_id],
        ).fetchall()
        return [r["name"] for r in rows if r["name"]]

    # ── faces ─────────────────────────────────────────────────────────────

    def faces_for_master(self, master_uuid: str) -> list[FaceRegion]:
        """Non-rejected detected faces of a master, with their (composed) names."""
        rows = self.faces.execute(
            """SELECT bottomLeftX, bottomLeftY, bottomRightX, bottomRightY,
                      topLeftX, topLeftY, topRightX, topRightY, faceKey
               FROM RKDetectedFace
               WHERE masterUuid = ?
                 AND rejected = 0""",
            [master_uuid],
        ).fetchall()
        return [
            FaceRegion(
                bottom_left=Point(r["bottomLeftX"], r["bottomLeftY"]),
                bottom_right=Point(r["bottomRightX"], r["bottomRightY"]),
                top_left=Point(r["topLeftX"], r["topLeftY"]),
                top_right=Point(r["topRightX"], r["topRightY"]),
                name=self.face_name(r["faceKey"]),
            )
            for r in rows
        ]

    def face_name(self, face_key: Any) -> str:
        if face_key is None:
            return ""
        row = self.faces.execute(
            "SELECT name FROM RKFaceName WHERE faceKey = ?", [face_key]
        ).fetchone()
        if row is None or not row["name"]:
            return ""
        return nfc(row["name"])
