"""Face pass — replaces the catalog's face data of an image with the library's faces.

The catalog may already hold faces it detected itself.  Those rows are purged
for every image the library has faces for, then each library face becomes:

* a face cluster row,
* a face row with the region converted to the catalog's coordinate frame,
* an empty biometry row (what the catalog writes for a manually drawn face),
* for named faces, a person keyword, a keyword↔face link and a
  keyword↔image link,
* the image's face-process history, marked as done and user touched so the
  catalog does not run its own detection over it again.

Each face is written inside its own savepoint: a face that fails leaves no
rows behind and does not stop its siblings.
"""
from __future__ import annotations

import sqlite3

from rich.console import Console

from facetransfer.db.connection import savepoint
from facetransfer.exceptions import FaceTransferError
from facetransfer.models import CatalogImage, FaceRegion, Orientation, Point
from facetransfer.pipeline.session import TransferSession

console = Console(stderr=True)

_PURGE_STATEMENTS = (
    "DELETE FROM Adobe_libraryImageFaceProcessHistory WHERE image = ?",
    "DELETE FROM AgLibraryFaceCluster WHERE id_local IN (SELECT cluster FROM AgLibraryFace WHERE image = ?)",
    "DELETE FROM AgLibraryFaceData WHERE face IN (SELECT id_local FROM AgLibraryFace WHERE image = ?)",
    "DELETE FROM AgLibraryKeywordFace WHERE face IN (SELECT id_local FROM AgLibraryFace WHERE image = ?)",
    "DELETE FROM AgLibraryFace WHERE image = ?",
)


def transform_point(p: Point, orientation: Orientation) -> Point:
    """Convert one library corner into the catalog frame for *orientation*."""
    match orientation:
        case Orientation.UPRIGHT:
            return Point(p.x, 1 - p.y)
        case Orientation.CLOCKWISE:
            return Point(p.y, p.x)
        case Orientation.UPSIDE_DOWN:
            return Point(1 - p.x, p.y)
        case Orientation.COUNTER_CLOCKWISE:
            return Point(1 - p.y, 1 - p.x)
        case _:
            return p


def transform_region(face: FaceRegion, orientation: Orientation) -> FaceRegion:
    """Return *face* with all four corners converted; the name is kept."""
    return FaceRegion(
        bottom_left=transform_point(face.bottom_left, orientation),
        bottom_right=transform_point(face.bottom_right, orientation),
        top_left=transform_point(face.top_left, orientation),
        top_right=transform_point(face.top_right, orientation),
        name=face.name,
    )


class FaceWriter:
    """Row-level writes for the face tables of the catalog."""

    def __init__(self, session: TransferSession) -> None:
        self.session = session
        self.conn = session.catalog
        self.ids = session.ids

    def purge(self, image_id: int) -> None:
        """Remove every face row of *image_id* and the keyword links they carried."""
        self.conn.execute(
            """DELETE FROM AgLibraryKeywordImage
               WHERE image = ?
                 AND tag IN (SELECT tag FROM AgLibraryKeywordFace
                             WHERE face IN (SELECT id_local FROM AgLibraryFace WHERE image = ?))""",
            [image_id, image_id],
        )
        for sql in _PURGE_STATEMENTS:
            self.conn.execute(sql, [image_id])

    def create_cluster(self) -> int:
        cluster_id = self.ids.next_id()
        self.conn.execute(
            "INSERT INTO AgLibraryFaceCluster (id_local, keyFace) VALUES (?, NULL)",
            [cluster_id],
        )
        return cluster_id

    def create_face(self, region: FaceRegion, cluster_id: int, image: CatalogImage) -> int:
        """Insert a face row; *region* must already be in the catalog frame."""
        face_id = self.ids.next_id()
        bl, br, tl, tr = region.corners()
        self.conn.execute(
            """INSERT INTO AgLibraryFace
                   (id_local,
                    bl_x, bl_y, br_x, br_y, tl_x, tl_y, tr_x, tr_y,
                    cluster, compatibleVersion, ignored, image, imageOrientation,
                    orientation, origination, propertiesCache, regionType,
                    skipSuggestion, version)
               VALUES (?,
                       ?, ?, ?, ?, ?, ?, ?, ?,
                       ?, 3.0, NULL, ?, ?,
                       0, 1.0, NULL, 1.0,
                       NULL, 2.0)""",
            [face_id,
             bl.x, bl.y, br.x, br.y, tl.x, tl.y, tr.x, tr.y,
             cluster_id, image.image_id, image.orientation_code],
        )
        return face_id

    def create_biometry_placeholder(self, face_id: int) -> None:
        self.conn.execute(
            "INSERT INTO AgLibraryFaceData (id_local, data, face) VALUES (?, NULL, ?)",
            [self.ids.next_id(), face_id],
        )

    def link_face_keyword(self, face_id: int, keyword_id: int) -> None:
        self.conn.execute(
            """INSERT INTO AgLibraryKeywordFace
                   (id_local, face, keyFace, rankOrder, tag, userPick, userReject)
               VALUES (?, ?, NULL, NULL, ?, 1, 0)""",
            [self.ids.next_id(), face_id, keyword_id],
        )

    def mark_processed(self, image: CatalogImage) -> None:
        """Create or take over the face-process history row of *image*."""
        row = self.conn.execute(
            "SELECT id_local FROM Adobe_libraryImageFaceProcessHistory WHERE image = ?",
            [image.image_id],
        ).fetchone()
        if row is None:
            self.conn.execute(
                """INSERT INTO Adobe_libraryImageFaceProcessHistory
                       (id_local, image,
                        lastFaceDetector, lastFaceRecognizer, lastImageIndexer,
                        lastImageOrientation, lastTryStatus, userTouched)
                   VALUES (?, ?, 2.0, 3.0, NULL, ?, 1.0, 1.0)""",
                [self.ids.next_id(), image.image_id, image.orientation_code],
            )
        else:
            self.conn.execute(
                """UPDATE Adobe_libraryImageFaceProcessHistory
                   SET userTouched = 1.0,
                       lastTryStatus = 1.0,
                       lastImageOrientation = ?
                   WHERE id_local = ?""",
                [image.orientation_code, row["id_local"]],
            )

    def create_face_entry(self, face: FaceRegion, image: CatalogImage) -> None:
        """Write every row one library face needs."""
        keyword_id = self.session.keywords.person_keyword(face.name) if face.name else None
        cluster_id = self.create_cluster()
        face_id = self.create_face(transform_region(face, image.orientation), cluster_id, image)
        self.create_biometry_placeholder(face_id)
        if keyword_id is not None:
            self.link_face_keyword(face_id, keyword_id)
            if self.session.usage.link(image.image_id, keyword_id):
                self.session.stats.keyword_links += 1
        self.mark_processed(image)


def run_faces(session: TransferSession, image: CatalogImage, master_uuid: str) -> int:
    """Transfer the faces of *master_uuid* onto *image*.  Returns faces inserted."""
    stats = session.stats
    faces = session.reader.faces_for_master(master_uuid)
    if not faces:
        stats.images_without_faces += 1
        return 0

    writer = FaceWriter(session)
    try:
        with savepoint(session.catalog, "purge_faces"):
            writer.purge(image.image_id)
    except (sqlite3.Error, FaceTransferError) as exc:
        console.print(f"[red]Error:[/red] Failed to remove faces of {image.file_name}: {exc}")
        stats.failures += 1
        return 0

    inserted = 0
    labels: list[str] = []
    for face in faces:
        labels.append(face.name or "[Unnamed]")
        if not face.name:
            stats.unknown_faces += 1
        try:
            with savepoint(session.catalog, "face_entry"):
                writer.create_face_entry(face, image)
        except (sqlite3.Error, FaceTransferError) as exc:
            console.print(
                f"[red]Error:[/red] Failed to create face entry on {image.file_name}: {exc}"
            )
            stats.failures += 1
            continue
        inserted += 1
        if face.name:
            stats.people[face.name] += 1

    stats.inserted_faces += inserted
    if session.verbose:
        console.print(f"  {image.file_name}: {', '.join(labels)}", markup=False)
    return inserted
