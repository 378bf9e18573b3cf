"""Minimal catalog and library stores built in tmp_path."""
from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

CATALOG_DDL = """
CREATE TABLE Adobe_images (
    id_local INTEGER PRIMARY KEY, id_global TEXT, rootFile INTEGER,
    orientation TEXT, copyName TEXT
);
CREATE TABLE AgLibraryFile (
    id_local INTEGER PRIMARY KEY, folder INTEGER,
    originalFilename TEXT, externalModTime REAL
);
CREATE TABLE AgLibraryFolder (id_local INTEGER PRIMARY KEY, rootFolder INTEGER, pathFromRoot TEXT);
CREATE TABLE AgLibraryRootFolder (id_local INTEGER PRIMARY KEY, absolutePath TEXT);
CREATE TABLE AgLibraryKeyword (
    id_local INTEGER PRIMARY KEY, id_global TEXT UNIQUE NOT NULL, dateCreated REAL,
    genealogy TEXT, imageCountCache REAL, keywordType TEXT, lastApplied REAL,
    lc_name TEXT, name TEXT, parent INTEGER
);
CREATE TABLE AgLibraryKeywordImage (id_local INTEGER PRIMARY KEY, image INTEGER, tag INTEGER);
CREATE TABLE AgLibraryKeywordPopularity (
    id_local INTEGER PRIMARY KEY, occurrences NOT NULL DEFAULT 0,
    popularity NOT NULL DEFAULT 0, tag UNIQUE NOT NULL
);
CREATE TABLE AgLibraryKeywordCooccurrence (
    id_local INTEGER PRIMARY KEY, tag1 INTEGER, tag2 INTEGER, value NOT NULL DEFAULT 0
);
CREATE TABLE AgLibraryKeywordSynonym (id_local INTEGER PRIMARY KEY, keyword INTEGER, lc_name TEXT, name TEXT);
CREATE TABLE AgLibraryKeywordFace (
    id_local INTEGER PRIMARY KEY, face INTEGER, keyFace INTEGER, rankOrder REAL,
    tag INTEGER, userPick INTEGER, userReject INTEGER
);
CREATE TABLE AgLibraryFace (
    id_local INTEGER PRIMARY KEY,
    bl_x REAL, bl_y REAL, br_x REAL, br_y REAL, tl_x REAL, tl_y REAL, tr_x REAL, tr_y REAL,
    cluster INTEGER, compatibleVersion REAL, ignored INTEGER, image INTEGER, imageOrientation TEXT,
    orientation REAL, origination INTEGER, propertiesCache TEXT, regionType REAL,
    skipSuggestion INTEGER, version REAL
);
CREATE TABLE AgLibraryFaceCluster (id_local INTEGER PRIMARY KEY, keyFace INTEGER);
CREATE TABLE AgLibraryFaceData (id_local INTEGER PRIMARY KEY, data TEXT, face INTEGER);
CREATE TABLE Adobe_libraryImageFaceProcessHistory (
    id_local INTEGER PRIMARY KEY, image INTEGER, lastFaceDetector REAL,
    lastFaceRecognizer REAL, lastImageIndexer REAL, lastImageOrientation TEXT,
    lastTryStatus REAL, userTouched REAL
);
CREATE TABLE AgLibraryFolderStack (id_local INTEGER PRIMARY KEY, id_global TEXT, collapsed INTEGER, text TEXT);
CREATE TABLE AgLibraryFolderStackData (id_local INTEGER PRIMARY KEY, stack INTEGER, stackCount INTEGER);
CREATE TABLE AgLibraryFolderStackImage (
    id_local INTEGER PRIMARY KEY, collapsed INTEGER, image INTEGER, position INTEGER, stack INTEGER
);
CREATE TABLE AgHarvestedExifMetadata (
    id_local INTEGER PRIMARY KEY, image INTEGER, gpsLatitude REAL, gpsLongitude REAL,
    gpsSequence INTEGER, hasGPS INTEGER
);
CREATE TABLE Adobe_AdditionalMetadata (id_local INTEGER PRIMARY KEY, image INTEGER, xmp TEXT);
CREATE TABLE Adobe_variablesTable (
    id_local INTEGER PRIMARY KEY, id_global TEXT, name TEXT, type TEXT, value TEXT
);
"""

LIBRARY_DDL = """
CREATE TABLE RKMaster (
    modelId INTEGER PRIMARY KEY, uuid TEXT, fileName TEXT,
    fileModificationDate INTEGER, imagePath TEXT, isMissing INTEGER DEFAULT 0
);
CREATE TABLE RKVersion (
    modelId INTEGER PRIMARY KEY, masterUuid TEXT, versionNumber INTEGER,
    stackUuid TEXT, exifLatitude REAL, exifLongitude REAL
);
CREATE TABLE RKKeyword (modelId INTEGER PRIMARY KEY, name TEXT);
CREATE TABLE RKKeywordForVersion (modelId INTEGER PRIMARY KEY, versionId INTEGER, keywordId INTEGER);
"""

FACES_DDL = """
CREATE TABLE RKDetectedFace (
    modelId INTEGER PRIMARY KEY, masterUuid TEXT,
    bottomLeftX REAL, bottomLeftY REAL, bottomRightX REAL, bottomRightY REAL,
    topLeftX REAL, topLeftY REAL, topRightX REAL, topRightY REAL,
    faceKey INTEGER, rejected INTEGER DEFAULT 0
);
CREATE TABLE RKFaceName (modelId INTEGER PRIMARY KEY, faceKey INTEGER, name TEXT);
"""

ROOT_TAG_ID = 5
FIRST_ENTITY_ID = 1000

XMP_TEMPLATE = """<?xpacket begin="﻿" id="W5M0MpCehiHzreSzNTczkc9d"?>
<x:xmpmeta xmlns:x="adobe:ns:meta/">
 <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">
  <rdf:Description rdf:about=""
    xmlns:tiff="http://ns.adobe.com/tiff/1.0/"
    tiff:Make="Canon">
  </rdf:Description>
 </rdf:RDF>
</x:xmpmeta>
<?xpacket end="w"?>"""


def _connect(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn


class Stores:
    """A catalog file and a library bundle, with helpers to fill them."""

    def __init__(self, root: Path) -> None:
        self.catalog_path = root / "Test Catalog.lrcat"
        self.library_path = root / "Test Library.aplibrary"
        (self.library_path / "Database").mkdir(parents=True)

        self.catalog = _connect(self.catalog_path)
        self.catalog.executescript(CATALOG_DDL)
        self.catalog.executemany(
            "INSERT INTO Adobe_variablesTable (id_local, id_global, name, value) VALUES (?, ?, ?, ?)",
            [
                (1, "V1", "Adobe_entityIDCounter", FIRST_ENTITY_ID),
                (2, "V2", "AgLibraryKeyword_rootTagID", ROOT_TAG_ID),
                (3, "V3", "LibraryKeywordSuggestions_popularityIncrement", 1.0),
            ],
        )
        self.catalog.execute("INSERT INTO AgLibraryRootFolder (id_local, absolutePath) VALUES (10, '/photos/')")
        self.catalog.execute("INSERT INTO AgLibraryFolder (id_local, rootFolder, pathFromRoot) VALUES (11, 10, '')")

        self.library = _connect(self.library_path / "Database" / "Library.apdb")
        self.library.executescript(LIBRARY_DDL)
        self.faces = _connect(self.library_path / "Database" / "Faces.db")
        self.faces.executescript(FACES_DDL)

    def close(self) -> None:
        for conn in (self.catalog, self.library, self.faces):
            conn.close()

    # ── catalog ────────────────────────────────────────────────────────────

    def add_image(
        self,
        image_id: int,
        file_name: str,
        modified: float,
        orientation: str = "AB",
        copy_name: str | None = None,
        xmp: str | None = XMP_TEMPLATE,
    ) -> int:
        file_id = image_id + 100
        self.catalog.execute(
            "INSERT INTO AgLibraryFile (id_local, folder, originalFilename, externalModTime) VALUES (?, 11, ?, ?)",
            [file_id, file_name, modified],
        )
        self.catalog.execute(
            "INSERT INTO Adobe_images (id_local, id_global, rootFile, orientation, copyName) VALUES (?, ?, ?, ?, ?)",
            [image_id, f"IMG{image_id}", file_id, orientation, copy_name],
        )
        self.catalog.execute(
            "INSERT INTO AgHarvestedExifMetadata (id_local, image, hasGPS) VALUES (?, ?, 0)",
            [image_id + 200, image_id],
        )
        if xmp is not None:
            self.catalog.execute(
                "INSERT INTO Adobe_AdditionalMetadata (id_local, image, xmp) VALUES (?, ?, ?)",
                [image_id + 300, image_id, xmp],
            )
        return image_id

    def variable(self, name: str):
        row = self.catalog.execute(
            "SELECT value FROM Adobe_variablesTable WHERE name = ?", [name]
        ).fetchone()
        return row["value"] if row else None

    def count(self, table: str) -> int:
        return self.catalog.execute(f"SELECT count(*) FROM {table}").fetchone()[0]

    # ── library ───────────────────────────────────────────────────────────

    def add_master(
        self,
        uuid: str,
        file_name: str,
        modified: int,
        image_path: str | None = None,
        is_missing: int = 0,
    ) -> str:
        self.library.execute(
            """INSERT INTO RKMaster (uuid, fileName, fileModificationDate, imagePath, isMissing)
               VALUES (?, ?, ?, ?, ?)""",
            [uuid, file_name, modified, image_path or f"/{uuid}/{file_name}", is_missing],
        )
        return uuid

    def add_version(
        self,
        version_id: int,
        master_uuid: str,
        version_number: int = 0,
        stack_uuid: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> int:
        self.library.execute(
            """INSERT INTO RKVersion (modelId, masterUuid, versionNumber, stackUuid, exifLatitude, exifLongitude)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [version_id, master_uuid, version_number, stack_uuid, latitude, longitude],
        )
        return version_id

    def add_version_keyword(self, version_id: int, name: str) -> None:
        row = self.library.execute("SELECT modelId FROM RKKeyword WHERE name = ?", [name]).fetchone()
        if row is None:
            keyword_id = self.library.execute("INSERT INTO RKKeyword (name) VALUES (?)", [name]).lastrowid
        else:
            keyword_id = row["modelId"]
        self.library.execute(
            "INSERT INTO RKKeywordForVersion (versionId, keywordId) VALUES (?, ?)",
            [version_id, keyword_id],
        )

    def add_face(
        self,
        master_uuid: str,
        name: str | None = None,
        corners: tuple[float, ...] = (0.1, 0.2, 0.3, 0.2, 0.1, 0.4, 0.3, 0.4),
        rejected: int = 0,
    ) -> None:
        face_key = None
        if name is not None:
            row = self.faces.execute("SELECT faceKey FROM RKFaceName WHERE name = ?", [name]).fetchone()
            if row is None:
                face_key = self.faces.execute("SELECT count(*) + 1 FROM RKFaceName").fetchone()[0]
                self.faces.execute("INSERT INTO RKFaceName (faceKey, name) VALUES (?, ?)", [face_key, name])
            else:
                face_key = row["faceKey"]
        self.faces.execute(
            """INSERT INTO RKDetectedFace
                   (masterUuid, bottomLeftX, bottomLeftY, bottomRightX, bottomRightY,
                    topLeftX, topLeftY, topRightX, topRightY, faceKey, rejected)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            [master_uuid, *corners, face_key, rejected],
        )

    # ── sessions ──────────────────────────────────────────────────────────

    def session(self, **options):
        from facetransfer.pipeline.session import TransferOptions, TransferSession
        from facetransfer.readers.library import LibraryReader

        return TransferSession(
            self.catalog,
            LibraryReader(self.library, self.faces),
            TransferOptions(**options),
        )

    def prepared_session(self, **options):
        """A session whose keyword roots exist, as after the preparation phase."""
        from facetransfer.pipeline.transfer import prepare_catalog

        session = self.session(**options)
        prepare_catalog(session)
        return session


@pytest.fixture
def stores(tmp_path):
    s = Stores(tmp_path)
    yield s
    s.close()
