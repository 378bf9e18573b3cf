"""Database connections: the writable catalog and the read-only library stores."""
from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Any

from facetransfer.exceptions import ConfigError

_DEFAULT_CATALOG_PATH = Path("Lightroom Catalog.lrcat")
_DEFAULT_LIBRARY_PATH = Path.home() / "Pictures" / "Aperture Library.aplibrary"

# Fixed locations of the two stores inside a library bundle
LIBRARY_DB = Path("Database") / "Library.apdb"
FACES_DB = Path("Database") / "Faces.db"


def get_catalog_path() -> Path:
    """Return the catalog file path from env or default."""
    raw = os.getenv("FACETRANSFER_CATALOG", "")
    if raw:
        return Path(raw).expanduser()
    return _DEFAULT_CATALOG_PATH


def get_library_path() -> Path:
    """Return the library bundle path from env or default."""
    raw = os.getenv("FACETRANSFER_LIBRARY", "")
    if raw:
        return Path(raw).expanduser()
    return _DEFAULT_LIBRARY_PATH


def library_store_paths(bundle: Path) -> tuple[Path, Path]:
    """Return (main store, faces store) inside *bundle*."""
    return bundle / LIBRARY_DB, bundle / FACES_DB


def open_catalog(path: Path) -> sqlite3.Connection:
    """Open the catalog read-write.

    isolation_level=None disables Python's implicit transaction management;
    the whole run is wrapped in one explicit ``catalog_transaction``.
    """
    if not path.is_file():
        raise ConfigError(f"Catalog not found: {path}")
    conn = sqlite3.connect(str(path), timeout=30, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


def open_readonly(path: Path) -> sqlite3.Connection:
    """Open a library store read-only; the source is never mutated."""
    if not path.is_file():
        raise ConfigError(f"Library store not found: {path}")
    conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True, isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn


class catalog_transaction:
    """Context manager for the run-wide transaction (BEGIN IMMEDIATE ... COMMIT).

    Any exception rolls the catalog back before propagating.  With
    ``commit=False`` the transaction is rolled back even on success.
    """

    def __init__(self, conn: sqlite3.Connection, commit: bool = True) -> None:
        self.conn = conn
        self.commit = commit

    def __enter__(self) -> sqlite3.Connection:
        self.conn.execute("BEGIN IMMEDIATE")
        return self.conn

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is None and self.commit:
            self.conn.execute("COMMIT")
        else:
            self.conn.execute("ROLLBACK")


class savepoint:
    """Nested unit of work inside the run transaction.

    On an exception everything written since entry is undone and the
    exception propagates to the caller, which decides whether it is fatal.
    """

    def __init__(self, conn: sqlite3.Connection, name: str) -> None:
        self.conn = conn
        self.name = name

    def __enter__(self) -> None:
        self.conn.execute(f"SAVEPOINT {self.name}")

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None:
            self.conn.execute(f"ROLLBACK TO {self.name}")
        self.conn.execute(f"RELEASE {self.name}")
