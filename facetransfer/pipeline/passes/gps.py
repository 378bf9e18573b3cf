"""GPS pass — copies the source version's position into the catalog's EXIF row and XMP."""
from __future__ import annotations

import sqlite3

from rich.console import Console

from facetransfer.db.connection import savepoint
from facetransfer.exceptions import FaceTransferError
from facetransfer.models import CatalogImage, SourceVersion
from facetransfer.output.xmp import patch_gps
from facetransfer.pipeline.session import TransferSession

console = Console(stderr=True)


def update_exif_metadata(conn: sqlite3.Connection, image_id: int, latitude: float, longitude: float) -> None:
    conn.execute(
        """UPDATE AgHarvestedExifMetadata
           SET gpsLatitude = ?, gpsLongitude = ?, gpsSequence = 1, hasGPS = 1
           WHERE image = ?""",
        [latitude, longitude, image_id],
    )


def update_xmp(conn: sqlite3.Connection, image: CatalogImage, latitude: float, longitude: float) -> bool:
    """Patch the embedded XMP of *image*.  Returns False if the image has none."""
    row = conn.execute(
        "SELECT xmp FROM Adobe_AdditionalMetadata WHERE image = ?",
        [image.image_id],
    ).fetchone()
    if row is None or row["xmp"] is None:
        console.print(f"[yellow]Warning:[/yellow] No XMP for {image.file_name}, GPS written to EXIF only")
        return False
    xmp = row["xmp"]
    if isinstance(xmp, bytes):
        xmp = xmp.decode("utf-8")
    conn.execute(
        "UPDATE Adobe_AdditionalMetadata SET xmp = ? WHERE image = ?",
        [patch_gps(xmp, latitude, longitude), image.image_id],
    )
    return True


def transfer_gps(session: TransferSession, image: CatalogImage, version: SourceVersion) -> bool:
    """Write the position of *version* onto *image*.  Returns True if written."""
    if not version.has_gps:
        return False
    try:
        with savepoint(session.catalog, "gps"):
            update_exif_metadata(session.catalog, image.image_id, version.latitude, version.longitude)
            update_xmp(session.catalog, image, version.latitude, version.longitude)
    except (sqlite3.Error, FaceTransferError) as exc:
        console.print(f"[red]Error:[/red] Failed to update GPS of {image.file_name}: {exc}")
        session.stats.failures += 1
        return False
    session.stats.gps_updated += 1
    if session.verbose:
        console.print(
            f"  [dim]{image.file_name}: GPS {version.latitude:.6f}, {version.longitude:.6f}[/dim]"
        )
    return True
