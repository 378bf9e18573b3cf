"""Identity resolution: which library master and version a catalog image came from.

The two stores share no identifiers.  An image is matched by its original
file name plus the file modification date (both products record it in Cocoa
epoch seconds).  The precedence below is a policy specific to this
migration and lives only here:

1. exact (file name, date) match; several matches are ambiguous, the first
   non-missing master wins and a warning is printed;
2. otherwise the date alone; renamed or moved files keep their date.  A
   single match is accepted with a warning, several are an error.

The catalog names the n-th version of a master ``VERSION-<n>`` (1-based);
the library numbers versions from 0.  ``select_version`` applies that
mapping and is shared by the keyword, stack and GPS passes.
"""
from __future__ import annotations

import re

from rich.console import Console

from facetransfer.models import CatalogImage, ImageMatch, SourceVersion
from facetransfer.readers.library import LATEST_VERSION, LibraryReader

console = Console(stderr=True)

_COPY_PREFIX = "VERSION-"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_copy_name(copy_name: str | None) -> int:
    """Return the largest library versionNumber a catalog copy name may map to."""
    if not copy_name or not copy_name.startswith(_COPY_PREFIX):
        return LATEST_VERSION
    m = _LEADING_INT.match(copy_name[len(_COPY_PREFIX):])
    number = int(m.group(1)) if m else 0
    if number > 0:
        number -= 1
    return number


class IdentityResolver:
    """Map catalog images onto library masters and versions."""

    def __init__(self, reader: LibraryReader, verbose: bool = False) -> None:
        self.reader = reader
        self.verbose = verbose

    def resolve_master(self, file_name: str, modified: int) -> str | None:
        """Return the UUID of the best matching master, or None."""
        candidates = self.reader.masters_by_name_and_date(file_name, modified)
        if candidates:
            if len(candidates) > 1:
                console.print(
                    f"[yellow]Warning:[/yellow] More than one master for {file_name}, "
                    f"date {modified}; using {candidates[0]['uuid']}"
                )
            return candidates[0]["uuid"]

        by_date = self.reader.masters_by_date(modified)
        if len(by_date) == 1:
            console.print(
                f"[yellow]Warning:[/yellow] No master named {file_name}, date {modified}, "
                f"but found one by date only"
            )
            return by_date[0]
        if by_date:
            console.print(
                f"[red]Error:[/red] Searching the master of {file_name}, date {modified} "
                f"by date only was not unique"
            )
        else:
            console.print(f"[red]Error:[/red] No master found for {file_name}, date {modified}")
        return None

    def select_version(self, master_uuid: str, copy_name: str | None) -> SourceVersion | None:
        """The version of *master_uuid* that a catalog copy name refers to."""
        version = self.reader.latest_version_at_most(master_uuid, parse_copy_name(copy_name))
        if version is None:
            console.print(
                f"[yellow]Warning:[/yellow] No version of master {master_uuid} "
                f"for copy '{copy_name or ''}'"
            )
        return version

    def match(self, image: CatalogImage) -> ImageMatch:
        """Resolve master and version for *image* once, for use by every pass."""
        master_uuid = self.resolve_master(image.file_name, image.modified)
        if master_uuid is None:
            return ImageMatch(master_uuid=None)
        version = self.select_version(master_uuid, image.copy_name)
        if self.verbose and version is not None:
            console.print(
                f"  [dim]{image.file_name} → master {master_uuid}, "
                f"version {version.version_number}[/dim]"
            )
        return ImageMatch(master_uuid=master_uuid, version=version)
