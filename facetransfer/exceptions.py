"""Exceptions raised by facetransfer.

Each exception type represents a category of error.  Soft failures (a source
record that cannot be matched) are not exceptions: they are reported and the
affected image is skipped.
"""
from __future__ import annotations


class FaceTransferError(Exception):
    """Base exception for all facetransfer errors."""


class ConfigError(FaceTransferError):
    """Raised when an input path or option is invalid."""


class SchemaError(FaceTransferError):
    """Raised when a store lacks tables the transfer reads or writes."""

    def __init__(self, store: str, missing: list[str]) -> None:
        self.store = store
        self.missing = missing
        super().__init__(f"{store} is missing table(s): {', '.join(missing)}")


class StoreError(FaceTransferError):
    """Raised when a store holds a value the transfer cannot work with."""


class IdAllocationError(StoreError):
    """Raised when the catalog's entity id counter cannot be read or advanced."""


class XmpError(FaceTransferError):
    """Raised when an embedded XMP document cannot be parsed or patched."""
