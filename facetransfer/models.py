"""Records read from the two stores and the statistics of a transfer run."""
from __future__ import annotations

import dataclasses
import enum
from collections import Counter


class Orientation(enum.Enum):
    """Rotation class of a catalog image, keyed by the catalog's two-letter code."""

    UPRIGHT = "AB"
    CLOCKWISE = "BC"
    UPSIDE_DOWN = "CD"
    COUNTER_CLOCKWISE = "DA"
    UNKNOWN = ""

    @classmethod
    def from_code(cls, code: str | None) -> Orientation:
        for member in cls:
            if member is not cls.UNKNOWN and member.value == code:
                return member
        return cls.UNKNOWN


class KeywordType(enum.Enum):
    """Value of ``AgLibraryKeyword.keywordType`` (NULL for plain keywords)."""

    UNTYPED = None
    PERSON = "person"


@dataclasses.dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclasses.dataclass(frozen=True)
class FaceRegion:
    """A detected face: four normalized corners plus the person's name ("" if unnamed)."""

    bottom_left: Point
    bottom_right: Point
    top_left: Point
    top_right: Point
    name: str = ""

    def corners(self) -> tuple[Point, Point, Point, Point]:
        return (self.bottom_left, self.bottom_right, self.top_left, self.top_right)


@dataclasses.dataclass(frozen=True)
class CatalogImage:
    """A destination image row joined with its file record."""

    image_id: int
    file_name: str
    modified: int
    orientation_code: str
    copy_name: str = ""

    @property
    def orientation(self) -> Orientation:
        return Orientation.from_code(self.orientation_code)


@dataclasses.dataclass(frozen=True)
class SourceVersion:
    """The source version selected for a catalog image."""

    version_id: int
    version_number: int
    stack_uuid: str
    latitude: float | None
    longitude: float | None

    @property
    def has_gps(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclasses.dataclass(frozen=True)
class ImageMatch:
    """Outcome of identity resolution for one catalog image."""

    master_uuid: str | None
    version: SourceVersion | None = None

    @property
    def found(self) -> bool:
        return self.master_uuid is not None


@dataclasses.dataclass
class TransferStats:
    images: int = 0
    images_without_faces: int = 0
    inserted_faces: int = 0
    unknown_faces: int = 0
    people: Counter = dataclasses.field(default_factory=Counter)
    keywords_created: int = 0
    keyword_links: int = 0
    stacks_created: int = 0
    gps_updated: int = 0
    failures: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "images": self.images,
            "images_without_faces": self.images_without_faces,
            "inserted_faces": self.inserted_faces,
            "people": len(self.people),
            "unknown_faces": self.unknown_faces,
            "keywords_created": self.keywords_created,
            "keyword_links": self.keyword_links,
            "stacks_created": self.stacks_created,
            "gps_updated": self.gps_updated,
            "failures": self.failures,
        }
