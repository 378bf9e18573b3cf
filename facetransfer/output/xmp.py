"""XMP patching — writes GPS coordinates into the XMP packet the catalog embeds per image.

The catalog keeps a copy of each image's XMP in ``Adobe_AdditionalMetadata``.
Only the ``exif:GPS*`` properties of the first ``rdf:Description`` are
touched.  minidom locates nodes and resolves namespaces; the edits themselves
are applied to the original text, so every other byte of the packet is kept.
"""
from __future__ import annotations

import re
from xml.dom import Node, minidom
from xml.parsers.expat import ExpatError
from xml.sax.saxutils import escape

from facetransfer.exceptions import XmpError

# XMP Namespaces
NS = {
    "x":    "adobe:ns:meta/",
    "rdf":  "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "exif": "http://ns.adobe.com/exif/1.0/",
}
XMLNS_NS = "http://www.w3.org/2000/xmlns/"

GPS_VERSION = "2.0.0.0"

# GPS properties removed whenever a new position is written
STALE_GPS_FIELDS = (
    "GPSAltitude",
    "GPSAltitudeRef",
    "GPSAreaInformation",
    "GPSDOP",
    "GPSDateStamp",
    "GPSDestBearing",
    "GPSDestBearingRef",
    "GPSDestDistance",
    "GPSDestDistanceRef",
    "GPSDestLatitude",
    "GPSDestLatitudeRef",
    "GPSDestLongitude",
    "GPSDestLongitudeRef",
    "GPSDifferential",
    "GPSHPositioningError",
    "GPSImgDirection",
    "GPSImgDirectionRef",
    "GPSMapDatum",
    "GPSMeasureMode",
    "GPSProcessingMethod",
    "GPSSatellites",
    "GPSSpeed",
    "GPSSpeedRef",
    "GPSStatus",
    "GPSTimeStamp",
    "GPSTrack",
    "GPSTrackRef",
)

# Markup that can hide a tag: comments, CDATA sections, processing instructions
_SKIPPED = r"<!--.*?-->|<!\[CDATA\[.*?\]\]>|<\?.*?\?>"
_ATTRIBUTE = re.compile(r"""(\s+)([^\s=/>]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_TAG_CLOSE = re.compile(r"\s*(/?)>")
_QUOT = {'"': "&quot;"}


def _hemisphere(decimal: float, axis: str) -> str:
    if axis == "lat":
        return "N" if decimal >= 0 else "S"
    return "E" if decimal >= 0 else "W"


def _decimal_to_dms_str(decimal: float, axis: str) -> str:
    """Convert decimal degrees to XMP DMS string e.g. '48,6.0000000000N'."""
    ref = _hemisphere(decimal, axis)
    decimal = abs(decimal)
    deg = int(decimal)
    minutes = (decimal - deg) * 60
    return f"{deg},{minutes:.10f}{ref}"


def _find_child(node: minidom.Element | None, local_name: str) -> minidom.Element | None:
    """First element child of *node* whose local name is *local_name*."""
    if node is None:
        return None
    for child in node.childNodes:
        if child.nodeType == Node.ELEMENT_NODE and child.localName == local_name:
            return child
    return None


def _tag_pattern(qname: str) -> re.Pattern:
    return re.compile(rf"{_SKIPPED}|<(/?)({re.escape(qname)})(?=[\s/>])", re.S)


def _find_start_tag(text: str, qname: str, pos: int = 0) -> int:
    """Offset of the next ``<qname`` start tag at or after *pos*, or -1."""
    for m in _tag_pattern(qname).finditer(text, pos):
        if m.group(2) is not None and not m.group(1):
            return m.start()
    return -1


class _StartTag:
    """Attribute layout of one start tag in the original text."""

    def __init__(self, text: str, start: int, qname: str) -> None:
        self.start = start
        self.attributes: dict[str, re.Match] = {}
        self.separator = " "
        cursor = start + len(qname) + 1
        while True:
            m = _ATTRIBUTE.match(text, cursor)
            if m is None:
                break
            self.attributes[m.group(2)] = m
            self.separator = m.group(1)
            cursor = m.end()
        close = _TAG_CLOSE.match(text, cursor)
        if close is None:
            raise XmpError(f"Cannot parse <{qname}> start tag")
        # new attributes go right after the last existing one
        self.insert_at = cursor
        self.end = close.end()
        self.self_closing = close.group(1) == "/"


def _element_end(text: str, start: int, qname: str) -> int:
    """Offset just past the element whose start tag begins at *start*."""
    tag = _StartTag(text, start, qname)
    if tag.self_closing:
        return tag.end
    depth = 1
    for m in _tag_pattern(qname).finditer(text, tag.end):
        if m.group(2) is None:
            continue
        if m.group(1):
            depth -= 1
            if depth == 0:
                close = text.find(">", m.end())
                if close < 0:
                    break
                return close + 1
        elif not _StartTag(text, m.start(), qname).self_closing:
            depth += 1
    raise XmpError(f"Unterminated <{qname}> element")


class XMPDocument:
    """A parsed XMP packet with property-level edits on its main description."""

    def __init__(self, text: str) -> None:
        self.text = text
        try:
            self.dom = minidom.parseString(text)
        except (ExpatError, ValueError) as exc:
            raise XmpError(f"Malformed XMP: {exc}") from exc
        self.description = self._find_description()
        self.tag = self._locate_description()
        self._values: dict[str, str | None] = {}
        self._added: dict[str, str] = {}
        self._cuts: list[tuple[int, int]] = []
        self._child_spans: dict[int, tuple[int, int]] | None = None

    def _find_description(self) -> minidom.Element:
        root = self.dom.documentElement
        rdf = root if root.localName == "RDF" else _find_child(root, "RDF")
        desc = _find_child(rdf, "Description")
        if desc is None:
            raise XmpError("XMP has no rdf:Description")
        return desc

    def _locate_description(self) -> _StartTag:
        rdf = self.description.parentNode
        start = _find_start_tag(self.text, rdf.tagName)
        if start >= 0:
            start = _find_start_tag(self.text, self.description.tagName, start)
        if start < 0:
            raise XmpError("Cannot locate rdf:Description in the packet text")
        return _StartTag(self.text, start, self.description.tagName)

    # ── namespaces ─────────────────────────────────────────────────────────

    def bindings(self) -> dict[str, str]:
        """Prefix → URI bindings in scope at the description (innermost wins)."""
        found: dict[str, str] = {}
        node = self.description
        while node is not None and node.nodeType == Node.ELEMENT_NODE:
            for name, value in node.attributes.items():
                if name.startswith("xmlns:"):
                    found.setdefault(name[len("xmlns:"):], value)
            node = node.parentNode
        return found

    def reconcile_namespace(self, uri: str, prefix: str) -> str:
        """Return a prefix bound to *uri*, declaring one on the description if needed.

        An existing binding for *uri* is reused.  Otherwise *prefix* is declared,
        or ``<prefix>0``, ``<prefix>1``, ... if it is already bound elsewhere.
        """
        bound = self.bindings()
        for existing, bound_uri in bound.items():
            if bound_uri == uri:
                return existing
        candidate = prefix
        counter = 0
        while candidate in bound:
            candidate = f"{prefix}{counter}"
            counter += 1
        self.description.setAttributeNS(XMLNS_NS, f"xmlns:{candidate}", uri)
        self._added[f"xmlns:{candidate}"] = uri
        return candidate

    # ── properties ─────────────────────────────────────────────────────────

    def _element_spans(self) -> dict[int, tuple[int, int]]:
        """Text spans of the description's child elements, keyed by node id.

        A span starts at the whitespace preceding the element.
        """
        if self._child_spans is None:
            self._child_spans = {}
            cursor = self.tag.end
            for child in self.description.childNodes:
                if child.nodeType != Node.ELEMENT_NODE:
                    continue
                start = _find_start_tag(self.text, child.tagName, cursor)
                if start < 0:
                    raise XmpError(f"Cannot locate <{child.tagName}> in the packet text")
                end = _element_end(self.text, start, child.tagName)
                lead = start
                while lead > cursor and self.text[lead - 1].isspace():
                    lead -= 1
                self._child_spans[id(child)] = (lead, end)
                cursor = end
        return self._child_spans

    def _remove_element_form(self, uri: str, name: str) -> bool:
        removed = False
        for child in list(self.description.childNodes):
            if (child.nodeType == Node.ELEMENT_NODE
                    and child.namespaceURI == uri and child.localName == name):
                self._cuts.append(self._element_spans()[id(child)])
                self.description.removeChild(child)
                removed = True
        return removed

    def set_property(self, uri: str, prefix: str, name: str, value: str) -> None:
        self._remove_element_form(uri, name)
        attr = self.description.getAttributeNodeNS(uri, name)
        qname = attr.nodeName if attr is not None else f"{prefix}:{name}"
        if qname in self.tag.attributes:
            self._values[qname] = value
        else:
            self._added[qname] = value
        self.description.setAttributeNS(uri, qname, value)

    def remove_property(self, uri: str, name: str) -> bool:
        """Drop *name* in attribute or element form.  Returns True if it existed."""
        attr = self.description.getAttributeNodeNS(uri, name)
        if attr is not None:
            if attr.nodeName in self.tag.attributes:
                self._values[attr.nodeName] = None
            else:
                self._added.pop(attr.nodeName, None)
            self.description.removeAttributeNS(uri, name)
        removed = self._remove_element_form(uri, name)
        return attr is not None or removed

    def get_property(self, uri: str, name: str) -> str | None:
        if self.description.hasAttributeNS(uri, name):
            return self.description.getAttributeNS(uri, name)
        return None

    # ── serialization ─────────────────────────────────────────────────────

    def serialize(self) -> str:
        """The original text with the pending edits applied."""
        edits = [(start, end, "") for start, end in self._cuts]
        for qname, value in self._values.items():
            m = self.tag.attributes[qname]
            if value is None:
                edits.append((m.start(), m.end(), ""))
            elif m.group(3) is not None:
                edits.append((m.start(3), m.end(3), escape(value, _QUOT)))
            else:
                edits.append((m.start(4), m.end(4), escape(value, {"'": "&apos;"})))
        if self._added:
            added = "".join(
                f'{self.tag.separator}{qname}="{escape(value, _QUOT)}"'
                for qname, value in self._added.items()
            )
            edits.append((self.tag.insert_at, self.tag.insert_at, added))

        text = self.text
        for start, end, replacement in sorted(edits, key=lambda e: (e[0], e[1]), reverse=True):
            text = text[:start] + replacement + text[end:]
        return text


def patch_gps(xmp: str, latitude: float, longitude: float) -> str:
    """Return *xmp* with its EXIF GPS position set and stale GPS properties removed."""
    doc = XMPDocument(xmp)
    exif_uri = NS["exif"]
    prefix = doc.reconcile_namespace(exif_uri, "exif")

    doc.set_property(exif_uri, prefix, "GPSVersionID", GPS_VERSION)
    doc.set_property(exif_uri, prefix, "GPSLatitude", _decimal_to_dms_str(latitude, "lat"))
    doc.set_property(exif_uri, prefix, "GPSLongitude", _decimal_to_dms_str(longitude, "lon"))
    doc.set_property(exif_uri, prefix, "GPSLatitudeRef", _hemisphere(latitude, "lat"))
    doc.set_property(exif_uri, prefix, "GPSLongitudeRef", _hemisphere(longitude, "lon"))
    for name in STALE_GPS_FIELDS:
        doc.remove_property(exif_uri, name)

    return doc.serialize()
