"""Tests for the XMP GPS patch."""
from __future__ import annotations

import pytest

from conftest import XMP_TEMPLATE

EXIF = "http://ns.adobe.com/exif/1.0/"


def _xmp(description_attrs: str = "", body: str = "", rdf_attrs: str = "") -> str:
    return (
        '<?xpacket begin="" id="W5M0MpCehiHzreSzNTczkc9d"?>\n'
        '<x:xmpmeta xmlns:x="adobe:ns:meta/">\n'
        f' <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"{rdf_attrs}>\n'
        f'  <rdf:Description rdf:about=""{description_attrs}>{body}\n'
        '  </rdf:Description>\n'
        ' </rdf:RDF>\n'
        '</x:xmpmeta>\n'
        '<?xpacket end="w"?>'
    )


class TestDmsFormat:
    def test_north_west(self):
        from facetransfer.output.xmp import _decimal_to_dms_str
        assert _decimal_to_dms_str(48.1, "lat") == "48,6.0000000000N"
        assert _decimal_to_dms_str(-11.5, "lon") == "11,30.0000000000W"

    def test_south_east(self):
        from facetransfer.output.xmp import _decimal_to_dms_str
        assert _decimal_to_dms_str(-33.25, "lat") == "33,15.0000000000S"
        assert _decimal_to_dms_str(151.0, "lon") == "151,0.0000000000E"


class TestPatchGps:
    def test_writes_position(self):
        from facetransfer.output.xmp import XMPDocument, patch_gps
        doc = XMPDocument(patch_gps(XMP_TEMPLATE, 48.1, -11.5))
        assert doc.get_property(EXIF, "GPSVersionID") == "2.0.0.0"
        assert doc.get_property(EXIF, "GPSLatitude") == "48,6.0000000000N"
        assert doc.get_property(EXIF, "GPSLongitude") == "11,30.0000000000W"
        assert doc.get_property(EXIF, "GPSLatitudeRef") == "N"
        assert doc.get_property(EXIF, "GPSLongitudeRef") == "W"

    def test_other_content_preserved(self):
        from facetransfer.output.xmp import patch_gps
        out = patch_gps(XMP_TEMPLATE, 48.1, -11.5)
        prolog = XMP_TEMPLATE[:XMP_TEMPLATE.index("<x:xmpmeta")]
        epilog = XMP_TEMPLATE[XMP_TEMPLATE.index("</x:xmpmeta>"):]
        assert out.startswith(prolog)
        assert out.endswith(epilog)
        assert 'tiff:Make="Canon"' in out
        assert 'xmlns:exif="http://ns.adobe.com/exif/1.0/"' in out

    def test_lightroom_packet_is_edited_in_place(self):
        from facetransfer.output.xmp import XMPDocument, patch_gps
        crs = "http://ns.adobe.com/camera-raw-settings/1.0/"
        head = (
            '<?xpacket begin="\ufeff" id="W5M0MpCehiHzreSzNTczkc9d"?>\n'
            '<x:xmpmeta xmlns:x="adobe:ns:meta/" x:xmptk="Adobe XMP Core 5.6-c140">\n'
            ' <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">\n'
            '  <rdf:Description rdf:about=""\n'
            '    xmlns:dc="http://purl.org/dc/elements/1.1/"\n'
            f'    xmlns:crs="{crs}"\n'
            f'    xmlns:exif="{EXIF}"\n'
            "    crs:Look='a&#xA;b'\n"
        )
        tail = (
            '   <dc:subject>\n'
            '    <rdf:Bag></rdf:Bag>\n'
            '   </dc:subject>\n'
        )
        end = (
            '  </rdf:Description>\n'
            ' </rdf:RDF>\n'
            '</x:xmpmeta>\n'
            '<?xpacket end="w"?>'
        )
        xmp = (
            head
            + '    exif:GPSAltitude="120/1"\n'
            + '    exif:ExposureTime="1/100">\n'
            + tail
            + '   <exif:GPSTimeStamp>2012-05-01T10:00:00Z</exif:GPSTimeStamp>\n'
            + end
        )
        expected = (
            head
            + '    exif:ExposureTime="1/100"\n'
            + '    exif:GPSVersionID="2.0.0.0"\n'
            + '    exif:GPSLatitude="48,6.0000000000N"\n'
            + '    exif:GPSLongitude="11,30.0000000000W"\n'
            + '    exif:GPSLatitudeRef="N"\n'
            + '    exif:GPSLongitudeRef="W">\n'
            + tail
            + end
        )
        out = patch_gps(xmp, 48.1, -11.5)
        assert out == expected
        assert XMPDocument(out).description.getAttributeNS(crs, "Look") == "a\nb"

    def test_existing_value_replaced_in_its_quotes(self):
        from facetransfer.output.xmp import patch_gps
        xmp = _xmp(description_attrs=f" xmlns:exif='{EXIF}' exif:GPSLatitude='1,0.0N' exif:Make='X'")
        out = patch_gps(xmp, 48.1, -11.5)
        assert "exif:GPSLatitude='48,6.0000000000N' exif:Make='X'" in out
        assert out.count("GPSLatitude=") == 1

    def test_self_closing_description(self):
        from facetransfer.output.xmp import XMPDocument, patch_gps
        xmp = (
            '<x:xmpmeta xmlns:x="adobe:ns:meta/"><rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'
            '<rdf:Description rdf:about=""/></rdf:RDF></x:xmpmeta>'
        )
        out = patch_gps(xmp, 48.1, -11.5)
        assert out.startswith(
            '<x:xmpmeta xmlns:x="adobe:ns:meta/"><rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'
            f'<rdf:Description rdf:about="" xmlns:exif="{EXIF}" exif:GPSVersionID="2.0.0.0"'
        )
        assert out.endswith(' exif:GPSLongitudeRef="W"/></rdf:RDF></x:xmpmeta>')
        assert XMPDocument(out).get_property(EXIF, "GPSLatitudeRef") == "N"

    def test_stale_fields_removed(self):
        from facetransfer.output.xmp import patch_gps
        xmp = _xmp(
            description_attrs=(
                f' xmlns:exif="{EXIF}" exif:GPSAltitude="120/1" exif:GPSImgDirection="90/1"'
                ' exif:ExposureTime="1/100" exif:GPSLatitude="1,0.0N"'
            ),
            body="\n   <exif:GPSTimeStamp>2012-05-01T10:00:00Z</exif:GPSTimeStamp>",
        )
        out = patch_gps(xmp, 48.1, -11.5)
        for stale in ("GPSAltitude", "GPSImgDirection", "GPSTimeStamp", "1,0.0N"):
            assert stale not in out
        assert 'exif:ExposureTime="1/100"' in out
        assert 'exif:GPSLatitude="48,6.0000000000N"' in out

    def test_element_form_is_replaced(self):
        from facetransfer.output.xmp import patch_gps
        xmp = _xmp(
            description_attrs=f' xmlns:exif="{EXIF}"',
            body="\n   <exif:GPSLongitude>5,0.0E</exif:GPSLongitude>",
        )
        out = patch_gps(xmp, 1.0, 2.0)
        assert "<exif:GPSLongitude>" not in out
        assert out.count("GPSLongitude=") == 1

    def test_reuses_existing_binding(self):
        from facetransfer.output.xmp import patch_gps
        out = patch_gps(_xmp(rdf_attrs=f' xmlns:ex="{EXIF}"'), 48.1, -11.5)
        assert 'ex:GPSLatitude="48,6.0000000000N"' in out
        assert "xmlns:exif=" not in out

    def test_prefix_collision(self):
        from facetransfer.output.xmp import patch_gps
        out = patch_gps(_xmp(description_attrs=' xmlns:exif="http://example.com/other/"'), 48.1, -11.5)
        assert f'xmlns:exif0="{EXIF}"' in out
        assert 'exif0:GPSLatitude="48,6.0000000000N"' in out

    def test_prefix_collision_in_ancestors(self):
        from facetransfer.output.xmp import XMPDocument
        doc = XMPDocument(_xmp(
            rdf_attrs=' xmlns:exif="http://example.com/a/"',
            description_attrs=' xmlns:exif0="http://example.com/b/"',
        ))
        assert doc.reconcile_namespace(EXIF, "exif") == "exif1"
        assert doc.reconcile_namespace(EXIF, "exif") == "exif1"

    def test_malformed_raises(self):
        from facetransfer.exceptions import XmpError
        from facetransfer.output.xmp import patch_gps
        with pytest.raises(XmpError):
            patch_gps("<x:xmpmeta", 1.0, 2.0)

    def test_missing_description_raises(self):
        from facetransfer.exceptions import XmpError
        from facetransfer.output.xmp import patch_gps
        xmp = '<x:xmpmeta xmlns:x="adobe:ns:meta/"><rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"/></x:xmpmeta>'
        with pytest.raises(XmpError):
            patch_gps(xmp, 1.0, 2.0)
