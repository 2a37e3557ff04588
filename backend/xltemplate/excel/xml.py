from __future__ import annotations

import re

from lxml import etree

from .errors import MalformedTemplate

NS_MAIN = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
NS_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
NS_PKG_REL = "http://schemas.openxmlformats.org/package/2006/relationships"
NS_CONTENT_TYPES = "http://schemas.openxmlformats.org/package/2006/content-types"

XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

# Control characters are not allowed in XML 1.0; Excel writes them as _xHHHH_.
_XML_ILLEGAL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=False)


def qn(tag: str, ns: str = NS_MAIN) -> str:
    return f"{{{ns}}}{tag}"


def parse_xml(data: bytes, *, what: str = "part") -> etree._Element:
    try:
        return etree.fromstring(data, parser=_PARSER)
    except etree.XMLSyntaxError as e:
        raise MalformedTemplate(f"{what} is not well-formed XML: {e}") from e


def serialize_xml(root: etree._Element) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)


def xml_safe(text: str) -> str:
    return _XML_ILLEGAL_RE.sub(lambda m: f"_x{ord(m.group(0)):04X}_", text)
