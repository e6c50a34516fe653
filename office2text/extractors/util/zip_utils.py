"""Helpers for reading XML parts and relationships out of office packages."""

import codecs
import logging
import posixpath
import re
from urllib.parse import unquote
from xml.etree import ElementTree as ET

from office2text.assembler import decode_bytes
from office2text.exceptions import CorruptedPartError
from office2text.extractors.data_types import Relationship

logger = logging.getLogger(__name__)

REL_NS = "{http://schemas.openxmlformats.org/package/2006/relationships}"
REL_RELATIONSHIP = f"{REL_NS}Relationship"

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")
_XML_ENCODING = re.compile(rb"""^\s*<\?xml[^>]*encoding\s*=\s*["']([A-Za-z0-9._\-]+)["']""")
# characters that XML 1.0 forbids even though they decode fine
_ILLEGAL_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")

_BOMS = (
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


def sniff_xml_encoding(data: bytes) -> tuple[str, int]:
    """Return the declared or detected encoding and the BOM length to skip."""
    for bom, encoding in _BOMS:
        if data.startswith(bom):
            return encoding, len(bom)
    if data[:4] == b"<\x00?\x00":
        return "utf-16-le", 0
    if data[:4] == b"\x00<\x00?":
        return "utf-16-be", 0
    match = _XML_ENCODING.match(data[:200])
    if match:
        encoding = match.group(1).decode("ascii").lower()
        try:
            codecs.lookup(encoding)
        except LookupError:
            logger.debug("Unknown XML encoding declared: %s", encoding)
            return "utf-8", 0
        return encoding, 0
    return "utf-8", 0


def decode_xml_bytes(data: bytes) -> str:
    """Decode an XML part to text, ready to hand to the parser.

    Undecodable byte runs become one U+FFFD each, the XML declaration is
    dropped (the text is already decoded) and characters XML forbids are
    replaced so a single stray control byte does not sink the whole part.
    """
    encoding, skip = sniff_xml_encoding(data)
    text = decode_bytes(data[skip:], encoding)
    text = _XML_DECLARATION.sub("", text, count=1)
    return _ILLEGAL_XML_CHARS.sub("\ufffd", text)


def parse_xml(data: bytes, part: str) -> ET.Element:
    """Parse one XML part, raising CorruptedPartError on malformed content."""
    try:
        return ET.fromstring(decode_xml_bytes(data))
    except ET.ParseError as exc:
        raise CorruptedPartError(
            f"Malformed XML in part [{part}]: {exc}", part=part, cause=exc
        ) from exc


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def rels_path_for(part: str) -> str:
    """``ppt/slides/slide1.xml`` -> ``ppt/slides/_rels/slide1.xml.rels``."""
    directory, name = posixpath.split(part)
    return posixpath.join(directory, "_rels", f"{name}.rels")


def source_for_rels_path(rels_path: str) -> str | None:
    """Inverse of :func:`rels_path_for`. ``_rels/.rels`` maps to ``""``."""
    directory, name = posixpath.split(rels_path)
    if posixpath.basename(directory) != "_rels" or not name.endswith(".rels"):
        return None
    source_dir = posixpath.dirname(directory)
    source_name = name[: -len(".rels")]
    if not source_name:
        return "" if not source_dir else None
    return posixpath.join(source_dir, source_name) if source_dir else source_name


def resolve_part_name(source: str, target: str) -> str:
    """Resolve a relationship target against the part that declares it.

    Absolute targets are rooted at the package. Relative targets are resolved
    against the source's directory; ``..`` segments never escape the root.
    """
    target = unquote(target.split("#", 1)[0])
    if target.startswith("/"):
        base = ""
        target = target.lstrip("/")
    else:
        base = posixpath.dirname(source)

    normalized: list[str] = []
    for segment in f"{base}/{target}".split("/"):
        if segment == "..":
            if normalized:
                normalized.pop()
        elif segment and segment != ".":
            normalized.append(segment)
    return "/".join(normalized)


def parse_relationships(root: ET.Element, source: str) -> list[Relationship]:
    """Read every Relationship element of a parsed ``.rels`` part."""
    relationships: list[Relationship] = []
    for rel in root.iter(REL_RELATIONSHIP):
        rel_id = rel.get("Id") or ""
        rel_type = rel.get("Type") or ""
        target = rel.get("Target") or ""
        if not target:
            continue
        external = (rel.get("TargetMode") or "").lower() == "external"
        relationships.append(
            Relationship(
                id=rel_id,
                type=rel_type,
                target=target if external else resolve_part_name(source, target),
                external=external,
            )
        )
    return relationships


CT_NS = "{http://schemas.openxmlformats.org/package/2006/content-types}"
CONTENT_TYPES_PART = "[Content_Types].xml"
PACKAGE_RELS_PART = "_rels/.rels"


class ContentTypes:
    """Parsed ``[Content_Types].xml``: extension defaults plus part overrides."""

    def __init__(self, defaults: dict[str, str] | None = None, overrides: dict[str, str] | None = None):
        self.defaults = defaults or {}
        self.overrides = overrides or {}

    @classmethod
    def from_xml(cls, root: ET.Element) -> "ContentTypes":
        defaults: dict[str, str] = {}
        overrides: dict[str, str] = {}
        for elem in root.iter(f"{CT_NS}Default"):
            ext = elem.get("Extension")
            content_type = elem.get("ContentType")
            if ext and content_type:
                defaults[ext.lower()] = content_type
        for elem in root.iter(f"{CT_NS}Override"):
            name = elem.get("PartName")
            content_type = elem.get("ContentType")
            if name and content_type:
                overrides[unquote(name).lstrip("/").lower()] = content_type
        return cls(defaults, overrides)

    def lookup(self, part: str) -> str | None:
        """Content type of a part; part names compare case-insensitively."""
        key = part.lstrip("/").lower()
        if key in self.overrides:
            return self.overrides[key]
        ext = posixpath.splitext(key)[1].lstrip(".")
        return self.defaults.get(ext)


def find_main_part(
    names: "set[str] | frozenset[str]",
    package_relationships: "list[Relationship] | tuple[Relationship, ...]",
    fallbacks: tuple[str, ...] = (),
) -> str | None:
    """Locate the officeDocument part of an OOXML package.

    The package relationship wins; well-known part names are only tried when
    the package declares no usable officeDocument relationship.
    """
    for rel in package_relationships:
        if rel.is_type("officeDocument") and not rel.external and rel.target in names:
            return rel.target
    for name in fallbacks:
        if name in names:
            return name
    return None
