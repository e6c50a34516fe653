"""
Metadata Collection
===================

Document properties gathered into one ordered, flat mapping with
kebab-case keys.

Property Parts
--------------
OOXML packages point to their property parts from ``_rels/.rels``:

    docProps/core.xml: Core properties (title, author, dates, keywords)
    docProps/app.xml: Extended properties (application, statistics)
    docProps/custom.xml: User-defined properties

ODF packages keep everything in ``meta.xml``: Dublin Core elements,
``meta:*`` elements, ``meta:document-statistic`` attributes and
``meta:user-defined`` entries.

Values are kept as the text the document stores. The first writer of a key
wins, so keys set from detection are never overwritten by properties, and
properties are never overwritten by values derived later.
"""

import logging
import re
from typing import Callable, Dict, Iterable, List, Tuple
from xml.etree import ElementTree as ET

from office2text.exceptions import ExtractionError, ResourceLimitExceededError
from office2text.extractors.data_types import DiagnosticLog, MetadataValue
from office2text.extractors.util.zip_utils import parse_xml

logger = logging.getLogger(__name__)

CP_NS = "{http://schemas.openxmlformats.org/package/2006/metadata/core-properties}"
DC_NS = "{http://purl.org/dc/elements/1.1/}"
DCTERMS_NS = "{http://purl.org/dc/terms/}"
EP_NS = "{http://schemas.openxmlformats.org/officeDocument/2006/extended-properties}"
CUSTOM_NS = "{http://schemas.openxmlformats.org/officeDocument/2006/custom-properties}"
VT_NS = "{http://schemas.openxmlformats.org/officeDocument/2006/docPropsVTypes}"
OFFICE_NS = "{urn:oasis:names:tc:opendocument:xmlns:office:1.0}"
META_NS = "{urn:oasis:names:tc:opendocument:xmlns:meta:1.0}"
XLINK_NS = "{http://www.w3.org/1999/xlink}"

CORE_PROPERTIES = (
    (f"{DC_NS}title", "title"),
    (f"{DC_NS}subject", "subject"),
    (f"{DC_NS}creator", "author"),
    (f"{DC_NS}description", "description"),
    (f"{CP_NS}category", "category"),
    (f"{CP_NS}contentStatus", "content-status"),
    (f"{DC_NS}language", "language"),
    (f"{DC_NS}identifier", "identifier"),
    (f"{CP_NS}version", "version"),
    (f"{CP_NS}revision", "revision"),
    (f"{CP_NS}lastModifiedBy", "last-modified-by"),
    (f"{DCTERMS_NS}created", "created"),
    (f"{DCTERMS_NS}modified", "modified"),
    (f"{CP_NS}lastPrinted", "last-printed"),
)
CP_KEYWORDS = f"{CP_NS}keywords"

APP_PROPERTIES = (
    ("Application", "application"),
    ("AppVersion", "app-version"),
    ("Company", "company"),
    ("Manager", "manager"),
    ("Template", "template"),
    ("Pages", "page-count"),
    ("Words", "word-count"),
    ("Characters", "character-count"),
    ("Lines", "line-count"),
    ("Paragraphs", "paragraph-count"),
    ("Slides", "slide-count"),
    ("Notes", "note-count"),
    ("HiddenSlides", "hidden-slide-count"),
    ("TotalTime", "total-edit-time"),
)

ODF_META_PART = "meta.xml"
ODF_PROPERTIES = (
    (f"{DC_NS}title", "title"),
    (f"{DC_NS}subject", "subject"),
    (f"{META_NS}initial-creator", "author"),
    (f"{DC_NS}description", "description"),
    (f"{DC_NS}language", "language"),
    (f"{META_NS}editing-cycles", "revision"),
    (f"{DC_NS}creator", "last-modified-by"),
    (f"{META_NS}creation-date", "created"),
    (f"{DC_NS}date", "modified"),
    (f"{META_NS}print-date", "last-printed"),
    (f"{META_NS}generator", "application"),
    (f"{META_NS}editing-duration", "total-edit-time"),
)
ODF_STATISTICS = (
    ("page-count", "page-count"),
    ("word-count", "word-count"),
    ("character-count", "character-count"),
    ("paragraph-count", "paragraph-count"),
)

_KEYWORD_SEPARATORS = re.compile(r"[,;]")


class MetadataBuilder:
    """Ordered metadata mapping where the first writer of a key wins."""

    def __init__(self):
        self._entries: Dict[str, MetadataValue] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, key: str, value: str | None) -> None:
        if value is None:
            return
        value = value.strip()
        if value and key not in self._entries:
            self._entries[key] = value

    def add_many(self, key: str, values: Iterable[str | None]) -> None:
        cleaned = [v.strip() for v in values if v and v.strip()]
        if cleaned and key not in self._entries:
            self._entries[key] = cleaned

    def update(self, values: Dict[str, MetadataValue]) -> None:
        for key, value in values.items():
            if isinstance(value, list):
                self.add_many(key, value)
            else:
                self.add(key, value)

    def as_dict(self) -> Dict[str, MetadataValue]:
        return {
            key: list(value) if isinstance(value, list) else value
            for key, value in self._entries.items()
        }


def split_keywords(value: str | None) -> List[str]:
    if not value:
        return []
    return [k.strip() for k in _KEYWORD_SEPARATORS.split(value) if k.strip()]


def _text(root: ET.Element, tag: str) -> str | None:
    elem = root.find(tag)
    if elem is not None and elem.text:
        return elem.text
    return None


def collect_core_properties(root: ET.Element, builder: MetadataBuilder) -> None:
    for tag, key in CORE_PROPERTIES:
        builder.add(key, _text(root, tag))
    builder.add_many("keywords", split_keywords(_text(root, CP_KEYWORDS)))


def collect_app_properties(root: ET.Element, builder: MetadataBuilder) -> None:
    for name, key in APP_PROPERTIES:
        builder.add(key, _text(root, f"{EP_NS}{name}"))


def _variant_value(prop: ET.Element) -> MetadataValue | None:
    for value in prop:
        if value.tag == f"{VT_NS}vector":
            return [v.text for v in value if v.text and v.text.strip()]
        return value.text
    return None


def collect_custom_properties(root: ET.Element, builder: MetadataBuilder) -> None:
    for prop in root.iter(f"{CUSTOM_NS}property"):
        name = prop.get("name")
        if not name:
            continue
        value = _variant_value(prop)
        if isinstance(value, list):
            builder.add_many(f"custom:{name}", value)
        else:
            builder.add(f"custom:{name}", value)


def collect_odf_meta(root: ET.Element, builder: MetadataBuilder) -> None:
    meta = root.find(f"{OFFICE_NS}meta")
    if meta is None:
        return
    for tag, key in ODF_PROPERTIES:
        builder.add(key, _text(meta, tag))
    # documents without an initial creator credit the last editor
    builder.add("author", _text(meta, f"{DC_NS}creator"))

    keywords: List[str] = []
    for keyword in meta.findall(f"{META_NS}keyword"):
        keywords.extend(split_keywords(keyword.text))
    builder.add_many("keywords", keywords)

    template = meta.find(f"{META_NS}template")
    if template is not None:
        builder.add("template", template.get(f"{XLINK_NS}title"))

    statistic = meta.find(f"{META_NS}document-statistic")
    if statistic is not None:
        for attribute, key in ODF_STATISTICS:
            builder.add(key, statistic.get(f"{META_NS}{attribute}"))

    for user_defined in meta.findall(f"{META_NS}user-defined"):
        name = user_defined.get(f"{META_NS}name")
        if name:
            builder.add(f"custom:{name}", user_defined.text)


Collector = Callable[[ET.Element, MetadataBuilder], None]

# relationship type suffix, conventional location, collector
OOXML_PROPERTY_PARTS: Tuple[Tuple[str, str, Collector], ...] = (
    ("core-properties", "docProps/core.xml", collect_core_properties),
    ("extended-properties", "docProps/app.xml", collect_app_properties),
    ("custom-properties", "docProps/custom.xml", collect_custom_properties),
)


def _read_xml(container, name: str, diagnostics: DiagnosticLog) -> ET.Element | None:
    qualified = container.qualify(name)
    try:
        return parse_xml(container.read_part(name).data, qualified)
    except ResourceLimitExceededError:
        raise
    except ExtractionError as exc:
        diagnostics.record(qualified, exc)
        return None


def _property_part(container, suffix: str, fallback: str) -> str | None:
    for rel in container.relationships.of_type("", suffix):
        if not rel.external and container.exists(rel.target):
            return rel.target
    return fallback if container.exists(fallback) else None


def collect_package_metadata(
    container, builder: MetadataBuilder, diagnostics: DiagnosticLog
) -> None:
    """
    Add the document properties of a package to ``builder``.

    Args:
        container: The root container of the document.
        builder: Receives the properties; existing keys are kept.
        diagnostics: Receives one entry per malformed property part.
    """
    if getattr(container, "is_odf", False):
        if container.exists(ODF_META_PART):
            root = _read_xml(container, ODF_META_PART, diagnostics)
            if root is not None:
                collect_odf_meta(root, builder)
        return

    for suffix, fallback, collector in OOXML_PROPERTY_PARTS:
        name = _property_part(container, suffix, fallback)
        if name is None:
            continue
        root = _read_xml(container, name, diagnostics)
        if root is not None:
            logger.debug("Reading document properties from [%s]", name)
            collector(root, builder)
