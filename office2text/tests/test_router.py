import logging
import unittest

import pytest

from office2text import extract
from office2text.exceptions import UnrecognizedFormatError, UnsupportedVariantError
from office2text.extractors.data_types import DetectedFormat, FormatTag
from office2text.mime_types import mime_type_for_name
from office2text.router import (
    DEFAULT_REGISTRY,
    Capabilities,
    DocumentKind,
    ParserEntry,
    ParserRegistry,
    get_extractor,
    is_supported_file,
)
from office2text.tests.ooxml_factory import (
    DOCUMENT_MAIN,
    ODF_PRESENTATION,
    PRESENTATION_MAIN,
    WORKBOOK_MAIN,
    presentation,
    slide_xml,
    sp,
)

logger = logging.getLogger(__name__)

tc = unittest.TestCase()


@pytest.mark.parametrize(
    "detected, kind",
    [
        (DetectedFormat(FormatTag.OOXML, PRESENTATION_MAIN), DocumentKind.PRESENTATION),
        (DetectedFormat(FormatTag.OOXML, WORKBOOK_MAIN), DocumentKind.SPREADSHEET),
        (DetectedFormat(FormatTag.OOXML, DOCUMENT_MAIN), DocumentKind.WORD_PROCESSING),
        (DetectedFormat(FormatTag.OOXML, None), DocumentKind.EMPTY_PACKAGE),
        (DetectedFormat(FormatTag.ODF, ODF_PRESENTATION), DocumentKind.ODF_PRESENTATION),
        (DetectedFormat(FormatTag.TEXT, None), DocumentKind.PLAIN_TEXT),
    ],
)
def test_kind_for(detected, kind):
    tc.assertEqual(kind, DEFAULT_REGISTRY.kind_for(detected))


@pytest.mark.parametrize(
    "detected",
    [
        DetectedFormat(FormatTag.OOXML, "application/vnd.ms-visio.drawing.main+xml"),
        DetectedFormat(FormatTag.ODF, "application/vnd.oasis.opendocument.graphics"),
        DetectedFormat(FormatTag.ZIP, None),
        DetectedFormat(FormatTag.OLE, None),
    ],
)
def test_known_container_with_unknown_dialect_is_unsupported(detected):
    with pytest.raises(UnsupportedVariantError):
        DEFAULT_REGISTRY.resolve(detected)


def test_every_kind_is_registered():
    tc.assertEqual(set(DocumentKind), set(DEFAULT_REGISTRY))


def test_registry_rejects_missing_kinds():
    entry = DEFAULT_REGISTRY[DocumentKind.PLAIN_TEXT]

    with pytest.raises(ValueError):
        ParserRegistry({DocumentKind.PLAIN_TEXT: entry})


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        DEFAULT_REGISTRY.entries[DocumentKind.PLAIN_TEXT] = None


def test_capabilities():
    tc.assertTrue(DEFAULT_REGISTRY[DocumentKind.PRESENTATION].capabilities.embedded_objects)
    tc.assertFalse(DEFAULT_REGISTRY[DocumentKind.PLAIN_TEXT].capabilities.metadata)
    tc.assertFalse(DEFAULT_REGISTRY[DocumentKind.EMPTY_PACKAGE].capabilities.text)


def test_custom_registry_without_embedded_objects():
    entries = dict(DEFAULT_REGISTRY.entries)
    original = entries[DocumentKind.PRESENTATION]
    entries[DocumentKind.PRESENTATION] = ParserEntry(
        DocumentKind.PRESENTATION,
        Capabilities(text=True, metadata=False),
        original.reader_factory,
    )
    registry = ParserRegistry(entries)
    builder = presentation([slide_xml(sp("Slide"))])
    builder.add_part(
        "ppt/notesSlides/notesSlide1.xml", slide_xml(sp("Note"), root="notes")
    )
    builder.relate("ppt/slides/slide1.xml", "notesSlide", "ppt/notesSlides/notesSlide1.xml")

    result = extract(builder.build(), registry=registry)

    tc.assertEqual("Slide", result.get_full_text())


@pytest.mark.parametrize(
    "path, expected",
    [
        ("deck.pptx", True),
        ("Book.XLSX", True),
        ("notes.odt", True),
        ("data.csv", True),
        ("old.doc", False),
        ("image.png", False),
    ],
)
def test_is_supported_file(path, expected):
    tc.assertEqual(expected, is_supported_file(path))


def test_get_extractor():
    tc.assertEqual(DocumentKind.SPREADSHEET, get_extractor("budget.xlsm").kind)
    tc.assertEqual(DocumentKind.ODF_TEXT, get_extractor("/tmp/letter.odt").kind)

    with pytest.raises(UnrecognizedFormatError):
        get_extractor("scan.pdf")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("parts.csv", "text/csv"),
        ("data.json", "application/json"),
        ("table.TSV", "text/tab-separated-values"),
        ("notes.txt", "text/plain"),
        ("deck.pptx", "application/vnd.openxmlformats-officedocument.presentationml.presentation"),
        ("letter.odt", "application/vnd.oasis.opendocument.text"),
        ("xlsm", "application/vnd.ms-excel.sheet.macroEnabled.12"),
        (None, None),
    ],
)
def test_mime_type_for_name(name, expected):
    tc.assertEqual(expected, mime_type_for_name(name))


def test_csv_hint_sets_text_csv_content_type():
    result = extract(b"name,qty\nbolt,3\n", hint="parts.csv")

    tc.assertEqual("text/csv", result.metadata["content-type"])
