import logging
import unittest

import pytest

from office2text import extract
from office2text.exceptions import CorruptedPartError
from office2text.tests.ooxml_factory import (
    DOCUMENT_MAIN,
    add_core_properties,
    document,
    w_paragraph,
    w_part,
    w_table,
)

logger = logging.getLogger(__name__)

tc = unittest.TestCase()

MAIN = "word/document.xml"
WPS_NS = "http://schemas.microsoft.com/office/word/2010/wordprocessingShape"


def test_paragraphs_and_tables_in_body_order():
    builder = document(
        w_paragraph("Heading"),
        w_table(("a", "b"), ("c", "d")),
        w_paragraph("Closing ", "words"),
    )

    result = extract(builder.build())

    tc.assertEqual("Heading\na\tb\nc\td\nClosing words", result.get_full_text())
    tc.assertEqual("word-processing", result.metadata["format"])
    tc.assertEqual(DOCUMENT_MAIN, result.metadata["content-type"])


def test_tabs_and_breaks_inside_runs():
    paragraph = "<w:p><w:r><w:t>a</w:t><w:tab/><w:t>b</w:t><w:br/><w:t>c</w:t></w:r></w:p>"

    result = extract(document(paragraph).build())

    tc.assertEqual("a\tb\nc", result.get_full_text())


def test_deleted_revisions_are_skipped_and_insertions_kept():
    paragraph = (
        "<w:p><w:r><w:t>keep</w:t></w:r>"
        "<w:del><w:r><w:delText>gone</w:delText></w:r></w:del>"
        '<w:ins><w:r><w:t xml:space="preserve"> added</w:t></w:r></w:ins></w:p>'
    )

    result = extract(document(paragraph).build())

    tc.assertEqual("keep added", result.get_full_text())


def test_field_instructions_are_skipped():
    paragraph = (
        "<w:p><w:r><w:instrText>PAGE</w:instrText></w:r>"
        "<w:r><w:t>Page 3</w:t></w:r></w:p>"
    )

    tc.assertEqual("Page 3", extract(document(paragraph).build()).get_full_text())


def test_text_box_read_once_from_choice():
    box = f"<w:txbxContent>{w_paragraph('boxed')}</w:txbxContent>"
    paragraph = (
        "<w:p><w:r><w:t>anchor</w:t></w:r><w:r><mc:AlternateContent>"
        f'<mc:Choice Requires="wps"><w:drawing><wps:txbx xmlns:wps="{WPS_NS}">{box}'
        "</wps:txbx></w:drawing></mc:Choice>"
        f"<mc:Fallback><w:pict>{box}</w:pict></mc:Fallback>"
        "</mc:AlternateContent></w:r></w:p>"
    )

    result = extract(document(paragraph).build())

    tc.assertEqual("anchor\nboxed", result.get_full_text())


def test_content_controls_are_read():
    sdt = f"<w:sdt><w:sdtPr/><w:sdtContent>{w_paragraph('in control')}</w:sdtContent></w:sdt>"

    tc.assertEqual("in control", extract(document(sdt).build()).get_full_text())


def test_related_parts_follow_body_in_declaration_order():
    builder = document(w_paragraph("Body"))
    builder.add_part("word/header1.xml", w_part("hdr", w_paragraph("Header text")))
    builder.add_part("word/footer1.xml", w_part("ftr", w_paragraph("Footer text")))
    builder.add_part(
        "word/footnotes.xml",
        w_part(
            "footnotes",
            '<w:footnote w:type="separator" w:id="-1"><w:p><w:r><w:separator/></w:r></w:p>'
            f'</w:footnote><w:footnote w:id="1">{w_paragraph("Note text")}</w:footnote>',
        ),
    )
    builder.add_part(
        "word/comments.xml",
        w_part(
            "comments",
            '<w:comment w:id="0" w:author="Eve" w:date="2024-05-01T10:00:00Z">'
            f"{w_paragraph('Looks good')}</w:comment>",
        ),
    )
    builder.relate(MAIN, "header", "word/header1.xml")
    builder.relate(MAIN, "footer", "word/footer1.xml")
    builder.relate(MAIN, "footnotes", "word/footnotes.xml")
    builder.relate(MAIN, "comments", "word/comments.xml")

    result = extract(builder.build())

    tc.assertEqual(
        "Body\n\nHeader text\n\nFooter text\n\nNote text\n\n"
        "[Comment: Eve@2024-05-01T10:00:00Z: Looks good]",
        result.get_full_text(),
    )


def test_header_shared_by_sections_is_read_once():
    builder = document(w_paragraph("Body"))
    builder.add_part("word/header1.xml", w_part("hdr", w_paragraph("Same header")))
    builder.relate(MAIN, "header", "word/header1.xml")
    builder.relate(MAIN, "header", "word/header1.xml")

    tc.assertEqual("Body\n\nSame header", extract(builder.build()).get_full_text())


def test_broken_footer_is_a_diagnostic():
    builder = document(w_paragraph("Body"))
    builder.add_part("word/footer1.xml", "<w:ftr")
    builder.relate(MAIN, "footer", "word/footer1.xml")

    result = extract(builder.build())

    tc.assertEqual("Body", result.get_full_text())
    tc.assertEqual(["word/footer1.xml"], [d.part for d in result.diagnostics])


def test_document_without_body_is_corrupted():
    builder = document()
    builder.parts[MAIN] = w_part("document", "")

    with pytest.raises(CorruptedPartError):
        extract(builder.build())


def test_core_properties():
    builder = add_core_properties(
        document(w_paragraph("x")),
        title="Report",
        creator="Ann",
        last_modified_by="Bob",
        created="2024-01-02T03:04:05Z",
    )

    metadata = extract(builder.build()).metadata

    tc.assertEqual("Report", metadata["title"])
    tc.assertEqual("Ann", metadata["author"])
    tc.assertEqual("Bob", metadata["last-modified-by"])
    tc.assertEqual("2024-01-02T03:04:05Z", metadata["created"])
