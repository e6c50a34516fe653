import codecs
import logging
import unittest

import pytest

from office2text import extract, extract_bytes
from office2text.exceptions import UnrecognizedFormatError
from office2text.extractors.plain_extractor import detect_and_decode

logger = logging.getLogger(__name__)

tc = unittest.TestCase()


def test_utf8_text_with_hint():
    result = extract_bytes(b"first line\nsecond line\nthird", "notes.txt")

    tc.assertEqual("first line\nsecond line\nthird", result.get_full_text())
    tc.assertEqual("plain-text", result.metadata["format"])
    tc.assertEqual("text/plain", result.metadata["content-type"])
    tc.assertEqual("utf-8", result.metadata["encoding"])
    tc.assertEqual("3", result.metadata["line-count"])


def test_mime_type_hint_is_kept_as_content_type():
    result = extract(b"a,b\n1,2", hint="text/csv")

    tc.assertEqual("a,b\n1,2", result.get_full_text())
    tc.assertEqual("text/csv", result.metadata["content-type"])


def test_text_without_bom_or_hint_is_unrecognized():
    with pytest.raises(UnrecognizedFormatError):
        extract(b"just some words")


def test_binary_data_with_text_hint_is_unrecognized():
    with pytest.raises(UnrecognizedFormatError):
        extract(b"abc\x00\x01\x02def", hint="notes.txt")


def test_utf16_bom_is_detected_without_hint():
    result = extract("hello world".encode("utf-16"))

    tc.assertEqual("hello world", result.get_full_text())
    tc.assertEqual("utf-16", result.metadata["encoding"])


def test_utf8_bom_is_removed():
    result = extract(codecs.BOM_UTF8 + "h\u00e9llo".encode("utf-8"))

    tc.assertEqual("h\u00e9llo", result.get_full_text())
    tc.assertEqual("utf-8-sig", result.metadata["encoding"])


def test_legacy_encoding_is_detected():
    data = "Le caf\u00e9 est tr\u00e8s bon, merci beaucoup pour votre aide.".encode("latin-1")

    result = extract_bytes(data, "notes.txt")

    tc.assertIn("Le caf", result.get_full_text())
    tc.assertNotEqual("utf-8", result.metadata["encoding"])


def test_line_endings_and_control_characters_are_normalized():
    result = extract_bytes(b"one\r\ntwo\rthree\nbell\x07here", "log.txt")

    tc.assertEqual("one\ntwo\nthree\nbell\ufffdhere", result.get_full_text())


def test_form_feed_page_break_is_a_line_break():
    result = extract_bytes(b"page one\x0cpage two", "report.txt")

    tc.assertEqual("page one\npage two", result.get_full_text())


def test_long_space_run_is_kept():
    data = b"a" + b" " * 40_000 + b"b"

    result = extract_bytes(data, "note.txt")

    tc.assertEqual(data.decode("ascii"), result.get_full_text())


def test_blank_text_is_an_empty_success():
    result = extract_bytes(b"   \n\t\n", "empty.txt")

    tc.assertEqual("", result.get_full_text())
    tc.assertFalse(result.partial)


def test_detect_and_decode():
    tc.assertEqual(("", "utf-8"), detect_and_decode(b""))
    tc.assertEqual(("plain", "utf-8"), detect_and_decode(b"plain"))
    tc.assertEqual(("hi", "utf-32"), detect_and_decode("hi".encode("utf-32")))
