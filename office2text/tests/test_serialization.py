import json
import logging
import unittest

from office2text import ExtractionConfig, extract
from office2text.extractors.data_types import (
    DetectedFormat,
    ExtractionResult,
    FormatTag,
    PartDiagnostic,
)
from office2text.exceptions import CorruptedPartError
from office2text.serialization import serialize_result
from office2text.tests.ooxml_factory import presentation, slide_xml, sp

logger = logging.getLogger(__name__)

tc = unittest.TestCase()


def test_serialize_extracted_presentation():
    result = extract(presentation([slide_xml(sp("One")), slide_xml(sp("Two"))]).build())

    payload = serialize_result(result)

    tc.assertEqual(
        ["content", "metadata", "partial", "diagnostics", "format"], list(payload)
    )
    tc.assertEqual("One\n\nTwo", payload["content"])
    tc.assertFalse(payload["partial"])
    tc.assertEqual([], payload["diagnostics"])
    tc.assertEqual("ooxml", payload["format"]["tag"])
    tc.assertEqual(1.0, payload["format"]["confidence"])
    tc.assertEqual("2", payload["metadata"]["slide-count"])
    json.dumps(payload)


def test_serialize_diagnostics():
    error = CorruptedPartError(
        "Malformed XML in part [ppt/slides/slide2.xml]", part="ppt/slides/slide2.xml"
    )
    result = ExtractionResult(
        content="One",
        partial=True,
        diagnostics=[PartDiagnostic("ppt/slides/slide2.xml", error)],
    )

    payload = serialize_result(result)

    tc.assertTrue(payload["partial"])
    tc.assertEqual(
        [
            {
                "part": "ppt/slides/slide2.xml",
                "kind": "CorruptedPart",
                "message": "Malformed XML in part [ppt/slides/slide2.xml]",
            }
        ],
        payload["diagnostics"],
    )
    tc.assertIsNone(payload["format"])


def test_serialize_copies_list_metadata():
    keywords = ["a", "b"]
    result = ExtractionResult(
        metadata={"keywords": keywords},
        detected_format=DetectedFormat(FormatTag.TEXT, None, confidence=0.5),
    )

    payload = serialize_result(result)
    payload["metadata"]["keywords"].append("c")

    tc.assertEqual(["a", "b"], keywords)
    tc.assertEqual({"tag": "text", "dialect": None, "confidence": 0.5}, payload["format"])


def test_serialize_streamed_content_is_materialized():
    config = ExtractionConfig(stream_threshold=3)
    result = extract(
        presentation([slide_xml(sp("One")), slide_xml(sp("Two"))]).build(), config=config
    )
    tc.assertTrue(result.is_streamed)

    payload = serialize_result(result)

    tc.assertEqual("One\n\nTwo", payload["content"])
    tc.assertEqual("One\n\nTwo", result.get_full_text())
