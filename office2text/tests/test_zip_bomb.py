import io

import pytest

from office2text import extract
from office2text.exceptions import ErrorKind, ExtractionZipBombError
from office2text.extractors.util.zip_bomb import ZipBombLimits, open_zipfile
from office2text.tests.ooxml_factory import document, embed_package, make_zip, w_paragraph


def _bomb_document() -> bytes:
    builder = document(w_paragraph("inner"))
    builder.add_part("word/media/padding.bin", b"A" * 2_000_000)
    return builder.build()


def test_zip_bomb_detection_can_use_low_thresholds__compression_ratio() -> None:
    buffer = io.BytesIO(make_zip({"a.txt": b"A" * 10_000}))

    with pytest.raises(ExtractionZipBombError):
        open_zipfile(
            buffer,
            limits=ZipBombLimits(
                max_entry_compression_ratio=10.0,
                max_total_compression_ratio=10.0,
            ),
            source="test",
        )

    zf = open_zipfile(
        buffer,
        limits=ZipBombLimits(
            max_entry_compression_ratio=10_000.0,
            max_total_compression_ratio=10_000.0,
        ),
        source="test",
    )
    zf.close()


def test_zip_bomb_detection_can_use_low_thresholds__entry_count() -> None:
    buffer = io.BytesIO(make_zip({"a.txt": b"a", "b.txt": b"b", "c.txt": b"c"}))

    with pytest.raises(ExtractionZipBombError) as exc_info:
        open_zipfile(buffer, limits=ZipBombLimits(max_entries=2), source="test")

    assert exc_info.value.part == "test"


def test_zip_bomb_detection_single_entry_size() -> None:
    buffer = io.BytesIO(make_zip({"a.txt": b"a" * 1000}))

    with pytest.raises(ExtractionZipBombError):
        open_zipfile(buffer, limits=ZipBombLimits(max_single_uncompressed_bytes=100))


def test_top_level_zip_bomb_is_fatal() -> None:
    with pytest.raises(ExtractionZipBombError) as exc_info:
        extract(_bomb_document())

    assert exc_info.value.kind is ErrorKind.RESOURCE_LIMIT_EXCEEDED


def test_embedded_zip_bomb_is_a_diagnostic() -> None:
    builder = document(w_paragraph("outer"))
    embed_package(builder, "word/document.xml", "word/embeddings/bomb.docx", _bomb_document())

    result = extract(builder.build())

    assert result.get_full_text() == "outer"
    assert result.partial is True
    assert [d.part for d in result.diagnostics] == ["word/embeddings/bomb.docx"]
    assert result.diagnostics[0].kind is ErrorKind.RESOURCE_LIMIT_EXCEEDED


def test_entry_ratio_violation_names_the_entry() -> None:
    buffer = io.BytesIO(make_zip({"small.txt": b"s", "word/media/big.bin": b"A" * 50_000}))

    with pytest.raises(ExtractionZipBombError) as exc_info:
        open_zipfile(
            buffer,
            limits=ZipBombLimits(max_entry_compression_ratio=10.0),
            source="word/embeddings/inner.docx",
        )

    assert exc_info.value.part == "word/embeddings/inner.docx!word/media/big.bin"


def test_entry_size_violation_without_source_names_the_entry() -> None:
    buffer = io.BytesIO(make_zip({"a.txt": b"a" * 1000}))

    with pytest.raises(ExtractionZipBombError) as exc_info:
        open_zipfile(buffer, limits=ZipBombLimits(max_single_uncompressed_bytes=100))

    assert exc_info.value.part == "a.txt"


def test_total_ratio_violation_names_the_container() -> None:
    buffer = io.BytesIO(make_zip({"a.txt": b"A" * 10_000, "b.txt": b"B" * 10_000}))

    with pytest.raises(ExtractionZipBombError) as exc_info:
        open_zipfile(
            buffer,
            limits=ZipBombLimits(
                max_entry_compression_ratio=10_000.0,
                max_total_compression_ratio=10.0,
            ),
            source="outer.xlsx",
        )

    assert exc_info.value.part == "outer.xlsx"
