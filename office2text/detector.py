"""
Format detection
================

Classifies a byte buffer into one of the container families in
:class:`~office2text.extractors.data_types.FormatTag`.

Detection order
---------------
1. Magic signature. ZIP local file header (or the empty-archive end record),
   OLE2 compound file header, and the Unicode byte order marks.
2. Container structure. For ZIP input the central directory and a handful of
   small marker entries decide between OOXML, ODF and a plain archive:

       mimetype                 ODF media type (stored first, uncompressed)
       [Content_Types].xml      OOXML content type registry
       _rels/.rels              OOXML package relationships

3. The declared hint (file name, extension or MIME type). The hint is advisory
   only: it never overrides a signature and only lowers the confidence of a
   conflicting result. Plain text has no signature, so a text-like hint is the
   only way text without a BOM is accepted.

The detector only reads the in-memory buffer.
"""

import io
import logging
import zipfile
from xml.etree import ElementTree as ET

from office2text.exceptions import (
    CorruptedPartError,
    ExtractionError,
    TruncatedInputError,
    UnrecognizedFormatError,
)
from office2text.extractors.data_types import DetectedFormat, FormatTag
from office2text.extractors.util.zip_utils import (
    CONTENT_TYPES_PART,
    PACKAGE_RELS_PART,
    ContentTypes,
    find_main_part,
    parse_relationships,
    parse_xml,
)
from office2text.mime_types import (
    FALLBACK_MAIN_PARTS,
    ODF_MIMETYPE_PREFIX,
    is_text_hint,
    mime_type_for_name,
)

logger = logging.getLogger(__name__)

MIN_SIGNATURE_LENGTH = 4

ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")
ZIP_END_OF_CENTRAL_DIRECTORY = b"PK\x05\x06"
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

TEXT_BOMS = (
    b"\xff\xfe\x00\x00",
    b"\x00\x00\xfe\xff",
    b"\xef\xbb\xbf",
    b"\xff\xfe",
    b"\xfe\xff",
)

TEXT_SNIFF_LENGTH = 8 * 1024
# marker entries larger than this are not read during detection
_MAX_MARKER_SIZE = 4 * 1024 * 1024

ODF_MANIFEST_NS = "{urn:oasis:names:tc:opendocument:xmlns:manifest:1.0}"


def _hint_mime_type(hint: str | None) -> str | None:
    if not hint:
        return None
    if "/" in hint and "." not in hint.rsplit("/", 1)[-1]:
        return hint.lower()
    return mime_type_for_name(hint)


def _hint_family(mime_type: str | None) -> FormatTag | None:
    if not mime_type:
        return None
    if "openxmlformats" in mime_type or "macroenabled" in mime_type.lower():
        return FormatTag.OOXML
    if mime_type.startswith(ODF_MIMETYPE_PREFIX):
        return FormatTag.ODF
    if mime_type in (
        "application/msword",
        "application/vnd.ms-excel",
        "application/vnd.ms-powerpoint",
    ):
        return FormatTag.OLE
    if mime_type.startswith("text/") or mime_type in (
        "application/json",
        "application/csv",
        "application/tab-separated-values",
    ):
        return FormatTag.TEXT
    return None


def _read_marker(zf: zipfile.ZipFile, name: str) -> bytes | None:
    try:
        info = zf.getinfo(name)
    except KeyError:
        return None
    if info.file_size > _MAX_MARKER_SIZE:
        logger.debug("Skipping oversized marker entry [%s]", name)
        return None
    try:
        return zf.read(info)
    except (zipfile.BadZipFile, EOFError, OSError, ValueError) as exc:
        raise CorruptedPartError(
            f"Unreadable container entry [{name}]: {exc}", part=name, cause=exc
        ) from exc


def _probe_odf_manifest(zf: zipfile.ZipFile) -> str | None:
    data = _read_marker(zf, "META-INF/manifest.xml")
    if data is None:
        return None
    try:
        root = parse_xml(data, "META-INF/manifest.xml")
    except CorruptedPartError:
        return None
    for entry in root.iter(f"{ODF_MANIFEST_NS}file-entry"):
        if entry.get(f"{ODF_MANIFEST_NS}full-path") == "/":
            return entry.get(f"{ODF_MANIFEST_NS}media-type")
    return None


def _probe_ooxml(zf: zipfile.ZipFile, names: set[str]) -> tuple[str | None, str]:
    """Return ``(dialect, main part)`` of an OOXML package."""
    content_types = ContentTypes.from_xml(
        parse_xml(_read_marker(zf, CONTENT_TYPES_PART) or b"", CONTENT_TYPES_PART)
    )

    package_rels = []
    rels_data = _read_marker(zf, PACKAGE_RELS_PART)
    if rels_data is not None:
        try:
            package_rels = parse_relationships(
                parse_xml(rels_data, PACKAGE_RELS_PART), ""
            )
        except CorruptedPartError as exc:
            logger.debug("Ignoring malformed package relationships: %s", exc)

    main_part = find_main_part(names, package_rels, FALLBACK_MAIN_PARTS)
    if main_part is None:
        return None, ""
    return content_types.lookup(main_part) or "application/octet-stream", main_part


def _probe_zip(data: bytes) -> DetectedFormat:
    try:
        zf = zipfile.ZipFile(io.BytesIO(data), "r")
    except zipfile.BadZipFile as exc:
        if ZIP_END_OF_CENTRAL_DIRECTORY not in data[-(65536 + 22) :]:
            raise TruncatedInputError(
                "ZIP container ends before its central directory", cause=exc
            ) from exc
        raise CorruptedPartError(
            f"Unreadable ZIP container: {exc}", cause=exc
        ) from exc

    with zf:
        infos = [info for info in zf.infolist() if not info.is_dir()]
        names = {info.filename for info in infos}

        if not infos:
            logger.debug("Empty ZIP container")
            return DetectedFormat(FormatTag.OOXML, None, evidence="container")

        if "mimetype" in names:
            mimetype = (_read_marker(zf, "mimetype") or b"").decode(
                "ascii", errors="ignore"
            ).strip()
            if mimetype.startswith(ODF_MIMETYPE_PREFIX):
                return DetectedFormat(FormatTag.ODF, mimetype, evidence="container")
            if mimetype:
                return DetectedFormat(
                    FormatTag.ZIP, mimetype, confidence=0.9, evidence="container"
                )

        if CONTENT_TYPES_PART in names:
            dialect, main_part = _probe_ooxml(zf, names)
            logger.debug("OOXML main part [%s] with content type [%s]", main_part, dialect)
            return DetectedFormat(FormatTag.OOXML, dialect, evidence="container")

        if "META-INF/manifest.xml" in names:
            media_type = _probe_odf_manifest(zf)
            if media_type and media_type.startswith(ODF_MIMETYPE_PREFIX):
                return DetectedFormat(
                    FormatTag.ODF, media_type, confidence=0.9, evidence="container"
                )

        return DetectedFormat(FormatTag.ZIP, None, confidence=0.9, evidence="container")


def _looks_like_text(data: bytes) -> bool:
    return b"\x00" not in data[:TEXT_SNIFF_LENGTH]


def detect_format(data: bytes, hint: str | None = None) -> DetectedFormat:
    """
    Classify ``data`` by signature and container structure.

    Args:
        data: The complete input bytes.
        hint: Optional file name, extension or MIME type declared by the caller.

    Returns:
        The detected format. ``dialect`` is the OOXML main part content type
        (``None`` for an empty package) or the ODF media type.

    Raises:
        TruncatedInputError: Fewer bytes than a signature, or a ZIP container
            cut off before its central directory.
        UnrecognizedFormatError: No known signature and no usable hint.
        CorruptedPartError: A ZIP signature whose container cannot be read.
    """
    hint_mime = _hint_mime_type(hint)

    if len(data) < MIN_SIGNATURE_LENGTH:
        raise TruncatedInputError(
            f"Input is {len(data)} bytes, shorter than the minimum signature "
            f"length of {MIN_SIGNATURE_LENGTH}"
        )

    detected: DetectedFormat | None = None
    if data.startswith(ZIP_SIGNATURES):
        try:
            detected = _probe_zip(data)
        except ExtractionError:
            raise
        except (ET.ParseError, ValueError, EOFError, OSError) as exc:
            raise CorruptedPartError(
                f"Unreadable ZIP container: {exc}", cause=exc
            ) from exc
    elif data.startswith(OLE_SIGNATURE[:MIN_SIGNATURE_LENGTH]):
        if len(data) < len(OLE_SIGNATURE):
            raise TruncatedInputError("Input ends inside the OLE2 header signature")
        if data.startswith(OLE_SIGNATURE):
            detected = DetectedFormat(FormatTag.OLE, None)
    if detected is None and data.startswith(TEXT_BOMS):
        detected = DetectedFormat(FormatTag.TEXT, None, evidence="bom")

    if detected is None:
        if is_text_hint(hint) or _hint_family(hint_mime) is FormatTag.TEXT:
            if _looks_like_text(data):
                logger.debug("No signature, accepting text by hint [%s]", hint)
                return DetectedFormat(
                    FormatTag.TEXT,
                    None,
                    confidence=0.5,
                    evidence="extension",
                    hint_mime_type=hint_mime,
                )
        raise UnrecognizedFormatError(
            "No known container signature"
            + (f" (declared hint [{hint}])" if hint else "")
        )

    expected = _hint_family(hint_mime)
    if expected is not None and expected is not detected.tag:
        logger.debug(
            "Hint [%s] suggests %s but the signature says %s",
            hint,
            expected.value,
            detected.tag.value,
        )
        return DetectedFormat(
            detected.tag,
            detected.dialect,
            confidence=min(detected.confidence, 0.75),
            evidence=detected.evidence,
            hint_mime_type=hint_mime,
        )
    return DetectedFormat(
        detected.tag,
        detected.dialect,
        confidence=detected.confidence,
        evidence=detected.evidence,
        hint_mime_type=hint_mime,
    )
