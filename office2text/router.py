import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Iterator, Mapping

from office2text.exceptions import (
    ExtractionFileEncryptedError,
    UnrecognizedFormatError,
    UnsupportedVariantError,
)
from office2text.extractors.data_types import DetectedFormat, FormatTag
from office2text.mime_types import (
    MIME_TYPE_MAPPING,
    ODF_PRESENTATION_TYPES,
    ODF_SPREADSHEET_TYPES,
    ODF_TEXT_TYPES,
    PRESENTATION_MAIN_TYPES,
    SPREADSHEET_MAIN_TYPES,
    WORD_PROCESSING_MAIN_TYPES,
    is_supported_mime_type,
    mime_type_for_name,
)

if TYPE_CHECKING:
    from office2text.config import ExtractionConfig
    from office2text.extractors.abstract_extractor import DocumentReader
    from office2text.extractors.data_types import DiagnosticLog
    from office2text.extractors.util.container import Container

logger = logging.getLogger(__name__)


class DocumentKind(str, Enum):
    PRESENTATION = "presentation"
    SPREADSHEET = "spreadsheet"
    WORD_PROCESSING = "word-processing"
    ODF_TEXT = "odf-text"
    ODF_PRESENTATION = "odf-presentation"
    ODF_SPREADSHEET = "odf-spreadsheet"
    EMPTY_PACKAGE = "empty-package"
    PLAIN_TEXT = "plain-text"


@dataclass(frozen=True)
class Capabilities:
    text: bool = True
    metadata: bool = True
    embedded_objects: bool = False
    ocr: bool = False


ReaderFactory = Callable[
    ["Container", "ExtractionConfig", "DiagnosticLog"], "DocumentReader"
]


@dataclass(frozen=True)
class ParserEntry:
    kind: DocumentKind
    capabilities: Capabilities
    reader_factory: ReaderFactory

    def create_reader(
        self, container: "Container", config: "ExtractionConfig", diagnostics: "DiagnosticLog"
    ) -> "DocumentReader":
        return self.reader_factory(container, config, diagnostics)


def _presentation_reader(container, config, diagnostics):
    """Return the reader for a document kind (lazy import)."""
    from office2text.extractors.ms_modern.pptx_extractor import PptxReader

    return PptxReader(container, config, diagnostics)


def _spreadsheet_reader(container, config, diagnostics):
    from office2text.extractors.ms_modern.xlsx_extractor import XlsxReader

    return XlsxReader(container, config, diagnostics)


def _word_processing_reader(container, config, diagnostics):
    from office2text.extractors.ms_modern.docx_extractor import DocxReader

    return DocxReader(container, config, diagnostics)


def _odf_reader(container, config, diagnostics):
    from office2text.extractors.open_office.odf_extractor import OdfReader

    return OdfReader(container, config, diagnostics)


def _plain_text_reader(container, config, diagnostics):
    from office2text.extractors.plain_extractor import PlainTextReader

    return PlainTextReader(container, config, diagnostics)


def _empty_package_reader(container, config, diagnostics):
    from office2text.extractors.abstract_extractor import EmptyPackageReader

    return EmptyPackageReader(container, config, diagnostics)


class ParserRegistry:
    """
    Read-only mapping from :class:`DocumentKind` to its :class:`ParserEntry`.

    Every kind must be registered, so resolution is exhaustive. The registry
    holds no per-call state and is shared by reference across calls.
    """

    def __init__(self, entries: Mapping[DocumentKind, ParserEntry]):
        missing = [kind.value for kind in DocumentKind if kind not in entries]
        if missing:
            raise ValueError(f"No parser registered for: {', '.join(missing)}")
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, kind: DocumentKind) -> ParserEntry:
        return self._entries[kind]

    def __iter__(self) -> Iterator[DocumentKind]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Mapping[DocumentKind, ParserEntry]:
        return self._entries

    def kind_for(self, detected: DetectedFormat, data: bytes | None = None) -> DocumentKind:
        """
        Map a detected format onto a document kind.

        :raises UnsupportedVariantError: The container is known, its dialect is not
        :raises ExtractionFileEncryptedError: An encrypted OOXML package
        """
        tag = detected.tag
        dialect = detected.dialect

        if tag is FormatTag.TEXT:
            return DocumentKind.PLAIN_TEXT

        if tag is FormatTag.OOXML:
            if dialect is None:
                return DocumentKind.EMPTY_PACKAGE
            if dialect in PRESENTATION_MAIN_TYPES:
                return DocumentKind.PRESENTATION
            if dialect in SPREADSHEET_MAIN_TYPES:
                return DocumentKind.SPREADSHEET
            if dialect in WORD_PROCESSING_MAIN_TYPES:
                return DocumentKind.WORD_PROCESSING
            raise UnsupportedVariantError(
                f"OOXML package with unsupported main part content type [{dialect}]"
            )

        if tag is FormatTag.ODF:
            if dialect in ODF_TEXT_TYPES:
                return DocumentKind.ODF_TEXT
            if dialect in ODF_PRESENTATION_TYPES:
                return DocumentKind.ODF_PRESENTATION
            if dialect in ODF_SPREADSHEET_TYPES:
                return DocumentKind.ODF_SPREADSHEET
            raise UnsupportedVariantError(
                f"OpenDocument package with unsupported media type [{dialect}]"
            )

        if tag is FormatTag.OLE:
            if data is not None:
                from office2text.extractors.util.encryption import (
                    describe_ole_document,
                    is_ooxml_encrypted,
                )

                try:
                    encrypted = is_ooxml_encrypted(data)
                    family = describe_ole_document(data)
                except (OSError, ValueError) as exc:
                    raise UnsupportedVariantError(
                        f"Unreadable OLE2 compound file: {exc}", cause=exc
                    ) from exc
                if encrypted:
                    raise ExtractionFileEncryptedError(
                        "Office package is encrypted or password-protected"
                    )
                raise UnsupportedVariantError(f"Unsupported {family}")
            raise UnsupportedVariantError("Unsupported OLE2 compound file")

        raise UnsupportedVariantError(
            "ZIP container without a known office document layout"
            + (f" (mimetype [{dialect}])" if dialect else "")
        )

    def resolve(self, detected: DetectedFormat, data: bytes | None = None) -> ParserEntry:
        kind = self.kind_for(detected, data)
        logger.debug(
            "Resolved %s/%s to %s", detected.tag.value, detected.dialect, kind.value
        )
        return self._entries[kind]


def build_default_registry() -> ParserRegistry:
    office = Capabilities(text=True, metadata=True, embedded_objects=True, ocr=True)
    return ParserRegistry(
        {
            DocumentKind.PRESENTATION: ParserEntry(
                DocumentKind.PRESENTATION, office, _presentation_reader
            ),
            DocumentKind.SPREADSHEET: ParserEntry(
                DocumentKind.SPREADSHEET, office, _spreadsheet_reader
            ),
            DocumentKind.WORD_PROCESSING: ParserEntry(
                DocumentKind.WORD_PROCESSING, office, _word_processing_reader
            ),
            DocumentKind.ODF_TEXT: ParserEntry(
                DocumentKind.ODF_TEXT, office, _odf_reader
            ),
            DocumentKind.ODF_PRESENTATION: ParserEntry(
                DocumentKind.ODF_PRESENTATION, office, _odf_reader
            ),
            DocumentKind.ODF_SPREADSHEET: ParserEntry(
                DocumentKind.ODF_SPREADSHEET, office, _odf_reader
            ),
            DocumentKind.EMPTY_PACKAGE: ParserEntry(
                DocumentKind.EMPTY_PACKAGE,
                Capabilities(text=False, metadata=True),
                _empty_package_reader,
            ),
            DocumentKind.PLAIN_TEXT: ParserEntry(
                DocumentKind.PLAIN_TEXT,
                Capabilities(text=True, metadata=False),
                _plain_text_reader,
            ),
        }
    )


DEFAULT_REGISTRY = build_default_registry()

# file type -> document kind for name-based routing
_FILE_TYPE_KINDS = {
    "pptx": DocumentKind.PRESENTATION,
    "ppsx": DocumentKind.PRESENTATION,
    "potx": DocumentKind.PRESENTATION,
    "pptm": DocumentKind.PRESENTATION,
    "xlsx": DocumentKind.SPREADSHEET,
    "xltx": DocumentKind.SPREADSHEET,
    "xlsm": DocumentKind.SPREADSHEET,
    "docx": DocumentKind.WORD_PROCESSING,
    "dotx": DocumentKind.WORD_PROCESSING,
    "docm": DocumentKind.WORD_PROCESSING,
    "odt": DocumentKind.ODF_TEXT,
    "odp": DocumentKind.ODF_PRESENTATION,
    "ods": DocumentKind.ODF_SPREADSHEET,
    "csv": DocumentKind.PLAIN_TEXT,
    "json": DocumentKind.PLAIN_TEXT,
    "txt": DocumentKind.PLAIN_TEXT,
    "md": DocumentKind.PLAIN_TEXT,
    "tsv": DocumentKind.PLAIN_TEXT,
}


def is_supported_file(path: str) -> bool:
    """Checks if the path names a file type with a reader"""
    mime_type = mime_type_for_name(path)
    return (
        is_supported_mime_type(mime_type)
        and MIME_TYPE_MAPPING[mime_type] in _FILE_TYPE_KINDS
    )


def get_extractor(path: str, registry: ParserRegistry = DEFAULT_REGISTRY) -> ParserEntry:
    """Analyses the path of a file and returns the suited parser entry.
       The file does not need to exist. The path or filename alone suffices.

    :returns the registry entry whose reader handles the file type
    :raises UnrecognizedFormatError: File is not covered by any reader
    """
    mime_type = mime_type_for_name(path)
    file_type = MIME_TYPE_MAPPING.get(mime_type or "")

    if file_type in _FILE_TYPE_KINDS:
        logger.debug(
            "Detected file type: %s (MIME: %s) for file: %s", file_type, mime_type, path
        )
        return registry[_FILE_TYPE_KINDS[file_type]]

    logger.debug("File [%s] with mime type [%s] is not supported", path, mime_type)
    raise UnrecognizedFormatError(f"File type not supported: {mime_type}")
