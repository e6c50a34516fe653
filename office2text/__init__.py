"""
office2text: Text and metadata extraction for office documents.

Reads zip-packaged office documents (Office Open XML presentations,
spreadsheets and word-processing documents, and OpenDocument files) plus
plain text, and returns normalized text in reading order together with an
ordered metadata mapping. Embedded documents are followed to a bounded depth
and damaged parts degrade to a partial result instead of failing the call.
"""

from office2text.config import (
    ExtractionConfig,
    configure_extraction,
    get_default_config,
    reset_configuration,
)
from office2text.engine import extract, extract_bytes, extract_file, read_file
from office2text.exceptions import (
    CorruptedPartError,
    ErrorKind,
    ExtractionError,
    ExtractionFileEncryptedError,
    ExtractionZipBombError,
    IoFailureError,
    ResourceLimitExceededError,
    TruncatedInputError,
    UnrecognizedFormatError,
    UnsupportedVariantError,
)
from office2text.extractors.data_types import ExtractionResult, PartDiagnostic
from office2text.router import get_extractor, is_supported_file

__version__ = "0.1.0"

__all__ = [
    "CorruptedPartError",
    "ErrorKind",
    "ExtractionConfig",
    "ExtractionError",
    "ExtractionFileEncryptedError",
    "ExtractionResult",
    "ExtractionZipBombError",
    "IoFailureError",
    "PartDiagnostic",
    "ResourceLimitExceededError",
    "TruncatedInputError",
    "UnrecognizedFormatError",
    "UnsupportedVariantError",
    "configure_extraction",
    "extract",
    "extract_bytes",
    "extract_file",
    "get_default_config",
    "get_extractor",
    "is_supported_file",
    "read_file",
    "reset_configuration",
]
