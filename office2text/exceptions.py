"""
Extraction error taxonomy.

Every failure that leaves :func:`office2text.extract` is one of the classes
below. Callers branch on :attr:`ExtractionError.kind`; the stage-specific
exception that triggered the failure stays reachable via ``__cause__``.
"""

from __future__ import annotations

import zipfile
import zlib
from enum import Enum
from typing import TYPE_CHECKING
from xml.etree.ElementTree import ParseError

if TYPE_CHECKING:
    from office2text.extractors.data_types import ExtractionResult


class ErrorKind(str, Enum):
    UNRECOGNIZED_FORMAT = "UnrecognizedFormat"
    UNSUPPORTED_VARIANT = "UnsupportedVariant"
    TRUNCATED_INPUT = "TruncatedInput"
    CORRUPTED_PART = "CorruptedPart"
    RESOURCE_LIMIT_EXCEEDED = "ResourceLimitExceeded"
    IO_FAILURE = "IoFailure"


class ExtractionError(Exception):
    """Base class for all classified extraction failures."""

    kind: ErrorKind = ErrorKind.CORRUPTED_PART

    def __init__(
        self,
        message: str | None = None,
        *,
        part: str | None = None,
        cause: BaseException | None = None,
    ):
        if message is None:
            message = f"{self.kind.value} failure"
            if part:
                message += f" in part [{part}]"
        self.part = part
        super().__init__(message)
        # Optional chaining for debugging
        self.__cause__ = cause

    @property
    def message(self) -> str:
        return str(self)


class UnrecognizedFormatError(ExtractionError):
    """Raised when the input carries no known container signature."""

    kind = ErrorKind.UNRECOGNIZED_FORMAT


class UnsupportedVariantError(ExtractionError):
    """Raised when the container is known but its document dialect is not."""

    kind = ErrorKind.UNSUPPORTED_VARIANT


class ExtractionFileEncryptedError(UnsupportedVariantError):
    """Raised when an office package is encrypted or password-protected."""


class TruncatedInputError(ExtractionError):
    """Raised when the input ends before its signature or container index."""

    kind = ErrorKind.TRUNCATED_INPUT


class CorruptedPartError(ExtractionError):
    """Raised when one internal part cannot be read or parsed."""

    kind = ErrorKind.CORRUPTED_PART


class ResourceLimitExceededError(ExtractionError):
    """Raised when a depth, size or time budget is exceeded.

    ``partial_result`` holds whatever was assembled before the limit hit,
    tagged ``partial=True``, or ``None`` when nothing was recoverable.
    """

    kind = ErrorKind.RESOURCE_LIMIT_EXCEEDED

    def __init__(
        self,
        message: str | None = None,
        *,
        part: str | None = None,
        cause: BaseException | None = None,
        partial_result: ExtractionResult | None = None,
    ):
        super().__init__(message, part=part, cause=cause)
        self.partial_result = partial_result


class ExtractionZipBombError(ResourceLimitExceededError):
    """Raised when a ZIP container looks like a decompression bomb."""


class IoFailureError(ExtractionError):
    """Raised when the underlying source cannot be read."""

    kind = ErrorKind.IO_FAILURE


_CORRUPTION_TYPES: tuple[type[BaseException], ...] = (
    zipfile.BadZipFile,
    zlib.error,
    EOFError,
    ParseError,
    UnicodeError,
    ValueError,
    KeyError,
    IndexError,
)


def classify_exception(
    exc: BaseException, *, part: str | None = None
) -> ExtractionError:
    """Map any exception onto the extraction error taxonomy.

    Already classified errors are returned unchanged.
    """
    if isinstance(exc, ExtractionError):
        return exc

    detail = f"{type(exc).__name__}: {exc}"
    where = f" [{part}]" if part else ""

    if isinstance(exc, OSError):
        return IoFailureError(f"Failed to read source{where}: {detail}", cause=exc)
    if isinstance(exc, (MemoryError, RecursionError)):
        return ResourceLimitExceededError(
            f"Resource limit exceeded{where}: {detail}", part=part, cause=exc
        )
    if isinstance(exc, _CORRUPTION_TYPES):
        return CorruptedPartError(
            f"Corrupted content{where}: {detail}", part=part, cause=exc
        )
    return CorruptedPartError(
        f"Unexpected failure while extracting{where}: {detail}", part=part, cause=exc
    )
