import io
import logging
import os
import typing
from abc import abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Protocol, Union

from office2text.exceptions import ErrorKind, ExtractionError, IoFailureError

logger = logging.getLogger(__name__)

MetadataValue = Union[str, List[str]]


class FormatTag(str, Enum):
    """Container family or leaf format recognized by the detector."""

    OOXML = "ooxml"
    ODF = "odf"
    ZIP = "zip"
    OLE = "ole"
    TEXT = "text"


@dataclass(frozen=True)
class SourceDocument:
    """The bytes of one extraction call plus an optional declared format hint."""

    data: bytes
    hint: str | None = None
    path: str | None = None

    @classmethod
    def from_source(
        cls,
        source: typing.Union[str, os.PathLike, bytes, bytearray, memoryview, typing.BinaryIO],
        hint: str | None = None,
    ) -> "SourceDocument":
        if isinstance(source, (bytes, bytearray, memoryview)):
            return cls(data=bytes(source), hint=hint)

        if isinstance(source, (str, os.PathLike)):
            path = Path(source)
            try:
                with open(path, "rb") as f:
                    data = f.read()
            except OSError as exc:
                raise IoFailureError(
                    f"Failed to read file [{path}]: {exc}", cause=exc
                ) from exc
            return cls(data=data, hint=hint or path.name, path=str(path))

        read = getattr(source, "read", None)
        if callable(read):
            try:
                if hasattr(source, "seek"):
                    source.seek(0)
                data = read()
            except (OSError, ValueError) as exc:
                raise IoFailureError(
                    f"Failed to read stream: {exc}", cause=exc
                ) from exc
            if not isinstance(data, (bytes, bytearray)):
                raise IoFailureError("Stream did not return bytes")
            name = getattr(source, "name", None)
            if hint is None and isinstance(name, str):
                hint = os.path.basename(name)
            return cls(data=bytes(data), hint=hint)

        raise IoFailureError(f"Unsupported source type: {type(source).__name__}")

    def stream(self) -> io.BytesIO:
        return io.BytesIO(self.data)


@dataclass(frozen=True)
class DetectedFormat:
    tag: FormatTag
    # main part content type (OOXML) or mimetype (ODF); None when not applicable
    dialect: str | None = None
    confidence: float = 1.0
    evidence: str = "signature"
    hint_mime_type: str | None = None


# joins the name of an embedded package and the name of a part inside it
PART_SEPARATOR = "!"


@dataclass(frozen=True)
class ContainerPart:
    name: str
    data: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class Relationship:
    id: str
    type: str
    target: str
    external: bool = False

    def is_type(self, suffix: str) -> bool:
        """True if the relationship type URI ends with ``/<suffix>``."""
        return self.type.rsplit("/", 1)[-1] == suffix


class RelationshipMap:
    """Read-only mapping from a source part to the relationships it declares.

    Package-level relationships (``_rels/.rels``) are stored under the empty
    source name.
    """

    def __init__(self, relationships: Dict[str, List[Relationship]] | None = None):
        self._map: Dict[str, tuple[Relationship, ...]] = {
            source: tuple(rels) for source, rels in (relationships or {}).items()
        }

    def __contains__(self, source: str) -> bool:
        return source in self._map

    def __len__(self) -> int:
        return len(self._map)

    def relationships(self, source: str) -> tuple[Relationship, ...]:
        return self._map.get(source, ())

    def package(self) -> tuple[Relationship, ...]:
        return self.relationships("")

    def by_id(self, source: str, rel_id: str) -> Relationship | None:
        for rel in self.relationships(source):
            if rel.id == rel_id:
                return rel
        return None

    def of_type(self, source: str, suffix: str) -> list[Relationship]:
        return [rel for rel in self.relationships(source) if rel.is_type(suffix)]

    def targets(self, source: str) -> list[str]:
        return [rel.target for rel in self.relationships(source) if not rel.external]


@dataclass(frozen=True)
class ExtractedFragment:
    order: int
    part: str
    text: str
    placeholder: bool = False


@dataclass(frozen=True)
class PartDiagnostic:
    part: str
    error: ExtractionError

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def message(self) -> str:
        return str(self.error)


class DiagnosticLog:
    """Per-call record of recovered part failures, at most one per part."""

    def __init__(self):
        self._entries: Dict[str, PartDiagnostic] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PartDiagnostic]:
        return iter(self._entries.values())

    def __contains__(self, part: str) -> bool:
        return part in self._entries

    def record(self, part: str, error: ExtractionError) -> None:
        if part in self._entries:
            logger.debug("Additional failure for part [%s] ignored: %s", part, error)
            return
        logger.warning("Skipping part [%s]: %s", part, error)
        self._entries[part] = PartDiagnostic(part, error)

    def as_list(self) -> List[PartDiagnostic]:
        return list(self._entries.values())


class ExtractionInterface(Protocol):
    @abstractmethod
    def iterator(self) -> typing.Iterator[str]:
        """
        Returns an iterator over the extracted text in document order.
        A streamed result yields its chunks and can be consumed only once.
        """
        ...

    @abstractmethod
    def get_full_text(self) -> str:
        """Full text of the document as one single block of text"""
        ...

    @abstractmethod
    def get_metadata(self) -> Dict[str, MetadataValue]:
        """Returns the metadata of the extracted file"""
        ...


@dataclass
class ExtractionResult(ExtractionInterface):
    content: typing.Union[str, Iterator[str]] = ""
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)
    partial: bool = False
    diagnostics: List[PartDiagnostic] = field(default_factory=list)
    detected_format: DetectedFormat | None = None

    @property
    def is_streamed(self) -> bool:
        return not isinstance(self.content, str)

    def iterator(self) -> typing.Iterator[str]:
        if isinstance(self.content, str):
            yield self.content
        else:
            yield from self.content

    def get_full_text(self) -> str:
        if not isinstance(self.content, str):
            # one-shot sequence: materialize it so repeated calls agree
            self.content = "".join(self.content)
        return self.content

    def get_metadata(self) -> Dict[str, MetadataValue]:
        return self.metadata
