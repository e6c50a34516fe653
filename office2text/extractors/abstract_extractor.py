import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, FrozenSet, List

from office2text.extractors.data_types import (
    ContainerPart,
    DiagnosticLog,
    MetadataValue,
    Relationship,
)
from office2text.extractors.ocr import is_ocr_candidate, run_ocr

if TYPE_CHECKING:
    from office2text.config import ExtractionConfig
    from office2text.extractors.util.container import Container

logger = logging.getLogger(__name__)


def relationship_kind(relationship: Relationship) -> str:
    """Last segment of the relationship type URI, e.g. ``chart``."""
    return relationship.type.rsplit("/", 1)[-1]


class DocumentReader(ABC):
    """
    Per-dialect content extraction for one container.

    A reader names the root parts of its document in reading order, decides
    which relationships lead to further text-bearing parts and turns one part
    at a time into text fragments. Shared resources such as string tables are
    loaded lazily and cached for the lifetime of the reader, which is one
    extraction call.
    """

    # relationship kinds followed from any part of the container
    follow_kinds: FrozenSet[str] = frozenset()

    def __init__(
        self,
        container: "Container",
        config: "ExtractionConfig",
        diagnostics: DiagnosticLog,
    ):
        self.container = container
        self.config = config
        self.diagnostics = diagnostics
        self._entry_parts: List[str] | None = None

    @property
    def main_part(self) -> str | None:
        return self.container.main_part

    def entry_parts(self) -> List[str]:
        """Root parts in declaration order, computed once."""
        if self._entry_parts is None:
            self._entry_parts = self._find_entry_parts()
        return list(self._entry_parts)

    @abstractmethod
    def _find_entry_parts(self) -> List[str]:
        """
        :raises CorruptedPartError: The main part cannot be parsed
        """
        ...

    def follows(self, source: str, relationship: Relationship) -> bool:
        if relationship.external:
            return False
        kind = relationship_kind(relationship)
        # charts carry their data as an embedded workbook
        if kind == "package" and "/charts/" in f"/{source}":
            return False
        if kind == "image":
            return self.config.ocr_enabled
        return kind in self.follow_kinds

    def extract(self, part: ContainerPart) -> List[str]:
        """Text fragments of one part in reading order."""
        if is_ocr_candidate(part.name, part.content_type):
            if not self.config.ocr_enabled:
                return []
            return run_ocr(
                self.config.ocr_delegate,
                part.data,
                name=self.container.qualify(part.name),
                content_type=part.content_type,
            )
        return self.extract_part(part)

    @abstractmethod
    def extract_part(self, part: ContainerPart) -> List[str]: ...

    def derived_metadata(self) -> Dict[str, MetadataValue]:
        """Metadata known only after the walk, e.g. slide or sheet counts."""
        return {}


class EmptyPackageReader(DocumentReader):
    """Reader for a valid package without a recognized main part."""

    def _find_entry_parts(self) -> List[str]:
        logger.debug("Package has no main part, nothing to extract")
        return []

    def extract_part(self, part: ContainerPart) -> List[str]:
        return []
