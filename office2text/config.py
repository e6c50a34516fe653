"""Extraction configuration."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from office2text.extractors.ocr import OcrDelegate
from office2text.extractors.util.zip_bomb import DEFAULT_ZIP_BOMB_LIMITS, ZipBombLimits

DEFAULT_MAX_EMBEDDED_DEPTH = 10
DEFAULT_MAX_DIAGRAM_DEPTH = 32
DEFAULT_STREAM_THRESHOLD = 16 * 1024 * 1024
DEFAULT_MAX_REPEATED_CELLS = 1024


@dataclass(frozen=True)
class ExtractionConfig:
    """
    Options recognized by one extraction call.

    Attributes:
        max_embedded_depth: Relationship hops followed below a root part.
            Objects further down are replaced by a placeholder fragment.
        max_diagram_depth: Depth bound for the node graph inside one diagram.
        max_output_size: Upper bound for the assembled content in UTF-8 bytes
            (``None`` for unlimited).
        extraction_timeout: Wall-clock budget in seconds (``None`` for
            unlimited).
        enable_ocr_delegation: Hand image parts to ``ocr_delegate``.
        ocr_delegate: External OCR callable, see :class:`OcrDelegate`.
        stream_threshold: Assembled size in characters above which the content
            is returned as a lazy chunk sequence instead of one string.
        zip_limits: ZIP-bomb heuristics applied to every opened container.
        max_repeated_cells: Cap for ODF repeated rows/columns with content.
    """

    max_embedded_depth: int = DEFAULT_MAX_EMBEDDED_DEPTH
    max_diagram_depth: int = DEFAULT_MAX_DIAGRAM_DEPTH
    max_output_size: int | None = None
    extraction_timeout: float | None = None
    enable_ocr_delegation: bool = False
    ocr_delegate: OcrDelegate | None = field(default=None, compare=False)
    stream_threshold: int = DEFAULT_STREAM_THRESHOLD
    zip_limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS
    max_repeated_cells: int = DEFAULT_MAX_REPEATED_CELLS

    def __post_init__(self):
        if self.max_embedded_depth < 0:
            raise ValueError("max_embedded_depth must be >= 0")
        if self.max_diagram_depth < 1:
            raise ValueError("max_diagram_depth must be >= 1")
        if self.max_output_size is not None and self.max_output_size < 0:
            raise ValueError("max_output_size must be >= 0")
        if self.extraction_timeout is not None and self.extraction_timeout <= 0:
            raise ValueError("extraction_timeout must be > 0")
        if self.stream_threshold < 1:
            raise ValueError("stream_threshold must be >= 1")

    @property
    def ocr_enabled(self) -> bool:
        return self.enable_ocr_delegation and self.ocr_delegate is not None

    def with_overrides(self, **overrides: Any) -> ExtractionConfig:
        return dataclasses.replace(self, **overrides)


# Global configuration instance
_config = ExtractionConfig()


def get_default_config() -> ExtractionConfig:
    return _config


def configure_extraction(**overrides: Any) -> ExtractionConfig:
    """Replace the process-wide default configuration.

    The previous default is never mutated, so calls already running keep the
    configuration they started with.
    """
    global _config

    _config = _config.with_overrides(**overrides)
    return _config


def reset_configuration() -> None:
    global _config

    _config = ExtractionConfig()
