"""
Plain Text Reader
=================

Reads plain text files (.txt, .csv, .md, .log and similar) with automatic
encoding detection.

Encoding Handling
-----------------
    - A byte order mark selects UTF-8, UTF-16 or UTF-32 directly
    - Valid UTF-8 is decoded as UTF-8
    - Anything else goes through charset_normalizer
    - When detection fails the bytes are decoded as UTF-8 and every
      undecodable run becomes one substitution marker

The whole file is a single fragment, so blank lines and indentation survive
normalization unchanged. The detected encoding is reported in the
``encoding`` metadata key.

Dependencies
------------
    - charset_normalizer: Encoding detection library
"""

import codecs
import logging
from typing import Dict, List, Tuple

from charset_normalizer import from_bytes

from office2text.assembler import decode_bytes
from office2text.extractors.abstract_extractor import DocumentReader
from office2text.extractors.data_types import ContainerPart, MetadataValue

logger = logging.getLogger(__name__)

# longest BOM first so UTF-32 LE is not taken for UTF-16 LE
_BOMS = (
    (codecs.BOM_UTF32_LE, "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32"),
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)


def detect_and_decode(content: bytes) -> Tuple[str, str]:
    """
    Decode text bytes and report the encoding used.

    Args:
        content: Raw bytes to decode.

    Returns:
        Tuple of (decoded_text, encoding).
    """
    if not content:
        return "", "utf-8"

    for bom, encoding in _BOMS:
        if content.startswith(bom):
            return decode_bytes(content, encoding), encoding

    try:
        return content.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        pass

    best_match = from_bytes(content).best()
    if best_match is not None:
        logger.debug("Detected encoding: %s", best_match.encoding)
        return str(best_match), best_match.encoding

    logger.debug("Encoding detection failed, falling back to UTF-8")
    return decode_bytes(content), "utf-8"


class PlainTextReader(DocumentReader):
    """Reader for a single plain text part."""

    def __init__(self, container, config, diagnostics):
        super().__init__(container, config, diagnostics)
        self.encoding: str | None = None
        self.line_count = 0

    def _find_entry_parts(self) -> List[str]:
        main = self.main_part
        return [main] if main is not None else []

    def extract_part(self, part: ContainerPart) -> List[str]:
        text, self.encoding = detect_and_decode(part.data)
        self.line_count = len(text.splitlines())
        return [text] if text.strip() else []

    def derived_metadata(self) -> Dict[str, MetadataValue]:
        if self.encoding is None:
            return {}
        return {"encoding": self.encoding, "line-count": str(self.line_count)}
