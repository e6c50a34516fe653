"""
Fragment normalization and content assembly.

Fragments arrive in document order from the readers. They are normalized
(Unicode NFC, newline unification, control characters) when they enter the
:class:`FragmentSink` and joined by :func:`assemble`:

    - fragments of the same part are joined with ``PARAGRAPH_SEPARATOR``
    - a change of originating part inserts ``PART_SEPARATOR``

Large outputs are returned as a lazy, one-shot chunk sequence whose
concatenation equals the string form.
"""

import codecs
import itertools
import logging
import re
import time
import unicodedata
from typing import Iterable, Iterator, List

from office2text.exceptions import ResourceLimitExceededError
from office2text.extractors.data_types import ExtractedFragment

logger = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n"
PART_SEPARATOR = "\n\n"
SUBSTITUTION_MARKER = "\ufffd"

_ESCAPED_BYTES = re.compile("[\udc80-\udcff]+")
_MARKER_RUN = re.compile("\ufffd+")
_CONTROL_CHARS = re.compile("[\x00-\x08\x0e-\x1f\x7f]")
_LINE_BREAKS = str.maketrans({"\r": "\n", "\x0b": "\n", "\x0c": "\n"})

DEFAULT_CHUNK_SIZE = 64 * 1024


def decode_bytes(data: bytes, encoding: str = "utf-8") -> str:
    """Decode bytes, replacing every undecodable run with one marker."""
    try:
        codecs.lookup(encoding)
    except LookupError:
        encoding = "utf-8"
    try:
        text = data.decode(encoding, errors="surrogateescape")
    except UnicodeDecodeError:
        # surrogateescape only covers bytes >= 0x80
        text = data.decode(encoding, errors="replace")
        return _MARKER_RUN.sub(SUBSTITUTION_MARKER, text)
    return _ESCAPED_BYTES.sub(SUBSTITUTION_MARKER, text)


def normalize_text(text: str) -> str:
    text = text.replace("\r\n", "\n").translate(_LINE_BREAKS)
    text = _ESCAPED_BYTES.sub(SUBSTITUTION_MARKER, text)
    text = _CONTROL_CHARS.sub(SUBSTITUTION_MARKER, text)
    text = unicodedata.normalize("NFC", text)
    text = "\n".join(line.rstrip(" \t") for line in text.split("\n"))
    return text.strip("\n")


class Budget:
    """Deadline and output-size budget of one extraction call."""

    def __init__(
        self,
        max_output_size: int | None = None,
        timeout: float | None = None,
        clock=time.monotonic,
    ):
        self._clock = clock
        self.max_output_size = max_output_size
        self.deadline = clock() + timeout if timeout is not None else None
        self.used = 0

    def check_deadline(self, part: str | None = None) -> None:
        if self.deadline is not None and self._clock() > self.deadline:
            raise ResourceLimitExceededError(
                "Extraction timeout exceeded"
                + (f" while processing part [{part}]" if part else ""),
                part=part,
            )

    def charge(self, text: str, part: str | None = None) -> None:
        size = len(text.encode("utf-8"))
        if self.max_output_size is not None and self.used + size > self.max_output_size:
            raise ResourceLimitExceededError(
                f"Maximum output size of {self.max_output_size} bytes exceeded"
                + (f" at part [{part}]" if part else ""),
                part=part,
            )
        self.used += size


class FragmentSink:
    """Append-only, ordered collection of the fragments of one extraction."""

    def __init__(self, budget: Budget | None = None):
        self._budget = budget or Budget()
        self._counter = itertools.count()
        self._fragments: List[ExtractedFragment] = []

    def __len__(self) -> int:
        return len(self._fragments)

    @property
    def fragments(self) -> tuple[ExtractedFragment, ...]:
        return tuple(self._fragments)

    def emit(self, part: str, text: str, *, placeholder: bool = False) -> None:
        self._budget.check_deadline(part)
        text = normalize_text(text)
        if not text:
            return
        self._budget.check_deadline(part)
        self._budget.charge(text, part)
        self._fragments.append(
            ExtractedFragment(
                order=next(self._counter),
                part=part,
                text=text,
                placeholder=placeholder,
            )
        )

    def emit_all(self, part: str, texts: Iterable[str]) -> None:
        for text in texts:
            self.emit(part, text)

    def parts(self) -> list[str]:
        """Originating parts in first-emission order."""
        return list(dict.fromkeys(fragment.part for fragment in self._fragments))


def iter_pieces(fragments: Iterable[ExtractedFragment]) -> Iterator[str]:
    """Yield fragment texts interleaved with the right separators."""
    previous_part: str | None = None
    for index, fragment in enumerate(fragments):
        if index:
            yield (
                PARAGRAPH_SEPARATOR
                if fragment.part == previous_part
                else PART_SEPARATOR
            )
        yield fragment.text
        previous_part = fragment.part


def _chunked(
    fragments: List[ExtractedFragment], chunk_size: int
) -> Iterator[str]:
    buffer: list[str] = []
    buffered = 0
    for piece in iter_pieces(fragments):
        buffer.append(piece)
        buffered += len(piece)
        if buffered >= chunk_size:
            yield "".join(buffer)
            buffer = []
            buffered = 0
    if buffer:
        yield "".join(buffer)


def assembled_length(fragments: Iterable[ExtractedFragment]) -> int:
    return sum(len(piece) for piece in iter_pieces(fragments))


def assemble(
    fragments: Iterable[ExtractedFragment],
    stream_threshold: int | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str | Iterator[str]:
    """
    Join fragments into the final content.

    Args:
        fragments: Fragments in emission order.
        stream_threshold: Assembled size (characters) above which a lazy chunk
            generator is returned instead of a string. ``None`` never streams.
        chunk_size: Approximate size of each streamed chunk.

    Returns:
        The assembled string, or a one-shot generator of chunks.
    """
    ordered = list(fragments)
    if stream_threshold is not None:
        total = assembled_length(ordered)
        if total > stream_threshold:
            logger.debug(
                "Streaming %d characters of content in chunks of %d",
                total,
                chunk_size,
            )
            return _chunked(ordered, chunk_size)
    return "".join(iter_pieces(ordered))
