"""
Decompression-bomb screening for ZIP based packages.

Only the central directory is read. Limits on a single entry report that
entry as the offending part (``outer.docx!word/media/big.bin`` for a nested
package); limits on the whole container report the container itself.
"""

from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from typing import Iterable, Optional

from office2text.exceptions import ExtractionZipBombError
from office2text.extractors.data_types import PART_SEPARATOR


@dataclass(frozen=True)
class ZipBombLimits:
    """Ceilings applied to the central directory of every opened package."""

    max_entries: int = 50_000
    max_total_uncompressed_bytes: int = 4 * 1024 * 1024 * 1024  # 4 GiB
    max_single_uncompressed_bytes: int = 1 * 1024 * 1024 * 1024  # 1 GiB
    max_total_compression_ratio: float = 200.0
    max_entry_compression_ratio: float = 500.0


DEFAULT_ZIP_BOMB_LIMITS = ZipBombLimits()


def _entry_part(source: Optional[str], name: str) -> str:
    return f"{source}{PART_SEPARATOR}{name}" if source else name


def _container_label(source: Optional[str]) -> str:
    return f"[{source}]" if source else "ZIP container"


def check_entry(
    info: zipfile.ZipInfo,
    limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
    source: Optional[str] = None,
) -> None:
    """Reject one directory entry whose declared sizes look like a bomb."""
    expanded = int(info.file_size or 0)
    stored = int(info.compress_size or 0)
    part = _entry_part(source, info.filename)

    if expanded > limits.max_single_uncompressed_bytes:
        raise ExtractionZipBombError(
            f"Entry [{part}] expands to {expanded} bytes, "
            f"limit is {limits.max_single_uncompressed_bytes}",
            part=part,
        )
    if expanded == 0:
        return
    if stored <= 0:
        raise ExtractionZipBombError(
            f"Entry [{part}] declares {expanded} bytes of content in zero stored bytes",
            part=part,
        )
    ratio = expanded / stored
    if ratio > limits.max_entry_compression_ratio:
        raise ExtractionZipBombError(
            f"Entry [{part}] compresses {ratio:.1f}:1, "
            f"limit is {limits.max_entry_compression_ratio}:1",
            part=part,
        )


def _check_totals(
    entries: Iterable[zipfile.ZipInfo],
    limits: ZipBombLimits,
    source: Optional[str],
) -> None:
    expanded_total = 0
    stored_total = 0
    for info in entries:
        check_entry(info, limits, source)
        expanded_total += int(info.file_size or 0)
        stored_total += int(info.compress_size or 0)
        if expanded_total > limits.max_total_uncompressed_bytes:
            raise ExtractionZipBombError(
                f"{_container_label(source)} expands past "
                f"{limits.max_total_uncompressed_bytes} bytes",
                part=source,
            )

    if expanded_total == 0:
        return
    if stored_total <= 0:
        raise ExtractionZipBombError(
            f"{_container_label(source)} declares content in zero stored bytes",
            part=source,
        )
    ratio = expanded_total / stored_total
    if ratio > limits.max_total_compression_ratio:
        raise ExtractionZipBombError(
            f"{_container_label(source)} compresses {ratio:.1f}:1 overall, "
            f"limit is {limits.max_total_compression_ratio}:1",
            part=source,
        )


def validate_zipfile(
    zf: zipfile.ZipFile,
    *,
    limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
    source: Optional[str] = None,
) -> None:
    """
    Raise ``ExtractionZipBombError`` when ``zf`` trips any of ``limits``.

    ``source`` names the package inside the document being walked, or is
    ``None`` for the top-level container.
    """
    infos = zf.infolist()
    if len(infos) > limits.max_entries:
        raise ExtractionZipBombError(
            f"{_container_label(source)} lists {len(infos)} entries, "
            f"limit is {limits.max_entries}",
            part=source,
        )
    _check_totals((info for info in infos if not info.is_dir()), limits, source)


def open_zipfile(
    file_like: io.BytesIO,
    *,
    limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
    source: Optional[str] = None,
) -> zipfile.ZipFile:
    """Open and screen a package. The caller closes the returned archive."""
    file_like.seek(0)
    zf = zipfile.ZipFile(file_like, "r")
    try:
        validate_zipfile(zf, limits=limits, source=source)
    except ExtractionZipBombError:
        zf.close()
        raise
    return zf
