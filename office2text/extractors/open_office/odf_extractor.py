"""
OpenDocument Reader
===================

Extracts text from OpenDocument Text (.odt), Presentation (.odp) and
Spreadsheet (.ods) files created by LibreOffice, OpenOffice and other
ODF-compatible applications, and from their templates.

File Format Background
----------------------
ODF files are ZIP archives containing XML files following the OASIS
OpenDocument standard (ISO/IEC 26300). Key components:

    mimetype: Uncompressed first entry naming the document type
    content.xml: Document body (paragraphs, tables, pages, sheets)
    meta.xml: Metadata (title, author, dates, statistics)
    META-INF/manifest.xml: File list with media types and encryption data
    Object 1/content.xml, ...: Embedded sub-documents (charts, formulas)
    Pictures/: Embedded images

All three document types share the same text vocabulary, so one walker
serves them. The body of content.xml holds exactly one of:

    - office:text: paragraphs, headings, lists, sections and tables
    - office:presentation: draw:page elements with frames and notes
    - office:spreadsheet: table:table elements, one per sheet

Special Element Handling
------------------------
ODF uses special elements for whitespace preservation:
    - text:s: Space element (text:c attribute for count)
    - text:tab: Tab character
    - text:line-break: Soft line break

Footnotes (text:note), annotations (office:annotation) and frames anchored
inside a paragraph are emitted as fragments after that paragraph.

Spreadsheet rows and cells may carry ``number-rows-repeated`` and
``number-columns-repeated``. Empty repeats collapse to one cell; repeats with
content expand up to ``max_repeated_cells``, which also caps ``text:s`` space
runs.
"""

import logging
from typing import Dict, Iterator, List
from xml.etree import ElementTree as ET

from office2text.exceptions import CorruptedPartError, ExtractionFileEncryptedError
from office2text.extractors.abstract_extractor import DocumentReader
from office2text.extractors.data_types import ContainerPart, MetadataValue
from office2text.extractors.util.container import ODF_CONTENT_PART
from office2text.extractors.util.encryption import is_odf_encrypted
from office2text.extractors.util.zip_utils import parse_xml

logger = logging.getLogger(__name__)

# ODF namespaces
NS = {
    "office": "urn:oasis:names:tc:opendocument:xmlns:office:1.0",
    "text": "urn:oasis:names:tc:opendocument:xmlns:text:1.0",
    "table": "urn:oasis:names:tc:opendocument:xmlns:table:1.0",
    "draw": "urn:oasis:names:tc:opendocument:xmlns:drawing:1.0",
    "presentation": "urn:oasis:names:tc:opendocument:xmlns:presentation:1.0",
    "dc": "http://purl.org/dc/elements/1.1/",
}

_TEXT_P_TAG = f"{{{NS['text']}}}p"
_TEXT_H_TAG = f"{{{NS['text']}}}h"
_TEXT_SPACE_TAG = f"{{{NS['text']}}}s"
_TEXT_TAB_TAG = f"{{{NS['text']}}}tab"
_TEXT_LINE_BREAK_TAG = f"{{{NS['text']}}}line-break"
_TEXT_NOTE_TAG = f"{{{NS['text']}}}note"
_TEXT_NOTE_BODY_TAG = f"{{{NS['text']}}}note-body"
_TEXT_TRACKED_CHANGES_TAG = f"{{{NS['text']}}}tracked-changes"
_OFFICE_ANNOTATION_TAG = f"{{{NS['office']}}}annotation"
_OFFICE_BODY_TAG = f"{{{NS['office']}}}body"
_DC_CREATOR_TAG = f"{{{NS['dc']}}}creator"
_DC_DATE_TAG = f"{{{NS['dc']}}}date"

_TABLE_TABLE_TAG = f"{{{NS['table']}}}table"
_TABLE_ROW_TAG = f"{{{NS['table']}}}table-row"
_TABLE_CELL_TAG = f"{{{NS['table']}}}table-cell"
_TABLE_COVERED_CELL_TAG = f"{{{NS['table']}}}covered-table-cell"
_TABLE_ROW_GROUPS = {
    f"{{{NS['table']}}}table-header-rows",
    f"{{{NS['table']}}}table-rows",
    f"{{{NS['table']}}}table-row-group",
}

_DRAW_FRAME_TAG = f"{{{NS['draw']}}}frame"
_DRAW_PAGE_TAG = f"{{{NS['draw']}}}page"
_DRAW_SHAPE_TAGS = {
    _DRAW_FRAME_TAG,
    f"{{{NS['draw']}}}custom-shape",
    f"{{{NS['draw']}}}rect",
    f"{{{NS['draw']}}}ellipse",
}

_ATTR_TEXT_C = f"{{{NS['text']}}}c"
_ATTR_TABLE_NAME = f"{{{NS['table']}}}name"
_ATTR_ROWS_REPEATED = f"{{{NS['table']}}}number-rows-repeated"
_ATTR_COLUMNS_REPEATED = f"{{{NS['table']}}}number-columns-repeated"

# elements never holding document text
_SKIPPED_BLOCKS = {
    _TEXT_TRACKED_CHANGES_TAG,
    f"{{{NS['office']}}}annotation-end",
    f"{{{NS['office']}}}automatic-styles",
    f"{{{NS['office']}}}font-face-decls",
    f"{{{NS['office']}}}scripts",
    f"{{{NS['office']}}}forms",
    f"{{{NS['text']}}}sequence-decls",
    f"{{{NS['text']}}}variable-decls",
    f"{{{NS['table']}}}named-expressions",
}


def _repeat(elem: ET.Element, attribute: str) -> int:
    try:
        return max(1, int(elem.get(attribute, "1")))
    except ValueError:
        return 1


def _inline_text(
    element: ET.Element, trailing: List[ET.Element], max_spaces: int
) -> str:
    """Text of a paragraph; notes, annotations and frames go to ``trailing``.

    Runs of ``text:s`` spaces are capped at ``max_spaces``.
    """
    parts: List[str] = []
    if element.text:
        parts.append(element.text)

    for child in element:
        tag = child.tag
        if tag == _TEXT_SPACE_TAG:
            parts.append(" " * min(_repeat(child, _ATTR_TEXT_C), max_spaces))
        elif tag == _TEXT_TAB_TAG:
            parts.append("\t")
        elif tag == _TEXT_LINE_BREAK_TAG:
            parts.append("\n")
        elif tag in (_TEXT_NOTE_TAG, _OFFICE_ANNOTATION_TAG) or tag in _DRAW_SHAPE_TAGS:
            trailing.append(child)
        elif tag in _SKIPPED_BLOCKS:
            pass
        else:
            parts.append(_inline_text(child, trailing, max_spaces))

        if child.tail:
            parts.append(child.tail)

    return "".join(parts)


def _iter_rows(table: ET.Element) -> Iterator[ET.Element]:
    for child in table:
        if child.tag == _TABLE_ROW_TAG:
            yield child
        elif child.tag in _TABLE_ROW_GROUPS:
            yield from _iter_rows(child)


class OdfReader(DocumentReader):
    """Reader for OpenDocument text, presentation and spreadsheet packages."""

    follow_kinds = frozenset({"object"})

    def __init__(self, container, config, diagnostics):
        super().__init__(container, config, diagnostics)
        self._body_kind: str | None = None
        self._page_count = 0
        self._sheet_names: List[str] = []

    def _find_entry_parts(self) -> List[str]:
        if is_odf_encrypted(self.container.zip_file):
            raise ExtractionFileEncryptedError(
                "OpenDocument package is encrypted", part=self.container.qualify(ODF_CONTENT_PART)
            )
        if not self.container.exists(ODF_CONTENT_PART):
            qualified = self.container.qualify(ODF_CONTENT_PART)
            raise CorruptedPartError(f"Missing part [{qualified}]", part=qualified)
        return [ODF_CONTENT_PART]

    def extract_part(self, part: ContainerPart) -> List[str]:
        qualified = self.container.qualify(part.name)
        root = parse_xml(part.data, qualified)
        body = root.find(_OFFICE_BODY_TAG)
        if body is None:
            logger.debug("No office:body in [%s]", qualified)
            return []

        if part.name == ODF_CONTENT_PART:
            self._count_pages(body)
        return self._block_texts(body)

    def _count_pages(self, body: ET.Element) -> None:
        for content in body:
            self._body_kind = content.tag.rsplit("}", 1)[-1]
            if self._body_kind == "presentation":
                self._page_count = len(content.findall(_DRAW_PAGE_TAG))
            elif self._body_kind == "spreadsheet":
                tables = content.findall(_TABLE_TABLE_TAG)
                self._page_count = len(tables)
                self._sheet_names = [
                    name for name in (t.get(_ATTR_TABLE_NAME) for t in tables) if name
                ]
            break

    def _block_texts(self, parent: ET.Element) -> List[str]:
        texts: List[str] = []
        for elem in parent:
            texts.extend(self._element_texts(elem))
        return texts

    def _element_texts(self, elem: ET.Element) -> List[str]:
        tag = elem.tag
        if tag in (_TEXT_P_TAG, _TEXT_H_TAG):
            trailing: List[ET.Element] = []
            text = _inline_text(elem, trailing, self.config.max_repeated_cells)
            texts = [text] if text.strip() else []
            for item in trailing:
                texts.extend(self._trailing_texts(item))
            return texts
        if tag == _TABLE_TABLE_TAG:
            return self._table_rows(elem)
        if tag == _OFFICE_ANNOTATION_TAG:
            return self._trailing_texts(elem)
        if tag in _SKIPPED_BLOCKS:
            return []
        # lists, sections, pages, frames, text boxes and notes
        return self._block_texts(elem)

    def _trailing_texts(self, elem: ET.Element) -> List[str]:
        if elem.tag == _OFFICE_ANNOTATION_TAG:
            text = "\n".join(self._block_texts(elem)).strip()
            if not text:
                return []
            creator = elem.find(_DC_CREATOR_TAG)
            date = elem.find(_DC_DATE_TAG)
            author = creator.text if creator is not None and creator.text else ""
            when = date.text if date is not None and date.text else ""
            return [f"[Comment: {author}@{when}: {text}]"]
        if elem.tag == _TEXT_NOTE_TAG:
            body = elem.find(_TEXT_NOTE_BODY_TAG)
            return self._block_texts(body) if body is not None else []
        return self._block_texts(elem)

    def _table_rows(self, table: ET.Element) -> List[str]:
        cap = self.config.max_repeated_cells
        rows: List[str] = []
        for row in _iter_rows(table):
            cells: List[str] = []
            comments: List[str] = []
            for cell in row:
                if cell.tag not in (_TABLE_CELL_TAG, _TABLE_COVERED_CELL_TAG):
                    continue
                parts: List[str] = []
                for child in cell:
                    if child.tag == _OFFICE_ANNOTATION_TAG:
                        comments.extend(self._trailing_texts(child))
                    else:
                        parts.extend(self._element_texts(child))
                text = " ".join(parts)
                repeat = _repeat(cell, _ATTR_COLUMNS_REPEATED)
                if text.strip():
                    cells.extend([text] * min(repeat, cap))
                else:
                    cells.append("")

            while cells and not cells[-1]:
                cells.pop()
            if cells:
                line = "\t".join(cells)
                rows.extend([line] * min(_repeat(row, _ATTR_ROWS_REPEATED), cap))
            rows.extend(comments)
        return rows

    def derived_metadata(self) -> Dict[str, MetadataValue]:
        if self._body_kind == "presentation":
            pages = str(self._page_count)
            return {"slide-count": pages, "page-count": pages}
        if self._body_kind == "spreadsheet":
            metadata: Dict[str, MetadataValue] = {
                "sheet-count": str(self._page_count),
                "page-count": str(self._page_count),
            }
            if self._sheet_names:
                metadata["sheet-names"] = list(self._sheet_names)
            return metadata
        return {}
