"""
DOCX Document Reader
====================

Extracts text from Microsoft Word .docx files (Office Open XML format, Word
2007 and later) and their macro-enabled and template variants.

File Format Background
----------------------
The .docx format is a ZIP archive containing XML files following the Office
Open XML (OOXML) standard. Key components:

    word/document.xml: Main document body (paragraphs, tables)
    word/header1.xml, footer1.xml, ...: Headers and footers
    word/footnotes.xml, word/endnotes.xml: Notes
    word/comments.xml: Review comments
    word/_rels/document.xml.rels: Relationships to the parts above,
        embedded charts, diagrams and packages

XML Namespaces:
    - w: http://schemas.openxmlformats.org/wordprocessingml/2006/main
    - mc: http://schemas.openxmlformats.org/markup-compatibility/2006
    - r: http://schemas.openxmlformats.org/officeDocument/2006/relationships

Reading Order
-------------
Body children are read in document order. Each paragraph becomes one
fragment: ``w:tab`` becomes a tab, ``w:br`` and ``w:cr`` a line break.
Deleted revisions (``w:delText``) and field instructions are skipped. Each
table row becomes one fragment with its cells separated by tabs. Text boxes
anchored in a paragraph follow that paragraph as fragments of their own.

AlternateContent Handling
-------------------------
Word stores modern drawing content inside ``mc:AlternateContent`` with a
legacy VML copy in ``mc:Fallback``. Only ``mc:Choice`` is read so text boxes
are not duplicated.

Headers, footers, notes and comments are separate parts and follow the body
in the order the document relationships declare them.
"""

import logging
from typing import List
from xml.etree import ElementTree as ET

from office2text.exceptions import CorruptedPartError
from office2text.extractors.abstract_extractor import DocumentReader
from office2text.extractors.data_types import ContainerPart
from office2text.extractors.ms_modern.drawingml import (
    alternate_content_choice,
    chart_texts,
    diagram_texts,
    drawing_texts,
)
from office2text.extractors.util.zip_utils import local_name, parse_xml

logger = logging.getLogger(__name__)

W_NS = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"

W_BODY = f"{W_NS}body"
W_P = f"{W_NS}p"
W_T = f"{W_NS}t"
W_TBL = f"{W_NS}tbl"
W_TR = f"{W_NS}tr"
W_TC = f"{W_NS}tc"
W_SDT = f"{W_NS}sdt"
W_SDT_CONTENT = f"{W_NS}sdtContent"
W_TYPE = f"{W_NS}type"
W_AUTHOR = f"{W_NS}author"
W_DATE = f"{W_NS}date"

# run-level elements without document text
_SKIPPED_TAGS = {"rPr", "pPr", "delText", "instrText", "del", "Fallback", "fldData"}
# block containers whose children are read as body content
_TRANSPARENT_BLOCKS = {"customXml", "ins", "smartTag", "moveTo"}
# footnote/endnote types that are layout artifacts
_SEPARATOR_NOTE_TYPES = {"separator", "continuationSeparator", "continuationNotice"}


def _paragraph_text(p: ET.Element, text_boxes: List[ET.Element]) -> str:
    """Text of one ``w:p``; text box contents are collected separately."""
    parts: List[str] = []

    def process_element(elem: ET.Element) -> None:
        tag = local_name(elem.tag)
        if tag == "AlternateContent":
            choice = alternate_content_choice(elem)
            if choice is not None:
                for child in choice:
                    process_element(child)
            return
        if tag in _SKIPPED_TAGS:
            return
        if elem.tag == W_T:
            if elem.text:
                parts.append(elem.text)
        elif tag == "tab" and elem.tag.startswith(W_NS):
            parts.append("\t")
        elif tag in ("br", "cr") and elem.tag.startswith(W_NS):
            parts.append("\n")
        elif tag == "noBreakHyphen":
            parts.append("-")
        elif tag == "txbxContent":
            text_boxes.append(elem)
        else:
            for child in elem:
                process_element(child)

    for child in p:
        process_element(child)
    return "".join(parts)


def _table_rows(tbl: ET.Element) -> List[str]:
    rows = []
    for tr in tbl.findall(W_TR):
        cells = [" ".join(block_texts(tc)) for tc in tr.findall(W_TC)]
        line = "\t".join(cells)
        if line.strip():
            rows.append(line)
    return rows


def block_texts(parent: ET.Element) -> List[str]:
    """Fragments of a block container (body, cell, header, note, text box)."""
    texts: List[str] = []
    for elem in parent:
        tag = local_name(elem.tag)
        if elem.tag == W_P:
            text_boxes: List[ET.Element] = []
            text = _paragraph_text(elem, text_boxes)
            if text.strip():
                texts.append(text)
            for box in text_boxes:
                texts.extend(block_texts(box))
        elif elem.tag == W_TBL:
            texts.extend(_table_rows(elem))
        elif elem.tag == W_SDT:
            content = elem.find(W_SDT_CONTENT)
            if content is not None:
                texts.extend(block_texts(content))
        elif tag == "AlternateContent":
            choice = alternate_content_choice(elem)
            if choice is not None:
                texts.extend(block_texts(choice))
        elif tag in _TRANSPARENT_BLOCKS:
            texts.extend(block_texts(elem))
    return texts


class DocxReader(DocumentReader):
    """Reader for word-processing packages."""

    follow_kinds = frozenset(
        {
            "header",
            "footer",
            "footnotes",
            "endnotes",
            "comments",
            "diagramData",
            "chart",
            "package",
        }
    )

    def _find_entry_parts(self) -> List[str]:
        main = self.main_part
        return [main] if main is not None else []

    def _notes_texts(self, root: ET.Element) -> List[str]:
        texts = []
        for note in root:
            if note.get(W_TYPE) in _SEPARATOR_NOTE_TYPES:
                continue
            texts.extend(block_texts(note))
        return texts

    def _comment_texts(self, root: ET.Element) -> List[str]:
        comments = []
        for comment in root:
            text = "\n".join(block_texts(comment)).strip()
            if not text:
                continue
            author = comment.get(W_AUTHOR) or ""
            date = comment.get(W_DATE) or ""
            comments.append(f"[Comment: {author}@{date}: {text}]")
        return comments

    def extract_part(self, part: ContainerPart) -> List[str]:
        qualified = self.container.qualify(part.name)
        root = parse_xml(part.data, qualified)
        tag = local_name(root.tag)

        if tag == "document":
            body = root.find(W_BODY)
            if body is None:
                raise CorruptedPartError(
                    f"Document [{qualified}] has no body", part=qualified
                )
            texts = block_texts(body)
            logger.debug("Document body [%s]: %d fragments", qualified, len(texts))
            return texts
        if tag in ("hdr", "ftr"):
            return block_texts(root)
        if tag in ("footnotes", "endnotes"):
            return self._notes_texts(root)
        if tag == "comments":
            return self._comment_texts(root)
        if tag == "dataModel":
            return diagram_texts(root, self.config.max_diagram_depth, qualified)
        if tag == "chartSpace":
            return chart_texts(root)
        return drawing_texts(root)
