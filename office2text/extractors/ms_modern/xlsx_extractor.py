"""
XLSX Spreadsheet Reader
=======================

Extracts text from Microsoft Excel .xlsx files (Office Open XML format, Excel
2007 and later) and their macro-enabled and template variants.

Cells are read straight from the worksheet XML. openpyxl supplies the number
format and date helpers, so rendered values match what Excel displays.

File Format Background
----------------------
The .xlsx format is a ZIP archive containing XML files following the Office
Open XML (OOXML) standard. Key components:

    xl/workbook.xml: Workbook properties and sheet list
    xl/worksheets/sheet1.xml, sheet2.xml, ...: Individual sheet data
    xl/chartsheets/sheet1.xml, ...: Sheets holding a single chart
    xl/sharedStrings.xml: Shared string table (for cell text)
    xl/styles.xml: Cell formatting and styles
    xl/drawings/drawing1.xml, ...: Shapes, charts and diagrams on a sheet
    xl/comments1.xml, ...: Legacy cell comments (notes)

XML Namespaces:
    - spreadsheetml: http://schemas.openxmlformats.org/spreadsheetml/2006/main
    - r: http://schemas.openxmlformats.org/officeDocument/2006/relationships

Dependencies
------------
openpyxl: https://github.com/theorchard/openpyxl
    pip install openpyxl

    Provides:
    - Built-in number format table
    - Date format detection
    - Serial date conversion for both the 1900 and the 1904 date systems
    - Cell coordinate parsing
    - ``_xHHHH_`` escape decoding

Cell Types
----------
    t="s"          index into the shared string table
    t="inlineStr"  rich text stored in the cell
    t="str"        formula string result
    t="b"          boolean, rendered TRUE / FALSE
    t="e"          error value such as #DIV/0!
    t="n" or none  number, rendered through the cell's number format

Each row with at least one populated cell becomes one fragment holding the
populated values in column order, separated by tabs.
"""

import datetime
import logging
import re
from typing import Dict, List, Tuple
from xml.etree import ElementTree as ET

from openpyxl.styles.numbers import (
    BUILTIN_FORMATS,
    is_date_format,
    is_datetime,
    is_timedelta_format,
)
from openpyxl.utils.cell import column_index_from_string, coordinate_from_string
from openpyxl.utils.datetime import MAC_EPOCH, WINDOWS_EPOCH, from_excel
from openpyxl.utils.escape import unescape
from openpyxl.utils.exceptions import CellCoordinatesException

from office2text.exceptions import CorruptedPartError, ExtractionError
from office2text.extractors.abstract_extractor import (
    DocumentReader,
    relationship_kind,
)
from office2text.extractors.data_types import ContainerPart, MetadataValue
from office2text.extractors.ms_modern.drawingml import (
    chart_texts,
    diagram_texts,
    drawing_texts,
)
from office2text.extractors.util.zip_utils import local_name, parse_xml

logger = logging.getLogger(__name__)

S_NS = "{http://schemas.openxmlformats.org/spreadsheetml/2006/main}"
R_NS = "{http://schemas.openxmlformats.org/officeDocument/2006/relationships}"

S_SHEETS = f"{S_NS}sheets"
S_SHEET = f"{S_NS}sheet"
S_WORKBOOK_PR = f"{S_NS}workbookPr"
S_SHEET_DATA = f"{S_NS}sheetData"
S_ROW = f"{S_NS}row"
S_C = f"{S_NS}c"
S_V = f"{S_NS}v"
S_IS = f"{S_NS}is"
S_T = f"{S_NS}t"
S_R = f"{S_NS}r"
S_SI = f"{S_NS}si"
S_NUM_FMTS = f"{S_NS}numFmts"
S_NUM_FMT = f"{S_NS}numFmt"
S_CELL_XFS = f"{S_NS}cellXfs"
S_XF = f"{S_NS}xf"
S_AUTHORS = f"{S_NS}authors"
S_COMMENT_LIST = f"{S_NS}commentList"
S_TEXT = f"{S_NS}text"

GENERAL_FORMAT = "General"

_SECTION_DIRECTIVES = re.compile(r"\[[^\]]*\]")
_QUOTED_LITERAL = re.compile(r'"([^"]*)"')
_NUMBER_CORE = re.compile(r"[#0?][#0?,]*(?:\.[#0?]*)?|\.[#0?]+")


def _rich_text(elem: ET.Element) -> str:
    """Text of an ``si`` or ``is`` element without phonetic runs."""
    t = elem.find(S_T)
    if t is not None:
        return unescape(t.text or "")
    runs = (r.find(S_T) for r in elem.findall(S_R))
    return "".join(unescape(t.text or "") for t in runs if t is not None)


def _general(value: float) -> str:
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return f"{value:.15g}"


def _literal(text: str) -> str:
    text = _QUOTED_LITERAL.sub(lambda m: m.group(1), text)
    # padding (_x) and fill (*x) directives take one character
    text = re.sub(r"[_*].", "", text)
    return text.replace("\\", "")


def _decimals(core: str) -> int:
    if "." not in core:
        return 0
    return sum(1 for ch in core.split(".", 1)[1] if ch in "0#?")


def _format_date(value: float, fmt: str, date1904: bool) -> str:
    epoch = MAC_EPOCH if date1904 else WINDOWS_EPOCH
    if is_timedelta_format(fmt):
        seconds = round(value * 86400)
        hours, rest = divmod(seconds, 3600)
        minutes, seconds = divmod(rest, 60)
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    converted = from_excel(value, epoch)
    if isinstance(converted, datetime.datetime):
        kind = is_datetime(fmt)
        if kind == "date":
            return converted.date().isoformat()
        if kind == "time":
            return converted.time().isoformat()
        return converted.isoformat()
    return converted.isoformat() if converted is not None else _general(value)


def format_number(value: float, fmt: str | None, date1904: bool = False) -> str:
    """
    Render a numeric cell value the way its number format displays it.

    Args:
        value: The raw cell value.
        fmt: Number format code, ``None`` or ``General`` for the default.
        date1904: The workbook uses the 1904 date system.

    Returns:
        Display text. Formats that cannot be interpreted fall back to General.
    """
    if not fmt or fmt == GENERAL_FORMAT or fmt == "@":
        return _general(value)

    if is_date_format(fmt):
        try:
            return _format_date(value, fmt, date1904)
        except (ValueError, OverflowError):
            return _general(value)

    sections = fmt.split(";")
    section = sections[0]
    if value < 0 and len(sections) > 1 and sections[1]:
        # the negative section carries its own sign or parentheses
        section = sections[1]
        value = -value
    elif value == 0 and len(sections) > 2 and sections[2]:
        section = sections[2]
    section = _SECTION_DIRECTIVES.sub("", section)
    if "/" in section:
        # fractions are not rendered
        return _general(value)

    match = _NUMBER_CORE.search(section)
    if match is None:
        return _literal(section) or _general(value)
    core = match.group(0)
    prefix = _literal(section[: match.start()])
    suffix = _literal(section[match.end() :])

    if "E+" in suffix.upper() or "E-" in suffix.upper():
        exponent = re.match(r"[Ee][+-]0+", suffix)
        rendered = f"{value:.{_decimals(core)}E}"
        return prefix + rendered + (suffix[exponent.end() :] if exponent else "")

    if "%" in suffix or "%" in prefix:
        value *= 100
    grouping = "," if "," in core.split(".", 1)[0] else ""
    return f"{prefix}{value:{grouping}.{_decimals(core)}f}{suffix}"


def _cell_position(coordinate: str | None, fallback: int) -> int:
    if not coordinate:
        return fallback
    try:
        column, _ = coordinate_from_string(coordinate)
        return column_index_from_string(column)
    except (CellCoordinatesException, ValueError):
        return fallback


class XlsxReader(DocumentReader):
    """Reader for spreadsheet packages."""

    follow_kinds = frozenset({"drawing", "chart", "diagramData", "comments", "package"})

    def __init__(self, container, config, diagnostics):
        super().__init__(container, config, diagnostics)
        self.sheet_names: List[str] = []
        self.date1904 = False
        self._shared_strings: List[str] | None = None
        self._shared_strings_broken = False
        self._styles: Tuple[Dict[int, str], List[int]] | None = None

    def _workbook_part(self, kind: str) -> str | None:
        main = self.main_part
        if main is None:
            return None
        for rel in self.container.relationships.of_type(main, kind):
            if not rel.external and self.container.exists(rel.target):
                return rel.target
        return None

    def _find_entry_parts(self) -> List[str]:
        main = self.main_part
        if main is None:
            return []
        root = parse_xml(self.container.read_part(main).data, self.container.qualify(main))

        workbook_pr = root.find(S_WORKBOOK_PR)
        if workbook_pr is not None:
            self.date1904 = workbook_pr.get("date1904") in ("1", "true")

        entries: List[str] = []
        sheets = root.find(S_SHEETS)
        if sheets is None:
            return entries
        for sheet in sheets.findall(S_SHEET):
            name = sheet.get("name") or ""
            rel = self.container.relationships.by_id(main, sheet.get(f"{R_NS}id") or "")
            if rel is None or rel.external:
                logger.debug("Sheet [%s] without relationship", name)
                continue
            if relationship_kind(rel) not in ("worksheet", "chartsheet"):
                continue
            self.sheet_names.append(name)
            entries.append(rel.target)
        logger.debug("Workbook declares %d sheets", len(entries))
        return entries

    def _load_shared_strings(self) -> List[str]:
        target = self._workbook_part("sharedStrings")
        if target is None:
            return []
        try:
            root = parse_xml(
                self.container.read_part(target).data, self.container.qualify(target)
            )
        except ExtractionError as exc:
            self.diagnostics.record(self.container.qualify(target), exc)
            self._shared_strings_broken = True
            return []
        strings = [_rich_text(si) for si in root.findall(S_SI)]
        logger.debug("Loaded %d shared strings", len(strings))
        return strings

    @property
    def shared_strings(self) -> List[str]:
        if self._shared_strings is None:
            self._shared_strings = self._load_shared_strings()
        return self._shared_strings

    def _load_styles(self) -> Tuple[Dict[int, str], List[int]]:
        formats: Dict[int, str] = dict(BUILTIN_FORMATS)
        cell_formats: List[int] = []
        target = self._workbook_part("styles")
        if target is None:
            return formats, cell_formats
        try:
            root = parse_xml(
                self.container.read_part(target).data, self.container.qualify(target)
            )
        except ExtractionError as exc:
            self.diagnostics.record(self.container.qualify(target), exc)
            return formats, cell_formats

        num_fmts = root.find(S_NUM_FMTS)
        if num_fmts is not None:
            for num_fmt in num_fmts.findall(S_NUM_FMT):
                try:
                    formats[int(num_fmt.get("numFmtId", ""))] = num_fmt.get("formatCode") or ""
                except ValueError:
                    continue
        cell_xfs = root.find(S_CELL_XFS)
        if cell_xfs is not None:
            for xf in cell_xfs.findall(S_XF):
                try:
                    cell_formats.append(int(xf.get("numFmtId", "0")))
                except ValueError:
                    cell_formats.append(0)
        return formats, cell_formats

    def number_format(self, style_index: str | None) -> str | None:
        if self._styles is None:
            self._styles = self._load_styles()
        formats, cell_formats = self._styles
        try:
            index = int(style_index or 0)
        except ValueError:
            return None
        if index < 0 or index >= len(cell_formats):
            return None
        return formats.get(cell_formats[index])

    def _cell_text(self, c: ET.Element, part: str) -> str | None:
        cell_type = c.get("t", "n")
        if cell_type == "inlineStr":
            inline = c.find(S_IS)
            return _rich_text(inline) if inline is not None else None

        v = c.find(S_V)
        if v is None or v.text is None:
            return None
        raw = v.text

        if cell_type == "s":
            strings = self.shared_strings
            if self._shared_strings_broken:
                return None
            try:
                index = int(raw)
            except ValueError as exc:
                raise CorruptedPartError(
                    f"Invalid shared string index [{raw}] in [{part}]",
                    part=part,
                    cause=exc,
                ) from exc
            if not 0 <= index < len(strings):
                raise CorruptedPartError(
                    f"Shared string index {index} out of bounds "
                    f"({len(strings)} entries) in [{part}]",
                    part=part,
                )
            return strings[index]
        if cell_type == "b":
            return "TRUE" if raw.strip() in ("1", "true") else "FALSE"
        if cell_type in ("str", "e"):
            return unescape(raw)

        try:
            value = float(raw)
        except ValueError:
            return raw
        return format_number(value, self.number_format(c.get("s")), self.date1904)

    def _sheet_rows(self, root: ET.Element, part: str) -> List[str]:
        sheet_data = root.find(S_SHEET_DATA)
        if sheet_data is None:
            return []

        rows: List[Tuple[int, List[Tuple[int, str]]]] = []
        row_number = 0
        for row in sheet_data.findall(S_ROW):
            try:
                row_number = int(row.get("r") or row_number + 1)
            except ValueError:
                row_number += 1
            cells: List[Tuple[int, str]] = []
            column = 0
            for c in row.findall(S_C):
                column = _cell_position(c.get("r"), column + 1)
                text = self._cell_text(c, part)
                if text is not None and text.strip():
                    cells.append((column, text))
            if cells:
                rows.append((row_number, cells))

        rows.sort(key=lambda item: item[0])
        return [
            "\t".join(text for _, text in sorted(cells, key=lambda item: item[0]))
            for _, cells in rows
        ]

    def _comment_texts(self, root: ET.Element) -> List[str]:
        authors_elem = root.find(S_AUTHORS)
        authors = [a.text or "" for a in authors_elem] if authors_elem is not None else []
        comments = []
        comment_list = root.find(S_COMMENT_LIST)
        if comment_list is None:
            return comments
        for comment in comment_list:
            text_elem = comment.find(S_TEXT)
            text = _rich_text(text_elem).strip() if text_elem is not None else ""
            if not text:
                continue
            try:
                author = authors[int(comment.get("authorId", ""))]
            except (ValueError, IndexError):
                author = ""
            comments.append(f"[Comment: {author}@{comment.get('ref', '')}: {text}]")
        return comments

    def extract_part(self, part: ContainerPart) -> List[str]:
        qualified = self.container.qualify(part.name)
        root = parse_xml(part.data, qualified)
        tag = local_name(root.tag)

        if tag == "worksheet":
            return self._sheet_rows(root, qualified)
        if tag == "chartsheet":
            return []
        if tag == "comments":
            return self._comment_texts(root)
        if tag == "dataModel":
            return diagram_texts(root, self.config.max_diagram_depth, qualified)
        if tag == "chartSpace":
            return chart_texts(root)
        return drawing_texts(root)

    def derived_metadata(self) -> Dict[str, MetadataValue]:
        sheets = str(len(self.entry_parts()))
        metadata: Dict[str, MetadataValue] = {"sheet-count": sheets}
        if self.sheet_names:
            metadata["sheet-names"] = list(self.sheet_names)
        metadata["page-count"] = sheets
        return metadata
