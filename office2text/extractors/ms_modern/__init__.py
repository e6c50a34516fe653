"""
Office Open XML Reader Package
==============================

Readers for the Office Open XML formats (Office 2007 and later), which store
documents as ZIP archives of XML parts linked by relationship files.

Supported Formats
-----------------

.pptx, .pptm, .potx, .ppsx (PowerPoint):
    Slides in presentation order with notes, comments, SmartArt diagrams,
    charts and embedded packages.

.xlsx, .xlsm, .xltx (Excel):
    Worksheets in workbook order, one tab-separated line per row, with cell
    values rendered through their number formats.

.docx, .docm, .dotx (Word):
    Body paragraphs and tables, headers, footers, notes and comments.

Common Archive Structure:
    document.docx/
        [Content_Types].xml    MIME types for parts
        _rels/.rels            Package relationships
        docProps/core.xml      Title, author, dates
        docProps/app.xml       Application properties
        word/ (or ppt/, xl/)   Main content and its relationships

Shared DrawingML handling (text bodies, tables, charts and diagram data
models) lives in :mod:`office2text.extractors.ms_modern.drawingml`.
"""

from office2text.extractors.ms_modern.docx_extractor import DocxReader
from office2text.extractors.ms_modern.pptx_extractor import PptxReader
from office2text.extractors.ms_modern.xlsx_extractor import XlsxReader

__all__ = [
    "DocxReader",
    "PptxReader",
    "XlsxReader",
]
