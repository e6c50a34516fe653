"""
DrawingML Text Helpers
======================

Text extraction shared by the presentation, spreadsheet and word-processing
readers for the DrawingML parts they all embed.

File Format Background
----------------------
DrawingML is the graphics vocabulary of Office Open XML. Text lives in
``a:p`` paragraphs made of ``a:r`` runs, ``a:fld`` fields and ``a:br``
breaks, regardless of the hosting part:

    ppt/slides/slideN.xml        p:sp/p:txBody/a:p
    xl/drawings/drawingN.xml     xdr:sp/xdr:txBody/a:p
    */charts/chartN.xml          c:title/c:tx/c:rich/a:p, c:strCache/c:pt/c:v
    */diagrams/dataN.xml         dgm:ptLst/dgm:pt/dgm:t/a:p

Diagram Data Model
------------------
A SmartArt diagram stores its text in a data model: a flat list of points
(``dgm:ptLst``) plus a list of connections (``dgm:cxnLst``) forming a tree
rooted at the ``doc`` point. Transition and presentation points carry no
user text. The connection graph is walked breadth-first from the document
points with a visited-set, so cyclic or self-referencing connections in
damaged files terminate. Text is emitted in point declaration order.
"""

import logging
from collections import deque
from typing import Dict, List
from xml.etree import ElementTree as ET

from office2text.extractors.util.zip_utils import local_name

logger = logging.getLogger(__name__)

A_NS = "{http://schemas.openxmlformats.org/drawingml/2006/main}"
C_NS = "{http://schemas.openxmlformats.org/drawingml/2006/chart}"
DGM_NS = "{http://schemas.openxmlformats.org/drawingml/2006/diagram}"
MC_NS = "{http://schemas.openxmlformats.org/markup-compatibility/2006}"

A_P = f"{A_NS}p"
A_R = f"{A_NS}r"
A_T = f"{A_NS}t"
A_FLD = f"{A_NS}fld"
A_BR = f"{A_NS}br"
A_TBL = f"{A_NS}tbl"
A_TR = f"{A_NS}tr"
A_TC = f"{A_NS}tc"

C_STR_CACHE = f"{C_NS}strCache"
C_PT = f"{C_NS}pt"
C_V = f"{C_NS}v"

DGM_PT_LST = f"{DGM_NS}ptLst"
DGM_PT = f"{DGM_NS}pt"
DGM_CXN_LST = f"{DGM_NS}cxnLst"
DGM_CXN = f"{DGM_NS}cxn"
DGM_T = f"{DGM_NS}t"

# point types without user text
_DIAGRAM_SKIP_TYPES = {"parTrans", "sibTrans", "pres"}
# connection types that do not belong to the data hierarchy
_DIAGRAM_SKIP_CXN_TYPES = {"presOf", "presParOf"}

DIAGRAM_DEPTH_PLACEHOLDER = "[diagram nodes beyond depth {depth} not extracted]"


def paragraph_text(p: ET.Element) -> str:
    """Text of one ``a:p`` with ``a:br`` rendered as a line break."""
    texts: list[str] = []
    for child in p:
        if child.tag in (A_R, A_FLD):
            t = child.find(A_T)
            if t is not None and t.text:
                texts.append(t.text)
        elif child.tag == A_BR:
            texts.append("\n")
        elif child.tag == A_T and child.text:
            texts.append(child.text)
    return "".join(texts)


def text_body_paragraphs(elem: ET.Element) -> List[str]:
    return [text for text in (paragraph_text(p) for p in elem.iter(A_P)) if text.strip()]


def table_rows(tbl: ET.Element) -> List[str]:
    """One tab-joined line per ``a:tr``; merged continuation cells are skipped."""
    rows = []
    for tr in tbl.iter(A_TR):
        cells = []
        for tc in tr.findall(A_TC):
            if tc.get("hMerge") == "1" or tc.get("vMerge") == "1":
                continue
            cells.append(" ".join(text_body_paragraphs(tc)))
        line = "\t".join(cells)
        if line.strip():
            rows.append(line)
    return rows


def chart_texts(root: ET.Element) -> List[str]:
    """Title and label paragraphs plus cached category and series strings."""
    texts = []
    for elem in root.iter():
        if elem.tag == A_P:
            text = paragraph_text(elem)
            if text.strip():
                texts.append(text)
        elif elem.tag == C_STR_CACHE:
            values = [
                v.text
                for v in (pt.find(C_V) for pt in elem.findall(C_PT))
                if v is not None and v.text
            ]
            if values:
                texts.append("\t".join(values))
    return texts


def drawing_texts(root: ET.Element) -> List[str]:
    """Paragraphs of a drawing part (shapes and text boxes) in document order."""
    in_tables = {id(p) for tbl in root.iter(A_TBL) for p in tbl.iter(A_P)}
    texts = []
    for elem in root.iter():
        if elem.tag == A_TBL:
            texts.extend(table_rows(elem))
        elif elem.tag == A_P and id(elem) not in in_tables:
            text = paragraph_text(elem)
            if text.strip():
                texts.append(text)
    return texts


def diagram_texts(root: ET.Element, max_depth: int, part: str = "") -> List[str]:
    """
    Text of a diagram data model.

    Args:
        root: Parsed ``dgm:dataModel``.
        max_depth: Hierarchy levels below the document point that are read.
        part: Part name for log messages.

    Returns:
        Paragraphs of every text-bearing point in declaration order. Points
        deeper than ``max_depth`` are replaced by one placeholder line.
    """
    pt_lst = root.find(DGM_PT_LST)
    if pt_lst is None:
        return []

    points = pt_lst.findall(DGM_PT)
    children: Dict[str, List[str]] = {}
    cxn_lst = root.find(DGM_CXN_LST)
    if cxn_lst is not None:
        for cxn in cxn_lst.findall(DGM_CXN):
            if cxn.get("type") in _DIAGRAM_SKIP_CXN_TYPES:
                continue
            src = cxn.get("srcId")
            dest = cxn.get("destId")
            if src and dest:
                children.setdefault(src, []).append(dest)

    depths: Dict[str, int] = {}
    queue = deque(
        (pt.get("modelId"), 0) for pt in points if pt.get("type") == "doc" and pt.get("modelId")
    )
    while queue:
        model_id, depth = queue.popleft()
        if model_id in depths:
            continue
        depths[model_id] = depth
        for child in children.get(model_id, ()):
            if child not in depths:
                queue.append((child, depth + 1))

    texts = []
    truncated = False
    for pt in points:
        if pt.get("type") in _DIAGRAM_SKIP_TYPES:
            continue
        t = pt.find(DGM_T)
        if t is None:
            continue
        depth = depths.get(pt.get("modelId") or "")
        if depth is not None and depth > max_depth:
            truncated = True
            continue
        texts.extend(text_body_paragraphs(t))

    if truncated:
        logger.debug("Diagram [%s] deeper than %d levels", part, max_depth)
        texts.append(DIAGRAM_DEPTH_PLACEHOLDER.format(depth=max_depth))
    return texts


def alternate_content_choice(elem: ET.Element) -> ET.Element | None:
    """First ``mc:Choice`` of an ``mc:AlternateContent`` element."""
    if local_name(elem.tag) != "AlternateContent":
        return None
    return elem.find(f"{MC_NS}Choice")
