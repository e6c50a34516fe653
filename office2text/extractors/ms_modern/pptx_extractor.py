"""
PPTX Presentation Reader
========================

Extracts text from Microsoft PowerPoint .pptx files (Office Open XML format,
PowerPoint 2007 and later) and their macro-enabled, template and slideshow
variants by direct XML parsing of the package parts.

File Format Background
----------------------
The .pptx format is a ZIP archive containing XML parts following the Office
Open XML (OOXML) standard. Key components:

    ppt/presentation.xml: Presentation-level properties and slide ordering
    ppt/_rels/presentation.xml.rels: Presentation relationships
    ppt/slides/slide1.xml, slide2.xml, ...: Individual slide content
    ppt/slides/_rels/slide1.xml.rels: Per-slide relationships
    ppt/notesSlides/notesSlide1.xml, ...: Speaker notes
    ppt/comments/comment1.xml, ...: Per-slide comments
    ppt/diagrams/data1.xml, ...: SmartArt data models
    ppt/charts/chart1.xml, ...: Charts
    ppt/embeddings/: Embedded packages and OLE objects

XML Namespaces:
    - p: http://schemas.openxmlformats.org/presentationml/2006/main
    - a: http://schemas.openxmlformats.org/drawingml/2006/main
    - r: http://schemas.openxmlformats.org/officeDocument/2006/relationships

Reading Order
-------------
Slides are read in ``p:sldIdLst`` order. Within a slide, shapes are read in
declaration order, which is the z-order, recursing into group shapes. Each
paragraph becomes one fragment and each table row one tab-separated fragment.

Parts referenced by a slide (diagram data, charts, notes, comments and
embedded packages) are separate parts of the traversal and therefore follow
the slide's own text, in the order the slide's relationships declare them.

Placeholder Types (from p:ph type attribute):
    - title, ctrTitle, body, subTitle, obj: Kept
    - dt, sldImg, hdr, ftr: Skipped (not useful for text extraction)
    - sldNum: Kept on slides, skipped on notes slides
"""

import logging
from typing import Dict, List
from xml.etree import ElementTree as ET

from office2text.exceptions import CorruptedPartError
from office2text.extractors.abstract_extractor import (
    DocumentReader,
    relationship_kind,
)
from office2text.extractors.data_types import (
    ContainerPart,
    MetadataValue,
)
from office2text.extractors.ms_modern.drawingml import (
    A_TBL,
    MC_NS,
    chart_texts,
    diagram_texts,
    drawing_texts,
    table_rows,
    text_body_paragraphs,
)
from office2text.extractors.util.zip_utils import local_name, parse_xml

logger = logging.getLogger(__name__)

P_NS = "{http://schemas.openxmlformats.org/presentationml/2006/main}"
R_NS = "{http://schemas.openxmlformats.org/officeDocument/2006/relationships}"
P188_NS = "{http://schemas.microsoft.com/office/powerpoint/2018/8/main}"

P_SLD_ID_LST = f"{P_NS}sldIdLst"
P_SLD_ID = f"{P_NS}sldId"
P_SP_TREE = f"{P_NS}spTree"
P_SP = f"{P_NS}sp"
P_GRP_SP = f"{P_NS}grpSp"
P_GRAPHIC_FRAME = f"{P_NS}graphicFrame"
P_PIC = f"{P_NS}pic"
P_TX_BODY = f"{P_NS}txBody"
P_PH = f"{P_NS}ph"
P_CNVPR = f"{P_NS}cNvPr"

# Placeholder types to skip (not useful for text extraction)
SKIP_TYPES = {"dt", "sldImg", "hdr", "ftr"}
NOTES_SKIP_TYPES = SKIP_TYPES | {"sldNum"}

CONTENT_TYPE_PREFIX = "application/vnd.openxmlformats-officedocument."
SLIDE_CONTENT_TYPE = f"{CONTENT_TYPE_PREFIX}presentationml.slide+xml"
NOTES_CONTENT_TYPE = f"{CONTENT_TYPE_PREFIX}presentationml.notesSlide+xml"
COMMENTS_CONTENT_TYPE = f"{CONTENT_TYPE_PREFIX}presentationml.comments+xml"
MODERN_COMMENTS_CONTENT_TYPE = "application/vnd.ms-powerpoint.comments+xml"
CHART_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.drawingml.chart+xml"
DIAGRAM_DATA_CONTENT_TYPE = (
    "application/vnd.openxmlformats-officedocument.drawingml.diagramData+xml"
)


def _placeholder_type(shape: ET.Element) -> str | None:
    ph = shape.find(f".//{P_PH}")
    if ph is None:
        return None
    # a placeholder without a type attribute is an object placeholder
    return ph.get("type", "obj")


def _shape_texts(tree: ET.Element, skip_types: set[str]) -> List[str]:
    """Fragments of a shape tree in declaration order."""
    texts: List[str] = []
    for shape in tree:
        tag = local_name(shape.tag)
        if tag == "AlternateContent":
            choice = shape.find(f"{MC_NS}Choice")
            if choice is not None:
                texts.extend(_shape_texts(choice, skip_types))
        elif shape.tag == P_GRP_SP:
            texts.extend(_shape_texts(shape, skip_types))
        elif shape.tag == P_SP:
            if _placeholder_type(shape) in skip_types:
                continue
            tx_body = shape.find(P_TX_BODY)
            if tx_body is not None:
                texts.extend(text_body_paragraphs(tx_body))
        elif shape.tag == P_GRAPHIC_FRAME:
            for tbl in shape.iter(A_TBL):
                texts.extend(table_rows(tbl))
        elif shape.tag == P_PIC:
            c_nv_pr = shape.find(f".//{P_CNVPR}")
            description = c_nv_pr.get("descr", "") if c_nv_pr is not None else ""
            if description.strip():
                texts.append(f"[Image: {description.strip()}]")
    return texts


class PptxReader(DocumentReader):
    """Reader for presentation packages."""

    follow_kinds = frozenset(
        {"diagramData", "chart", "notesSlide", "comments", "package"}
    )

    def __init__(self, container, config, diagnostics):
        super().__init__(container, config, diagnostics)
        self._comment_authors: Dict[str, str] | None = None

    def _find_entry_parts(self) -> List[str]:
        main = self.main_part
        if main is None:
            return []
        root = parse_xml(self.container.read_part(main).data, self.container.qualify(main))

        slides: List[str] = []
        sld_id_lst = root.find(P_SLD_ID_LST)
        if sld_id_lst is None:
            logger.debug("Presentation has no slide list")
            return slides
        for sld_id in sld_id_lst.findall(P_SLD_ID):
            rel = self.container.relationships.by_id(main, sld_id.get(f"{R_NS}id") or "")
            if rel is None or rel.external:
                logger.debug("Slide id without relationship in [%s]", main)
                continue
            slides.append(rel.target)
        logger.debug("Presentation declares %d slides", len(slides))
        return slides

    def extract_part(self, part: ContainerPart) -> List[str]:
        qualified = self.container.qualify(part.name)
        root = parse_xml(part.data, qualified)
        content_type = part.content_type or ""
        tag = local_name(root.tag)

        if content_type == DIAGRAM_DATA_CONTENT_TYPE or tag == "dataModel":
            return diagram_texts(root, self.config.max_diagram_depth, qualified)
        if content_type == CHART_CONTENT_TYPE or tag == "chartSpace":
            return chart_texts(root)
        if content_type == NOTES_CONTENT_TYPE or tag == "notes":
            return self._notes_texts(root)
        if content_type in (COMMENTS_CONTENT_TYPE, MODERN_COMMENTS_CONTENT_TYPE) or tag == "cmLst":
            return self._comment_texts(root)
        if content_type == SLIDE_CONTENT_TYPE or tag == "sld":
            return self._slide_texts(root, qualified)
        return drawing_texts(root)

    def _slide_texts(self, root: ET.Element, qualified: str) -> List[str]:
        sp_tree = root.find(f".//{P_SP_TREE}")
        if sp_tree is None:
            raise CorruptedPartError(
                f"Slide [{qualified}] has no shape tree", part=qualified
            )
        return _shape_texts(sp_tree, SKIP_TYPES)

    def _notes_texts(self, root: ET.Element) -> List[str]:
        sp_tree = root.find(f".//{P_SP_TREE}")
        if sp_tree is None:
            return []
        return _shape_texts(sp_tree, NOTES_SKIP_TYPES)

    def _load_comment_authors(self) -> Dict[str, str]:
        authors: Dict[str, str] = {}
        main = self.main_part
        if main is None:
            return authors
        for rel in self.container.relationships.relationships(main):
            if relationship_kind(rel) not in ("commentAuthors", "authors"):
                continue
            if not self.container.exists(rel.target):
                continue
            try:
                root = parse_xml(
                    self.container.read_part(rel.target).data,
                    self.container.qualify(rel.target),
                )
            except CorruptedPartError as exc:
                self.diagnostics.record(self.container.qualify(rel.target), exc)
                continue
            for author in root:
                author_id = author.get("id")
                name = author.get("name")
                if author_id and name:
                    authors.setdefault(author_id, name)
        return authors

    def _comment_texts(self, root: ET.Element) -> List[str]:
        if self._comment_authors is None:
            self._comment_authors = self._load_comment_authors()

        comments = []
        for cm in root:
            author_id = cm.get("authorId", "")
            author = self._comment_authors.get(author_id, author_id)
            date = cm.get("dt") or cm.get("created") or ""
            text_elem = cm.find(f"{P_NS}text")
            if text_elem is not None:
                text = text_elem.text or ""
            else:
                body = cm.find(f"{P188_NS}txBody")
                text = "\n".join(text_body_paragraphs(body)) if body is not None else ""
            if text.strip():
                comments.append(f"[Comment: {author}@{date}: {text.strip()}]")
        return comments

    def derived_metadata(self) -> Dict[str, MetadataValue]:
        slides = str(len(self.entry_parts()))
        return {"slide-count": slides, "page-count": slides}
