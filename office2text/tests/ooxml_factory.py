"""In-memory office packages for tests."""

import io
import posixpath
import zipfile
from xml.sax.saxutils import escape

P_NS = "http://schemas.openxmlformats.org/presentationml/2006/main"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
S_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
C_NS = "http://schemas.openxmlformats.org/drawingml/2006/chart"
DGM_NS = "http://schemas.openxmlformats.org/drawingml/2006/diagram"
MC_NS = "http://schemas.openxmlformats.org/markup-compatibility/2006"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"

REL_TYPE_BASE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/"
CORE_PROPERTIES_REL = (
    "http://schemas.openxmlformats.org/package/2006/relationships/metadata/core-properties"
)

CT_PREFIX = "application/vnd.openxmlformats-officedocument."
PRESENTATION_MAIN = f"{CT_PREFIX}presentationml.presentation.main+xml"
SLIDE = f"{CT_PREFIX}presentationml.slide+xml"
NOTES_SLIDE = f"{CT_PREFIX}presentationml.notesSlide+xml"
WORKBOOK_MAIN = f"{CT_PREFIX}spreadsheetml.sheet.main+xml"
WORKSHEET = f"{CT_PREFIX}spreadsheetml.worksheet+xml"
SHARED_STRINGS = f"{CT_PREFIX}spreadsheetml.sharedStrings+xml"
STYLES = f"{CT_PREFIX}spreadsheetml.styles+xml"
DOCUMENT_MAIN = f"{CT_PREFIX}wordprocessingml.document.main+xml"
DIAGRAM_DATA = f"{CT_PREFIX}drawingml.diagramData+xml"
CHART = f"{CT_PREFIX}drawingml.chart+xml"
DOCX_PACKAGE = f"{CT_PREFIX}wordprocessingml.document"
CORE_PROPERTIES = "application/vnd.openxmlformats-package.core-properties+xml"
APP_PROPERTIES = f"{CT_PREFIX}extended-properties+xml"

ODF_TEXT = "application/vnd.oasis.opendocument.text"
ODF_PRESENTATION = "application/vnd.oasis.opendocument.presentation"
ODF_SPREADSHEET = "application/vnd.oasis.opendocument.spreadsheet"
ODF_CHART = "application/vnd.oasis.opendocument.chart"

ODF_NAMESPACES = (
    'xmlns:office="urn:oasis:names:tc:opendocument:xmlns:office:1.0" '
    'xmlns:text="urn:oasis:names:tc:opendocument:xmlns:text:1.0" '
    'xmlns:table="urn:oasis:names:tc:opendocument:xmlns:table:1.0" '
    'xmlns:draw="urn:oasis:names:tc:opendocument:xmlns:drawing:1.0" '
    'xmlns:presentation="urn:oasis:names:tc:opendocument:xmlns:presentation:1.0" '
    'xmlns:meta="urn:oasis:names:tc:opendocument:xmlns:meta:1.0" '
    'xmlns:dc="http://purl.org/dc/elements/1.1/"'
)


def make_zip(
    files: dict[str, bytes | str], compression: int = zipfile.ZIP_DEFLATED
) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=compression) as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def rel_type(kind: str) -> str:
    if kind == "core-properties":
        return CORE_PROPERTIES_REL
    return kind if "/" in kind else REL_TYPE_BASE + kind


class PackageBuilder:
    """Collects parts, content types and relationships of an OOXML package."""

    def __init__(self):
        self.parts: dict[str, bytes | str] = {}
        self.overrides: dict[str, str] = {}
        self.relationships: dict[str, list[tuple[str, str, str, bool]]] = {}

    def add_part(self, name: str, data: bytes | str, content_type: str | None = None):
        self.parts[name] = data
        if content_type:
            self.overrides[name] = content_type
        return self

    def relate(
        self, source: str, kind: str, target: str, *, external: bool = False
    ) -> str:
        """Add a relationship; internal targets are absolute part names."""
        rels = self.relationships.setdefault(source, [])
        rel_id = f"rId{len(rels) + 1}"
        if not external:
            target = posixpath.relpath(target, posixpath.dirname(source) or ".")
        rels.append((rel_id, rel_type(kind), target, external))
        return rel_id

    def content_types_xml(self) -> str:
        overrides = "".join(
            f'<Override PartName="/{name}" ContentType="{content_type}"/>'
            for name, content_type in self.overrides.items()
        )
        return (
            f'<?xml version="1.0" encoding="UTF-8"?><Types xmlns="{CT_NS}">'
            '<Default Extension="rels" '
            'ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
            '<Default Extension="xml" ContentType="application/xml"/>'
            '<Default Extension="png" ContentType="image/png"/>'
            f"{overrides}</Types>"
        )

    @staticmethod
    def rels_xml(rels: list[tuple[str, str, str, bool]]) -> str:
        body = "".join(
            f'<Relationship Id="{rel_id}" Type="{type_}" Target="{escape(target)}"'
            + (' TargetMode="External"' if external else "")
            + "/>"
            for rel_id, type_, target, external in rels
        )
        return (
            f'<?xml version="1.0" encoding="UTF-8"?>'
            f'<Relationships xmlns="{PKG_REL_NS}">{body}</Relationships>'
        )

    def files(self) -> dict[str, bytes | str]:
        files: dict[str, bytes | str] = {"[Content_Types].xml": self.content_types_xml()}
        for source, rels in self.relationships.items():
            directory, name = posixpath.split(source)
            rels_name = posixpath.join(directory, "_rels", f"{name}.rels")
            files[rels_name] = self.rels_xml(rels)
        files.update(self.parts)
        return files

    def build(self, compression: int = zipfile.ZIP_DEFLATED) -> bytes:
        return make_zip(self.files(), compression)


# PresentationML


def a_paragraphs(*texts: str) -> str:
    return "".join(f"<a:p><a:r><a:t>{escape(t)}</a:t></a:r></a:p>" for t in texts)


def sp(*texts: str, ph: str | None = None) -> str:
    placeholder = f'<p:ph type="{ph}"/>' if ph else ""
    return (
        '<p:sp><p:nvSpPr><p:cNvPr id="2" name="Shape"/><p:cNvSpPr/>'
        f"<p:nvPr>{placeholder}</p:nvPr></p:nvSpPr>"
        f"<p:txBody><a:bodyPr/>{a_paragraphs(*texts)}</p:txBody></p:sp>"
    )


def pic(description: str = "") -> str:
    return (
        f'<p:pic><p:nvPicPr><p:cNvPr id="3" name="Picture" descr="{escape(description)}"/>'
        "<p:cNvPicPr/><p:nvPr/></p:nvPicPr>"
        '<p:blipFill><a:blip r:embed="rIdImage"/></p:blipFill></p:pic>'
    )


def a_table(*rows: tuple[str, ...]) -> str:
    body = "".join(
        "<a:tr>"
        + "".join(f"<a:tc><a:txBody>{a_paragraphs(c)}</a:txBody></a:tc>" for c in row)
        + "</a:tr>"
        for row in rows
    )
    return (
        '<p:graphicFrame><p:nvGraphicFramePr><p:cNvPr id="4" name="Table"/>'
        "</p:nvGraphicFramePr><a:graphic><a:graphicData>"
        f"<a:tbl>{body}</a:tbl></a:graphicData></a:graphic></p:graphicFrame>"
    )


def slide_xml(*shapes: str, root: str = "sld") -> str:
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<p:{root} xmlns:p="{P_NS}" xmlns:a="{A_NS}" xmlns:r="{R_NS}" xmlns:mc="{MC_NS}">'
        "<p:cSld><p:spTree><p:nvGrpSpPr/><p:grpSpPr/>"
        f"{''.join(shapes)}</p:spTree></p:cSld></p:{root}>"
    )


def presentation(slides: list[str], order: list[int] | None = None) -> PackageBuilder:
    """
    Presentation whose slide ``i`` lives in ``ppt/slides/slide{i + 1}.xml``.

    ``order`` lists slide indexes in presentation order; file order otherwise.
    """
    builder = PackageBuilder()
    main = "ppt/presentation.xml"
    builder.relate("", "officeDocument", main)
    rel_ids = []
    for index, xml in enumerate(slides):
        name = f"ppt/slides/slide{index + 1}.xml"
        builder.add_part(name, xml, SLIDE)
        rel_ids.append(builder.relate(main, "slide", name))
    order = order if order is not None else list(range(len(slides)))
    sld_ids = "".join(
        f'<p:sldId id="{256 + i}" r:id="{rel_ids[index]}"/>' for i, index in enumerate(order)
    )
    builder.add_part(
        main,
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<p:presentation xmlns:p="{P_NS}" xmlns:r="{R_NS}">'
        f"<p:sldIdLst>{sld_ids}</p:sldIdLst></p:presentation>",
        PRESENTATION_MAIN,
    )
    return builder


def diagram_data(points: list[tuple[str, str, str | None]], connections: list[tuple[str, str]]) -> str:
    """Diagram data model from ``(model_id, type, text)`` points and parent/child pairs."""
    pts = []
    for model_id, type_, text in points:
        type_attr = f' type="{type_}"' if type_ != "node" else ""
        body = (
            f"<dgm:t><a:bodyPr/>{a_paragraphs(text)}</dgm:t>" if text is not None else ""
        )
        pts.append(f'<dgm:pt modelId="{model_id}"{type_attr}>{body}</dgm:pt>')
    cxns = "".join(
        f'<dgm:cxn modelId="c{i}" srcId="{src}" destId="{dest}" srcOrd="{i}" destOrd="0"/>'
        for i, (src, dest) in enumerate(connections)
    )
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<dgm:dataModel xmlns:dgm="{DGM_NS}" xmlns:a="{A_NS}">'
        f"<dgm:ptLst>{''.join(pts)}</dgm:ptLst><dgm:cxnLst>{cxns}</dgm:cxnLst>"
        "</dgm:dataModel>"
    )


def chart_xml(title: str, categories: list[str]) -> str:
    pts = "".join(
        f'<c:pt idx="{i}"><c:v>{escape(c)}</c:v></c:pt>' for i, c in enumerate(categories)
    )
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<c:chartSpace xmlns:c="{C_NS}" xmlns:a="{A_NS}"><c:chart>'
        f"<c:title><c:tx><c:rich><a:bodyPr/>{a_paragraphs(title)}</c:rich></c:tx></c:title>"
        f"<c:plotArea><c:barChart><c:ser><c:cat><c:strRef><c:strCache>{pts}"
        "</c:strCache></c:strRef></c:cat></c:ser></c:barChart></c:plotArea>"
        "</c:chart></c:chartSpace>"
    )


# SpreadsheetML


def cell(ref: str, value: str, type_: str | None = None, style: int | None = None) -> str:
    attrs = f' r="{ref}"'
    if type_:
        attrs += f' t="{type_}"'
    if style is not None:
        attrs += f' s="{style}"'
    if type_ == "inlineStr":
        return f"<c{attrs}><is><t>{escape(value)}</t></is></c>"
    return f"<c{attrs}><v>{escape(value)}</v></c>"


def row(number: int, *cells: str) -> str:
    return f'<row r="{number}">{"".join(cells)}</row>'


def worksheet_xml(*rows: str) -> str:
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<worksheet xmlns="{S_NS}" xmlns:r="{R_NS}">'
        f"<sheetData>{''.join(rows)}</sheetData></worksheet>"
    )


def styles_xml(num_fmts: dict[int, str], cell_xfs: list[int]) -> str:
    fmts = "".join(
        f'<numFmt numFmtId="{fmt_id}" formatCode="{escape(code, {chr(34): "&quot;"})}"/>'
        for fmt_id, code in num_fmts.items()
    )
    xfs = "".join(f'<xf numFmtId="{fmt_id}"/>' for fmt_id in cell_xfs)
    return (
        f'<?xml version="1.0" encoding="UTF-8"?><styleSheet xmlns="{S_NS}">'
        f'<numFmts count="{len(num_fmts)}">{fmts}</numFmts>'
        f'<cellXfs count="{len(cell_xfs)}">{xfs}</cellXfs></styleSheet>'
    )


def workbook(
    sheets: list[tuple[str, str]],
    shared_strings: list[str] | None = None,
    styles: str | None = None,
    date1904: bool = False,
) -> PackageBuilder:
    """Workbook from ``(sheet name, worksheet xml)`` pairs."""
    builder = PackageBuilder()
    main = "xl/workbook.xml"
    builder.relate("", "officeDocument", main)
    entries = []
    for index, (name, xml) in enumerate(sheets):
        part = f"xl/worksheets/sheet{index + 1}.xml"
        builder.add_part(part, xml, WORKSHEET)
        rel_id = builder.relate(main, "worksheet", part)
        entries.append(f'<sheet name="{escape(name)}" sheetId="{index + 1}" r:id="{rel_id}"/>')
    if shared_strings is not None:
        sst = "".join(f"<si><t>{escape(s)}</t></si>" for s in shared_strings)
        builder.add_part(
            "xl/sharedStrings.xml",
            f'<?xml version="1.0" encoding="UTF-8"?><sst xmlns="{S_NS}">{sst}</sst>',
            SHARED_STRINGS,
        )
        builder.relate(main, "sharedStrings", "xl/sharedStrings.xml")
    if styles is not None:
        builder.add_part("xl/styles.xml", styles, STYLES)
        builder.relate(main, "styles", "xl/styles.xml")
    workbook_pr = '<workbookPr date1904="1"/>' if date1904 else ""
    builder.add_part(
        main,
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<workbook xmlns="{S_NS}" xmlns:r="{R_NS}">{workbook_pr}'
        f"<sheets>{''.join(entries)}</sheets></workbook>",
        WORKBOOK_MAIN,
    )
    return builder


# WordprocessingML


def w_paragraph(*runs: str) -> str:
    return "<w:p>" + "".join(f"<w:r><w:t>{escape(r)}</w:t></w:r>" for r in runs) + "</w:p>"


def w_table(*rows: tuple[str, ...]) -> str:
    body = "".join(
        "<w:tr>" + "".join(f"<w:tc>{w_paragraph(c)}</w:tc>" for c in r) + "</w:tr>"
        for r in rows
    )
    return f"<w:tbl>{body}</w:tbl>"


def w_part(root: str, body: str) -> str:
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<w:{root} xmlns:w="{W_NS}" xmlns:r="{R_NS}" xmlns:mc="{MC_NS}">'
        f"{body}</w:{root}>"
    )


def document(*blocks: str) -> PackageBuilder:
    builder = PackageBuilder()
    main = "word/document.xml"
    builder.relate("", "officeDocument", main)
    builder.add_part(
        main, w_part("document", f"<w:body>{''.join(blocks)}</w:body>"), DOCUMENT_MAIN
    )
    return builder


def embed_package(builder: PackageBuilder, source: str, name: str, data: bytes) -> str:
    builder.add_part(name, data, DOCX_PACKAGE)
    return builder.relate(source, "package", name)


def nested_documents(depth: int) -> bytes:
    """A document embedding a document ``depth`` levels deep, one text per level."""
    data = document(w_paragraph(f"level {depth}")).build()
    for level in range(depth - 1, -1, -1):
        builder = document(w_paragraph(f"level {level}"))
        embed_package(builder, "word/document.xml", "word/embeddings/inner.docx", data)
        data = builder.build()
    return data


def core_properties_xml(**values: str) -> str:
    tags = {
        "title": "dc:title",
        "creator": "dc:creator",
        "keywords": "cp:keywords",
        "created": "dcterms:created",
        "last_modified_by": "cp:lastModifiedBy",
    }
    body = "".join(
        f"<{tags[key]}>{escape(value)}</{tags[key]}>" for key, value in values.items()
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        "<cp:coreProperties "
        'xmlns:cp="http://schemas.openxmlformats.org/package/2006/metadata/core-properties" '
        'xmlns:dc="http://purl.org/dc/elements/1.1/" '
        'xmlns:dcterms="http://purl.org/dc/terms/">'
        f"{body}</cp:coreProperties>"
    )


def add_core_properties(builder: PackageBuilder, **values: str) -> PackageBuilder:
    builder.add_part("docProps/core.xml", core_properties_xml(**values), CORE_PROPERTIES)
    builder.relate("", "core-properties", "docProps/core.xml")
    return builder


# OpenDocument


def odf_content(body: str) -> str:
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f"<office:document-content {ODF_NAMESPACES}>"
        f"<office:automatic-styles/><office:body>{body}</office:body>"
        "</office:document-content>"
    )


def odf_meta(body: str) -> str:
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f"<office:document-meta {ODF_NAMESPACES}>"
        f"<office:meta>{body}</office:meta></office:document-meta>"
    )


def odf_package(
    mimetype: str,
    content: str,
    meta: str | None = None,
    objects: dict[str, str] | None = None,
    encrypted: bool = False,
) -> bytes:
    """ODF package; ``objects`` maps ``Object N/`` directories to their content.xml."""
    entries = [f'<manifest:file-entry manifest:full-path="/" manifest:media-type="{mimetype}"/>']
    entries.append(
        '<manifest:file-entry manifest:full-path="content.xml" manifest:media-type="text/xml"'
        + (
            "><manifest:encryption-data manifest:checksum-type=\"SHA1\"/></manifest:file-entry>"
            if encrypted
            else "/>"
        )
    )
    files: dict[str, bytes | str] = {"mimetype": mimetype, "content.xml": content}
    for directory, object_content in (objects or {}).items():
        entries.append(
            f'<manifest:file-entry manifest:full-path="{directory}" '
            f'manifest:media-type="{ODF_CHART}"/>'
        )
        files[f"{directory}content.xml"] = object_content
    if meta is not None:
        files["meta.xml"] = meta
    files["META-INF/manifest.xml"] = (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<manifest:manifest xmlns:manifest="urn:oasis:names:tc:opendocument:xmlns:manifest:1.0">'
        f"{''.join(entries)}</manifest:manifest>"
    )
    return make_zip(files)
