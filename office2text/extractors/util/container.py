"""
Container access and traversal
==============================

A container is the archive-like wrapper holding the parts of one document.
Two implementations exist:

    ZipContainer         OOXML and ODF packages (ZIP archives of XML parts)
    SingleFileContainer  leaf formats, exposed as a package of one part

Relationship Map
----------------
OOXML declares references between parts in ``_rels/*.rels`` files next to the
source part. Every ``.rels`` entry is parsed once when the container is
opened; a malformed one is recorded as a diagnostic and contributes nothing.

ODF has no relationship files. Sub-documents (``Object 1/`` directories) and
pictures listed in ``META-INF/manifest.xml`` are turned into relationships
from the enclosing ``content.xml`` so both families are walked the same way.

Traversal
---------
:class:`ContainerWalker` produces the visit order. Each root part returned by
the reader is walked breadth-first with an explicit work queue; a single
visited-set keyed by qualified part id spans the whole traversal, including
nested packages. Parts deeper than ``max_embedded_depth`` relationship hops
are yielded as placeholder visits and never read.

Parts of a nested package (an OOXML ``package`` relationship target) are
addressed as ``"<outer part>!<inner part>"``. The entry parts of a nested
package sit at the depth of the package itself, so one embedded document is one
level.
"""

from __future__ import annotations

import io
import logging
import zipfile
import zlib
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, Dict, Iterator, List, Tuple

from office2text.exceptions import (
    CorruptedPartError,
    ExtractionError,
    classify_exception,
)
from office2text.extractors.data_types import (
    PART_SEPARATOR,
    ContainerPart,
    DiagnosticLog,
    Relationship,
    RelationshipMap,
)
from office2text.extractors.util.zip_bomb import (
    DEFAULT_ZIP_BOMB_LIMITS,
    ZipBombLimits,
    open_zipfile,
)
from office2text.extractors.util.zip_utils import (
    CONTENT_TYPES_PART,
    ContentTypes,
    find_main_part,
    parse_relationships,
    parse_xml,
    source_for_rels_path,
)
from office2text.mime_types import FALLBACK_MAIN_PARTS, ODF_MIMETYPE_PREFIX

if TYPE_CHECKING:
    from office2text.config import ExtractionConfig
    from office2text.extractors.abstract_extractor import DocumentReader

logger = logging.getLogger(__name__)

MANIFEST_NS = "{urn:oasis:names:tc:opendocument:xmlns:manifest:1.0}"
ODF_MANIFEST_PART = "META-INF/manifest.xml"
ODF_CONTENT_PART = "content.xml"

ODF_OBJECT_REL = "urn:oasis:names:tc:opendocument:xmlns:manifest:1.0/object"
ODF_IMAGE_REL = "urn:oasis:names:tc:opendocument:xmlns:manifest:1.0/image"

PLACEHOLDER_TEMPLATE = "[embedded object not extracted: {part}]"


class Container(ABC):
    """Named parts of one package plus the relationships between them."""

    prefix: str = ""

    def qualify(self, name: str) -> str:
        return f"{self.prefix}{name}"

    @property
    @abstractmethod
    def names(self) -> List[str]:
        """Part names in archive order."""

    @property
    @abstractmethod
    def relationships(self) -> RelationshipMap: ...

    @property
    @abstractmethod
    def main_part(self) -> str | None: ...

    def exists(self, name: str) -> bool:
        return name in self.names

    @abstractmethod
    def content_type(self, name: str) -> str | None: ...

    @abstractmethod
    def read_part(self, name: str) -> ContainerPart: ...

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ZipContainer(Container):
    """
    ZIP package (OOXML or ODF).

    The archive is validated against ZIP-bomb limits on open. Parts are read on
    demand and cached for the lifetime of the container.
    """

    def __init__(
        self,
        data: bytes,
        *,
        limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
        prefix: str = "",
        diagnostics: DiagnosticLog | None = None,
    ):
        self.prefix = prefix
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        source = prefix.rstrip(PART_SEPARATOR) or None
        try:
            self._zip = open_zipfile(io.BytesIO(data), limits=limits, source=source)
        except zipfile.BadZipFile as exc:
            raise CorruptedPartError(
                "Unreadable ZIP container" + (f" [{source}]" if source else ""),
                part=source,
                cause=exc,
            ) from exc

        self._infos: Dict[str, zipfile.ZipInfo] = {
            info.filename: info for info in self._zip.infolist() if not info.is_dir()
        }
        self._names = list(self._infos)
        self._cache: Dict[str, ContainerPart] = {}
        self.is_odf = "mimetype" in self._infos or (
            CONTENT_TYPES_PART not in self._infos and ODF_MANIFEST_PART in self._infos
        )

        try:
            self._content_types = ContentTypes()
            self._manifest: List[Tuple[str, str]] = []
            if self.is_odf:
                self._manifest = self._load_manifest()
            elif CONTENT_TYPES_PART in self._infos:
                self._content_types = ContentTypes.from_xml(
                    parse_xml(self._read(CONTENT_TYPES_PART), self.qualify(CONTENT_TYPES_PART))
                )
            self._relationships = (
                self._odf_relationships() if self.is_odf else self._ooxml_relationships()
            )
        except Exception:
            self._zip.close()
            raise

    @property
    def names(self) -> List[str]:
        return self._names

    @property
    def relationships(self) -> RelationshipMap:
        return self._relationships

    @property
    def zip_file(self) -> zipfile.ZipFile:
        return self._zip

    @property
    def main_part(self) -> str | None:
        if self.is_odf:
            return ODF_CONTENT_PART if ODF_CONTENT_PART in self._infos else None
        return find_main_part(
            set(self._infos), self._relationships.package(), FALLBACK_MAIN_PARTS
        )

    def exists(self, name: str) -> bool:
        return name in self._infos

    def content_type(self, name: str) -> str | None:
        if self.is_odf:
            for path, media_type in self._manifest:
                if path == name:
                    return media_type or None
            return None
        return self._content_types.lookup(name)

    def _read(self, name: str) -> bytes:
        qualified = self.qualify(name)
        info = self._infos.get(name)
        if info is None:
            raise CorruptedPartError(f"Missing part [{qualified}]", part=qualified)
        try:
            return self._zip.read(info)
        except (
            zipfile.BadZipFile,
            zlib.error,
            EOFError,
            OSError,
            ValueError,
            RuntimeError,
        ) as exc:
            raise CorruptedPartError(
                f"Failed to read part [{qualified}]: {exc}", part=qualified, cause=exc
            ) from exc

    def read_part(self, name: str) -> ContainerPart:
        part = self._cache.get(name)
        if part is None:
            part = ContainerPart(
                name=name, data=self._read(name), content_type=self.content_type(name)
            )
            self._cache[name] = part
        return part

    def close(self) -> None:
        self._cache.clear()
        self._zip.close()

    def _ooxml_relationships(self) -> RelationshipMap:
        relationships: Dict[str, List[Relationship]] = {}
        for name in self._names:
            source = source_for_rels_path(name)
            if source is None:
                continue
            try:
                root = parse_xml(self._read(name), self.qualify(name))
            except CorruptedPartError as exc:
                self.diagnostics.record(self.qualify(name), exc)
                continue
            relationships[source] = parse_relationships(root, source)
        logger.debug(
            "Loaded relationships of %d parts%s",
            len(relationships),
            f" in [{self.prefix}]" if self.prefix else "",
        )
        return RelationshipMap(relationships)

    def _load_manifest(self) -> List[Tuple[str, str]]:
        if ODF_MANIFEST_PART not in self._infos:
            return []
        try:
            root = parse_xml(self._read(ODF_MANIFEST_PART), self.qualify(ODF_MANIFEST_PART))
        except CorruptedPartError as exc:
            self.diagnostics.record(self.qualify(ODF_MANIFEST_PART), exc)
            return []
        entries = []
        for entry in root.iter(f"{MANIFEST_NS}file-entry"):
            path = entry.get(f"{MANIFEST_NS}full-path")
            if path:
                entries.append((path, entry.get(f"{MANIFEST_NS}media-type") or ""))
        return entries

    def _odf_relationships(self) -> RelationshipMap:
        object_dirs = [
            path
            for path, media_type in self._manifest
            if path.endswith("/")
            and path != "/"
            and media_type.startswith(ODF_MIMETYPE_PREFIX)
        ]

        def enclosing_content(path: str) -> str:
            owners = [d for d in object_dirs if path.startswith(d) and path != d]
            owner = max(owners, key=len) if owners else ""
            return f"{owner}{ODF_CONTENT_PART}"

        relationships: Dict[str, List[Relationship]] = {}
        counter = 0
        for path, media_type in self._manifest:
            if path in object_dirs:
                target = f"{path}{ODF_CONTENT_PART}"
                rel_type = ODF_OBJECT_REL
            elif media_type.startswith("image/") and not path.startswith(
                "ObjectReplacements/"
            ):
                target = path
                rel_type = ODF_IMAGE_REL
            else:
                continue
            if target not in self._infos:
                continue
            counter += 1
            source = enclosing_content(path)
            relationships.setdefault(source, []).append(
                Relationship(id=f"odf{counter}", type=rel_type, target=target)
            )
        return RelationshipMap(relationships)


class SingleFileContainer(Container):
    """A leaf document exposed as a package with one part."""

    def __init__(
        self,
        data: bytes,
        *,
        name: str = "document",
        content_type: str | None = None,
        prefix: str = "",
    ):
        self.prefix = prefix
        self._part = ContainerPart(name=name, data=data, content_type=content_type)
        self._relationships = RelationshipMap()

    @property
    def names(self) -> List[str]:
        return [self._part.name]

    @property
    def relationships(self) -> RelationshipMap:
        return self._relationships

    @property
    def main_part(self) -> str | None:
        return self._part.name

    def content_type(self, name: str) -> str | None:
        return self._part.content_type if name == self._part.name else None

    def read_part(self, name: str) -> ContainerPart:
        if name != self._part.name:
            raise CorruptedPartError(
                f"Missing part [{self.qualify(name)}]", part=self.qualify(name)
            )
        return self._part


@dataclass(frozen=True)
class Visit:
    """One step of the traversal."""

    part: str
    name: str
    container: Container
    reader: "DocumentReader"
    depth: int
    parent: str | None = None
    relationship_type: str | None = None
    placeholder: bool = False
    fatal: bool = False
    error: ExtractionError | None = None

    @property
    def is_package(self) -> bool:
        return (self.relationship_type or "").rsplit("/", 1)[-1] == "package"

    @property
    def placeholder_text(self) -> str:
        return PLACEHOLDER_TEMPLATE.format(part=self.part)


NestedOpener = Callable[[ContainerPart, str], Tuple[Container, "DocumentReader"]]


class VisitPlan:
    """Lazy, restartable visit order; every iteration walks from the roots."""

    def __init__(self, walker: "ContainerWalker"):
        self._walker = walker

    def __iter__(self) -> Iterator[Visit]:
        return self._walker._walk()


class ContainerWalker:
    """
    Breadth-first traversal of a container from the reader's entry parts.

    Args:
        container: The root container.
        reader: The reader of the root container.
        config: Supplies ``max_embedded_depth``.
        open_nested: Opens an embedded package part and returns its container
            and reader. Without it nested packages are not descended into.
        follow_embedded: Follow relationships at all. Disabled for readers
            without the embedded-objects capability.
    """

    def __init__(
        self,
        container: Container,
        reader: "DocumentReader",
        config: "ExtractionConfig",
        open_nested: NestedOpener | None = None,
        follow_embedded: bool = True,
    ):
        self.container = container
        self.reader = reader
        self.max_depth = config.max_embedded_depth
        self.open_nested = open_nested
        self.follow_embedded = follow_embedded
        self._nested: Dict[str, Tuple[Container, "DocumentReader"] | ExtractionError] = {}

    def visit_order(self) -> VisitPlan:
        return VisitPlan(self)

    def _child(
        self,
        parent: Visit,
        container: Container,
        reader: "DocumentReader",
        name: str,
        relationship_type: str | None,
        hop: int = 1,
    ) -> Visit:
        depth = parent.depth + hop
        return Visit(
            part=container.qualify(name),
            name=name,
            container=container,
            reader=reader,
            depth=depth,
            parent=parent.part,
            relationship_type=relationship_type,
            placeholder=depth > self.max_depth,
        )

    def _open(self, visit: Visit) -> Tuple[Container, "DocumentReader"] | ExtractionError:
        cached = self._nested.get(visit.part)
        if cached is not None:
            return cached
        try:
            part = visit.container.read_part(visit.name)
            opened: Tuple[Container, "DocumentReader"] | ExtractionError = (
                self.open_nested(part, visit.part + PART_SEPARATOR)
            )
        except ExtractionError as exc:
            opened = exc
        except Exception as exc:
            opened = classify_exception(exc, part=visit.part)
        self._nested[visit.part] = opened
        return opened

    def _skip_main(self, container: Container, reader: "DocumentReader", entries: List[str], visited: set) -> None:
        main = reader.main_part
        if main and main not in entries:
            visited.add(container.qualify(main))

    def _walk(self) -> Iterator[Visit]:
        visited: set[str] = set()
        entries = self.reader.entry_parts()
        self._skip_main(self.container, self.reader, entries, visited)
        main = self.reader.main_part
        for name in entries:
            root = Visit(
                part=self.container.qualify(name),
                name=name,
                container=self.container,
                reader=self.reader,
                depth=0,
                fatal=name == main,
            )
            yield from self._walk_root(root, visited)

    def _walk_root(self, root: Visit, visited: set[str]) -> Iterator[Visit]:
        queue = deque([root])
        while queue:
            visit = queue.popleft()
            if visit.part in visited:
                continue
            visited.add(visit.part)

            if visit.placeholder:
                logger.debug("Depth limit reached at [%s]", visit.part)
                yield visit
                continue

            if visit.is_package:
                if self.open_nested is None:
                    continue
                opened = self._open(visit)
                if isinstance(opened, ExtractionError):
                    yield replace(visit, error=opened)
                    continue
                container, reader = opened
                try:
                    entries = reader.entry_parts()
                except ExtractionError as exc:
                    yield replace(visit, error=exc)
                    continue
                except Exception as exc:
                    yield replace(visit, error=classify_exception(exc, part=visit.part))
                    continue
                self._skip_main(container, reader, entries, visited)
                # entry parts share the depth of the package that holds them
                for name in entries:
                    queue.append(self._child(visit, container, reader, name, None, hop=0))
                continue

            yield visit

            if not self.follow_embedded:
                continue
            for rel in visit.container.relationships.relationships(visit.name):
                if rel.external or not visit.reader.follows(visit.name, rel):
                    continue
                if not visit.container.exists(rel.target):
                    logger.debug(
                        "Relationship [%s] of [%s] points to missing part [%s]",
                        rel.id,
                        visit.part,
                        rel.target,
                    )
                    continue
                queue.append(
                    self._child(visit, visit.container, visit.reader, rel.target, rel.type)
                )
