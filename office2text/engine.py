"""
Extraction engine.

One call of :func:`extract` runs the whole pipeline on the calling thread:

    source bytes -> detect_format -> ParserRegistry.resolve -> Container
        -> ContainerWalker visit order -> DocumentReader.extract per part
        -> FragmentSink -> assemble

Every container, including nested ones, is registered on one
``contextlib.ExitStack`` and closed on every exit path. A failing part is
recorded as a diagnostic and the walk goes on; a failure of the main part, of
the container itself or of a global budget ends the call with one classified
:class:`~office2text.exceptions.ExtractionError`.
"""

import logging
from contextlib import ExitStack
from functools import partial
from pathlib import Path
from typing import Any, Generator, Tuple

from office2text.assembler import Budget, FragmentSink, assemble
from office2text.config import ExtractionConfig, get_default_config
from office2text.detector import detect_format
from office2text.exceptions import (
    ExtractionError,
    ResourceLimitExceededError,
    classify_exception,
)
from office2text.extractors.abstract_extractor import DocumentReader
from office2text.extractors.data_types import (
    PART_SEPARATOR,
    ContainerPart,
    DetectedFormat,
    DiagnosticLog,
    ExtractionResult,
    FormatTag,
    SourceDocument,
)
from office2text.extractors.metadata import MetadataBuilder, collect_package_metadata
from office2text.extractors.util.container import (
    Container,
    ContainerWalker,
    SingleFileContainer,
    Visit,
    ZipContainer,
)
from office2text.router import DEFAULT_REGISTRY, ParserEntry, ParserRegistry

logger = logging.getLogger(__name__)

PLAIN_TEXT_CONTENT_TYPE = "text/plain"


def file_metadata(path: str | Path | None) -> dict[str, str]:
    """File name, extension and location of a source read from disk."""
    if path is None:
        return {}
    p = Path(path)
    return {
        "file-name": p.name,
        "file-extension": p.suffix,
        "file-path": str(p.resolve()) if p.exists() else str(p),
        "folder-path": str(p.parent.resolve()) if p.parent.exists() else str(p.parent),
    }


class _Extraction:
    """State of one extraction call."""

    def __init__(
        self,
        document: SourceDocument,
        config: ExtractionConfig,
        registry: ParserRegistry,
    ):
        self.document = document
        self.config = config
        self.registry = registry
        self.diagnostics = DiagnosticLog()
        self.budget = Budget(config.max_output_size, config.extraction_timeout)
        self.sink = FragmentSink(self.budget)
        self.metadata = MetadataBuilder()
        self.detected: DetectedFormat | None = None

    def _open_container(
        self, data: bytes, detected: DetectedFormat, prefix: str
    ) -> Container:
        if detected.tag == FormatTag.TEXT:
            return SingleFileContainer(
                data, content_type=PLAIN_TEXT_CONTENT_TYPE, prefix=prefix
            )
        return ZipContainer(
            data,
            limits=self.config.zip_limits,
            prefix=prefix,
            diagnostics=self.diagnostics,
        )

    def _open_nested(
        self, stack: ExitStack, part: ContainerPart, prefix: str
    ) -> Tuple[Container, DocumentReader]:
        detected = detect_format(part.data, part.name)
        entry = self.registry.resolve(detected, part.data)
        container = stack.enter_context(self._open_container(part.data, detected, prefix))
        logger.debug(
            "Opened embedded %s package [%s]",
            entry.kind.value,
            prefix.rstrip(PART_SEPARATOR),
        )
        return container, entry.create_reader(container, self.config, self.diagnostics)

    def _add_source_metadata(self, entry: ParserEntry) -> None:
        detected = self.detected
        self.metadata.add("format", entry.kind.value)
        if detected.tag == FormatTag.TEXT:
            self.metadata.add(
                "content-type", detected.hint_mime_type or PLAIN_TEXT_CONTENT_TYPE
            )
        else:
            self.metadata.add("content-type", detected.dialect)
        self.metadata.update(file_metadata(self.document.path))

    def _visit(self, visit: Visit) -> None:
        self.budget.check_deadline(visit.part)
        if visit.error is not None:
            self.diagnostics.record(visit.part, visit.error)
            return
        if visit.placeholder:
            self.sink.emit(visit.part, visit.placeholder_text, placeholder=True)
            return

        try:
            part = visit.container.read_part(visit.name)
            texts = visit.reader.extract(part)
        except ResourceLimitExceededError:
            raise
        except ExtractionError as exc:
            if visit.fatal:
                raise
            self.diagnostics.record(visit.part, exc)
            return
        except Exception as exc:
            error = classify_exception(exc, part=visit.part)
            if visit.fatal or isinstance(error, ResourceLimitExceededError):
                raise error from exc
            self.diagnostics.record(visit.part, error)
            return
        self.sink.emit_all(visit.part, texts)

    def _result(self) -> ExtractionResult:
        diagnostics = self.diagnostics.as_list()
        return ExtractionResult(
            content=assemble(self.sink.fragments, self.config.stream_threshold),
            metadata=self.metadata.as_dict(),
            partial=bool(diagnostics),
            diagnostics=diagnostics,
            detected_format=self.detected,
        )

    def run(self) -> ExtractionResult:
        data = self.document.data
        self.detected = detect_format(data, self.document.hint)
        entry = self.registry.resolve(self.detected, data)
        self._add_source_metadata(entry)
        capabilities = entry.capabilities

        with ExitStack() as stack:
            container = stack.enter_context(self._open_container(data, self.detected, ""))
            reader = entry.create_reader(container, self.config, self.diagnostics)
            if capabilities.metadata:
                collect_package_metadata(container, self.metadata, self.diagnostics)

            walker = ContainerWalker(
                container,
                reader,
                self.config,
                open_nested=(
                    partial(self._open_nested, stack)
                    if capabilities.embedded_objects
                    else None
                ),
                follow_embedded=capabilities.embedded_objects,
            )
            try:
                for visit in walker.visit_order():
                    self._visit(visit)
            except ResourceLimitExceededError as exc:
                if exc.partial_result is None:
                    partial_result = self._result()
                    partial_result.partial = True
                    exc.partial_result = partial_result
                raise

            self.metadata.update(reader.derived_metadata())
            result = self._result()

        logger.info(
            "Extracted %s: %d parts, %d fragments, %d diagnostics",
            entry.kind.value,
            len(self.sink.parts()),
            len(self.sink),
            len(result.diagnostics),
        )
        return result


def extract(
    source,
    config: ExtractionConfig | None = None,
    *,
    hint: str | None = None,
    registry: ParserRegistry | None = None,
) -> ExtractionResult:
    """
    Extract text and metadata from an office document.

    Args:
        source: A file path, a bytes-like buffer or a readable binary stream.
        config: Limits and options; the module default when omitted.
        hint: Declared file name, extension or MIME type. Advisory only; the
            bytes decide the format.
        registry: Parser registry; the default registry when omitted.

    Returns:
        The extraction result. ``partial`` is set when some parts failed and
        ``diagnostics`` names them.

    Raises:
        ExtractionError: The input is unrecognized, unsupported, truncated,
            its main part is corrupted, a resource limit was exceeded or the
            source could not be read.
    """
    config = config or get_default_config()
    registry = registry or DEFAULT_REGISTRY
    try:
        document = SourceDocument.from_source(source, hint)
        return _Extraction(document, config, registry).run()
    except ExtractionError:
        raise
    except Exception as exc:
        raise classify_exception(exc) from exc


def extract_file(path: str | Path, config: ExtractionConfig | None = None) -> ExtractionResult:
    return extract(path, config)


def extract_bytes(
    data: bytes, hint: str | None = None, config: ExtractionConfig | None = None
) -> ExtractionResult:
    return extract(data, config, hint=hint)


def read_file(
    path: str | Path, config: ExtractionConfig | None = None
) -> Generator[ExtractionResult, Any, None]:
    """
    Read and extract content from a file.

    Args:
        path: Path to the file to read.
        config: Limits and options; the module default when omitted.

    Yields:
        The single extraction result of the file.
    """
    logger.debug("Reading file: %s", path)
    yield extract(path, config)
