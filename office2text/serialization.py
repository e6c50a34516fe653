from office2text.extractors.data_types import ExtractionResult, MetadataValue


def _serialize_metadata(metadata: dict[str, MetadataValue]) -> dict:
    return {
        str(key): list(value) if isinstance(value, (list, tuple)) else value
        for key, value in metadata.items()
    }


def serialize_result(result: ExtractionResult) -> dict:
    """
    JSON-ready form of an extraction result.

    Streamed content is materialized, so the result can still be read
    afterwards through ``get_full_text``.
    """
    detected = result.detected_format
    return {
        "content": result.get_full_text(),
        "metadata": _serialize_metadata(result.get_metadata()),
        "partial": result.partial,
        "diagnostics": [
            {
                "part": diagnostic.part,
                "kind": diagnostic.kind.value,
                "message": diagnostic.message,
            }
            for diagnostic in result.diagnostics
        ],
        "format": (
            {
                "tag": detected.tag.value,
                "dialect": detected.dialect,
                "confidence": detected.confidence,
            }
            if detected is not None
            else None
        ),
    }
