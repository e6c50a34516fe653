import io
import zipfile

import olefile

_ENCRYPTION_STREAMS = ("EncryptionInfo", "EncryptedPackage")

# stream name -> legacy document family, for error messages only
_LEGACY_STREAMS = (
    ("WordDocument", "legacy Word document"),
    ("Workbook", "legacy Excel workbook"),
    ("Book", "legacy Excel workbook"),
    ("PowerPoint Document", "legacy PowerPoint presentation"),
)


def _has_ole_encryption_stream(ole: olefile.OleFileIO) -> bool:
    return any(ole.exists(stream) for stream in _ENCRYPTION_STREAMS)


def is_ooxml_encrypted(data: bytes) -> bool:
    """True for an OOXML package wrapped in an encrypted OLE2 envelope."""
    if not olefile.isOleFile(io.BytesIO(data)):
        return False
    with olefile.OleFileIO(io.BytesIO(data)) as ole:
        return _has_ole_encryption_stream(ole)


def describe_ole_document(data: bytes) -> str:
    """Short human-readable family name of an OLE2 compound file."""
    if not olefile.isOleFile(io.BytesIO(data)):
        return "OLE2 compound file"
    with olefile.OleFileIO(io.BytesIO(data)) as ole:
        for stream, family in _LEGACY_STREAMS:
            if ole.exists(stream):
                return family
    return "OLE2 compound file"


def is_odf_encrypted(zf: zipfile.ZipFile) -> bool:
    """True if the ODF manifest declares encrypted entries."""
    try:
        manifest = zf.read("META-INF/manifest.xml").decode("utf-8", errors="ignore")
    except KeyError:
        return False
    return (
        "encryption-data" in manifest
        or "manifest:encrypted" in manifest
        or "manifest:algorithm" in manifest
    )
