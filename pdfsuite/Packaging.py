"""Output naming and archive packaging for exported documents."""

import io
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Iterable, Tuple, Union

from .logging_config import get_logger
from .WatermarkConfig import InvalidInputError, PDFProcessingError

LOGGER = get_logger(__name__)

PDF_MIME = "application/pdf"
ZIP_MIME = "application/zip"
PNG_MIME = "image/png"


@dataclass
class ExportResult:
    """One downloadable artifact: a PDF or a zip archive."""
    filename: str
    data: bytes
    mime_type: str


def strip_extension(name: str) -> str:
    """Base name of an uploaded file without directories or its extension."""
    return PurePath(name).stem or "document"


def derive_name(name: str, suffix: str, extension: str = "pdf") -> str:
    """e.g. derive_name("report.pdf", "-rotated") -> "report-rotated.pdf"."""
    return f"{strip_extension(name)}{suffix}.{extension}"


def build_archive(filename: str, folder: str, entries: Iterable[Tuple[str, bytes]]) -> ExportResult:
    """Bundles ``entries`` (name, bytes) inside ``folder`` of a deflated zip archive."""
    buffer = io.BytesIO()
    count = 0
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for entry_name, data in entries:
            zf.writestr(f"{folder}/{entry_name}", data)
            count += 1
    LOGGER.info("Packaged %d file(s) into %s", count, filename)
    return ExportResult(filename=filename, data=buffer.getvalue(), mime_type=ZIP_MIME)


def read_source(path: Union[str, Path]) -> bytes:
    """Reads an input document from disk."""
    source = Path(path)
    if not source.is_file():
        raise InvalidInputError(f"Input file not found: {source}")
    try:
        return source.read_bytes()
    except OSError as e:
        raise PDFProcessingError(f"Failed to read {source}: {e}") from e


def save_result(result: ExportResult, target: Union[str, Path]) -> Path:
    """Writes the artifact to ``target`` exactly."""
    target = Path(target)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(result.data)
    except OSError as e:
        LOGGER.error("Could not write %s: %s", target, e)
        raise PDFProcessingError(f"Failed to save output: {e}") from e
    LOGGER.info("Wrote %s (%d bytes)", target, len(result.data))
    return target


def write_result(result: ExportResult, out_dir: Union[str, Path]) -> Path:
    """Writes the artifact into ``out_dir`` under its own filename."""
    return save_result(result, Path(out_dir) / result.filename)
