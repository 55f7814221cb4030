"""
Page rasterization service backed by PyMuPDF.

Rendering scale is relative to PDF user space (72 units per inch), so a scale of
``dpi / 72`` produces an image at ``dpi`` dots per inch.
"""

from dataclasses import dataclass
from typing import Iterator, Protocol

import fitz  # PyMuPDF

from .logging_config import get_logger
from .WatermarkConfig import InvalidInputError, PDFProcessingError

LOGGER = get_logger(__name__)

PDF_UNITS_PER_INCH = 72.0


@dataclass
class RenderedPage:
    png: bytes
    width: int
    height: int


class PageRenderer(Protocol):
    def page_count(self, data: bytes) -> int:
        ...

    def render_page(self, data: bytes, page_index: int, scale: float = 1.0) -> RenderedPage:
        ...

    def render_all(self, data: bytes, scale: float = 1.0) -> Iterator[RenderedPage]:
        ...


def dpi_to_scale(dpi: float) -> float:
    return dpi / PDF_UNITS_PER_INCH


class FitzPageRenderer:
    """Renders pages of in-memory PDFs to PNG."""

    def _open(self, data: bytes) -> "fitz.Document":
        try:
            return fitz.open(stream=data, filetype="pdf")
        except Exception as exc:  # PyMuPDF raises its own FileDataError / RuntimeError
            raise PDFProcessingError(f"Failed to open PDF for rendering: {exc}") from exc

    def page_count(self, data: bytes) -> int:
        with self._open(data) as doc:
            return doc.page_count

    def render_page(self, data: bytes, page_index: int, scale: float = 1.0) -> RenderedPage:
        with self._open(data) as doc:
            if not 0 <= page_index < doc.page_count:
                raise InvalidInputError(
                    f"Page {page_index + 1} out of range (document has {doc.page_count} pages)"
                )
            return self._render(doc.load_page(page_index), scale)

    def render_all(self, data: bytes, scale: float = 1.0) -> Iterator[RenderedPage]:
        """Yields every page of the document, opening it only once."""
        with self._open(data) as doc:
            for page in doc:
                yield self._render(page, scale)

    @staticmethod
    def _render(page: "fitz.Page", scale: float) -> RenderedPage:
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale))
        LOGGER.debug("Rendered page %d at scale %.3f (%dx%d)", page.number, scale, pix.width, pix.height)
        return RenderedPage(png=pix.tobytes("png"), width=pix.width, height=pix.height)
