import io
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

from pypdf import PasswordType, PdfReader, PdfWriter
from pypdf.generic import RectangleObject
from tqdm import tqdm

from .FontLoader import FontLoader
from .logging_config import get_logger
from .Packaging import PDF_MIME, ExportResult, build_archive, derive_name, strip_extension
from .PageRenderer import FitzPageRenderer, PageRenderer, dpi_to_scale
from .PageSelection import (
    DeletePages, EachPage, ExtractPages, RangeSplit, Selection,
    build_view, resolve, validate_selection,
)
from .Settings import MAX_DPI, MIN_DPI
from .WatermarkConfig import InvalidInputError, PDFProcessingError, PDFToolError, WatermarkConfig
from .WatermarkRenderer import WatermarkRenderer

LOGGER = get_logger(__name__)

MERGED_FILENAME = "merged-document.pdf"


@dataclass
class PdfInfo:
    name: str
    size: int
    page_count: int
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass
class CropMargins:
    """Margins (in points) trimmed from each edge of every page."""
    left: float = 0.0
    right: float = 0.0
    top: float = 0.0
    bottom: float = 0.0

    def __post_init__(self):
        for label in ("left", "right", "top", "bottom"):
            if getattr(self, label) < 0:
                raise InvalidInputError(f"Crop margin '{label}' cannot be negative")


@contextmanager
def processing(action: str) -> Iterator[None]:
    """Turns any library failure inside the block into a PDFProcessingError."""
    try:
        yield
    except PDFToolError:
        raise
    except Exception as e:
        LOGGER.exception("Failed to %s", action)
        raise PDFProcessingError(f"Failed to {action}: {e}") from e


def write_pdf(writer: PdfWriter) -> bytes:
    output = io.BytesIO()
    writer.write(output)
    return output.getvalue()

# ==========================================
# PDF Processor
# ==========================================

class PDFProcessor:
    """
    Applies one tool to one source document.

    Responsibilities:
    1. Loading the document from memory (and handling encryption).
    2. Resolving page selections against the current view.
    3. Building the output documents with pypdf.
    4. Packaging the result as a single PDF or a zip archive.
    """

    def __init__(self, data: bytes, name: str, password: Optional[str] = None, progress: bool = False):
        self.data = data
        self.name = name
        self.password = password
        self.progress = progress
        self.reader: Optional[PdfReader] = None

    def load_pdf(self) -> PdfReader:
        """Loads the PDF and handles decryption if necessary."""
        if self.reader is not None:
            return self.reader
        if not self.data:
            raise InvalidInputError(f"{self.name} is empty")

        with processing(f"load {self.name}"):
            reader = PdfReader(io.BytesIO(self.data))
            if reader.is_encrypted:
                # Many restricted PDFs open with an empty user password
                if reader.decrypt(self.password or "") == PasswordType.NOT_DECRYPTED:
                    raise PDFProcessingError("PDF is encrypted. Please provide a valid password.")
            self.reader = reader
        return reader

    @property
    def page_count(self) -> int:
        return len(self.load_pdf().pages)

    @property
    def stem(self) -> str:
        return strip_extension(self.name)

    def _pages(self, desc: str):
        return tqdm(self.load_pdf().pages, desc=desc, unit="page", disable=not self.progress)

    def _new_writer(self) -> PdfWriter:
        reader = self.load_pdf()
        writer = PdfWriter()
        if reader.metadata:
            writer.add_metadata({k: str(v) for k, v in reader.metadata.items()})
        return writer

    def _document(self, indices: Sequence[int]) -> bytes:
        reader = self.load_pdf()
        writer = PdfWriter()
        for index in indices:
            writer.add_page(reader.pages[index])
        return write_pdf(writer)

    # ---------- Tools ----------

    def info(self) -> PdfInfo:
        reader = self.load_pdf()
        info = PdfInfo(name=self.name, size=len(self.data), page_count=len(reader.pages))
        if reader.pages:
            box = reader.pages[0].mediabox
            info.width, info.height = float(box.width), float(box.height)
        return info

    def split(self, selection: Selection, view: Optional[Sequence[int]] = None) -> ExportResult:
        """
        Splits or edits the document according to ``selection``.

        Args:
            selection: One of the PageSelection modes.
            view: Current view as 0-based physical indices (default: all pages).
        """
        validate_selection(selection)
        if view is None:
            view = build_view(self.page_count)
        groups = resolve(view, selection)

        if not any(groups):
            raise InvalidInputError("The selection does not contain any pages.")

        stem = self.stem
        LOGGER.info("Splitting %s (%s mode, %d group(s))", self.name, selection.name, len(groups))

        with processing(f"split {self.name}"):
            if isinstance(selection, ExtractPages):
                return ExportResult(derive_name(self.name, "-extracted"), self._document(groups[0]), PDF_MIME)

            if isinstance(selection, DeletePages):
                return ExportResult(derive_name(self.name, "-edited"), self._document(groups[0]), PDF_MIME)

            if isinstance(selection, EachPage):
                folder = f"{stem}-split"
                entries = [(f"{stem}-{i}.pdf", self._document(group))
                           for i, group in enumerate(groups, start=1)]
            elif isinstance(selection, RangeSplit):
                folder = f"{stem}-parts"
                entries = [(f"{stem}-part-{i}.pdf", self._document(group))
                           for i, group in enumerate(groups, start=1) if group]
            else:
                folder = f"{stem}-selected"
                positions = [p for p in selection.positions if 0 <= p < len(view)]
                entries = [(f"{stem}-page-{p + 1}.pdf", self._document(group))
                           for p, group in zip(positions, groups)]

            return build_archive(derive_name(self.name, "-split", "zip"), folder, entries)

    def rotate(self, angle: int) -> ExportResult:
        """Adds ``angle`` degrees (clockwise, multiple of 90) to every page's rotation."""
        if angle % 90 != 0:
            raise InvalidInputError(f"Rotation must be a multiple of 90 degrees, got {angle}")

        with processing(f"rotate {self.name}"):
            writer = self._new_writer()
            for page in self._pages("Rotating"):
                page.rotate(angle)
                writer.add_page(page)
            return ExportResult(derive_name(self.name, "-rotated"), write_pdf(writer), PDF_MIME)

    def crop(self, margins: CropMargins) -> ExportResult:
        """Sets each page's crop box to its media box minus ``margins``."""
        with processing(f"crop {self.name}"):
            writer = self._new_writer()
            for number, page in enumerate(self._pages("Cropping"), start=1):
                box = page.mediabox
                left, bottom = float(box.left), float(box.bottom)
                width, height = float(box.width), float(box.height)
                if margins.left + margins.right >= width or margins.top + margins.bottom >= height:
                    raise InvalidInputError(
                        f"Margins leave nothing of page {number} ({width:.0f} x {height:.0f} pt)"
                    )
                page.cropbox = RectangleObject((
                    left + margins.left,
                    bottom + margins.bottom,
                    left + width - margins.right,
                    bottom + height - margins.top,
                ))
                writer.add_page(page)
            return ExportResult(derive_name(self.name, "-cropped"), write_pdf(writer), PDF_MIME)

    def watermark(self, config: WatermarkConfig, font_loader: Optional[FontLoader] = None) -> ExportResult:
        """Draws the configured watermark on every page."""
        renderer = WatermarkRenderer(config, font_loader)
        with processing(f"watermark {self.name}"):
            total = self.page_count
            writer = self._new_writer()
            for number, page in enumerate(self._pages("Watermarking"), start=1):
                renderer.apply(page, number, total)
                writer.add_page(page)
            return ExportResult(derive_name(self.name, "-watermarked"), write_pdf(writer), PDF_MIME)

    def to_images(self, dpi: int = 200, renderer: Optional[PageRenderer] = None) -> ExportResult:
        """Rasterizes every page to PNG at ``dpi`` and zips the images."""
        if not MIN_DPI <= dpi <= MAX_DPI:
            raise InvalidInputError(f"DPI must be between {MIN_DPI} and {MAX_DPI}, got {dpi}")
        renderer = renderer or FitzPageRenderer()
        stem = self.stem

        with processing(f"render {self.name}"):
            pages = renderer.render_all(self.data, dpi_to_scale(dpi))
            if self.progress:
                pages = tqdm(pages, desc="Rendering", unit="page")
            entries = [(f"{stem}-{i}.png", page.png) for i, page in enumerate(pages, start=1)]
            return build_archive(derive_name(self.name, "-images", "zip"), f"{stem}-images", entries)

# ==========================================
# Module-level entry points
# ==========================================

def get_pdf_info(data: bytes, name: str, password: Optional[str] = None) -> PdfInfo:
    return PDFProcessor(data, name, password).info()


def split_pdf(data: bytes, name: str, selection: Selection,
              view: Optional[Sequence[int]] = None, password: Optional[str] = None) -> ExportResult:
    return PDFProcessor(data, name, password).split(selection, view)


def rotate_pdf(data: bytes, name: str, angle: int, password: Optional[str] = None) -> ExportResult:
    return PDFProcessor(data, name, password).rotate(angle)


def crop_pdf(data: bytes, name: str, margins: CropMargins, password: Optional[str] = None) -> ExportResult:
    return PDFProcessor(data, name, password).crop(margins)


def add_watermark(data: bytes, name: str, config: WatermarkConfig,
                  font_loader: Optional[FontLoader] = None, password: Optional[str] = None) -> ExportResult:
    return PDFProcessor(data, name, password).watermark(config, font_loader)


def convert_pdf_to_images(data: bytes, name: str, dpi: int = 200,
                          renderer: Optional[PageRenderer] = None) -> ExportResult:
    return PDFProcessor(data, name).to_images(dpi, renderer)


def merge_pdfs(sources: Sequence[Tuple[str, bytes]], password: Optional[str] = None,
               progress: bool = False) -> ExportResult:
    """Concatenates ``sources`` (name, bytes) in the given order."""
    if len(sources) < 2:
        raise InvalidInputError("Please select at least two PDF files to merge.")

    writer = PdfWriter()
    for name, data in tqdm(sources, desc="Merging", unit="file", disable=not progress):
        reader = PDFProcessor(data, name, password).load_pdf()
        with processing(f"merge {name}"):
            for page in reader.pages:
                writer.add_page(page)

    with processing("save merged document"):
        return ExportResult(MERGED_FILENAME, write_pdf(writer), PDF_MIME)

