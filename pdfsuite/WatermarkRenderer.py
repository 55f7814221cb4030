import io
from typing import Dict, Optional, Tuple

from pypdf import PageObject, PdfReader, Transformation
from pypdf.errors import PyPdfError
from pypdf.generic import DecodedStreamObject, DictionaryObject, FloatObject, NameObject, RectangleObject
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from .FontLoader import FontLoader, resolve_font
from .logging_config import get_logger
from .WatermarkConfig import PDFProcessingError, ResourceError, WatermarkConfig, WatermarkType
from .WatermarkGeometry import expand_placeholders, place

LOGGER = get_logger(__name__)

STAMP_FORM = "/PDFSuiteStamp"
STAMP_ALPHA = "/PDFSuiteAlpha"

# ==========================================
# Watermark Renderer
# ==========================================

class WatermarkRenderer:
    """
    Stamps a configured watermark onto pypdf pages.

    This class is responsible for:
    1. Creating in-memory overlay PDFs with ReportLab (text and images).
    2. Expanding page placeholders and measuring the resulting text.
    3. Placing content so its center lands on the configured anchor.
    4. Caching overlays, keyed by page size and the text drawn on them.
    """

    def __init__(self, config: WatermarkConfig, font_loader: Optional[FontLoader] = None):
        self.config = config
        self.font_loader = font_loader
        # Cache key: (width, height, text), Value: pypdf.PageObject
        self._cache: Dict[Tuple[float, float, str], PageObject] = {}
        self._font_name: Optional[str] = None
        self._image: Optional[ImageReader] = None
        self._stamp: Optional[PageObject] = None

    def apply(self, page: PageObject, page_number: int, total_pages: int) -> None:
        """Merges the watermark ON TOP of ``page`` (1-based ``page_number``)."""
        page_width = float(page.mediabox.width)
        page_height = float(page.mediabox.height)

        if self.config.watermark_type == WatermarkType.PDF:
            self._merge_stamp(page, page_width, page_height)
            return

        text = ""
        if self.config.watermark_type == WatermarkType.TEXT:
            text = expand_placeholders(self.config.text, page_number, total_pages)

        overlay = self.get_overlay(page_width, page_height, text)
        # The overlay is drawn in media box coordinates starting at (0, 0)
        page.merge_transformed_page(
            overlay,
            Transformation().translate(float(page.mediabox.left), float(page.mediabox.bottom)),
        )

    def get_overlay(self, page_width: float, page_height: float, text: str = "") -> PageObject:
        """
        Retrieves an overlay PageObject for the specified dimensions and text.
        Returns a cached object if available, otherwise renders a new one.
        """
        # Round dimensions to avoid cache misses on negligible float differences
        key = (round(page_width, 2), round(page_height, 2), text)

        if key not in self._cache:
            self._cache[key] = self._render_overlay_page(page_width, page_height, text)

        return self._cache[key]

    @property
    def font_name(self) -> str:
        # Placeholders only ever expand to digits, so the raw text decides the font.
        if self._font_name is None:
            self._font_name = resolve_font(self.config.text or "", self.font_loader)
        return self._font_name

    def text_extent(self, text: str) -> Tuple[float, float]:
        """Width and height (ascent to descent) of ``text`` at the configured size."""
        size = self.config.font_size
        width = pdfmetrics.stringWidth(text, self.font_name, size)
        ascent, descent = pdfmetrics.getAscentDescent(self.font_name, size)
        return width, ascent - descent

    def _render_overlay_page(self, width: float, height: float, text: str) -> PageObject:
        """Internal method to draw the watermark on a fresh PDF page."""
        packet = io.BytesIO()
        c = canvas.Canvas(packet, pagesize=(width, height))

        # ReportLab handles alpha via fillAlpha/strokeAlpha
        c.setFillAlpha(self.config.opacity)
        c.setStrokeAlpha(self.config.opacity)

        if self.config.watermark_type == WatermarkType.TEXT:
            self._draw_text(c, width, height, text)
        elif self.config.watermark_type == WatermarkType.IMAGE:
            self._draw_image(c, width, height)

        c.save()
        packet.seek(0)
        return PdfReader(packet).pages[0]

    def _draw_text(self, c: canvas.Canvas, page_w: float, page_h: float, text: str):
        """Draws text so that its center sits on the anchor after rotation."""
        c.setFont(self.font_name, self.config.font_size)
        c.setFillColor(self.config.color)

        text_w, text_h = self.text_extent(text)
        x, y = place(page_w, page_h, self.config.anchor_x, self.config.anchor_y,
                     self.config.rotation, text_w, text_h)

        # Rotation happens about the draw origin
        c.saveState()
        c.translate(x, y)
        c.rotate(self.config.rotation)
        c.drawString(0, 0, text)
        c.restoreState()

    def _load_image(self) -> ImageReader:
        if self._image is None:
            try:
                self._image = ImageReader(str(self.config.image_path))
            except (OSError, ValueError) as e:
                raise ResourceError(f"Cannot read watermark image {self.config.image_path}: {e}") from e
        return self._image

    def _draw_image(self, c: canvas.Canvas, page_w: float, page_h: float):
        """Draws the image scaled to ``image_rel_page`` of the page width."""
        image = self._load_image()
        img_orig_w, img_orig_h = image.getSize()

        target_w = page_w * self.config.image_rel_page
        target_h = target_w * img_orig_h / img_orig_w

        x, y = place(page_w, page_h, self.config.anchor_x, self.config.anchor_y,
                     self.config.rotation, target_w, target_h)

        c.saveState()
        c.translate(x, y)
        c.rotate(self.config.rotation)
        c.drawImage(image, 0, 0, width=target_w, height=target_h, mask="auto")
        c.restoreState()

    def _load_stamp(self) -> PageObject:
        """
        Wraps the first page of the stamp PDF in a form XObject painted under
        an ExtGState carrying the configured opacity.
        """
        if self._stamp is None:
            try:
                source = PdfReader(str(self.config.stamp_path)).pages[0]
                contents = source.get_contents()
                box = source.mediabox
                form = DecodedStreamObject()
                form.set_data(contents.get_data() if contents is not None else b"")
                form.update({
                    NameObject("/Type"): NameObject("/XObject"),
                    NameObject("/Subtype"): NameObject("/Form"),
                    NameObject("/BBox"): RectangleObject((box.left, box.bottom, box.right, box.top)),
                })
                if "/Resources" in source:
                    form[NameObject("/Resources")] = source["/Resources"]
            except (PyPdfError, OSError, IndexError) as e:
                raise ResourceError(f"Cannot read watermark PDF {self.config.stamp_path}: {e}") from e

            alpha = DictionaryObject({
                NameObject("/Type"): NameObject("/ExtGState"),
                NameObject("/CA"): FloatObject(self.config.opacity),
                NameObject("/ca"): FloatObject(self.config.opacity),
            })
            stamp = PageObject.create_blank_page(width=float(box.width), height=float(box.height))
            stamp.mediabox = RectangleObject((box.left, box.bottom, box.right, box.top))
            stamp[NameObject("/Resources")] = DictionaryObject({
                NameObject("/ExtGState"): DictionaryObject({NameObject(STAMP_ALPHA): alpha}),
                NameObject("/XObject"): DictionaryObject({NameObject(STAMP_FORM): form}),
            })
            content = DecodedStreamObject()
            content.set_data(f"q {STAMP_ALPHA} gs {STAMP_FORM} Do Q".encode("ascii"))
            stamp[NameObject("/Contents")] = content
            self._stamp = stamp
        return self._stamp

    def _merge_stamp(self, page: PageObject, page_w: float, page_h: float):
        """Merges the first page of the stamp PDF, stretched to the page size."""
        stamp = self._load_stamp()

        stamp_box = stamp.mediabox
        stamp_w, stamp_h = float(stamp_box.width), float(stamp_box.height)
        if stamp_w <= 0 or stamp_h <= 0:
            raise PDFProcessingError("Watermark PDF has an empty page")

        x, y = place(page_w, page_h, self.config.anchor_x, self.config.anchor_y,
                     self.config.rotation, page_w, page_h)
        ctm = (
            Transformation()
            .translate(-float(stamp_box.left), -float(stamp_box.bottom))
            .scale(page_w / stamp_w, page_h / stamp_h)
            .rotate(self.config.rotation)
            .translate(x + float(page.mediabox.left), y + float(page.mediabox.bottom))
        )
        page.merge_transformed_page(stamp, ctm)
