"""
PDF Suite - Configuration & Error Types

Holds the exception hierarchy shared by every tool in the suite, and the
configuration object describing a watermark (text, image or PDF stamp).

Architecture:
1. Configuration: Data classes and Enums to define watermark properties.
2. Geometry: anchor placement and per-page text templating (WatermarkGeometry).
3. Rendering: ReportLab generation of overlay stamps (WatermarkRenderer).
4. Processing: pypdf integration for every tool (PDFProcessor).
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from reportlab.lib import colors
from reportlab.lib.colors import Color

# ==========================================
# Custom Exceptions
# ==========================================

class PDFToolError(Exception):
    """Base exception for all PDF suite operations."""
    pass

class InvalidInputError(PDFToolError):
    """Raised when input parameters or files are invalid."""
    pass

class PDFProcessingError(PDFToolError):
    """Raised when loading, rendering or saving a PDF fails."""
    pass

class ResourceError(PDFToolError):
    """Raised when external resources (fonts, images) cannot be loaded."""
    pass

class FontLoadError(ResourceError):
    """Raised when no font covering the watermark text could be fetched."""
    pass

# ==========================================
# Enumerations & Constants
# ==========================================

class WatermarkType(Enum):
    """Defines the mode of watermarking."""
    TEXT = "text"
    IMAGE = "image"
    PDF = "pdf"

DEFAULT_TEXT_ROTATION = 45.0
DEFAULT_FONT_NAME = "Helvetica"

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")

# ==========================================
# Configuration Data Class
# ==========================================

@dataclass
class WatermarkConfig:
    """
    Configuration object holding all style and geometry settings for the watermark.

    The anchor is expressed as fractions of the page: ``anchor_x`` from the left
    edge, ``anchor_y`` from the top edge. The watermark's visual center lands on
    that point regardless of rotation.

    This class handles validation of inputs immediately upon instantiation.
    """

    # --- Core Settings ---
    watermark_type: WatermarkType

    # --- Geometry & Appearance ---
    anchor_x: float = 0.5
    anchor_y: float = 0.5
    rotation: Optional[float] = None   # Degrees (counter-clockwise), None -> type default
    opacity: float = 0.5               # 0.0 (transparent) to 1.0 (solid)

    # --- Text Specific Settings ---
    text: Optional[str] = None
    font_size: float = 50
    font_color: str = "#000000"        # Hex #RRGGBB
    font_path: Optional[Union[str, Path]] = None

    # --- Image / Stamp Specific Settings ---
    image_path: Optional[Union[str, Path]] = None
    stamp_path: Optional[Union[str, Path]] = None
    image_rel_page: float = 0.3        # Image width as a fraction of page width

    def __post_init__(self):
        """Validates configuration after initialization."""
        if self.rotation is None:
            self.rotation = DEFAULT_TEXT_ROTATION if self.watermark_type == WatermarkType.TEXT else 0.0
        self._validate_ranges()
        self._validate_content()
        self._validate_paths()

    @property
    def color(self) -> Color:
        """ReportLab color for the configured hex string."""
        return colors.HexColor(self.font_color)

    def _validate_ranges(self):
        """Ensures fractions, sizes and colors are usable."""
        if not (0.0 <= self.opacity <= 1.0):
            raise InvalidInputError(f"Opacity must be between 0.0 and 1.0, got {self.opacity}")
        for label, value in (("anchor_x", self.anchor_x), ("anchor_y", self.anchor_y)):
            if not (0.0 <= value <= 1.0):
                raise InvalidInputError(f"{label} must be between 0.0 and 1.0, got {value}")
        if self.font_size <= 0:
            raise InvalidInputError(f"Font size must be positive, got {self.font_size}")
        if not (0.0 < self.image_rel_page <= 1.0):
            raise InvalidInputError(f"image_rel_page must be in (0.0, 1.0], got {self.image_rel_page}")
        if not _HEX_COLOR.match(self.font_color):
            raise InvalidInputError(f"Color must look like #RRGGBB, got {self.font_color!r}")

    def _validate_content(self):
        """Ensures the correct content is provided for the selected type."""
        if self.watermark_type == WatermarkType.TEXT:
            if not self.text:
                raise InvalidInputError("Watermark type is TEXT, but 'text' content is missing.")

        elif self.watermark_type == WatermarkType.IMAGE:
            if not self.image_path:
                raise InvalidInputError("Watermark type is IMAGE, but 'image_path' is missing.")

        elif self.watermark_type == WatermarkType.PDF:
            if not self.stamp_path:
                raise InvalidInputError("Watermark type is PDF, but 'stamp_path' is missing.")

    def _validate_paths(self):
        """Checks if referenced files exist."""
        for attr in ("image_path", "stamp_path", "font_path"):
            value = getattr(self, attr)
            if not value:
                continue
            path_obj = Path(value)
            if not path_obj.exists() or not path_obj.is_file():
                raise InvalidInputError(f"File not found at: {value}")
            setattr(self, attr, path_obj)  # Standardize to Path object
