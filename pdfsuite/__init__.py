"""PDF utility suite: split, merge, rotate, crop, watermark and rasterize PDFs."""

__version__ = "1.0.0"
