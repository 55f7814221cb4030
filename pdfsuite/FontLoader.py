"""
Font loading for watermark text.

The built-in PDF fonts only cover Latin-1, so text containing anything outside
ASCII needs an embedded TrueType font. Fonts are supplied by a loader service:
either downloaded (trying each mirror in turn) or read from a local file.
"""

import io
import re
import struct
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Sequence, Union

import httpx
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont

from .logging_config import get_logger
from .WatermarkConfig import DEFAULT_FONT_NAME, FontLoadError

LOGGER = get_logger(__name__)

UNICODE_REQUIREMENT = "unicode"
UNICODE_FONT_NAME = "PDFSuiteUnicode"

FONT_LOAD_MESSAGE = (
    "Could not load a font for non-Latin watermark text. "
    "Please check your network connection or set PDFSUITE_FONT_PATH to a local .ttf file."
)

_NON_ASCII = re.compile(r"[^\x00-\x7F]")


class FontLoader(Protocol):
    def load(self, requirement: str) -> bytes:
        """Return TrueType font bytes satisfying ``requirement``."""
        ...


def needs_unicode_font(text: str) -> bool:
    return bool(_NON_ASCII.search(text))


class HttpFontLoader:
    """Downloads a font, trying each URL once in order."""

    def __init__(self, urls: Sequence[str], timeout: float = 30.0,
                 client_factory: Optional[Callable[[], httpx.Client]] = None) -> None:
        self._urls = list(urls)
        self._timeout = timeout
        self._client_factory = client_factory or (
            lambda: httpx.Client(timeout=self._timeout, follow_redirects=True)
        )
        self._cache: Dict[str, bytes] = {}

    def load(self, requirement: str) -> bytes:
        if requirement in self._cache:
            return self._cache[requirement]

        with self._client_factory() as client:
            for url in self._urls:
                try:
                    response = client.get(url)
                    response.raise_for_status()
                except httpx.HTTPError as exc:
                    LOGGER.warning("Failed to load font from %s: %s", url, exc)
                    continue
                LOGGER.info("Loaded %s font from %s (%d bytes)", requirement, url, len(response.content))
                self._cache[requirement] = response.content
                return response.content

        raise FontLoadError(FONT_LOAD_MESSAGE)


class FileFontLoader:
    """Reads a font from the local filesystem."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    def load(self, requirement: str) -> bytes:
        try:
            return self._path.read_bytes()
        except OSError as exc:
            LOGGER.error("Cannot read font file %s: %s", self._path, exc)
            raise FontLoadError(f"Cannot read font file {self._path}: {exc}") from exc


def default_font_loader() -> FontLoader:
    """Loader configured from the environment settings."""
    from .Settings import get_settings

    settings = get_settings()
    if settings.font_path:
        return FileFontLoader(settings.font_path)
    return HttpFontLoader(settings.font_urls, timeout=settings.font_timeout)


def resolve_font(text: str, loader: Optional[FontLoader] = None) -> str:
    """
    Returns the ReportLab font name able to draw ``text``.

    ASCII text uses the built-in Helvetica. Anything else registers a TrueType
    font obtained from ``loader`` under a fixed name.
    """
    if not needs_unicode_font(text):
        return DEFAULT_FONT_NAME

    if UNICODE_FONT_NAME in pdfmetrics.getRegisteredFontNames():
        return UNICODE_FONT_NAME

    loader = loader or default_font_loader()
    font_bytes = loader.load(UNICODE_REQUIREMENT)
    try:
        pdfmetrics.registerFont(TTFont(UNICODE_FONT_NAME, io.BytesIO(font_bytes)))
    except (TTFError, ValueError, KeyError, struct.error) as exc:
        LOGGER.error("Downloaded font could not be parsed: %s", exc)
        raise FontLoadError(FONT_LOAD_MESSAGE) from exc
    return UNICODE_FONT_NAME
