"""Suite settings loaded from environment variables."""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

# Noto Sans SC covers CJK plus Latin; tried in order until one download succeeds.
DEFAULT_FONT_URLS = (
    "https://cdn.jsdelivr.net/gh/google/fonts@main/ofl/notosanssc/NotoSansSC%5Bwght%5D.ttf",
    "https://raw.githubusercontent.com/google/fonts/main/ofl/notosanssc/NotoSansSC%5Bwght%5D.ttf",
)

MIN_DPI = 72
MAX_DPI = 300


@dataclass(frozen=True)
class Settings:
    """Container for configuration values loaded from environment variables."""

    log_level: str
    output_dir: Path
    default_dpi: int
    font_urls: Tuple[str, ...]
    font_path: Optional[Path]
    font_timeout: float


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float, got {raw!r}") from exc


def _read_int(name: str, default: int, *, minimum: Optional[int] = None,
              maximum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        value = default
    else:
        try:
            value = int(raw)
        except ValueError as exc:
            raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise ValueError(f"Environment variable {name} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"Environment variable {name} must be <= {maximum}, got {value}")
    return value


def _read_urls(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return DEFAULT_FONT_URLS
    return tuple(url.strip() for url in raw.split(",") if url.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read and memoise :class:`Settings` from environment variables."""

    font_path = os.getenv("PDFSUITE_FONT_PATH")
    return Settings(
        log_level=os.getenv("PDFSUITE_LOG_LEVEL", "WARNING").upper(),
        output_dir=Path(os.getenv("PDFSUITE_OUTPUT_DIR", ".")).expanduser(),
        default_dpi=_read_int("PDFSUITE_DEFAULT_DPI", 200, minimum=MIN_DPI, maximum=MAX_DPI),
        font_urls=_read_urls("PDFSUITE_FONT_URLS"),
        font_path=Path(font_path).expanduser() if font_path else None,
        font_timeout=_read_float("PDFSUITE_FONT_TIMEOUT", 30.0),
    )


__all__ = ["Settings", "get_settings", "MIN_DPI", "MAX_DPI"]
