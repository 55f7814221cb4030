import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .FontLoader import FileFontLoader, default_font_loader
from .logging_config import configure_logging, get_logger
from .Packaging import ExportResult, read_source, write_result
from .PageSelection import MODES, build_view, make_selection
from .PDFProcessor import CropMargins, PDFProcessor, merge_pdfs
from .Settings import MAX_DPI, MIN_DPI, get_settings
from .WatermarkConfig import FontLoadError, InvalidInputError, PDFToolError, WatermarkConfig, WatermarkType

LOGGER = get_logger(__name__)

GENERIC_FAILURE = "Something went wrong while processing the PDF. Please check your input file."

# ==========================================
# Services
# ==========================================

def parse_page_numbers(text: Optional[str]) -> Optional[List[int]]:
    """'3, 1, 5' -> [3, 1, 5]; None/blank -> None."""
    if text is None or not text.strip():
        return None
    try:
        return [int(part) for part in text.split(",") if part.strip()]
    except ValueError:
        raise InvalidInputError(f"Page list must be comma-separated numbers, got {text!r}")


def run_split_service(input_pdf: str, mode: str, ranges: Optional[str] = None,
                      pages: Optional[str] = None, view: Optional[str] = None,
                      password: Optional[str] = None, progress: bool = False) -> ExportResult:
    """
    Splits ``input_pdf``.

    ``pages`` are 1-based positions in the view; ``view`` lists the 1-based
    physical pages currently shown (default: all, in order).
    """
    processor = PDFProcessor(read_source(input_pdf), Path(input_pdf).name, password, progress)
    positions = [n - 1 for n in parse_page_numbers(pages) or []]
    selection = make_selection(mode, ranges=ranges, positions=positions)
    current_view = build_view(processor.page_count, parse_page_numbers(view))
    return processor.split(selection, current_view)


def run_merge_service(input_pdfs: Sequence[str], password: Optional[str] = None,
                      progress: bool = False) -> ExportResult:
    sources = [(Path(p).name, read_source(p)) for p in input_pdfs]
    return merge_pdfs(sources, password=password, progress=progress)


def run_rotate_service(input_pdf: str, angle: int, password: Optional[str] = None,
                       progress: bool = False) -> ExportResult:
    return PDFProcessor(read_source(input_pdf), Path(input_pdf).name, password, progress).rotate(angle)


def run_crop_service(input_pdf: str, left: float = 0, right: float = 0, top: float = 0,
                     bottom: float = 0, password: Optional[str] = None,
                     progress: bool = False) -> ExportResult:
    margins = CropMargins(left=left, right=right, top=top, bottom=bottom)
    return PDFProcessor(read_source(input_pdf), Path(input_pdf).name, password, progress).crop(margins)


def run_watermark_service(
    input_pdf: str,
    watermark_text: Optional[str] = None,
    watermark_image: Optional[str] = None,
    watermark_pdf: Optional[str] = None,
    x: float = 0.5,
    y: float = 0.5,
    rotation: Optional[float] = None,
    opacity: float = 0.5,
    size: float = 50,
    color: str = "#000000",
    font_path: Optional[str] = None,
    password: Optional[str] = None,
    progress: bool = False,
) -> ExportResult:
    """
    High-level entry point to configure and run the watermarking process.
    """
    # 1. Determine Type
    if watermark_pdf:
        w_type = WatermarkType.PDF
    elif watermark_image:
        w_type = WatermarkType.IMAGE
    else:
        w_type = WatermarkType.TEXT

    # 2. Create Config
    config = WatermarkConfig(
        watermark_type=w_type,
        text=watermark_text,
        image_path=watermark_image,
        stamp_path=watermark_pdf,
        anchor_x=x,
        anchor_y=y,
        rotation=rotation,
        opacity=opacity,
        font_size=size,
        font_color=color,
        font_path=font_path,
    )

    # 3. Process
    loader = FileFontLoader(config.font_path) if config.font_path else default_font_loader()
    processor = PDFProcessor(read_source(input_pdf), Path(input_pdf).name, password, progress)
    return processor.watermark(config, loader)


def run_images_service(input_pdf: str, dpi: int, password: Optional[str] = None,
                       progress: bool = False) -> ExportResult:
    processor = PDFProcessor(read_source(input_pdf), Path(input_pdf).name, password, progress)
    processor.load_pdf()
    return processor.to_images(dpi)

# ==========================================
# CLI & Execution
# ==========================================

def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="pdfsuite",
        description="PDF utility suite: split, merge, rotate, crop, watermark and convert PDFs",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-o", "--out-dir", default=str(settings.output_dir), help="Directory for output files")
    parser.add_argument("--password", help="Password for encrypted PDFs")
    parser.add_argument("--log-level", default=settings.log_level,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging verbosity")
    parser.add_argument("--no-progress", action="store_true", help="Hide progress bars")

    sub = parser.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="Show page count and page size")
    info.add_argument("input", help="Path to source PDF")

    split = sub.add_parser("split", help="Split, extract or delete pages",
                           formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    split.add_argument("input", help="Path to source PDF")
    split.add_argument("--mode", choices=MODES, default="each", help="Split mode")
    split.add_argument("--ranges", help="Page ranges for 'ranges' mode (e.g. '1-3, 5')")
    split.add_argument("--pages", help="Page numbers for selected/extract/delete modes (e.g. '4, 1')")
    split.add_argument("--view", help="Pages currently shown, in order (e.g. '1, 3, 4'); default: all")

    merge = sub.add_parser("merge", help="Merge PDFs in the given order")
    merge.add_argument("inputs", nargs="+", help="Paths to source PDFs")

    rotate = sub.add_parser("rotate", help="Rotate every page")
    rotate.add_argument("input", help="Path to source PDF")
    rotate.add_argument("--angle", type=int, choices=[90, 180, 270], default=90, help="Clockwise rotation")

    crop = sub.add_parser("crop", help="Trim margins from every page",
                          formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    crop.add_argument("input", help="Path to source PDF")
    for edge in ("left", "right", "top", "bottom"):
        crop.add_argument(f"--{edge}", type=float, default=0.0, help=f"{edge.title()} margin in points")

    wm = sub.add_parser("watermark", help="Add a text, image or PDF watermark",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    wm.add_argument("input", help="Path to source PDF")
    group = wm.add_mutually_exclusive_group(required=True)
    group.add_argument("-t", "--text", help="Watermark text; supports {page}, {total} and {page:NN}")
    group.add_argument("-img", "--image", help="Path to image (PNG/JPG) to use as watermark")
    group.add_argument("--stamp", help="Path to a PDF whose first page is used as watermark")
    wm.add_argument("--x", type=float, default=0.5, help="Horizontal center, fraction of page width")
    wm.add_argument("--y", type=float, default=0.5, help="Vertical center, fraction of page height from the top")
    wm.add_argument("--rotate", type=float, default=None, help="Rotation in degrees (default 45 for text, 0 otherwise)")
    wm.add_argument("--opacity", type=float, default=0.5, help="Opacity (0.0 to 1.0)")
    wm.add_argument("--size", type=float, default=50, help="Font size in points")
    wm.add_argument("--color", default="#000000", help="Text color as #RRGGBB")
    wm.add_argument("--font", help="TrueType font for non-Latin text (default: downloaded)")

    images = sub.add_parser("to-images", help="Render every page to PNG",
                            formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    images.add_argument("input", help="Path to source PDF")
    images.add_argument("--dpi", type=int, default=settings.default_dpi,
                        help=f"Resolution ({MIN_DPI}-{MAX_DPI})")

    return parser


def dispatch(args: argparse.Namespace) -> Optional[ExportResult]:
    progress = not args.no_progress
    common = dict(password=args.password, progress=progress)

    if args.command == "info":
        processor = PDFProcessor(read_source(args.input), Path(args.input).name, args.password)
        info = processor.info()
        print(f"{info.name}: {info.page_count} page(s), {info.size} bytes")
        if info.width is not None:
            print(f"First page: {info.width:.1f} x {info.height:.1f} pt")
        return None
    if args.command == "split":
        return run_split_service(args.input, args.mode, ranges=args.ranges, pages=args.pages,
                                 view=args.view, **common)
    if args.command == "merge":
        return run_merge_service(args.inputs, **common)
    if args.command == "rotate":
        return run_rotate_service(args.input, args.angle, **common)
    if args.command == "crop":
        return run_crop_service(args.input, left=args.left, right=args.right, top=args.top,
                                bottom=args.bottom, **common)
    if args.command == "watermark":
        return run_watermark_service(
            args.input,
            watermark_text=args.text,
            watermark_image=args.image,
            watermark_pdf=args.stamp,
            x=args.x,
            y=args.y,
            rotation=args.rotate,
            opacity=args.opacity,
            size=args.size,
            color=args.color,
            font_path=args.font,
            **common,
        )
    if args.command == "to-images":
        return run_images_service(args.input, args.dpi, **common)
    raise InvalidInputError(f"Unknown command: {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    LOGGER.info("Running %s", args.command)

    try:
        result = dispatch(args)
        if result is not None:
            target = write_result(result, args.out_dir)
            print(f"[+] Success! File saved to: {target}")
        return 0
    except FontLoadError as e:
        print(f"[!] {e}", file=sys.stderr)
    except InvalidInputError as e:
        print(f"[!] {e}", file=sys.stderr)
    except PDFToolError as e:
        print(f"[!] {GENERIC_FAILURE}", file=sys.stderr)
        print(f"    {e}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
