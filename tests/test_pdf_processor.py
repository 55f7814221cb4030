import io

import pytest
from pypdf import PdfReader, PdfWriter

from conftest import build_pdf, page_labels, page_texts, zip_contents
from pdfsuite.PageRenderer import FitzPageRenderer
from pdfsuite.PageSelection import DeletePages, EachPage, ExtractPages, RangeSplit, SelectedPages
from pdfsuite.PDFProcessor import (
    CropMargins, PDFProcessor, add_watermark, convert_pdf_to_images, crop_pdf,
    get_pdf_info, merge_pdfs, rotate_pdf, split_pdf,
)
from pdfsuite.WatermarkConfig import (
    InvalidInputError, PDFProcessingError, WatermarkConfig, WatermarkType,
)


def reader_of(data: bytes) -> PdfReader:
    return PdfReader(io.BytesIO(data))


def test_info_reports_pages_and_size(sample_pdf):
    info = get_pdf_info(sample_pdf, "report.pdf")
    assert info.page_count == 5
    assert info.size == len(sample_pdf)
    assert (info.width, info.height) == (600, 800)


def test_garbage_input_is_a_processing_error():
    with pytest.raises(PDFProcessingError):
        get_pdf_info(b"not a pdf at all", "junk.pdf")


def test_split_each_page_into_archive(sample_pdf):
    result = split_pdf(sample_pdf, "report.pdf", EachPage())
    assert result.filename == "report-split.zip"
    assert result.mime_type == "application/zip"
    files = zip_contents(result.data)
    assert sorted(files) == [f"report-split/report-{i}.pdf" for i in range(1, 6)]
    assert page_labels(files["report-split/report-3.pdf"]) == ["Source page 3"]


def test_split_each_page_follows_view(sample_pdf, view5):
    files = zip_contents(split_pdf(sample_pdf, "report.pdf", EachPage(), view=view5).data)
    assert page_labels(files["report-split/report-1.pdf"]) == ["Source page 5"]


def test_split_ranges_skips_empty_groups(sample_pdf):
    result = split_pdf(sample_pdf, "report.pdf", RangeSplit("1-3, 9, 5"))
    files = zip_contents(result.data)
    assert sorted(files) == ["report-parts/report-part-1.pdf", "report-parts/report-part-3.pdf"]
    assert page_labels(files["report-parts/report-part-1.pdf"]) == [
        "Source page 1", "Source page 2", "Source page 3",
    ]
    assert page_labels(files["report-parts/report-part-3.pdf"]) == ["Source page 5"]


def test_split_selected_names_files_by_view_position(sample_pdf, view5):
    result = split_pdf(sample_pdf, "report.pdf", SelectedPages((3, 0)), view=view5)
    files = zip_contents(result.data)
    assert sorted(files) == ["report-selected/report-page-1.pdf", "report-selected/report-page-4.pdf"]
    assert page_labels(files["report-selected/report-page-4.pdf"]) == ["Source page 2"]


def test_extract_preserves_selection_order(sample_pdf):
    result = split_pdf(sample_pdf, "report.pdf", ExtractPages((3, 0)))
    assert result.filename == "report-extracted.pdf"
    assert page_labels(result.data) == ["Source page 4", "Source page 1"]


def test_delete_keeps_the_rest(sample_pdf):
    result = split_pdf(sample_pdf, "report.pdf", DeletePages((3, 1)))
    assert result.filename == "report-edited.pdf"
    assert page_labels(result.data) == ["Source page 1", "Source page 3", "Source page 5"]


def test_split_rejects_selections_without_pages(sample_pdf):
    with pytest.raises(InvalidInputError):
        split_pdf(sample_pdf, "report.pdf", RangeSplit(""))
    with pytest.raises(InvalidInputError):
        split_pdf(sample_pdf, "report.pdf", RangeSplit("7-9"))
    with pytest.raises(InvalidInputError):
        split_pdf(sample_pdf, "report.pdf", DeletePages(tuple(range(5))))


def test_merge_concatenates_in_order():
    first = build_pdf(2)
    second = build_pdf(1, label="Other page")
    result = merge_pdfs([("a.pdf", first), ("b.pdf", second)])
    assert result.filename == "merged-document.pdf"
    texts = page_texts(result.data)
    assert len(texts) == 3
    assert "Other page 1" in texts[2]


def test_merge_needs_two_files(sample_pdf):
    with pytest.raises(InvalidInputError):
        merge_pdfs([("a.pdf", sample_pdf)])


def test_rotate_adds_to_existing_rotation(sample_pdf):
    writer = PdfWriter(clone_from=reader_of(sample_pdf))
    writer.pages[0].rotate(90)
    buffer = io.BytesIO()
    writer.write(buffer)

    result = rotate_pdf(buffer.getvalue(), "scan.pdf", 90)
    assert result.filename == "scan-rotated.pdf"
    rotations = [page.rotation for page in reader_of(result.data).pages]
    assert rotations == [180, 90, 90, 90, 90]


def test_rotate_rejects_odd_angles(sample_pdf):
    with pytest.raises(InvalidInputError):
        rotate_pdf(sample_pdf, "scan.pdf", 45)


def test_crop_sets_crop_box(sample_pdf):
    margins = CropMargins(left=10, right=20, top=30, bottom=40)
    result = crop_pdf(sample_pdf, "report.pdf", margins)
    assert result.filename == "report-cropped.pdf"
    box = reader_of(result.data).pages[0].cropbox
    assert [float(v) for v in (box.left, box.bottom, box.right, box.top)] == [10, 40, 580, 770]


def test_crop_rejects_margins_that_cover_the_page(sample_pdf):
    with pytest.raises(InvalidInputError):
        crop_pdf(sample_pdf, "report.pdf", CropMargins(left=300, right=300))
    with pytest.raises(InvalidInputError):
        CropMargins(top=-1)


def test_text_watermark_expands_placeholders_per_page():
    data = build_pdf(3)
    config = WatermarkConfig(WatermarkType.TEXT, text="Page {page} of {total}", rotation=0)
    result = add_watermark(data, "report.pdf", config)
    assert result.filename == "report-watermarked.pdf"
    texts = page_texts(result.data)
    for number, text in enumerate(texts, start=1):
        assert f"Page {number} of 3" in text


def test_text_watermark_keeps_original_content(sample_pdf):
    config = WatermarkConfig(WatermarkType.TEXT, text="CONFIDENTIAL", rotation=0, opacity=0.3)
    texts = page_texts(add_watermark(sample_pdf, "report.pdf", config).data)
    assert all("CONFIDENTIAL" in text for text in texts)
    assert "Source page 2" in texts[1]


def test_image_watermark_embeds_an_image(tmp_path, sample_pdf):
    image = tmp_path / "logo.png"
    image.write_bytes(FitzPageRenderer().render_page(sample_pdf, 0, 0.1).png)
    config = WatermarkConfig(WatermarkType.IMAGE, image_path=image)
    result = add_watermark(sample_pdf, "report.pdf", config)
    assert all(len(page.images) == 1 for page in reader_of(result.data).pages)


def test_pdf_stamp_watermark_merges_first_page(tmp_path, sample_pdf):
    stamp = tmp_path / "stamp.pdf"
    stamp.write_bytes(build_pdf(1, size=(300, 150), label="STAMP"))
    config = WatermarkConfig(WatermarkType.PDF, stamp_path=stamp, opacity=1.0)
    texts = page_texts(add_watermark(sample_pdf, "report.pdf", config).data)
    assert all("STAMP 1" in text for text in texts)


def test_pdf_stamp_watermark_applies_opacity(tmp_path, sample_pdf):
    stamp = tmp_path / "stamp.pdf"
    stamp.write_bytes(build_pdf(1, size=(300, 150), label="STAMP"))
    config = WatermarkConfig(WatermarkType.PDF, stamp_path=stamp, opacity=0.4)
    result = add_watermark(sample_pdf, "report.pdf", config)

    for page in reader_of(result.data).pages:
        states = page["/Resources"]["/ExtGState"]
        alphas = {
            (round(float(state["/CA"]), 2), round(float(state["/ca"]), 2))
            for state in (value.get_object() for value in states.values())
            if "/ca" in state
        }
        assert alphas == {(0.4, 0.4)}
        assert "STAMP 1" in page.extract_text()


def test_watermark_config_validation(tmp_path):
    with pytest.raises(InvalidInputError):
        WatermarkConfig(WatermarkType.TEXT)
    with pytest.raises(InvalidInputError):
        WatermarkConfig(WatermarkType.TEXT, text="x", opacity=1.5)
    with pytest.raises(InvalidInputError):
        WatermarkConfig(WatermarkType.TEXT, text="x", anchor_y=-0.1)
    with pytest.raises(InvalidInputError):
        WatermarkConfig(WatermarkType.TEXT, text="x", font_color="red")
    with pytest.raises(InvalidInputError):
        WatermarkConfig(WatermarkType.IMAGE, image_path=tmp_path / "missing.png")
    assert WatermarkConfig(WatermarkType.TEXT, text="x").rotation == 45
    assert WatermarkConfig(WatermarkType.PDF, stamp_path=__file__).rotation == 0


def test_renderer_counts_and_renders_pages(sample_pdf):
    renderer = FitzPageRenderer()
    assert renderer.page_count(sample_pdf) == 5
    page = renderer.render_page(sample_pdf, 4, 0.5)
    assert (page.width, page.height) == (300, 400)
    with pytest.raises(InvalidInputError):
        renderer.render_page(sample_pdf, 5)


def test_convert_to_images_scales_with_dpi():
    data = build_pdf(2, size=(144, 72))
    result = convert_pdf_to_images(data, "report.pdf", dpi=144)
    assert result.filename == "report-images.zip"
    files = zip_contents(result.data)
    assert sorted(files) == ["report-images/report-1.png", "report-images/report-2.png"]
    png = files["report-images/report-1.png"]
    assert png.startswith(b"\x89PNG")
    # IHDR width/height are big-endian ints at offsets 16 and 20
    assert int.from_bytes(png[16:20], "big") == 288
    assert int.from_bytes(png[20:24], "big") == 144


@pytest.mark.parametrize("dpi", [71, 301])
def test_convert_to_images_rejects_dpi_out_of_bounds(sample_pdf, dpi):
    with pytest.raises(InvalidInputError):
        convert_pdf_to_images(sample_pdf, "report.pdf", dpi=dpi)


def test_encrypted_pdf_needs_password(sample_pdf):
    writer = PdfWriter(clone_from=reader_of(sample_pdf))
    writer.encrypt("secret")
    buffer = io.BytesIO()
    writer.write(buffer)
    locked = buffer.getvalue()

    with pytest.raises(PDFProcessingError):
        PDFProcessor(locked, "locked.pdf").load_pdf()
    assert PDFProcessor(locked, "locked.pdf", password="secret").page_count == 5
