import pytest

from conftest import zip_contents
from pdfsuite.Packaging import (
    ExportResult, build_archive, derive_name, read_source, save_result, strip_extension, write_result,
)
from pdfsuite.WatermarkConfig import InvalidInputError, PDFProcessingError


def test_names_are_derived_from_the_stem():
    assert strip_extension("scans/report.final.pdf") == "report.final"
    assert strip_extension("") == "document"
    assert derive_name("report.pdf", "-images", "zip") == "report-images.zip"


def test_archive_entries_live_in_a_folder():
    result = build_archive("a.zip", "a-split", [("a-1.pdf", b"one"), ("a-2.pdf", b"two")])
    assert result.mime_type == "application/zip"
    assert zip_contents(result.data) == {"a-split/a-1.pdf": b"one", "a-split/a-2.pdf": b"two"}


def test_write_result_creates_the_output_directory(tmp_path):
    target = write_result(ExportResult("x.pdf", b"%PDF", "application/pdf"), tmp_path / "nested" / "out")
    assert target == tmp_path / "nested" / "out" / "x.pdf"
    assert target.read_bytes() == b"%PDF"


def test_save_failure_is_a_processing_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    with pytest.raises(PDFProcessingError):
        save_result(ExportResult("x.pdf", b"%PDF", "application/pdf"), blocker / "x.pdf")
    with pytest.raises(PDFProcessingError):
        write_result(ExportResult("x.pdf", b"%PDF", "application/pdf"), blocker)


def test_read_source_rejects_missing_files(tmp_path):
    with pytest.raises(InvalidInputError):
        read_source(tmp_path / "gone.pdf")
    with pytest.raises(InvalidInputError):
        read_source(tmp_path)
