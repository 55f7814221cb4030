import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
QtWidgets = pytest.importorskip("PyQt6.QtWidgets")

from pdfsuite import PDF_gui  # noqa: E402
from pdfsuite.PageRenderer import FitzPageRenderer  # noqa: E402


@pytest.fixture(scope="module")
def app():
    return QtWidgets.QApplication.instance() or QtWidgets.QApplication([])


def choose_save_path(monkeypatch, path):
    monkeypatch.setattr(PDF_gui.QFileDialog, "getSaveFileName",
                        lambda *args, **kwargs: (str(path), ""))


def test_rotate_saves_the_chosen_file(app, monkeypatch, tmp_path, sample_file):
    tab = PDF_gui.RotateTab(FitzPageRenderer())
    tab.input_path, tab.data = str(sample_file), sample_file.read_bytes()
    target = tmp_path / "saved.pdf"
    choose_save_path(monkeypatch, target)

    tab.run_tool()

    assert target.read_bytes().startswith(b"%PDF")
    assert tab.lbl_status.text() == "Done! Saved saved.pdf"


def test_unwritable_save_target_is_reported(app, monkeypatch, tmp_path, sample_file):
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    tab = PDF_gui.RotateTab(FitzPageRenderer())
    tab.input_path, tab.data = str(sample_file), sample_file.read_bytes()
    choose_save_path(monkeypatch, blocker / "out.pdf")

    tab.run_tool()

    assert tab.lbl_status.text() == PDF_gui.GENERIC_FAILURE
    assert tab.btn_process.isEnabled()


def test_merge_with_a_vanished_file_is_reported(app, tmp_path, sample_file):
    tab = PDF_gui.MergeTab(FitzPageRenderer())
    tab.list_files.addItem(str(sample_file))
    tab.list_files.addItem(str(tmp_path / "deleted.pdf"))

    tab.run_tool()

    assert "not found" in tab.lbl_status.text()
    assert tab.btn_process.isEnabled()


def test_watermark_preview_follows_page_navigation(app, sample_file):
    tab = PDF_gui.WatermarkTab(FitzPageRenderer())
    tab.input_path, tab.data = str(sample_file), sample_file.read_bytes()
    tab.file_loaded()
    assert tab.lbl_page.text() == "Page 1 of 5"

    tab.txt_watermark.setText("Page {page} of {total}")
    tab.change_page(1)
    assert tab.lbl_page.text() == "Page 2 of 5"
    assert not tab.preview_area.pixmap().isNull()
