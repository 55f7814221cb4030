import sys
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import QSize, Qt
from PyQt6.QtGui import QColor, QFont, QFontMetrics, QIcon, QImage, QPainter, QPixmap
from PyQt6.QtWidgets import (
    QAbstractItemView, QApplication, QButtonGroup, QComboBox, QDoubleSpinBox, QFileDialog,
    QGroupBox, QHBoxLayout, QLabel, QLineEdit, QListWidget, QListWidgetItem, QMainWindow,
    QPushButton, QRadioButton, QSpinBox, QTabWidget, QVBoxLayout, QWidget,
)

from .FontLoader import default_font_loader
from .logging_config import configure_logging, get_logger
from .Packaging import ExportResult, read_source, save_result
from .PageRenderer import FitzPageRenderer, dpi_to_scale
from .PageSelection import make_selection
from .PDFProcessor import CropMargins, PDFProcessor, merge_pdfs
from .Settings import MAX_DPI, MIN_DPI, get_settings
from .WatermarkConfig import FontLoadError, InvalidInputError, PDFToolError, WatermarkConfig, WatermarkType
from .WatermarkGeometry import expand_placeholders, place, visual_center

LOGGER = get_logger(__name__)

GENERIC_FAILURE = "Error processing the PDF. Please check your input."
THUMBNAIL_SCALE = 0.25
PREVIEW_DPI = 100

BUTTON_STYLE = """
    QPushButton {
        background-color: #0078D7;
        color: white;
        font-weight: bold;
        height: 40px;
        border-radius: 5px;
    }
    QPushButton:hover { background-color: #0063B1; }
    QPushButton:disabled { background-color: #9BBEDB; }
"""


def pixmap_from_png(png: bytes) -> QPixmap:
    return QPixmap.fromImage(QImage.fromData(png, "PNG"))

# ===========================
# Base Tool Panel
# ===========================

class ToolTab(QWidget):
    """A panel with a source file picker, tool controls and an action button."""

    action_label = "Process"

    def __init__(self, renderer: FitzPageRenderer):
        super().__init__()
        self.renderer = renderer
        self.input_path = ""
        self.data = b""

        self.layout_main = QVBoxLayout()
        self.btn_browse = QPushButton("Select Source PDF")
        self.btn_browse.clicked.connect(self.open_file)
        self.lbl_file = QLabel("No file selected")
        self.lbl_file.setWordWrap(True)
        self.lbl_file.setStyleSheet("color: #666; font-style: italic;")
        self.txt_password = QLineEdit()
        self.txt_password.setPlaceholderText("PDF Password (if encrypted)")
        self.txt_password.setEchoMode(QLineEdit.EchoMode.Password)

        self.btn_process = QPushButton(self.action_label)
        self.btn_process.setStyleSheet(BUTTON_STYLE)
        self.btn_process.clicked.connect(self.run_tool)
        self.lbl_status = QLabel("")
        self.lbl_status.setWordWrap(True)

        self.layout_main.addWidget(self.btn_browse)
        self.layout_main.addWidget(self.lbl_file)
        self.layout_main.addWidget(self.txt_password)
        self.build_controls(self.layout_main)
        self.layout_main.addStretch()
        self.layout_main.addWidget(self.btn_process)
        self.layout_main.addWidget(self.lbl_status)
        self.setLayout(self.layout_main)

    # --- hooks for subclasses ---
    def build_controls(self, layout: QVBoxLayout):
        pass

    def file_loaded(self):
        pass

    def process(self) -> ExportResult:
        raise NotImplementedError

    # --- shared behaviour ---
    @property
    def password(self) -> Optional[str]:
        return self.txt_password.text().strip() or None

    def processor(self) -> PDFProcessor:
        return PDFProcessor(self.data, Path(self.input_path).name, self.password)

    def open_file(self):
        file_path, _ = QFileDialog.getOpenFileName(self, "Open PDF", "", "PDF Files (*.pdf)")
        if not file_path:
            return
        try:
            self.data = read_source(file_path)
        except PDFToolError as e:
            self.set_status(str(e), error=True)
            return
        self.input_path = file_path
        self.lbl_file.setText(f"Selected: {Path(file_path).name}")
        self.set_status("")
        try:
            self.file_loaded()
        except PDFToolError as e:
            self.set_status(f"Error loading PDF info: {e}", error=True)

    def set_status(self, text: str, error: bool = False):
        self.lbl_status.setText(text)
        self.lbl_status.setStyleSheet("color: #C62828;" if error else "color: #2E7D32;")

    def run_tool(self):
        if not self.data and not isinstance(self, MergeTab):
            self.set_status("Error: No PDF selected!", error=True)
            return

        # One operation at a time per panel
        self.btn_process.setEnabled(False)
        self.set_status("Processing...")
        QApplication.processEvents()
        try:
            result = self.process()
            self.save_output(result)
        except FontLoadError as e:
            self.set_status(str(e), error=True)
        except InvalidInputError as e:
            self.set_status(str(e), error=True)
        except PDFToolError as e:
            LOGGER.error("%s failed: %s", type(self).__name__, e)
            self.set_status(GENERIC_FAILURE, error=True)
        finally:
            self.btn_process.setEnabled(True)

    def save_output(self, result: ExportResult):
        ext = Path(result.filename).suffix.lstrip(".")
        start = str(Path(self.input_path).parent / result.filename) if self.input_path else result.filename
        output_path, _ = QFileDialog.getSaveFileName(self, "Save Output", start, f"{ext.upper()} Files (*.{ext})")
        if not output_path:
            self.set_status("Cancelled.")
            return
        save_result(result, output_path)
        self.set_status(f"Done! Saved {Path(output_path).name}")

# ===========================
# Split Panel
# ===========================

class SplitTab(ToolTab):
    action_label = "Split / Save PDF"

    def build_controls(self, layout):
        group = QGroupBox("Mode")
        box = QVBoxLayout()
        self.combo_mode = QComboBox()
        self.combo_mode.addItems(["each", "ranges", "selected", "extract", "delete"])
        self.combo_mode.currentTextChanged.connect(self.toggle_mode)
        self.txt_ranges = QLineEdit()
        self.txt_ranges.setPlaceholderText("Page ranges, e.g. '1-3, 5'")
        self.txt_ranges.setVisible(False)
        box.addWidget(self.combo_mode)
        box.addWidget(self.txt_ranges)
        group.setLayout(box)

        self.list_pages = QListWidget()
        self.list_pages.setViewMode(QListWidget.ViewMode.IconMode)
        self.list_pages.setIconSize(QSize(110, 150))
        self.list_pages.setSelectionMode(QAbstractItemView.SelectionMode.MultiSelection)
        self.list_pages.setMinimumHeight(260)

        self.btn_remove = QPushButton("Remove Selected Pages From View")
        self.btn_remove.clicked.connect(self.remove_selected)

        layout.addWidget(group)
        layout.addWidget(self.list_pages, 1)
        layout.addWidget(self.btn_remove)

    def toggle_mode(self, mode: str):
        self.txt_ranges.setVisible(mode == "ranges")

    def file_loaded(self):
        self.list_pages.clear()
        for index, page in enumerate(self.renderer.render_all(self.data, THUMBNAIL_SCALE)):
            item = QListWidgetItem(QIcon(pixmap_from_png(page.png)), str(index + 1))
            item.setData(Qt.ItemDataRole.UserRole, index)
            self.list_pages.addItem(item)

    def remove_selected(self):
        for item in self.list_pages.selectedItems():
            self.list_pages.takeItem(self.list_pages.row(item))
        self.set_status("Pages removed from the view. Choose 'delete' or 'extract' to save.")

    def current_view(self) -> List[int]:
        return [self.list_pages.item(row).data(Qt.ItemDataRole.UserRole)
                for row in range(self.list_pages.count())]

    def process(self) -> ExportResult:
        positions = sorted(self.list_pages.row(item) for item in self.list_pages.selectedItems())
        selection = make_selection(self.combo_mode.currentText(),
                                   ranges=self.txt_ranges.text(), positions=positions)
        return self.processor().split(selection, self.current_view())

# ===========================
# Merge Panel
# ===========================

class MergeTab(ToolTab):
    action_label = "Merge PDFs"

    def build_controls(self, layout):
        self.btn_browse.setText("Add PDFs")
        self.txt_password.setVisible(False)
        self.list_files = QListWidget()
        self.list_files.setDragDropMode(QAbstractItemView.DragDropMode.InternalMove)
        self.btn_clear = QPushButton("Clear List")
        self.btn_clear.clicked.connect(self.list_files.clear)
        layout.addWidget(QLabel("Drag to reorder:"))
        layout.addWidget(self.list_files, 1)
        layout.addWidget(self.btn_clear)

    def open_file(self):
        paths, _ = QFileDialog.getOpenFileNames(self, "Add PDFs", "", "PDF Files (*.pdf)")
        for path in paths:
            self.list_files.addItem(path)
        self.lbl_file.setText(f"{self.list_files.count()} file(s) queued")

    def process(self) -> ExportResult:
        paths = [self.list_files.item(row).text() for row in range(self.list_files.count())]
        sources = [(Path(p).name, read_source(p)) for p in paths]
        return merge_pdfs(sources)

# ===========================
# Rotate & Crop Panels
# ===========================

class RotateTab(ToolTab):
    action_label = "Rotate PDF"

    def build_controls(self, layout):
        layout.addWidget(QLabel("Clockwise rotation:"))
        self.combo_angle = QComboBox()
        self.combo_angle.addItems(["90", "180", "270"])
        layout.addWidget(self.combo_angle)

    def process(self) -> ExportResult:
        return self.processor().rotate(int(self.combo_angle.currentText()))


class CropTab(ToolTab):
    action_label = "Crop PDF"

    def build_controls(self, layout):
        self.spins = {}
        for edge in ("top", "bottom", "left", "right"):
            layout.addWidget(QLabel(f"{edge.title()} margin (pt):"))
            spin = QDoubleSpinBox()
            spin.setRange(0, 5000)
            layout.addWidget(spin)
            self.spins[edge] = spin
        self.lbl_size = QLabel("")
        layout.addWidget(self.lbl_size)

    def file_loaded(self):
        info = self.processor().info()
        if info.width is not None:
            self.lbl_size.setText(f"Page size: {info.width:.0f} x {info.height:.0f} pt")

    def process(self) -> ExportResult:
        margins = CropMargins(**{edge: spin.value() for edge, spin in self.spins.items()})
        return self.processor().crop(margins)

# ===========================
# Watermark Panel
# ===========================

class WatermarkTab(ToolTab):
    action_label = "Apply Watermark & Save"

    def __init__(self, renderer: FitzPageRenderer):
        self.watermark_path: Optional[str] = None
        self.page_index = 0
        self.page_count = 0
        super().__init__(renderer)

    def build_controls(self, layout):
        content_group = QGroupBox("Watermark Content")
        content_layout = QVBoxLayout()
        type_layout = QHBoxLayout()
        self.radio_text = QRadioButton("Text")
        self.radio_image = QRadioButton("Image")
        self.radio_pdf = QRadioButton("PDF")
        self.radio_text.setChecked(True)
        self.type_group = QButtonGroup(self)
        for radio in (self.radio_text, self.radio_image, self.radio_pdf):
            self.type_group.addButton(radio)
            radio.toggled.connect(self.toggle_content_mode)
            type_layout.addWidget(radio)

        self.txt_watermark = QLineEdit("CONFIDENTIAL")
        self.txt_watermark.setPlaceholderText("Text, supports {page}, {total}, {page:03}")
        self.txt_watermark.textChanged.connect(self.update_preview)
        self.btn_wm_browse = QPushButton("Select Watermark File")
        self.btn_wm_browse.clicked.connect(self.select_watermark_file)
        self.btn_wm_browse.setVisible(False)

        content_layout.addLayout(type_layout)
        content_layout.addWidget(self.txt_watermark)
        content_layout.addWidget(self.btn_wm_browse)
        content_group.setLayout(content_layout)

        settings_group = QGroupBox("Appearance")
        settings_layout = QVBoxLayout()
        self.spin_x = self._spin(settings_layout, "Horizontal center (0-1):", 0, 1, 0.5, 0.05)
        self.spin_y = self._spin(settings_layout, "Vertical center from top (0-1):", 0, 1, 0.5, 0.05)
        self.spin_rotate = self._spin(settings_layout, "Rotation (Degrees):", 0, 360, 45, 5)
        self.spin_opacity = self._spin(settings_layout, "Opacity (0.1 - 1.0):", 0.1, 1.0, 0.5, 0.1)
        self.spin_size = self._spin(settings_layout, "Font size:", 6, 300, 50, 2)
        settings_layout.addWidget(QLabel("Color (#RRGGBB):"))
        self.txt_color = QLineEdit("#FF0000")
        self.txt_color.textChanged.connect(self.update_preview)
        settings_layout.addWidget(self.txt_color)
        settings_group.setLayout(settings_layout)

        nav = QHBoxLayout()
        self.btn_prev = QPushButton("<")
        self.btn_next = QPushButton(">")
        self.btn_prev.clicked.connect(lambda: self.change_page(-1))
        self.btn_next.clicked.connect(lambda: self.change_page(1))
        self.lbl_page = QLabel("")
        nav.addWidget(self.btn_prev)
        nav.addWidget(self.lbl_page, 1, Qt.AlignmentFlag.AlignCenter)
        nav.addWidget(self.btn_next)

        self.preview_area = QLabel("Select a PDF to see preview")
        self.preview_area.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.preview_area.setMinimumSize(360, 360)
        self.preview_area.setStyleSheet("border: 2px dashed #ccc; background-color: #f0f0f0; color: #888;")

        layout.addWidget(content_group)
        layout.addWidget(settings_group)
        layout.addLayout(nav)
        layout.addWidget(self.preview_area, 1)

    def _spin(self, layout, label, low, high, value, step) -> QDoubleSpinBox:
        layout.addWidget(QLabel(label))
        spin = QDoubleSpinBox()
        spin.setRange(low, high)
        spin.setSingleStep(step)
        spin.setValue(value)
        spin.valueChanged.connect(self.update_preview)
        layout.addWidget(spin)
        return spin

    def toggle_content_mode(self):
        is_text = self.radio_text.isChecked()
        self.txt_watermark.setVisible(is_text)
        self.btn_wm_browse.setVisible(not is_text)
        self.spin_rotate.setValue(45 if is_text else 0)
        self.update_preview()

    def select_watermark_file(self):
        pattern = "PDF Files (*.pdf)" if self.radio_pdf.isChecked() else "Images (*.png *.jpg *.jpeg)"
        file_path, _ = QFileDialog.getOpenFileName(self, "Select Watermark", "", pattern)
        if file_path:
            self.watermark_path = file_path
            self.btn_wm_browse.setText(f"Selected: {Path(file_path).name}")

    def file_loaded(self):
        self.page_index = 0
        self.page_count = self.renderer.page_count(self.data)
        self.update_preview()

    def change_page(self, step: int):
        if 0 <= self.page_index + step < self.page_count:
            self.page_index += step
            self.update_preview()

    def update_preview(self):
        """Renders the current page and overlays the text where it will be stamped."""
        if not self.data:
            return
        try:
            page = self.renderer.render_page(self.data, self.page_index, dpi_to_scale(PREVIEW_DPI))
        except PDFToolError as e:
            self.preview_area.setText(f"Error loading preview: {e}")
            return

        canvas_pixmap = pixmap_from_png(page.png)
        self.lbl_page.setText(f"Page {self.page_index + 1} of {self.page_count}")

        if self.radio_text.isChecked() and self.txt_watermark.text():
            scale = dpi_to_scale(PREVIEW_DPI)
            text = expand_placeholders(self.txt_watermark.text(), self.page_index + 1, self.page_count)
            rotation = self.spin_rotate.value()
            font = QFont("Helvetica")
            font.setPixelSize(max(1, int(self.spin_size.value() * scale)))
            metrics = QFontMetrics(font)

            # Placement runs in PDF points, bottom-left origin, like the stamped output
            page_w, page_h = page.width / scale, page.height / scale
            text_w = metrics.horizontalAdvance(text) / scale
            text_h = (metrics.ascent() + metrics.descent()) / scale
            ox, oy = place(page_w, page_h, self.spin_x.value(), self.spin_y.value(), rotation, text_w, text_h)
            cx, cy = visual_center(ox, oy, rotation, text_w, text_h)

            painter = QPainter(canvas_pixmap)
            painter.setRenderHint(QPainter.RenderHint.Antialiasing)
            color = QColor(self.txt_color.text())
            color.setAlphaF(self.spin_opacity.value())
            painter.setPen(color)
            painter.setFont(font)

            # Pixmap coordinates grow downwards
            painter.save()
            painter.translate(ox * scale, (page_h - oy) * scale)
            # QPainter rotates clockwise, PDF counter-clockwise
            painter.rotate(-rotation)
            painter.drawText(0, 0, text)
            painter.restore()

            # Anchor marker
            mx, my = int(cx * scale), int((page_h - cy) * scale)
            painter.setPen(QColor("#0078D7"))
            painter.drawLine(mx - 6, my, mx + 6, my)
            painter.drawLine(mx, my - 6, mx, my + 6)
            painter.end()

        self.preview_area.setPixmap(canvas_pixmap.scaled(
            self.preview_area.width(),
            self.preview_area.height(),
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        ))

    def process(self) -> ExportResult:
        if self.radio_text.isChecked():
            w_type, text = WatermarkType.TEXT, self.txt_watermark.text()
        else:
            if not self.watermark_path:
                raise InvalidInputError("Error: Select a watermark file!")
            w_type = WatermarkType.PDF if self.radio_pdf.isChecked() else WatermarkType.IMAGE
            text = None

        config = WatermarkConfig(
            watermark_type=w_type,
            text=text,
            image_path=self.watermark_path if w_type == WatermarkType.IMAGE else None,
            stamp_path=self.watermark_path if w_type == WatermarkType.PDF else None,
            anchor_x=self.spin_x.value(),
            anchor_y=self.spin_y.value(),
            rotation=self.spin_rotate.value(),
            opacity=self.spin_opacity.value(),
            font_size=self.spin_size.value(),
            font_color=self.txt_color.text(),
        )
        return self.processor().watermark(config, default_font_loader())

# ===========================
# PDF to Images Panel
# ===========================

class ImagesTab(ToolTab):
    action_label = "Convert to Images"

    def build_controls(self, layout):
        layout.addWidget(QLabel(f"Resolution (DPI, {MIN_DPI}-{MAX_DPI}):"))
        self.spin_dpi = QSpinBox()
        self.spin_dpi.setRange(MIN_DPI, MAX_DPI)
        self.spin_dpi.setValue(get_settings().default_dpi)
        layout.addWidget(self.spin_dpi)
        self.preview_area = QLabel("")
        self.preview_area.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.preview_area, 1)

    def file_loaded(self):
        page = self.renderer.render_page(self.data, 0, THUMBNAIL_SCALE * 2)
        self.preview_area.setPixmap(pixmap_from_png(page.png))

    def process(self) -> ExportResult:
        return self.processor().to_images(self.spin_dpi.value(), self.renderer)

# ===========================
# Main Window
# ===========================

class SuiteGUI(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("PDF Suite")
        self.setMinimumSize(900, 750)

        renderer = FitzPageRenderer()
        tabs = QTabWidget()
        tabs.addTab(SplitTab(renderer), "Split")
        tabs.addTab(MergeTab(renderer), "Merge")
        tabs.addTab(RotateTab(renderer), "Rotate")
        tabs.addTab(CropTab(renderer), "Crop")
        tabs.addTab(WatermarkTab(renderer), "Watermark")
        tabs.addTab(ImagesTab(renderer), "To Images")
        self.setCentralWidget(tabs)


def main():
    configure_logging(get_settings().log_level)
    app = QApplication(sys.argv)
    window = SuiteGUI()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
