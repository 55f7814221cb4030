import io
import zipfile
from typing import Dict, List, Sequence, Tuple

import pytest
from pypdf import PdfReader
from reportlab.pdfgen import canvas


def build_pdf(page_count: int = 5, size: Tuple[float, float] = (600, 800), label: str = "Source page") -> bytes:
    """A PDF whose pages read '<label> N' (1-based)."""
    packet = io.BytesIO()
    c = canvas.Canvas(packet, pagesize=size)
    for number in range(1, page_count + 1):
        c.setFont("Helvetica", 24)
        c.drawString(72, size[1] - 100, f"{label} {number}")
        c.showPage()
    c.save()
    return packet.getvalue()


def page_texts(data: bytes) -> List[str]:
    return [page.extract_text() for page in PdfReader(io.BytesIO(data)).pages]


def page_labels(data: bytes) -> List[str]:
    """The 'Source page N' line of every page."""
    labels = []
    for text in page_texts(data):
        line = next(line for line in text.splitlines() if line.startswith("Source page"))
        labels.append(line.strip())
    return labels


def zip_contents(data: bytes) -> Dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


@pytest.fixture
def sample_pdf() -> bytes:
    return build_pdf(5)


@pytest.fixture
def sample_file(tmp_path, sample_pdf):
    path = tmp_path / "report.pdf"
    path.write_bytes(sample_pdf)
    return path


@pytest.fixture
def view5() -> Sequence[int]:
    # A reordered view so that positions and physical indices differ
    return [4, 2, 0, 1, 3]
