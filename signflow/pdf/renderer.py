"""PDF rendering helpers using PyMuPDF."""

from __future__ import annotations

import fitz
from PySide6.QtGui import QImage


class PdfRenderError(RuntimeError):
    """Raised when a page cannot be rendered."""


def render_page_image(document: fitz.Document, page_number: int, scale: float = 1.0) -> QImage:
    if page_number < 1 or page_number > document.page_count:
        raise PdfRenderError(f"Page out of range: {page_number}")

    try:
        page = document.load_page(page_number - 1)
        matrix = fitz.Matrix(scale, scale)
        pix = page.get_pixmap(matrix=matrix, alpha=False, annots=False)
    except Exception as exc:  # pragma: no cover - PyMuPDF raises several error types
        raise PdfRenderError(f"Failed to render page {page_number}") from exc

    image = QImage(pix.samples, pix.width, pix.height, pix.stride, QImage.Format_RGB888)
    return image.copy()
