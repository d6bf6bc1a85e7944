"""Document model for the source PDF and its open handle."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

import fitz

from signflow.geometry.shapes import Size


@dataclass(slots=True)
class PdfDocument:
    document_id: str
    path: Path
    working_path: Path
    handle: fitz.Document

    @property
    def page_count(self) -> int:
        return self.handle.page_count

    def has_page(self, page_number: int) -> bool:
        return 1 <= page_number <= self.page_count

    def page_size(self, page_number: int) -> Size:
        """Size of a 1-indexed page at scale 1.0, in PDF points."""
        page = self.handle.load_page(page_number - 1)
        return Size(float(page.rect.width), float(page.rect.height))

    def read_bytes(self) -> bytes:
        return self.working_path.read_bytes()

    def close(self) -> None:
        if not self.handle.is_closed:
            self.handle.close()
        if self.working_path != self.path and self.working_path.exists():
            try:
                os.remove(self.working_path)
            except OSError:
                pass
