"""Burn completed field values into the output PDF using reportlab overlays + pypdf."""

from __future__ import annotations

import base64
import binascii
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas
import structlog

from signflow.geometry.shapes import Rect, Size
from signflow.geometry.transform import percent_to_page_rect
from signflow.model.field import FieldType, FormField
from signflow.service.field_service import FieldService
from signflow.settings import FlattenSettings

logger = structlog.get_logger(__name__)

CHECKED_VALUES = {"1", "true", "yes", "on", "x", "checked"}
_CHECK_GLYPH = "4"  # check mark in ZapfDingbats
_MIN_FONT_SIZE = 4.0
_TEXT_PADDING = 2.0


class FlattenError(RuntimeError):
    """Raised when the output PDF cannot be produced."""


@dataclass(frozen=True, slots=True)
class BurnIn:
    field: FormField
    page_index: int
    rect: Rect


@dataclass(slots=True)
class FlattenReport:
    stamped: list[str] = field(default_factory=list)
    skipped_incomplete: list[str] = field(default_factory=list)
    skipped_out_of_range: list[str] = field(default_factory=list)
    skipped_unreadable: list[str] = field(default_factory=list)

    @property
    def has_skips(self) -> bool:
        return bool(self.skipped_out_of_range or self.skipped_unreadable)


@dataclass(slots=True)
class FlattenResult:
    pdf_bytes: bytes
    report: FlattenReport


def burn_in_rect(position: Rect, page: Size) -> Rect:
    return percent_to_page_rect(page, position)


def plan_burn_in(
    fields: Iterable[FormField],
    page_sizes: Sequence[Size],
) -> tuple[dict[int, list[BurnIn]], FlattenReport]:
    grouped: dict[int, list[BurnIn]] = defaultdict(list)
    report = FlattenReport()

    for form_field in fields:
        if not form_field.is_complete:
            report.skipped_incomplete.append(form_field.handle)
            continue
        page_index = form_field.page_number - 1
        if page_index < 0 or page_index >= len(page_sizes):
            logger.warning(
                "flatten.page_out_of_range",
                handle=form_field.handle,
                page=form_field.page_number,
                page_count=len(page_sizes),
            )
            report.skipped_out_of_range.append(form_field.handle)
            continue
        rect = burn_in_rect(form_field.position, page_sizes[page_index])
        grouped[page_index].append(BurnIn(form_field, page_index, rect))

    return grouped, report


def flatten_pdf(
    source: bytes | str | Path,
    fields: Iterable[FormField],
    settings: FlattenSettings | None = None,
) -> FlattenResult:
    settings = settings or FlattenSettings()
    data = source if isinstance(source, bytes) else Path(source).read_bytes()

    try:
        reader = PdfReader(BytesIO(data))
        page_sizes = [
            Size(float(page.mediabox.width), float(page.mediabox.height)) for page in reader.pages
        ]
        grouped, report = plan_burn_in(fields, page_sizes)

        writer = PdfWriter()
        for page_index, page in enumerate(reader.pages):
            items = grouped.get(page_index)
            if items:
                overlay_bytes = _build_overlay(page, items, settings, report)
                page.merge_page(PdfReader(BytesIO(overlay_bytes)).pages[0])
            writer.add_page(page)

        output = BytesIO()
        writer.write(output)
    except Exception as exc:
        raise FlattenError("Failed to flatten PDF") from exc

    logger.info(
        "flatten.completed",
        stamped=len(report.stamped),
        incomplete=len(report.skipped_incomplete),
        out_of_range=len(report.skipped_out_of_range),
        unreadable=len(report.skipped_unreadable),
    )
    return FlattenResult(pdf_bytes=output.getvalue(), report=report)


async def finalize_document(
    service: FieldService,
    document_id: str,
    source: bytes | str | Path,
    settings: FlattenSettings | None = None,
) -> FlattenResult:
    fields = await service.list_fields(document_id)
    return flatten_pdf(source, fields, settings)


def _build_overlay(page, items: list[BurnIn], settings: FlattenSettings, report: FlattenReport) -> bytes:
    box = page.mediabox
    left = float(box.left)
    bottom = float(box.bottom)
    buffer = BytesIO()
    overlay = canvas.Canvas(buffer, pagesize=(float(box.right), float(box.top)))

    for item in items:
        rect = item.rect.translated(left, bottom)
        if _stamp(overlay, item.field, rect, settings):
            report.stamped.append(item.field.handle)
        else:
            report.skipped_unreadable.append(item.field.handle)

    overlay.showPage()
    overlay.save()
    return buffer.getvalue()


def _stamp(overlay: canvas.Canvas, form_field: FormField, rect: Rect, settings: FlattenSettings) -> bool:
    value = form_field.value or ""
    if form_field.field_type.needs_signature:
        if value.startswith("data:image"):
            return _draw_image(overlay, form_field, value, rect)
        _draw_text(overlay, value, rect, settings.signature_font, settings.max_font_size)
        return True
    if form_field.field_type is FieldType.CHECKBOX:
        if value.strip().lower() in CHECKED_VALUES:
            size = min(rect.width, rect.height) * 0.8
            overlay.setFont("ZapfDingbats", size)
            overlay.drawCentredString(
                rect.x + rect.width / 2.0,
                rect.y + (rect.height - size * 0.7) / 2.0,
                _CHECK_GLYPH,
            )
        return True
    _draw_text(overlay, value, rect, settings.text_font, settings.max_font_size)
    return True


def _draw_text(overlay: canvas.Canvas, text: str, rect: Rect, font: str, max_size: float) -> None:
    size = max(_MIN_FONT_SIZE, min(max_size, rect.height * 0.6))
    available = rect.width - 2 * _TEXT_PADDING
    width = stringWidth(text, font, size)
    if width > available > 0:
        size = max(_MIN_FONT_SIZE, size * available / width)
    overlay.setFillColorRGB(0, 0, 0)
    overlay.setFont(font, size)
    overlay.drawString(rect.x + _TEXT_PADDING, rect.y + (rect.height - size * 0.7) / 2.0, text)


def _draw_image(overlay: canvas.Canvas, form_field: FormField, data_url: str, rect: Rect) -> bool:
    try:
        encoded = data_url.split(",", 1)[1]
        image = Image.open(BytesIO(base64.b64decode(encoded))).convert("RGBA")
    except (IndexError, binascii.Error, UnidentifiedImageError, OSError) as exc:
        logger.warning("flatten.image_unreadable", handle=form_field.handle, error=str(exc))
        return False

    overlay.drawImage(
        ImageReader(image),
        rect.x,
        rect.y,
        width=rect.width,
        height=rect.height,
        mask="auto",
        preserveAspectRatio=True,
        anchor="sw",
    )
    return True
