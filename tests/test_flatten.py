"""Tests for burning completed fields into the output PDF."""

from __future__ import annotations

import base64
from io import BytesIO

from PIL import Image
import pytest
from pypdf import PdfReader

from signflow.geometry.shapes import Rect, Size
from signflow.model.field import CommittedId, FieldType, FormField
from signflow.pdf.flatten import FlattenError, burn_in_rect, finalize_document, flatten_pdf, plan_burn_in
from signflow.service.field_service import InMemoryFieldService

DOCUMENT_ID = "doc-1"


def _field(
    server_id: int,
    field_type: FieldType = FieldType.TEXT,
    page: int = 1,
    value: str | None = "Hello World",
    completed: bool = True,
    position: Rect = Rect(10, 10, 40, 5),
) -> FormField:
    return FormField(
        handle=f"db-{server_id}",
        identity=CommittedId(server_id),
        field_type=field_type,
        page_number=page,
        assigned_signer_id="S1",
        position=position,
        value=value,
        completed=completed,
    )


def _png_data_url() -> str:
    buffer = BytesIO()
    Image.new("RGBA", (120, 40), (20, 20, 120, 255)).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def _page_text(pdf_bytes: bytes, index: int) -> str:
    return PdfReader(BytesIO(pdf_bytes)).pages[index].extract_text()


class TestBurnInGeometry:
    def test_date_field_example(self) -> None:
        rect = burn_in_rect(Rect(10, 10, 15, 5), Size(600, 800))
        assert rect.x == pytest.approx(60)
        assert rect.y == pytest.approx(680)
        assert rect.width == pytest.approx(90)
        assert rect.height == pytest.approx(40)

    def test_plan_groups_by_zero_based_page(self) -> None:
        fields = [_field(1, page=1), _field(2, page=2), _field(3, page=2)]

        grouped, report = plan_burn_in(fields, [Size(600, 800), Size(800, 600)])

        assert sorted(grouped) == [0, 1]
        assert [item.field.handle for item in grouped[1]] == ["db-2", "db-3"]
        assert grouped[1][0].rect.x == pytest.approx(80)
        assert report.skipped_out_of_range == []

    def test_plan_skips_incomplete_and_out_of_range(self) -> None:
        fields = [
            _field(1, completed=False),
            _field(2, value=None),
            _field(3, value=""),
            _field(4, page=5),
            _field(5, page=0),
            _field(6),
        ]

        grouped, report = plan_burn_in(fields, [Size(600, 800)])

        assert report.skipped_incomplete == ["db-1", "db-2", "db-3"]
        assert report.skipped_out_of_range == ["db-4", "db-5"]
        assert [item.field.handle for item in grouped[0]] == ["db-6"]


class TestFlattenPdf:
    def test_text_is_stamped_on_its_page_only(self, pdf_factory) -> None:
        source = pdf_factory((612, 792), (612, 792))

        result = flatten_pdf(source, [_field(1, value="Hello World")])

        assert result.report.stamped == ["db-1"]
        assert len(PdfReader(BytesIO(result.pdf_bytes)).pages) == 2
        assert "Hello World" in _page_text(result.pdf_bytes, 0)
        assert "Hello World" not in _page_text(result.pdf_bytes, 1)

    def test_each_field_type_is_stamped(self, pdf_factory) -> None:
        source = pdf_factory((600, 800))
        fields = [
            _field(1, FieldType.DATE, value="2024-05-01", position=Rect(10, 10, 15, 5)),
            _field(2, FieldType.SIGNATURE, value="Jane Signer", position=Rect(10, 30, 40, 8)),
            _field(3, FieldType.INITIALS, value=_png_data_url(), position=Rect(60, 30, 20, 8)),
            _field(4, FieldType.CHECKBOX, value="true", position=Rect(10, 50, 5, 4)),
        ]

        result = flatten_pdf(source, fields)

        assert result.report.stamped == ["db-1", "db-2", "db-3", "db-4"]
        text = _page_text(result.pdf_bytes, 0)
        assert "2024-05-01" in text
        assert "Jane Signer" in text

    def test_out_of_range_field_is_reported_not_raised(self, pdf_factory) -> None:
        source = pdf_factory((600, 800))

        result = flatten_pdf(source, [_field(1, page=2), _field(2, value="kept")])

        assert result.report.skipped_out_of_range == ["db-1"]
        assert result.report.stamped == ["db-2"]
        assert result.report.has_skips
        assert "kept" in _page_text(result.pdf_bytes, 0)

    def test_unreadable_signature_image_is_reported(self, pdf_factory) -> None:
        source = pdf_factory((600, 800))
        broken = _field(1, FieldType.SIGNATURE, value="data:image/png;base64,bm90IGFuIGltYWdl")

        result = flatten_pdf(source, [broken])

        assert result.report.skipped_unreadable == ["db-1"]
        assert result.report.stamped == []

    def test_no_completed_fields_leaves_pages_unchanged(self, pdf_factory) -> None:
        source = pdf_factory((600, 800))

        result = flatten_pdf(source, [_field(1, completed=False)])

        assert result.report.stamped == []
        assert _page_text(result.pdf_bytes, 0) == _page_text(source, 0)

    def test_source_can_be_a_path(self, pdf_factory, tmp_path) -> None:
        path = tmp_path / "source.pdf"
        path.write_bytes(pdf_factory((600, 800)))

        result = flatten_pdf(path, [_field(1, value="from disk")])

        assert "from disk" in _page_text(result.pdf_bytes, 0)

    def test_invalid_source_raises_flatten_error(self) -> None:
        with pytest.raises(FlattenError):
            flatten_pdf(b"not a pdf", [_field(1)])


class TestFinalizeDocument:
    @pytest.mark.asyncio
    async def test_fetches_all_fields_and_flattens(self, pdf_factory, payload) -> None:
        service = InMemoryFieldService()
        service.seed(DOCUMENT_ID, payload(page_number=1, value="Signed Copy", completed=True))
        service.seed(DOCUMENT_ID, payload(page_number=2))

        result = await finalize_document(service, DOCUMENT_ID, pdf_factory((600, 800), (600, 800)))

        assert result.report.stamped == ["db-1"]
        assert result.report.skipped_incomplete == ["db-2"]
        assert "Signed Copy" in _page_text(result.pdf_bytes, 0)
        assert service.calls["list_fields"] == 1
