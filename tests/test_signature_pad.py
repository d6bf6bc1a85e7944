"""Tests for signature capture, run on the offscreen platform."""

from __future__ import annotations

import base64
from io import BytesIO
import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
QtWidgets = pytest.importorskip("PySide6.QtWidgets")

from PIL import Image  # noqa: E402
from PySide6.QtCore import QPoint, Qt  # noqa: E402
from PySide6.QtTest import QTest  # noqa: E402
from PySide6.QtWidgets import QDialogButtonBox  # noqa: E402

from signflow.geometry.shapes import Rect  # noqa: E402
from signflow.model.field import CommittedId, FieldType, FormField  # noqa: E402
from signflow.pdf.flatten import flatten_pdf  # noqa: E402
from signflow.ui.signature_pad import PNG_DATA_URL_PREFIX, SignatureDialog, SignaturePad  # noqa: E402

NO_MODIFIER = Qt.KeyboardModifier.NoModifier
LEFT = Qt.MouseButton.LeftButton


@pytest.fixture(scope="module")
def qapp():
    return QtWidgets.QApplication.instance() or QtWidgets.QApplication([])


@pytest.fixture
def pad(qapp):
    widget = SignaturePad()
    widget.resize(400, 150)
    widget.show()
    yield widget
    widget.close()


def _stroke(widget, points: list[tuple[int, int]]) -> None:
    first, *rest = points
    QTest.mousePress(widget, LEFT, NO_MODIFIER, QPoint(*first))
    for point in rest:
        QTest.mouseMove(widget, QPoint(*point))
    QTest.mouseRelease(widget, LEFT, NO_MODIFIER, QPoint(*rest[-1]))


def _decode(data_url: str) -> Image.Image:
    return Image.open(BytesIO(base64.b64decode(data_url[len(PNG_DATA_URL_PREFIX):])))


class TestSignaturePad:
    def test_starts_empty(self, pad: SignaturePad) -> None:
        assert pad.is_empty

    def test_stroke_exports_png_data_url(self, pad: SignaturePad) -> None:
        _stroke(pad, [(40, 100), (120, 60), (200, 110), (300, 70)])

        data_url = pad.to_data_url()

        assert not pad.is_empty
        assert data_url.startswith(PNG_DATA_URL_PREFIX)
        image = _decode(data_url)
        assert image.format == "PNG"
        assert image.size == (400, 150)
        assert image.convert("RGBA").getbbox() is not None

    def test_clear_discards_strokes(self, pad: SignaturePad) -> None:
        changes = []
        pad.changed.connect(lambda: changes.append(True))
        _stroke(pad, [(40, 100), (120, 60)])

        pad.clear()

        assert pad.is_empty
        assert len(changes) == 2
        assert _decode(pad.to_data_url()).convert("RGBA").getbbox() is None

    def test_drawn_signature_is_stamped_as_image(self, pad: SignaturePad, pdf_factory) -> None:
        _stroke(pad, [(40, 100), (120, 60), (200, 110)])
        field = FormField(
            handle="db-1",
            identity=CommittedId(1),
            field_type=FieldType.SIGNATURE,
            page_number=1,
            assigned_signer_id="S1",
            position=Rect(10, 10, 40, 10),
            value=pad.to_data_url(),
            completed=True,
        )

        result = flatten_pdf(pdf_factory((600, 800)), [field])

        assert result.report.stamped == ["db-1"]
        assert result.report.skipped_unreadable == []


class TestSignatureDialog:
    def test_ok_requires_a_signature(self, qapp) -> None:
        dialog = SignatureDialog()
        ok = dialog.buttons.button(QDialogButtonBox.StandardButton.Ok)

        assert not ok.isEnabled()
        dialog.typed_edit.setText("Jane Signer")
        assert ok.isEnabled()
        dialog.close()

    def test_typed_signature_is_plain_text(self, qapp) -> None:
        dialog = SignatureDialog()
        dialog.typed_edit.setText("  Jane Signer ")

        assert dialog.value() == "Jane Signer"
        dialog.close()

    def test_drawn_signature_wins_over_typed(self, qapp) -> None:
        dialog = SignatureDialog()
        dialog.show()
        dialog.typed_edit.setText("Jane Signer")
        _stroke(dialog.pad, [(30, 90), (150, 50)])

        assert dialog.value().startswith(PNG_DATA_URL_PREFIX)
        assert dialog.buttons.button(QDialogButtonBox.StandardButton.Ok).isEnabled()
        dialog.close()
