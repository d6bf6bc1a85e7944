"""Signature capture: a freehand pad and the dialog used to complete signature fields.

Drawn signatures leave the dialog as PNG data URLs (``data:image/png;base64,...``),
which the flattener decodes and stamps as images. Typed signatures stay plain text
and are stamped in the signature font.
"""

from __future__ import annotations

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QPointF, Qt, Signal
from PySide6.QtGui import QColor, QImage, QPainter, QPainterPath, QPen
from PySide6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

PNG_DATA_URL_PREFIX = "data:image/png;base64,"


class SignatureExportError(RuntimeError):
    """Raised when the drawn signature cannot be encoded as PNG."""


class SignaturePad(QWidget):
    """Freehand drawing surface; each mouse stroke becomes one painter path."""

    changed = Signal()

    def __init__(self, parent: QWidget | None = None, line_width: float = 2.5) -> None:
        super().__init__(parent)
        self._strokes: list[QPainterPath] = []
        self._current: QPainterPath | None = None
        self._pen = QPen(QColor("#000000"), line_width)
        self._pen.setCapStyle(Qt.PenCapStyle.RoundCap)
        self._pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
        self.setMinimumSize(400, 150)
        self.setCursor(Qt.CursorShape.CrossCursor)

    @property
    def is_empty(self) -> bool:
        return not self._strokes

    def clear(self) -> None:
        self._strokes.clear()
        self._current = None
        self.update()
        self.changed.emit()

    def to_image(self) -> QImage:
        image = QImage(self.size(), QImage.Format.Format_ARGB32)
        image.fill(Qt.GlobalColor.transparent)
        painter = QPainter(image)
        self._draw_strokes(painter)
        painter.end()
        return image

    def to_data_url(self) -> str:
        data = QByteArray()
        buffer = QBuffer(data)
        buffer.open(QIODevice.OpenModeFlag.WriteOnly)
        saved = self.to_image().save(buffer, "PNG")
        buffer.close()
        if not saved:
            raise SignatureExportError("Could not encode signature as PNG")
        return PNG_DATA_URL_PREFIX + bytes(data.toBase64().data()).decode("ascii")

    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor("#ffffff"))
        painter.setPen(QPen(QColor("#b0b0b0"), 1, Qt.PenStyle.DashLine))
        baseline = self.height() * 0.75
        painter.drawLine(QPointF(20, baseline), QPointF(self.width() - 20, baseline))
        self._draw_strokes(painter)
        painter.end()

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() != Qt.MouseButton.LeftButton:
            return
        self._current = QPainterPath(event.position())
        # a bare press still leaves a dot
        self._current.lineTo(event.position() + QPointF(0.1, 0.1))
        self._strokes.append(self._current)
        self.update()
        self.changed.emit()

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        if self._current is None:
            return
        self._current.lineTo(event.position())
        self.update()

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        if self._current is not None:
            self._current.lineTo(event.position())
            self._current = None
            self.update()

    def _draw_strokes(self, painter: QPainter) -> None:
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setPen(self._pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        for stroke in self._strokes:
            painter.drawPath(stroke)


class SignatureDialog(QDialog):
    """Draw a signature on the pad, or type it instead."""

    def __init__(self, title: str = "Sign", parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setWindowTitle(title)

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel("Draw your signature:"))

        self.pad = SignaturePad(self)
        self.pad.changed.connect(self._update_enabled)
        layout.addWidget(self.pad)

        row = QHBoxLayout()
        self.typed_edit = QLineEdit()
        self.typed_edit.setPlaceholderText("Or type your name")
        self.typed_edit.textChanged.connect(self._update_enabled)
        row.addWidget(self.typed_edit)
        clear_button = QPushButton("Clear")
        clear_button.clicked.connect(self.pad.clear)
        row.addWidget(clear_button)
        layout.addLayout(row)

        self.buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel, self
        )
        self.buttons.accepted.connect(self.accept)
        self.buttons.rejected.connect(self.reject)
        layout.addWidget(self.buttons)
        self._update_enabled()

    def value(self) -> str:
        """The drawn signature as a PNG data URL, else the typed text."""
        if not self.pad.is_empty:
            return self.pad.to_data_url()
        return self.typed_edit.text().strip()

    def _update_enabled(self) -> None:
        ok = self.buttons.button(QDialogButtonBox.StandardButton.Ok)
        ok.setEnabled(not self.pad.is_empty or bool(self.typed_edit.text().strip()))
