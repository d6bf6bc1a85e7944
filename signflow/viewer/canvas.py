"""Interactive PDF page canvas for drawing, selecting and resizing signing fields."""

from __future__ import annotations

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QPainter, QPen, QPixmap
from PySide6.QtWidgets import QWidget

from signflow.geometry.policy import HANDLE_SIZE, Handle, handle_at
from signflow.geometry.shapes import Point, Rect
from signflow.service.signers import SignerRoster
from signflow.state.events import EventBus, ViewsChanged
from signflow.state.placement import PlacementState, PlacementStateMachine
from signflow.state.sync import ViewSynchronizer

_CURSORS = {
    Handle.TOP_LEFT: Qt.CursorShape.SizeFDiagCursor,
    Handle.BOTTOM_RIGHT: Qt.CursorShape.SizeFDiagCursor,
    Handle.TOP_RIGHT: Qt.CursorShape.SizeBDiagCursor,
    Handle.BOTTOM_LEFT: Qt.CursorShape.SizeBDiagCursor,
    Handle.TOP_MIDDLE: Qt.CursorShape.SizeVerCursor,
    Handle.BOTTOM_MIDDLE: Qt.CursorShape.SizeVerCursor,
    Handle.MIDDLE_LEFT: Qt.CursorShape.SizeHorCursor,
    Handle.MIDDLE_RIGHT: Qt.CursorShape.SizeHorCursor,
}
_ERROR_COLOR = QColor("#c62828")


def _qrect(rect: Rect) -> QRectF:
    return QRectF(rect.x, rect.y, rect.width, rect.height)


def _point(pos: QPointF) -> Point:
    return Point(float(pos.x()), float(pos.y()))


class PdfCanvas(QWidget):
    field_selection_changed = Signal(object)
    fields_changed = Signal()
    field_created = Signal(object)
    placement_cancelled = Signal()

    def __init__(
        self,
        machine: PlacementStateMachine,
        synchronizer: ViewSynchronizer,
        bus: EventBus,
        roster: SignerRoster | None = None,
    ) -> None:
        super().__init__()
        self.machine = machine
        self.synchronizer = synchronizer
        self.roster = roster or SignerRoster()
        self._pixmap: QPixmap | None = None
        self._selected_handle: str | None = None

        bus.subscribe(ViewsChanged, self._on_views_changed)
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(500, 600)

    @property
    def selected_handle(self) -> str | None:
        return self._selected_handle

    def set_page(self, pixmap: QPixmap) -> None:
        self._pixmap = pixmap
        self.resize(pixmap.size())
        self.update()

    def clear_page(self) -> None:
        self._pixmap = None
        self.select(None)
        self.resize(500, 600)
        self.update()

    def select(self, handle: str | None) -> None:
        if handle == self._selected_handle:
            return
        self._selected_handle = handle
        field = self.machine.store.get(handle) if handle is not None else None
        self.field_selection_changed.emit(field)
        self.update()

    def delete_selected_field(self) -> bool:
        if self._selected_handle is None or self.machine.gesture_active:
            return False
        handle = self._selected_handle
        self.select(None)
        self.machine.store.remove(handle)
        self.fields_changed.emit()
        return True

    def paintEvent(self, event) -> None:  # type: ignore[override]
        del event
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor("#e9eaee"))

        if self._pixmap is None:
            return

        painter.drawPixmap(0, 0, self._pixmap)
        resizing = self.machine.resizing_handle
        for view in self.synchronizer.views():
            field = self.machine.store.get(view.handle)
            if field is None or view.handle == resizing:
                continue
            color = QColor(self.roster.color_for(field.assigned_signer_id))
            if field.sync_error:
                color = _ERROR_COLOR
            rect = _qrect(view.rect)
            fill = QColor(color)
            fill.setAlpha(40)
            painter.fillRect(rect, fill)
            pen = QPen(color)
            pen.setWidth(2)
            if field.is_pending:
                pen.setStyle(Qt.PenStyle.DashLine)
            painter.setPen(pen)
            painter.drawRect(rect)
            label = field.value if field.is_complete else field.field_type.value.title()
            painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, label)
            if view.handle == self._selected_handle:
                self._paint_handles(painter, view.rect)

        live = self.machine.selection_rect
        if live is not None:
            pen = QPen(QColor("#424242"))
            pen.setStyle(Qt.PenStyle.DashLine)
            painter.setPen(pen)
            painter.drawRect(_qrect(live))
            if resizing is not None:
                self._paint_handles(painter, live)

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if self._pixmap is None or event.button() != Qt.MouseButton.LeftButton:
            return
        self.setFocus()
        point = _point(event.position())

        grip = self._grip_at(point)
        if grip is not None:
            self.machine.pointer_down(point, handle=self._selected_handle, grip=grip)
            self.update()
            return

        if self.machine.state is PlacementState.TYPE_SELECTED:
            self.machine.pointer_down(point)
            self.update()
            return

        field = self.synchronizer.field_at(point.x, point.y)
        self.select(field.handle if field is not None else None)

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        point = _point(event.position())
        if self.machine.gesture_active:
            self.machine.pointer_move(point)
            self.update()
            return
        grip = self._grip_at(point)
        if grip is not None:
            self.setCursor(_CURSORS[grip])
        elif self.machine.state is PlacementState.TYPE_SELECTED:
            self.setCursor(Qt.CursorShape.CrossCursor)
        else:
            self.unsetCursor()

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        if not self.machine.gesture_active:
            return
        drawing = self.machine.state is PlacementState.DRAWING
        field = self.machine.pointer_up(_point(event.position()))
        if field is not None:
            if drawing:
                self.select(field.handle)
                self.field_created.emit(field)
            self.fields_changed.emit()
        self.update()

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        if event.key() == Qt.Key.Key_Escape:
            self.machine.cancel()
            self.unsetCursor()
            self.placement_cancelled.emit()
            self.update()
            event.accept()
            return
        if event.key() in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace):
            self.delete_selected_field()
            event.accept()
            return
        super().keyPressEvent(event)

    def _grip_at(self, point: Point) -> Handle | None:
        if self._selected_handle is None:
            return None
        view = self.synchronizer.view_for(self._selected_handle)
        if view is None:
            return None
        return handle_at(view.rect, point)

    def _paint_handles(self, painter: QPainter, rect: Rect) -> None:
        half = HANDLE_SIZE / 2.0
        for grip in Handle:
            anchor = grip.anchor(rect)
            painter.fillRect(
                QRectF(anchor.x - half, anchor.y - half, HANDLE_SIZE, HANDLE_SIZE),
                QColor("#c62828"),
            )

    def _on_views_changed(self, event: ViewsChanged) -> None:
        del event
        if self._selected_handle is not None and not self.synchronizer.is_visible(self._selected_handle):
            self.select(None)
        self.update()
