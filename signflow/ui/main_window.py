"""Main application window for placing, saving and flattening signing fields."""

from __future__ import annotations

import asyncio
from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QActionGroup, QPixmap
from PySide6.QtWidgets import (
    QComboBox,
    QFileDialog,
    QInputDialog,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QScrollArea,
    QSplitter,
    QToolBar,
)
import structlog

from signflow.geometry.policy import zoom_in, zoom_out
from signflow.model.document import PdfDocument
from signflow.model.field import FieldType, FormField
from signflow.pdf.flatten import FlattenError, FlattenResult, finalize_document
from signflow.pdf.loader import PdfLoadError, load_pdf
from signflow.pdf.renderer import PdfRenderError, render_page_image
from signflow.service.field_service import FieldService, FieldServiceError, InMemoryFieldService
from signflow.service.http_service import HttpFieldService
from signflow.service.signers import Signer, SignerRoster
from signflow.settings import Settings
from signflow.state.events import EventBus, PageChanged, ScaleChanged, ViewsChanged
from signflow.state.operations import FieldOperationQueue, PersistResult
from signflow.state.placement import PlacementStateMachine
from signflow.state.session import PlacementSession
from signflow.state.signing import SigningSession
from signflow.state.store import FieldStore
from signflow.state.sync import ViewSynchronizer
from signflow.ui.async_pump import AsyncioPump
from signflow.ui.signature_pad import SignatureDialog, SignatureExportError
from signflow.viewer.canvas import PdfCanvas

logger = structlog.get_logger(__name__)


def build_service(settings: Settings) -> FieldService:
    if settings.service.base_url:
        return HttpFieldService(
            settings.service.base_url,
            api_token=settings.service.api_token,
            timeout_seconds=settings.service.timeout_seconds,
        )
    logger.info("main_window.offline_service")
    return InMemoryFieldService()


class MainWindow(QMainWindow):
    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__()
        self.setWindowTitle("Signing Field Placement")
        self.resize(1300, 850)

        self._settings = settings or Settings()
        self._document: PdfDocument | None = None

        self._pump = AsyncioPump(parent=self)
        self._bus = EventBus()
        self._service = build_service(self._settings)
        self._store = FieldStore(
            self._settings.document_id,
            self._service,
            queue=FieldOperationQueue(loop=self._pump.loop),
            bus=self._bus,
        )
        self._session = PlacementSession(
            current_scale=self._settings.viewer.initial_scale,
            repeat_placement=self._settings.placement.repeat_placement,
        )
        self._machine = PlacementStateMachine(
            self._session, self._store, policy=self._settings.placement.policy()
        )
        self._synchronizer = ViewSynchronizer(
            self._session,
            self._store,
            self._bus,
            scale_epsilon=self._settings.viewer.scale_epsilon,
            loop=self._pump.loop,
        )
        self._roster = SignerRoster(Signer.from_dict(item) for item in self._settings.signers)
        self._bus.subscribe(ViewsChanged, self._on_views_changed)

        self.page_list = QListWidget()
        self.page_list.currentRowChanged.connect(self._on_page_selected)

        self.field_list = QListWidget()
        self.field_list.itemClicked.connect(self._on_field_item_clicked)

        self.canvas = PdfCanvas(self._machine, self._synchronizer, self._bus, self._roster)
        self.canvas.fields_changed.connect(self._on_canvas_fields_changed)
        self.canvas.field_created.connect(self._on_canvas_field_created)
        self.canvas.field_selection_changed.connect(self._on_selection_changed)
        self.canvas.placement_cancelled.connect(self._sync_toolbar)

        self.scroll_area = QScrollArea()
        self.scroll_area.setWidgetResizable(False)
        self.scroll_area.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.scroll_area.setWidget(self.canvas)

        sidebar = QSplitter(Qt.Orientation.Vertical)
        sidebar.addWidget(self.page_list)
        sidebar.addWidget(self.field_list)

        splitter = QSplitter()
        splitter.addWidget(sidebar)
        splitter.addWidget(self.scroll_area)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 4)
        self.setCentralWidget(splitter)

        self._type_actions: list[QAction] = []
        self._build_toolbar()
        self._sync_toolbar()
        self._pump.start()
        self.statusBar().showMessage("Ready")

    def _build_toolbar(self) -> None:
        toolbar = QToolBar("Main Toolbar")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        open_action = QAction("Open PDF", self)
        open_action.triggered.connect(self.open_pdf)
        toolbar.addAction(open_action)

        save_action = QAction("Save Fields", self)
        save_action.triggered.connect(self.save_all_fields)
        toolbar.addAction(save_action)

        finalize_action = QAction("Finalize PDF", self)
        finalize_action.triggered.connect(self.finalize_pdf)
        toolbar.addAction(finalize_action)

        toolbar.addSeparator()

        prev_action = QAction("Previous", self)
        prev_action.triggered.connect(self.show_previous_page)
        toolbar.addAction(prev_action)

        next_action = QAction("Next", self)
        next_action.triggered.connect(self.show_next_page)
        toolbar.addAction(next_action)

        zoom_in_action = QAction("Zoom In", self)
        zoom_in_action.triggered.connect(self.zoom_in)
        toolbar.addAction(zoom_in_action)

        zoom_out_action = QAction("Zoom Out", self)
        zoom_out_action.triggered.connect(self.zoom_out)
        toolbar.addAction(zoom_out_action)

        toolbar.addSeparator()

        self.signer_combo = QComboBox()
        self.signer_combo.addItem("Select signer", None)
        for signer in self._roster:
            self.signer_combo.addItem(signer.name, signer.id)
        self.signer_combo.currentIndexChanged.connect(self._on_signer_changed)
        toolbar.addWidget(self.signer_combo)

        mode_group = QActionGroup(self)
        mode_group.setExclusive(True)

        self._pointer_action = QAction("Pointer", self)
        self._pointer_action.setCheckable(True)
        self._pointer_action.setChecked(True)
        self._pointer_action.triggered.connect(lambda: self._set_mode(None))
        mode_group.addAction(self._pointer_action)
        toolbar.addAction(self._pointer_action)

        for field_type in FieldType:
            action = QAction(f"Add {field_type.value.title()}", self)
            action.setCheckable(True)
            action.triggered.connect(lambda checked=False, ft=field_type: self._set_mode(ft))
            mode_group.addAction(action)
            toolbar.addAction(action)
            self._type_actions.append(action)

        self._repeat_action = QAction("Keep Tool", self)
        self._repeat_action.setCheckable(True)
        self._repeat_action.setChecked(self._session.repeat_placement)
        self._repeat_action.toggled.connect(self._on_repeat_toggled)
        toolbar.addAction(self._repeat_action)

        toolbar.addSeparator()

        delete_action = QAction("Delete Field", self)
        delete_action.triggered.connect(self.delete_selected_field)
        toolbar.addAction(delete_action)

        complete_action = QAction("Complete Field", self)
        complete_action.triggered.connect(self.complete_selected_field)
        toolbar.addAction(complete_action)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._close_document()
        self._pump.stop()
        self._pump.run_until_idle()
        if isinstance(self._service, HttpFieldService):
            self._pump.loop.run_until_complete(self._service.close())
        self._pump.close()
        super().closeEvent(event)

    def open_pdf(self) -> None:
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "Open PDF",
            str(Path.home()),
            "PDF Files (*.pdf)",
        )
        if not file_path:
            return

        self._close_document()
        try:
            self._document = load_pdf(file_path, self._settings.document_id)
        except PdfLoadError as exc:
            QMessageBox.critical(self, "Open Failed", str(exc))
            return

        self._session.current_page = 1
        self._synchronizer.set_page_size(self._document.page_size(1))
        self._pump.loop.create_task(self._synchronizer.load_current_page())
        self._populate_page_list()
        self._render_current_page()
        self.statusBar().showMessage(f"Loaded: {file_path}")

    def save_all_fields(self) -> None:
        tasks = self._store.save_all()
        for task in tasks:
            self._watch(task)
        self.statusBar().showMessage(f"Saving {len(tasks)} field(s)")

    def finalize_pdf(self) -> None:
        if self._document is None:
            QMessageBox.information(self, "No Document", "Open a PDF first.")
            return

        output_path, _ = QFileDialog.getSaveFileName(
            self,
            "Save Finalized PDF",
            str(self._document.path.with_stem(f"{self._document.path.stem}_signed")),
            "PDF Files (*.pdf)",
        )
        if not output_path:
            return

        task = self._pump.loop.create_task(self._finalize(self._document.read_bytes()))
        task.add_done_callback(lambda done: self._on_finalized(done, Path(output_path)))
        self.statusBar().showMessage("Finalizing...")

    def show_previous_page(self) -> None:
        if self._document is None or self._session.current_page <= 1:
            return
        self.page_list.setCurrentRow(self._session.current_page - 2)

    def show_next_page(self) -> None:
        if self._document is None or self._session.current_page >= self._document.page_count:
            return
        self.page_list.setCurrentRow(self._session.current_page)

    def zoom_in(self) -> None:
        viewer = self._settings.viewer
        self._apply_scale(zoom_in(self._session.current_scale, viewer.zoom_in_factor, viewer.max_scale))

    def zoom_out(self) -> None:
        viewer = self._settings.viewer
        self._apply_scale(zoom_out(self._session.current_scale, viewer.zoom_out_factor, viewer.min_scale))

    def delete_selected_field(self) -> None:
        if self._document is None:
            return
        if self.canvas.delete_selected_field():
            self.statusBar().showMessage("Deleted field.")
        else:
            self.statusBar().showMessage("No selected field to delete.")

    def complete_selected_field(self) -> None:
        handle = self.canvas.selected_handle
        signer_id = self._session.selected_signer_id
        if handle is None or not signer_id:
            self.statusBar().showMessage("Select a signer and one of their fields first.")
            return

        field = self._store.get(handle)
        if field is None:
            return
        if field.field_type is FieldType.CHECKBOX:
            value = "true"
        elif field.field_type.needs_signature:
            dialog = SignatureDialog(f"Sign {field.field_type.value.title()}", self)
            if not dialog.exec():
                return
            try:
                value = dialog.value()
            except SignatureExportError as exc:
                QMessageBox.critical(self, "Signature Failed", str(exc))
                return
        else:
            value, accepted = QInputDialog.getText(self, "Complete Field", f"{field.field_type.value.title()}:")
            if not accepted:
                return

        future = SigningSession(self._store, signer_id).complete(handle, value)
        self._watch(future)

    def _apply_scale(self, scale: float) -> None:
        if self._document is None:
            return
        self._bus.publish(ScaleChanged(scale))
        self._render_current_page()
        self.statusBar().showMessage(f"Zoom {self._session.current_scale:.0%}")

    def _set_mode(self, mode: FieldType | None) -> None:
        if mode is None:
            self._machine.clear_field_type()
            self.statusBar().showMessage("Pointer mode")
            return
        if not self._machine.select_field_type(mode):
            self._pointer_action.setChecked(True)
            self.statusBar().showMessage("Select a signer before placing fields.")
            return
        self.statusBar().showMessage(f"Placement mode: {mode.value}")

    def _sync_toolbar(self) -> None:
        enabled = self._machine.toolbar_enabled
        for action in self._type_actions:
            action.setEnabled(enabled)
        if self._session.selected_field_type is None:
            self._pointer_action.setChecked(True)

    def _populate_page_list(self) -> None:
        self.page_list.blockSignals(True)
        self.page_list.clear()
        if self._document is not None:
            for page_number in range(1, self._document.page_count + 1):
                self.page_list.addItem(QListWidgetItem(f"Page {page_number}"))
            self.page_list.setCurrentRow(0)
        self.page_list.blockSignals(False)

    def _on_page_selected(self, row: int) -> None:
        if self._document is None or row < 0:
            return

        page_number = row + 1
        self._session.page_size = self._document.page_size(page_number)
        self._bus.publish(PageChanged(page_number))
        self._render_current_page()

    def _on_signer_changed(self, index: int) -> None:
        self._machine.select_signer(self.signer_combo.itemData(index))
        self._sync_toolbar()

    def _on_repeat_toggled(self, checked: bool) -> None:
        self._session.repeat_placement = checked

    def _on_canvas_fields_changed(self) -> None:
        if self._machine.last_task is not None:
            self._watch(self._machine.last_task)
            self._machine.last_task = None

    def _on_canvas_field_created(self, field: FormField) -> None:
        self._sync_toolbar()
        self.statusBar().showMessage(f"Placed {field.field_type.value} on page {field.page_number}")

    def _on_selection_changed(self, field: FormField | None) -> None:
        if field is None:
            return
        signer = self._roster.get(field.assigned_signer_id)
        owner = signer.name if signer is not None else field.assigned_signer_id
        self.statusBar().showMessage(f"{field.field_type.value.title()} for {owner}")

    def _on_field_item_clicked(self, item: QListWidgetItem) -> None:
        self.canvas.select(item.data(Qt.ItemDataRole.UserRole))

    def _on_views_changed(self, event: ViewsChanged) -> None:
        self.field_list.clear()
        for field in self._store.fields_for_page(event.page):
            signer = self._roster.get(field.assigned_signer_id)
            owner = signer.name if signer is not None else field.assigned_signer_id
            if field.sync_error:
                status = "not saved"
            elif field.is_pending:
                status = "saving"
            elif field.is_complete:
                status = "completed"
            else:
                status = "saved"
            item = QListWidgetItem(f"{field.field_type.value.title()} - {owner} ({status})")
            item.setData(Qt.ItemDataRole.UserRole, field.handle)
            self.field_list.addItem(item)

    def _watch(self, future: asyncio.Future[PersistResult] | None) -> None:
        if future is not None:
            future.add_done_callback(self._on_persisted)

    def _on_persisted(self, future: asyncio.Future[PersistResult]) -> None:
        if future.cancelled():
            return
        result = future.result()
        if not result.ok and result.error is not None:
            self.statusBar().showMessage(
                f"Could not {result.error.operation} field: {result.error.message}"
            )
        self._synchronizer.reapply()

    async def _finalize(self, source: bytes) -> FlattenResult:
        await self._store.queue.drain()
        return await finalize_document(
            self._service, self._settings.document_id, source, self._settings.flatten
        )

    def _on_finalized(self, task: asyncio.Task[FlattenResult], output_path: Path) -> None:
        if task.cancelled():
            return
        try:
            result = task.result()
            output_path.write_bytes(result.pdf_bytes)
        except (FlattenError, FieldServiceError, OSError) as exc:
            QMessageBox.critical(self, "Finalize Failed", str(exc))
            return

        report = result.report
        message = f"Saved: {output_path} ({len(report.stamped)} field(s) stamped)"
        if report.has_skips:
            message += f", {len(report.skipped_out_of_range) + len(report.skipped_unreadable)} skipped"
        self.statusBar().showMessage(message)

    def _render_current_page(self) -> None:
        if self._document is None:
            self.canvas.clear_page()
            return

        try:
            image = render_page_image(
                self._document.handle,
                self._session.current_page,
                scale=self._session.current_scale,
            )
        except PdfRenderError as exc:
            QMessageBox.critical(self, "Render Failed", str(exc))
            return

        self.canvas.set_page(QPixmap.fromImage(image))
        self.statusBar().showMessage(
            f"Page {self._session.current_page}/{self._document.page_count}"
        )

    def _close_document(self) -> None:
        self._machine.cancel()
        if self._document is not None:
            self._document.close()
            self._document = None
        self.page_list.clear()
        self.canvas.clear_page()
