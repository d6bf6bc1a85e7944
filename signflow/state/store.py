"""In-memory authority for the form fields of the open document."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
import uuid

import structlog

from signflow.geometry.policy import fit_to_surface
from signflow.geometry.shapes import PERCENT_SURFACE, Rect
from signflow.model.field import (
    CommittedId,
    FieldDraft,
    FieldIdentity,
    FormField,
    PendingId,
)
from signflow.service.field_service import FieldService, FieldServiceError, position_payload
from signflow.state.events import EventBus, FieldAdded, FieldConfirmed, FieldRemoved, FieldUpdated
from signflow.state.operations import FieldOperationQueue, PersistResult

logger = structlog.get_logger(__name__)

FieldRef = str | int | FieldIdentity


def _new_temp_id() -> str:
    return f"field-{uuid.uuid4().hex[:12]}"


class FieldStore:
    def __init__(
        self,
        document_id: str,
        service: FieldService,
        queue: FieldOperationQueue | None = None,
        bus: EventBus | None = None,
        id_factory: Callable[[], str] = _new_temp_id,
    ) -> None:
        self.document_id = document_id
        self._service = service
        self._queue = queue or FieldOperationQueue()
        self._bus = bus
        self._id_factory = id_factory
        self._fields: dict[str, FormField] = {}
        self._by_server_id: dict[str, str] = {}
        self._loaded_pages: set[int] = set()

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[FormField]:
        return iter(list(self._fields.values()))

    @property
    def queue(self) -> FieldOperationQueue:
        return self._queue

    def all_fields(self) -> list[FormField]:
        return list(self._fields.values())

    def unsaved_fields(self) -> list[FormField]:
        return [field for field in self._fields.values() if field.is_pending]

    def fields_for_page(self, page_number: int) -> list[FormField]:
        return [field for field in self._fields.values() if field.page_number == page_number]

    def has_loaded_page(self, page_number: int) -> bool:
        return page_number in self._loaded_pages

    def get(self, ref: FieldRef) -> FormField | None:
        if isinstance(ref, PendingId):
            return self._fields.get(ref.temp_id)
        if isinstance(ref, CommittedId):
            ref = ref.server_id
        if isinstance(ref, int):
            handle = self._by_server_id.get(str(ref))
            return self._fields.get(handle) if handle else None

        field = self._fields.get(ref)
        if field is not None:
            return field
        key = ref[3:] if ref.startswith("db-") else ref
        handle = self._by_server_id.get(key)
        return self._fields.get(handle) if handle else None

    def add_local(self, draft: FieldDraft) -> FormField:
        temp_id = self._id_factory()
        field = FormField(
            handle=temp_id,
            identity=PendingId(temp_id),
            field_type=draft.field_type,
            page_number=draft.page_number,
            assigned_signer_id=draft.assigned_signer_id,
            position=fit_to_surface(draft.position, PERCENT_SURFACE),
            required=draft.required,
        )
        self._fields[field.handle] = field
        logger.debug("field_store.added", handle=field.handle, page=field.page_number)
        self._publish(FieldAdded(field.handle))
        return field

    def add_from_server(self, incoming: FormField) -> FormField:
        existing = self.get(CommittedId(incoming.server_id)) if incoming.server_id is not None else None
        if existing is not None:
            existing.position = incoming.position
            existing.value = incoming.value
            existing.completed = incoming.completed
            existing.required = incoming.required
            self._publish(FieldUpdated(existing.handle))
            return existing

        self._fields[incoming.handle] = incoming
        self._by_server_id[str(incoming.server_id)] = incoming.handle
        self._publish(FieldAdded(incoming.handle))
        return incoming

    def confirm(self, temp_id: str, server_id: int | str) -> FormField | None:
        field = self._fields.get(temp_id)
        if field is None or not field.is_pending:
            logger.warning("field_store.confirm.unknown", temp_id=temp_id, server_id=server_id)
            return None
        field.identity = CommittedId(server_id)
        field.sync_error = None
        self._by_server_id[str(server_id)] = field.handle
        logger.debug("field_store.confirmed", handle=field.handle, server_id=server_id)
        self._publish(FieldConfirmed(field.handle, server_id))
        return field

    def discard(self, ref: FieldRef) -> FormField | None:
        field = self.get(ref)
        if field is None:
            return None
        del self._fields[field.handle]
        if field.server_id is not None:
            self._by_server_id.pop(str(field.server_id), None)
        self._publish(FieldRemoved(field.handle))
        return field

    def mark_page_loaded(self, page_number: int) -> None:
        self._loaded_pages.add(page_number)

    # ------------------------------------------------------------------
    # Operations that reach the document field service
    # ------------------------------------------------------------------

    def persist(self, ref: FieldRef) -> asyncio.Task[PersistResult] | None:
        field = self.get(ref)
        if field is None:
            return None
        return self._queue.submit(field.handle, "create", lambda: self._create(field.handle))

    def save_all(self) -> list[asyncio.Task[PersistResult]]:
        return [
            self._queue.submit(field.handle, "create", lambda handle=field.handle: self._create(handle))
            for field in self.unsaved_fields()
        ]

    def update_position(self, ref: FieldRef, position: Rect) -> asyncio.Task[PersistResult] | None:
        field = self.get(ref)
        if field is None:
            return None
        field.position = fit_to_surface(position, PERCENT_SURFACE)
        self._publish(FieldUpdated(field.handle))
        return self._queue.submit(field.handle, "update", lambda: self._update(field.handle))

    def remove(self, ref: FieldRef) -> asyncio.Task[PersistResult] | None:
        field = self.discard(ref)
        if field is None:
            return None
        logger.debug("field_store.removed", handle=field.handle)
        return self._queue.submit(field.handle, "delete", lambda: self._delete(field))

    def complete(self, ref: FieldRef, value: str) -> asyncio.Task[PersistResult] | None:
        field = self.get(ref)
        if field is None:
            return None
        field.value = value
        field.completed = True
        self._publish(FieldUpdated(field.handle))
        return self._queue.submit(field.handle, "complete", lambda: self._complete(field.handle))

    async def load_page(self, page_number: int) -> list[FormField]:
        if page_number in self._loaded_pages:
            return self.fields_for_page(page_number)
        self._loaded_pages.add(page_number)
        try:
            fetched = await self._service.list_fields(self.document_id, page_number)
        except FieldServiceError as exc:
            self._loaded_pages.discard(page_number)
            logger.error("field_store.load_failed", page=page_number, error=str(exc))
            return self.fields_for_page(page_number)
        except Exception:
            self._loaded_pages.discard(page_number)
            logger.exception("field_store.load_crashed", page=page_number)
            return self.fields_for_page(page_number)
        for incoming in fetched:
            if incoming.page_number == page_number:
                self.add_from_server(incoming)
        logger.debug("field_store.page_loaded", page=page_number, count=len(fetched))
        return self.fields_for_page(page_number)

    async def _create(self, handle: str) -> PersistResult:
        field = self._fields.get(handle)
        if field is None:
            return PersistResult.failure("create", handle, "field was removed before it was saved")
        if not field.is_pending:
            return PersistResult.success(field)
        try:
            created = await self._service.create_field(self.document_id, field.draft().to_wire())
        except Exception as exc:
            return self._failed("create", field, exc)
        if handle not in self._fields:
            # removed while the create was in flight; the queued delete needs the id
            field.identity = CommittedId(created.server_id)
            return PersistResult.success(field)
        self.confirm(handle, created.server_id)
        return PersistResult.success(field)

    async def _update(self, handle: str) -> PersistResult:
        field = self._fields.get(handle)
        if field is None:
            return PersistResult.failure("update", handle, "field was removed before it was updated")
        if field.is_pending:
            return await self._create(handle)
        try:
            await self._service.update_field(self.document_id, field.server_id, position_payload(field))
        except Exception as exc:
            return self._failed("update", field, exc)
        field.sync_error = None
        return PersistResult.success(field)

    async def _delete(self, field: FormField) -> PersistResult:
        if field.server_id is None:
            return PersistResult.success(field)
        try:
            await self._service.delete_field(self.document_id, field.server_id)
        except Exception as exc:
            return self._failed("delete", field, exc)
        return PersistResult.success(field)

    async def _complete(self, handle: str) -> PersistResult:
        field = self._fields.get(handle)
        if field is None:
            return PersistResult.failure("complete", handle, "field was removed before completion")
        if field.is_pending:
            created = await self._create(handle)
            if not created.ok:
                return created
        try:
            await self._service.complete_field(self.document_id, field.server_id, field.value or "")
        except Exception as exc:
            return self._failed("complete", field, exc)
        field.sync_error = None
        return PersistResult.success(field)

    def _failed(self, operation: str, field: FormField, exc: Exception) -> PersistResult:
        message = str(exc) or type(exc).__name__
        field.sync_error = message
        logger.error(
            "field_store.persist_failed",
            operation=operation,
            handle=field.handle,
            error=message,
            error_type=type(exc).__name__,
        )
        return PersistResult.failure(operation, field.handle, message, field=field)

    def _publish(self, event) -> None:
        if self._bus is not None:
            self._bus.publish(event)
