"""Signer-side completion of assigned fields."""

from __future__ import annotations

import asyncio

import structlog

from signflow.model.field import FormField
from signflow.state.operations import PersistResult
from signflow.state.store import FieldRef, FieldStore

logger = structlog.get_logger(__name__)


class SigningSession:
    """Fields of one signer, completed once each with a value."""

    def __init__(self, store: FieldStore, signer_id: str) -> None:
        self.store = store
        self.signer_id = signer_id

    def fields(self) -> list[FormField]:
        return [
            field for field in self.store.all_fields() if field.assigned_signer_id == self.signer_id
        ]

    def pending(self) -> list[FormField]:
        return [field for field in self.fields() if not field.is_complete]

    def progress(self) -> tuple[int, int]:
        fields = self.fields()
        return sum(1 for field in fields if field.is_complete), len(fields)

    def is_finished(self) -> bool:
        return all(field.is_complete for field in self.fields())

    def complete(self, ref: FieldRef, value: str) -> asyncio.Future[PersistResult]:
        field = self.store.get(ref)
        if field is None:
            return self._rejected(PersistResult.failure("complete", str(ref), "field not found"))
        if field.assigned_signer_id != self.signer_id:
            logger.warning(
                "signing.rejected",
                handle=field.handle,
                reason="not_assigned",
                signer=self.signer_id,
            )
            return self._rejected(
                PersistResult.failure("complete", field.handle, "field is assigned to another signer", field)
            )
        if field.completed:
            return self._rejected(PersistResult.failure("complete", field.handle, "field is already completed", field))
        if not value:
            return self._rejected(PersistResult.failure("complete", field.handle, "a value is required", field))

        logger.info("signing.field_completed", handle=field.handle, field_type=field.field_type.value)
        return self.store.complete(field.handle, value)

    def _rejected(self, result: PersistResult) -> asyncio.Future[PersistResult]:
        return self.store.queue.resolved(result)
