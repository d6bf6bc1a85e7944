"""Document field service contract and an in-memory implementation."""

from __future__ import annotations

from collections import Counter
from typing import Any, Protocol

from signflow.model.field import FormField


class FieldServiceError(RuntimeError):
    """Raised when the document field service rejects or fails a request."""


class FieldNotFoundError(FieldServiceError):
    """Raised when a document or field id is unknown to the service."""


class FieldService(Protocol):
    async def list_fields(self, document_id: str, page_number: int | None = None) -> list[FormField]: ...

    async def create_field(self, document_id: str, payload: dict[str, Any]) -> FormField: ...

    async def update_field(
        self, document_id: str, field_id: int | str, payload: dict[str, Any]
    ) -> FormField: ...

    async def delete_field(self, document_id: str, field_id: int | str) -> None: ...

    async def complete_field(self, document_id: str, field_id: int | str, value: str) -> FormField: ...


_POSITION_KEYS = ("x_position", "y_position", "width", "height")


class InMemoryFieldService:
    """Field service kept in process memory.

    ``fail_on`` names methods that raise :class:`FieldServiceError`, and
    ``calls`` counts invocations per method.
    """

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self._records: dict[str, dict[int, dict[str, Any]]] = {}
        self._next_id = 1
        self.fail_on: set[str] = set(fail_on or ())
        self.calls: Counter[str] = Counter()

    def seed(self, document_id: str, payload: dict[str, Any]) -> FormField:
        record = self._store(document_id, payload)
        return FormField.from_wire(record)

    async def list_fields(self, document_id: str, page_number: int | None = None) -> list[FormField]:
        self._enter("list_fields")
        records = self._records.get(document_id, {}).values()
        return [
            FormField.from_wire(record)
            for record in records
            if page_number is None or record["page_number"] == page_number
        ]

    async def create_field(self, document_id: str, payload: dict[str, Any]) -> FormField:
        self._enter("create_field")
        return FormField.from_wire(self._store(document_id, payload))

    async def update_field(
        self, document_id: str, field_id: int | str, payload: dict[str, Any]
    ) -> FormField:
        self._enter("update_field")
        record = self._find(document_id, field_id)
        record.update(payload)
        return FormField.from_wire(record)

    async def delete_field(self, document_id: str, field_id: int | str) -> None:
        self._enter("delete_field")
        self._find(document_id, field_id)
        del self._records[document_id][int(field_id)]

    async def complete_field(self, document_id: str, field_id: int | str, value: str) -> FormField:
        self._enter("complete_field")
        record = self._find(document_id, field_id)
        record["value"] = value
        record["completed"] = True
        return FormField.from_wire(record)

    def _enter(self, method: str) -> None:
        self.calls[method] += 1
        if method in self.fail_on:
            raise FieldServiceError(f"{method} failed")

    def _store(self, document_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        record = {"required": True, "completed": False, "value": None}
        record.update(payload)
        record["id"] = self._next_id
        self._next_id += 1
        self._records.setdefault(document_id, {})[record["id"]] = record
        return record

    def _find(self, document_id: str, field_id: int | str) -> dict[str, Any]:
        try:
            return self._records[document_id][int(field_id)]
        except (KeyError, ValueError) as exc:
            raise FieldNotFoundError(f"Field {field_id} not found in document {document_id}") from exc


def position_payload(field: FormField) -> dict[str, Any]:
    wire = field.to_wire()
    return {key: wire[key] for key in _POSITION_KEYS}
