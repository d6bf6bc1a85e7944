"""Form field model definitions."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Union

from signflow.geometry.shapes import Rect


class FieldType(str, Enum):
    SIGNATURE = "signature"
    INITIALS = "initials"
    TEXT = "text"
    DATE = "date"
    CHECKBOX = "checkbox"

    @property
    def needs_signature(self) -> bool:
        return self in (FieldType.SIGNATURE, FieldType.INITIALS)


@dataclass(frozen=True, slots=True)
class PendingId:
    temp_id: str


@dataclass(frozen=True, slots=True)
class CommittedId:
    server_id: int | str


FieldIdentity = Union[PendingId, CommittedId]


def server_handle(server_id: int | str) -> str:
    return f"db-{server_id}"


@dataclass(slots=True)
class FieldDraft:
    field_type: FieldType
    page_number: int
    assigned_signer_id: str
    position: Rect
    required: bool = False

    def to_wire(self) -> dict[str, Any]:
        return {
            "field_type": self.field_type.value,
            "page_number": self.page_number,
            "document_signer_id": self.assigned_signer_id,
            "x_position": self.position.x,
            "y_position": self.position.y,
            "width": self.position.width,
            "height": self.position.height,
            "required": self.required,
        }


@dataclass(slots=True)
class FormField:
    handle: str
    identity: FieldIdentity
    field_type: FieldType
    page_number: int
    assigned_signer_id: str
    position: Rect
    required: bool = True
    value: str | None = None
    completed: bool = False
    sync_error: str | None = None

    @property
    def server_id(self) -> int | str | None:
        if isinstance(self.identity, CommittedId):
            return self.identity.server_id
        return None

    @property
    def is_pending(self) -> bool:
        return isinstance(self.identity, PendingId)

    @property
    def is_complete(self) -> bool:
        return self.completed and bool(self.value)

    def draft(self) -> FieldDraft:
        return FieldDraft(
            field_type=self.field_type,
            page_number=self.page_number,
            assigned_signer_id=self.assigned_signer_id,
            position=self.position,
            required=self.required,
        )

    def copy(self) -> FormField:
        return replace(self)

    def to_wire(self) -> dict[str, Any]:
        payload = self.draft().to_wire()
        payload["value"] = self.value
        payload["completed"] = self.completed
        if self.server_id is not None:
            payload["id"] = self.server_id
        return payload

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> FormField:
        server_id = data["id"]
        signer = data.get("document_signer_id")
        value = data.get("value")
        return cls(
            handle=server_handle(server_id),
            identity=CommittedId(server_id),
            field_type=FieldType(data["field_type"]),
            page_number=int(data["page_number"]),
            assigned_signer_id="" if signer is None else str(signer),
            position=Rect(
                x=float(data["x_position"]),
                y=float(data["y_position"]),
                width=float(data["width"]),
                height=float(data["height"]),
            ),
            required=bool(data.get("required", True)),
            value=None if value is None else str(value),
            completed=bool(data.get("completed", False)),
        )
