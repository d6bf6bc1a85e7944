"""Test configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from io import BytesIO
from itertools import count

import pytest
from reportlab.pdfgen import canvas

from signflow.geometry.shapes import Rect, Size
from signflow.model.field import FieldType
from signflow.service.field_service import InMemoryFieldService
from signflow.state.events import EventBus
from signflow.state.placement import PlacementStateMachine
from signflow.state.session import PlacementSession
from signflow.state.store import FieldStore

DOCUMENT_ID = "doc-1"


def wire_payload(
    field_type: FieldType | str = FieldType.TEXT,
    page_number: int = 1,
    signer: str = "S1",
    position: Rect = Rect(10.0, 10.0, 15.0, 5.0),
    **extra,
) -> dict:
    """Build a form field payload the way the service sends it."""
    payload = {
        "field_type": FieldType(field_type).value,
        "page_number": page_number,
        "document_signer_id": signer,
        "x_position": position.x,
        "y_position": position.y,
        "width": position.width,
        "height": position.height,
    }
    payload.update(extra)
    return payload


def make_pdf(*sizes: tuple[float, float]) -> bytes:
    """Build a PDF with one blank page per ``(width, height)`` pair."""
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer)
    for width, height in sizes:
        pdf.setPageSize((width, height))
        pdf.drawString(20, 20, "page")
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


@pytest.fixture
def service() -> InMemoryFieldService:
    return InMemoryFieldService()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def id_factory() -> Callable[[], str]:
    counter = count(1)
    return lambda: f"field-{next(counter)}"


@pytest.fixture
def store(service: InMemoryFieldService, bus: EventBus, id_factory: Callable[[], str]) -> FieldStore:
    return FieldStore(DOCUMENT_ID, service, bus=bus, id_factory=id_factory)


@pytest.fixture
def session() -> PlacementSession:
    """Session on a 1000x800 page at scale 1.0."""
    return PlacementSession(page_size=Size(1000.0, 800.0))


@pytest.fixture
def machine(session: PlacementSession, store: FieldStore) -> PlacementStateMachine:
    return PlacementStateMachine(session, store)


@pytest.fixture
def payload() -> Callable[..., dict]:
    return wire_payload


@pytest.fixture
def pdf_factory() -> Callable[..., bytes]:
    return make_pdf
