"""Keeps rendered field rectangles in step with the viewer's page and zoom."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from signflow.geometry.shapes import Point, Rect, Size
from signflow.geometry.transform import percent_to_pixels
from signflow.model.field import FormField
from signflow.state.events import (
    EventBus,
    FieldAdded,
    FieldConfirmed,
    FieldRemoved,
    FieldUpdated,
    PageChanged,
    ScaleChanged,
    ViewsChanged,
)
from signflow.state.session import PlacementSession
from signflow.state.store import FieldStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FieldView:
    handle: str
    base_rect: Rect
    scale: float

    @property
    def rect(self) -> Rect:
        """On-screen rectangle, scaled about the page origin and the field's top-left corner."""
        return self.base_rect.scaled(self.scale)


class ViewSynchronizer:
    def __init__(
        self,
        session: PlacementSession,
        store: FieldStore,
        bus: EventBus,
        scale_epsilon: float = 0.001,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.session = session
        self.store = store
        self.bus = bus
        self.scale_epsilon = scale_epsilon
        self._views: dict[str, FieldView] = {}
        self._loop = loop

        bus.subscribe(PageChanged, self.on_page_changed)
        bus.subscribe(ScaleChanged, self.on_scale_changed)
        for event_type in (FieldAdded, FieldUpdated, FieldConfirmed, FieldRemoved):
            bus.subscribe(event_type, self._on_field_event)

    def views(self) -> list[FieldView]:
        return list(self._views.values())

    def view_for(self, handle: str) -> FieldView | None:
        field = self.store.get(handle)
        if field is None:
            return None
        return self._views.get(field.handle)

    def is_visible(self, handle: str) -> bool:
        return self.view_for(handle) is not None

    def field_at(self, x: float, y: float) -> FormField | None:
        point = Point(x, y)
        for view in reversed(self.views()):
            if view.rect.contains(point):
                return self.store.get(view.handle)
        return None

    def set_page_size(self, page_size: Size) -> None:
        self.session.page_size = page_size
        self.reapply()

    def on_page_changed(self, event: PageChanged) -> asyncio.Task[list[FormField]] | None:
        if event.page == self.session.current_page:
            return None
        logger.debug("view_sync.page_changed", old=self.session.current_page, new=event.page)
        self.session.current_page = event.page
        self.reapply()
        if self.store.has_loaded_page(event.page):
            return None
        loop = self._loop or asyncio.get_running_loop()
        return loop.create_task(self._load(event.page))

    def on_scale_changed(self, event: ScaleChanged) -> None:
        if abs(event.scale - self.session.current_scale) < self.scale_epsilon:
            return
        logger.debug("view_sync.scale_changed", old=self.session.current_scale, new=event.scale)
        self.session.current_scale = event.scale
        self.reapply()

    def reapply(self) -> None:
        """Rebuild the view of every field on the current page from its stored percentages."""
        self._views.clear()
        page_size = self.session.page_size
        if page_size is not None:
            for field in self.store.fields_for_page(self.session.current_page):
                self._views[field.handle] = FieldView(
                    handle=field.handle,
                    base_rect=percent_to_pixels(page_size, field.position),
                    scale=self.session.current_scale,
                )
        self.bus.publish(ViewsChanged(self.session.current_page))

    async def load_current_page(self) -> list[FormField]:
        return await self._load(self.session.current_page)

    async def _load(self, page: int) -> list[FormField]:
        fields = await self.store.load_page(page)
        if page == self.session.current_page:
            self.reapply()
        return fields

    def _on_field_event(self, event) -> None:
        self.reapply()
