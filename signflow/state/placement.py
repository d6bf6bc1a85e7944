"""Pointer/keyboard gesture handling for drawing and resizing fields.

States: ``IDLE -> TYPE_SELECTED -> DRAWING -> IDLE`` for placement and
``IDLE -> RESIZING -> IDLE`` for resizing. A resize started while a field type
is selected returns to ``TYPE_SELECTED``. Only one gesture is active at a time;
pointer-down events are ignored while a gesture is in progress.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

import structlog

from signflow.geometry.policy import DEFAULT_POLICY, Handle, PlacementPolicy, fit_to_surface
from signflow.geometry.shapes import Point, Rect, Size
from signflow.geometry.transform import percent_to_pixels, pixels_to_percent
from signflow.model.field import FieldDraft, FieldType, FormField
from signflow.state.operations import PersistResult
from signflow.state.session import PlacementSession
from signflow.state.store import FieldStore

logger = structlog.get_logger(__name__)


class PlacementState(str, Enum):
    IDLE = "idle"
    TYPE_SELECTED = "type_selected"
    DRAWING = "drawing"
    RESIZING = "resizing"


@dataclass(slots=True)
class DrawGesture:
    anchor: Point
    current: Point

    @property
    def rect(self) -> Rect:
        return Rect.normalized(self.anchor, self.current)


@dataclass(slots=True)
class ResizeGesture:
    handle: str
    grip: Handle
    start_point: Point
    start_rect: Rect
    live_rect: Rect


class PlacementStateMachine:
    def __init__(
        self,
        session: PlacementSession,
        store: FieldStore,
        policy: PlacementPolicy = DEFAULT_POLICY,
    ) -> None:
        self.session = session
        self.store = store
        self.policy = policy
        self._state = PlacementState.IDLE
        self._draw: DrawGesture | None = None
        self._resize: ResizeGesture | None = None
        self.last_task: asyncio.Task[PersistResult] | None = None

    @property
    def state(self) -> PlacementState:
        return self._state

    @property
    def gesture_active(self) -> bool:
        return self._state in (PlacementState.DRAWING, PlacementState.RESIZING)

    @property
    def toolbar_enabled(self) -> bool:
        return self.session.signer_selected

    @property
    def selection_rect(self) -> Rect | None:
        """Live rectangle of the gesture in surface pixels, if any."""
        if self._draw is not None:
            return self._draw.rect
        if self._resize is not None:
            return self._resize.live_rect
        return None

    @property
    def resizing_handle(self) -> str | None:
        return self._resize.handle if self._resize is not None else None

    def select_signer(self, signer_id: str | None) -> None:
        self.session.selected_signer_id = signer_id or None
        if not self.session.signer_selected and self._state is PlacementState.TYPE_SELECTED:
            self.clear_field_type()

    def select_field_type(self, field_type: FieldType | str) -> bool:
        if not self.session.signer_selected:
            logger.debug("placement.type_rejected", reason="no_signer")
            return False
        if self.gesture_active:
            return False
        self.session.selected_field_type = FieldType(field_type)
        self._state = PlacementState.TYPE_SELECTED
        return True

    def clear_field_type(self) -> None:
        self.session.selected_field_type = None
        if self._state is PlacementState.TYPE_SELECTED:
            self._state = PlacementState.IDLE

    def pointer_down(self, point: Point, handle: str | None = None, grip: Handle | None = None) -> bool:
        if self.gesture_active:
            return False
        if handle is not None and grip is not None:
            return self.begin_resize(handle, grip, point)
        if self._state is not PlacementState.TYPE_SELECTED:
            return False
        surface = self.session.surface
        if surface is None or not surface_rect(surface).contains(point):
            logger.debug("placement.pointer_rejected", x=point.x, y=point.y)
            return False
        self._draw = DrawGesture(anchor=point, current=point)
        self._state = PlacementState.DRAWING
        return True

    def begin_resize(self, handle: str, grip: Handle, point: Point) -> bool:
        if self.gesture_active:
            return False
        field = self.store.get(handle)
        surface = self.session.surface
        if field is None or surface is None:
            return False
        start_rect = percent_to_pixels(surface, field.position)
        self._draw = None
        self._resize = ResizeGesture(
            handle=field.handle,
            grip=grip,
            start_point=point,
            start_rect=start_rect,
            live_rect=start_rect,
        )
        self._state = PlacementState.RESIZING
        return True

    def pointer_move(self, point: Point) -> None:
        if self._state is PlacementState.DRAWING and self._draw is not None:
            self._draw.current = point
        elif self._state is PlacementState.RESIZING and self._resize is not None:
            gesture = self._resize
            gesture.live_rect = self.policy.resize(
                gesture.start_rect,
                gesture.grip,
                point.x - gesture.start_point.x,
                point.y - gesture.start_point.y,
                self.session.surface,
            )

    def pointer_up(self, point: Point) -> FormField | None:
        if self._state is PlacementState.DRAWING:
            return self._commit_draw(point)
        if self._state is PlacementState.RESIZING:
            self.pointer_move(point)
            return self._commit_resize()
        return None

    def cancel(self) -> None:
        """Abort the active gesture, or drop the selected field type when idle."""
        if self._state is PlacementState.DRAWING:
            self._draw = None
            self._state = PlacementState.IDLE
            self.session.selected_field_type = None
            logger.debug("placement.draw_cancelled")
        elif self._state is PlacementState.RESIZING:
            self._resize = None
            self._state = self._resting_state()
            logger.debug("placement.resize_cancelled")
        else:
            self.clear_field_type()

    def _commit_draw(self, point: Point) -> FormField | None:
        gesture = self._draw
        surface = self.session.surface
        field_type = self.session.selected_field_type
        signer_id = self.session.selected_signer_id
        self._draw = None
        self._state = PlacementState.IDLE
        if gesture is None or surface is None or field_type is None or not signer_id:
            return None

        gesture.current = point
        pixels = self.policy.resolve_drawn_rect(gesture.anchor, gesture.current, field_type)
        pixels = fit_to_surface(pixels, surface)
        draft = FieldDraft(
            field_type=field_type,
            page_number=self.session.current_page,
            assigned_signer_id=signer_id,
            position=pixels_to_percent(surface, pixels),
        )
        field = self.store.add_local(draft)
        self.last_task = self.store.persist(field.handle)
        logger.info(
            "placement.field_created",
            handle=field.handle,
            field_type=field_type.value,
            page=field.page_number,
        )

        if self.session.repeat_placement:
            self._state = PlacementState.TYPE_SELECTED
        else:
            self.session.selected_field_type = None
        return field

    def _commit_resize(self) -> FormField | None:
        gesture = self._resize
        surface = self.session.surface
        self._resize = None
        self._state = self._resting_state()
        if gesture is None or surface is None:
            return None
        if gesture.live_rect == gesture.start_rect:
            return self.store.get(gesture.handle)
        position = pixels_to_percent(surface, gesture.live_rect)
        self.last_task = self.store.update_position(gesture.handle, position)
        logger.info("placement.field_resized", handle=gesture.handle)
        return self.store.get(gesture.handle)

    def _resting_state(self) -> PlacementState:
        if self.session.selected_field_type is not None:
            return PlacementState.TYPE_SELECTED
        return PlacementState.IDLE


def surface_rect(surface: Size) -> Rect:
    return Rect(0.0, 0.0, surface.width, surface.height)
