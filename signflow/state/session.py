"""Ephemeral placement session state for the open document."""

from __future__ import annotations

from dataclasses import dataclass

from signflow.geometry.shapes import Size
from signflow.model.field import FieldType


@dataclass(slots=True)
class PlacementSession:
    selected_field_type: FieldType | None = None
    selected_signer_id: str | None = None
    current_page: int = 1
    current_scale: float = 1.0
    page_size: Size | None = None
    repeat_placement: bool = False

    @property
    def signer_selected(self) -> bool:
        return bool(self.selected_signer_id)

    @property
    def surface(self) -> Size | None:
        """Size of the page as rendered at the current scale."""
        if self.page_size is None:
            return None
        return self.page_size.scaled(self.current_scale)
