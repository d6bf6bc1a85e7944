"""Signer roster used to colour-code fields by signer."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

SIGNER_COLORS = (
    "#1565c0",
    "#2e7d32",
    "#ef6c00",
    "#6a1b9a",
    "#00838f",
    "#ad1457",
)
UNASSIGNED_COLOR = "#616161"


@dataclass(frozen=True, slots=True)
class Signer:
    id: str
    name: str
    email: str = ""
    sign_order: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Signer:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            email=str(data.get("email") or ""),
            sign_order=int(data.get("sign_order", 0)),
        )


class SignerRoster:
    def __init__(self, signers: Iterable[Signer] = ()) -> None:
        self._signers = sorted(signers, key=lambda signer: signer.sign_order)

    def __iter__(self):
        return iter(self._signers)

    def __len__(self) -> int:
        return len(self._signers)

    def get(self, signer_id: str | None) -> Signer | None:
        for signer in self._signers:
            if signer.id == str(signer_id):
                return signer
        return None

    def index_of(self, signer_id: str | None) -> int:
        """1-based display position of the signer, 0 when unknown."""
        for index, signer in enumerate(self._signers, start=1):
            if signer.id == str(signer_id):
                return index
        return 0

    def color_for(self, signer_id: str | None) -> str:
        index = self.index_of(signer_id)
        if index == 0:
            return UNASSIGNED_COLOR
        return SIGNER_COLORS[(index - 1) % len(SIGNER_COLORS)]
