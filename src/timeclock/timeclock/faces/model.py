from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import MatchBand


@dataclass(frozen=True)
class FaceDescriptor:
    """One enrolled face per employee; re-enrollment overwrites it."""

    employee_id: str
    descriptor: tuple[float, ...]
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class MatchDecision:
    distance: float
    band: MatchBand

    @property
    def matched(self) -> bool:
        return self.band is MatchBand.ACCEPT


@dataclass(frozen=True)
class VerifyOutcome:
    match: bool
    enrolled: bool
    distance: Optional[float] = None
    band: Optional[MatchBand] = None

    def to_dict(self) -> dict:
        out: dict = {"match": self.match, "enrolled": self.enrolled}
        if self.distance is not None:
            out["distance"] = self.distance
        if self.band is not None:
            out["band"] = self.band.value
        return out
