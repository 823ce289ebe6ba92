from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable

from ..model import BreakRecord


class HoursCalculator(ABC):
    """Calculator interface (Strategy Pattern for worked hours)."""

    @abstractmethod
    def calculate(self, clock_in: datetime, clock_out: datetime, breaks: Iterable[BreakRecord]) -> float:
        raise NotImplementedError
