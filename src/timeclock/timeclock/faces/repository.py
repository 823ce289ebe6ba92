from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import FaceDescriptor


class FaceStore(Protocol):
    def get(self, employee_id: str) -> Optional[FaceDescriptor]:
        raise NotImplementedError

    def save(self, employee_id: str, descriptor: Sequence[float], *, updated_at: datetime) -> None:
        """Create or overwrite; descriptors are not versioned."""

        raise NotImplementedError

    def delete(self, employee_id: str) -> bool:
        raise NotImplementedError
