from __future__ import annotations

import math
from numbers import Real
from typing import Sequence

from ..core.constants import DESCRIPTOR_LENGTH
from ..core.exceptions import ValidationError

INVALID_DESCRIPTOR_MESSAGE = f"Invalid descriptor (must be {DESCRIPTOR_LENGTH} numbers)"


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_descriptor(values: Sequence[float]) -> list[float]:
    """Return the descriptor as a list of floats or raise ValidationError."""
    if values is None or isinstance(values, (str, bytes)):
        raise ValidationError(INVALID_DESCRIPTOR_MESSAGE)
    try:
        items = list(values)
    except TypeError:
        raise ValidationError(INVALID_DESCRIPTOR_MESSAGE)
    if len(items) != DESCRIPTOR_LENGTH:
        raise ValidationError(INVALID_DESCRIPTOR_MESSAGE)

    out: list[float] = []
    for v in items:
        if isinstance(v, bool) or not isinstance(v, Real):
            raise ValidationError(INVALID_DESCRIPTOR_MESSAGE)
        f = float(v)
        if not math.isfinite(f):
            raise ValidationError(INVALID_DESCRIPTOR_MESSAGE)
        out.append(f)
    return out
