from __future__ import annotations

from typing import Sequence

import numpy as np

from ..common.validators import INVALID_DESCRIPTOR_MESSAGE
from ..core.constants import (
    DESCRIPTOR_LENGTH,
    FACE_MATCH_THRESHOLD,
    MARGINAL_MATCH_CEILING,
    STRONG_MISMATCH_FLOOR,
)
from ..core.enums import MatchBand
from ..core.exceptions import ValidationError
from .model import MatchDecision

_MESSAGES = {
    MatchBand.STRONG_MISMATCH: "This face does not match the registered employee. Access denied.",
    MatchBand.MISMATCH: "Face verification failed. This doesn't appear to be the registered employee.",
    MatchBand.MARGINAL: "Face didn't match clearly. Try better lighting or re-register your face.",
    MatchBand.ACCEPT: "Verified successfully!",
}


def _as_vector(values: Sequence[float]) -> np.ndarray:
    vec = np.asarray(values, dtype=np.float64)
    if vec.shape != (DESCRIPTOR_LENGTH,):
        raise ValidationError(INVALID_DESCRIPTOR_MESSAGE)
    return vec


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """L2 distance between two 128-d face descriptors."""
    return float(np.linalg.norm(_as_vector(a) - _as_vector(b)))


def is_match(distance: float, threshold: float = FACE_MATCH_THRESHOLD) -> bool:
    return distance < threshold


def grade(distance: float, threshold: float = FACE_MATCH_THRESHOLD) -> MatchBand:
    if distance > STRONG_MISMATCH_FLOOR:
        return MatchBand.STRONG_MISMATCH
    if distance > MARGINAL_MATCH_CEILING:
        return MatchBand.MISMATCH
    if not is_match(distance, threshold):
        return MatchBand.MARGINAL
    return MatchBand.ACCEPT


def mismatch_message(band: MatchBand) -> str:
    return _MESSAGES[band]


class FaceMatcher:
    """Euclidean distance plus a fixed threshold; lower is stricter."""

    def __init__(self, threshold: float = FACE_MATCH_THRESHOLD):
        self.threshold = float(threshold)

    def compare(self, candidate: Sequence[float], enrolled: Sequence[float]) -> MatchDecision:
        distance = euclidean_distance(candidate, enrolled)
        return MatchDecision(distance=distance, band=grade(distance, self.threshold))
