import math

import pytest

from src.timeclock.timeclock.core.enums import MatchBand
from src.timeclock.timeclock.core.exceptions import ValidationError
from src.timeclock.timeclock.faces.matcher import FaceMatcher, euclidean_distance, grade, is_match, mismatch_message
from tests.fakes import descriptor


def test_distance_of_identical_descriptors_is_zero():
    assert euclidean_distance(descriptor(), descriptor()) == 0.0


def test_distance_is_euclidean():
    assert euclidean_distance(descriptor(), descriptor(0.1)) == pytest.approx(0.1 * math.sqrt(128))


def test_threshold_is_strict():
    enrolled = [0.0] * 128
    at_threshold = [0.45] + [0.0] * 127
    decision = FaceMatcher().compare(at_threshold, enrolled)
    assert decision.distance == pytest.approx(0.45)
    assert not decision.matched
    assert is_match(0.4499)


@pytest.mark.parametrize(
    "distance, band",
    [
        (0.2, MatchBand.ACCEPT),
        (0.5, MatchBand.MARGINAL),
        (0.6, MatchBand.MISMATCH),
        (0.9, MatchBand.STRONG_MISMATCH),
    ],
)
def test_grade_bands(distance, band):
    assert grade(distance) is band


def test_mismatch_messages():
    assert mismatch_message(MatchBand.STRONG_MISMATCH) == "This face does not match the registered employee. Access denied."
    assert mismatch_message(MatchBand.MARGINAL).startswith("Face didn't match clearly")


def test_wrong_length_is_rejected():
    with pytest.raises(ValidationError):
        euclidean_distance([0.0] * 127, [0.0] * 128)
