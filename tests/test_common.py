import pytest

from src.timeclock.timeclock.common.datetime_utils import (
    normalize_date_string,
    parse_instant,
    previous_date_key,
    require_date_key,
)
from src.timeclock.timeclock.common.validators import require_descriptor
from src.timeclock.timeclock.core.exceptions import ValidationError
from src.timeclock.timeclock.core.result import OperationResult


def test_date_keys():
    assert require_date_key(" 2025-03-01 ") == "2025-03-01"
    assert previous_date_key("2025-03-01") == "2025-02-28"
    with pytest.raises(ValidationError):
        require_date_key("2025-02-30")
    with pytest.raises(ValidationError):
        require_date_key(None)


def test_normalize_date_string():
    assert normalize_date_string("2025-01-06") == "2025-01-06"
    assert normalize_date_string("2025-01-06T23:30:00Z") == "2025-01-06"
    assert normalize_date_string("not a date") == "not a date"


def test_parse_instant_defaults_to_utc():
    assert parse_instant("2025-01-06T09:00:00").utcoffset().total_seconds() == 0
    assert parse_instant("") is None


def test_require_descriptor():
    assert require_descriptor(range(128)) == [float(i) for i in range(128)]
    for bad in ([True] * 128, [float("nan")] * 128, "x" * 128, None):
        with pytest.raises(ValidationError):
            require_descriptor(bad)


def test_operation_result_from_exception():
    result = OperationResult.from_exception(ValidationError("bad"))
    assert result.to_dict() == {"success": False, "error": "bad", "code": "ValidationError"}
    assert OperationResult.ok().to_dict() == {"success": True}
