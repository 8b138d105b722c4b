import pytest

from gpukube.utils.duration_utils import parse_duration, parse_optional_duration


@pytest.mark.parametrize(
    "value,expected",
    [("500ms", 0.5), ("10s", 10.0), ("1m", 60.0), ("2h", 7200.0), ("1.5s", 1.5), ("15", 15.0), (3, 3.0)],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "10d", "abc", "0s", "-5"])
def test_parse_duration_rejects_invalid(value):
    with pytest.raises(ValueError):
        parse_duration(value)


def test_parse_optional_duration():
    assert parse_optional_duration(None) is None
    assert parse_optional_duration("  ") is None
    assert parse_optional_duration("2s") == 2.0
