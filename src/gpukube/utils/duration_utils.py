import re
from typing import Optional, Union

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)$")
_MULTIPLIERS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Union[str, int, float]) -> float:
    """
    Parses a Prometheus-style duration string ('500ms', '10s', '1m', '2h')
    into seconds. Bare numbers are taken as seconds.

    Raises:
        ValueError: If the value does not match any supported format.
    """
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        match = _DURATION_RE.match(text)
        if match:
            seconds = float(match.group(1)) * _MULTIPLIERS[match.group(2)]
        else:
            try:
                seconds = float(text)
            except ValueError:
                raise ValueError(f"Invalid duration format: '{value}'. Use 'ms', 's', 'm', or 'h'.") from None

    if seconds <= 0:
        raise ValueError(f"Duration must be positive, got '{value}'.")
    return seconds


def parse_optional_duration(value: Optional[str]) -> Optional[float]:
    """Same as parse_duration, but empty or missing values yield None."""
    if value is None or str(value).strip() == "":
        return None
    return parse_duration(value)
