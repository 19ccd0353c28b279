import re
from datetime import timedelta

from .errors import InvalidDurationError

_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}

# "ms" must be tried before "m"
_PART = re.compile(r"(\d+(?:\.\d+)?|\.\d+)(ms|s|m|h|d)")


def parse_duration(value: str) -> timedelta:
    """Parse a compact duration such as "15m", "1h30m", "1.5h" or "2d".

    Raises InvalidDurationError for anything else, including zero durations.
    """
    if not isinstance(value, str):
        raise InvalidDurationError(str(value))
    text = value.strip()
    if not text:
        raise InvalidDurationError(value)

    total = timedelta()
    pos = 0
    for match in _PART.finditer(text):
        if match.start() != pos:
            raise InvalidDurationError(value)
        number, unit = match.groups()
        try:
            total += float(number) * _UNITS[unit]
        except OverflowError:
            raise InvalidDurationError(value, reason="duration out of range")
        pos = match.end()
    if pos != len(text):
        raise InvalidDurationError(value)

    if total <= timedelta():
        raise InvalidDurationError(value, reason="duration must be positive")
    return total
