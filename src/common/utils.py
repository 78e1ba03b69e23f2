import re
import typing as t
from datetime import timedelta

import structlog

logger = structlog.get_logger(__name__)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}


def parse_duration(value: str | int | float | timedelta | None) -> timedelta | None:
    """Parse a duration from configuration.

    Accepts Go-style duration strings ("30s", "1h30m", "250ms") or a plain number of seconds.

    Args:
        value: The raw value.

    Returns:
        The parsed duration, or None when the value is blank or malformed.

    Example:
        >>> parse_duration("1h30m")
        datetime.timedelta(seconds=5400)
        >>> parse_duration("45")
        datetime.timedelta(seconds=45)
    """
    if value is None:
        return None
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    raw = value.strip().lower()
    if not raw:
        return None
    if re.fullmatch(r"\d+", raw):
        return timedelta(seconds=int(raw))

    parts = _DURATION_PART.findall(raw)
    if not parts or "".join(number + unit for number, unit in parts) != raw:
        return None
    return sum((float(number) * _DURATION_UNITS[unit] for number, unit in parts), timedelta())


def duration_setting(default: timedelta) -> t.Callable[[str], timedelta]:
    """Build a python-decouple ``cast`` for duration settings.

    Malformed values are logged and replaced by the default.
    """

    def cast(value: str) -> timedelta:
        parsed = parse_duration(value)
        if parsed is None:
            if str(value).strip():
                logger.warning("invalid duration setting, using default", value=value, default=str(default))
            return default
        return parsed

    return cast


def format_duration(value: timedelta) -> str:
    """Render a duration rounded to whole seconds, e.g. ``1h2m3s``."""
    total = int(round(value.total_seconds()))
    sign = "-" if total < 0 else ""
    hours, remainder = divmod(abs(total), 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"
