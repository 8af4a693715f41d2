"""Duration helpers for the compact ISO-8601 notation used by the Data API."""

import re
from typing import Optional

DEFAULT_DURATION = 300  # seconds

# PT#H#M#S, every component optional. Days ("P1DT...") are folded into hours.
_ISO_DURATION_RE = re.compile(
    r'^P(?:(?P<days>\d+)D)?'
    r'(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$'
)


def parse_iso_duration(raw: Optional[str], default: int = DEFAULT_DURATION) -> int:
    """Parse "PT1H2M3S"-style strings into whole seconds.

    Each missing component counts as zero ("PT5S" -> 5, "PT1H" -> 3600).
    Returns `default` when the string is absent or does not match.
    """
    if not raw or not isinstance(raw, str):
        return default
    m = _ISO_DURATION_RE.match(raw.strip().upper())
    if not m or raw.strip().upper() in ("P", "PT"):
        return default
    days = int(m.group("days") or 0)
    hours = int(m.group("hours") or 0)
    minutes = int(m.group("minutes") or 0)
    seconds = int(m.group("seconds") or 0)
    return days * 86400 + hours * 3600 + minutes * 60 + seconds


def coerce_duration(value, default: int = DEFAULT_DURATION) -> int:
    """Normalize a duration from either source (int seconds or ISO string)."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value) if value >= 0 else default
    return parse_iso_duration(value, default)

