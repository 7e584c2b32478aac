"""
GTFS clock-time helpers.

GTFS encodes service after midnight with hours >= 24 ("25:10:00" is
01:10 the next morning) so times stay increasing within one service day.
"""

NOT_AVAILABLE = "N/A"


def normalize_time(raw: str) -> str:
    """
    Fold an HH:MM:SS time with HH >= 24 back onto the 0–23 clock.

    Anything that is not three colon-separated parts with an integer hour is
    returned unchanged.  Minutes and seconds are passed through verbatim;
    the hour is always re-emitted zero-padded to two digits.
    """
    parts = raw.split(":")
    if len(parts) != 3:
        return raw
    try:
        hours = int(parts[0])
    except ValueError:
        return raw
    if hours >= 24:
        hours -= 24
    return f"{hours:02d}:{parts[1]}:{parts[2]}"


def display_time(raw: str) -> str:
    """Normalized time, or NOT_AVAILABLE when the stop has no time for this event."""
    return normalize_time(raw) or NOT_AVAILABLE
