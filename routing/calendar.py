"""
Service-calendar validity: does a trip run on a given date?

A calendar.txt entry authorizes a date when the date lies inside
[start_date, end_date] (inclusive) and the entry's weekday flag for that
date is set.  Weekdays are Monday-indexed (Monday=0 … Sunday=6), matching
both calendar.txt column order and date.weekday().
"""

import logging
from datetime import date as Date, datetime
from typing import Iterable, Optional

from timetable.models import ServiceCalendar, Trip

logger = logging.getLogger(__name__)


def parse_gtfs_date(value: str) -> Optional[Date]:
    """Parse a YYYYMMDD date; None if it does not parse."""
    try:
        return datetime.strptime(value, "%Y%m%d").date()
    except ValueError:
        return None


def is_service_active(service_id: str, day: Date, calendars: Iterable[ServiceCalendar]) -> bool:
    """
    True if any calendar entry for service_id authorizes day.

    Every entry is scanned: a malformed feed may repeat a service_id, and
    one out-of-range entry must not hide another that matches.  Entries
    with unparsable bounds are skipped.
    """
    for cal in calendars:
        if cal.service_id != service_id:
            continue
        start = parse_gtfs_date(cal.start_date)
        end = parse_gtfs_date(cal.end_date)
        if start is None or end is None:
            logger.debug(
                "Service %s: skipping calendar entry with unparsable bounds (%r - %r).",
                service_id, cal.start_date, cal.end_date,
            )
            continue
        if day < start or day > end:
            logger.debug(
                "Service %s not valid on %s: outside service date range (%s - %s).",
                service_id, day, start, end,
            )
            continue
        if cal.weekdays[day.weekday()]:
            return True
        logger.debug(
            "Service %s not valid on %s: service does not run on %s.",
            service_id, day, day.strftime("%A"),
        )
    return False


def is_trip_valid(trip: Trip, day: Date, calendars: Iterable[ServiceCalendar]) -> bool:
    """True if the trip's service calendar says it operates on day."""
    return is_service_active(trip.service_id, day, calendars)


class ServiceDayCache:
    """
    Per-query memo of is_service_active results for one date.

    Trips sharing a service_id get the same answer, so a query scanning
    every trip only evaluates each service pattern once.
    """

    __slots__ = ("day", "calendars", "_active")

    def __init__(self, day: Date, calendars: Iterable[ServiceCalendar]) -> None:
        self.day = day
        self.calendars = tuple(calendars)
        self._active: dict[str, bool] = {}

    def runs(self, trip: Trip) -> bool:
        active = self._active.get(trip.service_id)
        if active is None:
            active = is_trip_valid(trip, self.day, self.calendars)
            self._active[trip.service_id] = active
        return active
