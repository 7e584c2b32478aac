"""
In-memory table model for the GTFS static feed.

One frozen dataclass per source row:
  stops.txt       → Stop
  stop_times.txt  → StopTime
  trips.txt       → Trip
  calendar.txt    → ServiceCalendar

GTFS time fields (arrival_time, departure_time) are kept as raw HH:MM:SS
strings because GTFS allows values >= 24:00:00 for trips crossing
midnight.  routing.times folds them back onto a 0–23 clock for display.

A Timetable is one immutable snapshot of all four tables.  Queries receive
a snapshot and never mutate it, so snapshots can be shared between
concurrent requests.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import cached_property


class MalformedRowPolicy(str, Enum):
    """What the loader does with a stop_times row whose stop_sequence is not an integer."""
    DEFAULT_FIELD = "default_field"  # keep the row, stop_sequence = 0
    SKIP_ROW = "skip_row"            # drop the row


class StopOrder(str, Enum):
    """Order in which a trip's stop times are visited."""
    ROW = "row"                      # source-table row order
    STOP_SEQUENCE = "stop_sequence"  # stable sort by stop_sequence


class StationMatch(str, Enum):
    """How a station name that matches several stops is resolved."""
    LAST = "last"
    FIRST = "first"
    UNIQUE = "unique"


@dataclass(frozen=True)
class Stop:
    stop_id: str
    stop_name: str
    lat: str  # opaque, not interpreted numerically
    lon: str


@dataclass(frozen=True)
class StopTime:
    trip_id: str
    stop_id: str
    arrival_time: str    # HH:MM:SS (may exceed 24:00:00, may be empty)
    departure_time: str  # HH:MM:SS (may exceed 24:00:00, may be empty)
    stop_sequence: int


@dataclass(frozen=True)
class Trip:
    trip_id: str
    route_id: str
    service_id: str


@dataclass(frozen=True)
class ServiceCalendar:
    service_id: str
    start_date: str                # YYYYMMDD, inclusive
    end_date: str                  # YYYYMMDD, inclusive
    weekdays: tuple[bool, ...]     # Monday .. Sunday


@dataclass(frozen=True)
class Timetable:
    stops: tuple[Stop, ...]
    stop_times: tuple[StopTime, ...]
    trips: tuple[Trip, ...]
    calendars: tuple[ServiceCalendar, ...]
    source: str = ""
    loaded_at: datetime | None = None

    @cached_property
    def stops_by_id(self) -> dict[str, Stop]:
        """Stop lookup by stop_id; a repeated stop_id resolves to its last row."""
        return {stop.stop_id: stop for stop in self.stops}

    @cached_property
    def stop_times_by_trip(self) -> dict[str, tuple[StopTime, ...]]:
        """Stop times grouped by trip_id, each group in source row order."""
        grouped: dict[str, list[StopTime]] = defaultdict(list)
        for stop_time in self.stop_times:
            grouped[stop_time.trip_id].append(stop_time)
        return {trip_id: tuple(rows) for trip_id, rows in grouped.items()}

    def trip_stop_times(self, trip_id: str, order: StopOrder = StopOrder.ROW) -> tuple[StopTime, ...]:
        rows = self.stop_times_by_trip.get(trip_id, ())
        if order is StopOrder.STOP_SEQUENCE:
            return tuple(sorted(rows, key=lambda st: st.stop_sequence))
        return rows


# ---------------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ItineraryStop:
    stop_name: str
    arrival_time: str
    departure_time: str


@dataclass(frozen=True)
class TrainConnection:
    trip_id: str
    departure_time: str
    arrival_time: str


@dataclass(frozen=True)
class TrainInfoResult:
    train_number: str
    date: str  # YYYY-MM-DD
    stops: list[ItineraryStop]


@dataclass(frozen=True)
class TrainListResult:
    departure_station: str
    arrival_station: str
    date: str  # YYYY-MM-DD
    trains: list[TrainConnection]
