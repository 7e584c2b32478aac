"""
Answers the two timetable queries against one Timetable snapshot.

  build_itinerary     trip_id + date → every stop the trip calls at, with
                      normalized arrival/departure times.
  search_by_stations  station names + date → trips that call at the
                      departure station strictly before the arrival
                      station, with the departure/arrival times there.

get_train_info / get_train_list wrap these for the API: they take one
snapshot from a TimetableStore and return plain result records.

Stop order within a trip follows StopOrder:
  ROW            source-table row order (positions are row indexes)
  STOP_SEQUENCE  stable sort by the feed's stop_sequence field
"""

import logging
from datetime import date as Date

from config import STATION_MATCH, STOP_ORDER
from routing.calendar import ServiceDayCache
from routing.times import display_time, normalize_time
from timetable.errors import AmbiguousStationError, NotFoundError
from timetable.models import (
    ItineraryStop,
    StationMatch,
    Stop,
    StopOrder,
    Timetable,
    TrainConnection,
    TrainInfoResult,
    TrainListResult,
)
from timetable.store import TimetableStore

logger = logging.getLogger(__name__)

# Raises ValueError at import on an unknown configured value.
DEFAULT_STOP_ORDER = StopOrder(STOP_ORDER)
DEFAULT_STATION_MATCH = StationMatch(STATION_MATCH)


def build_itinerary(
    timetable: Timetable,
    trip_id: str,
    day: Date,
    stop_order: StopOrder = StopOrder.ROW,
) -> list[ItineraryStop]:
    """
    Return the stops the trip calls at on day.

    Every trips.txt row with this trip_id that runs on day contributes its
    stop times (a feed normally has exactly one).  Missing times are shown
    as "N/A"; a stop_id absent from stops.txt is shown by its id.

    Raises:
        NotFoundError: If no trip with this id runs on day.
    """
    services = ServiceDayCache(day, timetable.calendars)
    matching = [t for t in timetable.trips if t.trip_id == trip_id and services.runs(t)]
    if not matching:
        raise NotFoundError("No trips found for this train number and date")

    stops_by_id = timetable.stops_by_id
    itinerary: list[ItineraryStop] = []
    for trip in matching:
        for st in timetable.trip_stop_times(trip.trip_id, stop_order):
            stop = stops_by_id.get(st.stop_id)
            itinerary.append(ItineraryStop(
                stop_name=stop.stop_name if stop else st.stop_id,
                arrival_time=display_time(st.arrival_time),
                departure_time=display_time(st.departure_time),
            ))
    return itinerary


def resolve_station(
    stops: tuple[Stop, ...],
    name: str,
    policy: StationMatch = StationMatch.LAST,
) -> str | None:
    """
    Map a station name to a stop_id by exact, case-sensitive match.

    Returns None when no stop has this name.

    Raises:
        AmbiguousStationError: Under StationMatch.UNIQUE, if several stops match.
    """
    matches = [s.stop_id for s in stops if s.stop_name == name]
    if not matches:
        return None
    if policy is StationMatch.FIRST:
        return matches[0]
    if policy is StationMatch.UNIQUE and len(set(matches)) > 1:
        raise AmbiguousStationError(name, matches)
    return matches[-1]


def search_by_stations(
    timetable: Timetable,
    departure_name: str,
    arrival_name: str,
    day: Date,
    stop_order: StopOrder = StopOrder.ROW,
    station_match: StationMatch = StationMatch.LAST,
) -> list[TrainConnection]:
    """
    Find trips running on day that call at departure_name before arrival_name.

    For each running trip the stop times are scanned once, keeping the first
    call at each station.  A trip qualifies when both stations were seen,
    both times are non-empty, and the departure call comes strictly before
    the arrival call.

    Raises:
        NotFoundError: If a station is unknown or no trip qualifies.
        AmbiguousStationError: See resolve_station.
    """
    departure_id = resolve_station(timetable.stops, departure_name, station_match)
    arrival_id = resolve_station(timetable.stops, arrival_name, station_match)
    if departure_id is None or arrival_id is None:
        raise NotFoundError("Departure or Arrival station not found")

    services = ServiceDayCache(day, timetable.calendars)
    connections: list[TrainConnection] = []
    for trip in timetable.trips:
        if not services.runs(trip):
            continue

        departure_pos = arrival_pos = None
        departure_time = arrival_time = ""
        for pos, st in enumerate(timetable.trip_stop_times(trip.trip_id, stop_order)):
            if departure_pos is None and st.stop_id == departure_id:
                departure_pos = pos
                departure_time = normalize_time(st.departure_time)
            if arrival_pos is None and st.stop_id == arrival_id:
                arrival_pos = pos
                arrival_time = normalize_time(st.arrival_time)
            if departure_pos is not None and arrival_pos is not None:
                break

        if departure_pos is None or arrival_pos is None:
            continue
        if not departure_time or not arrival_time:
            continue
        if departure_pos >= arrival_pos:
            continue
        connections.append(TrainConnection(
            trip_id=trip.trip_id,
            departure_time=departure_time,
            arrival_time=arrival_time,
        ))

    if not connections:
        raise NotFoundError("No trains found containing both specified stations")
    logger.info(
        "Found %d trains from %s to %s on %s.",
        len(connections), departure_name, arrival_name, day,
    )
    return connections


def search_stops(timetable: Timetable, query: str, limit: int = 20) -> list[Stop]:
    """Stops whose name contains query, case-insensitively, in feed order."""
    needle = query.casefold()
    return [s for s in timetable.stops if needle in s.stop_name.casefold()][:limit]


# ---------------------------------------------------------------------------
# Store-backed operations used by the API
# ---------------------------------------------------------------------------

def get_train_info(
    store: TimetableStore,
    trip_id: str,
    day: Date,
    stop_order: StopOrder | str | None = None,
) -> TrainInfoResult:
    """Itinerary of trip_id on day, from the store's current snapshot."""
    timetable = store.snapshot()
    stops = build_itinerary(timetable, trip_id, day, StopOrder(stop_order or DEFAULT_STOP_ORDER))
    return TrainInfoResult(train_number=trip_id, date=day.isoformat(), stops=stops)


def get_train_list(
    store: TimetableStore,
    departure_station: str,
    arrival_station: str,
    day: Date,
    stop_order: StopOrder | str | None = None,
    station_match: StationMatch | str | None = None,
) -> TrainListResult:
    """Trains from departure_station to arrival_station on day."""
    timetable = store.snapshot()
    trains = search_by_stations(
        timetable,
        departure_station,
        arrival_station,
        day,
        stop_order=StopOrder(stop_order or DEFAULT_STOP_ORDER),
        station_match=StationMatch(station_match or DEFAULT_STATION_MATCH),
    )
    return TrainListResult(
        departure_station=departure_station,
        arrival_station=arrival_station,
        date=day.isoformat(),
        trains=trains,
    )
