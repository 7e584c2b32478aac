"""
Reads the GTFS static feed into an immutable in-memory Timetable.

Feed contents used:
  stops.txt       → Stop
  stop_times.txt  → StopTime
  trips.txt       → Trip
  calendar.txt    → ServiceCalendar

The feed may be a directory of .txt files or a GTFS .zip archive.  Columns
are looked up by header name.  A missing file, an empty file, a header that
lacks a required column, a data row whose field count differs from the
header's, or a CSV the tokenizer rejects raises LoadError naming the table.
Individual stop_times rows whose stop_sequence is not a decimal integer are
handled by MalformedRowPolicy instead of failing the load.
"""

import csv
import io
import logging
import re
import zipfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Iterator, Optional

import pandas as pd

from timetable.errors import LoadError
from timetable.models import (
    MalformedRowPolicy, ServiceCalendar, Stop, StopTime, Timetable, Trip,
)

logger = logging.getLogger(__name__)

STOPS_FILE = "stops.txt"
STOP_TIMES_FILE = "stop_times.txt"
TRIPS_FILE = "trips.txt"
CALENDAR_FILE = "calendar.txt"

STOP_COLUMNS = ("stop_id", "stop_name", "stop_lat", "stop_lon")
STOP_TIME_COLUMNS = ("trip_id", "stop_id", "arrival_time", "departure_time", "stop_sequence")
TRIP_COLUMNS = ("trip_id", "route_id", "service_id")
WEEKDAY_COLUMNS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)
CALENDAR_COLUMNS = ("service_id", *WEEKDAY_COLUMNS, "start_date", "end_date")

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT64_MIN, _INT64_MAX = -(2 ** 63), 2 ** 63 - 1


@contextmanager
def _open_table(gtfs_path: Path, filename: str) -> Iterator[IO[bytes]]:
    """Open one feed file from a directory or a .zip archive."""
    if gtfs_path.suffix.lower() == ".zip":
        with zipfile.ZipFile(gtfs_path) as zf:
            with zf.open(filename) as f:
                yield f
    else:
        with open(gtfs_path / filename, "rb") as f:
            yield f


def read_table(gtfs_path: Path, filename: str, required: tuple[str, ...]) -> pd.DataFrame:
    """
    Read one feed file as an all-string DataFrame and check its header.

    Empty cells stay empty strings ("" is a legitimate arrival_time in GTFS).
    Every data row must have exactly as many fields as the header.
    """
    try:
        with _open_table(Path(gtfs_path), filename) as f:
            text = f.read().decode("utf-8-sig")
    except (OSError, KeyError, zipfile.BadZipFile, UnicodeDecodeError) as exc:
        raise LoadError(filename, f"cannot read source: {exc}") from exc

    _check_row_widths(filename, text)
    try:
        df = pd.read_csv(
            io.StringIO(text), dtype=str, keep_default_na=False, index_col=False,
        ).fillna("")
    except pd.errors.EmptyDataError as exc:
        raise LoadError(filename, "file is empty (no header row)") from exc
    except pd.errors.ParserError as exc:
        raise LoadError(filename, f"malformed CSV: {exc}") from exc

    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise LoadError(filename, f"header is missing required column(s): {', '.join(missing)}")
    return df


def _check_row_widths(filename: str, text: str) -> None:
    # pandas pads short rows with empty cells, so widths are checked on the raw records.
    reader = csv.reader(io.StringIO(text))
    try:
        header = next(reader, None)
        if header is None:
            return
        for row in reader:
            if row and len(row) != len(header):
                raise LoadError(
                    filename,
                    f"row {reader.line_num} has {len(row)} fields, expected {len(header)}",
                )
    except csv.Error as exc:
        raise LoadError(filename, f"malformed CSV: {exc}") from exc


def load_stops(gtfs_path: Path) -> tuple[Stop, ...]:
    df = read_table(gtfs_path, STOPS_FILE, STOP_COLUMNS)
    return _parse_stops(df)


def load_stop_times(
    gtfs_path: Path,
    malformed_rows: MalformedRowPolicy = MalformedRowPolicy.DEFAULT_FIELD,
) -> tuple[StopTime, ...]:
    df = read_table(gtfs_path, STOP_TIMES_FILE, STOP_TIME_COLUMNS)
    return _parse_stop_times(df, malformed_rows)


def load_trips(gtfs_path: Path) -> tuple[Trip, ...]:
    df = read_table(gtfs_path, TRIPS_FILE, TRIP_COLUMNS)
    return _parse_trips(df)


def load_calendar(gtfs_path: Path) -> tuple[ServiceCalendar, ...]:
    df = read_table(gtfs_path, CALENDAR_FILE, CALENDAR_COLUMNS)
    return _parse_calendar(df)


def load_timetable(
    gtfs_path: Path,
    malformed_rows: MalformedRowPolicy = MalformedRowPolicy.DEFAULT_FIELD,
) -> Timetable:
    """Load all four tables into one snapshot."""
    gtfs_path = Path(gtfs_path)
    timetable = Timetable(
        stops=load_stops(gtfs_path),
        stop_times=load_stop_times(gtfs_path, malformed_rows),
        trips=load_trips(gtfs_path),
        calendars=load_calendar(gtfs_path),
        source=str(gtfs_path),
        loaded_at=datetime.now(timezone.utc),
    )
    logger.debug("Timetable snapshot loaded from %s.", gtfs_path)
    return timetable


def _parse_stops(df: pd.DataFrame) -> tuple[Stop, ...]:
    stops = tuple(
        Stop(stop_id=stop_id, stop_name=name, lat=lat, lon=lon)
        for stop_id, name, lat, lon in df[list(STOP_COLUMNS)].itertuples(index=False, name=None)
    )
    logger.info("Loaded %d stops.", len(stops))
    return stops


def _parse_sequence(raw: str) -> Optional[int]:
    """Decimal integer in the signed 64-bit range, else None."""
    value = raw.strip()
    if not _INTEGER.fullmatch(value) or len(value.lstrip("+-")) > 19:
        return None
    number = int(value)
    return number if _INT64_MIN <= number <= _INT64_MAX else None


def _parse_stop_times(df: pd.DataFrame, malformed_rows: MalformedRowPolicy) -> tuple[StopTime, ...]:
    sequence = pd.Series(
        [_parse_sequence(raw) for raw in df["stop_sequence"]], index=df.index, dtype=object,
    )
    malformed = sequence.isna()
    bad_count = int(malformed.sum())
    if bad_count:
        if malformed_rows is MalformedRowPolicy.SKIP_ROW:
            df = df[~malformed]
            sequence = sequence[~malformed]
            logger.warning("Skipped %d stop_times with a non-integer stop_sequence.", bad_count)
        else:
            sequence = sequence.where(~malformed, 0)
            logger.warning("Defaulted stop_sequence to 0 on %d stop_times rows.", bad_count)
    df = df.assign(stop_sequence=sequence)

    stop_times = tuple(
        StopTime(
            trip_id=trip_id,
            stop_id=stop_id,
            arrival_time=arrival,
            departure_time=departure,
            stop_sequence=int(seq),
        )
        for trip_id, stop_id, arrival, departure, seq
        in df[list(STOP_TIME_COLUMNS)].itertuples(index=False, name=None)
    )
    logger.info("Loaded %d stop times.", len(stop_times))
    return stop_times


def _parse_trips(df: pd.DataFrame) -> tuple[Trip, ...]:
    trips = tuple(
        Trip(trip_id=trip_id, route_id=route_id, service_id=service_id)
        for trip_id, route_id, service_id in df[list(TRIP_COLUMNS)].itertuples(index=False, name=None)
    )
    logger.info("Loaded %d trips.", len(trips))
    return trips


def _parse_calendar(df: pd.DataFrame) -> tuple[ServiceCalendar, ...]:
    calendars = []
    for row in df[list(CALENDAR_COLUMNS)].itertuples(index=False, name=None):
        service_id, *flags, start_date, end_date = row
        calendars.append(ServiceCalendar(
            service_id=service_id,
            start_date=start_date.strip(),
            end_date=end_date.strip(),
            weekdays=tuple(flag.strip() == "1" for flag in flags),
        ))
    logger.info("Loaded %d calendar entries.", len(calendars))
    return tuple(calendars)
