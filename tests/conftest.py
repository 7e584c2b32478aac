"""
Shared fixtures: a small GTFS feed written to tmp_path.

Feed layout (all services valid for 2024):

  Stops:    CEN "Central", NTH "North", STH "South", AIR "Airport"
  Services: WKDY  Mon–Fri          WKND  Sat–Sun
  Trips:    101  WKDY  Central 08:00 → North 08:30 → Airport 09:10
            102  WKDY  Airport 17:00 → North 17:40 → Central 18:10
            201  WKND  Central 23:30 → North 24:15 → Airport 25:05 (overnight)
            301  WKDY  South 07:00 → Central 07:20, no departure time at Central
"""

from pathlib import Path

import pytest

STOPS = """stop_id,stop_name,stop_lat,stop_lon
CEN,Central,43.6453,-79.3806
NTH,North,43.7000,-79.4000
STH,South,43.6000,-79.3500
AIR,Airport,43.6777,-79.6248
"""

STOP_TIMES = """trip_id,arrival_time,departure_time,stop_id,stop_sequence
101,08:00:00,08:00:00,CEN,1
101,08:30:00,08:31:00,NTH,2
101,09:10:00,09:10:00,AIR,3
102,17:00:00,17:00:00,AIR,1
102,17:40:00,17:41:00,NTH,2
102,18:10:00,18:10:00,CEN,3
201,23:30:00,23:30:00,CEN,1
201,24:15:00,24:16:00,NTH,2
201,25:05:00,25:05:00,AIR,3
301,07:00:00,07:00:00,STH,1
301,07:20:00,,CEN,2
"""

TRIPS = """route_id,service_id,trip_id
R1,WKDY,101
R1,WKDY,102
R1,WKND,201
R2,WKDY,301
"""

CALENDAR = """service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date
WKDY,1,1,1,1,1,0,0,20240101,20241231
WKND,0,0,0,0,0,1,1,20240101,20241231
"""

# 2024-06-10 is a Monday, 2024-06-15 a Saturday.
MONDAY = "2024-06-10"
SATURDAY = "2024-06-15"


def write_feed(directory: Path, **overrides: str) -> Path:
    """Write the default feed into directory; keyword args replace a file's text (e.g. trips=...)."""
    directory.mkdir(parents=True, exist_ok=True)
    files = {
        "stops.txt": STOPS,
        "stop_times.txt": STOP_TIMES,
        "trips.txt": TRIPS,
        "calendar.txt": CALENDAR,
    }
    for name, text in overrides.items():
        files[f"{name}.txt"] = text
    for filename, text in files.items():
        if text is not None:
            (directory / filename).write_text(text, encoding="utf-8")
    return directory


@pytest.fixture
def gtfs_dir(tmp_path):
    return write_feed(tmp_path / "gtfs")
