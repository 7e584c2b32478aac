from pathlib import Path
from dotenv import load_dotenv
import os

load_dotenv()

BASE_DIR = Path(__file__).parent

# Data directory (gitignored)
DATA_DIR = BASE_DIR / "data"

# GTFS feed: a directory holding stops.txt, stop_times.txt, trips.txt and
# calendar.txt, or a .zip archive containing them.
GTFS_PATH: Path = Path(os.getenv("GTFS_PATH", str(DATA_DIR / "gtfs")))

# Timetable snapshot refresh: "on_call" reloads every request,
# "interval" keeps one snapshot and rebuilds it on a schedule.
TIMETABLE_REFRESH: str = os.getenv("TIMETABLE_REFRESH", "on_call")
TIMETABLE_REFRESH_MINUTES: int = int(os.getenv("TIMETABLE_REFRESH_MINUTES", "60"))

# "default_field" keeps a stop_times row with a bad stop_sequence (as 0),
# "skip_row" drops it.
MALFORMED_ROW_POLICY: str = os.getenv("MALFORMED_ROW_POLICY", "default_field")

# Query semantics
STOP_ORDER: str = os.getenv("STOP_ORDER", "row")          # row | stop_sequence
STATION_MATCH: str = os.getenv("STATION_MATCH", "last")   # last | first | unique

# API
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8080"))
CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
INGEST_API_KEY: str = os.getenv("INGEST_API_KEY", "")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
