"""
Holds the timetable snapshot that queries run against.

Two refresh policies:
  on_call   snapshot() reloads every table from the feed on each call.
            Nothing is shared between requests.
  interval  snapshot() returns the last loaded snapshot, loading it on
            first use.  refresh() rebuilds it; the API schedules that
            with APScheduler every TIMETABLE_REFRESH_MINUTES.

Snapshots are immutable, so a refresh only swaps one reference.  A failed
refresh raises LoadError and leaves the previous snapshot in place.
"""

import logging
import threading
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from config import GTFS_PATH, MALFORMED_ROW_POLICY, TIMETABLE_REFRESH
from ingestion.gtfs_static import load_timetable
from timetable.models import MalformedRowPolicy, Timetable

logger = logging.getLogger(__name__)


class RefreshPolicy(str, Enum):
    ON_CALL = "on_call"
    INTERVAL = "interval"


Loader = Callable[[Path, MalformedRowPolicy], Timetable]


class TimetableStore:
    def __init__(
        self,
        gtfs_path: Path,
        refresh_policy: RefreshPolicy = RefreshPolicy.ON_CALL,
        malformed_rows: MalformedRowPolicy = MalformedRowPolicy.DEFAULT_FIELD,
        loader: Loader = load_timetable,
    ) -> None:
        self.gtfs_path = Path(gtfs_path)
        self.refresh_policy = RefreshPolicy(refresh_policy)
        self.malformed_rows = MalformedRowPolicy(malformed_rows)
        self._loader = loader
        self._lock = threading.Lock()
        self._snapshot: Optional[Timetable] = None

    @property
    def last_snapshot(self) -> Optional[Timetable]:
        """The most recently loaded snapshot, or None if nothing loaded yet."""
        return self._snapshot

    @property
    def last_loaded_at(self) -> Optional[datetime]:
        return self._snapshot.loaded_at if self._snapshot else None

    def snapshot(self) -> Timetable:
        """Return the timetable a query should run against."""
        if self.refresh_policy is RefreshPolicy.ON_CALL:
            return self.refresh()
        current = self._snapshot
        if current is not None:
            return current
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._load()
            return self._snapshot

    def refresh(self) -> Timetable:
        """Load a fresh snapshot from the feed and make it current."""
        timetable = self._load()
        with self._lock:
            self._snapshot = timetable
        return timetable

    def _load(self) -> Timetable:
        timetable = self._loader(self.gtfs_path, self.malformed_rows)
        logger.info(
            "Timetable loaded from %s: %d stops, %d trips, %d stop times, %d calendar entries.",
            self.gtfs_path,
            len(timetable.stops),
            len(timetable.trips),
            len(timetable.stop_times),
            len(timetable.calendars),
        )
        return timetable


# Module-level store, built on first use from config.
_store: Optional[TimetableStore] = None


def get_store() -> TimetableStore:
    """Dependency-injectable store accessor for FastAPI routes."""
    global _store
    if _store is None:
        _store = TimetableStore(
            GTFS_PATH,
            refresh_policy=RefreshPolicy(TIMETABLE_REFRESH),
            malformed_rows=MalformedRowPolicy(MALFORMED_ROW_POLICY),
        )
    return _store
