"""
FastAPI application entry point.

On startup:
  1. With TIMETABLE_REFRESH=interval, load the timetable snapshot and
     schedule a rebuild every TIMETABLE_REFRESH_MINUTES (APScheduler).
  2. With TIMETABLE_REFRESH=on_call (default), nothing is loaded up front;
     every query reads the feed afresh.

Endpoints:
  GET  /getTrainInfo?trainNumber=<trip_id>&date=<YYYY-MM-DD>
  GET  /getTrainList?departureStation=<name>&arrivalStation=<name>&date=<YYYY-MM-DD>
  GET  /stops?query=<name>
  GET  /health
  POST /ingest/reload
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date as Date, datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Depends, FastAPI, HTTPException, Query, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader

from api.schemas import (
    HealthResponse,
    ReloadResponse,
    StopResult,
    TrainInfoResponse,
    TrainListResponse,
)
from config import API_HOST, API_PORT, CORS_ORIGINS, INGEST_API_KEY, LOG_LEVEL, TIMETABLE_REFRESH_MINUTES
from routing.engine import get_train_info, get_train_list, search_stops
from timetable.errors import AmbiguousStationError, LoadError, NotFoundError
from timetable.store import RefreshPolicy, TimetableStore, get_store

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

_ingest_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _require_ingest_key(key: str | None = Security(_ingest_key_header)) -> None:
    """
    Optional API-key guard for the reload endpoint.

    If INGEST_API_KEY is not set the endpoint is open (local dev / testing).
    If it is set, the request must include the matching X-API-Key header.
    """
    if not INGEST_API_KEY:
        return  # no key configured → open
    if key != INGEST_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid or missing X-API-Key header.")

scheduler = AsyncIOScheduler()


def _scheduled_refresh() -> None:
    """
    Scheduled job: rebuild the timetable snapshot.

    Exceptions are caught and logged so a transient read failure cannot
    crash the scheduler; the previous snapshot keeps serving requests.
    """
    try:
        get_store().refresh()
    except Exception as exc:
        logger.error("Scheduled timetable refresh failed: %s", exc, exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    store = get_store()
    if store.refresh_policy is RefreshPolicy.INTERVAL:
        try:
            store.refresh()
        except LoadError as exc:
            logger.warning("Could not load timetable on startup: %s", exc)
        scheduler.add_job(
            _scheduled_refresh,
            "interval",
            minutes=TIMETABLE_REFRESH_MINUTES,
            id="timetable_refresh",
            replace_existing=True,
        )
        logger.info("Timetable refresh scheduled every %d min.", TIMETABLE_REFRESH_MINUTES)
    else:
        logger.info("Timetable reloads on every request (TIMETABLE_REFRESH=on_call).")

    scheduler.start()

    yield

    # Shutdown
    if scheduler.running:
        scheduler.shutdown()


app = FastAPI(
    title="Train Timetable API",
    description="Trip itineraries and station-to-station train lists from a GTFS feed.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def _parse_date(value: str) -> Date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD")


def _load_failure(exc: LoadError) -> HTTPException:
    logger.error("Timetable load failed: %s", exc)
    return HTTPException(status_code=500, detail=f"Error loading {exc.table}")


@app.get("/health", response_model=HealthResponse)
def health(store: TimetableStore = Depends(get_store)) -> HealthResponse:
    """
    Liveness + data-freshness check.

    Reports the last loaded snapshot without triggering a load, so it is
    cheap under either refresh policy.
    """
    snapshot = store.last_snapshot
    last_loaded_at = store.last_loaded_at

    next_refresh_at: str | None = None
    job = scheduler.get_job("timetable_refresh")
    if job and job.next_run_time:
        next_refresh_at = job.next_run_time.isoformat()

    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "timetable": {
            "source": str(store.gtfs_path),
            "refresh_policy": store.refresh_policy.value,
            "loaded": snapshot is not None,
            "last_loaded_at": last_loaded_at.isoformat() if last_loaded_at else None,
            "stops": len(snapshot.stops) if snapshot else 0,
            "trips": len(snapshot.trips) if snapshot else 0,
            "stop_times": len(snapshot.stop_times) if snapshot else 0,
            "calendars": len(snapshot.calendars) if snapshot else 0,
            "next_refresh_at": next_refresh_at,
        },
    }


@app.get("/getTrainInfo", response_model=TrainInfoResponse)
def train_info(
    train_number: str = Query(..., alias="trainNumber", description="GTFS trip_id"),
    date: str = Query(..., description="Service date as YYYY-MM-DD"),
    store: TimetableStore = Depends(get_store),
) -> TrainInfoResponse:
    """Every stop the train calls at on the given date, in calling order."""
    logger.info("Request received for /getTrainInfo (train=%s, date=%s)", train_number, date)
    day = _parse_date(date)
    try:
        result = get_train_info(store, train_number, day)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except LoadError as exc:
        raise _load_failure(exc)
    return asdict(result)


@app.get("/getTrainList", response_model=TrainListResponse)
def train_list(
    departure_station: str = Query(..., alias="departureStation", description="Exact stop_name"),
    arrival_station: str = Query(..., alias="arrivalStation", description="Exact stop_name"),
    date: str = Query(..., description="Service date as YYYY-MM-DD"),
    store: TimetableStore = Depends(get_store),
) -> TrainListResponse:
    """Trains calling at departureStation and later at arrivalStation on the given date."""
    logger.info(
        "Request received for /getTrainList (%s → %s, date=%s)",
        departure_station, arrival_station, date,
    )
    day = _parse_date(date)
    try:
        result = get_train_list(store, departure_station, arrival_station, day)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except AmbiguousStationError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except LoadError as exc:
        raise _load_failure(exc)
    return asdict(result)


@app.get("/stops", response_model=list[StopResult])
def stops(
    query: str = Query(..., min_length=2, description="Stop name substring to search"),
    store: TimetableStore = Depends(get_store),
) -> list[StopResult]:
    """Search stops by name substring, to find the exact station names."""
    try:
        timetable = store.snapshot()
    except LoadError as exc:
        raise _load_failure(exc)
    return [asdict(s) for s in search_stops(timetable, query)]


@app.post("/ingest/reload", response_model=ReloadResponse)
def reload_timetable(
    store: TimetableStore = Depends(get_store),
    _: None = Depends(_require_ingest_key),
) -> ReloadResponse:
    """
    Re-read the GTFS feed now.  (Under the interval policy this also runs
    on a schedule; under on_call it only refreshes the /health stats.)
    """
    try:
        timetable = store.refresh()
    except LoadError as exc:
        raise _load_failure(exc)
    return {
        "status": "ok",
        "message": (
            f"Timetable reloaded: {len(timetable.stops)} stops, "
            f"{len(timetable.trips)} trips, {len(timetable.stop_times)} stop times."
        ),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=API_HOST, port=API_PORT)
