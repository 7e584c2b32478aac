from __future__ import annotations
from typing import Literal
from pydantic import BaseModel


# ---------------------------------------------------------------------------
# GET /getTrainInfo
# ---------------------------------------------------------------------------

class TrainStop(BaseModel):
    stop_name: str
    arrival_time: str     # HH:MM:SS folded onto 0–23, or "N/A"
    departure_time: str   # HH:MM:SS folded onto 0–23, or "N/A"


class TrainInfoResponse(BaseModel):
    train_number: str
    date: str
    stops: list[TrainStop]


# ---------------------------------------------------------------------------
# GET /getTrainList
# ---------------------------------------------------------------------------

class TrainDetail(BaseModel):
    trip_id: str
    departure_time: str
    arrival_time: str


class TrainListResponse(BaseModel):
    departure_station: str
    arrival_station: str
    date: str
    trains: list[TrainDetail]


# ---------------------------------------------------------------------------
# GET /stops
# ---------------------------------------------------------------------------

class StopResult(BaseModel):
    stop_id: str
    stop_name: str
    lat: str
    lon: str


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

class TimetableStats(BaseModel):
    source: str
    refresh_policy: Literal["on_call", "interval"]
    loaded: bool
    last_loaded_at: str | None
    stops: int
    trips: int
    stop_times: int
    calendars: int
    next_refresh_at: str | None


class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: str
    timetable: TimetableStats


# ---------------------------------------------------------------------------
# POST /ingest/reload
# ---------------------------------------------------------------------------

class ReloadResponse(BaseModel):
    status: Literal["ok"]
    message: str
