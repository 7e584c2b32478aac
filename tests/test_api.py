"""
Integration tests for API endpoints.

The FastAPI lifespan scheduler is patched out for every test, and the
get_store dependency is overridden with a store reading the conftest feed
from tmp_path, so tests are fully isolated.
"""

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import MONDAY, SATURDAY, write_feed
from timetable.models import StationMatch
from timetable.store import RefreshPolicy, TimetableStore, get_store


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@contextmanager
def _client_for(store: TimetableStore):
    """
    TestClient with:
      - lifespan scheduler patched to a mock with no jobs
      - get_store dependency overridden to use the given store
    """
    from api.main import app

    mock_scheduler = MagicMock()
    mock_scheduler.get_job.return_value = None
    with (
        patch("api.main.scheduler", mock_scheduler),
        patch("api.main.get_store", return_value=store),
    ):
        app.dependency_overrides[get_store] = lambda: store
        try:
            with TestClient(app, raise_server_exceptions=True) as c:
                yield c
        finally:
            app.dependency_overrides.clear()


@pytest.fixture
def store(gtfs_dir):
    return TimetableStore(gtfs_dir)


@pytest.fixture
def client(store):
    with _client_for(store) as c:
        yield c


# ---------------------------------------------------------------------------
# GET /getTrainInfo
# ---------------------------------------------------------------------------

class TestGetTrainInfo:
    def test_returns_itinerary(self, client):
        resp = client.get(f"/getTrainInfo?trainNumber=101&date={MONDAY}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["train_number"] == "101"
        assert body["date"] == MONDAY
        assert body["stops"] == [
            {"stop_name": "Central", "arrival_time": "08:00:00", "departure_time": "08:00:00"},
            {"stop_name": "North", "arrival_time": "08:30:00", "departure_time": "08:31:00"},
            {"stop_name": "Airport", "arrival_time": "09:10:00", "departure_time": "09:10:00"},
        ]

    def test_overnight_times_normalized(self, client):
        body = client.get(f"/getTrainInfo?trainNumber=201&date={SATURDAY}").json()
        assert body["stops"][2]["arrival_time"] == "01:05:00"

    def test_missing_time_shown_as_placeholder(self, client):
        body = client.get(f"/getTrainInfo?trainNumber=301&date={MONDAY}").json()
        assert body["stops"][1]["departure_time"] == "N/A"

    def test_unknown_train_returns_404(self, client):
        resp = client.get(f"/getTrainInfo?trainNumber=999&date={MONDAY}")
        assert resp.status_code == 404
        assert "No trips found" in resp.json()["detail"]

    def test_not_running_on_date_returns_404(self, client):
        resp = client.get(f"/getTrainInfo?trainNumber=101&date={SATURDAY}")
        assert resp.status_code == 404

    def test_invalid_date_returns_400(self, client):
        resp = client.get("/getTrainInfo?trainNumber=101&date=10/06/2024")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid date format. Use YYYY-MM-DD"

    def test_compact_date_returns_400(self, client):
        resp = client.get("/getTrainInfo?trainNumber=101&date=20240610")
        assert resp.status_code == 400

    def test_missing_train_number_returns_422(self, client):
        resp = client.get(f"/getTrainInfo?date={MONDAY}")
        assert resp.status_code == 422

    def test_load_error_returns_500(self, client, gtfs_dir):
        (gtfs_dir / "calendar.txt").unlink()
        resp = client.get(f"/getTrainInfo?trainNumber=101&date={MONDAY}")
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Error loading calendar.txt"


# ---------------------------------------------------------------------------
# GET /getTrainList
# ---------------------------------------------------------------------------

class TestGetTrainList:
    def test_returns_matching_trains(self, client):
        resp = client.get(
            f"/getTrainList?departureStation=Central&arrivalStation=North&date={MONDAY}"
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "departure_station": "Central",
            "arrival_station": "North",
            "date": MONDAY,
            "trains": [
                {"trip_id": "101", "departure_time": "08:00:00", "arrival_time": "08:30:00"},
            ],
        }

    def test_opposite_direction(self, client):
        body = client.get(
            f"/getTrainList?departureStation=North&arrivalStation=Central&date={MONDAY}"
        ).json()
        assert [t["trip_id"] for t in body["trains"]] == ["102"]
        assert body["trains"][0]["departure_time"] == "17:41:00"

    def test_station_names_with_spaces(self, tmp_path):
        stops = "stop_id,stop_name,stop_lat,stop_lon\nCEN,Central Station,0,0\nNTH,North,0,0\n"
        store = TimetableStore(write_feed(tmp_path / "spaced", stops=stops))
        with _client_for(store) as c:
            resp = c.get(
                "/getTrainList",
                params={"departureStation": "Central Station", "arrivalStation": "North", "date": MONDAY},
            )
        assert resp.status_code == 200
        assert [t["trip_id"] for t in resp.json()["trains"]] == ["101"]

    def test_unknown_station_returns_404(self, client):
        resp = client.get(
            f"/getTrainList?departureStation=Nowhere&arrivalStation=North&date={MONDAY}"
        )
        assert resp.status_code == 404
        assert "station not found" in resp.json()["detail"]

    def test_no_connection_returns_404(self, client):
        resp = client.get(
            f"/getTrainList?departureStation=Central&arrivalStation=North&date=2025-06-10"
        )
        assert resp.status_code == 404
        assert "No trains found" in resp.json()["detail"]

    def test_ambiguous_station_returns_409(self, tmp_path):
        stops = "stop_id,stop_name,stop_lat,stop_lon\nCEN,Central,0,0\nNTH,North,0,0\nCEN2,Central,0,0\n"
        store = TimetableStore(write_feed(tmp_path / "dupes", stops=stops))
        with patch("routing.engine.DEFAULT_STATION_MATCH", StationMatch.UNIQUE), _client_for(store) as c:
            resp = c.get(
                f"/getTrainList?departureStation=Central&arrivalStation=North&date={MONDAY}"
            )
        assert resp.status_code == 409
        assert "CEN2" in resp.json()["detail"]

    def test_invalid_date_returns_400(self, client):
        resp = client.get(
            "/getTrainList?departureStation=Central&arrivalStation=North&date=tomorrow"
        )
        assert resp.status_code == 400

    def test_missing_arrival_station_returns_422(self, client):
        resp = client.get(f"/getTrainList?departureStation=Central&date={MONDAY}")
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# GET /stops
# ---------------------------------------------------------------------------

class TestStopsSearch:
    def test_matching_stop_returned(self, client):
        resp = client.get("/stops?query=cent")
        assert resp.status_code == 200
        assert resp.json() == [
            {"stop_id": "CEN", "stop_name": "Central", "lat": "43.6453", "lon": "-79.3806"},
        ]

    def test_no_match_returns_empty(self, client):
        assert client.get("/stops?query=Kitchener").json() == []

    def test_query_too_short_returns_422(self, client):
        assert client.get("/stops?query=C").status_code == 422


# ---------------------------------------------------------------------------
# GET /health, POST /ingest/reload
# ---------------------------------------------------------------------------

class TestHealth:
    def test_before_any_load(self, client, gtfs_dir):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["timetable"]["loaded"] is False
        assert body["timetable"]["stops"] == 0
        assert body["timetable"]["refresh_policy"] == "on_call"
        assert body["timetable"]["source"] == str(gtfs_dir)
        assert body["timetable"]["next_refresh_at"] is None

    def test_after_query(self, client):
        client.get(f"/getTrainInfo?trainNumber=101&date={MONDAY}")
        body = client.get("/health").json()
        assert body["timetable"]["loaded"] is True
        assert body["timetable"]["stops"] == 4
        assert body["timetable"]["trips"] == 4
        assert body["timetable"]["stop_times"] == 11
        assert body["timetable"]["calendars"] == 2
        assert body["timetable"]["last_loaded_at"] is not None


class TestReload:
    def test_reload_loads_snapshot(self, client):
        resp = client.post("/ingest/reload")
        assert resp.status_code == 200
        assert "4 stops" in resp.json()["message"]

    def test_reload_failure_returns_500(self, client, gtfs_dir):
        (gtfs_dir / "stops.txt").unlink()
        resp = client.post("/ingest/reload")
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Error loading stops.txt"

    def test_api_key_required_when_configured(self, client):
        with patch("api.main.INGEST_API_KEY", "secret"):
            assert client.post("/ingest/reload").status_code == 401
            resp = client.post("/ingest/reload", headers={"X-API-Key": "secret"})
            assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

class TestLifespan:
    def test_interval_policy_loads_and_schedules(self, gtfs_dir):
        from api.main import app

        store = TimetableStore(gtfs_dir, RefreshPolicy.INTERVAL)
        mock_scheduler = MagicMock()
        with (
            patch("api.main.scheduler", mock_scheduler),
            patch("api.main.get_store", return_value=store),
        ):
            with TestClient(app):
                pass
        assert store.last_snapshot is not None
        assert mock_scheduler.add_job.call_args.kwargs["id"] == "timetable_refresh"
        mock_scheduler.start.assert_called_once()

    def test_on_call_policy_schedules_nothing(self, store):
        from api.main import app

        mock_scheduler = MagicMock()
        with (
            patch("api.main.scheduler", mock_scheduler),
            patch("api.main.get_store", return_value=store),
        ):
            with TestClient(app):
                pass
        mock_scheduler.add_job.assert_not_called()
        assert store.last_snapshot is None

    def test_scheduled_refresh_swallows_load_error(self, tmp_path):
        from api.main import _scheduled_refresh

        store = TimetableStore(tmp_path / "missing", RefreshPolicy.INTERVAL)
        with patch("api.main.get_store", return_value=store):
            _scheduled_refresh()  # must not raise
        assert store.last_snapshot is None
