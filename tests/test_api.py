"""
Integration tests for FastAPI endpoints.

Redis and the relational store are mocked; the heatmap and proximity code
runs for real.
"""
import math
import pytest
from datetime import datetime, timezone
from fastapi.testclient import TestClient
from unittest.mock import Mock, patch
from redis.exceptions import RedisError

from src.campus.main import app
from src.campus.database import ChatRoom
from src.campus.grid import latlon_to_cell
from src.campus.heatmap import VisitRow
from src.campus.proximity import EARTH_RADIUS_M
from src.campus.store import StoreUnavailable

MANCHESTER = (53.4808, -2.2426)
MAY_DAY = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
DEG_PER_M = 180 / (math.pi * EARTH_RADIUS_M)


def north_of(point, meters):
    return point[0] + meters * DEG_PER_M, point[1]


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def mock_redis():
    """Create a mock Redis client (rate limiter passes by default)."""
    mock = Mock()
    mock.incr.return_value = 1
    mock.xadd.return_value = "1234567890-0"
    return mock


@pytest.mark.unit
class TestHealthEndpoint:
    """Test suite for /health endpoint."""

    def test_health_redis_connected(self, client, mock_redis):
        mock_redis.ping.return_value = True

        with patch("src.campus.main.get_redis_client", return_value=mock_redis):
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["redis"] == "connected"
        mock_redis.ping.assert_called_once()

    def test_health_redis_disconnected(self, client, mock_redis):
        mock_redis.ping.side_effect = RedisError("Connection failed")

        with patch("src.campus.main.get_redis_client", return_value=mock_redis):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["redis"] == "disconnected"

    def test_health_reports_database(self, client, mock_redis):
        with patch("src.campus.main.get_redis_client", return_value=mock_redis):
            with patch("src.campus.main.is_database_configured", return_value=False):
                response = client.get("/health")

        assert response.json()["database"] == "not_configured"


@pytest.mark.unit
class TestMetricsEndpoint:
    """Test suite for /metrics endpoint."""

    def test_metrics_exposition(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "heatmap_requests_total" in response.text


@pytest.mark.unit
class TestHeatmapEndpoint:
    """Test suite for GET /v1/cities/{city_id}/heatmap."""

    def test_heatmap_with_visits(self, client):
        rows = [VisitRow(place_lat=MANCHESTER[0], place_lng=MANCHESTER[1], visit_count=1, timestamp=MAY_DAY)]

        with patch("src.campus.store.get_city_center", return_value=MANCHESTER):
            with patch("src.campus.store.get_city_visit_rows", return_value=rows):
                response = client.get("/v1/cities/1/heatmap", params={"date": "2024-05-01"})

        assert response.status_code == 200
        data = response.json()
        assert data["city_id"] == 1
        assert data["count"] == 1
        assert data["date_filter"] == "2024-05-01"
        assert data["data_source"] == "visits"
        assert data["total_visits"] == 1
        cell = data["cells"][0]
        assert cell["cell_id"] == latlon_to_cell(*MANCHESTER)
        assert cell["score"] == 100
        assert cell["visit_count"] == 1

    def test_heatmap_without_visits_uses_base_grid(self, client):
        with patch("src.campus.store.get_city_center", return_value=MANCHESTER):
            with patch("src.campus.store.get_city_visit_rows", return_value=[]):
                response = client.get("/v1/cities/1/heatmap")

        assert response.status_code == 200
        data = response.json()
        assert data["data_source"] == "base_grid"
        assert data["count"] > 1
        assert data["total_visits"] == 0
        assert data["date_filter"] is None
        assert all(c["score"] == 0 and c["visit_count"] == 0 for c in data["cells"])

    def test_heatmap_date_with_no_matching_visits(self, client):
        rows = [VisitRow(place_lat=MANCHESTER[0], place_lng=MANCHESTER[1], visit_count=4, timestamp=MAY_DAY)]

        with patch("src.campus.store.get_city_center", return_value=MANCHESTER):
            with patch("src.campus.store.get_city_visit_rows", return_value=rows):
                response = client.get("/v1/cities/1/heatmap", params={"date": "2024-06-01"})

        data = response.json()
        assert data["data_source"] == "base_grid"
        assert data["total_visits"] == 0

    def test_heatmap_unknown_city(self, client):
        with patch("src.campus.store.get_city_center", return_value=None):
            response = client.get("/v1/cities/999/heatmap")

        assert response.status_code == 404

    def test_heatmap_bad_date(self, client):
        response = client.get("/v1/cities/1/heatmap", params={"date": "last tuesday"})
        assert response.status_code == 400

    def test_heatmap_database_outage(self, client):
        """A failed read is a 503, not an empty base grid."""
        session = Mock()
        session.query.side_effect = Exception("connection refused")

        with patch("src.campus.store.is_database_configured", return_value=True):
            with patch("src.campus.store.get_db_session", return_value=session):
                response = client.get("/v1/cities/1/heatmap")

        assert response.status_code == 503
        session.close.assert_called_once()

    def test_heatmap_visit_read_outage(self, client):
        with patch("src.campus.store.get_city_center", return_value=MANCHESTER):
            with patch("src.campus.store.get_city_visit_rows", side_effect=StoreUnavailable("down")):
                response = client.get("/v1/cities/1/heatmap")

        assert response.status_code == 503

    def test_heatmap_invalid_city_location(self, client):
        with patch("src.campus.store.get_city_center", return_value=(123.0, 0.0)):
            with patch("src.campus.store.get_city_visit_rows", return_value=[]):
                response = client.get("/v1/cities/1/heatmap")

        assert response.status_code == 500


@pytest.mark.unit
class TestCheckInEndpoint:
    """Test suite for POST /v1/visits."""

    def checkin(self, client, mock_redis, user_point, place_point=MANCHESTER, saved=None):
        saved = saved or {"visit": {"id": 1, "user_id": 7, "place_id": 5, "timestamp": None}, "unlocked": []}
        body = {"user_id": 7, "place_id": 5, "user_lat": user_point[0], "user_lng": user_point[1]}

        with patch("src.campus.main.get_redis_client", return_value=mock_redis):
            with patch("src.campus.store.get_place_location", return_value=place_point):
                with patch("src.campus.store.record_visit", return_value=saved) as record:
                    response = client.post("/v1/visits", json=body)
        return response, record

    def test_check_in_within_50m(self, client, mock_redis):
        response, record = self.checkin(client, mock_redis, north_of(MANCHESTER, 50))

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["visit"]["id"] == 1
        assert data["distance_m"] == pytest.approx(50, abs=0.5)
        record.assert_called_once_with(7, 5)

        # Check-in event published to the stream
        mock_redis.xadd.assert_called_once()
        event_data = mock_redis.xadd.call_args[0][1]
        assert event_data["event_type"] == "check_in"
        assert event_data["cell_id"] == latlon_to_cell(*MANCHESTER)

    def test_check_in_denied_at_150m(self, client, mock_redis):
        response, record = self.checkin(client, mock_redis, north_of(MANCHESTER, 150))

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert "100 meters" in detail["error"]
        assert detail["distance_m"] == pytest.approx(150, rel=0.05)
        record.assert_not_called()
        mock_redis.xadd.assert_not_called()

    def test_check_in_unknown_place(self, client, mock_redis):
        response, record = self.checkin(client, mock_redis, MANCHESTER, place_point=None)

        assert response.status_code == 404
        record.assert_not_called()

    def test_check_in_rate_limited(self, client, mock_redis):
        mock_redis.incr.return_value = 11

        response, record = self.checkin(client, mock_redis, MANCHESTER)

        assert response.status_code == 429
        record.assert_not_called()

    def test_rate_limit_window_set_on_first_request(self, client, mock_redis):
        self.checkin(client, mock_redis, MANCHESTER)

        mock_redis.expire.assert_called_once_with("ratelimit:checkin:7", 60)

    def test_check_in_publishes_achievement(self, client, mock_redis):
        saved = {"visit": {"id": 9}, "unlocked": ["Hotspot Explorer"]}

        response, _ = self.checkin(client, mock_redis, MANCHESTER, saved=saved)

        assert response.status_code == 201
        assert response.json()["achievements_unlocked"] == ["Hotspot Explorer"]
        event_types = [call[0][1]["event_type"] for call in mock_redis.xadd.call_args_list]
        assert event_types == ["check_in", "achievement_unlocked"]

    def test_check_in_survives_stream_failure(self, client, mock_redis):
        """Stream errors after the visit is stored still return 201."""
        mock_redis.xadd.side_effect = RedisError("stream unavailable")
        saved = {"visit": {"id": 9}, "unlocked": ["Hotspot Explorer"]}

        response, record = self.checkin(client, mock_redis, MANCHESTER, saved=saved)

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["achievements_unlocked"] == ["Hotspot Explorer"]
        record.assert_called_once_with(7, 5)

    def test_check_in_store_failure(self, client, mock_redis):
        body = {"user_id": 7, "place_id": 5, "user_lat": MANCHESTER[0], "user_lng": MANCHESTER[1]}

        with patch("src.campus.main.get_redis_client", return_value=mock_redis):
            with patch("src.campus.store.get_place_location", return_value=MANCHESTER):
                with patch("src.campus.store.record_visit", return_value=None):
                    response = client.post("/v1/visits", json=body)

        assert response.status_code == 503

    def test_check_in_invalid_body(self, client):
        response = client.post("/v1/visits", json={"user_id": 7, "place_id": 5, "user_lat": 95.0, "user_lng": 0})
        assert response.status_code == 422


@pytest.mark.unit
class TestNearbyChatEndpoint:
    """Test suite for GET /v1/chat/nearby."""

    def make_room(self, room_id, point, radius_meters):
        return ChatRoom(id=room_id, name=f"Room {room_id}", lat=point[0], lng=point[1], radius_meters=radius_meters)

    def test_nearby_rooms_filtered(self, client):
        rooms = [
            self.make_room(1, north_of(MANCHESTER, 450), 500),   # room radius governs
            self.make_room(2, north_of(MANCHESTER, 2000), 200),  # too far
            self.make_room(3, north_of(MANCHESTER, 250), 100),   # search radius governs
        ]

        with patch("src.campus.store.list_chat_rooms", return_value=rooms):
            response = client.get("/v1/chat/nearby", params={"lat": MANCHESTER[0], "lng": MANCHESTER[1], "radius": 300})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert [room["id"] for room in data["chat_rooms"]] == [1, 3]
        assert data["radius"] == 300
        assert data["user_location"] == {"lat": MANCHESTER[0], "lng": MANCHESTER[1]}

    def test_default_radius(self, client):
        with patch("src.campus.store.list_chat_rooms", return_value=[]):
            response = client.get("/v1/chat/nearby", params={"lat": MANCHESTER[0], "lng": MANCHESTER[1]})

        data = response.json()
        assert data["radius"] == 500
        assert data["count"] == 0
        assert data["chat_rooms"] == []

    def test_out_of_range_location(self, client):
        response = client.get("/v1/chat/nearby", params={"lat": 120.0, "lng": 0.0})
        assert response.status_code == 400

    def test_missing_location(self, client):
        response = client.get("/v1/chat/nearby")
        assert response.status_code == 422


@pytest.mark.unit
class TestChatRoomEndpoints:
    """Test suite for place and free-standing chat rooms."""

    def test_place_room(self, client):
        room = ChatRoom(id=4, name="Main Library Chat", lat=53.4668, lng=-2.2339, radius_meters=200, place_id=5)

        with patch("src.campus.store.get_or_create_place_room", return_value=room):
            response = client.get("/v1/chat/place/5")

        assert response.status_code == 200
        data = response.json()
        assert data["place_id"] == 5
        assert data["chat_room"]["radius_meters"] == 200

    def test_place_room_unknown_place(self, client):
        with patch("src.campus.store.get_or_create_place_room", return_value=None):
            response = client.get("/v1/chat/place/5")

        assert response.status_code == 404

    def test_create_room(self, client):
        created = ChatRoom(id=8, name="Quad", lat=53.4668, lng=-2.2339, radius_meters=500)

        with patch("src.campus.store.create_chat_room", return_value=created) as create:
            response = client.post("/v1/chat/rooms", json={"name": "Quad", "lat": 53.4668, "lng": -2.2339})

        assert response.status_code == 201
        assert response.json()["chat_room"]["id"] == 8
        create.assert_called_once_with(
            name="Quad", lat=53.4668, lng=-2.2339, radius_meters=None, description=None, place_id=None
        )

    def test_create_room_store_failure(self, client):
        with patch("src.campus.store.create_chat_room", return_value=None):
            response = client.post("/v1/chat/rooms", json={"name": "Quad", "lat": 0.0, "lng": 0.0})

        assert response.status_code == 503
