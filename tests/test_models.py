"""
Unit tests for Pydantic request models.
"""
import pytest
from pydantic import ValidationError
from src.campus.models import CheckInRequest, ChatRoomCreate


@pytest.mark.unit
class TestCheckInRequest:
    """Test suite for CheckInRequest model."""

    def test_valid_data(self):
        checkin = CheckInRequest(user_id=1, place_id=2, user_lat=53.4808, user_lng=-2.2426)

        assert checkin.user_id == 1
        assert checkin.place_id == 2
        assert checkin.user_lat == 53.4808
        assert checkin.user_lng == -2.2426

    @pytest.mark.parametrize("missing", ["user_id", "place_id", "user_lat", "user_lng"])
    def test_required_fields(self, missing):
        data = {"user_id": 1, "place_id": 2, "user_lat": 53.4808, "user_lng": -2.2426}
        del data[missing]

        with pytest.raises(ValidationError) as exc_info:
            CheckInRequest(**data)

        assert any(error["loc"] == (missing,) for error in exc_info.value.errors())

    def test_latitude_out_of_range(self):
        with pytest.raises(ValidationError):
            CheckInRequest(user_id=1, place_id=2, user_lat=91.0, user_lng=0.0)

    def test_longitude_out_of_range(self):
        with pytest.raises(ValidationError):
            CheckInRequest(user_id=1, place_id=2, user_lat=0.0, user_lng=-181.0)

    def test_non_positive_ids(self):
        with pytest.raises(ValidationError):
            CheckInRequest(user_id=0, place_id=2, user_lat=0.0, user_lng=0.0)


@pytest.mark.unit
class TestChatRoomCreate:
    """Test suite for ChatRoomCreate model."""

    def test_defaults(self):
        room = ChatRoomCreate(name="Library steps", lat=53.4668, lng=-2.2339)

        assert room.radius_meters is None
        assert room.description is None
        assert room.place_id is None

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            ChatRoomCreate(name="", lat=0.0, lng=0.0)

    def test_radius_must_be_positive(self):
        with pytest.raises(ValidationError):
            ChatRoomCreate(name="Quad", lat=0.0, lng=0.0, radius_meters=0)
