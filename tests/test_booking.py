from unittest.mock import MagicMock, patch

import pytest
import requests

from court_monitor import booking
from court_monitor.exceptions import BookingValidationError
from court_monitor.models import BookingResult, CustomerInfo, Slot

SLOT = Slot(court_id=501, court_name="Cancha 1", date="2025-01-01", time="18:00", duration_minutes=60)
CUSTOMER = CustomerInfo(name="Ana", email="ana@example.com", phone="1155550000", sport_id=7)


def _payload(**overrides):
    payload = booking.build_booking_payload(SLOT, CUSTOMER)
    payload.update(overrides)
    return payload


def test_build_booking_payload():
    assert booking.build_booking_payload(SLOT, CUSTOMER) == {
        "datetime": "2025-01-01 18:00",
        "duration": 60,
        "court_id": 501,
        "sport_id": 7,
        "name": "Ana",
        "email": "ana@example.com",
        "from": "web",
        "phone": "1155550000",
    }


@patch("court_monitor.booking.requests.post")
def test_missing_phone_is_rejected_before_network(mock_post):
    with pytest.raises(BookingValidationError, match="Missing required field: phone"):
        booking.submit_booking(_payload(phone=None), "token")
    mock_post.assert_not_called()


@patch("court_monitor.booking.requests.post")
def test_malformed_email_is_rejected(mock_post):
    with pytest.raises(BookingValidationError, match="Invalid email format"):
        booking.submit_booking(_payload(email="not-an-email"), "token")
    mock_post.assert_not_called()


def test_malformed_datetime_is_rejected():
    with pytest.raises(BookingValidationError, match="Invalid datetime format"):
        booking.validate_booking_payload(_payload(datetime="2025-01-01T18:00"))


@patch("court_monitor.booking.requests.post")
def test_missing_auth_token_is_rejected(mock_post):
    with pytest.raises(BookingValidationError, match="AUTH_TOKEN"):
        booking.submit_booking(_payload(), None)
    mock_post.assert_not_called()


@patch("court_monitor.booking.requests.post")
def test_submit_booking_success(mock_post):
    mock_response = MagicMock()
    mock_response.ok = True
    mock_response.status_code = 201
    mock_response.json.return_value = {"data": {"id": 1234}}
    mock_post.return_value = mock_response

    result = booking.submit_booking(_payload(), "secret")

    assert result.success
    assert result.booking_id == 1234
    _, kwargs = mock_post.call_args
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["json"]["datetime"] == "2025-01-01 18:00"


@patch("court_monitor.booking.requests.post")
def test_submit_booking_upstream_error(mock_post):
    mock_response = MagicMock()
    mock_response.ok = False
    mock_response.status_code = 422
    mock_response.json.return_value = {"message": "slot taken"}
    mock_post.return_value = mock_response

    result = booking.submit_booking(_payload(), "secret")

    assert not result.success
    assert result.status_code == 422
    assert result.error == {"message": "slot taken"}
    mock_post.assert_called_once()


@patch("court_monitor.booking.requests.post")
def test_submit_booking_transport_error(mock_post):
    mock_post.side_effect = requests.exceptions.ConnectionError("unreachable")

    result = booking.submit_booking(_payload(), "secret")

    assert not result.success
    assert result.status_code is None
    assert "unreachable" in result.error
    mock_post.assert_called_once()


@patch("court_monitor.booking.requests.post")
def test_book_slot_reports_validation_errors(mock_post):
    customer = CustomerInfo(name="Ana", email="ana@example.com", phone=None)
    result = booking.book_slot(SLOT, customer, auth_token="secret")
    assert not result.success
    assert result.error == "Missing required field: phone"
    mock_post.assert_not_called()


def test_format_booking_message_success():
    result = BookingResult(success=True, data={"data": {"id": 77}})
    message = booking.format_booking_message(result, SLOT, CUSTOMER)
    assert "https://alquilatucancha.com/checkout/bookings/77?is_beelup=false" in message
    assert "Cancha 1" in message
    assert "2025-01-01 18:00" in message


def test_format_booking_message_failure():
    result = BookingResult(success=False, error={"message": "slot taken"}, status_code=422)
    message = booking.format_booking_message(result, SLOT, CUSTOMER)
    assert message == '❌ Booking failed (HTTP 422): {"message": "slot taken"}'
    assert booking.format_booking_message(BookingResult(success=False), SLOT, CUSTOMER).endswith("Unknown error")


def test_format_booking_message_success_without_id():
    result = BookingResult(success=True, data={"data": {}})
    message = booking.format_booking_message(result, SLOT, CUSTOMER)
    assert "None" not in message
    assert "checkout/bookings" not in message
    assert "no id was returned" in message
    assert "Cancha 1" in message
