import json
import logging
import re
from typing import Any, Dict, Optional

import requests

from court_monitor import config
from court_monitor.exceptions import BookingValidationError
from court_monitor.models import BookingResult, CustomerInfo, Slot

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ["datetime", "duration", "court_id", "sport_id", "name", "email", "from", "phone"]
DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def build_booking_payload(slot: Slot, customer: CustomerInfo) -> Dict[str, Any]:
    """Maps a slot and the customer's contact details to the booking API body."""
    return {
        "datetime": f"{slot.date} {slot.time}",
        "duration": slot.duration_minutes or config.DEFAULT_DURATION_MINUTES,
        "court_id": slot.court_id,
        "sport_id": customer.sport_id,
        "name": customer.name,
        "email": customer.email,
        "from": "web",
        "phone": customer.phone,
    }


def validate_booking_payload(payload: Dict[str, Any]):
    """Raises BookingValidationError for missing fields or malformed datetime/email."""
    for field in REQUIRED_FIELDS:
        value = payload.get(field)
        if value is None or value == "" or value == 0:
            raise BookingValidationError(f"Missing required field: {field}")

    if not DATETIME_RE.match(str(payload["datetime"])):
        raise BookingValidationError('Invalid datetime format. Expected: "YYYY-MM-DD HH:MM"')

    if not EMAIL_RE.match(str(payload["email"])):
        raise BookingValidationError("Invalid email format")


def submit_booking(payload: Dict[str, Any], auth_token: Optional[str]) -> BookingResult:
    """Posts a validated payload once. HTTP and transport failures come back as failed results."""
    validate_booking_payload(payload)
    if not auth_token:
        raise BookingValidationError("Missing booking credential: AUTH_TOKEN")

    headers = {"Content-Type": "application/json", "Authorization": f"Bearer {auth_token}"}
    logger.info(f"Submitting booking for court {payload['court_id']} at {payload['datetime']}")

    try:
        response = requests.post(config.BOOKING_API_URL, json=payload, headers=headers, timeout=config.REQUEST_TIMEOUT)
    except requests.exceptions.RequestException as e:
        logger.error(f"Error creating booking: {e}")
        return BookingResult(success=False, error=str(e))

    try:
        body = response.json()
    except ValueError:
        body = response.text

    if not response.ok:
        logger.error(f"Booking rejected with HTTP {response.status_code}: {body}")
        return BookingResult(success=False, error=body, status_code=response.status_code)

    result = BookingResult(
        success=True,
        data=body if isinstance(body, dict) else {"raw": body},
        status_code=response.status_code,
    )
    logger.info(f"Booking created with id {result.booking_id}")
    return result


def book_slot(slot: Slot, customer: CustomerInfo, auth_token: Optional[str] = None) -> BookingResult:
    """Builds, validates and submits a booking for slot. Never raises for expected failures."""
    payload = build_booking_payload(slot, customer)
    try:
        return submit_booking(payload, auth_token if auth_token is not None else config.AUTH_TOKEN)
    except BookingValidationError as e:
        logger.warning(f"Booking for {slot.slot_id} not submitted: {e}")
        return BookingResult(success=False, error=str(e))


def format_booking_message(result: BookingResult, slot: Slot, customer: CustomerInfo) -> str:
    if result.success:
        if result.booking_id is None:
            confirm = "⚠️ Booking created but no id was returned; confirm it on the website.\n"
        else:
            link = config.CHECKOUT_URL.format(booking_id=result.booking_id)
            confirm = f"👉 Link to confirm the booking: {link}\n"
        return (
            "⏳ Slot on hold\n"
            f"{confirm}"
            f"📅 Date: {slot.date} {slot.time}\n"
            f"⏱️ Duration: {slot.duration_minutes} minutes\n"
            f"🎾 Court: {slot.court_name}\n"
            f"👤 Name: {customer.name}\n"
            f"📧 Email: {customer.email}\n"
            f"📱 Phone: {customer.phone}"
        )

    if result.error is None:
        error = "Unknown error"
    elif isinstance(result.error, str):
        error = result.error
    else:
        error = json.dumps(result.error, ensure_ascii=False)
    status = f" (HTTP {result.status_code})" if result.status_code else ""
    return f"❌ Booking failed{status}: {error}"
