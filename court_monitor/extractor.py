"""Normalizes availability responses into Slot records.

The upstream API has shipped several response shapes over time, so every
lookup goes through an ordered table of named strategies. Each strategy
returns a value or None and the first non-None result wins.
"""

import logging
import re
from typing import Any, Callable, List, NamedTuple, Optional, Sequence, Tuple

from pydantic import ValidationError

from court_monitor.models import Slot, TimeRange

logger = logging.getLogger(__name__)

# Matches "2025-01-01T17:00:00-03:00" as well as a bare "17:00"
START_RE = re.compile(r"^(?:(\d{4}-\d{2}-\d{2})T)?(\d{1,2}:\d{2})")


class Strategy(NamedTuple):
    name: str
    extract: Callable[[Any], Any]
    # Lists found this way only ever contain free slots
    implies_available: bool = False


def _key(name: str) -> Callable[[Any], Any]:
    return lambda obj: obj.get(name) if isinstance(obj, dict) else None


def _list_at(*path: str) -> Callable[[Any], Optional[list]]:
    def extract(obj: Any) -> Optional[list]:
        for name in path:
            if not isinstance(obj, dict):
                return None
            obj = obj.get(name)
        return obj if isinstance(obj, list) else None

    return extract


def _identifier(name: str) -> Callable[[Any], Any]:
    def extract(obj: Any) -> Any:
        value = obj.get(name) if isinstance(obj, dict) else None
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            return None
        return value

    return extract


def _bool_at(name: str, negate: bool = False) -> Callable[[Any], Optional[bool]]:
    def extract(slot: Any) -> Optional[bool]:
        value = slot.get(name) if isinstance(slot, dict) else None
        if not isinstance(value, bool):
            return None
        return not value if negate else value

    return extract


def _status_at(name: str) -> Callable[[Any], Optional[bool]]:
    def extract(slot: Any) -> Optional[bool]:
        value = slot.get(name) if isinstance(slot, dict) else None
        if not isinstance(value, str):
            return None
        return value.strip().lower() == "available"

    return extract


CONTAINER_STRATEGIES: Sequence[Strategy] = (
    Strategy("available_courts", _list_at("available_courts"), implies_available=True),
    Strategy("courts", _list_at("courts")),
    Strategy("data.courts", _list_at("data", "courts")),
    Strategy("root list", lambda data: data if isinstance(data, list) else None),
    Strategy("availability", _list_at("availability")),
)

SLOT_LIST_STRATEGIES: Sequence[Strategy] = (
    Strategy("available_slots", _list_at("available_slots"), implies_available=True),
    Strategy("schedule", _list_at("schedule")),
    Strategy("slots", _list_at("slots")),
    Strategy("availability", _list_at("availability")),
    Strategy("times", _list_at("times")),
)

COURT_ID_STRATEGIES: Sequence[Strategy] = (
    Strategy("id", _identifier("id")),
    Strategy("court_id", _identifier("court_id")),
)

COURT_NAME_STRATEGIES: Sequence[Strategy] = (
    Strategy("name", _key("name")),
    Strategy("court_name", _key("court_name")),
    Strategy("title", _key("title")),
)

START_STRATEGIES: Sequence[Strategy] = (
    Strategy("start", _key("start")),
    Strategy("time", _key("time")),
    Strategy("start_time", _key("start_time")),
)

# Explicit markers, most specific first. Occupancy flags are negated.
AVAILABILITY_STRATEGIES: Sequence[Strategy] = (
    Strategy("available", _bool_at("available")),
    Strategy("status", _status_at("status")),
    Strategy("state", _status_at("state")),
    Strategy("occupied", _bool_at("occupied", negate=True)),
    Strategy("booked", _bool_at("booked", negate=True)),
)


def first_match(strategies: Sequence[Strategy], obj: Any) -> Optional[Tuple[Strategy, Any]]:
    """Returns the first strategy that resolves on obj together with its result."""
    for strategy in strategies:
        value = strategy.extract(obj)
        if value is not None and value != "":
            return strategy, value
    return None


def is_available(slot: Any, implied: bool) -> bool:
    """Explicit status wins; a slot without any status field falls back to `implied`."""
    match = first_match(AVAILABILITY_STRATEGIES, slot)
    if match is None:
        return implied
    return bool(match[1])


def parse_start(raw: Any) -> Tuple[Optional[str], Optional[str]]:
    """Splits a start value into (date or None, HH:MM) or (None, None) when unparseable."""
    if not isinstance(raw, str):
        return None, None
    m = START_RE.match(raw.strip())
    if not m:
        return None, None
    date_part, time_part = m.groups()
    return date_part, time_part.zfill(5)


def parse_price(raw: Any) -> Optional[float]:
    if isinstance(raw, dict) and isinstance(raw.get("cents"), (int, float)):
        return raw["cents"] / 100
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    return None


def _court_slots(court: Any, date_str: str, time_range: TimeRange, default_duration: int, container_implied: bool) -> List[Slot]:
    slot_list = first_match(SLOT_LIST_STRATEGIES, court)
    if slot_list is None:
        return []
    list_strategy, raw_slots = slot_list
    implied = container_implied or list_strategy.implies_available

    id_match = first_match(COURT_ID_STRATEGIES, court)
    if id_match is None:
        logger.warning(f"Skipping court without a usable id on {date_str}: {court.get('id', court.get('court_id'))!r}")
        return []
    court_id = id_match[1]
    name_match = first_match(COURT_NAME_STRATEGIES, court)
    court_name = str(name_match[1]) if name_match else f"Court {court_id}"

    slots = []
    for raw in raw_slots:
        if not isinstance(raw, dict):
            continue
        if not is_available(raw, implied):
            continue

        start_match = first_match(START_STRATEGIES, raw)
        if start_match is None:
            logger.debug(f"Skipping slot without start time on {court_name}: {raw}")
            continue
        slot_date, slot_time = parse_start(start_match[1])
        if slot_time is None:
            logger.warning(f"Unparseable start time {start_match[1]!r} on {court_name}")
            continue
        if slot_date is not None and slot_date != date_str:
            logger.debug(f"Skipping slot dated {slot_date} while extracting {date_str}")
            continue
        if not time_range.contains(slot_time):
            continue

        duration = raw.get("duration")
        try:
            slot = Slot(
                court_id=court_id,
                court_name=court_name,
                date=date_str,
                time=slot_time,
                duration_minutes=duration if isinstance(duration, int) and duration > 0 else default_duration,
                price=parse_price(raw.get("price")),
            )
        except ValidationError as e:
            logger.warning(f"Skipping malformed slot on {court_name}: {e}")
            continue
        slots.append(slot)
    return slots


def extract_slots(data: Any, date_str: str, time_range: TimeRange, default_duration: int = 90) -> List[Slot]:
    """Parses an availability response into the free slots within time_range.

    Never raises on malformed input; an unknown shape yields no slots.
    """
    container = first_match(CONTAINER_STRATEGIES, data)
    if container is None:
        logger.error(f"Unexpected response format for {date_str}: no court list found.")
        logger.debug(f"Response data: {data}")
        return []

    strategy, courts = container
    logger.debug(f"Found {len(courts)} courts for {date_str} via '{strategy.name}'")

    slots: List[Slot] = []
    for court in courts:
        if not isinstance(court, dict):
            continue
        slots.extend(_court_slots(court, date_str, time_range, default_duration, strategy.implies_available))
    return slots
