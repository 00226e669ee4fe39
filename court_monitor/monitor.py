"""Slot de-duplication and day-rollover state machine.

A tick moves through Rollover-Check, Fetching, Filtering, Diffing and
Notifying before returning to Idle. All mutable state lives in one
MonitorState owned by the SlotMonitor; ticks never overlap.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

import pytz

from court_monitor import booking, config, fetcher, messages, telegram_notifier
from court_monitor.exceptions import FetchError
from court_monitor.extractor import extract_slots
from court_monitor.fetcher import FetchResult
from court_monitor.models import AutoBookingRule, BookingResult, CustomerInfo, MonitoringWindow, Slot, TimeRange

logger = logging.getLogger(__name__)

SendFn = Callable[..., bool]
FetchFn = Callable[[List[str]], Dict[str, FetchResult]]
BookFn = Callable[[Slot], BookingResult]


class Phase(str, Enum):
    IDLE = "idle"
    ROLLOVER_CHECK = "rollover-check"
    FETCHING = "fetching"
    FILTERING = "filtering"
    DIFFING = "diffing"
    NOTIFYING = "notifying"


@dataclass
class MonitorState:
    window: MonitoringWindow
    civil_date: str  # last observed local date, YYYY-MM-DD
    notified_ids: Set[str] = field(default_factory=set)
    # Last emitted candidate list; /slots and /book N index into it
    available_slots: Tuple[Slot, ...] = ()
    first_run_pending: bool = True
    phase: Phase = Phase.IDLE
    last_check: Optional[datetime] = None


class SlotMonitor:
    def __init__(
        self,
        time_range: TimeRange,
        shift_days: int = 0,
        timezone: Optional[str] = None,
        send: Optional[SendFn] = None,
        fetch: Optional[FetchFn] = None,
        auto_booking_rule: Optional[AutoBookingRule] = None,
        customer: Optional[CustomerInfo] = None,
        booker: Optional[BookFn] = None,
        notification_delay: Optional[float] = None,
        default_duration: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.time_range = time_range
        self.shift_days = shift_days
        self.tz = pytz.timezone(timezone or config.FACILITY_TIMEZONE)
        self.send = send or telegram_notifier.send_telegram_message
        self.fetch = fetch or fetcher.fetch_window
        self.auto_booking_rule = auto_booking_rule
        self.customer = customer or config.customer_info()
        self.booker = booker or (lambda slot: booking.book_slot(slot, self.customer))
        self.notification_delay = (
            config.NOTIFICATION_DELAY_SECONDS if notification_delay is None else notification_delay
        )
        self.default_duration = default_duration or config.DEFAULT_DURATION_MINUTES
        self.clock = clock or (lambda: datetime.now(self.tz))
        self.sleep = sleep
        self._tick_lock = threading.Lock()
        # Guards _bookings_in_flight; /book runs on the listener thread, auto booking on the tick thread
        self._booking_lock = threading.Lock()
        self._bookings_in_flight: Set[str] = set()

        today = self.today()
        self.state = MonitorState(window=MonitoringWindow.starting_from(today, shift_days), civil_date=today)

    def today(self) -> str:
        """Current civil date in the facility timezone."""
        return self.clock().astimezone(self.tz).strftime("%Y-%m-%d")

    @property
    def available_slots(self) -> Tuple[Slot, ...]:
        return self.state.available_slots

    def _send(self, message: str, reply_markup: Optional[Dict] = None) -> bool:
        try:
            return bool(self.send(message, reply_markup=reply_markup))
        except Exception as e:
            logger.error(f"Failed to deliver message: {e}")
            return False

    def _pause(self):
        if self.notification_delay > 0:
            self.sleep(self.notification_delay)

    def handle_day_change(self) -> bool:
        """Resets window and notified set when the local date moves on.

        Returns True when a rollover happened, so the tick announces every slot.
        """
        today = self.today()
        if today == self.state.civil_date:
            return False

        previous = self.state.window.target_date
        self.state.civil_date = today
        self.state.window = MonitoringWindow.starting_from(today, self.shift_days)
        self.state.notified_ids.clear()
        logger.info(f"Day changed from monitoring {previous} to {self.state.window.target_date}")

        if not self._send(messages.new_day(self.state.window)):
            logger.error("Failed to send new day notification")
        return True

    def diff_and_notify(self, candidates: List[Slot], is_first_run: bool) -> List[Slot]:
        """Announces the candidates not yet notified and returns the ones delivered."""
        state = self.state
        state.phase = Phase.DIFFING
        state.available_slots = tuple(candidates)

        if not candidates:
            if is_first_run:
                self._send(messages.nothing_available(self.time_range, state.window))
            else:
                logger.info("No slots available")
            state.notified_ids.clear()
            return []

        positions = {}
        for index, slot in enumerate(candidates, start=1):
            positions.setdefault(slot.slot_id, index)

        new_slots = []
        seen: Set[str] = set()
        for slot in candidates:
            if slot.slot_id in seen:
                continue
            seen.add(slot.slot_id)
            if is_first_run or slot.slot_id not in state.notified_ids:
                new_slots.append(slot)

        if not new_slots:
            logger.info("No new slots to notify")
        else:
            state.phase = Phase.NOTIFYING
            logger.info(f"Notifying {len(new_slots)} new slot(s)")

        announced = []
        for slot in new_slots:
            message = messages.slot_notification(slot, state.window)
            if self._send(message, reply_markup=telegram_notifier.book_button(positions[slot.slot_id])):
                state.notified_ids.add(slot.slot_id)
                announced.append(slot)
            else:
                logger.warning(f"Notification for {slot.slot_id} not delivered; will retry next tick")

            if self.auto_booking_rule is not None and self.auto_booking_rule.matches(slot):
                self._send(messages.auto_booking_notice(self.auto_booking_rule))
                self._send(self.book(slot))

            self._pause()

        state.notified_ids &= set(seen)
        return announced

    def book(self, slot: Slot) -> str:
        """Books slot once and returns the message describing the outcome.

        A second request for a slot whose booking is still running is refused.
        """
        with self._booking_lock:
            if slot.slot_id in self._bookings_in_flight:
                logger.warning(f"Booking {slot.slot_id} already in progress, not submitting again")
                return messages.booking_already_running(slot, self.state.window)
            self._bookings_in_flight.add(slot.slot_id)
        try:
            result = self.booker(slot)
        except Exception as e:
            logger.exception(f"Booking {slot.slot_id} failed")
            result = BookingResult(success=False, error=str(e))
        finally:
            with self._booking_lock:
                self._bookings_in_flight.discard(slot.slot_id)
        return booking.format_booking_message(result, slot, self.customer)

    def _collect(self, window: MonitoringWindow) -> Optional[List[Slot]]:
        """Fetches and filters the window. Returns None when any date failed."""
        self.state.phase = Phase.FETCHING
        results = self.fetch(window.dates)

        failures = []
        for date_str in window.dates:
            result = results.get(date_str)
            if result is None:
                failures.append(FetchError(date_str, "no result returned"))
            elif not result.ok:
                failures.append(result.error)
        if failures:
            reasons = "; ".join(str(e) for e in failures)
            logger.error(f"Aborting availability check: {reasons}")
            self._send(messages.check_error(reasons))
            return None

        self.state.phase = Phase.FILTERING
        candidates: List[Slot] = []
        for date_str in window.dates:
            candidates.extend(
                extract_slots(results[date_str].data, date_str, self.time_range, self.default_duration)
            )
        logger.info(f"Found {len(candidates)} slot(s) between {self.time_range.start} and {self.time_range.end}")
        return candidates

    def check_availability(self) -> bool:
        """Runs one polling tick. Returns False if skipped or aborted."""
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous availability check still running; skipping this tick.")
            return False
        try:
            self.state.phase = Phase.ROLLOVER_CHECK
            if self.handle_day_change():
                self.state.first_run_pending = True

            candidates = self._collect(self.state.window)
            if candidates is None:
                return False

            self.diff_and_notify(candidates, self.state.first_run_pending)
            self.state.first_run_pending = False
            self.state.last_check = self.clock()
            return True
        except Exception as e:
            logger.exception("Error in court availability check")
            self._send(messages.check_error(e))
            return False
        finally:
            self.state.phase = Phase.IDLE
            self._tick_lock.release()

    def manual_check(self) -> bool:
        """Fetches the current window and always sends a summary. Leaves notification state alone."""
        window = MonitoringWindow.starting_from(self.today(), self.shift_days)
        results = self.fetch(window.dates)
        failed = [r for r in results.values() if not r.ok]
        if failed or len(results) < len(window.dates):
            reasons = "; ".join(str(r.error) for r in failed) or "missing results"
            self._send(messages.manual_error(reasons))
            return False

        slots: List[Slot] = []
        for date_str in window.dates:
            slots.extend(extract_slots(results[date_str].data, date_str, self.time_range, self.default_duration))
        self._send(messages.manual_summary(slots, self.time_range, window))
        return True

    def heartbeat(self):
        self._send(messages.heartbeat(self.state.window, self.state.last_check, len(self.state.available_slots)))
