from datetime import datetime
from typing import List, Optional

from court_monitor.models import AutoBookingRule, MonitoringWindow, Slot, TimeRange


def format_price(amount: Optional[float]) -> str:
    """Formats an amount the way the facility shows it, e.g. 12500 -> "$12.500"."""
    if amount is None:
        return "Price not available"
    if float(amount).is_integer():
        return "$" + f"{int(amount):,}".replace(",", ".")
    whole, cents = f"{amount:,.2f}".split(".")
    return "$" + whole.replace(",", ".") + "," + cents


def _window_lines(window: MonitoringWindow) -> str:
    return "\n".join(f"• {window.describe(d)} ({d})" for d in window.dates)


def slot_line(slot: Slot, window: MonitoringWindow) -> str:
    return (
        f"{window.describe(slot.date)} ({slot.date}) {slot.time}hs - {slot.court_name} - "
        f"{format_price(slot.price)} - {slot.duration_minutes} min"
    )


def slot_notification(slot: Slot, window: MonitoringWindow) -> str:
    return (
        f"🎾 Slot available {window.describe(slot.date)} ({slot.date}) at {slot.time}hs on {slot.court_name}\n"
        f"💰 Price: {format_price(slot.price)}\n"
        f"⏱️ Duration: {slot.duration_minutes} minutes"
    )


def nothing_available(time_range: TimeRange, window: MonitoringWindow) -> str:
    return f"No slots available between {time_range.start} and {time_range.end} for:\n{_window_lines(window)}"


def new_day(window: MonitoringWindow) -> str:
    return (
        f"🌅 New day started! Now monitoring court availability for "
        f"{window.target_date} ({window.describe(window.target_date)})"
    )


def startup(window: MonitoringWindow, time_range: TimeRange, interval_minutes: int, rule: Optional[AutoBookingRule]) -> str:
    lines = [
        "🚀 Court availability monitoring started!",
        f"⏰ Checking every {interval_minutes} minute(s) between {time_range.start} and {time_range.end}",
    ]
    if rule is not None:
        lines.append(f"🤖 Auto booking active for {rule.weekday_name} at {rule.time}")
    lines.append("📅 Monitoring both:")
    lines.append(_window_lines(window))
    return "\n".join(lines)


def stopped() -> str:
    return "🛑 Court availability monitoring stopped."


def heartbeat(window: MonitoringWindow, last_check: Optional[datetime], available_count: int) -> str:
    last = last_check.strftime("%Y-%m-%d %H:%M") if last_check else "never"
    return (
        f"💓 Still monitoring {window.target_date} + {window.next_date}\n"
        f"Last check: {last} | Slots available: {available_count}"
    )


def check_error(error: object) -> str:
    return f"❌ Error checking court availability: {error}"


def manual_error(reasons: str) -> str:
    return f"❌ Manual check error: {reasons}"


def startup_error(error: object) -> str:
    return f"❌ Error starting monitoring: {error}"


def slot_list(slots: List[Slot], window: MonitoringWindow) -> str:
    if not slots:
        return "No slots available right now."
    lines = ["🎾 Available slots:", ""]
    lines.extend(f"{i}. {slot_line(slot, window)}" for i, slot in enumerate(slots, start=1))
    lines.append("")
    lines.append("Use /book [number] to book (e.g. /book 1)")
    return "\n".join(lines)


def manual_summary(slots: List[Slot], time_range: TimeRange, window: MonitoringWindow) -> str:
    if not slots:
        return f"🔍 Manual check: {nothing_available(time_range, window)}"
    lines = [f"🔍 Manual check: {len(slots)} slot(s) available:"]
    lines.extend(f"• {slot_line(slot, window)}" for slot in slots)
    return "\n".join(lines)


def auto_booking_notice(rule: AutoBookingRule) -> str:
    return f"🤖 Auto booking for {rule.weekday_name} at {rule.time}"


def booking_in_progress(slot: Slot, window: MonitoringWindow) -> str:
    return f"⏳ Processing booking for:\n{window.describe(slot.date)} ({slot.date}) {slot.time}hs - {slot.court_name}..."


def booking_already_running(slot: Slot, window: MonitoringWindow) -> str:
    return f"⏳ A booking for {window.describe(slot.date)} {slot.time}hs - {slot.court_name} is already in progress."
