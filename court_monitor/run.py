import logging
import signal
import threading
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from court_monitor import config, messages
from court_monitor.commands import CommandHandler, CommandListener
from court_monitor.monitor import SlotMonitor

logger = logging.getLogger(__name__)

CHECK_JOB_ID = "check_availability"
HEARTBEAT_JOB_ID = "heartbeat"


def build_monitor() -> SlotMonitor:
    """Creates a SlotMonitor from the environment configuration."""
    return SlotMonitor(
        time_range=config.time_range(),
        shift_days=config.SHIFT_DAYS,
        timezone=config.FACILITY_TIMEZONE,
        auto_booking_rule=config.auto_booking_rule(),
        customer=config.customer_info(),
    )


class MonitorRunner:
    """Drives a SlotMonitor from two independent interval jobs and a command listener."""

    def __init__(
        self,
        monitor: SlotMonitor,
        interval_minutes: int = 1,
        heartbeat_hours: float = 6,
        listener: Optional[CommandListener] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.monitor = monitor
        self.interval_minutes = interval_minutes
        self.heartbeat_hours = heartbeat_hours
        self.listener = listener
        self.scheduler = scheduler or BackgroundScheduler(timezone=monitor.tz)
        self._stopped = threading.Event()

    def start(self):
        window = self.monitor.state.window
        logger.info(
            f"Starting court availability monitoring for {window.target_date} + {window.next_date}, "
            f"{self.monitor.time_range.start}-{self.monitor.time_range.end}, every {self.interval_minutes}min"
        )
        self.monitor.send(
            messages.startup(window, self.monitor.time_range, self.interval_minutes, self.monitor.auto_booking_rule)
        )

        # max_instances=1 keeps ticks from overlapping; the first check runs immediately
        self.scheduler.add_job(
            self.monitor.check_availability,
            trigger="interval",
            minutes=self.interval_minutes,
            id=CHECK_JOB_ID,
            name="Check court availability",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(self.monitor.tz),
            replace_existing=True,
        )
        if self.heartbeat_hours > 0:
            self.scheduler.add_job(
                self.monitor.heartbeat,
                trigger="interval",
                hours=self.heartbeat_hours,
                id=HEARTBEAT_JOB_ID,
                name="Heartbeat",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        self.scheduler.start()

        if self.listener is not None:
            self.listener.start()

    def stop(self):
        """Stops the jobs and the listener, then sends a best-effort stop notice. Idempotent."""
        if self._stopped.is_set():
            return
        self._stopped.set()

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        if self.listener is not None:
            self.listener.stop()
        logger.info("Monitoring stopped")

        if not self.monitor.send(messages.stopped()):
            logger.error("Failed to send stop notification")

    def wait(self):
        """Blocks until stop() is called."""
        self._stopped.wait()

    def install_signal_handlers(self):
        def _handle(signum, _frame):
            logger.info(f"Received {signal.Signals(signum).name}. Shutting down gracefully...")
            self.stop()

        signal.signal(signal.SIGINT, _handle)
        signal.signal(signal.SIGTERM, _handle)


def run():
    """Starts continuous monitoring and blocks until a shutdown signal arrives."""
    monitor = build_monitor()
    listener = CommandListener(CommandHandler(monitor, config.TELEGRAM_CHAT_ID))
    runner = MonitorRunner(
        monitor,
        interval_minutes=config.INTERVAL_MINUTES,
        heartbeat_hours=config.HEARTBEAT_HOURS,
        listener=listener,
    )
    runner.install_signal_handlers()
    runner.start()
    runner.wait()


def run_once() -> bool:
    """One manual check of the current window; always reports a summary."""
    monitor = build_monitor()
    logger.info(f"Manual check for {', '.join(monitor.state.window.dates)}")
    return monitor.manual_check()
