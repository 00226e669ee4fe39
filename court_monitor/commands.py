import logging
import re
import threading
from typing import Dict, Optional

import requests

from court_monitor import messages, telegram_notifier
from court_monitor.monitor import SlotMonitor

logger = logging.getLogger(__name__)

BOOK_RE = re.compile(r"^/book(?:@\w+)?\s+(\d+)\s*$")
SLOTS_RE = re.compile(r"^/slots(?:@\w+)?\s*$")
HELP_RE = re.compile(r"^/(?:help|start)(?:@\w+)?\s*$")
CALLBACK_RE = re.compile(r"^book_(\d+)$")

HELP_TEXT = (
    "Commands:\n"
    "/slots - list the currently available slots\n"
    "/book N - book slot number N from the /slots list"
)


class CommandHandler:
    """Answers /slots and /book N for the configured chat."""

    def __init__(self, monitor: SlotMonitor, chat_id: str):
        self.monitor = monitor
        self.chat_id = str(chat_id)

    def reply(self, text: str):
        self.monitor.send(text)

    def list_slots(self):
        self.reply(messages.slot_list(list(self.monitor.available_slots), self.monitor.state.window))

    def book(self, number: int):
        slots = self.monitor.available_slots
        if number < 1 or number > len(slots):
            self.reply("❌ Invalid slot number. Use /slots to see the available slots.")
            return
        slot = slots[number - 1]
        self.reply(messages.booking_in_progress(slot, self.monitor.state.window))
        self.reply(self.monitor.book(slot))

    def handle_text(self, text: str):
        text = text.strip()
        m = BOOK_RE.match(text)
        if m:
            self.book(int(m.group(1)))
        elif SLOTS_RE.match(text):
            self.list_slots()
        elif HELP_RE.match(text):
            self.reply(HELP_TEXT)
        else:
            logger.debug(f"Ignoring message: {text!r}")

    def handle_update(self, update: Dict):
        """Dispatches a single Telegram update."""
        if "callback_query" in update:
            query = update["callback_query"]
            telegram_notifier.answer_callback_query(query.get("id"))
            chat_id = query.get("message", {}).get("chat", {}).get("id")
            if str(chat_id) != self.chat_id:
                logger.warning(f"Ignoring callback from unknown chat {chat_id}")
                return
            m = CALLBACK_RE.match(query.get("data") or "")
            if m:
                self.book(int(m.group(1)))
            return

        message = update.get("message")
        if not message or "text" not in message:
            return
        chat_id = message.get("chat", {}).get("id")
        if str(chat_id) != self.chat_id:
            logger.warning(f"Ignoring command from unknown chat {chat_id}")
            return
        self.handle_text(message["text"])


class CommandListener:
    """Long-polls Telegram on a daemon thread and feeds updates to a CommandHandler."""

    def __init__(self, handler: CommandHandler, poll_timeout: int = 30, error_backoff: float = 5.0):
        self.handler = handler
        self.poll_timeout = poll_timeout
        self.error_backoff = error_backoff
        self.offset: Optional[int] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self):
        updates = telegram_notifier.get_updates(self.offset, timeout=self.poll_timeout)
        for update in updates:
            self.offset = update["update_id"] + 1
            try:
                self.handler.handle_update(update)
            except Exception:
                logger.exception(f"Failed to handle update {update.get('update_id')}")

    def _loop(self):
        logger.info("Listening for Telegram commands")
        while not self._stop.is_set():
            try:
                self.poll_once()
            except requests.exceptions.RequestException as e:
                logger.error(f"Error polling Telegram updates: {e}")
                self._stop.wait(self.error_backoff)

    def start(self):
        self._thread = threading.Thread(target=self._loop, name="telegram-commands", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1)
