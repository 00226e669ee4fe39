from unittest.mock import MagicMock, patch

import pytest
import requests

from court_monitor.commands import CommandHandler, CommandListener
from court_monitor.models import MonitoringWindow, Slot

SLOTS = (
    Slot(court_id=1, court_name="Cancha 1", date="2025-01-01", time="17:00", price=12500),
    Slot(court_id=2, court_name="Cancha 2", date="2025-01-02", time="18:30"),
)


@pytest.fixture
def monitor():
    m = MagicMock()
    m.available_slots = SLOTS
    m.state.window = MonitoringWindow.starting_from("2025-01-01")
    m.book.return_value = "booked!"
    return m


@pytest.fixture
def handler(monitor):
    return CommandHandler(monitor, chat_id="42")


def _message(text, chat_id=42):
    return {"update_id": 1, "message": {"chat": {"id": chat_id}, "text": text}}


def test_slots_command_lists_numbered_slots(handler, monitor):
    handler.handle_update(_message("/slots"))

    text = monitor.send.call_args.args[0]
    assert "1. today (2025-01-01) 17:00hs - Cancha 1 - $12.500 - 90 min" in text
    assert "2. tomorrow (2025-01-02) 18:30hs - Cancha 2 - Price not available - 90 min" in text


def test_slots_command_with_no_slots(handler, monitor):
    monitor.available_slots = ()
    handler.handle_update(_message("/slots"))
    assert monitor.send.call_args.args[0] == "No slots available right now."


def test_book_command_books_one_based_index(handler, monitor):
    handler.handle_update(_message("/book 2"))

    monitor.book.assert_called_once_with(SLOTS[1])
    texts = [c.args[0] for c in monitor.send.call_args_list]
    assert texts[0].startswith("⏳ Processing booking")
    assert texts[-1] == "booked!"


@pytest.mark.parametrize("text", ["/book 0", "/book 3"])
def test_book_command_rejects_out_of_range(handler, monitor, text):
    handler.handle_update(_message(text))
    monitor.book.assert_not_called()
    assert "Invalid slot number" in monitor.send.call_args.args[0]


def test_ignores_other_chats(handler, monitor):
    handler.handle_update(_message("/book 1", chat_id=7))
    monitor.book.assert_not_called()
    monitor.send.assert_not_called()


def test_ignores_free_text(handler, monitor):
    handler.handle_update(_message("hello"))
    monitor.send.assert_not_called()


@patch("court_monitor.commands.telegram_notifier.answer_callback_query")
def test_book_button_callback(mock_answer, handler, monitor):
    update = {
        "update_id": 3,
        "callback_query": {"id": "cb1", "data": "book_1", "message": {"chat": {"id": 42}}},
    }
    handler.handle_update(update)

    mock_answer.assert_called_once_with("cb1")
    monitor.book.assert_called_once_with(SLOTS[0])


@patch("court_monitor.commands.telegram_notifier.get_updates")
def test_listener_advances_offset_and_survives_handler_errors(mock_get_updates):
    handler = MagicMock()
    handler.handle_update.side_effect = [RuntimeError("bad update"), None]
    mock_get_updates.return_value = [{"update_id": 10}, {"update_id": 11}]

    listener = CommandListener(handler, poll_timeout=1)
    listener.poll_once()

    assert listener.offset == 12
    assert handler.handle_update.call_count == 2
    mock_get_updates.assert_called_once_with(None, timeout=1)


@patch("court_monitor.commands.telegram_notifier.get_updates")
def test_listener_thread_stops(mock_get_updates):
    mock_get_updates.side_effect = requests.exceptions.ConnectionError("offline")
    listener = CommandListener(MagicMock(), poll_timeout=1, error_backoff=0.01)

    listener.start()
    listener.stop()

    assert not listener._thread.is_alive()
