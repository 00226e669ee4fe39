import logging
from typing import Any, Dict, List, Optional

import requests

from court_monitor import config

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org/bot{token}/{method}"


def _api_url(method: str) -> str:
    return API_BASE.format(token=config.TELEGRAM_BOT_TOKEN, method=method)


def send_telegram_message(message: str, chat_id: Optional[str] = None, reply_markup: Optional[Dict] = None) -> bool:
    """Sends a plain-text message to the configured Telegram chat (or chat_id).

    Returns True when Telegram accepted the message. Failures are logged, never raised.
    """
    token = config.TELEGRAM_BOT_TOKEN
    chat_id = chat_id or config.TELEGRAM_CHAT_ID

    if not token or not chat_id:
        logger.warning("Telegram configuration missing. Skipping notification.")
        return False

    payload: Dict[str, Any] = {
        "chat_id": chat_id,
        "text": message,
        "disable_web_page_preview": True,
    }
    if reply_markup:
        payload["reply_markup"] = reply_markup

    try:
        response = requests.post(_api_url("sendMessage"), json=payload, timeout=10)
        response.raise_for_status()
        logger.info("Telegram notification sent successfully.")
        return True
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to send Telegram message: {e}")
        return False


def book_button(index: int) -> Dict:
    """Inline keyboard with a single button that books slot number `index` (1-based)."""
    return {"inline_keyboard": [[{"text": "📅 Book this slot", "callback_data": f"book_{index}"}]]}


def get_updates(offset: Optional[int] = None, timeout: int = 30) -> List[Dict]:
    """Long-polls Telegram for new updates. Raises requests exceptions to the caller."""
    params: Dict[str, Any] = {"timeout": timeout, "allowed_updates": '["message","callback_query"]'}
    if offset is not None:
        params["offset"] = offset
    response = requests.get(_api_url("getUpdates"), params=params, timeout=timeout + 10)
    response.raise_for_status()
    data = response.json()
    if not data.get("ok"):
        logger.warning(f"Telegram getUpdates returned an error: {data.get('description')}")
        return []
    return data.get("result", [])


def answer_callback_query(callback_query_id: str):
    """Acknowledges an inline button press so the client stops its spinner."""
    try:
        response = requests.post(
            _api_url("answerCallbackQuery"), json={"callback_query_id": callback_query_id}, timeout=10
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.warning(f"Failed to answer callback query {callback_query_id}: {e}")
