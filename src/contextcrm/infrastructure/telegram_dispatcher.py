"""NotificationDispatcher that delivers context-capture prompts as Telegram messages.

Each message carries a "Capture context" inline button. Telegram limits
callback_data to 64 bytes, so the button holds a short token and the full
notification data is persisted in a KeyValueStore under that token. A tap can
then be resolved back to the payload even after the process restarted.
"""

import hashlib
import json
import logging

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from contextcrm.application.dto import NotificationRequest
from contextcrm.application.ports import KeyValueStore

logger = logging.getLogger(__name__)

CALLBACK_PREFIX = "capture:"
PAYLOAD_KEY_PREFIX = "@context_crm:notification:"


def callback_token(contact_id: str) -> str:
    return hashlib.sha1(contact_id.encode("utf-8")).hexdigest()[:16]


def _capture_keyboard(token: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton("Capture context", callback_data=CALLBACK_PREFIX + token)]]
    )


class TelegramNotificationDispatcher:
    def __init__(self, bot, chat_id: int | str, payload_store: KeyValueStore) -> None:
        self._bot = bot
        self._chat_id = chat_id
        self._payloads = payload_store

    async def request_permission(self) -> bool:
        """The chat opted in by starting the bot; nothing to prompt for."""
        return True

    async def schedule(self, request: NotificationRequest) -> None:
        contact = request.data.get("contactData") or {}
        contact_id = str(contact.get("id") or "")
        reply_markup = None
        if contact_id:
            token = callback_token(contact_id)
            await self._payloads.set(PAYLOAD_KEY_PREFIX + token, json.dumps(request.data))
            reply_markup = _capture_keyboard(token)
        await self._bot.send_message(
            chat_id=self._chat_id,
            text=f"{request.title}\n{request.body}",
            reply_markup=reply_markup,
        )

    async def resolve_callback(self, callback_data: str | None) -> dict | None:
        """Return the notification data for a tapped button, or None if it is not ours or unknown."""
        data = (callback_data or "").strip()
        if not data.startswith(CALLBACK_PREFIX):
            return None
        token = data[len(CALLBACK_PREFIX):]
        raw = await self._payloads.get(PAYLOAD_KEY_PREFIX + token)
        if raw is None:
            logger.warning("No stored notification for callback %s", data)
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.warning("Stored notification for callback %s is corrupt", data)
            return None
        return payload if isinstance(payload, dict) else None
