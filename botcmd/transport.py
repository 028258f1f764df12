from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError

from botcmd.models import DeliveryResult, RenderMode
from botcmd.utils import split_message


logger = logging.getLogger("bot")


class Transport(Protocol):
    async def send_text(self, text: str, render_mode: RenderMode = RenderMode.PLAIN) -> DeliveryResult: ...

    async def send_photo(self, url: str) -> DeliveryResult: ...

    def send_typing(self, action: str = "typing") -> None: ...


class TelegramTransport:
    """Sends replies to a single chat through a python-telegram-bot ``Bot``."""

    def __init__(self, bot: Any, chat_id: int, reply_to_message_id: int | None = None) -> None:
        self._bot = bot
        self._chat_id = chat_id
        self._reply_to_message_id = reply_to_message_id
        self._background: set[asyncio.Task[Any]] = set()

    async def send_text(self, text: str, render_mode: RenderMode = RenderMode.PLAIN) -> DeliveryResult:
        parse_mode = ParseMode.HTML if render_mode is RenderMode.HTML else None
        last_message_id: int | None = None
        for chunk in split_message(text):
            try:
                sent = await self._bot.send_message(
                    chat_id=self._chat_id,
                    text=chunk,
                    parse_mode=parse_mode,
                    reply_to_message_id=self._reply_to_message_id,
                )
            except BadRequest:
                if parse_mode is None:
                    raise
                # malformed markup: resend the chunk without parsing
                logger.warning("HTML rejected chat_id=%s, resending as plain text", self._chat_id)
                sent = await self._bot.send_message(
                    chat_id=self._chat_id,
                    text=chunk,
                    reply_to_message_id=self._reply_to_message_id,
                )
            last_message_id = getattr(sent, "message_id", None)
        return DeliveryResult(ok=True, message_id=last_message_id)

    async def send_photo(self, url: str) -> DeliveryResult:
        sent = await self._bot.send_photo(
            chat_id=self._chat_id,
            photo=url,
            reply_to_message_id=self._reply_to_message_id,
        )
        return DeliveryResult(ok=True, message_id=getattr(sent, "message_id", None))

    def send_typing(self, action: str = "typing") -> None:
        task = asyncio.create_task(self._send_action(action))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _send_action(self, action: str) -> None:
        try:
            await self._bot.send_chat_action(chat_id=self._chat_id, action=action)
        except TelegramError:
            logger.debug("chat action failed chat_id=%s action=%s", self._chat_id, action)


class TelegramRoleResolver:
    def __init__(self, bot: Any) -> None:
        self._bot = bot

    async def resolve_role(self, chat_id: int, speaker_id: int | None) -> str | None:
        if speaker_id is None:
            return None
        try:
            member = await self._bot.get_chat_member(chat_id=chat_id, user_id=speaker_id)
        except TelegramError:
            logger.exception("get_chat_member failed chat_id=%s user_id=%s", chat_id, speaker_id)
            return None
        status = getattr(member, "status", None)
        return str(status) if status else None
