from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


GROUP_CHAT_TYPES = ("group", "supergroup")


class RenderMode(str, Enum):
    PLAIN = "plain"
    HTML = "html"


@dataclass(frozen=True)
class IncomingMessage:
    text: str
    chat_id: int
    speaker_id: int | None
    chat_type: str
    message_id: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_group(self) -> bool:
        return self.chat_type in GROUP_CHAT_TYPES


@dataclass(frozen=True)
class ChatContext:
    chat_id: int
    chat_type: str
    speaker_id: int | None
    chat_history_key: str
    config_store_key: str
    usage_key: str

    @classmethod
    def from_message(cls, message: IncomingMessage, *, share_mode: bool, bot_id: int | None = None) -> "ChatContext":
        history_key = f"history:{message.chat_id}"
        config_key = f"user_config:{message.chat_id}"
        if bot_id:
            history_key += f":{bot_id}"
            config_key += f":{bot_id}"
        # without share mode every group member keeps a private context
        if message.is_group and not share_mode and message.speaker_id:
            history_key += f":{message.speaker_id}"
            config_key += f":{message.speaker_id}"
        return cls(
            chat_id=message.chat_id,
            chat_type=message.chat_type,
            speaker_id=message.speaker_id,
            chat_history_key=history_key,
            config_store_key=config_key,
            usage_key=f"usage:{bot_id}" if bot_id else "usage",
        )


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    message_id: int | None = None
    error: str | None = None
