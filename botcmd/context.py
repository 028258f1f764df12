from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from botcmd.config import AppConfig
from botcmd.models import ChatContext
from botcmd.store import KeyValueStore
from botcmd.transport import Transport
from botcmd.user_config import UserConfigRepository

if TYPE_CHECKING:
    from botcmd.images import ImageClient
    from botcmd.registry import CommandRegistry
    from botcmd.updates import UpdateChecker


@dataclass(frozen=True)
class CommandContext:
    """Everything a command handler may touch during one invocation."""

    config: AppConfig
    chat: ChatContext
    user_config: dict[str, Any]
    transport: Transport
    store: KeyValueStore
    user_configs: UserConfigRepository
    registry: "CommandRegistry"
    image_client: "ImageClient | None" = None
    update_checker: "UpdateChecker | None" = None

    async def reply(self, text: str, **kwargs: Any) -> Any:
        return await self.transport.send_text(text, **kwargs)

    async def save_user_config(self) -> None:
        await self.user_configs.save(self.chat.config_store_key, self.user_config)
