from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from botcmd.auth import AuthorizationPolicy
from botcmd.config import AppConfig
from botcmd.dispatcher import Dispatcher
from botcmd.images import ImageClient
from botcmd.registry import CommandRegistry
from botcmd.store import KeyValueStore
from botcmd.updates import UpdateChecker
from botcmd.user_config import UserConfigRepository


@dataclass
class RuntimeContext:
    config: AppConfig
    registry: CommandRegistry
    policy: AuthorizationPolicy
    dispatcher: Dispatcher
    store: KeyValueStore
    user_configs: UserConfigRepository
    image_client: ImageClient | None
    update_checker: UpdateChecker | None
    http_clients: list[httpx.AsyncClient]
    bot_id: int | None = None

    def to_bot_data(self) -> dict[str, Any]:
        return {"runtime": self}
