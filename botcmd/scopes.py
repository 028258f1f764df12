from __future__ import annotations

import logging
from typing import Any, Iterable

from telegram import (
    BotCommand,
    BotCommandScope,
    BotCommandScopeAllChatAdministrators,
    BotCommandScopeAllGroupChats,
    BotCommandScopeAllPrivateChats,
)
from telegram.error import TelegramError

from botcmd.registry import CommandDefinition, CommandRegistry, ScopeTag


logger = logging.getLogger("scopes")

TELEGRAM_SCOPES: dict[ScopeTag, type[BotCommandScope]] = {
    ScopeTag.ALL_PRIVATE_CHATS: BotCommandScopeAllPrivateChats,
    ScopeTag.ALL_GROUP_CHATS: BotCommandScopeAllGroupChats,
    ScopeTag.ALL_CHAT_ADMINISTRATORS: BotCommandScopeAllChatAdministrators,
}


def group_by_scope(
    registry: CommandRegistry,
    hidden: Iterable[str] = (),
) -> dict[ScopeTag, list[CommandDefinition]]:
    """Project the registry onto menu scopes, keeping registration order.

    Every scope is present in the result, even without commands, so publishing
    it clears a stale menu.
    """
    hidden_keys = set(hidden)
    grouped: dict[ScopeTag, list[CommandDefinition]] = {scope: [] for scope in ScopeTag}
    for definition in registry:
        if definition.key in hidden_keys:
            continue
        for scope in definition.scopes:
            grouped[scope].append(definition)
    return grouped


def to_bot_commands(definitions: Iterable[CommandDefinition]) -> list[BotCommand]:
    return [BotCommand(definition.key.lstrip("/"), definition.help) for definition in definitions]


def commands_document(registry: CommandRegistry) -> list[dict[str, str]]:
    return [{"command": definition.key, "description": definition.help} for definition in registry]


async def bind_commands(bot: Any, registry: CommandRegistry, hidden: Iterable[str] = ()) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for scope, definitions in group_by_scope(registry, hidden).items():
        try:
            result[scope.value] = await bot.set_my_commands(
                to_bot_commands(definitions),
                scope=TELEGRAM_SCOPES[scope](),
            )
            logger.info("commands published scope=%s count=%s", scope.value, len(definitions))
        except TelegramError as exc:
            logger.error("set_my_commands failed scope=%s error=%s", scope.value, exc)
            result[scope.value] = False
    return {"ok": all(value is True for value in result.values()), "result": result}
