from unittest.mock import AsyncMock

import pytest
from telegram import BotCommandScopeAllGroupChats
from telegram.error import NetworkError

from botcmd.handlers.commands import build_command_registry
from botcmd.registry import ScopeTag
from botcmd.scopes import bind_commands, commands_document, group_by_scope, to_bot_commands


def _keys(definitions):
    return [definition.key for definition in definitions]


def test_every_scope_is_present():
    grouped = group_by_scope(build_command_registry(), hidden=[d.key for d in build_command_registry()])
    assert set(grouped) == set(ScopeTag)
    assert all(definitions == [] for definitions in grouped.values())


def test_commands_are_grouped_in_registration_order():
    grouped = group_by_scope(build_command_registry())
    assert _keys(grouped[ScopeTag.ALL_GROUP_CHATS]) == ["/new"]
    assert _keys(grouped[ScopeTag.ALL_PRIVATE_CHATS]) == [
        "/help",
        "/new",
        "/start",
        "/img",
        "/version",
        "/usage",
        "/system",
        "/role",
    ]
    assert "/role" not in _keys(grouped[ScopeTag.ALL_CHAT_ADMINISTRATORS])


def test_command_without_scopes_is_never_published():
    grouped = group_by_scope(build_command_registry())
    assert all("/setenv" not in _keys(definitions) for definitions in grouped.values())


def test_hidden_commands_are_left_out():
    grouped = group_by_scope(build_command_registry(), hidden=["/usage", "/system"])
    for definitions in grouped.values():
        assert "/usage" not in _keys(definitions)
        assert "/system" not in _keys(definitions)


def test_bot_commands_drop_leading_slash():
    commands = to_bot_commands(build_command_registry().list()[:1])
    assert commands[0].command == "help"


def test_commands_document_covers_every_command():
    document = commands_document(build_command_registry(dev_mode=True))
    assert [entry["command"] for entry in document][-1] == "/echo"
    assert all(entry["description"] for entry in document)


@pytest.mark.asyncio
async def test_bind_commands_publishes_each_scope():
    bot = AsyncMock()
    bot.set_my_commands.return_value = True
    result = await bind_commands(bot, build_command_registry())
    assert result["ok"] is True
    assert set(result["result"]) == {scope.value for scope in ScopeTag}
    assert bot.set_my_commands.await_count == 3


@pytest.mark.asyncio
async def test_bind_commands_continues_after_scope_failure():
    async def set_my_commands(commands, scope):
        if isinstance(scope, BotCommandScopeAllGroupChats):
            raise NetworkError("timeout")
        return True

    bot = AsyncMock()
    bot.set_my_commands.side_effect = set_my_commands
    result = await bind_commands(bot, build_command_registry())
    assert result["ok"] is False
    assert result["result"] == {
        "all_private_chats": True,
        "all_group_chats": False,
        "all_chat_administrators": True,
    }
