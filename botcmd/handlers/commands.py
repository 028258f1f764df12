from __future__ import annotations

import html
import json
import logging
from dataclasses import asdict
from typing import Any

import httpx
from telegram.error import TelegramError

from botcmd.auth import require_admin_in_groups, require_admin_in_shared_groups
from botcmd.context import CommandContext
from botcmd.errors import ConfigMergeError
from botcmd.merger import merge_config, split_assignment
from botcmd.models import IncomingMessage, RenderMode
from botcmd.registry import CommandDefinition, CommandRegistry, ScopeTag
from botcmd.roles import OPENAI_API_EXTRA_PARAMS, SYSTEM_INIT_MESSAGE, RoleStore
from botcmd.user_config import role_definitions

logger = logging.getLogger("bot")

USAGE_TOP_CHATS = 30
SECRET_KEYS = ("OPENAI_API_KEY",)

ROLE_HELP_TEXT = (
    "Invalid format: the full form of the command is `/role operation`.\n"
    "The following operations are supported:\n"
    "`/role show` shows the currently defined roles.\n"
    "`/role role_name del` deletes the role with the given name.\n"
    "`/role role_name KEY=VALUE` updates a setting of the given role.\n"
    "Available settings:\n"
    f"  `{SYSTEM_INIT_MESSAGE}`: initial system message\n"
    f"  `{OPENAI_API_EXTRA_PARAMS}`: extra OpenAI API parameters, must be a JSON object"
)


def _mask_secrets(data: dict[str, Any]) -> dict[str, Any]:
    masked = dict(data)
    for key in SECRET_KEYS:
        value = masked.get(key)
        if isinstance(value, str) and value:
            masked[key] = value[:4] + "…" if len(value) > 8 else "***"
    return masked


async def handle_help(ctx: CommandContext, message: IncomingMessage, command: str, subcommand: str) -> Any:
    lines = ["The following commands are currently supported:"]
    lines.extend(f"{definition.key}: {definition.help}" for definition in ctx.registry)
    return await ctx.reply("\n".join(lines))


async def handle_new_chat_context(ctx: CommandContext, message: IncomingMessage, command: str, subcommand: str) -> Any:
    try:
        await ctx.store.delete(ctx.chat.chat_history_key)
    except Exception as exc:
        logger.exception("history reset failed chat_id=%s", ctx.chat.chat_id)
        return await ctx.reply(f"ERROR: {exc}")
    if command == "/new":
        return await ctx.reply("A new conversation has started.")
    if ctx.chat.chat_type == "private":
        return await ctx.reply(f"A new conversation has started, your ID ({ctx.chat.chat_id})")
    return await ctx.reply(f"A new conversation has started, group ID ({ctx.chat.chat_id})")


async def handle_generate_image(ctx: CommandContext, message: IncomingMessage, command: str, subcommand: str) -> Any:
    if not subcommand:
        return await ctx.reply("Please describe the image. The full form of the command is `/img image description`.")
    if ctx.image_client is None:
        return await ctx.reply("Image generation is not configured.")
    try:
        ctx.transport.send_typing("upload_photo")
        url = await ctx.image_client.generate(subcommand, api_key=ctx.user_config.get("OPENAI_API_KEY") or None)
    except (httpx.HTTPError, ValueError) as exc:
        return await ctx.reply(f"ERROR:IMG: {exc}")
    try:
        return await ctx.transport.send_photo(url)
    except TelegramError:
        logger.warning("send_photo failed chat_id=%s, sending url", ctx.chat.chat_id)
        return await ctx.reply(f"Image:\n{url}")


async def handle_version(ctx: CommandContext, message: IncomingMessage, command: str, subcommand: str) -> Any:
    if ctx.update_checker is None:
        return await ctx.reply("Update check is not configured.")
    status = await ctx.update_checker.check()
    current = json.dumps(status.current.to_dict())
    online = json.dumps(status.online.to_dict())
    if status.has_update:
        return await ctx.reply(f"New version found. Current version: {current}, latest version: {online}")
    return await ctx.reply(f"The current version is up to date. Current version: {current}")


async def handle_set_env(ctx: CommandContext, message: IncomingMessage, command: str, subcommand: str) -> Any:
    assignment = split_assignment(subcommand)
    if assignment is None:
        return await ctx.reply("Invalid config format: the full form of the command is /setenv KEY=VALUE")
    key, value = assignment
    try:
        merge_config(ctx.user_config, key, value, schema=ctx.user_configs.schema)
    except ConfigMergeError as exc:
        logger.info("setenv rejected chat_id=%s key=%s error=%s", ctx.chat.chat_id, key, exc)
        return await ctx.reply(f"Invalid config format: {exc}")
    await ctx.save_user_config()
    return await ctx.reply("Update succeeded")


async def handle_usage(ctx: CommandContext, message: IncomingMessage, command: str, subcommand: str) -> Any:
    if not ctx.config.enable_usage_statistics:
        return await ctx.reply("Usage statistics are not enabled for this bot.")
    raw = await ctx.store.get(ctx.chat.usage_key)
    usage = json.loads(raw) if raw else {}
    text = "📊 Current bot usage\n\nTokens:\n"
    tokens = usage.get("tokens") if isinstance(usage, dict) else None
    if not tokens:
        return await ctx.reply(text + "- No usage yet")
    chats: dict[str, int] = tokens.get("chats") or {}
    sorted_chats = sorted(chats, key=lambda chat: chats[chat], reverse=True)
    text += f"- Total: {tokens.get('total', 0)} tokens\n- Per chat:"
    for chat in sorted_chats[:USAGE_TOP_CHATS]:
        text += f"\n  - {chat}: {chats[chat]} tokens"
    if not sorted_chats:
        text += " 0 tokens"
    elif len(sorted_chats) > USAGE_TOP_CHATS:
        text += "\n  ..."
    return await ctx.reply(text)


async def handle_system(ctx: CommandContext, message: IncomingMessage, command: str, subcommand: str) -> Any:
    text = "Current system information:\n"
    text += f"OpenAI model: {html.escape(str(ctx.user_config.get('CHAT_MODEL', ctx.config.chat_model)))}\n"
    if ctx.config.debug_mode:
        text += "<pre>"
        user_config = json.dumps(_mask_secrets(ctx.user_config), ensure_ascii=False, indent=2)
        text += f"USER_CONFIG: \n{html.escape(user_config)}\n"
        if ctx.config.dev_mode:
            chat_context = json.dumps(asdict(ctx.chat), ensure_ascii=False, indent=2)
            text += f"CHAT_CONTEXT: \n{html.escape(chat_context)}\n"
        text += "</pre>"
    return await ctx.reply(text, render_mode=RenderMode.HTML)


async def handle_role(ctx: CommandContext, message: IncomingMessage, command: str, subcommand: str) -> Any:
    subcommand = subcommand.strip()
    roles = RoleStore(role_definitions(ctx.user_config), ctx.config.system_init_message)
    if subcommand == "show":
        rendered = roles.render()
        if rendered is None:
            return await ctx.reply("No roles are currently defined.")
        return await ctx.reply(rendered, render_mode=RenderMode.HTML)

    if " " not in subcommand:
        return await ctx.reply(ROLE_HELP_TEXT)
    name, settings = subcommand.split(" ", 1)
    settings = settings.strip()
    assignment = split_assignment(settings)
    if assignment is None:
        if settings != "del":
            return await ctx.reply(ROLE_HELP_TEXT)
        if not roles.delete(name):
            return await ctx.reply(f"Role not found: {name}")
        try:
            await ctx.save_user_config()
        except Exception as exc:
            logger.exception("role delete failed chat_id=%s role=%s", ctx.chat.chat_id, name)
            return await ctx.reply(f"Error while deleting role: `{exc}`")
        return await ctx.reply("Role deleted successfully")

    key, value = assignment
    try:
        roles.set(name, key, value)
    except ConfigMergeError as exc:
        return await ctx.reply(f"Invalid config format: `{exc}`")
    await ctx.save_user_config()
    return await ctx.reply("Update succeeded")


async def handle_echo(ctx: CommandContext, message: IncomingMessage, command: str, subcommand: str) -> Any:
    dumped = json.dumps({"message": message.raw or asdict(message)}, ensure_ascii=False, indent=2, default=str)
    return await ctx.reply(f"<pre>{html.escape(dumped)}</pre>", render_mode=RenderMode.HTML)


PRIVATE_AND_ADMINS = (ScopeTag.ALL_PRIVATE_CHATS, ScopeTag.ALL_CHAT_ADMINISTRATORS)

COMMANDS: tuple[CommandDefinition, ...] = (
    CommandDefinition(
        key="/help",
        help="Show help for the available commands",
        scopes=PRIVATE_AND_ADMINS,
        handler=handle_help,
    ),
    CommandDefinition(
        key="/new",
        help="Start a new conversation",
        scopes=(ScopeTag.ALL_PRIVATE_CHATS, ScopeTag.ALL_GROUP_CHATS, ScopeTag.ALL_CHAT_ADMINISTRATORS),
        handler=handle_new_chat_context,
        auth_rule=require_admin_in_shared_groups,
    ),
    CommandDefinition(
        key="/start",
        help="Get your ID and start a new conversation",
        scopes=PRIVATE_AND_ADMINS,
        handler=handle_new_chat_context,
        auth_rule=require_admin_in_groups,
    ),
    CommandDefinition(
        key="/img",
        help="Generate an image. The full form of the command is /img image_description, e.g. /img beach_under_moonlight",
        scopes=PRIVATE_AND_ADMINS,
        handler=handle_generate_image,
        auth_rule=require_admin_in_shared_groups,
    ),
    CommandDefinition(
        key="/version",
        help="Show the current version and check whether an update is available",
        scopes=PRIVATE_AND_ADMINS,
        handler=handle_version,
        auth_rule=require_admin_in_groups,
    ),
    CommandDefinition(
        key="/setenv",
        help="Change a user setting. The full form of the command is /setenv KEY=VALUE",
        scopes=(),
        handler=handle_set_env,
        auth_rule=require_admin_in_shared_groups,
    ),
    CommandDefinition(
        key="/usage",
        help="Show the current bot usage",
        scopes=PRIVATE_AND_ADMINS,
        handler=handle_usage,
        auth_rule=require_admin_in_groups,
    ),
    CommandDefinition(
        key="/system",
        help="Show the current system information",
        scopes=PRIVATE_AND_ADMINS,
        handler=handle_system,
        auth_rule=require_admin_in_groups,
    ),
    CommandDefinition(
        key="/role",
        help="Manage preset roles",
        scopes=(ScopeTag.ALL_PRIVATE_CHATS,),
        handler=handle_role,
        auth_rule=require_admin_in_shared_groups,
    ),
)

ECHO_COMMAND = CommandDefinition(
    key="/echo",
    help="[DEBUG ONLY] Echo the incoming message",
    scopes=PRIVATE_AND_ADMINS,
    handler=handle_echo,
    auth_rule=require_admin_in_groups,
)


def build_command_registry(dev_mode: bool = False) -> CommandRegistry:
    registry = CommandRegistry(COMMANDS)
    if dev_mode:
        registry.register(ECHO_COMMAND)
    return registry
