from __future__ import annotations

import logging

from telegram import Update
from telegram.ext import ContextTypes

from botcmd.context import CommandContext
from botcmd.errors import StoreFailure
from botcmd.models import ChatContext, IncomingMessage
from botcmd.runtime import RuntimeContext
from botcmd.transport import TelegramTransport

logger = logging.getLogger("bot")


def _runtime(context: ContextTypes.DEFAULT_TYPE) -> RuntimeContext:
    return context.application.bot_data["runtime"]


def incoming_from_update(update: Update) -> IncomingMessage | None:
    message = update.effective_message
    chat = update.effective_chat
    if not message or not message.text or not chat:
        return None
    user = update.effective_user
    return IncomingMessage(
        text=message.text,
        chat_id=chat.id,
        speaker_id=user.id if user else None,
        chat_type=str(chat.type),
        message_id=message.message_id,
        raw=message.to_dict(),
    )


async def handle_command_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    incoming = incoming_from_update(update)
    if incoming is None:
        return
    runtime = _runtime(context)
    if runtime.dispatcher.match(incoming.text) is None:
        logger.debug("not a registered command chat_id=%s text=%r", incoming.chat_id, incoming.text)
        return

    chat = ChatContext.from_message(
        incoming,
        share_mode=runtime.config.group_chat_bot_share_mode,
        bot_id=runtime.bot_id,
    )
    reply_to = incoming.message_id if incoming.is_group else None
    transport = TelegramTransport(context.bot, incoming.chat_id, reply_to_message_id=reply_to)
    try:
        user_config = await runtime.user_configs.load(chat.config_store_key)
    except StoreFailure as exc:
        logger.exception("user config load failed key=%s", chat.config_store_key)
        await transport.send_text(f"ERROR: {exc}")
        return

    ctx = CommandContext(
        config=runtime.config,
        chat=chat,
        user_config=user_config,
        transport=transport,
        store=runtime.store,
        user_configs=runtime.user_configs,
        registry=runtime.registry,
        image_client=runtime.image_client,
        update_checker=runtime.update_checker,
    )
    result = await runtime.dispatcher.dispatch(incoming, ctx)
    if result is not None:
        logger.info("command done key=%s stage=%s chat_id=%s", result.command, result.stage.value, incoming.chat_id)


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("update %r caused error", update, exc_info=context.error)
