from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from telegram import Update

from botcmd.app_factory import attach_runtime, build_application, build_runtime
from botcmd.config import load_config, load_dotenv
from botcmd.scopes import bind_commands
from botcmd.store import SqliteKeyValueStore
from botcmd.transport import TelegramRoleResolver


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("bot")


async def main() -> None:
    env_values = load_dotenv(Path(__file__).with_name(".env"))
    config = load_config(Path(__file__).with_name("config.json"), env_values)

    application = build_application(config)
    await application.initialize()
    me = await application.bot.get_me()
    runtime = build_runtime(
        config,
        resolver=TelegramRoleResolver(application.bot),
        bot_username=config.bot_username or me.username,
        bot_id=me.id,
    )
    attach_runtime(application, runtime)
    if config.dev_mode:
        logger.warning("dev_mode is on: /echo is registered and /system shows chat context")

    try:
        bound = await bind_commands(application.bot, runtime.registry, hidden=config.hide_command_buttons)
        if not bound["ok"]:
            logger.warning("some command scopes were not published: %s", bound["result"])
        await application.start()
        await application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
        logger.info("Command bot started as @%s commands=%s", me.username, len(runtime.registry))
        await asyncio.Event().wait()
    finally:
        for client in runtime.http_clients:
            await client.aclose()
        if isinstance(runtime.store, SqliteKeyValueStore):
            runtime.store.close()
        if application.updater.running:
            await application.updater.stop()
        if application.running:
            await application.stop()
        await application.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
