from __future__ import annotations

import httpx
from telegram.ext import Application, ApplicationBuilder, MessageHandler, filters

from botcmd.auth import AuthorizationPolicy, RoleResolver
from botcmd.config import AppConfig, build_user_config_schema, default_user_config
from botcmd.dispatcher import Dispatcher
from botcmd.handlers.commands import build_command_registry
from botcmd.handlers.messages import handle_command_message, handle_error
from botcmd.images import ImageClient
from botcmd.runtime import RuntimeContext
from botcmd.security import DocumentCipher
from botcmd.store import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore
from botcmd.updates import BuildInfo, UpdateChecker
from botcmd.user_config import UserConfigRepository


def register_handlers(application: Application) -> None:
    application.add_handler(MessageHandler(filters.TEXT & filters.COMMAND, handle_command_message))
    application.add_error_handler(handle_error)


def build_application(config: AppConfig) -> Application:
    return ApplicationBuilder().token(config.telegram_bot_token).build()


def build_store(config: AppConfig) -> KeyValueStore:
    if not config.database_path:
        return MemoryKeyValueStore()
    cipher = DocumentCipher(config.encryption_key) if config.encryption_key else None
    return SqliteKeyValueStore(config.database_path, cipher=cipher)


def build_runtime(
    config: AppConfig,
    *,
    resolver: RoleResolver,
    store: KeyValueStore | None = None,
    bot_username: str = "",
    bot_id: int | None = None,
) -> RuntimeContext:
    defaults = default_user_config(config)
    schema = build_user_config_schema(defaults)
    registry = build_command_registry(dev_mode=config.dev_mode)
    policy = AuthorizationPolicy(resolver, share_mode=config.group_chat_bot_share_mode)
    dispatcher = Dispatcher(registry, policy, bot_username=bot_username or config.bot_username)
    kv_store = store if store is not None else build_store(config)

    openai_client = httpx.AsyncClient(base_url=config.openai_api_base, timeout=config.openai_timeout_sec)
    github_client = httpx.AsyncClient(timeout=10)
    image_client = ImageClient(openai_client, config.openai_api_key, size=config.openai_image_size)
    update_checker = UpdateChecker(
        github_client,
        BuildInfo(ts=config.build_timestamp, sha=config.build_version),
        repository=config.repository,
        branch=config.update_branch,
    )
    return RuntimeContext(
        config=config,
        registry=registry,
        policy=policy,
        dispatcher=dispatcher,
        store=kv_store,
        user_configs=UserConfigRepository(kv_store, defaults, schema),
        image_client=image_client,
        update_checker=update_checker,
        http_clients=[openai_client, github_client],
        bot_id=bot_id,
    )


def attach_runtime(application: Application, runtime: RuntimeContext) -> None:
    application.bot_data.update(runtime.to_bot_data())
    register_handlers(application)
