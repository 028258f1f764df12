from __future__ import annotations

import copy
import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from botcmd.merger import ValueKind, schema_from_defaults, validate_schema


DEFAULT_SYSTEM_INIT_MESSAGE = "You are a helpful assistant."
DEFAULT_CHAT_MODEL = "gpt-3.5-turbo"
DEFAULT_REPOSITORY = "exveria1015/ChatGPT-Telegram-Workers"

USER_DEFINE_KEY = "USER_DEFINE"
ROLE_KEY = "ROLE"
RESERVED_USER_CONFIG_KEYS = frozenset({USER_DEFINE_KEY})


@dataclass(frozen=True)
class AppConfig:
    telegram_bot_token: str
    database_path: str | None
    encryption_key: str | None
    bot_username: str
    chat_model: str
    system_init_message: str
    system_init_message_role: str
    group_chat_bot_share_mode: bool
    dev_mode: bool
    debug_mode: bool
    enable_usage_statistics: bool
    hide_command_buttons: list[str]
    openai_api_key: str
    openai_api_base: str
    openai_image_size: str
    openai_timeout_sec: int
    build_timestamp: int
    build_version: str
    update_branch: str
    repository: str


def load_dotenv(path: str | Path) -> dict[str, str]:
    env_path = Path(path)
    if not env_path.exists():
        return {}
    result: dict[str, str] = {}
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        result[key] = value
    return result


def _as_str_list(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(item).strip() for item in raw if str(item).strip()]


def parse_config(raw: Mapping[str, Any]) -> AppConfig:
    openai_raw = raw.get("openai", {}) or {}
    build_raw = raw.get("build", {}) or {}
    return AppConfig(
        telegram_bot_token=str(raw.get("telegram_bot_token", "")),
        database_path=raw.get("database_path", "./bot.sqlite3"),
        encryption_key=raw.get("encryption_key") or None,
        bot_username=str(raw.get("bot_username", "")).lstrip("@"),
        chat_model=str(raw.get("chat_model", DEFAULT_CHAT_MODEL)),
        system_init_message=str(raw.get("system_init_message", DEFAULT_SYSTEM_INIT_MESSAGE)),
        system_init_message_role=str(raw.get("system_init_message_role", "system")),
        group_chat_bot_share_mode=bool(raw.get("group_chat_bot_share_mode", False)),
        dev_mode=bool(raw.get("dev_mode", False)),
        debug_mode=bool(raw.get("debug_mode", False)),
        enable_usage_statistics=bool(raw.get("enable_usage_statistics", False)),
        hide_command_buttons=_as_str_list(raw.get("hide_command_buttons", [])),
        openai_api_key=str(openai_raw.get("api_key", "")),
        openai_api_base=str(openai_raw.get("api_base", "https://api.openai.com/v1")).rstrip("/"),
        openai_image_size=str(openai_raw.get("image_size", "512x512")),
        openai_timeout_sec=int(openai_raw.get("timeout_sec", 60)),
        build_timestamp=int(build_raw.get("timestamp", 0)),
        build_version=str(build_raw.get("version", "unknown")),
        update_branch=str(build_raw.get("update_branch", "master")),
        repository=str(build_raw.get("repository", DEFAULT_REPOSITORY)),
    )


def load_config(path: str | Path, env_values: Mapping[str, str] | None = None) -> AppConfig:
    config = parse_config(json.loads(Path(path).read_text(encoding="utf-8")))
    env = env_values or {}
    overrides: dict[str, Any] = {}
    if env.get("TELEGRAM_BOT_TOKEN"):
        overrides["telegram_bot_token"] = env["TELEGRAM_BOT_TOKEN"]
    if env.get("OPENAI_API_KEY"):
        overrides["openai_api_key"] = env["OPENAI_API_KEY"]
    if env.get("ENCRYPTION_KEY"):
        overrides["encryption_key"] = env["ENCRYPTION_KEY"]
    if overrides:
        config = replace(config, **overrides)
    if not config.telegram_bot_token:
        raise ValueError("telegram_bot_token is required (config.json or TELEGRAM_BOT_TOKEN)")
    return config


def default_user_config(config: AppConfig) -> dict[str, Any]:
    return {
        "SYSTEM_INIT_MESSAGE": config.system_init_message,
        "SYSTEM_INIT_MESSAGE_ROLE": config.system_init_message_role,
        "OPENAI_API_KEY": "",
        "CHAT_MODEL": config.chat_model,
        "OPENAI_API_EXTRA_PARAMS": {},
        "MAX_HISTORY_LENGTH": 20,
        "ENABLE_HISTORY": True,
        "STOP_SEQUENCES": [],
        USER_DEFINE_KEY: {ROLE_KEY: {}},
    }


def build_user_config_schema(defaults: Mapping[str, Any]) -> dict[str, ValueKind]:
    schema = schema_from_defaults(defaults, reserved=RESERVED_USER_CONFIG_KEYS)
    validate_schema(schema, defaults)
    return schema


def fresh_defaults(defaults: Mapping[str, Any]) -> dict[str, Any]:
    return copy.deepcopy(dict(defaults))
