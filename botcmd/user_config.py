from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from botcmd.config import ROLE_KEY, USER_DEFINE_KEY, fresh_defaults
from botcmd.errors import StoreFailure
from botcmd.merger import ConfigSchema, kind_of
from botcmd.store import KeyValueStore


logger = logging.getLogger("store")


def role_definitions(user_config: dict[str, Any]) -> dict[str, dict[str, Any]]:
    user_define = user_config.setdefault(USER_DEFINE_KEY, {})
    return user_define.setdefault(ROLE_KEY, {})


def dump_user_config(user_config: Mapping[str, Any]) -> str:
    return json.dumps(user_config, ensure_ascii=False)


def parse_user_config(
    document: str | None,
    defaults: Mapping[str, Any],
    schema: ConfigSchema,
) -> dict[str, Any]:
    """Overlay a stored document on the defaults.

    Stored keys outside the schema, or whose value kind no longer matches the
    default, are dropped so the result always has the default shape.
    """
    config = fresh_defaults(defaults)
    if not document:
        return config
    try:
        stored = json.loads(document)
    except json.JSONDecodeError as exc:
        raise StoreFailure(f"stored user config is not valid JSON: {exc.msg}") from exc
    if not isinstance(stored, dict):
        raise StoreFailure("stored user config is not a JSON object")

    for key, value in stored.items():
        if key == USER_DEFINE_KEY:
            continue
        kind = schema.get(key)
        if kind is None:
            logger.warning("dropping unknown stored config key=%s", key)
            continue
        if kind_of(value) is not kind:
            logger.warning("dropping stored config key=%s with kind=%s", key, kind_of(value))
            continue
        config[key] = value

    user_define = stored.get(USER_DEFINE_KEY)
    stored_roles = user_define.get(ROLE_KEY) if isinstance(user_define, dict) else None
    roles = role_definitions(config)
    if isinstance(stored_roles, dict):
        for name, role in stored_roles.items():
            if isinstance(role, dict):
                roles[str(name)] = role
    return config


class UserConfigRepository:
    def __init__(self, store: KeyValueStore, defaults: Mapping[str, Any], schema: ConfigSchema) -> None:
        self._store = store
        self._defaults = defaults
        self._schema = schema

    @property
    def schema(self) -> ConfigSchema:
        return self._schema

    @property
    def defaults(self) -> Mapping[str, Any]:
        return self._defaults

    async def load(self, key: str) -> dict[str, Any]:
        return parse_user_config(await self._store.get(key), self._defaults, self._schema)

    async def save(self, key: str, user_config: Mapping[str, Any]) -> None:
        await self._store.put(key, dump_user_config(user_config))
