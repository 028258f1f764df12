from __future__ import annotations

import html
import json
from typing import Any

from botcmd.merger import ValueKind, merge_config


SYSTEM_INIT_MESSAGE = "SYSTEM_INIT_MESSAGE"
OPENAI_API_EXTRA_PARAMS = "OPENAI_API_EXTRA_PARAMS"

ROLE_SCHEMA: dict[str, ValueKind] = {
    SYSTEM_INIT_MESSAGE: ValueKind.STRING,
    OPENAI_API_EXTRA_PARAMS: ValueKind.OBJECT,
}


class RoleStore:
    """Named role overrides kept inside the user config's RoleDefinitions mapping.

    The store mutates the mapping it wraps; persisting the surrounding user
    config is up to the caller.
    """

    def __init__(self, roles: dict[str, dict[str, Any]], default_init_message: str) -> None:
        self._roles = roles
        self._default_init_message = default_init_message

    def __len__(self) -> int:
        return len(self._roles)

    def __contains__(self, name: object) -> bool:
        return name in self._roles

    def names(self) -> list[str]:
        return list(self._roles.keys())

    def get(self, name: str) -> dict[str, Any] | None:
        return self._roles.get(name)

    def render(self) -> str | None:
        if not self._roles:
            return None
        lines = [f"Currently defined roles ({len(self._roles)}):"]
        for name, role in self._roles.items():
            lines.append(f"~{html.escape(name)}:")
            lines.append(f"<pre>{html.escape(json.dumps(role, ensure_ascii=False))}</pre>")
        return "\n".join(lines)

    def delete(self, name: str) -> bool:
        if name not in self._roles:
            return False
        del self._roles[name]
        return True

    def set(self, name: str, key: str, raw_value: str) -> Any:
        """Merge KEY=VALUE into a role, creating it with schema defaults first.

        A role created here is rolled back when the merge fails, so a rejected
        value never leaves an empty role behind.
        """
        created = name not in self._roles
        if created:
            self._roles[name] = {
                SYSTEM_INIT_MESSAGE: self._default_init_message,
                OPENAI_API_EXTRA_PARAMS: {},
            }
        try:
            return merge_config(self._roles[name], key, raw_value, schema=ROLE_SCHEMA)
        except Exception:
            if created:
                del self._roles[name]
            raise
