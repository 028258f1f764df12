from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator, Optional, Sequence

from botcmd.errors import DuplicateCommand

if TYPE_CHECKING:
    from botcmd.context import CommandContext
    from botcmd.models import IncomingMessage


class ScopeTag(str, Enum):
    ALL_PRIVATE_CHATS = "all_private_chats"
    ALL_GROUP_CHATS = "all_group_chats"
    ALL_CHAT_ADMINISTRATORS = "all_chat_administrators"


RoleRequirement = Optional[tuple[str, ...]]
AuthRule = Callable[[str, bool], RoleRequirement]
CommandHandlerFn = Callable[["CommandContext", "IncomingMessage", str, str], Awaitable[Any]]


@dataclass(frozen=True)
class CommandDefinition:
    key: str
    help: str
    handler: CommandHandlerFn
    scopes: tuple[ScopeTag, ...] = field(default_factory=tuple)
    auth_rule: AuthRule | None = None

    def matches(self, text: str) -> bool:
        return text == self.key or text.startswith(self.key + " ")


class CommandRegistry:
    """Ordered table of bot commands.

    Iteration follows registration order, which is also the order of the help
    text and of the published command menus.
    """

    def __init__(self, definitions: Sequence[CommandDefinition] = ()) -> None:
        self._commands: dict[str, CommandDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: CommandDefinition) -> None:
        key = definition.key
        if not key.startswith("/") or len(key) < 2:
            raise ValueError(f"Command key {key!r} must start with '/'")
        if any(ch.isspace() for ch in key) or "@" in key:
            raise ValueError(f"Command key {key!r} must be a single word")
        if key in self._commands:
            raise DuplicateCommand(f"Command '{key}' already registered")
        self._commands[key] = definition

    def lookup(self, text: str) -> CommandDefinition | None:
        best: CommandDefinition | None = None
        for definition in self._commands.values():
            if definition.matches(text) and (best is None or len(definition.key) > len(best.key)):
                best = definition
        return best

    def get(self, key: str) -> CommandDefinition | None:
        return self._commands.get(key)

    def list(self) -> list[CommandDefinition]:
        return list(self._commands.values())

    def __iter__(self) -> Iterator[CommandDefinition]:
        return iter(self.list())

    def __contains__(self, key: object) -> bool:
        return key in self._commands

    def __len__(self) -> int:
        return len(self._commands)
