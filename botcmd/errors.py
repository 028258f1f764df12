from __future__ import annotations

from typing import Sequence


class CommandError(Exception):
    """Base exception for command dispatch errors."""


class DuplicateCommand(CommandError):
    """Raised when a command key is registered twice."""


class ConfigSchemaError(CommandError):
    """Raised when the merge schema does not describe the default config shape."""


class AuthenticationLookupFailure(CommandError):
    """Raised when the speaker's role could not be determined."""


class InsufficientRole(CommandError):
    def __init__(self, required: Sequence[str], actual: str | None) -> None:
        super().__init__(f"Insufficient permissions. Required roles: {','.join(required)}. Current role: {actual}")
        self.required = tuple(required)
        self.actual = actual


class ConfigMergeError(CommandError):
    def __init__(self, key: str, value: str, message: str) -> None:
        super().__init__(message)
        self.key = key
        self.value = value


class UnknownConfigKey(ConfigMergeError):
    def __init__(self, key: str, value: str) -> None:
        super().__init__(key, value, f"unsupported config key {key!r}")


class TypeMismatch(ConfigMergeError):
    def __init__(self, key: str, value: str, expected: str) -> None:
        super().__init__(key, value, f"{key} expects a {expected} value, got {value!r}")
        self.expected = expected


class InvalidJSON(ConfigMergeError):
    def __init__(self, key: str, value: str, reason: str) -> None:
        super().__init__(key, value, f"{key} must be valid JSON: {reason}")


class HandlerExecutionFailure(CommandError):
    """Wraps an exception raised inside a command handler."""

    def __init__(self, command: str, cause: BaseException) -> None:
        super().__init__(f"Command execution failed: {cause}")
        self.command = command
        self.cause = cause


class StoreFailure(CommandError):
    """Raised when the key-value store cannot read or write a document."""
