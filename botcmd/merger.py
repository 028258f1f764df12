from __future__ import annotations

import json
import math
from enum import Enum
from typing import Any, Mapping, MutableMapping

from botcmd.errors import ConfigSchemaError, InvalidJSON, TypeMismatch, UnknownConfigKey


LIST_DELIMITER = ","


class ValueKind(str, Enum):
    BOOLEAN = "boolean"
    NUMBER = "number"
    LIST = "list"
    OBJECT = "object"
    STRING = "string"


ConfigSchema = Mapping[str, ValueKind]


def kind_of(value: Any) -> ValueKind | None:
    # bool is a subclass of int, so it has to be checked first
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, list):
        return ValueKind.LIST
    if isinstance(value, dict):
        return ValueKind.OBJECT
    if isinstance(value, str):
        return ValueKind.STRING
    return None


def schema_from_defaults(defaults: Mapping[str, Any], reserved: frozenset[str] = frozenset()) -> dict[str, ValueKind]:
    schema: dict[str, ValueKind] = {}
    for key, value in defaults.items():
        if key in reserved:
            continue
        kind = kind_of(value)
        if kind is None:
            raise ConfigSchemaError(f"Config key {key!r} has unsupported default {value!r}")
        schema[key] = kind
    return schema


def validate_schema(schema: ConfigSchema, defaults: Mapping[str, Any]) -> None:
    """Check that every schema entry matches the kind of its default value."""
    for key, kind in schema.items():
        if key not in defaults:
            raise ConfigSchemaError(f"Schema key {key!r} is missing from the default config")
        actual = kind_of(defaults[key])
        if actual is not kind:
            raise ConfigSchemaError(f"Schema key {key!r} declares {kind.value}, default is {actual}")


def parse_value(kind: ValueKind, key: str, raw_value: str) -> Any:
    if kind is ValueKind.BOOLEAN:
        lowered = raw_value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        raise TypeMismatch(key, raw_value, kind.value)
    if kind is ValueKind.NUMBER:
        text = raw_value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise TypeMismatch(key, raw_value, kind.value) from None
        if not math.isfinite(number):
            raise TypeMismatch(key, raw_value, kind.value)
        return number
    if kind is ValueKind.LIST:
        if not raw_value.strip():
            return []
        return [item.strip() for item in raw_value.split(LIST_DELIMITER)]
    if kind is ValueKind.OBJECT:
        try:
            parsed = json.loads(raw_value)
        except json.JSONDecodeError as exc:
            raise InvalidJSON(key, raw_value, exc.msg) from exc
        if not isinstance(parsed, dict):
            raise TypeMismatch(key, raw_value, "JSON object")
        return parsed
    return raw_value


def merge_config(
    target: MutableMapping[str, Any],
    key: str,
    raw_value: str,
    schema: ConfigSchema | None = None,
) -> Any:
    """Apply a single KEY=VALUE delta onto ``target`` in place.

    The kind of the new value comes from ``schema`` when given, otherwise from
    the value already stored under ``key``. Keys the schema (or target) does not
    know are rejected with UnknownConfigKey. Objects are replaced wholesale,
    lists are replaced by the comma-separated items of ``raw_value``. On any
    failure ``target`` is left untouched.
    """
    if schema is not None:
        kind = schema.get(key)
        if kind is None:
            raise UnknownConfigKey(key, raw_value)
    else:
        if key not in target:
            raise UnknownConfigKey(key, raw_value)
        kind = kind_of(target[key])
        if kind is None:
            raise UnknownConfigKey(key, raw_value)
    value = parse_value(kind, key, raw_value)
    target[key] = value
    return value


def split_assignment(text: str) -> tuple[str, str] | None:
    if "=" not in text:
        return None
    key, value = text.split("=", 1)
    return key.strip(), value
