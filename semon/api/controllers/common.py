from __future__ import annotations

from typing import Any


class InputError(Exception):
    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("Validation failed")
        self.errors = errors


def require_value(data: dict[str, Any], *keys: str, field: str | None = None) -> str:
    """First non-empty value among ``keys``; reported under ``field`` when missing."""
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return str(value)
    name = field or keys[0]
    raise InputError({name: f"{name} is required"})


def read_bool(data: dict[str, Any], key: str) -> bool | None:
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
    raise InputError({key: f"{key} must be a boolean"})


def read_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InputError({key: f"{key} must be an integer"}) from exc


def without_keys(data: dict[str, Any], *keys: str) -> dict[str, Any]:
    return {key: value for key, value in data.items() if key not in keys}
