from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError


class ApiResponse(BaseModel):
    success: bool
    data: Any | None = None
    message: str | None = None
    errors: dict[str, str] | None = None
    error: str | None = None


def ok(data: Any = None, message: str | None = None) -> ApiResponse:
    return ApiResponse(success=True, data=data, message=message)


def fail(message: str, *, error: str | None = None) -> ApiResponse:
    return ApiResponse(success=False, message=message, error=error)


def validation_failed(errors: dict[str, str]) -> ApiResponse:
    return ApiResponse(success=False, message="Validation failed", errors=errors)


def validation_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for item in exc.errors():
        field = ".".join(str(part) for part in item.get("loc", ())) or "__root__"
        message = str(item.get("msg", "invalid value"))
        # Model-level validators report "Value error, <message>".
        errors.setdefault(field, message.removeprefix("Value error, "))
    return errors
