"""Typed CLI errors and the JSON error envelope."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorType(str, Enum):
    """Error categories exposed in the error envelope."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(slots=True)
class ACTaskError(Exception):
    """Fatal CLI error carrying a semantic category."""

    type: ErrorType
    message: str
    code: int = 1
    details: str | None = None

    def __str__(self) -> str:
        return self.message

    def to_envelope(self) -> dict[str, Any]:
        """Serialize into the fixed `{"error": {...}}` shape."""

        error: dict[str, Any] = {
            "type": self.type.value,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            error["details"] = self.details
        return {"error": error}

    def human_lines(self) -> list[str]:
        lines = [f"Error: {self.message}"]
        if self.details:
            lines.append(f"  {self.details}")
        lines.append(f"  Type: {self.type.value}, Code: {self.code}")
        return lines


def error_from_response(status_code: int, payload: Any) -> ACTaskError:
    """Map a non-2xx API response onto an error category."""

    remote_message = _payload_message(payload)
    if status_code == 401:
        return ACTaskError(
            type=ErrorType.AUTH_ERROR,
            message="Authentication failed",
            code=401,
            details="The API token is invalid or expired.",
        )
    if status_code == 403:
        return ACTaskError(
            type=ErrorType.AUTH_ERROR,
            message="Access forbidden",
            code=403,
            details="You do not have permission to access this resource.",
        )
    if status_code == 404:
        return ACTaskError(
            type=ErrorType.API_ERROR,
            message="Resource not found",
            code=404,
            details=remote_message or "The requested resource does not exist.",
        )
    return ACTaskError(
        type=ErrorType.API_ERROR,
        message=remote_message or f"API error (HTTP {status_code})",
        code=status_code,
        details=json.dumps(payload, ensure_ascii=False) if payload is not None else None,
    )


def network_error(exc: Exception) -> ACTaskError:
    return ACTaskError(
        type=ErrorType.NETWORK_ERROR,
        message="Unable to connect to ActiveCollab API",
        code=0,
        details=str(exc) or exc.__class__.__name__,
    )


def configuration_error(message: str, details: str | None = None) -> ACTaskError:
    return ACTaskError(
        type=ErrorType.CONFIGURATION_ERROR,
        message=message,
        code=1,
        details=details,
    )


def validation_error(message: str, details: str | None = None) -> ACTaskError:
    return ACTaskError(
        type=ErrorType.VALIDATION_ERROR,
        message=message,
        code=1,
        details=details,
    )


def _payload_message(payload: Any) -> str | None:
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None


def unknown_error(exc: Exception) -> ACTaskError:
    return ACTaskError(
        type=ErrorType.UNKNOWN_ERROR,
        message=str(exc) or "An unexpected error occurred",
        code=1,
    )
