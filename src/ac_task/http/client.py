"""HTTP client for the ActiveCollab API with typed error mapping."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ac_task.config import ConnectionSettings
from ac_task.errors import ACTaskError, ErrorType, error_from_response, network_error

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
AUTH_HEADER = "X-Angie-AuthApiToken"


@dataclass(slots=True)
class ApiResponse:
    """Decoded API response; HTTP failures are data, not exceptions."""

    status_code: int
    payload: Any

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def raise_for_error(self) -> Any:
        """Return payload on success, raise the mapped error otherwise."""

        if not self.is_success:
            raise error_from_response(self.status_code, self.payload)
        return self.payload


class ActiveCollabClient:
    """Authenticated httpx wrapper; one instance per CLI invocation."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        verify: bool = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.verify = verify
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                AUTH_HEADER: token,
            },
            verify=verify,
            transport=transport,
            event_hooks={"request": [_log_request], "response": [_log_response]},
        )

    @classmethod
    def from_settings(
        cls,
        connection: ConnectionSettings,
        *,
        insecure: bool = False,
        transport: httpx.BaseTransport | None = None,
    ) -> ActiveCollabClient:
        if not connection.base_url or not connection.token:
            raise ACTaskError(
                type=ErrorType.CONFIGURATION_ERROR,
                message="Connection settings are incomplete",
                details="Both base URL and API token are required.",
            )
        return cls(
            connection.base_url,
            connection.token,
            timeout_seconds=connection.request_timeout_seconds,
            verify=not (insecure or connection.insecure),
            transport=transport,
        )

    def send(self, method: str, path: str, *, json: Any = None) -> ApiResponse:
        """Issue one request. Only transport failures raise."""

        try:
            response = self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise network_error(exc) from exc
        return ApiResponse(status_code=response.status_code, payload=_decode(response))

    def get(self, path: str) -> Any:
        return self.send("GET", path).raise_for_error()

    def put(self, path: str, json: Any = None) -> Any:
        return self.send("PUT", path, json=json if json is not None else {}).raise_for_error()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ActiveCollabClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def unwrap_single(payload: Any) -> Any:
    """Return the record from a `{"single": {...}}` wrapper or the payload itself."""

    if isinstance(payload, dict) and isinstance(payload.get("single"), dict):
        return payload["single"]
    return payload


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return {"message": response.text.strip()[:500]} if response.text.strip() else None


def _log_request(request: httpx.Request) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug("HTTP request %s %s", request.method, request.url)
    if request.content:
        logger.debug("  body: %s", request.content.decode("utf-8", errors="replace"))


def _log_response(response: httpx.Response) -> None:
    logger.debug(
        "HTTP response %s %s -> %d",
        response.request.method,
        response.request.url,
        response.status_code,
    )
