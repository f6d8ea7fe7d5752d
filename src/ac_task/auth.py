"""Identity of the API token owner."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from ac_task.errors import ACTaskError, ErrorType
from ac_task.http.client import ActiveCollabClient, unwrap_single

logger = logging.getLogger(__name__)

_TOKEN_USER_ID = re.compile(r"^(\d+)-")


@dataclass(frozen=True, slots=True)
class UserIdentity:
    """Authenticated user as reported by the API."""

    id: int
    name: str
    active: bool

    @property
    def status(self) -> str:
        return "active" if self.active else "inactive"


def extract_user_id_from_token(token: str) -> int | None:
    """Tokens are issued as `<user_id>-<secret>`."""

    match = _TOKEN_USER_ID.match(token)
    return int(match.group(1)) if match else None


def fetch_current_user(client: ActiveCollabClient, token: str | None = None) -> UserIdentity:
    """Resolve the token owner via `/user`, falling back to `/users/{id}`.

    Cloud installs expose `/user`; self-hosted ones usually only answer
    `/users/{id}`, where the id is the token prefix.
    """

    try:
        return _parse_user(client.get("/user"), endpoint="/user")
    except ACTaskError as error:
        user_id = extract_user_id_from_token(token) if token else None
        if user_id is None:
            raise
        logger.debug("GET /user failed (%s), trying /users/%d", error.message, user_id)
        return fetch_user_by_id(client, user_id)


def fetch_user_by_id(client: ActiveCollabClient, user_id: int) -> UserIdentity:
    endpoint = f"/users/{user_id}"
    return _parse_user(client.get(endpoint), endpoint=endpoint)


def _parse_user(payload: Any, *, endpoint: str) -> UserIdentity:
    record = unwrap_single(payload)
    if not isinstance(record, dict) or "id" not in record or not record.get("display_name"):
        raise ACTaskError(
            type=ErrorType.API_ERROR,
            message=f"Unexpected response format from {endpoint} endpoint",
            code=500,
            details=repr(payload)[:500],
        )
    # Cloud reports is_active; self-hosted reports is_archived / is_trashed.
    if "is_active" in record:
        active = bool(record["is_active"])
    else:
        active = not (record.get("is_archived") or record.get("is_trashed"))
    return UserIdentity(id=int(record["id"]), name=str(record["display_name"]), active=active)
