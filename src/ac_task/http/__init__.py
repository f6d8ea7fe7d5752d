"""HTTP transport for the ActiveCollab API."""

from ac_task.http.client import ActiveCollabClient, ApiResponse, unwrap_single

__all__ = [
    "ActiveCollabClient",
    "ApiResponse",
    "unwrap_single",
]
