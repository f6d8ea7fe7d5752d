"""Runtime configuration for the ActiveCollab CLI."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from ac_task.errors import configuration_error

GLOBAL_CONFIG_DIRNAME = ".ac-task"
GLOBAL_CONFIG_FILENAME = "config.json"
PROJECT_CONFIG_FILENAME = ".ac-task.json"
DEFAULT_STATUS_BACKOFF_SECONDS = (0.5, 1.0, 2.0)

_SETUP_HINT = (
    "Set AC_TASK_BASE_URL and AC_TASK_TOKEN, or add base_url and token to "
    "~/.ac-task/config.json."
)


@dataclass(slots=True)
class ConnectionSettings:
    """Remote API connection settings."""

    base_url: str | None = None
    token: str | None = None
    insecure: bool = False
    request_timeout_seconds: float = 30.0


@dataclass(slots=True)
class ProjectSettings:
    """Project binding resolved from `.ac-task.json`."""

    project_id: int | None = None
    config_path: Path | None = None


@dataclass(slots=True)
class UserSettings:
    """Cached identity of the token owner."""

    cached_user_id: int | None = None


@dataclass(slots=True)
class StatusSyncSettings:
    """Read-after-write verification schedule for status updates."""

    backoff_seconds: tuple[float, ...] = DEFAULT_STATUS_BACKOFF_SECONDS

    @property
    def max_retries(self) -> int:
        return len(self.backoff_seconds)


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    connection: ConnectionSettings = field(default_factory=ConnectionSettings)
    project: ProjectSettings = field(default_factory=ProjectSettings)
    user: UserSettings = field(default_factory=UserSettings)
    status_sync: StatusSyncSettings = field(default_factory=StatusSyncSettings)

    @classmethod
    def from_env(cls, cwd: Path | None = None) -> Settings:
        """Load settings from config files, letting environment variables win."""

        global_config = _load_json(global_config_path(), label="global")
        project_config_path = find_project_config(cwd or Path.cwd())
        project_config = (
            _load_json(project_config_path, label="project")
            if project_config_path is not None
            else {}
        )

        base_url = os.getenv("AC_TASK_BASE_URL") or global_config.get("base_url")
        if base_url is not None:
            _validate_base_url(str(base_url))

        return cls(
            connection=ConnectionSettings(
                base_url=str(base_url) if base_url else None,
                token=os.getenv("AC_TASK_TOKEN") or _token_from_global(global_config),
                insecure=_env_bool(
                    "AC_TASK_INSECURE",
                    default=bool(global_config.get("force_unsafe_ssl", False)),
                ),
                request_timeout_seconds=_env_float("AC_TASK_REQUEST_TIMEOUT_SECONDS", 30.0),
            ),
            project=ProjectSettings(
                project_id=_positive_int(
                    os.getenv("AC_TASK_PROJECT_ID") or project_config.get("project_id"),
                    name="project_id",
                ),
                config_path=project_config_path,
            ),
            user=UserSettings(
                cached_user_id=_positive_int(
                    os.getenv("AC_TASK_USER_ID") or global_config.get("cached_user_id"),
                    name="cached_user_id",
                ),
            ),
            status_sync=StatusSyncSettings(
                backoff_seconds=_collect_backoff_seconds(),
            ),
        )

    def require_connection(self) -> ConnectionSettings:
        """Raise configuration error unless base URL and token are known."""

        if not self.connection.base_url:
            raise configuration_error("Base URL not configured", _SETUP_HINT)
        if not self.connection.token:
            raise configuration_error("API token not available", _SETUP_HINT)
        return self.connection

    def require_project_id(self) -> int:
        if self.project.project_id is None:
            raise configuration_error(
                "Project not initialized",
                f"Create {PROJECT_CONFIG_FILENAME} with a project_id or set AC_TASK_PROJECT_ID.",
            )
        return self.project.project_id


def global_config_path() -> Path:
    config_dir = os.getenv("AC_TASK_CONFIG_DIR")
    base = Path(config_dir) if config_dir else Path.home() / GLOBAL_CONFIG_DIRNAME
    return base / GLOBAL_CONFIG_FILENAME


def find_project_config(start_dir: Path) -> Path | None:
    """Walk up from `start_dir` looking for the project config file."""

    current = start_dir.resolve()
    for directory in (current, *current.parents):
        candidate = directory / PROJECT_CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _load_json(path: Path, *, label: str) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as error:
        raise configuration_error(
            f"Failed to parse {label} config file",
            f"Error reading {path}: {error}",
        ) from error
    if not isinstance(data, dict):
        raise configuration_error(
            f"Failed to parse {label} config file",
            f"Expected a JSON object in {path}.",
        )
    return data


def _token_from_global(global_config: dict[str, Any]) -> str | None:
    token = global_config.get("token")
    if token:
        return str(token)
    token_env_var = global_config.get("token_env_var")
    if not token_env_var:
        return None
    value = os.getenv(str(token_env_var))
    if not value:
        raise configuration_error(
            f'Environment variable "{token_env_var}" is not set',
            "Set the environment variable with your ActiveCollab API token: "
            f"export {token_env_var}=your_token",
        )
    return value


def _collect_backoff_seconds() -> tuple[float, ...]:
    raw = os.getenv("AC_TASK_STATUS_BACKOFF_SECONDS", "")
    if not raw.strip():
        return DEFAULT_STATUS_BACKOFF_SECONDS
    values: list[float] = []
    for part in raw.split(","):
        token = part.strip()
        if not token:
            continue
        try:
            value = float(token)
        except ValueError as error:
            raise configuration_error(
                f"Invalid AC_TASK_STATUS_BACKOFF_SECONDS entry: {token!r}",
            ) from error
        if value < 0:
            raise configuration_error(
                f"Invalid AC_TASK_STATUS_BACKOFF_SECONDS entry: {token!r} (must be >= 0)",
            )
        values.append(value)
    return tuple(values)


def _validate_base_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise configuration_error(
            "Invalid base URL",
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )


def _positive_int(value: Any, *, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError) as error:
        raise configuration_error(f"Invalid {name}: {value!r}") from error
    if parsed <= 0:
        raise configuration_error(f"Invalid {name}: {value!r} (must be > 0)")
    return parsed


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError as error:
        raise configuration_error(f"Invalid value for {name}: {value!r}") from error
    if parsed <= 0:
        raise configuration_error(f"{name} must be > 0.")
    return parsed


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise configuration_error(f"Invalid boolean value for {name}: {value!r}")
