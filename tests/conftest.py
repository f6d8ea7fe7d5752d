"""Shared test fixtures."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx
import pytest

from ac_task import main as main_module
from ac_task.controllers import TaskCliController
from ac_task.http.client import ActiveCollabClient

BASE_URL = "https://ac.example.test"
TOKEN = "7-secret-token"
FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)

_AC_TASK_ENV_VARS = (
    "AC_TASK_BASE_URL",
    "AC_TASK_TOKEN",
    "AC_TASK_INSECURE",
    "AC_TASK_PROJECT_ID",
    "AC_TASK_USER_ID",
    "AC_TASK_REQUEST_TIMEOUT_SECONDS",
    "AC_TASK_STATUS_BACKOFF_SECONDS",
    "AC_TASK_CONFIG_DIR",
)


def task_payload(task_id: int = 12, *, is_completed: object = False, **extra: object) -> dict:
    record = {
        "id": task_id,
        "task_number": 34,
        "name": "Ship release notes",
        "is_completed": is_completed,
        "project_id": 5,
        **extra,
    }
    return {"single": record}


@dataclass
class FakeActiveCollab:
    """Scripted ActiveCollab API served through httpx.MockTransport.

    Each route holds a queue of responses; the last one repeats once the
    queue is drained. Unscripted routes fail the test.
    """

    routes: dict[tuple[str, str], list[httpx.Response | Exception]] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def add(self, method: str, path: str, *responses: httpx.Response | Exception) -> None:
        self.routes.setdefault((method, path), []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            raise AssertionError(f"Unexpected request {request.method} {request.url.path}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def client(self) -> ActiveCollabClient:
        return ActiveCollabClient(BASE_URL, TOKEN, transport=httpx.MockTransport(self.handler))

    def calls(self, method: str | None = None) -> list[tuple[str, str]]:
        return [
            (request.method, request.url.path)
            for request in self.requests
            if method is None or request.method == method
        ]

    def json_body(self, index: int) -> object:
        return json.loads(self.requests[index].content)


@pytest.fixture()
def fake_api() -> FakeActiveCollab:
    return FakeActiveCollab()


@pytest.fixture()
def isolated_env(monkeypatch, tmp_path):
    """Clear AC_TASK_* variables and point config lookups at tmp_path."""
    for name in _AC_TASK_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config_dir = tmp_path / "home" / ".ac-task"
    monkeypatch.setenv("AC_TASK_CONFIG_DIR", str(config_dir))
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return tmp_path


@pytest.fixture()
def cli_env(isolated_env, monkeypatch):
    monkeypatch.setenv("AC_TASK_BASE_URL", BASE_URL)
    monkeypatch.setenv("AC_TASK_TOKEN", TOKEN)
    monkeypatch.setenv("AC_TASK_PROJECT_ID", "5")
    return isolated_env


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def cli_controller(monkeypatch, fake_api, sleeps) -> TaskCliController:
    """Swap the CLI controller for one backed by the fake API."""
    controller = TaskCliController(
        client_factory=lambda settings, insecure: fake_api.client(),
        sleep=sleeps.append,
        clock=lambda: FIXED_NOW,
    )
    monkeypatch.setattr(main_module, "TASK_CONTROLLER", controller)
    # The group callback reconfigures root logging with force=True.
    monkeypatch.setattr(logging.root, "handlers", list(logging.root.handlers))
    return controller
