from __future__ import annotations

import json
from datetime import UTC, datetime

import allure
import httpx
from click.testing import CliRunner
from conftest import task_payload

from ac_task import __version__
from ac_task import main as main_module
from ac_task.config import Settings
from ac_task.controllers import TaskCliController, UpdateStatusCommand, default_client_factory
from ac_task.main import ac_task

pytestmark = [
    allure.epic("CLI Surface"),
    allure.feature("Commands"),
]

TASK_PATH = "/projects/5/tasks/12"


def _invoke(args: list[str]):
    return CliRunner().invoke(ac_task, args)


def test_update_status_done_json(cli_env, cli_controller, fake_api, sleeps) -> None:
    completed = httpx.Response(200, json=task_payload(is_completed=True))
    fake_api.add("PUT", "/complete/task/12", completed)
    fake_api.add("GET", TASK_PATH, completed)

    result = _invoke(["update-status", "12", "done", "--format", "json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {
        "success": True,
        "task": {"id": 12, "task_number": 34, "name": "Ship release notes", "is_completed": True},
        "attempts_used": 0,
    }
    assert sleeps == []
    assert fake_api.calls() == [("PUT", "/complete/task/12"), ("GET", TASK_PATH)]


def test_update_status_open_human(cli_env, cli_controller, fake_api) -> None:
    reopened = httpx.Response(200, json=task_payload(is_completed=0))
    fake_api.add("PUT", "/open/task/12", reopened)
    fake_api.add("GET", TASK_PATH, reopened)

    result = _invoke(["update-status", "12", "OPEN"])

    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == [
        "✓ Task #34: Ship release notes",
        "  Status: ○ Reopened",
    ]


def test_update_status_fallback_uses_task_update(cli_env, cli_controller, fake_api) -> None:
    fake_api.add("PUT", "/complete/task/12", httpx.Response(404))
    fake_api.add("PUT", TASK_PATH, httpx.Response(200, json=task_payload(is_completed=1)))
    fake_api.add("GET", TASK_PATH, httpx.Response(200, json=task_payload(is_completed=1)))

    result = _invoke(["update-status", "12", "done", "-f", "json"])

    assert result.exit_code == 0, result.output
    assert fake_api.json_body(1) == {
        "is_completed": 1,
        "completed_on": int(datetime(2026, 3, 2, 9, 30, tzinfo=UTC).timestamp()),
    }


def test_update_status_mismatch_is_a_warning(cli_env, cli_controller, fake_api, sleeps) -> None:
    fake_api.add("PUT", "/complete/task/12", httpx.Response(200, json=task_payload()))
    fake_api.add("GET", TASK_PATH, httpx.Response(200, json=task_payload(is_completed=False)))

    result = _invoke(["update-status", "12", "done", "--format", "json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["success"] is False
    assert payload["attempts_used"] == 3
    assert payload["task"]["is_completed"] is False
    assert payload["warning"] == (
        "Status update sent but server returned different value. Check manually."
    )
    assert sleeps == [0.5, 1.0, 2.0]
    assert len(fake_api.calls("GET")) == 4


def test_update_status_mismatch_human_warning(cli_env, cli_controller, fake_api) -> None:
    fake_api.add("PUT", "/open/task/12", httpx.Response(200, json=task_payload()))
    fake_api.add("GET", TASK_PATH, httpx.Response(200, json=task_payload(is_completed=True)))

    result = _invoke(["update-status", "12", "open"])

    assert result.exit_code == 0, result.output
    assert "  ⚠ Warning: Server returned different status. Verify manually." in result.stdout


def test_auth_failure_prints_json_envelope(cli_env, cli_controller, fake_api) -> None:
    fake_api.add("PUT", "/complete/task/12", httpx.Response(401))

    result = _invoke(["update-status", "12", "done", "--format", "json"])

    assert result.exit_code == 1
    assert json.loads(result.stdout) == {
        "error": {
            "type": "AUTH_ERROR",
            "code": 401,
            "message": "Authentication failed",
            "details": "The API token is invalid or expired.",
        },
    }
    assert fake_api.calls() == [("PUT", "/complete/task/12")]


def test_human_errors_go_to_stderr(cli_env, cli_controller, fake_api) -> None:
    fake_api.add("PUT", "/complete/task/12", httpx.Response(403))

    result = _invoke(["update-status", "12", "done"])

    assert result.exit_code == 1
    assert result.stdout == ""
    assert result.stderr.splitlines()[0] == "Error: Access forbidden"
    assert "Type: AUTH_ERROR, Code: 403" in result.stderr


def test_invalid_status_is_rejected_before_any_request(cli_env, cli_controller, fake_api) -> None:
    result = _invoke(["update-status", "12", "finished", "--format", "json"])

    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"]["type"] == "VALIDATION_ERROR"
    assert fake_api.requests == []


def test_invalid_task_id(cli_env, cli_controller, fake_api) -> None:
    result = _invoke(["update-status", "abc", "done", "--format", "json"])

    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"]["message"] == "Invalid task ID"
    assert fake_api.requests == []


def test_missing_project_is_configuration_error(
    cli_env,
    cli_controller,
    fake_api,
    monkeypatch,
) -> None:
    monkeypatch.delenv("AC_TASK_PROJECT_ID")

    result = _invoke(["update-status", "12", "done", "--format", "json"])

    assert result.exit_code == 1
    error = json.loads(result.stdout)["error"]
    assert error["type"] == "CONFIGURATION_ERROR"
    assert error["message"] == "Project not initialized"


def _seed_tasks(fake_api) -> None:
    march_3 = int(datetime(2026, 3, 3, tzinfo=UTC).timestamp())
    fake_api.add(
        "GET",
        "/projects/5/tasks",
        httpx.Response(
            200,
            json={
                "tasks": [
                    {
                        "id": 1,
                        "task_number": 101,
                        "name": "Mine and open",
                        "is_completed": False,
                        "assignee_id": 7,
                        "task_list_id": 2,
                        "due_on": march_3,
                    },
                    {
                        "id": 2,
                        "task_number": 102,
                        "name": "Someone else",
                        "is_completed": False,
                        "assignee_id": 8,
                        "task_list_id": 2,
                    },
                    {
                        "id": 3,
                        "task_number": 103,
                        "name": "Mine and done",
                        "is_completed": True,
                        "assignee_id": 7,
                        "task_list_id": 2,
                    },
                ],
            },
        ),
    )
    fake_api.add(
        "GET",
        "/projects/5/task-lists",
        httpx.Response(200, json=[{"id": 2, "name": "Doing"}]),
    )


def test_list_my_open_tasks_json(cli_env, cli_controller, fake_api, monkeypatch) -> None:
    monkeypatch.setenv("AC_TASK_USER_ID", "7")
    _seed_tasks(fake_api)

    result = _invoke(["list", "--format", "json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["count"] == 1
    assert payload["total_fetched"] == 3
    assert payload["filters"] == {"assignee_id": 7, "is_completed": False}
    assert payload["tasks"][0] == {
        "id": 1,
        "task_number": 101,
        "name": "Mine and open",
        "is_completed": False,
        "assignee_id": 7,
        "due_on": "2026-03-03",
        "task_list_id": 2,
        "task_list_name": "Doing",
    }


def test_list_resolves_user_through_whoami(cli_env, cli_controller, fake_api) -> None:
    fake_api.add(
        "GET",
        "/user",
        httpx.Response(200, json={"single": {"id": 7, "display_name": "Dana"}}),
    )
    _seed_tasks(fake_api)

    result = _invoke(["list", "--closed"])

    assert result.exit_code == 0, result.output
    lines = result.stdout.splitlines()
    assert lines[0] == "Filters: My tasks, Closed"
    assert lines[1] == "Showing 1 of 3 tasks"
    assert lines[2].startswith("✓ #103")
    assert "No due date" in lines[2]


def test_list_all_human_empty(cli_env, cli_controller, fake_api) -> None:
    _seed_tasks(fake_api)

    result = _invoke(["list", "--all", "--search", "nothing-matches"])

    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == [
        'Filters: Search: "nothing-matches"',
        "Showing 0 of 3 tasks",
        "No tasks found matching the criteria.",
        "Try using --all to see all tasks.",
    ]


def test_whoami_human(cli_env, cli_controller, fake_api) -> None:
    fake_api.add("GET", "/user", httpx.Response(401))
    fake_api.add(
        "GET",
        "/users/7",
        httpx.Response(200, json={"single": {"id": 7, "display_name": "Dana", "is_active": 1}}),
    )

    result = _invoke(["auth", "whoami"])

    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == [
        "✓ Logged in as Dana (ID: 7)",
        "  Status: active",
        "  URL: https://ac.example.test",
    ]


def test_whoami_json(cli_env, cli_controller, fake_api) -> None:
    fake_api.add(
        "GET",
        "/user",
        httpx.Response(200, json={"id": 7, "display_name": "Dana", "is_active": False}),
    )

    result = _invoke(["auth", "whoami", "-f", "json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"id": 7, "name": "Dana", "status": "inactive"}


def test_unexpected_failure_uses_unknown_error_envelope(cli_env, cli_controller, fake_api) -> None:
    fake_api.add("PUT", "/complete/task/12", RuntimeError("boom"))

    result = _invoke(["update-status", "12", "done", "--format", "json"])

    assert result.exit_code == 1
    assert json.loads(result.stdout) == {
        "error": {"type": "UNKNOWN_ERROR", "code": 1, "message": "boom"},
    }


def test_update_status_ignores_unrecognised_body(cli_env, cli_controller, fake_api) -> None:
    fake_api.add("PUT", "/complete/task/12", httpx.Response(200, json={"ok": True}))
    fake_api.add("GET", TASK_PATH, httpx.Response(200, json=task_payload(is_completed=True)))

    result = _invoke(["update-status", "12", "done", "--format", "json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["success"] is True


def test_version_option() -> None:
    result = _invoke(["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_insecure_flag_reaches_client_factory(
    cli_env,
    cli_controller,
    fake_api,
    sleeps,
    monkeypatch,
) -> None:
    seen: list[bool] = []

    def factory(settings: Settings, insecure: bool):
        seen.append(insecure)
        return fake_api.client()

    monkeypatch.setattr(
        main_module,
        "TASK_CONTROLLER",
        TaskCliController(client_factory=factory, sleep=sleeps.append),
    )
    completed = httpx.Response(200, json=task_payload(is_completed=True))
    fake_api.add("PUT", "/complete/task/12", completed)
    fake_api.add("GET", TASK_PATH, completed)

    result = _invoke(["update-status", "12", "done", "--insecure"])

    assert result.exit_code == 0, result.output
    assert seen == [True]


def test_default_client_factory_disables_verification_when_insecure(cli_env) -> None:
    client = default_client_factory(Settings.from_env(), True)
    try:
        assert client.verify is False
    finally:
        client.close()


def test_negative_days_is_a_usage_error(cli_env, cli_controller, fake_api) -> None:
    result = _invoke(["list", "--days", "-1"])

    assert result.exit_code == 2
    assert fake_api.requests == []


def test_controller_routes_padded_status_to_canonical_endpoint(
    cli_env,
    cli_controller,
    fake_api,
) -> None:
    completed = httpx.Response(200, json=task_payload(is_completed=True))
    fake_api.add("PUT", "/complete/task/12", completed)
    fake_api.add("GET", TASK_PATH, completed)

    lines = cli_controller.update_status(
        UpdateStatusCommand(task_id=" 12 ", status=" Done ", output_format="json"),
    )

    assert json.loads(lines[0])["success"] is True
    assert fake_api.calls() == [("PUT", "/complete/task/12"), ("GET", TASK_PATH)]
