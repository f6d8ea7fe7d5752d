"""CLI entrypoint for ac-task."""

import json
import logging
from collections.abc import Callable
from datetime import date, datetime

import rich_click as click

from ac_task import __version__
from ac_task.controllers import (
    ListTasksCommand,
    TaskCliController,
    UpdateStatusCommand,
    WhoAmICommand,
)
from ac_task.errors import ACTaskError, unknown_error

click.rich_click.USE_MARKDOWN = True
TASK_CONTROLLER = TaskCliController()
logger = logging.getLogger(__name__)

_format_option = click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format. JSON errors are printed to stdout as an error envelope.",
)
_insecure_option = click.option(
    "--insecure",
    "-k",
    is_flag=True,
    default=False,
    help="Skip TLS certificate validation (self-signed or expired certificates).",
)


@click.group()
@click.version_option(version=__version__, prog_name="ac-task")
@click.option("--verbose", is_flag=True, default=False, help="Log HTTP requests to stderr.")
def ac_task(verbose: bool) -> None:
    """ActiveCollab task CLI for humans and agents."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


@ac_task.command("update-status")
@click.argument("task_id")
@click.argument("status", metavar="<done|open>")
@_format_option
@_insecure_option
def update_status(task_id: str, status: str, output_format: str, insecure: bool) -> None:
    """Mark a task done or reopen it, then confirm the server agrees."""

    output_format = output_format.lower()
    _run(
        output_format,
        lambda: TASK_CONTROLLER.update_status(
            UpdateStatusCommand(
                task_id=task_id,
                status=status,
                output_format=output_format,
                insecure=insecure,
            ),
        ),
    )


@ac_task.command("list")
@click.option(
    "--all",
    "-a",
    "show_all",
    is_flag=True,
    help="Show all tasks regardless of assignee or status.",
)
@click.option("--closed", "-c", is_flag=True, help="Show completed tasks.")
@click.option(
    "--mine/--no-mine",
    default=True,
    show_default=True,
    help="Only show tasks assigned to me (ignored with --all).",
)
@click.option(
    "--days",
    "-d",
    type=click.IntRange(min=0),
    default=None,
    help="Show tasks due within N days.",
)
@click.option("--list-id", "-l", type=click.IntRange(min=1), default=None, help="Task list ID.")
@click.option("--search", "-s", default=None, help="Case-insensitive name search.")
@click.option(
    "--due-before",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Show tasks due on or before date (YYYY-MM-DD).",
)
@click.option(
    "--due-after",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Show tasks due on or after date (YYYY-MM-DD).",
)
@_format_option
@_insecure_option
def list_tasks(  # noqa: PLR0913
    show_all: bool,
    closed: bool,
    mine: bool,
    days: int | None,
    list_id: int | None,
    search: str | None,
    due_before: datetime | None,
    due_after: datetime | None,
    output_format: str,
    insecure: bool,
) -> None:
    """List tasks (default: my open tasks, soonest due first)."""

    output_format = output_format.lower()
    _run(
        output_format,
        lambda: TASK_CONTROLLER.list_tasks(
            ListTasksCommand(
                show_all=show_all,
                closed=closed,
                mine=mine,
                days=days,
                task_list_id=list_id,
                search=search,
                due_before=_as_date(due_before),
                due_after=_as_date(due_after),
                output_format=output_format,
                insecure=insecure,
            ),
        ),
    )


@ac_task.group()
def auth() -> None:
    """Authentication commands."""


@auth.command("whoami")
@_format_option
@_insecure_option
def auth_whoami(output_format: str, insecure: bool) -> None:
    """Display the user that owns the configured API token."""

    output_format = output_format.lower()
    _run(
        output_format,
        lambda: TASK_CONTROLLER.whoami(
            WhoAmICommand(output_format=output_format, insecure=insecure),
        ),
    )


def _run(output_format: str, action: Callable[[], list[str]]) -> None:
    try:
        lines = action()
    except ACTaskError as error:
        _emit_error(error, output_format)
        raise SystemExit(1) from error
    except Exception as error:
        logger.debug("Unhandled error", exc_info=True)
        _emit_error(unknown_error(error), output_format)
        raise SystemExit(1) from error
    _emit_lines(lines)


def _emit_error(error: ACTaskError, output_format: str) -> None:
    if output_format == "json":
        click.echo(json.dumps(error.to_envelope(), indent=2, ensure_ascii=False))
        return
    for line in error.human_lines():
        click.echo(line, err=True)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


def _as_date(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


if __name__ == "__main__":  # pragma: no cover
    ac_task()
