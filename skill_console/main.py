from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable

import click
import sentry_sdk
import structlog

from skill_console.connectors.skills_api import RequestError, SkillsAPIClient
from skill_console.config import settings
from skill_console.core.console import SkillConsole
from skill_console.core.filters import FORMAT_FILTERS, STATUS_FILTERS
from skill_console.core.view_model import is_secret_env
from skill_console.render import (
    render_console,
    render_convert_dialog,
    render_dependencies,
    render_env_dialog,
    render_install_dialog,
    render_notification,
    render_reindexing,
    render_skill_card,
)
from skill_console.schemas.console import ActionOutcome, Notification, NotificationLevel
from skill_console.schemas.skill import SkillInfo

log = structlog.get_logger()


def configure_logging(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.WARNING)
        ),
        # stdout is reserved for console output
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _echo_notification(notification: Notification) -> None:
    click.echo(render_notification(notification), err=notification.level is NotificationLevel.error)


def _open_console(ctx: click.Context) -> SkillConsole:
    client = SkillsAPIClient(base_url=ctx.obj["url"], timeout=ctx.obj["timeout"])
    return SkillConsole(client, sink=_echo_notification)


def _run(ctx: click.Context, body: Callable[[SkillConsole], Awaitable[bool]]) -> None:
    async def main() -> bool:
        async with _open_console(ctx) as console:
            return await body(console)

    if not asyncio.run(main()):
        ctx.exit(1)


def _require(console: SkillConsole, name: str) -> SkillInfo | None:
    skill = console.find(name)
    if skill is None and not console.store.fetch_error:
        click.echo(f"Skill {name!r} not found", err=True)
    return skill


def _report_rejected(outcome: ActionOutcome) -> bool:
    if not outcome.accepted:
        click.echo("Another action is in progress or the registry is re-indexing; try again later.", err=True)
    return outcome.succeeded


def _parse_assignment(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> list[tuple[str, str]]:
    pairs = []
    for raw in values:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {raw!r}", ctx=ctx, param=param)
        pairs.append((key, value))
    return pairs


@click.group()
@click.option("--url", default=None, help="Backend base URL (default: SKILL_CONSOLE_API_URL).")
@click.option("--timeout", type=float, default=None, help="Per-request timeout in seconds.")
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug).")
@click.pass_context
def cli(ctx: click.Context, url: str | None, timeout: float | None, verbose: int) -> None:
    """Operator console for the skill registry."""
    level = {0: settings.log_level, 1: "info"}.get(verbose, "debug")
    configure_logging(level)
    if settings.sentry_dsn:
        sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.environment)
    ctx.obj = {"url": url, "timeout": timeout}
    log.debug("cli.invoked", command=ctx.invoked_subcommand, api_url=url or settings.api_url)


@cli.command("list")
@click.option("--status", type=click.Choice(STATUS_FILTERS), default="all", help="Filter by status.")
@click.option("--format", "format_", type=click.Choice(FORMAT_FILTERS), default="all", help="Filter by format.")
@click.pass_context
def list_skills(ctx: click.Context, status: str, format_: str) -> None:
    """List skills, optionally filtered by status and format."""

    async def body(console: SkillConsole) -> bool:
        console.view.set_status_filter(status)
        console.view.set_format_filter(format_)
        click.echo(render_console(console))
        return not console.store.fetch_error

    _run(ctx, body)


@cli.command()
@click.argument("name")
@click.pass_context
def show(ctx: click.Context, name: str) -> None:
    """Show one skill and its dependency report."""

    async def body(console: SkillConsole) -> bool:
        skill = _require(console, name)
        if skill is None:
            return False
        click.echo(render_skill_card(skill))
        try:
            deps = await console.client.check_dependencies(name)
        except RequestError as exc:
            click.echo(f"Failed to check dependencies: {exc}", err=True)
            return False
        click.echo(render_dependencies(name, deps))
        return True

    _run(ctx, body)


@cli.command()
@click.argument("name")
@click.pass_context
def deps(ctx: click.Context, name: str) -> None:
    """Check a skill's binaries, environment variables and OS support."""

    async def body(console: SkillConsole) -> bool:
        try:
            result = await console.client.check_dependencies(name)
        except RequestError as exc:
            click.echo(f"Failed to check dependencies: {exc}", err=True)
            return False
        click.echo(render_dependencies(name, result))
        return result.satisfied

    _run(ctx, body)


@cli.command()
@click.argument("name")
@click.pass_context
def validate(ctx: click.Context, name: str) -> None:
    """Ask the backend whether a skill can run."""

    async def body(console: SkillConsole) -> bool:
        skill = _require(console, name)
        if skill is None:
            return False
        outcome = await console.actions.validate(skill)
        if not _report_rejected(outcome):
            return False
        return bool(outcome.result and outcome.result.can_run)

    _run(ctx, body)


@cli.command()
@click.argument("name")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def install(ctx: click.Context, name: str, yes: bool) -> None:
    """Install a skill's missing binaries."""

    async def body(console: SkillConsole) -> bool:
        skill = _require(console, name)
        if skill is None:
            return False
        selection = console.actions.open_install_dialog(skill)
        click.echo(render_install_dialog(selection))
        if not yes and not click.confirm("Start installation?"):
            console.actions.close_dialog()
            return True
        outcome = await console.actions.install(skill)
        if not _report_rejected(outcome):
            return False
        updated = console.find(name)
        if updated is not None:
            click.echo(render_skill_card(updated))
        return True

    _run(ctx, body)


@cli.command()
@click.argument("name")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def convert(ctx: click.Context, name: str, yes: bool) -> None:
    """Convert a skill to the standard format."""

    async def body(console: SkillConsole) -> bool:
        skill = _require(console, name)
        if skill is None:
            return False
        selection = console.actions.open_convert_dialog(skill)
        click.echo(render_convert_dialog(selection))
        if not yes and not click.confirm("Start conversion?"):
            console.actions.close_dialog()
            return True
        return _report_rejected(await console.actions.convert(skill))

    _run(ctx, body)


@cli.command()
@click.argument("name")
@click.pass_context
def toggle(ctx: click.Context, name: str) -> None:
    """Enable a disabled skill, or disable an enabled one."""

    async def body(console: SkillConsole) -> bool:
        skill = _require(console, name)
        if skill is None:
            return False
        if not _report_rejected(await console.actions.toggle_enable(skill)):
            return False
        updated = console.find(name)
        if updated is not None:
            click.echo(render_skill_card(updated))
        return True

    _run(ctx, body)


@cli.command()
@click.argument("name")
@click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="KEY=VALUE",
    callback=_parse_assignment,
    help="Value to store; repeatable. Without it every variable is prompted for.",
)
@click.option("--show", is_flag=True, help="Only print the current values.")
@click.pass_context
def env(ctx: click.Context, name: str, assignments: list[tuple[str, str]], show: bool) -> None:
    """View or edit a skill's environment variables."""

    async def body(console: SkillConsole) -> bool:
        skill = _require(console, name)
        if skill is None:
            return False
        selection = await console.actions.open_env_dialog(skill)
        if selection is None:
            return False
        click.echo(render_env_dialog(selection))
        if show:
            console.actions.close_dialog()
            return True

        if assignments:
            for key, value in assignments:
                console.actions.set_env_value(key, value)
        elif selection.env_values:
            for var, current in list(selection.env_values.items()):
                secret = is_secret_env(var)
                value = click.prompt(
                    var, default=current, hide_input=secret, show_default=not secret
                )
                console.actions.set_env_value(var, value)
        else:
            console.actions.close_dialog()
            return True

        return _report_rejected(await console.actions.save_env())

    _run(ctx, body)


@cli.command()
@click.option("--wait/--no-wait", default=True, help="Follow the re-index until it finishes.")
@click.pass_context
def reindex(ctx: click.Context, wait: bool) -> None:
    """Rebuild the skill registry on the backend."""

    async def body(console: SkillConsole) -> bool:
        if not _report_rejected(await console.actions.trigger_reindex()):
            return False
        if wait and console.poller.running:
            click.echo(render_reindexing(console.store.snapshot.re_index_error))
            await console.poller.wait()
        click.echo(render_console(console))
        return True

    _run(ctx, body)


def main() -> None:
    cli(prog_name="skill-console")


if __name__ == "__main__":
    main()
