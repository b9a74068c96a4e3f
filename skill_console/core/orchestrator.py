from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from skill_console.connectors.skills_api import RequestError, SkillNotFoundError, SkillsAPIClient
from skill_console.core.store import ConsoleStore
from skill_console.schemas.console import (
    ACTION_LABELS,
    ActionKind,
    ActionOutcome,
    DialogKind,
    DialogSelection,
    NotificationLevel,
)
from skill_console.schemas.skill import SkillInfo
from skill_console.schemas.validation import ValidationResult

log = structlog.get_logger()

Refresh = Callable[[], Awaitable[Any]]

_ACTION_DIALOGS: dict[ActionKind, DialogKind] = {
    ActionKind.install: DialogKind.install,
    ActionKind.convert: DialogKind.convert,
    ActionKind.save_env: DialogKind.env,
}


class ActionOrchestrator:
    """Runs user-triggered actions one at a time across the whole console.

    Every action goes Idle -> Busy(message) -> Idle. A trigger while busy (or
    while the registry is re-indexing) is rejected without a request. Success
    closes the action's dialog, notifies, and re-fetches the registry; failure
    notifies and leaves the snapshot alone. Backend-owned fields are never
    written locally, except the re-index flag after a successful trigger.
    """

    def __init__(self, client: SkillsAPIClient, store: ConsoleStore, refresh: Refresh) -> None:
        self._client = client
        self._store = store
        self._refresh = refresh

    @property
    def busy(self) -> bool:
        return self._store.session.busy

    # -- actions ---------------------------------------------------------

    async def validate(self, skill: SkillInfo) -> ActionOutcome:
        name = skill.name

        def report(result: ValidationResult) -> None:
            if result.can_run:
                self._store.notify(NotificationLevel.success, f"Skill {name!r} passed validation")
                return
            checks = {
                "binaries": result.bins_valid,
                "environment": result.env_valid,
                "os": result.os_valid,
                "runtime": result.runtime_valid,
            }
            lines = ["  ".join(f"{k}: {'ok' if ok else 'FAIL'}" for k, ok in checks.items())]
            if result.missing_bins:
                lines.append(f"Missing binaries: {', '.join(result.missing_bins)}")
            if result.missing_env:
                lines.append(f"Missing environment variables: {', '.join(result.missing_env)}")
            lines.extend(f"- {issue.describe()}" for issue in result.errors)
            self._store.notify(NotificationLevel.warning, f"Skill {name!r} failed validation", lines)

        return await self._run(
            ActionKind.validate,
            name,
            "Validating...",
            lambda: self._client.validate(name),
            on_success=report,
        )

    async def install(self, skill: SkillInfo) -> ActionOutcome:
        name = skill.name
        missing = list(skill.missing_bins)

        async def request() -> None:
            if not missing:
                log.info("action.install_skipped", skill=name)
                return
            await self._client.install(name)

        return await self._run(
            ActionKind.install,
            name,
            "Installing dependencies and runtime...",
            request,
            success_title=f"Dependencies for {name!r} installed",
        )

    async def convert(self, skill: SkillInfo) -> ActionOutcome:
        name = skill.name
        return await self._run(
            ActionKind.convert,
            name,
            "Converting format...",
            lambda: self._client.convert(name),
            success_title=f"Skill {name!r} converted to the standard format",
        )

    async def toggle_enable(self, skill: SkillInfo) -> ActionOutcome:
        name = skill.name
        # Decided from the record the operator acted on, not from any later state
        enabling = not skill.enabled
        request = self._client.enable if enabling else self._client.disable
        return await self._run(
            ActionKind.toggle_enable,
            name,
            "Enabling..." if enabling else "Disabling...",
            lambda: request(name),
            success_title=f"Skill {name!r} {'enabled' if enabling else 'disabled'}",
        )

    async def save_env(self) -> ActionOutcome:
        dialog = self._store.dialog
        if dialog is None or dialog.kind != DialogKind.env:
            log.info("action.save_env_without_dialog")
            return ActionOutcome(action=ActionKind.save_env, skill_name=None, accepted=False)

        name = dialog.skill.name
        values = dict(dialog.env_values)
        return await self._run(
            ActionKind.save_env,
            name,
            "Saving environment variables...",
            lambda: self._client.save_env(name, values),
            success_title=f"Environment variables for {name!r} saved",
        )

    async def trigger_reindex(self) -> ActionOutcome:
        return await self._run(
            ActionKind.reindex,
            None,
            "Starting re-index...",
            self._client.reindex,
            success_title="Re-index started",
            before_refresh=self._store.mark_reindexing,
        )

    # -- dialogs ---------------------------------------------------------

    def open_install_dialog(self, skill: SkillInfo) -> DialogSelection:
        selection = DialogSelection(kind=DialogKind.install, skill=skill)
        self._store.open_dialog(selection)
        return selection

    def open_convert_dialog(self, skill: SkillInfo) -> DialogSelection:
        selection = DialogSelection(kind=DialogKind.convert, skill=skill)
        self._store.open_dialog(selection)
        return selection

    async def open_env_dialog(self, skill: SkillInfo) -> DialogSelection | None:
        """Load the skill's current env values and open the editor for them."""
        try:
            current = await self._client.get_env(skill.name)
        except SkillNotFoundError:
            self._not_found(skill.name)
            return None
        except RequestError as exc:
            self._store.notify(
                NotificationLevel.error,
                f"Failed to load environment variables for {skill.name!r}",
                _error_lines(exc),
            )
            return None

        values = {var: current.get(var) or "" for var in skill.definition.requires.env}
        for var, value in current.items():
            values.setdefault(var, value or "")
        selection = DialogSelection(kind=DialogKind.env, skill=skill, env_values=values)
        self._store.open_dialog(selection)
        return selection

    def set_env_value(self, var: str, value: str) -> None:
        dialog = self._store.dialog
        if dialog is None or dialog.kind != DialogKind.env:
            raise RuntimeError("no environment dialog is open")
        dialog.env_values[var] = value

    def close_dialog(self) -> None:
        self._store.close_dialog()

    # -- state machine ---------------------------------------------------

    async def _run(
        self,
        action: ActionKind,
        skill_name: str | None,
        message: str,
        request: Callable[[], Awaitable[Any]],
        *,
        success_title: str | None = None,
        on_success: Callable[[Any], None] | None = None,
        before_refresh: Callable[[], None] | None = None,
    ) -> ActionOutcome:
        session = self._store.session
        if session.busy or self._store.is_re_indexing:
            log.info(
                "action.rejected",
                action=action,
                skill=skill_name,
                active=session.action,
                reindexing=self._store.is_re_indexing,
            )
            return ActionOutcome(action=action, skill_name=skill_name, accepted=False)

        self._store.begin_action(action, message, skill_name)
        log.info("action.started", action=action, skill=skill_name)
        try:
            try:
                result = await request()
            except RequestError as exc:
                # A 404 only means the skill is gone on skill-scoped routes
                if isinstance(exc, SkillNotFoundError) and skill_name is not None:
                    self._not_found(skill_name)
                else:
                    log.warning("action.failed", action=action, skill=skill_name, error=str(exc))
                    self._store.notify(
                        NotificationLevel.error,
                        _failure_title(action, skill_name),
                        _error_lines(exc),
                    )
                return ActionOutcome(
                    action=action, skill_name=skill_name, accepted=True, error=str(exc)
                )

            dialog_kind = _ACTION_DIALOGS.get(action)
            if dialog_kind is not None:
                self._store.close_dialog(dialog_kind)
            if on_success is not None:
                on_success(result)
            if success_title is not None:
                self._store.notify(NotificationLevel.success, success_title)
            if before_refresh is not None:
                before_refresh()
            log.info("action.succeeded", action=action, skill=skill_name)

            await self._refresh()
            return ActionOutcome(
                action=action, skill_name=skill_name, accepted=True, succeeded=True, result=result
            )
        finally:
            self._store.end_action()

    def _not_found(self, skill_name: str | None) -> None:
        log.warning("action.skill_not_found", skill=skill_name)
        self._store.close_dialog()
        self._store.notify(NotificationLevel.error, f"Skill {skill_name!r} no longer exists")


def _failure_title(action: ActionKind, skill_name: str | None) -> str:
    label = ACTION_LABELS[action]
    if skill_name is None:
        return f"{label} failed"
    return f"{label} failed for {skill_name!r}"


def _error_lines(exc: RequestError) -> list[str]:
    lines = [str(exc)]
    if exc.detail:
        lines.append(exc.detail)
    lines.extend(f"- {issue.describe()}" for issue in exc.issues)
    return lines
