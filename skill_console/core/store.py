from __future__ import annotations

from collections.abc import Callable

import structlog

from skill_console.schemas.console import (
    ActionKind,
    ActionSession,
    DialogKind,
    DialogSelection,
    Notification,
    NotificationLevel,
)
from skill_console.schemas.skill import RegistrySnapshot

log = structlog.get_logger()

NotificationSink = Callable[[Notification], None]


class ConsoleStore:
    """Process-local state of one console: snapshot, action session, dialog.

    The snapshot and the session are immutable values swapped wholesale; only
    the open dialog's edited env values change in place.
    """

    def __init__(self, sink: NotificationSink | None = None) -> None:
        self._snapshot = RegistrySnapshot()
        self._session = ActionSession()
        self._sink = sink
        self.dialog: DialogSelection | None = None
        self.fetched = False
        self.loading = False
        self.fetch_error = ""
        self.optimistic = False
        self.notifications: list[Notification] = []

    @property
    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    @property
    def session(self) -> ActionSession:
        return self._session

    @property
    def is_re_indexing(self) -> bool:
        return self._snapshot.is_re_indexing

    def replace_snapshot(self, snapshot: RegistrySnapshot) -> None:
        self._snapshot = snapshot
        self.fetched = True
        self.fetch_error = ""
        self.optimistic = False

    def fetch_failed(self, message: str) -> None:
        self.fetch_error = message

    def mark_reindexing(self) -> None:
        """Assume a re-index is running before the backend has confirmed it.

        This is the only local write to a backend-owned field; the next
        ``replace_snapshot`` overwrites it.
        """
        self._snapshot = self._snapshot.model_copy(
            update={"is_re_indexing": True, "re_index_error": ""}
        )
        self.optimistic = True

    def begin_action(self, action: ActionKind, message: str, skill_name: str | None = None) -> None:
        if self._session.busy:
            raise RuntimeError(f"action {self._session.action} already in flight")
        self._session = ActionSession(action=action, skill_name=skill_name, message=message)

    def end_action(self) -> None:
        self._session = ActionSession()

    def open_dialog(self, selection: DialogSelection) -> None:
        self.dialog = selection

    def close_dialog(self, kind: DialogKind | None = None) -> None:
        if kind is None or (self.dialog is not None and self.dialog.kind == kind):
            self.dialog = None

    def notify(
        self, level: NotificationLevel, title: str, lines: list[str] | tuple[str, ...] = ()
    ) -> Notification:
        notification = Notification(level=level, title=title, lines=tuple(lines))
        self.notifications.append(notification)
        log.debug("console.notify", level=level, title=title)
        if self._sink is not None:
            self._sink(notification)
        return notification
