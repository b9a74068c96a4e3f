from __future__ import annotations

import structlog

from skill_console.connectors.skills_api import RequestError, SkillsAPIClient
from skill_console.core.filters import SkillListView
from skill_console.core.orchestrator import ActionOrchestrator
from skill_console.core.reindex import ReindexPoller
from skill_console.core.store import ConsoleStore, NotificationSink
from skill_console.schemas.console import NotificationLevel, Screen
from skill_console.schemas.skill import RegistrySnapshot, SkillInfo

log = structlog.get_logger()


class SkillConsole:
    """One operator console: backend client, local state, actions and polling."""

    def __init__(
        self,
        client: SkillsAPIClient | None = None,
        *,
        poll_interval: float | None = None,
        sink: NotificationSink | None = None,
    ) -> None:
        self.client = client or SkillsAPIClient()
        self.store = ConsoleStore(sink=sink)
        self.view = SkillListView()
        self.poller = ReindexPoller(self.refresh, interval=poll_interval)
        self.actions = ActionOrchestrator(self.client, self.store, self.refresh)

    async def __aenter__(self) -> SkillConsole:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def start(self) -> None:
        log.info("console.start", api_url=self.client.base_url)
        await self.refresh()

    async def aclose(self) -> None:
        await self.poller.aclose()
        log.info("console.closed")

    async def refresh(self) -> RegistrySnapshot | None:
        """Fetch the registry and swap it in; returns None if the fetch failed."""
        self.store.loading = True
        try:
            snapshot = await self.client.list_skills()
        except RequestError as exc:
            log.warning("console.fetch_failed", error=str(exc))
            self.store.fetch_failed("Failed to load the skill list")
            self.store.notify(NotificationLevel.error, "Failed to load the skill list", [str(exc)])
            if self.store.is_re_indexing:
                self.poller.ensure_running()
            return None
        finally:
            self.store.loading = False

        self.store.replace_snapshot(snapshot)
        self.view.set_skills(snapshot.skills)
        log.debug(
            "console.snapshot",
            count=len(snapshot.skills),
            reindexing=snapshot.is_re_indexing,
        )

        if snapshot.is_re_indexing:
            self.poller.ensure_running()
        else:
            await self.poller.stop()
        return snapshot

    @property
    def screen(self) -> Screen:
        if self.store.is_re_indexing:
            return Screen.reindexing
        if not self.store.fetched and self.store.loading:
            return Screen.loading
        return Screen.list

    def find(self, name: str) -> SkillInfo | None:
        return self.store.snapshot.find(name)
