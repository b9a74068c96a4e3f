from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from skill_console.schemas.skill import SkillInfo


class ActionKind(StrEnum):
    validate = "validate"
    install = "install"
    convert = "convert"
    toggle_enable = "toggle_enable"
    save_env = "save_env"
    reindex = "reindex"


ACTION_LABELS: dict[ActionKind, str] = {
    ActionKind.validate: "Validate",
    ActionKind.install: "Install dependencies",
    ActionKind.convert: "Convert format",
    ActionKind.toggle_enable: "Toggle enable",
    ActionKind.save_env: "Save environment variables",
    ActionKind.reindex: "Re-index",
}


class DialogKind(StrEnum):
    install = "install"
    convert = "convert"
    env = "env"


class NotificationLevel(StrEnum):
    success = "success"
    info = "info"
    warning = "warning"
    error = "error"


class Screen(StrEnum):
    loading = "loading"
    reindexing = "reindexing"
    list = "list"


@dataclass(frozen=True)
class ActionSession:
    """The single in-flight mutating action, or idle when ``action`` is None."""

    action: ActionKind | None = None
    skill_name: str | None = None
    message: str = ""

    @property
    def busy(self) -> bool:
        return self.action is not None


@dataclass
class DialogSelection:
    kind: DialogKind
    skill: SkillInfo
    env_values: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    title: str
    lines: tuple[str, ...] = ()


@dataclass
class ActionOutcome:
    action: ActionKind
    skill_name: str | None
    accepted: bool
    succeeded: bool = False
    error: str | None = None
    result: Any = None
