from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SkillFormat(StrEnum):
    standard = "standard"
    external = "external"
    mcp = "mcp"
    unknown = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> SkillFormat:
        try:
            return cls(value)
        except ValueError:
            return cls.unknown


class SkillStatus(StrEnum):
    installed = "installed"
    ready = "ready"
    running = "running"
    stopped = "stopped"
    disabled = "disabled"
    error = "error"
    unknown = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> SkillStatus:
        try:
            return cls(value)
        except ValueError:
            return cls.unknown


class CamelModel(BaseModel):
    """Base for backend records: camelCase on the wire, frozen once parsed."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True
    )


def _none_as_empty_list(value: Any) -> Any:
    return [] if value is None else value


class InstallMethod(CamelModel):
    id: str = ""
    kind: str = ""
    formula: str | None = None
    package: str | None = None
    label: str = ""


class SkillRequires(CamelModel):
    bins: list[str] = Field(default_factory=list)
    env: list[str] = Field(default_factory=list)

    @field_validator("bins", "env", mode="before")
    @classmethod
    def null_lists_as_empty(cls, value: Any) -> Any:
        return _none_as_empty_list(value)


class SkillDef(BaseModel):
    # The definition block keeps the skill file's own keys (mostly snake_case).
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    name: str
    description: str = ""
    homepage: str | None = None
    version: str | None = None
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    emoji: str | None = None
    os: list[str] = Field(default_factory=list)
    min_bot_version: str | None = None
    timeout: int | None = None
    max_memory: str | None = None
    enabled: bool = False
    requires: SkillRequires = Field(default_factory=SkillRequires)
    primary_env: str | None = Field(default=None, alias="primaryEnv")
    install: list[InstallMethod] = Field(default_factory=list)
    command: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("tags", "os", "install", mode="before")
    @classmethod
    def null_lists_as_empty(cls, value: Any) -> Any:
        return _none_as_empty_list(value)

    @field_validator("requires", mode="before")
    @classmethod
    def null_requires_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def null_metadata_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class SkillInfo(CamelModel):
    definition: SkillDef = Field(alias="def")
    format: str = SkillFormat.standard.value
    status: str = SkillStatus.installed.value
    content: str = ""
    directory: str = ""
    can_run: bool = False
    missing_bins: list[str] = Field(default_factory=list)
    missing_env: list[str] = Field(default_factory=list)
    success_count: int = 0
    error_count: int = 0
    avg_execution_ms: float = 0
    last_run_time: str | None = None
    last_error: str | None = None

    @field_validator("missing_bins", "missing_env", mode="before")
    @classmethod
    def null_lists_as_empty(cls, value: Any) -> Any:
        return _none_as_empty_list(value)

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def enabled(self) -> bool:
        return self.definition.enabled


class RegistrySnapshot(CamelModel):
    skills: list[SkillInfo] = Field(default_factory=list)
    count: int = 0
    is_re_indexing: bool = False
    re_index_error: str = ""

    @field_validator("skills", mode="before")
    @classmethod
    def null_lists_as_empty(cls, value: Any) -> Any:
        return _none_as_empty_list(value)

    @field_validator("re_index_error", mode="before")
    @classmethod
    def null_error_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def find(self, name: str) -> SkillInfo | None:
        for skill in self.skills:
            if skill.name == name:
                return skill
        return None
