from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from skill_console.schemas.skill import CamelModel


class DependencyCheckResult(CamelModel):
    bins_available: bool = False
    missing_bins: list[str] = Field(default_factory=list)
    env_available: bool = False
    missing_env: list[str] = Field(default_factory=list)
    os_compatible: bool = False
    errors: list[str] = Field(default_factory=list)

    @field_validator("missing_bins", "missing_env", "errors", mode="before")
    @classmethod
    def null_lists_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def satisfied(self) -> bool:
        return self.bins_available and self.env_available and self.os_compatible


class ValidationIssue(CamelModel):
    """A structured error reported by the backend, e.g. ``MISSING_BIN``."""

    code: str = ""
    message: str = ""
    skill_name: str | None = None
    suggestion: str | None = None

    def describe(self) -> str:
        text = f"{self.code}: {self.message}" if self.code else self.message
        if self.suggestion:
            text = f"{text} (suggestion: {self.suggestion})"
        return text


class ValidationResult(CamelModel):
    can_run: bool = False
    bins_valid: bool = False
    env_valid: bool = False
    os_valid: bool = False
    runtime_valid: bool = False
    missing_bins: list[str] = Field(default_factory=list)
    missing_env: list[str] = Field(default_factory=list)
    errors: list[ValidationIssue] = Field(default_factory=list)

    @field_validator("missing_bins", "missing_env", "errors", mode="before")
    @classmethod
    def null_lists_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value
