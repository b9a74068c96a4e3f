"""Pure derivations over a single skill record.

Nothing here touches the network or the console store; the same record always
yields the same answers.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum

from skill_console.schemas.console import ActionKind
from skill_console.schemas.skill import SkillFormat, SkillInfo, SkillStatus

ALL = "all"

STATUS_ICONS: dict[SkillStatus, str] = {
    SkillStatus.installed: "⏳",
    SkillStatus.ready: "✅",
    SkillStatus.running: "🔄",
    SkillStatus.stopped: "⏹️",
    SkillStatus.disabled: "🚫",
    SkillStatus.error: "❌",
}
UNKNOWN_STATUS_ICON = "❔"

FORMAT_TAGS: dict[SkillFormat, str] = {
    SkillFormat.standard: "[std]",
    SkillFormat.external: "[ext]",
    SkillFormat.mcp: "[MCP]",
}
UNKNOWN_FORMAT_TAG = "[?]"

SECRET_ENV_MARKERS = ("password", "secret", "token")


class DependencyGap(StrEnum):
    none = "none"
    bins = "bins"
    env = "env"
    both = "both"


def mcp_binding(skill: SkillInfo) -> tuple[str, str] | None:
    """Return the (server, tool) pair declared under ``metadata.mcp``, if complete."""
    mcp = skill.definition.metadata.get("mcp")
    if not isinstance(mcp, dict):
        return None
    server = mcp.get("server")
    tool = mcp.get("tool")
    if not server or not tool:
        return None
    return str(server), str(tool)


def is_mcp_skill(skill: SkillInfo) -> bool:
    return mcp_binding(skill) is not None


def classify_format(skill: SkillInfo) -> SkillFormat:
    """Format used for display and filtering.

    An MCP server/tool pair in the metadata wins over whatever label the
    backend stored, since MCP skills are often registered as ``standard``.
    """
    if is_mcp_skill(skill):
        return SkillFormat.mcp
    return SkillFormat.parse(skill.format)


def status_icon(status: str) -> str:
    return STATUS_ICONS.get(SkillStatus.parse(status), UNKNOWN_STATUS_ICON)


def format_tag(skill: SkillInfo) -> str:
    return FORMAT_TAGS.get(classify_format(skill), UNKNOWN_FORMAT_TAG)


def dependency_gap(skill: SkillInfo) -> DependencyGap:
    bins = bool(skill.missing_bins)
    env = bool(skill.missing_env)
    if bins and env:
        return DependencyGap.both
    if bins:
        return DependencyGap.bins
    if env:
        return DependencyGap.env
    return DependencyGap.none


def matches_filter(skill: SkillInfo, status_filter: str = ALL, format_filter: str = ALL) -> bool:
    if status_filter != ALL and skill.status != status_filter:
        return False
    if format_filter != ALL and classify_format(skill) != format_filter:
        return False
    return True


def filter_skills(
    skills: Iterable[SkillInfo], status_filter: str = ALL, format_filter: str = ALL
) -> list[SkillInfo]:
    return [s for s in skills if matches_filter(s, status_filter, format_filter)]


def available_actions(skill: SkillInfo) -> list[ActionKind]:
    """Actions a skill card offers, in display order."""
    actions = [ActionKind.validate]
    # Conversion targets the stored label, not the MCP classification
    if skill.format != SkillFormat.standard:
        actions.append(ActionKind.convert)
    if skill.missing_bins:
        actions.append(ActionKind.install)
    if skill.definition.requires.env:
        actions.append(ActionKind.save_env)
    actions.append(ActionKind.toggle_enable)
    return actions


def is_secret_env(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in SECRET_ENV_MARKERS)
