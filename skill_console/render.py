from __future__ import annotations

from datetime import datetime

from skill_console.core.console import SkillConsole
from skill_console.core.view_model import (
    DependencyGap,
    available_actions,
    dependency_gap,
    format_tag,
    is_secret_env,
    status_icon,
)
from skill_console.schemas.console import (
    ActionKind,
    DialogSelection,
    Notification,
    NotificationLevel,
    Screen,
)
from skill_console.schemas.skill import SkillInfo
from skill_console.schemas.validation import DependencyCheckResult

NOTIFICATION_PREFIXES = {
    NotificationLevel.success: "✅",
    NotificationLevel.info: "ℹ️",
    NotificationLevel.warning: "⚠️",
    NotificationLevel.error: "❌",
}

MASK = "********"

CARD_LABELS = {
    ActionKind.validate: "Validate",
    ActionKind.convert: "Convert format",
    ActionKind.install: "Install dependencies",
    ActionKind.save_env: "Environment variables",
}


def render_console(console: SkillConsole) -> str:
    screen = console.screen
    if screen is Screen.loading:
        return "Loading..."
    if screen is Screen.reindexing:
        return render_reindexing(console.store.snapshot.re_index_error)

    parts: list[str] = []
    if console.store.fetch_error:
        parts.append(f"! {console.store.fetch_error}")
    parts.append(render_skill_list(console.view.visible))
    if console.store.session.busy:
        parts.append(console.store.session.message or "Working...")
    return "\n\n".join(parts)


def render_reindexing(error: str = "") -> str:
    lines = ["Re-indexing in progress..."]
    if error:
        lines.append(f"Note: {error}")
    return "\n".join(lines)


def render_skill_list(skills: list[SkillInfo]) -> str:
    if not skills:
        return "No skills.\nMake sure the skills directory contains valid skill definitions."
    cards = [render_skill_card(s) for s in skills]
    cards.append(f"{len(skills)} skill(s)")
    return "\n\n".join(cards)


def render_skill_card(skill: SkillInfo) -> str:
    d = skill.definition
    title = f"{d.emoji} {skill.name}" if d.emoji else skill.name
    lines = [
        f"{title}  {d.version or 'N/A'}  {format_tag(skill)}  {status_icon(skill.status)} {skill.status}",
    ]
    if d.description:
        lines.append(f"  {d.description}")
    gap = dependency_gap(skill)
    if gap in (DependencyGap.bins, DependencyGap.both):
        lines.append(f"  ⚠️ Missing binaries: {', '.join(skill.missing_bins)}")
    if gap in (DependencyGap.env, DependencyGap.both):
        lines.append(f"  🔑 Missing environment variables: {', '.join(skill.missing_env)}")

    stats = (
        f"  Succeeded: {skill.success_count}  Failed: {skill.error_count}"
        f"  Avg: {skill.avg_execution_ms:g}ms"
    )
    last_run = _format_time(skill.last_run_time)
    if last_run:
        stats += f"  Last run: {last_run}"
    lines.append(stats)
    if skill.last_error:
        lines.append(f"  Last error: {skill.last_error}")
    if d.tags:
        lines.append("  Tags: " + " ".join(f"#{t}" for t in d.tags))

    actions = [
        CARD_LABELS.get(a) or ("Disable" if skill.enabled else "Enable")
        for a in available_actions(skill)
    ]
    lines.append("  Actions: " + " | ".join(actions))
    return "\n".join(lines)


def render_install_dialog(selection: DialogSelection) -> str:
    skill = selection.skill
    lines = [f"Install dependencies - {skill.name}"]
    if skill.missing_bins:
        lines.append("Binaries to install:")
        lines.extend(f"  - {b}" for b in skill.missing_bins)
    else:
        lines.append("Nothing to install.")
    if skill.definition.install:
        lines.append("Available install methods:")
        for method in skill.definition.install:
            ref = method.formula or method.package
            suffix = f" ({ref})" if ref else ""
            lines.append(f"  - {method.label or method.id} [{method.kind}]{suffix}")
    return "\n".join(lines)


def render_convert_dialog(selection: DialogSelection) -> str:
    skill = selection.skill
    return "\n".join(
        [
            f"Convert format - {skill.name}",
            f"Current format: {skill.format}",
            "Target format: standard",
            "Conversion will:",
            "  - add missing metadata fields",
            "  - rewrite the header as standard YAML frontmatter",
            "  - keep the existing Markdown content",
        ]
    )


def render_env_dialog(selection: DialogSelection) -> str:
    skill = selection.skill
    lines = [f"Environment variables - {skill.name}"]
    if not selection.env_values:
        lines.append("This skill does not need any environment variables.")
        return "\n".join(lines)
    for var, value in selection.env_values.items():
        shown = MASK if value and is_secret_env(var) else value
        lines.append(f"  {var} = {shown}")
    return "\n".join(lines)


def render_dependencies(name: str, result: DependencyCheckResult) -> str:
    lines = [f"Dependencies - {name}"]
    lines.append(f"  Binaries: {'ok' if result.bins_available else 'missing ' + ', '.join(result.missing_bins)}")
    lines.append(f"  Environment: {'ok' if result.env_available else 'missing ' + ', '.join(result.missing_env)}")
    lines.append(f"  OS compatible: {'yes' if result.os_compatible else 'no'}")
    lines.extend(f"  - {e}" for e in result.errors)
    return "\n".join(lines)


def render_notification(notification: Notification) -> str:
    prefix = NOTIFICATION_PREFIXES.get(notification.level, "")
    lines = [f"{prefix} {notification.title}".strip()]
    lines.extend(f"  {line}" for line in notification.lines)
    return "\n".join(lines)


def _format_time(value: str | None) -> str | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    # A zero timestamp means the skill never ran
    if parsed.year <= 1:
        return None
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S")
