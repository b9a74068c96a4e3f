from __future__ import annotations

from collections.abc import Iterable

from skill_console.core.view_model import ALL, filter_skills
from skill_console.schemas.skill import SkillFormat, SkillInfo, SkillStatus

STATUS_FILTERS: tuple[str, ...] = (ALL, *(s.value for s in SkillStatus if s is not SkillStatus.unknown))
FORMAT_FILTERS: tuple[str, ...] = (ALL, *(f.value for f in SkillFormat if f is not SkillFormat.unknown))


class SkillListView:
    """Filter selections plus the skills they are applied to.

    The visible subset is recomputed on every change to either filter or to the
    collection. This is a local projection only; it never fetches.
    """

    def __init__(
        self,
        skills: Iterable[SkillInfo] = (),
        status_filter: str = ALL,
        format_filter: str = ALL,
    ) -> None:
        self._skills: list[SkillInfo] = list(skills)
        self._status_filter = _checked(status_filter, STATUS_FILTERS, "status")
        self._format_filter = _checked(format_filter, FORMAT_FILTERS, "format")
        self._visible: list[SkillInfo] = []
        self._recompute()

    @property
    def skills(self) -> list[SkillInfo]:
        return list(self._skills)

    @property
    def status_filter(self) -> str:
        return self._status_filter

    @property
    def format_filter(self) -> str:
        return self._format_filter

    @property
    def visible(self) -> list[SkillInfo]:
        return list(self._visible)

    def set_skills(self, skills: Iterable[SkillInfo]) -> None:
        self._skills = list(skills)
        self._recompute()

    def set_status_filter(self, value: str) -> None:
        self._status_filter = _checked(value, STATUS_FILTERS, "status")
        self._recompute()

    def set_format_filter(self, value: str) -> None:
        self._format_filter = _checked(value, FORMAT_FILTERS, "format")
        self._recompute()

    def reset_filters(self) -> None:
        self._status_filter = ALL
        self._format_filter = ALL
        self._recompute()

    def _recompute(self) -> None:
        self._visible = filter_skills(self._skills, self._status_filter, self._format_filter)


def _checked(value: str, allowed: tuple[str, ...], axis: str) -> str:
    if value not in allowed:
        raise ValueError(f"Unknown {axis} filter {value!r}; expected one of {', '.join(allowed)}")
    return str(value)
