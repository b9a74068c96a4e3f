from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from skill_console.config import settings
from skill_console.schemas.skill import RegistrySnapshot
from skill_console.schemas.validation import (
    DependencyCheckResult,
    ValidationIssue,
    ValidationResult,
)

log = structlog.get_logger()

SKILLS_PATH = "/api/skills"


class RequestError(Exception):
    """A backend call that did not produce a usable success response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: str | None = None,
        issues: list[ValidationIssue] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.issues = issues or []


class SkillNotFoundError(RequestError):
    pass


class SkillsAPIClient:
    """Thin wrapper around the skill registry HTTP API."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = (base_url or settings.api_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.request_timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    async def list_skills(self) -> RegistrySnapshot:
        data = await self._request("GET", SKILLS_PATH)
        return _parse(RegistrySnapshot, data or {}, SKILLS_PATH)

    async def check_dependencies(self, name: str) -> DependencyCheckResult:
        """Report binary, environment and OS availability without changing anything.

        Args:
            name: Skill name as listed in the registry.

        Returns:
            The backend's dependency report for the skill.
        """
        path = _skill_path(name, "dependencies")
        data = await self._request("GET", path)
        return _parse(DependencyCheckResult, data, path)

    async def validate(self, name: str) -> ValidationResult:
        """Run the authoritative runnability check for a skill.

        A result with ``can_run=False`` is still a successful call; only
        transport failures and non-2xx statuses raise.
        """
        path = _skill_path(name, "validate")
        data = await self._request("GET", path)
        return _parse(ValidationResult, data, path)

    async def get_env(self, name: str) -> dict[str, str]:
        path = _skill_path(name, "env")
        data = await self._request("GET", path)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise RequestError(f"GET {path} returned a malformed body")
        return {str(k): "" if v is None else str(v) for k, v in data.items()}

    async def save_env(self, name: str, env: dict[str, str]) -> None:
        await self._request("POST", _skill_path(name, "env"), json=env)

    async def convert(self, name: str) -> None:
        await self._request("POST", _skill_path(name, "convert"))

    async def install(self, name: str) -> None:
        await self._request("POST", _skill_path(name, "install"), json={})

    async def enable(self, name: str) -> None:
        await self._request("POST", _skill_path(name, "enable"))

    async def disable(self, name: str) -> None:
        await self._request("POST", _skill_path(name, "disable"))

    async def reindex(self) -> None:
        await self._request("POST", f"{SKILLS_PATH}/reindex")

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        kwargs: dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json

        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            log.warning("skills_api.unreachable", method=method, path=path, error=str(exc))
            raise RequestError(f"{method} {path} failed: {exc}") from exc

        if not resp.is_success:
            detail, issues = _error_details(resp)
            log.warning(
                "skills_api.request_failed",
                method=method,
                path=path,
                status=resp.status_code,
                detail=detail,
            )
            error_cls = SkillNotFoundError if resp.status_code == 404 else RequestError
            raise error_cls(
                f"{method} {path} returned {resp.status_code}",
                status_code=resp.status_code,
                detail=detail,
                issues=issues,
            )

        log.debug("skills_api.request_ok", method=method, path=path, status=resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            # Mutation routes may answer with plain text
            return None


def _skill_path(name: str, action: str) -> str:
    return f"{SKILLS_PATH}/{quote(name, safe='')}/{action}"


def _parse(model: type[BaseModel], data: Any, path: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        log.warning("skills_api.malformed_response", path=path, errors=exc.error_count())
        raise RequestError(f"{path} returned a malformed body") from exc


def _error_details(resp: httpx.Response) -> tuple[str | None, list[ValidationIssue]]:
    """Pull a human message and structured errors out of a failure body, if any."""
    try:
        body = resp.json()
    except ValueError:
        text = resp.text.strip()
        return (text or None), []

    if not isinstance(body, dict):
        return None, []

    detail = body.get("error") or body.get("message") or body.get("detail")
    issues: list[ValidationIssue] = []
    for item in body.get("errors") or []:
        if isinstance(item, dict):
            try:
                issues.append(ValidationIssue.model_validate(item))
            except ValidationError:
                continue
        elif isinstance(item, str):
            issues.append(ValidationIssue(message=item))
    return (str(detail) if detail else None), issues
