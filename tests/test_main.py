"""Tests for the click command line."""

import json

import httpx
import pytest
import structlog
from click.testing import CliRunner

from skill_console.config import settings
from skill_console.connectors.skills_api import SkillsAPIClient
from skill_console.main import cli


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # The CLI points structlog at the runner's stderr, which is closed afterwards
    structlog.reset_defaults()


@pytest.fixture
def run_cli(backend, monkeypatch):
    def client_factory(base_url=None, timeout=None):
        return SkillsAPIClient(base_url="http://skills.test", timeout=timeout, transport=backend.transport)

    monkeypatch.setattr("skill_console.main.SkillsAPIClient", client_factory)
    monkeypatch.setattr(settings, "reindex_poll_interval", 0)
    runner = CliRunner()

    def invoke(*args, input=None):
        return runner.invoke(cli, list(args), input=input)

    return invoke


def test_list_with_status_filter(run_cli, backend, skill_payload, snapshot_payload):
    backend.queue_snapshots(
        snapshot_payload(
            skill_payload("git-tool", status="error", missingBins=["git"]),
            skill_payload("weather"),
        )
    )

    result = run_cli("list", "--status", "error")

    assert result.exit_code == 0, result.output
    assert "git-tool" in result.output
    assert "weather" not in result.output
    assert "Missing binaries: git" in result.output
    assert "1 skill(s)" in result.output


def test_list_rejects_unknown_filter(run_cli):
    result = run_cli("list", "--status", "paused")
    assert result.exit_code == 2


def test_list_fetch_failure_exits_nonzero(run_cli, backend):
    backend.queue_snapshots(503)

    result = run_cli("list")

    assert result.exit_code == 1
    assert "Failed to load the skill list" in result.output


def test_install_with_yes(run_cli, git_tool_backend):
    git_tool_backend.ok("POST", "/api/skills/git-tool/install")

    result = run_cli("install", "git-tool", "--yes")

    assert result.exit_code == 0, result.output
    assert "Binaries to install:" in result.output
    assert "Dependencies for 'git-tool' installed" in result.output
    assert "⏳ installed" in result.output
    assert git_tool_backend.calls("POST", "/api/skills/git-tool/install") == 1


def test_install_declined(run_cli, git_tool_backend):
    git_tool_backend.ok("POST", "/api/skills/git-tool/install")

    result = run_cli("install", "git-tool", input="n\n")

    assert result.exit_code == 0
    assert git_tool_backend.calls("POST", "/api/skills/git-tool/install") == 0


def test_install_failure_exits_nonzero(run_cli, git_tool_backend):
    git_tool_backend.fail("POST", "/api/skills/git-tool/install", 500, {"error": "brew not found"})

    result = run_cli("install", "git-tool", "--yes")

    assert result.exit_code == 1
    assert "brew not found" in result.output


def test_validate_failure_exits_nonzero(run_cli, git_tool_backend):
    git_tool_backend.route(
        "GET",
        "/api/skills/git-tool/validate",
        lambda request: httpx.Response(200, json={"canRun": False, "missingBins": ["git"]}),
    )

    result = run_cli("validate", "git-tool")

    assert result.exit_code == 1
    assert "failed validation" in result.output
    assert "Missing binaries: git" in result.output


def test_deps_reports_gaps(run_cli, backend):
    backend.route(
        "GET",
        "/api/skills/git-tool/dependencies",
        lambda request: httpx.Response(
            200,
            json={"binsAvailable": False, "missingBins": ["git"], "envAvailable": True, "osCompatible": True},
        ),
    )

    result = run_cli("deps", "git-tool")

    assert result.exit_code == 1
    assert "Binaries: missing git" in result.output
    assert "OS compatible: yes" in result.output


def test_env_set_saves_values(run_cli, backend, skill_payload, snapshot_payload):
    backend.queue_snapshots(
        snapshot_payload(skill_payload("weather", definition={"requires": {"bins": [], "env": ["API_TOKEN"]}}))
    )
    backend.route("GET", "/api/skills/weather/env", lambda request: httpx.Response(200, json={}))
    backend.ok("POST", "/api/skills/weather/env")

    result = run_cli("env", "weather", "--set", "API_TOKEN=s3cret")

    assert result.exit_code == 0, result.output
    body = json.loads(backend.last("POST", "/api/skills/weather/env").content)
    assert body == {"API_TOKEN": "s3cret"}
    assert "Environment variables for 'weather' saved" in result.output


def test_env_show_masks_secrets(run_cli, backend, skill_payload, snapshot_payload):
    backend.queue_snapshots(
        snapshot_payload(skill_payload("weather", definition={"requires": {"bins": [], "env": ["API_TOKEN"]}}))
    )
    backend.route(
        "GET", "/api/skills/weather/env", lambda request: httpx.Response(200, json={"API_TOKEN": "s3cret"})
    )

    result = run_cli("env", "weather", "--show")

    assert result.exit_code == 0
    assert "API_TOKEN = ********" in result.output
    assert "s3cret" not in result.output
    assert backend.calls("POST", "/api/skills/weather/env") == 0


def test_env_set_requires_assignment(run_cli):
    result = run_cli("env", "weather", "--set", "API_TOKEN")
    assert result.exit_code == 2
    assert "KEY=VALUE" in result.output


def test_unknown_skill(run_cli):
    result = run_cli("show", "ghost")
    assert result.exit_code == 1
    assert "Skill 'ghost' not found" in result.output


def test_toggle_disables_enabled_skill(run_cli, backend, skill_payload, snapshot_payload):
    backend.queue_snapshots(
        snapshot_payload(skill_payload("weather")),
        snapshot_payload(skill_payload("weather", status="disabled", definition={"enabled": False})),
    )
    backend.ok("POST", "/api/skills/weather/disable")

    result = run_cli("toggle", "weather")

    assert result.exit_code == 0, result.output
    assert backend.calls("POST", "/api/skills/weather/disable") == 1
    assert "Skill 'weather' disabled" in result.output
    assert "Enable" in result.output


def test_reindex_no_wait(run_cli, backend, skill_payload, snapshot_payload):
    backend.queue_snapshots(snapshot_payload(skill_payload("weather")), snapshot_payload(reindexing=True))
    backend.ok("POST", "/api/skills/reindex")

    result = run_cli("reindex", "--no-wait")

    assert result.exit_code == 0, result.output
    assert "Re-index started" in result.output
    assert "Re-indexing in progress..." in result.output
    assert backend.calls("POST", "/api/skills/reindex") == 1


def test_reindex_waits_for_completion(run_cli, backend, skill_payload, snapshot_payload):
    backend.queue_snapshots(
        snapshot_payload(),
        snapshot_payload(reindexing=True),
        snapshot_payload(skill_payload("weather")),
    )
    backend.ok("POST", "/api/skills/reindex")

    result = run_cli("reindex")

    assert result.exit_code == 0, result.output
    assert "Re-indexing in progress..." in result.output
    assert result.output.rstrip().endswith("1 skill(s)")
    assert backend.calls("GET", "/api/skills") == 3
