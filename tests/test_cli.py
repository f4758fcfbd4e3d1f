"""CLI tests through click's CliRunner against a temporary data dir."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from rich.console import Console

from breakwatch import autostart
from breakwatch import cli as cli_module
from breakwatch.cli import cli, format_seconds, render_status
from breakwatch.runtime import RuntimeStatus
from breakwatch.timer import BreakKind


@pytest.fixture
def invoke(tmp_path, monkeypatch):
    # Wide enough that table cells never wrap
    monkeypatch.setattr(cli_module, "console", Console(width=200))
    runner = CliRunner()

    def _invoke(*args):
        return runner.invoke(cli, ["--data-dir", str(tmp_path), *args], obj={})

    return _invoke


def read_state(tmp_path: Path) -> dict:
    return json.loads((tmp_path / "state.json").read_text())


class TestFormatting:
    @pytest.mark.parametrize("seconds,expected", [
        (0, "0s"),
        (45, "45s"),
        (150, "2m 30s"),
        (3600, "1h 0m"),
        (5400, "1h 30m"),
        (-5, "0s"),
    ])
    def test_format_seconds(self, seconds, expected):
        assert format_seconds(seconds) == expected

    def test_render_active_break(self):
        status = RuntimeStatus(running=True, active_break=BreakKind.REST, remaining_seconds=90)
        assert render_status(status).plain == "On rest break  1m 30s left"

    def test_render_pending_break_strict(self):
        status = RuntimeStatus(running=True, pending_break=BreakKind.MICRO, strict_mode=True)
        text = render_status(status).plain
        assert text.startswith("micro break due")
        assert text.endswith("[strict]")

    def test_render_next_break(self):
        status = RuntimeStatus(running=True, next_break=(BreakKind.MICRO, 60))
        assert render_status(status).plain == "Next: micro in 1m 0s"

    def test_render_nothing_scheduled(self):
        assert render_status(RuntimeStatus()).plain == "No breaks scheduled"


class TestSettingsCommands:
    def test_show_creates_state(self, invoke, tmp_path):
        result = invoke("settings", "show")
        assert result.exit_code == 0, result.output
        assert "micro_interval_seconds" in result.output
        assert (tmp_path / "state.json").exists()

    def test_set_value(self, invoke, tmp_path):
        result = invoke("settings", "set", "micro_interval_seconds", "300")
        assert result.exit_code == 0, result.output
        assert "micro_interval_seconds = 300" in result.output
        assert read_state(tmp_path)["settings"]["micro_interval_seconds"] == 300

    def test_set_reset_time_normalized(self, invoke, tmp_path):
        result = invoke("settings", "set", "daily_reset_time", "5:30")
        assert result.exit_code == 0, result.output
        assert read_state(tmp_path)["settings"]["daily_reset_time"] == "05:30"

    def test_set_invalid_reset_time(self, invoke):
        result = invoke("settings", "set", "daily_reset_time", "25:00")
        assert result.exit_code == 1
        assert "Invalid value for daily_reset_time" in result.output

    def test_set_unknown_key(self, invoke):
        result = invoke("settings", "set", "volume", "11")
        assert result.exit_code == 2

    def test_set_bad_block_level(self, invoke):
        result = invoke("settings", "set", "block_level", "brutal")
        assert result.exit_code == 2


class TestProfileCommands:
    def test_list_default(self, invoke):
        result = invoke("profiles", "list")
        assert result.exit_code == 0
        assert "* default: Default" in result.output

    def test_save_and_activate(self, invoke, tmp_path):
        invoke("settings", "set", "rest_duration_seconds", "600")
        assert invoke("profiles", "save", "long", "Long rests").exit_code == 0
        invoke("settings", "set", "rest_duration_seconds", "120")

        result = invoke("profiles", "activate", "long")
        assert result.exit_code == 0, result.output
        settings = read_state(tmp_path)["settings"]
        assert settings["rest_duration_seconds"] == 600
        assert settings["active_profile_id"] == "long"
        assert "* long: Long rests" in invoke("profiles", "list").output

    def test_activate_unknown(self, invoke):
        result = invoke("profiles", "activate", "nope")
        assert result.exit_code == 1
        assert "profile not found: nope" in result.output

    def test_remove(self, invoke, tmp_path):
        invoke("profiles", "save", "work", "Work")
        assert invoke("profiles", "remove", "work").exit_code == 0
        assert "work" not in read_state(tmp_path)["profiles"]

    def test_remove_unknown(self, invoke):
        assert invoke("profiles", "remove", "nope").exit_code == 1


class TestReportCommands:
    def test_status(self, invoke):
        result = invoke("status")
        assert result.exit_code == 0, result.output
        assert "Breakwatch" in result.output
        assert "Profile" in result.output

    def test_status_labels_eta_as_session_start(self, invoke):
        result = invoke("status")
        assert "First break after start" in result.output
        assert "Next break" not in result.output

    def test_stats_for_day(self, invoke, tmp_path):
        invoke("settings", "show")
        state = read_state(tmp_path)
        state["analytics"] = {"10": {"active_seconds": 3600, "micro_done": 4}}
        (tmp_path / "state.json").write_text(json.dumps(state))

        result = invoke("stats", "--day", "10")
        assert result.exit_code == 0, result.output
        assert "Week ending day 10" in result.output
        assert "Total" in result.output


class TestStartupCommand:
    def test_installs_and_records(self, invoke, tmp_path, monkeypatch):
        home = tmp_path / "home"
        monkeypatch.setattr(autostart, "resolve_exec", lambda: "breakwatch run")
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: home))

        result = invoke("startup", "xdg_and_systemd")
        assert result.exit_code == 0, result.output
        assert (home / ".config" / "systemd" / "user" / "breakwatch.service").exists()
        settings = read_state(tmp_path)["settings"]
        assert settings["startup_xdg"] is True
        assert settings["startup_systemd_user"] is True

    def test_rejects_unknown_mode(self, invoke):
        assert invoke("startup", "cron").exit_code == 2
