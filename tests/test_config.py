"""Tests for settings helpers and data dir resolution."""

from pathlib import Path

import pytest

from breakwatch.config import (
    BlockLevel,
    Settings,
    default_data_dir,
    parse_block_level,
    parse_reset_time,
)
from breakwatch.errors import InvalidResetTimeError


class TestParseResetTime:
    @pytest.mark.parametrize("value,expected", [
        ("04:00", (4, 0)),
        ("4:05", (4, 5)),
        ("23:59", (23, 59)),
        (" 00:00 ", (0, 0)),
    ])
    def test_valid(self, value, expected):
        assert parse_reset_time(value) == expected

    @pytest.mark.parametrize("value", ["", "4", "24:00", "12:60", "ab:cd", "4:00pm", "-1:00"])
    def test_invalid(self, value):
        with pytest.raises(InvalidResetTimeError):
            parse_reset_time(value)


class TestParseBlockLevel:
    def test_known_levels(self):
        assert parse_block_level("soft") == BlockLevel.SOFT
        assert parse_block_level("STRICT") == BlockLevel.STRICT

    def test_unknown_falls_back_to_medium(self):
        assert parse_block_level("brutal") == BlockLevel.MEDIUM


class TestDefaults:
    def test_default_settings(self):
        s = Settings()
        assert (s.micro.interval_seconds, s.micro.duration_seconds, s.micro.snooze_seconds) == (180, 20, 150)
        assert (s.rest.interval_seconds, s.rest.duration_seconds, s.rest.snooze_seconds) == (2700, 300, 180)
        assert s.daily_limit.limit_seconds == 14_400
        assert s.daily_limit.reset_offset_seconds == 14_400
        assert s.daily_limit.reset_time == "04:00"
        assert s.block_level == BlockLevel.MEDIUM
        assert not s.strict

    def test_strict_flag(self):
        assert Settings(block_level=BlockLevel.STRICT).strict


class TestDefaultDataDir:
    def test_env_override_wins(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BREAKWATCH_DATA_DIR", str(tmp_path / "custom"))
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))
        assert default_data_dir() == tmp_path / "custom"

    def test_xdg_data_home(self, monkeypatch, tmp_path):
        monkeypatch.delenv("BREAKWATCH_DATA_DIR", raising=False)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert default_data_dir() == tmp_path / "breakwatch"

    def test_home_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv("BREAKWATCH_DATA_DIR", raising=False)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert default_data_dir() == tmp_path / ".local" / "share" / "breakwatch"
