"""Tests for the persistent state document."""

import json

import pytest

from breakwatch.analytics import AnalyticsStore
from breakwatch.config import BlockLevel
from breakwatch.errors import ProfileNotFoundError, StorageError
from breakwatch.profiles import Profile
from breakwatch.state import SettingsRecord, StateDocument, StateStore
from breakwatch.timer import BreakKind, BreakOutcome


def _with_micro_interval(store: StateStore, seconds: int):
    settings = store.settings
    settings.micro.interval_seconds = seconds
    return settings


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "data" / "state.json"


class TestLoad:
    def test_missing_file_creates_defaults(self, state_path):
        store = StateStore.load(state_path)
        assert state_path.exists()
        assert store.settings.micro.interval_seconds == 180
        assert list(store.document.profiles) == ["default"]
        assert store.document.analytics == {}

    def test_corrupt_file_falls_back_to_defaults(self, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text("{not json", encoding="utf-8")
        store = StateStore.load(state_path)
        assert store.document == StateDocument()
        # Repaired on disk
        assert json.loads(state_path.read_text())["settings"]["block_level"] == "medium"

    def test_invalid_field_falls_back_to_defaults(self, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text(json.dumps({"settings": {"daily_reset_time": "25:00"}}))
        store = StateStore.load(state_path)
        assert store.settings.daily_limit.reset_time == "04:00"

    def test_partial_document_fills_defaults(self, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text(json.dumps({"settings": {"micro_interval_seconds": 300}}))
        store = StateStore.load(state_path)
        assert store.settings.micro.interval_seconds == 300
        assert store.settings.rest.interval_seconds == 2700

    def test_unknown_block_level_reads_as_medium(self, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text(json.dumps({"settings": {"block_level": "brutal"}}))
        assert StateStore.load(state_path).settings.block_level == BlockLevel.MEDIUM

    def test_unwritable_directory_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(StorageError):
            StateStore.load(blocker / "state.json")


class TestSave:
    def test_round_trip(self, state_path):
        store = StateStore.load(state_path)
        settings = store.settings
        settings.rest.duration_seconds = 600
        settings.block_level = BlockLevel.STRICT
        store.update_settings(settings)
        store.save()

        again = StateStore.load(state_path)
        assert again.settings.rest.duration_seconds == 600
        assert again.settings.strict

    def test_no_temp_files_left_behind(self, state_path):
        store = StateStore.load(state_path)
        store.save()
        assert [p.name for p in state_path.parent.iterdir()] == ["state.json"]

    def test_reset_time_normalized(self):
        record = SettingsRecord(daily_reset_time="4:5")
        assert record.daily_reset_time == "04:05"


class TestProfiles:
    def test_save_and_activate_profile(self, state_path):
        store = StateStore.load(state_path)
        settings = store.settings
        settings.micro.interval_seconds = 900
        store.save_profile(Profile(id="gaming", name="Gaming", settings=settings))

        activated = store.activate_profile("gaming")
        assert activated.micro.interval_seconds == 900
        assert activated.active_profile_id == "gaming"
        assert store.profile_store().active_id == "gaming"

    def test_activate_unknown_profile(self, state_path):
        store = StateStore.load(state_path)
        before = store.document.settings
        with pytest.raises(ProfileNotFoundError):
            store.activate_profile("nope")
        assert store.document.settings == before

    def test_remove_profile(self, state_path):
        store = StateStore.load(state_path)
        store.save_profile(Profile(id="work", name="Work"))
        removed = store.remove_profile("work")
        assert removed.id == "work"
        assert "work" not in store.document.profiles

    def test_remove_unknown_profile(self, state_path):
        store = StateStore.load(state_path)
        with pytest.raises(ProfileNotFoundError):
            store.remove_profile("nope")

    def test_remove_active_profile_switches_settings(self, state_path):
        store = StateStore.load(state_path)
        settings = store.settings
        settings.micro.interval_seconds = 999
        store.save_profile(Profile(id="gaming", name="Gaming", settings=settings))
        store.activate_profile("gaming")

        store.remove_profile("gaming")
        assert store.settings.active_profile_id == "default"
        assert store.settings.micro.interval_seconds == 180

    def test_remove_inactive_profile_keeps_settings(self, state_path):
        store = StateStore.load(state_path)
        store.update_settings(_with_micro_interval(store, 600))
        store.save_profile(Profile(id="work", name="Work"))
        store.remove_profile("work")
        assert store.settings.micro.interval_seconds == 600

    def test_remove_last_profile_clears_active(self, state_path):
        store = StateStore.load(state_path)
        store.update_settings(_with_micro_interval(store, 600))
        store.remove_profile("default")
        assert store.document.profiles == {}
        assert store.settings.active_profile_id is None
        assert store.settings.micro.interval_seconds == 180
        assert store.profile_store().active_id is None

    def test_unknown_active_id_falls_back_to_lowest(self, state_path):
        store = StateStore.load(state_path)
        store.save_profile(Profile(id="zeta", name="Zeta"))
        store.save_profile(Profile(id="alpha", name="Alpha"))
        store.document.profiles = {
            key: store.document.profiles[key] for key in ("zeta", "default", "alpha")
        }
        store.document.settings.active_profile_id = "gone"
        assert store.profile_store().active_id == "alpha"

    def test_profiles_survive_reload(self, state_path):
        store = StateStore.load(state_path)
        store.save_profile(Profile(id="work", name="Work"))
        store.save()
        assert set(StateStore.load(state_path).document.profiles) == {"default", "work"}


class TestAnalytics:
    def test_apply_and_reload(self, state_path):
        store = StateStore.load(state_path)
        analytics = AnalyticsStore()
        analytics.record_activity(-1, 120)
        analytics.record_break(3, BreakKind.MICRO, BreakOutcome.COMPLETED)
        store.apply_analytics(analytics)
        store.save()

        reloaded = StateStore.load(state_path).analytics_store()
        assert reloaded.days() == [-1, 3]
        assert reloaded.day(-1).active_seconds == 120
        assert reloaded.day(3).micro_done == 1

    def test_matches_store_serialization(self, state_path):
        store = StateStore.load(state_path)
        analytics = AnalyticsStore()
        analytics.record_break(2, BreakKind.REST, BreakOutcome.SKIPPED)
        store.apply_analytics(analytics)
        assert store.analytics_store().to_dict() == analytics.to_dict()


class TestReload:
    def test_fresh_store_sees_no_change(self, state_path):
        store = StateStore.load(state_path)
        assert not store.changed_on_disk()

    def test_detects_other_writer(self, state_path):
        store = StateStore.load(state_path)
        other = StateStore.load(state_path)
        other.update_settings(_with_micro_interval(other, 42))
        other.save()

        assert store.changed_on_disk()
        assert store.reload() is True
        assert store.settings.micro.interval_seconds == 42
        assert not store.changed_on_disk()

    def test_corrupt_file_keeps_current_document(self, state_path):
        store = StateStore.load(state_path)
        store.update_settings(_with_micro_interval(store, 77))
        state_path.write_text("{broken", encoding="utf-8")

        assert store.reload() is False
        assert store.settings.micro.interval_seconds == 77
        assert not store.changed_on_disk()

    def test_missing_file_is_not_a_change(self, tmp_path):
        store = StateStore(tmp_path / "state.json")
        assert not store.changed_on_disk()
