"""Persistent state document: settings, named profiles and daily statistics.

One JSON file (``state.json`` in the data dir) holds everything. A missing
or corrupt file is replaced with defaults instead of failing start-up.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from .analytics import AnalyticsStore
from .config import (
    BlockLevel,
    BreakTimerSettings,
    DailyLimitSettings,
    NotificationSettings,
    Settings,
    StartupSettings,
    default_data_dir,
    parse_block_level,
    parse_reset_time,
    STATE_FILENAME,
)
from .errors import InvalidResetTimeError, ProfileNotFoundError, StorageError
from .profiles import Profile, ProfileStore

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_ID = "default"
DEFAULT_PROFILE_NAME = "Default"


class SettingsRecord(BaseModel):
    """Flat on-disk form of Settings."""

    micro_interval_seconds: int = Field(default=180, ge=0)
    micro_duration_seconds: int = Field(default=20, ge=0)
    micro_snooze_seconds: int = Field(default=150, ge=0)
    micro_enabled: bool = True
    rest_interval_seconds: int = Field(default=2700, ge=0)
    rest_duration_seconds: int = Field(default=300, ge=0)
    rest_snooze_seconds: int = Field(default=180, ge=0)
    rest_enabled: bool = True
    daily_limit_seconds: int = Field(default=14_400, ge=0)
    daily_limit_snooze_seconds: int = Field(default=1_200, ge=0)
    daily_limit_enabled: bool = True
    daily_reset_time: str = "04:00"
    block_level: str = BlockLevel.MEDIUM.value
    desktop_notifications: bool = True
    overlay_notifications: bool = True
    sound_notifications: bool = True
    sound_theme: str = "default"
    startup_xdg: bool = True
    startup_systemd_user: bool = False
    active_profile_id: str | None = DEFAULT_PROFILE_ID

    @field_validator("daily_reset_time")
    @classmethod
    def _check_reset_time(cls, value: str) -> str:
        try:
            hour, minute = parse_reset_time(value)
        except InvalidResetTimeError as e:
            raise ValueError(str(e)) from None
        return f"{hour:02d}:{minute:02d}"

    @classmethod
    def from_settings(cls, settings: Settings) -> "SettingsRecord":
        return cls(
            micro_interval_seconds=settings.micro.interval_seconds,
            micro_duration_seconds=settings.micro.duration_seconds,
            micro_snooze_seconds=settings.micro.snooze_seconds,
            micro_enabled=settings.micro.enabled,
            rest_interval_seconds=settings.rest.interval_seconds,
            rest_duration_seconds=settings.rest.duration_seconds,
            rest_snooze_seconds=settings.rest.snooze_seconds,
            rest_enabled=settings.rest.enabled,
            daily_limit_seconds=settings.daily_limit.limit_seconds,
            daily_limit_snooze_seconds=settings.daily_limit.snooze_seconds,
            daily_limit_enabled=settings.daily_limit.enabled,
            daily_reset_time=settings.daily_limit.reset_time,
            block_level=settings.block_level.value,
            desktop_notifications=settings.notifications.desktop_enabled,
            overlay_notifications=settings.notifications.overlay_enabled,
            sound_notifications=settings.notifications.sound_enabled,
            sound_theme=settings.notifications.sound_theme,
            startup_xdg=settings.startup.xdg_autostart_enabled,
            startup_systemd_user=settings.startup.systemd_user_enabled,
            active_profile_id=settings.active_profile_id,
        )

    def to_settings(self) -> Settings:
        reset_hour, reset_minute = parse_reset_time(self.daily_reset_time)
        return Settings(
            micro=BreakTimerSettings(
                interval_seconds=self.micro_interval_seconds,
                duration_seconds=self.micro_duration_seconds,
                snooze_seconds=self.micro_snooze_seconds,
                enabled=self.micro_enabled,
            ),
            rest=BreakTimerSettings(
                interval_seconds=self.rest_interval_seconds,
                duration_seconds=self.rest_duration_seconds,
                snooze_seconds=self.rest_snooze_seconds,
                enabled=self.rest_enabled,
            ),
            daily_limit=DailyLimitSettings(
                limit_seconds=self.daily_limit_seconds,
                snooze_seconds=self.daily_limit_snooze_seconds,
                reset_hour_local=reset_hour,
                reset_minute_local=reset_minute,
                enabled=self.daily_limit_enabled,
            ),
            block_level=parse_block_level(self.block_level),
            notifications=NotificationSettings(
                desktop_enabled=self.desktop_notifications,
                overlay_enabled=self.overlay_notifications,
                sound_enabled=self.sound_notifications,
                sound_theme=self.sound_theme,
            ),
            startup=StartupSettings(
                xdg_autostart_enabled=self.startup_xdg,
                systemd_user_enabled=self.startup_systemd_user,
            ),
            active_profile_id=self.active_profile_id,
        )


class ProfileRecord(BaseModel):
    id: str
    name: str
    settings: SettingsRecord = Field(default_factory=SettingsRecord)


class DailyAggregateRecord(BaseModel):
    active_seconds: int = Field(default=0, ge=0)
    micro_done: int = Field(default=0, ge=0)
    rest_done: int = Field(default=0, ge=0)
    daily_limit_hits: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)


def _default_profiles() -> dict[str, ProfileRecord]:
    return {
        DEFAULT_PROFILE_ID: ProfileRecord(id=DEFAULT_PROFILE_ID, name=DEFAULT_PROFILE_NAME),
    }


class StateDocument(BaseModel):
    settings: SettingsRecord = Field(default_factory=SettingsRecord)
    profiles: dict[str, ProfileRecord] = Field(default_factory=_default_profiles)
    # Keyed by day index; JSON object keys are strings.
    analytics: dict[int, DailyAggregateRecord] = Field(default_factory=dict)


class StateStore:
    """Loads, holds and saves the state document."""

    def __init__(self, path: Path, document: StateDocument | None = None):
        self.path = Path(path)
        self.document = document or StateDocument()
        # (inode, mtime) of the file as this store last wrote or read it
        self._signature: tuple[int, int] | None = None

    @classmethod
    def load(cls, path: Path | None = None) -> "StateStore":
        """Read the document at ``path``, falling back to defaults when unusable.

        The (possibly repaired) document is written back straight away.
        """
        path = Path(path) if path is not None else default_data_dir() / STATE_FILENAME
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(path.parent, str(e)) from e

        document = StateDocument()
        if path.exists():
            try:
                document = StateDocument.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError, ValueError) as e:
                logger.warning(f"State file {path} unreadable, using defaults: {e}")
                document = StateDocument()
        else:
            logger.info(f"No state file at {path}, creating defaults")

        store = cls(path, document)
        store.save()
        return store

    def save(self) -> None:
        payload = self.document.model_dump_json(indent=2)
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path.parent,
                prefix=f".{self.path.name}.", delete=False,
            ) as f:
                tmp_name = f.name
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(self.path, str(e)) from e
        self._signature = self._stat_signature()
        logger.debug(f"Saved state to {self.path}")

    def _stat_signature(self) -> tuple[int, int] | None:
        try:
            st = self.path.stat()
        except OSError:
            return None
        return st.st_ino, st.st_mtime_ns

    def changed_on_disk(self) -> bool:
        """True when another writer replaced state.json since this store last touched it."""
        current = self._stat_signature()
        return current is not None and current != self._signature

    def reload(self) -> bool:
        """Re-read the document from disk. Keeps the in-memory copy if the file is unusable."""
        # Recorded up front so an unreadable file is reported once, not on every check.
        self._signature = self._stat_signature()
        try:
            document = StateDocument.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"State file {self.path} unreadable, keeping current state: {e}")
            return False
        self.document = document
        return True

    # ---- Settings ----

    @property
    def settings(self) -> Settings:
        return self.document.settings.to_settings()

    def update_settings(self, settings: Settings) -> Settings:
        self.document.settings = SettingsRecord.from_settings(settings)
        return self.settings

    # ---- Profiles ----

    def profile_store(self) -> ProfileStore:
        store = ProfileStore()
        for record in self.document.profiles.values():
            store.upsert(Profile(id=record.id, name=record.name, settings=record.settings.to_settings()))
        active_id = self.document.settings.active_profile_id
        if (active_id is None or not store.activate(active_id)) and len(store):
            store.activate(store.list()[0].id)
        return store

    def apply_profile_store(self, store: ProfileStore) -> None:
        self.document.profiles = {
            p.id: ProfileRecord(id=p.id, name=p.name, settings=SettingsRecord.from_settings(p.settings))
            for p in store.list()
        }
        active = store.active()
        if active is not None:
            self.document.settings.active_profile_id = active.id

    def save_profile(self, profile: Profile) -> Profile:
        store = self.profile_store()
        store.upsert(profile)
        self.apply_profile_store(store)
        return profile

    def activate_profile(self, profile_id: str) -> Settings:
        """Make ``profile_id`` the current settings. Returns the new settings."""
        record = self.document.profiles.get(profile_id)
        if record is None:
            raise ProfileNotFoundError(profile_id)

        self.document.settings = record.settings.model_copy(
            update={"active_profile_id": profile_id}
        )
        return self.settings

    def remove_profile(self, profile_id: str) -> Profile:
        """Delete a profile. Removing the active one switches to the new active profile's settings."""
        store = self.profile_store()
        previous_id = store.active_id
        removed = store.remove(profile_id)
        if removed is None:
            raise ProfileNotFoundError(profile_id)
        self.apply_profile_store(store)

        if store.active_id != previous_id:
            if store.active_id is None:
                self.document.settings = SettingsRecord(active_profile_id=None)
            else:
                self.activate_profile(store.active_id)
        return removed

    # ---- Analytics ----

    def analytics_store(self) -> AnalyticsStore:
        return AnalyticsStore.from_dict({
            day: record.model_dump() for day, record in self.document.analytics.items()
        })

    def apply_analytics(self, store: AnalyticsStore) -> None:
        self.document.analytics = {
            int(day): DailyAggregateRecord(**agg) for day, agg in store.to_dict().items()
        }
