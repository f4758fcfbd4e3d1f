"""Named settings bundles with one active selection.

The store knows nothing about the engine: after activating a profile the
host has to hand the profile's settings to the engine itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .config import Settings


@dataclass
class Profile:
    id: str
    name: str
    settings: Settings = field(default_factory=Settings)


class ProfileStore:
    def __init__(self):
        self._profiles: dict[str, Profile] = {}
        self._active_id: str | None = None

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, profile_id: str) -> bool:
        return profile_id in self._profiles

    @property
    def active_id(self) -> str | None:
        return self._active_id

    def upsert(self, profile: Profile) -> None:
        """Insert or replace. The first profile ever stored becomes active."""
        self._profiles[profile.id] = profile
        if self._active_id is None:
            self._active_id = profile.id

    def remove(self, profile_id: str) -> Profile | None:
        removed = self._profiles.pop(profile_id, None)
        if self._active_id == profile_id:
            # Fall back to the lowest remaining id, or nothing when empty.
            self._active_id = min(self._profiles) if self._profiles else None
        return removed

    def activate(self, profile_id: str) -> bool:
        if profile_id not in self._profiles:
            return False
        self._active_id = profile_id
        return True

    def get(self, profile_id: str) -> Profile | None:
        return self._profiles.get(profile_id)

    def active(self) -> Profile | None:
        if self._active_id is None:
            return None
        return self._profiles.get(self._active_id)

    def list(self) -> list[Profile]:
        return [self._profiles[key] for key in sorted(self._profiles)]
