"""Host-level error kinds.

The timer engine itself never raises; these cover the code around it
(state document I/O, command parsing, runtime control).
"""

from __future__ import annotations


class BreakwatchError(Exception):
    """Base class for every error raised by breakwatch host code."""


class StorageError(BreakwatchError):
    """Reading or writing something on disk failed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"io error: {path}: {reason}")


class ProfileNotFoundError(BreakwatchError):
    def __init__(self, profile_id: str):
        self.profile_id = profile_id
        super().__init__(f"profile not found: {profile_id}")


class InvalidFormatError(BreakwatchError):
    """A user or document supplied value could not be parsed."""

    label = "invalid value"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"{self.label}: {value}")


class InvalidResetTimeError(InvalidFormatError):
    label = "invalid reset time format"


class InvalidBreakKindError(InvalidFormatError):
    label = "invalid break kind"


class RuntimeNotRunningError(BreakwatchError):
    def __init__(self):
        super().__init__("runtime is not running")
