"""Login autostart descriptors (XDG autostart entry, systemd user unit).

Only configuration commands call into here; the runtime never does.
"""

from __future__ import annotations

import logging
import subprocess
from enum import Enum
from pathlib import Path

from .config import APP_ID, APP_NAME
from .errors import StorageError

logger = logging.getLogger(__name__)

DESKTOP_ENTRY = """[Desktop Entry]
Type=Application
Name=Breakwatch
Comment=Personalized break reminder
Exec={exec_cmd}
Terminal=false
X-GNOME-Autostart-enabled=true
"""

SYSTEMD_UNIT = """[Unit]
Description=Breakwatch break reminder
After=graphical-session.target

[Service]
Type=simple
ExecStart={exec_cmd}
Restart=on-failure

[Install]
WantedBy=default.target
"""


class StartupMode(str, Enum):
    XDG_ONLY = "xdg_only"
    XDG_AND_SYSTEMD = "xdg_and_systemd"


def resolve_exec() -> str:
    """Command line used to launch breakwatch at login.

    Prefers the flatpak build when one is installed.
    """
    try:
        result = subprocess.run(
            ["flatpak", "info", APP_ID],
            capture_output=True,
            timeout=10,
        )
        if result.returncode == 0:
            return f"flatpak run {APP_ID}"
    except (OSError, subprocess.TimeoutExpired):
        pass
    return f"{APP_NAME} run"


def _write(path: Path, content: str) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise StorageError(path, str(e)) from e
    logger.info(f"Wrote {path}")
    return path


def write_xdg_autostart(home: Path | None = None, exec_cmd: str | None = None) -> Path:
    home = home or Path.home()
    path = home / ".config" / "autostart" / f"{APP_ID}.desktop"
    return _write(path, DESKTOP_ENTRY.format(exec_cmd=exec_cmd or resolve_exec()))


def write_systemd_user_service(home: Path | None = None, exec_cmd: str | None = None) -> Path:
    home = home or Path.home()
    path = home / ".config" / "systemd" / "user" / f"{APP_NAME}.service"
    return _write(path, SYSTEMD_UNIT.format(exec_cmd=exec_cmd or resolve_exec()))


def install_startup(mode: StartupMode, home: Path | None = None) -> list[Path]:
    """Write the descriptors for ``mode``. The XDG entry is always written."""
    exec_cmd = resolve_exec()
    written = [write_xdg_autostart(home, exec_cmd)]
    if mode == StartupMode.XDG_AND_SYSTEMD:
        written.append(write_systemd_user_service(home, exec_cmd))
    return written
