"""
Launch-at-login registration.

Each platform registers the daemon with its own service manager:
- macOS: a launchd user agent
- Linux: a systemd user service
- Windows: a Task Scheduler logon task

Failures raise RegistrationError and leave the previous registration as it
was.
"""

import enum
import getpass
import logging
import subprocess
import sys
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import RegistrationError

logger = logging.getLogger(__name__)

LAUNCHD_LABEL = "com.fullfocus.agent"
SYSTEMD_UNIT = "fullfocus.service"
WINDOWS_TASK = "FullFocus"


class LoginItemStatus(str, enum.Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"


def daemon_command() -> list[str]:
    """Command line that starts the daemon in the foreground."""
    return [sys.executable, "-m", "fullfocus", "daemon", "start", "-f"]


def _run(args: list[str]) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(args, check=True, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise RegistrationError(f"{args[0]} is not available") from e
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or e.stdout or "").strip()
        raise RegistrationError(f"{' '.join(args)} failed: {detail}") from e


class LoginItem(ABC):
    """Registers the daemon to start when the user logs in."""

    @abstractmethod
    def register(self):
        """Start the daemon at login."""

    @abstractmethod
    def unregister(self):
        """Stop starting the daemon at login."""

    @abstractmethod
    def status(self) -> LoginItemStatus:
        """Whether the daemon is registered."""

    def set_enabled(self, enabled: bool) -> LoginItemStatus:
        """Register or unregister only when the current state differs."""
        current = self.status()
        if enabled and current != LoginItemStatus.ENABLED:
            self.register()
        elif not enabled and current == LoginItemStatus.ENABLED:
            self.unregister()
        return self.status()


class LaunchdLoginItem(LoginItem):
    """macOS launchd user agent."""

    def __init__(self, home: Path | None = None):
        self.home = home or Path.home()
        self.plist_path = self.home / "Library" / "LaunchAgents" / f"{LAUNCHD_LABEL}.plist"

    def render_plist(self) -> str:
        arguments = "\n".join(
            f"        <string>{arg}</string>" for arg in daemon_command()
        )
        log_dir = self.home / ".fullfocus"
        return f'''<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>Label</key>
    <string>{LAUNCHD_LABEL}</string>
    <key>ProgramArguments</key>
    <array>
{arguments}
    </array>
    <key>RunAtLoad</key>
    <true/>
    <key>KeepAlive</key>
    <true/>
    <key>StandardOutPath</key>
    <string>{log_dir}/daemon.out.log</string>
    <key>StandardErrorPath</key>
    <string>{log_dir}/daemon.err.log</string>
</dict>
</plist>'''

    def register(self):
        self.plist_path.parent.mkdir(parents=True, exist_ok=True)
        self.plist_path.write_text(self.render_plist())
        try:
            _run(["launchctl", "load", "-w", str(self.plist_path)])
        except RegistrationError:
            self.plist_path.unlink(missing_ok=True)
            raise
        logger.info(f"Registered launchd agent {self.plist_path}")

    def unregister(self):
        if not self.plist_path.exists():
            return
        _run(["launchctl", "unload", "-w", str(self.plist_path)])
        self.plist_path.unlink(missing_ok=True)
        logger.info("Removed launchd agent")

    def status(self) -> LoginItemStatus:
        if self.plist_path.exists():
            return LoginItemStatus.ENABLED
        return LoginItemStatus.DISABLED


class SystemdLoginItem(LoginItem):
    """Linux systemd user service."""

    def __init__(self, home: Path | None = None):
        self.home = home or Path.home()
        self.unit_path = self.home / ".config" / "systemd" / "user" / SYSTEMD_UNIT

    def render_unit(self) -> str:
        return f'''[Unit]
Description=FullFocus - calendar meeting alerts

[Service]
Type=simple
ExecStart={" ".join(daemon_command())}
Restart=on-failure
RestartSec=10

[Install]
WantedBy=default.target
'''

    def register(self):
        existed = self.unit_path.exists()
        self.unit_path.parent.mkdir(parents=True, exist_ok=True)
        self.unit_path.write_text(self.render_unit())
        try:
            _run(["systemctl", "--user", "daemon-reload"])
            _run(["systemctl", "--user", "enable", SYSTEMD_UNIT])
        except RegistrationError:
            if not existed:
                self.unit_path.unlink(missing_ok=True)
            raise
        logger.info(f"Enabled systemd user service {SYSTEMD_UNIT}")

    def unregister(self):
        _run(["systemctl", "--user", "disable", SYSTEMD_UNIT])
        logger.info(f"Disabled systemd user service {SYSTEMD_UNIT}")

    def status(self) -> LoginItemStatus:
        if not self.unit_path.exists():
            return LoginItemStatus.DISABLED
        try:
            result = subprocess.run(
                ["systemctl", "--user", "is-enabled", SYSTEMD_UNIT],
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            return LoginItemStatus.DISABLED
        if result.returncode == 0 and result.stdout.strip() == "enabled":
            return LoginItemStatus.ENABLED
        return LoginItemStatus.DISABLED


class WindowsLoginItem(LoginItem):
    """Windows Task Scheduler logon task."""

    def __init__(self, home: Path | None = None):
        self.home = home or Path.home()
        self.task_file = self.home / ".fullfocus" / "fullfocus-task.xml"

    def render_task(self) -> str:
        username = getpass.getuser()
        python_path = sys.executable.replace("python.exe", "pythonw.exe")
        arguments = " ".join(daemon_command()[1:])
        return f'''<?xml version="1.0" encoding="UTF-16"?>
<Task version="1.2" xmlns="http://schemas.microsoft.com/windows/2004/02/mit/task">
  <RegistrationInfo>
    <Description>FullFocus - calendar meeting alerts</Description>
  </RegistrationInfo>
  <Triggers>
    <LogonTrigger>
      <Enabled>true</Enabled>
      <UserId>{username}</UserId>
    </LogonTrigger>
  </Triggers>
  <Principals>
    <Principal id="Author">
      <UserId>{username}</UserId>
      <LogonType>InteractiveToken</LogonType>
      <RunLevel>LeastPrivilege</RunLevel>
    </Principal>
  </Principals>
  <Settings>
    <MultipleInstancesPolicy>IgnoreNew</MultipleInstancesPolicy>
    <DisallowStartIfOnBatteries>false</DisallowStartIfOnBatteries>
    <StopIfGoingOnBatteries>false</StopIfGoingOnBatteries>
    <ExecutionTimeLimit>PT0S</ExecutionTimeLimit>
  </Settings>
  <Actions>
    <Exec>
      <Command>{python_path}</Command>
      <Arguments>{arguments}</Arguments>
    </Exec>
  </Actions>
</Task>'''

    def register(self):
        self.task_file.parent.mkdir(parents=True, exist_ok=True)
        self.task_file.write_text(self.render_task(), encoding="utf-16")
        _run(["schtasks", "/create", "/tn", WINDOWS_TASK, "/xml", str(self.task_file), "/f"])
        logger.info(f"Registered scheduled task {WINDOWS_TASK}")

    def unregister(self):
        _run(["schtasks", "/delete", "/tn", WINDOWS_TASK, "/f"])
        logger.info(f"Removed scheduled task {WINDOWS_TASK}")

    def status(self) -> LoginItemStatus:
        try:
            result = subprocess.run(
                ["schtasks", "/query", "/tn", WINDOWS_TASK],
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            return LoginItemStatus.DISABLED
        if result.returncode == 0:
            return LoginItemStatus.ENABLED
        return LoginItemStatus.DISABLED


def get_login_item(platform: str | None = None) -> LoginItem:
    """Login item implementation for the current platform."""
    platform = platform or sys.platform
    if platform == "darwin":
        return LaunchdLoginItem()
    if platform == "win32":
        return WindowsLoginItem()
    return SystemdLoginItem()
