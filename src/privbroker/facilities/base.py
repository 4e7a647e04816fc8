"""Base interface for elevation facilities.

A facility wraps one host privilege-elevation command (sudo, pkexec, ...).
It knows how to build the argv and environment for a wrapped shell fragment
and how to read that command's exit status when authentication did not
complete. The broker does everything else.
"""
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path

from ..models import CancelReason

# Variables the password dialog needs to reach the user's session
DISPLAY_ENV_KEYS = (
    'DISPLAY',
    'WAYLAND_DISPLAY',
    'XAUTHORITY',
    'XDG_RUNTIME_DIR',
    'DBUS_SESSION_BUS_ADDRESS',
    'LANG',
    'LC_ALL',
    'LC_MESSAGES',
    'LANGUAGE',
)


class BaseFacility(ABC):
    """Abstract base class for elevation facilities."""

    #: Exit statuses meaning "authentication was not completed"
    auth_failure_statuses: frozenset = frozenset()

    @abstractmethod
    def get_name(self) -> str:
        """Return the short name used in configuration, e.g. "sudo"."""
        pass

    @abstractmethod
    def get_executable(self) -> str:
        """Return the path or name of the elevation program."""
        pass

    @abstractmethod
    def build_argv(self, fragment: str) -> list[str]:
        """Return the argv that runs ``fragment`` with elevated rights.

        The fragment is a complete shell command line; it must reach ``sh -c``
        as a single argument.
        """
        pass

    def needs_askpass(self) -> bool:
        """Return True if this facility sources its prompt from an askpass helper."""
        return False

    def build_env(self, askpass_path: Path | None, base_env: Mapping[str, str],
                  extra_keys: tuple[str, ...] = ()) -> dict[str, str]:
        """Return the minimal environment for the elevation process."""
        env = {'PATH': base_env.get('PATH', '/usr/bin:/bin:/usr/sbin:/sbin')}
        for key in DISPLAY_ENV_KEYS + tuple(extra_keys):
            value = base_env.get(key)
            if value:
                env[key] = value
        return env

    def is_available(self) -> bool:
        """Return True if the facility's program can be found on this host."""
        import shutil

        return shutil.which(self.get_executable()) is not None

    def cancel_reason(self, returncode: int, stderr: str) -> CancelReason:
        """Tell declined and rejected apart where the facility allows it."""
        return CancelReason.UNKNOWN

    def is_not_permitted(self, returncode: int, stderr: str) -> bool:
        """Return True if the user may not elevate at all."""
        return False

    def is_prompt_unavailable(self, returncode: int, stderr: str) -> bool:
        """Return True if no password dialog could be shown to the user."""
        return False
