from collections.abc import Mapping
from pathlib import Path

from ..askpass.provider import PROMPT_UNAVAILABLE_TAG
from ..models import CancelReason
from .base import BaseFacility


class SudoFacility(BaseFacility):
    """sudo with a graphical askpass helper (``sudo --askpass``).

    sudo runs the program named by SUDO_ASKPASS and reads the password from
    its stdout, so the secret never passes through this process. When the
    helper exits non-zero sudo gives up with status 1.

    ``--reset-timestamp`` ignores cached credentials, so every run shows the
    dialog even if the user authenticated a moment ago.
    """

    ASKPASS_ENV = 'SUDO_ASKPASS'

    auth_failure_statuses = frozenset({1, 255})

    _REJECTED_MARKERS = ('incorrect password', 'sorry, try again')
    _DECLINED_MARKERS = ('no password was provided', 'a password is required')
    _NOT_PERMITTED_MARKERS = ('is not in the sudoers file', 'is not allowed to execute', 'may not run sudo')

    def __init__(self, executable: str = 'sudo', shell: str = 'sh'):
        self.executable = executable
        self.shell = shell

    def get_name(self) -> str:
        return 'sudo'

    def get_executable(self) -> str:
        return self.executable

    def needs_askpass(self) -> bool:
        return True

    def build_argv(self, fragment: str) -> list[str]:
        return [self.executable, '--reset-timestamp', '--askpass', self.shell, '-c', fragment]

    def build_env(self, askpass_path: Path | None, base_env: Mapping[str, str],
                  extra_keys: tuple[str, ...] = ()) -> dict[str, str]:
        env = super().build_env(askpass_path, base_env, extra_keys)
        if askpass_path is not None:
            env[self.ASKPASS_ENV] = str(askpass_path)
        return env

    def cancel_reason(self, returncode: int, stderr: str) -> CancelReason:
        text = stderr.lower()
        # a wrong password followed by a cancelled retry is still a rejection
        if any(m in text for m in self._REJECTED_MARKERS):
            return CancelReason.REJECTED
        if any(m in text for m in self._DECLINED_MARKERS):
            return CancelReason.DECLINED
        return CancelReason.UNKNOWN

    def is_not_permitted(self, returncode: int, stderr: str) -> bool:
        text = stderr.lower()
        return any(m in text for m in self._NOT_PERMITTED_MARKERS)

    def is_prompt_unavailable(self, returncode: int, stderr: str) -> bool:
        return PROMPT_UNAVAILABLE_TAG in stderr


FACILITY_INFO = {
    'name': 'sudo',
    'description': 'sudo with the privbroker askpass dialog as password source',
    'class': 'SudoFacility',
}
