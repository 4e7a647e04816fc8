from ..models import CancelReason
from .base import BaseFacility

# pkexec(1): 126 when the authorization dialog was dismissed, 127 when the
# user could not be authorized
PKEXEC_DISMISSED = 126
PKEXEC_NOT_AUTHORIZED = 127


class PkexecFacility(BaseFacility):
    """polkit's pkexec, prompting through the desktop's own polkit agent.

    No askpass helper is involved; the dialog belongs to the desktop session.
    The internal text agent is disabled so pkexec never falls back to reading
    a password from a terminal we do not have.
    """

    auth_failure_statuses = frozenset({PKEXEC_DISMISSED, PKEXEC_NOT_AUTHORIZED})

    def __init__(self, executable: str = 'pkexec', shell: str = '/bin/sh'):
        self.executable = executable
        self.shell = shell

    def get_name(self) -> str:
        return 'pkexec'

    def get_executable(self) -> str:
        return self.executable

    def build_argv(self, fragment: str) -> list[str]:
        return [self.executable, '--disable-internal-agent', self.shell, '-c', fragment]

    def cancel_reason(self, returncode: int, stderr: str) -> CancelReason:
        if returncode == PKEXEC_DISMISSED:
            return CancelReason.DECLINED
        if returncode == PKEXEC_NOT_AUTHORIZED:
            return CancelReason.REJECTED
        return CancelReason.UNKNOWN

    def is_prompt_unavailable(self, returncode: int, stderr: str) -> bool:
        return 'no authentication agent found' in stderr.lower()


FACILITY_INFO = {
    'name': 'pkexec',
    'description': 'polkit pkexec using the desktop authentication agent',
    'class': 'PkexecFacility',
}
