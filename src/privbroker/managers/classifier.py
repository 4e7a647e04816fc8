"""Classification of a captured elevation run.

The wrapped command is ``printf '%s\n' <marker> && <command>``, so the marker
line can only appear once the facility has authenticated the user and before
the command prints anything. ``classify`` is a pure function of what was
captured; it never spawns anything and gives the same answer for the same
input every time.
"""
from __future__ import annotations

import logging

from ..facilities.base import BaseFacility
from ..models import (
    Cancelled,
    ErrorKind,
    ExecutionError,
    InvocationResult,
    Succeeded,
)

logger = logging.getLogger(__name__)

SUCCESS_MARKER = 'AUTHENTICATION SUCCEEDED'


def marker_prefix(marker: str = SUCCESS_MARKER) -> bytes:
    """Return the exact byte sequence that proves authentication succeeded."""
    if not marker or '\n' in marker or not marker.isascii() or marker.startswith('-'):
        raise ValueError('Success marker must be a single line of ASCII text not starting with "-"')
    return marker.encode('ascii') + b'\n'


def decode_output(data: bytes | None, errors: str = 'surrogateescape') -> str:
    """Decode captured output.

    The default ``surrogateescape`` keeps undecodable bytes, so
    ``text.encode('utf-8', 'surrogateescape')`` gives back the exact bytes.
    """
    if not data:
        return ''
    return data.decode('utf-8', errors=errors)


def strip_marker(stdout: bytes, marker: str = SUCCESS_MARKER) -> bytes | None:
    """Remove the marker line from ``stdout``.

    Returns None unless ``stdout`` starts with exactly the marker followed by
    a single newline.
    """
    prefix = marker_prefix(marker)
    if stdout.startswith(prefix):
        return stdout[len(prefix):]
    return None


def classify(
    returncode: int,
    stdout: bytes,
    stderr: bytes,
    *,
    facility: BaseFacility,
    marker: str = SUCCESS_MARKER,
) -> InvocationResult:
    """Turn a captured (status, stdout, stderr) triple into a result.

    Order matters:

    1. exact marker prefix -> Succeeded, whatever the status;
    2. an auth-not-completed status with nothing on stdout -> Cancelled
       (or NOT_PERMITTED / PROMPT_UNAVAILABLE when the facility can tell
       that no user decision was involved);
    3. everything else -> ExecutionError.

    Succeeded output round-trips to the captured bytes (surrogateescape);
    diagnostics in the other results are decoded with replacement.
    """
    stdout = stdout or b''

    remainder = strip_marker(stdout, marker)
    if remainder is not None:
        return Succeeded(stdout=decode_output(remainder), stderr=decode_output(stderr), exit_code=returncode)

    err_text = decode_output(stderr, errors='replace')
    if returncode in facility.auth_failure_statuses and not stdout:
        if facility.is_prompt_unavailable(returncode, err_text):
            return ExecutionError(
                kind=ErrorKind.PROMPT_UNAVAILABLE,
                returncode=returncode,
                stderr=err_text,
                detail='the password dialog could not be shown',
            )
        if facility.is_not_permitted(returncode, err_text):
            return ExecutionError(
                kind=ErrorKind.NOT_PERMITTED,
                returncode=returncode,
                stderr=err_text,
                detail=f"{facility.get_name()} refused to elevate this user",
            )
        return Cancelled(reason=facility.cancel_reason(returncode, err_text))

    if stdout:
        # something printed before (or instead of) the marker; never trust it
        logger.warning(f"{facility.get_name()} output did not start with the authentication marker")
        return ExecutionError(
            kind=ErrorKind.MALFORMED_OUTPUT,
            returncode=returncode,
            stderr=err_text,
            detail='output did not start with the authentication marker',
        )

    return ExecutionError(
        kind=ErrorKind.ELEVATION_FAILED,
        returncode=returncode,
        stderr=err_text,
        detail=f"{facility.get_name()} exited with status {returncode}",
    )
