"""Human-friendly titles and descriptions for broker failures.

The CLI (or any front end) uses these to show an ``ExecutionError`` without
exposing raw diagnostics first.
"""
from typing import Callable

from .models import ErrorKind, ExecutionError

HUMAN_FRIENDLY: dict[str, dict[str, Callable[[ExecutionError], str]]] = {
    'ENOENT': {
        'title': lambda e: f"No such file or directory: {e.detail}",
        'description': lambda e: "The program you're trying to run doesn't exist",
    },
    'EPERM': {
        'title': lambda e: "You're not authorized to perform this operation",
        'description': lambda e: 'Please ensure you have necessary permissions for this task',
    },
    'EACCES': {
        'title': lambda e: "You don't have access to this resource",
        'description': lambda e: 'Please ensure you have necessary permissions to access this resource',
    },
    'ENOMEM': {
        'title': lambda e: 'Your system ran out of memory',
        'description': lambda e: 'Please make sure your system has enough available memory for this task',
    },
}

KIND_TITLES = {
    ErrorKind.SPAWN_FAILURE: 'The elevation helper could not be started',
    ErrorKind.NOT_PERMITTED: "Your user doesn't have enough privileges to proceed",
    ErrorKind.MALFORMED_OUTPUT: 'Could not confirm that authentication succeeded',
    ErrorKind.ELEVATION_FAILED: 'The elevated process died unexpectedly',
    ErrorKind.PROMPT_UNAVAILABLE: 'The password prompt could not be shown',
}

KIND_DESCRIPTIONS = {
    ErrorKind.SPAWN_FAILURE: 'Make sure sudo (or pkexec) and the password prompt helper are installed',
    ErrorKind.NOT_PERMITTED: 'This operation requires sudo privileges for your user',
    ErrorKind.MALFORMED_OUTPUT: 'The elevation facility produced unexpected output; the command result was discarded',
    ErrorKind.ELEVATION_FAILED: 'The elevation facility exited abnormally',
    ErrorKind.PROMPT_UNAVAILABLE: 'No graphical session or dialog toolkit is available; run from a desktop session or install PyQt6',
}


def _is_blank(s) -> bool:
    if s is None:
        return True
    return str(s).strip() == ''


def _friendly(error: ExecutionError, prop: str) -> str | None:
    if not error.errno:
        return None
    entry = HUMAN_FRIENDLY.get(error.errno)
    if entry is None:
        return None
    return entry[prop](error)


def get_title(error: ExecutionError) -> str:
    """Return the most specific title available for ``error``."""
    title = _friendly(error, 'title')
    if title is not None:
        return title
    return KIND_TITLES.get(error.kind, 'An error occurred')


def get_description(error: ExecutionError) -> str:
    """Return a description, falling back to raw diagnostics."""
    desc = _friendly(error, 'description')
    if desc is not None:
        return desc
    if error.kind is ErrorKind.ELEVATION_FAILED and error.returncode is not None:
        base = f"The process error code was {error.returncode}"
    else:
        base = KIND_DESCRIPTIONS.get(error.kind, '')
    if not _is_blank(error.stderr):
        return f"{base}\n{error.stderr.strip()}" if base else error.stderr.strip()
    if _is_blank(base) and not _is_blank(error.detail):
        return error.detail
    return base
