"""Privilege helper utilities.

Small, side-effect free helpers shared by the broker and the elevation
facilities: detecting whether we already run as root, and turning commands
and environment mappings into shell text that is safe to hand to ``sh -c``.
"""
from __future__ import annotations

import os
import re
import shlex
from collections.abc import Mapping, Sequence

UNIX_SUPERUSER_USER_ID = 0

_ENV_NAME_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def is_elevated() -> bool:
    """Return True if the current process already has root privileges."""
    geteuid = getattr(os, 'geteuid', None)
    if geteuid is None:
        return False
    return geteuid() == UNIX_SUPERUSER_USER_ID


def quote_command(command: str | Sequence[str]) -> str:
    """Return a shell fragment for ``command``.

    Strings are passed through untouched (the caller wrote a shell fragment);
    argument vectors are quoted element by element.
    """
    if isinstance(command, str):
        if not command.strip():
            raise ValueError('Command must not be empty')
        return command
    parts = [str(p) for p in command]
    if not parts:
        raise ValueError('Command must not be empty')
    return shlex.join(parts)


def export_statements(environment: Mapping[str, str] | None) -> list[str]:
    """Render ``export NAME='value'`` statements for a shell fragment."""
    if not environment:
        return []
    out = []
    for name, value in environment.items():
        if not _ENV_NAME_RE.match(name):
            raise ValueError(f"Invalid environment variable name: {name!r}")
        out.append(f"export {name}={shlex.quote(str(value))}")
    return out


def render_command(cmd: Sequence[str]) -> str:
    """Return a shell-safe string representation of the command for logging or dry-run."""
    return ' '.join(shlex.quote(str(p)) for p in cmd)
