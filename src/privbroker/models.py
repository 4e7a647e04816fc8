"""Result types returned by the privileged execution broker.

Each call to ``Broker.run`` produces exactly one of these. They are frozen
so a classified result cannot be altered after the fact.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class CancelReason(Enum):
    DECLINED = 'declined'
    REJECTED = 'rejected'
    UNKNOWN = 'unknown'


class ErrorKind(Enum):
    SPAWN_FAILURE = 'spawn_failure'
    NOT_PERMITTED = 'not_permitted'
    MALFORMED_OUTPUT = 'malformed_output'
    ELEVATION_FAILED = 'elevation_failed'
    PROMPT_UNAVAILABLE = 'prompt_unavailable'


class InvocationState(Enum):
    """Lifecycle of a single broker invocation."""

    IDLE = 'idle'
    PROMPTING = 'prompting'
    AUTHENTICATED = 'authenticated'
    EXECUTING = 'executing'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    ERRORED = 'errored'


@dataclass(frozen=True)
class Succeeded:
    """Authentication succeeded and the command ran.

    A non-zero ``exit_code`` is still a successful broker outcome: the
    command itself failed, not the elevation.

    Text is decoded as UTF-8 with ``surrogateescape``; the byte properties
    give back exactly what the command wrote.
    """

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def stdout_bytes(self) -> bytes:
        return self.stdout.encode('utf-8', 'surrogateescape')

    @property
    def stderr_bytes(self) -> bytes:
        return self.stderr.encode('utf-8', 'surrogateescape')

    @property
    def state(self) -> InvocationState:
        return InvocationState.COMPLETED


@dataclass(frozen=True)
class Cancelled:
    """Authentication was not completed, so the command never ran."""

    reason: CancelReason = CancelReason.UNKNOWN

    @property
    def state(self) -> InvocationState:
        return InvocationState.CANCELLED


@dataclass(frozen=True)
class ExecutionError:
    """The elevation could not be carried out or its output was not trusted."""

    kind: ErrorKind
    returncode: int | None = None
    stderr: str = ''
    detail: str = ''
    errno: str | None = None

    @property
    def state(self) -> InvocationState:
        return InvocationState.ERRORED


InvocationResult = Union[Succeeded, Cancelled, ExecutionError]
