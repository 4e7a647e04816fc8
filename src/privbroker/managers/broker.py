"""Privileged execution broker.

Runs one command per call through the configured elevation facility, with
the locale's askpass helper as password source, and classifies the outcome.
The broker never sees the password: sudo reads it straight from the helper.
"""
import errno
import logging
import os
import shlex
import subprocess
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path

from ..config import BrokerConfig, load_broker_config
from ..facilities.base import BaseFacility
from ..models import (
    Cancelled,
    ErrorKind,
    ExecutionError,
    InvocationResult,
    InvocationState,
    Succeeded,
)
from ..utils.privilege import export_statements, quote_command, render_command
from .classifier import classify, marker_prefix
from .facility_registry import FacilityRegistry, get_default_registry

logger = logging.getLogger(__name__)

# Shared by every Broker in the process; only used when config.serialize is set
_PROMPT_LOCK = threading.Lock()


def build_fragment(command: str | Sequence[str], marker: str,
                   environment: Mapping[str, str] | None = None) -> str:
    """Return ``printf '%s\\n' <marker> && [exports &&] <command>``.

    The marker is always the first thing the shell prints, and nothing of the
    caller's runs before it. ``printf '%s'`` prints it verbatim; some shells'
    ``echo`` expands backslash escapes.
    """
    marker_prefix(marker)
    parts = [f"printf '%s\\n' {shlex.quote(marker)}"]
    parts.extend(export_statements(environment))
    parts.append(quote_command(command))
    return ' && '.join(parts)


class Broker:
    """Runs commands with elevated privileges.

    Holds no state between calls; every ``run`` goes through a fresh prompt.
    """

    def __init__(
        self,
        config: BrokerConfig | None = None,
        registry: FacilityRegistry | None = None,
        base_env: Mapping[str, str] | None = None,
    ):
        self.config = config or load_broker_config()
        self.registry = registry or get_default_registry()
        self.base_env = base_env

    def get_facility(self) -> BaseFacility:
        facility = self.registry.get_facility(self.config.facility)
        if facility is None:
            raise ValueError(f"Unknown elevation facility: {self.config.facility}")
        return facility

    def _transition(self, state: InvocationState) -> None:
        logger.debug(f"elevation state -> {state.value}")

    def _check_askpass(self, facility: BaseFacility) -> ExecutionError | None:
        if not facility.needs_askpass():
            return None
        path = self.config.askpass_path
        if path is None:
            return ExecutionError(
                kind=ErrorKind.SPAWN_FAILURE,
                detail=f"no askpass helper found for locale {self.config.locale}",
                errno='ENOENT',
            )
        path = Path(path)
        if not path.is_file():
            return ExecutionError(kind=ErrorKind.SPAWN_FAILURE, detail=str(path), errno='ENOENT')
        if not os.access(path, os.X_OK):
            return ExecutionError(kind=ErrorKind.SPAWN_FAILURE, detail=str(path), errno='EACCES')
        return None

    def run(self, command: str | Sequence[str],
            environment: Mapping[str, str] | None = None) -> InvocationResult:
        """Run ``command`` with elevated rights and classify the outcome.

        ``environment`` is exported inside the elevated shell, after the
        marker. Blocks until the elevation process exits, which includes the
        time the user spends at the password prompt.
        """
        if self.config.serialize:
            with _PROMPT_LOCK:
                return self._run(command, environment)
        return self._run(command, environment)

    def _run(self, command, environment) -> InvocationResult:
        self._transition(InvocationState.IDLE)
        # a marker that can never match must fail before anything is spawned
        marker_prefix(self.config.marker)
        facility = self.get_facility()
        fragment = build_fragment(command, self.config.marker, environment)

        failure = self._check_askpass(facility)
        if failure is not None:
            logger.error(f"Cannot start askpass helper: {failure.detail}")
            self._transition(InvocationState.ERRORED)
            return failure

        argv = facility.build_argv(fragment)
        env = facility.build_env(
            self.config.askpass_path,
            os.environ if self.base_env is None else self.base_env,
            self.config.extra_env_keys,
        )
        logger.debug(f"Elevating via {facility.get_name()}: {render_command(argv)}")

        self._transition(InvocationState.PROMPTING)
        try:
            proc = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                check=False,
            )
        except OSError as e:
            logger.error(f"Failed to spawn {facility.get_executable()}: {e}")
            self._transition(InvocationState.ERRORED)
            return ExecutionError(
                kind=ErrorKind.SPAWN_FAILURE,
                detail=facility.get_executable(),
                errno=_errno_name(e),
            )

        result = classify(
            proc.returncode,
            proc.stdout,
            proc.stderr,
            facility=facility,
            marker=self.config.marker,
        )
        if isinstance(result, Succeeded):
            self._transition(InvocationState.AUTHENTICATED)
            self._transition(InvocationState.EXECUTING)
            logger.info(f"Elevated command finished with exit code {result.exit_code}")
        elif isinstance(result, Cancelled):
            logger.info(f"Authentication not completed ({result.reason.value})")
        else:
            logger.info(f"Elevation failed: {result.kind.value}")
        self._transition(result.state)
        return result


def _errno_name(e: OSError) -> str | None:
    if e.errno is None:
        return None
    return errno.errorcode.get(e.errno)


def run_privileged(command: str | Sequence[str], config: BrokerConfig | None = None,
                   environment: Mapping[str, str] | None = None) -> InvocationResult:
    """Convenience wrapper: ``Broker(config).run(command)``."""
    return Broker(config=config).run(command, environment=environment)
