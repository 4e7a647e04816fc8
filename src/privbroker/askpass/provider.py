"""Password prompt provider.

``PromptProvider.prompt(locale)`` shows the locale's dialog and returns a
``Credential`` or raises. The askpass executable in ``entry.py`` turns those
outcomes into the stdout/exit-status contract sudo expects.
"""
from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable, Mapping

from ..locales import LocaleVariant, get_variant

logger = logging.getLogger(__name__)


class PromptCancelled(Exception):
    """The user dismissed the dialog or pressed cancel."""


class DialogUnavailable(Exception):
    """No modal dialog can be shown on this host (headless, no toolkit)."""


# First words of the stderr line the askpass helper writes when it cannot
# show a dialog; sudo passes the helper's stderr through unchanged.
PROMPT_UNAVAILABLE_TAG = 'privbroker-askpass: prompt unavailable'


class Credential:
    """A secret typed by the user.

    The value is only reachable through ``reveal()``; printing, logging or
    formatting the object never shows it.
    """

    __slots__ = ('_value',)

    def __init__(self, value: str):
        self._value = value

    def reveal(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return 'Credential(<redacted>)'

    __str__ = __repr__

    def __format__(self, spec: str) -> str:
        return repr(self)

    def __eq__(self, other) -> bool:
        return isinstance(other, Credential) and other._value == self._value

    def __hash__(self) -> int:
        return hash((Credential, self._value))

    def __reduce__(self):
        raise TypeError('Credential cannot be pickled')


# A backend shows the dialog and returns the typed text, or None on cancel
DialogBackend = Callable[[LocaleVariant], 'str | None']


def has_display(environ: Mapping[str, str] | None = None, platform: str | None = None) -> bool:
    env = os.environ if environ is None else environ
    plat = sys.platform if platform is None else platform
    if plat == 'darwin':
        return True
    return bool(env.get('DISPLAY') or env.get('WAYLAND_DISPLAY'))


def default_backend_name(environ: Mapping[str, str] | None = None, platform: str | None = None) -> str:
    env = os.environ if environ is None else environ
    explicit = env.get('PRIVBROKER_ASKPASS_BACKEND')
    if explicit:
        return explicit
    plat = sys.platform if platform is None else platform
    return 'osascript' if plat == 'darwin' else 'qt'


def get_backend(name: str) -> DialogBackend:
    from . import dialog

    backends = {
        'qt': dialog.qt_prompt,
        'osascript': dialog.osascript_prompt,
    }
    try:
        return backends[name]
    except KeyError:
        raise DialogUnavailable(f"Unknown dialog backend: {name}") from None


class PromptProvider:
    """Ask the user for their password with a native modal dialog."""

    def __init__(self, backend: DialogBackend | None = None,
                 environ: Mapping[str, str] | None = None,
                 platform: str | None = None):
        self.environ = os.environ if environ is None else environ
        self.platform = sys.platform if platform is None else platform
        self._backend = backend

    @property
    def backend(self) -> DialogBackend:
        if self._backend is None:
            self._backend = get_backend(default_backend_name(self.environ, self.platform))
        return self._backend

    def prompt(self, locale: str) -> Credential:
        """Show the dialog for ``locale``.

        Raises:
            PromptCancelled: the dialog was dismissed.
            DialogUnavailable: there is no display to show it on.
        """
        variant = get_variant(locale)
        if not has_display(self.environ, self.platform):
            raise DialogUnavailable('No display available for the password dialog')

        logger.debug(f"Showing password dialog ({variant.code})")
        value = self.backend(variant)
        if value is None:
            raise PromptCancelled()
        return Credential(value)
