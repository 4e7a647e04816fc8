"""Locale variants of the password prompt.

Every variant shows the same dialog with different strings; the askpass
contract (stdout on confirm, exit 255 on cancel) is identical for all of
them. The host locale is resolved once and the matching variant executable
(``privbroker-askpass-<code>``) is handed to the elevation facility.
"""
from __future__ import annotations

import logging
import os
import shutil
import sys
import sysconfig
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = 'en'
ASKPASS_COMMAND_PREFIX = 'privbroker-askpass'


@dataclass(frozen=True)
class LocaleVariant:
    code: str
    title: str
    message: str
    ok_label: str
    cancel_label: str

    @property
    def default_button(self) -> str:
        return self.ok_label


_VARIANTS = {
    'en': LocaleVariant(
        code='en',
        title='Authentication Required',
        message='An application needs privileged access to continue.\n\nType your password to allow this.',
        ok_label='Ok',
        cancel_label='Cancel',
    ),
    'de': LocaleVariant(
        code='de',
        title='Authentifizierung erforderlich',
        message='Eine Anwendung benötigt privilegierten Zugriff, um fortzufahren.\n\nGeben Sie Ihr Passwort ein, um dies zu erlauben.',
        ok_label='OK',
        cancel_label='Abbrechen',
    ),
    'es': LocaleVariant(
        code='es',
        title='Autenticación requerida',
        message='Una aplicación necesita acceso privilegiado para continuar.\n\nEscriba su contraseña para permitirlo.',
        ok_label='Aceptar',
        cancel_label='Cancelar',
    ),
    'fr': LocaleVariant(
        code='fr',
        title='Authentification requise',
        message="Une application a besoin d'un accès privilégié pour continuer.\n\nSaisissez votre mot de passe pour l'autoriser.",
        ok_label='OK',
        cancel_label='Annuler',
    ),
    'it': LocaleVariant(
        code='it',
        title='Autenticazione richiesta',
        message="Un'applicazione ha bisogno di accesso privilegiato per continuare.\n\nInserisci la tua password per consentirlo.",
        ok_label='OK',
        cancel_label='Annulla',
    ),
    'pt-BR': LocaleVariant(
        code='pt-BR',
        title='Autenticação necessária',
        message='Um aplicativo precisa de acesso privilegiado para continuar.\n\nDigite sua senha para permitir.',
        ok_label='OK',
        cancel_label='Cancelar',
    ),
    'sv': LocaleVariant(
        code='sv',
        title='Autentisering krävs',
        message='Ett program behöver privilegierad åtkomst för att fortsätta.\n\nAnge ditt lösenord för att tillåta detta.',
        ok_label='OK',
        cancel_label='Avbryt',
    ),
    'zh-CN': LocaleVariant(
        code='zh-CN',
        title='需要身份验证',
        message='应用程序需要特权访问才能继续。\n\n请输入您的密码以允许此操作。',
        ok_label='好',
        cancel_label='取消',
    ),
    'zh-TW': LocaleVariant(
        code='zh-TW',
        title='需要身分驗證',
        message='應用程式需要特權存取才能繼續。\n\n請輸入您的密碼以允許此操作。',
        ok_label='好',
        cancel_label='取消',
    ),
    'ko': LocaleVariant(
        code='ko',
        title='인증 필요',
        message='응용 프로그램을 계속하려면 권한 있는 액세스가 필요합니다.\n\n허용하려면 암호를 입력하십시오.',
        ok_label='확인',
        cancel_label='취소',
    ),
}

VARIANTS: Mapping[str, LocaleVariant] = MappingProxyType(_VARIANTS)

# Two-letter language -> variant for languages that only ship a regional one
_LANGUAGE_DEFAULTS = {
    'pt': 'pt-BR',
    'zh': 'zh-CN',
}

_ENV_KEYS = ('LC_ALL', 'LC_MESSAGES', 'LANG', 'LANGUAGE')


def supported_locales() -> list[str]:
    return list(VARIANTS.keys())


def normalize_locale(value: str | None) -> str | None:
    """Map a POSIX or BCP-47 locale string to a supported variant code.

    Returns None when nothing matches.
    """
    if not value:
        return None
    # LANGUAGE may be a colon separated priority list
    value = value.split(':', 1)[0]
    value = value.split('.', 1)[0].split('@', 1)[0].strip()
    if not value or value in ('C', 'POSIX'):
        return None

    parts = value.replace('_', '-').split('-')
    lang = parts[0].lower()
    if len(parts) > 1:
        full = f"{lang}-{parts[1].upper()}"
        if full in VARIANTS:
            return full
    if lang in VARIANTS:
        return lang
    return _LANGUAGE_DEFAULTS.get(lang)


def detect_locale(environ: Mapping[str, str] | None = None) -> str:
    """Pick the prompt locale from the process environment.

    The first locale variable that is set wins, as with gettext; an unsupported
    value falls back to English rather than trying the next variable.
    """
    env = os.environ if environ is None else environ
    for key in _ENV_KEYS:
        raw = env.get(key)
        if raw:
            code = normalize_locale(raw)
            if code is None:
                logger.debug(f"Locale {raw!r} from {key} not supported; using {DEFAULT_LOCALE}")
                return DEFAULT_LOCALE
            return code
    return DEFAULT_LOCALE


def get_variant(locale: str) -> LocaleVariant:
    """Return the variant for ``locale``; raises ValueError if unsupported."""
    code = normalize_locale(locale)
    if code is None:
        raise ValueError(f"Unsupported locale: {locale!r}")
    return VARIANTS[code]


def askpass_command_name(locale: str) -> str:
    return f"{ASKPASS_COMMAND_PREFIX}-{get_variant(locale).code}"


def resolve_askpass_path(locale: str) -> Path | None:
    """Locate the askpass variant executable for ``locale``.

    Looks on PATH first, then next to the running interpreter (virtualenvs
    that are not activated).
    """
    name = askpass_command_name(locale)
    found = shutil.which(name)
    if found:
        return Path(found)
    candidates = [Path(sys.executable).parent, Path(sysconfig.get_path('scripts'))]
    for directory in candidates:
        p = directory / name
        if p.is_file() and os.access(p, os.X_OK):
            return p
    logger.debug(f"askpass helper {name} not found")
    return None
