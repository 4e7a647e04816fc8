import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

# tomllib is stdlib in Python 3.11+. Fall back to tomli for older versions.
try:
    import tomllib  # type: ignore
except ImportError:  # pragma: no cover - interpreter dependent
    import tomli as tomllib  # type: ignore

# Optionally use tomlkit for writing richer TOML with comments/order preserved
try:
    import tomlkit  # type: ignore
except ImportError:
    tomlkit = None  # type: ignore

# Prefer tomli_w (tomli-w) for writing when available, else tomlkit
try:
    import tomli_w  # type: ignore
except ImportError:
    tomli_w = None  # type: ignore

from .locales import detect_locale, normalize_locale, resolve_askpass_path
from .managers.classifier import SUCCESS_MARKER, marker_prefix

ENV_PREFIX = 'PRIVBROKER_'


def _config_file_path() -> Path:
    xdg = os.getenv('XDG_CONFIG_HOME')
    if xdg:
        base = Path(xdg)
    else:
        base = Path.home() / '.config'
    return base / 'privbroker' / 'config.toml'


def _parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    s = str(raw).strip().lower()
    if s in ('1', 'true', 'yes', 'on'):
        return True
    if s in ('0', 'false', 'no', 'off', ''):
        return False
    raise ValueError(f"Invalid boolean value: {raw}")


_ALLOWED_KEYS = {
    'facility': str,
    'locale': str,
    'askpass_path': str,
    'marker': str,
    'serialize': bool,
}

_CODE_DEFAULTS: dict[str, Any] = {
    'facility': 'sudo',
    'locale': None,
    'askpass_path': None,
    'marker': SUCCESS_MARKER,
    'serialize': False,
}


def load_config() -> dict[str, Any]:
    """Load TOML configuration from XDG config path. Returns empty dict if absent or unreadable."""
    p = _config_file_path()
    if not p.exists():
        return {}
    try:
        with p.open('rb') as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(cfg: dict[str, Any]) -> bool:
    """Save a flat config dict to the XDG config TOML file.

    Returns True on success, False if no TOML writer is installed or the
    file cannot be written.
    """
    p = _config_file_path()
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        if tomli_w is not None:
            dumped = tomli_w.dumps(cfg)
        elif tomlkit is not None:
            doc = tomlkit.document()
            for k, v in cfg.items():
                doc[k] = v
            dumped = tomlkit.dumps(doc)
        else:
            return False
        with p.open('w', encoding='utf8') as f:
            f.write(dumped)
        return True
    except OSError:
        return False


def _cast(key: str, value: Any) -> Any:
    expected = _ALLOWED_KEYS[key]
    if expected is bool:
        return _parse_bool(value)
    value = str(value)
    if key == 'locale' and normalize_locale(value) is None:
        raise ValueError(f"Unsupported locale: {value}")
    if key == 'marker':
        marker_prefix(value)
    if key == 'facility':
        from .managers.facility_registry import get_default_registry

        if get_default_registry().get_facility(value) is None:
            raise ValueError(f"Unknown facility: {value}")
    return value


def set_config_value(key: str, value: Any) -> bool:
    """Set a single config key (with validation) and persist it.

    Returns True on success, False on validation or IO errors.
    """
    if key not in _ALLOWED_KEYS:
        return False
    try:
        cast_v = _cast(key, value)
    except ValueError:
        return False

    cfg = load_config() or {}
    cfg[key] = cast_v
    return save_config(cfg)


def get_allowed_keys() -> dict:
    return _ALLOWED_KEYS.copy()


def get_effective_value(key: str, code_default: Any = None) -> dict[str, Any] | None:
    """Return a dict with env/config/code default/effective for a key.

    Precedence is env > config > code default. Returns None if key is not allowed.
    """
    if key not in _ALLOWED_KEYS:
        return None

    env = os.getenv(ENV_PREFIX + key.upper())
    cfg = load_config() or {}
    cfg_val = cfg.get(key)
    eff_default = code_default if code_default is not None else _CODE_DEFAULTS.get(key)

    effective: Any
    if env is not None:
        effective = _cast(key, env)
    elif cfg_val is not None:
        effective = _cast(key, cfg_val)
    else:
        effective = eff_default

    return {'env': env, 'config': cfg_val, 'code_default': eff_default, 'effective': effective}


@dataclass(frozen=True)
class BrokerConfig:
    """Everything the broker needs, resolved once and passed in explicitly."""

    facility: str = 'sudo'
    locale: str = 'en'
    askpass_path: Optional[Path] = None
    marker: str = SUCCESS_MARKER
    serialize: bool = False
    extra_env_keys: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # raises ValueError for a marker that could never be matched
        marker_prefix(self.marker)


def load_broker_config(
    facility: Optional[str] = None,
    locale: Optional[str] = None,
    askpass_path: Optional[str] = None,
) -> BrokerConfig:
    """Build a BrokerConfig from arguments, env, the config file and defaults.

    Explicit arguments win over everything else. When no askpass path is
    configured, the variant executable for the chosen locale is looked up.
    Raises ValueError on invalid values.
    """
    def _value(key: str, explicit: Any) -> Any:
        if explicit is not None:
            return _cast(key, explicit)
        info = get_effective_value(key)
        return info['effective'] if info else None

    loc = _value('locale', locale) or detect_locale()
    loc = normalize_locale(loc) or 'en'

    helper = _value('askpass_path', askpass_path)
    helper_path = Path(helper).expanduser() if helper else resolve_askpass_path(loc)

    return BrokerConfig(
        facility=_value('facility', facility),
        locale=loc,
        askpass_path=helper_path,
        marker=_value('marker', None),
        serialize=_value('serialize', None),
    )
