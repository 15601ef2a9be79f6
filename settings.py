"""Service configuration loaded from ``config.json`` and the environment."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).parent
CONFIG_PATH = APP_ROOT / "config.json"
ENV_PREFIX = "PRAYER_SERVICE_"

# The service targets a single region; successful lookups report this country.
HOME_COUNTRY_CODE = "id"


@dataclass(frozen=True)
class ServiceConfig:
    home_country_code: str = HOME_COUNTRY_CODE
    coordinate_convention: str = "mwl"
    location_convention: str = "kemenag"
    aladhan_base_url: str = "https://api.aladhan.com"
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = "muslimboard-api/1.0"
    request_timeout: float = 10.0
    request_deadline: float = 30.0
    image_allowed_hosts: Tuple[str, ...] = field(
        default_factory=lambda: ("images.unsplash.com", "plus.unsplash.com")
    )
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080


_FLOAT_FIELDS = {"request_timeout", "request_deadline"}
_INT_FIELDS = {"port"}


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> ServiceConfig:
    """Build the service configuration.

    Values from the JSON file override the defaults, and ``PRAYER_SERVICE_*``
    environment variables (plus the conventional ``PORT``) override the file.
    """
    path = path or CONFIG_PATH
    environ = os.environ if environ is None else environ

    raw = _load_json(path, default={})
    LOGGER.debug("Loaded config keys: %s", list(raw.keys()))

    for name in ServiceConfig.__dataclass_fields__:
        env_value = environ.get(ENV_PREFIX + name.upper())
        if env_value is not None:
            raw[name] = env_value
    if environ.get("PORT"):
        raw["port"] = environ["PORT"]

    return build_config(raw)


def build_config(raw: Mapping[str, Any]) -> ServiceConfig:
    config = ServiceConfig()
    updates: Dict[str, Any] = {}
    for name, value in raw.items():
        if name not in ServiceConfig.__dataclass_fields__:
            LOGGER.warning("Ignoring unknown config key '%s'", name)
            continue
        try:
            updates[name] = _coerce(name, value)
        except (TypeError, ValueError):
            LOGGER.warning("Invalid value %r for config key '%s'; using default", value, name)
    return replace(config, **updates)


def _coerce(name: str, value: Any) -> Any:
    if name in _FLOAT_FIELDS:
        number = float(value)
        if number <= 0:
            raise ValueError(name)
        return number
    if name in _INT_FIELDS:
        return int(value)
    if name == "image_allowed_hosts":
        if isinstance(value, str):
            value = value.split(",")
        return tuple(str(host).strip().lower() for host in value if str(host).strip())
    if name == "home_country_code":
        return str(value).strip().lower()
    if name in ("aladhan_base_url", "nominatim_base_url"):
        return str(value).rstrip("/")
    return str(value)


def _load_json(path: Path, default: Dict[str, Any]) -> Dict[str, Any]:
    if not path.exists():
        return default
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        LOGGER.warning("Config file %s is not a JSON object; ignoring it", path)
        return default
    return payload
