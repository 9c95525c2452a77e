"""
Client Settings
---------------
Build clients from a YAML settings file with environment overrides.

Rules:
- Secrets never in the file: api_key_env names the environment
  variable that holds the key
- APICLIENT_<FIELD> environment variables override file values

Example settings.yaml:
    requests_per_second: 25
    base_url: https://maps.example.com
    api_key_name: key
    api_key_env: MAPS_API_KEY
    timeout_seconds: 10
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
import logging
import os

import httpx
import yaml

from .client import DEFAULT_REQUESTS_PER_SECOND, Client
from .errors import ConstructionError
from .options import (
    ClientOption, with_api_key, with_base_url, with_http_client, with_rate_limit
)

ENV_PREFIX = "APICLIENT_"

_logger = logging.getLogger("apiclient.config")


@dataclass
class ClientSettings:
    """Settings for one embedded client."""
    requests_per_second: int = DEFAULT_REQUESTS_PER_SECOND
    base_url: str = ""
    api_key_name: str = ""
    api_key_env: str = ""  # Environment variable name (NOT the actual key)
    timeout_seconds: float = 30.0

    def api_key(self, env: Mapping[str, str] = os.environ) -> str:
        """Look up the API key value. Empty if not configured."""
        if not self.api_key_env:
            return ""
        value = env.get(self.api_key_env, "")
        if not value:
            _logger.warning(f"API key not found: {self.api_key_env}")
        return value

    def to_options(self, env: Mapping[str, str] = os.environ) -> List[ClientOption]:
        """Translate settings into client options."""
        options = [with_rate_limit(self.requests_per_second)]
        if self.base_url:
            options.append(with_base_url(self.base_url))
        api_key = self.api_key(env)
        if api_key:
            options.append(with_api_key(self.api_key_name, api_key))
        return options


def _coerce(name: str, raw: Any, annotation: Any) -> Any:
    """Convert a file or environment value to the field's type."""
    try:
        if annotation in (int, "int"):
            if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
                raise ValueError("not an integer")
            return int(raw)
        if annotation in (float, "float"):
            return float(raw)
        return str(raw)
    except (TypeError, ValueError) as e:
        raise ConstructionError(f"invalid value for {name}: {raw!r}") from e


def load_settings(
    path: Optional[str] = None,
    env: Mapping[str, str] = os.environ
) -> ClientSettings:
    """
    Load settings from YAML, then apply environment overrides.

    A missing file is not an error; defaults and environment still apply.
    """
    data: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConstructionError(f"settings file must hold a mapping: {config_path}")
            _logger.info(f"Loaded settings from {config_path}")
        else:
            _logger.warning(f"Settings file not found: {config_path}")

    values: Dict[str, Any] = {}
    for field in fields(ClientSettings):
        env_value = env.get(f"{ENV_PREFIX}{field.name.upper()}")
        if env_value is not None:
            values[field.name] = _coerce(field.name, env_value, field.type)
        elif field.name in data:
            values[field.name] = _coerce(field.name, data[field.name], field.type)

    unknown = set(data) - {f.name for f in fields(ClientSettings)}
    if unknown:
        _logger.warning(f"Ignoring unknown settings: {sorted(unknown)}")

    return ClientSettings(**values)


def client_from_settings(
    settings: ClientSettings,
    env: Mapping[str, str] = os.environ
) -> Client:
    """Build a Client that owns an HTTP client with the configured timeout."""
    # Applied last, so a failing option aborts before any HTTP client exists
    def with_owned_http(client: Client) -> None:
        http = httpx.AsyncClient(timeout=settings.timeout_seconds)
        with_http_client(http, owned=True)(client)

    return Client(*settings.to_options(env), with_owned_http)
