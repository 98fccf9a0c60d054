"""
Configuration lookup for the marketplace services.

Keys use the colon-separated form ``Section:Name`` (e.g. ``JWT:Secret``) and
resolve to environment variables by upper-casing and replacing ``:`` with
``_`` (``JWT:Secret`` -> ``JWT_SECRET``). A ``.env`` file is loaded at import.
"""
import os
from typing import Any, Dict, Mapping, Optional
from dotenv import load_dotenv

from marketplace.identity.errors import ConfigurationError

JWT_SECRET = "JWT:Secret"
JWT_VALID_ISSUER = "JWT:ValidIssuer"
JWT_VALID_AUDIENCE = "JWT:ValidAudience"

load_dotenv()


def env_name(key: str) -> str:
    """Environment variable name for a configuration key."""
    return key.replace(":", "_").upper()


class Configuration:
    """
    Read-only key lookup over explicit overrides and the environment.
    """
    def __init__(self, values: Optional[Mapping[str, Any]] = None, use_environment: bool = True):
        self._values: Dict[str, Any] = dict(values or {})
        self._use_environment = use_environment

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._values:
            return self._values[key]
        if self._use_environment:
            return os.getenv(env_name(key), default)
        return default

    def __getitem__(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise ConfigurationError(key)
        return value

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


def get_configuration() -> Configuration:
    """Dependency returning configuration backed by the environment."""
    return Configuration()
