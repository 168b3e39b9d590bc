from __future__ import annotations

"""
Immutable app → signing-secret registry.

Built once at startup from the `UPLOAD_SECRETS` JSON object and injected into
the dispatcher. Values are kept as-is (even malformed ones) so the verifier
can tell "unknown app" apart from "app configured with a bad secret".
"""

import json
import logging
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional

from cdn_gateway.core.exceptions import ConfigError

logger = logging.getLogger("cdn_gateway.secrets")

_MISSING = object()


class SecretRegistry:
    """Read-only mapping of `appName` → secret. Safe to share across requests."""

    __slots__ = ("_secrets",)

    def __init__(self, secrets: Optional[Mapping[str, Any]] = None) -> None:
        object.__setattr__(self, "_secrets", MappingProxyType(dict(secrets or {})))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("SecretRegistry is immutable")

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "SecretRegistry":
        """
        Parse a JSON object into a registry.

        Raises:
            ConfigError: when the JSON is invalid or not an object.
        """
        if raw is None or not raw.strip():
            return cls()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError("UPLOAD_SECRETS is not valid JSON") from e
        if not isinstance(data, dict):
            raise ConfigError("UPLOAD_SECRETS must be a JSON object")
        registry = cls(data)
        logger.info("Loaded upload secrets for %d app(s)", len(registry))
        return registry

    def lookup(self, app_name: str) -> Any:
        """Return the configured value for `app_name`, or `_MISSING`."""
        return self._secrets.get(app_name, _MISSING)

    def __contains__(self, app_name: object) -> bool:
        return app_name in self._secrets

    def __len__(self) -> int:
        return len(self._secrets)

    def __iter__(self) -> Iterator[str]:
        return iter(self._secrets)

    def __repr__(self) -> str:
        # never print secrets
        return f"SecretRegistry(apps={sorted(self._secrets)})"


MISSING = _MISSING

__all__ = ["MISSING", "SecretRegistry"]
