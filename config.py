"""Runtime configuration resolved from explicit options over the environment.

Every field follows the same order: an explicit option wins, then the ``DD_``
prefixed environment variable, then the field default. Resolution never raises:
invalid values are logged and replaced by their defaults.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SITE = "datadoghq.com"

# Variables that can change the outcome of resolve_config(); part of the cache key.
_ENV_VARS = (
    "DD_API_KEY",
    "DD_SITE",
    "DD_AUTO_PATCH_HTTP",
    "DD_APM_FLUSH_DEADLINE_MILLISECONDS",
)

# Option names used by the JavaScript wrapper, accepted for ports of existing code.
_OPTION_ALIASES = {
    "apiKey": "api_key",
    "autoPatchHTTP": "auto_patch_http",
    "apmFlushDeadlineMilliseconds": "apm_flush_deadline_milliseconds",
}


class Config(BaseSettings):
    """Configuration for one wrapped handler. Immutable once resolved."""

    model_config = SettingsConfigDict(
        env_prefix="DD_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    api_key: Optional[str] = None
    site: Optional[str] = None
    auto_patch_http: bool = True
    apm_flush_deadline_milliseconds: Optional[int] = None

    @field_validator("api_key", "site", mode="before")
    @classmethod
    def blank_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def resolved_site(self) -> str:
        return self.site or DEFAULT_SITE


def resolve_config(options: Optional[Mapping[str, Any]] = None) -> Config:
    """
    Resolve configuration for an invocation.

    Args:
        options: Explicit options keyed by field name. ``None`` values count as unset.

    Returns:
        A frozen Config
    """
    explicit = _explicit_options(options)
    env_snapshot = tuple(os.environ.get(name) for name in _ENV_VARS)
    try:
        key = tuple(sorted(explicit.items()))
        hash(key)
    except TypeError:
        return _build(explicit)
    return _resolve_cached(key, env_snapshot)


def clear_config_cache() -> None:
    _resolve_cached.cache_clear()


@lru_cache(maxsize=32)
def _resolve_cached(key: Tuple[Tuple[str, Any], ...], env_snapshot: Tuple[Optional[str], ...]) -> Config:
    # env_snapshot only participates in the cache key; Config reads os.environ itself.
    return _build(dict(key))


def _explicit_options(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if not options:
        return {}
    explicit = {}
    for name, value in options.items():
        name = _OPTION_ALIASES.get(name, name)
        if name not in Config.model_fields:
            logger.warning("Ignoring unknown option %r", name)
            continue
        if value is None:
            continue
        explicit[name] = value
    return explicit


def _build(explicit: Dict[str, Any]) -> Config:
    try:
        config = Config(**explicit)
    except ValidationError as exc:
        invalid = {err["loc"][0] for err in exc.errors() if err.get("loc")}
        for name in sorted(invalid):
            logger.warning("Invalid value for %s, falling back to its default", name)
        fallback = {k: v for k, v in explicit.items() if k not in invalid}
        for name in invalid:
            if name in Config.model_fields:
                fallback[name] = Config.model_fields[name].default
        config = Config(**fallback)

    if not config.api_key:
        logger.warning("No Datadog API key configured (set DD_API_KEY); distribution metrics will not be delivered")
    return config
