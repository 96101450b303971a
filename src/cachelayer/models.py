"""Canonical data shapes shared across cachelayer modules.

* :class:`CacheKey` -- the ``(prefix, key)`` pair a request maps to.
  ``prefix`` groups every variant of a route for bulk invalidation; ``key``
  identifies one exact URL.
* :class:`CacheSettings` -- the immutable configuration bound to a
  :class:`~cachelayer.client.CacheClient` at construction time.

Settings are validated once. Any problem (no adapter, missing or
non-positive TTL, wrong types) surfaces as a
:class:`~cachelayer.exceptions.ConfigurationError` rather than a raw
Pydantic ``ValidationError`` so that callers have one exception type to
handle.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cachelayer.adapters.base import Adapter
from cachelayer.exceptions import ConfigurationError


class CacheKey(NamedTuple):
    """Storage coordinates derived from a request URL.

    Attributes:
        prefix: The raw request path, e.g. ``"/items"``.
        key: Decimal string of the 64-bit FNV-1a hash of the canonical URL.
    """

    prefix: str
    key: str


class CacheSettings(BaseModel):
    """Immutable cache client configuration.

    Use :meth:`create` rather than the constructor so that missing values
    and validation failures are reported as :class:`ConfigurationError`.

    Example::

        settings = CacheSettings.create(
            adapter=MemoryAdapter(capacity=1000),
            ttl=timedelta(minutes=5),
            refresh_key="refresh",
        )
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    adapter: Adapter = Field(description="Storage collaborator that persists envelopes")
    ttl: timedelta = Field(description="How long a stored response stays fresh")
    refresh_key: Optional[str] = Field(
        default=None,
        description="Query parameter whose presence forces release and recompute",
    )
    debug: bool = Field(default=False, description="Log lifecycle diagnostics")

    @field_validator("ttl")
    @classmethod
    def _ttl_must_be_positive(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError(f"cache client ttl {value} is invalid")
        return value

    @field_validator("refresh_key")
    @classmethod
    def _empty_refresh_key_disables(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @classmethod
    def create(
        cls,
        adapter: Optional[Adapter] = None,
        ttl: Any = None,
        refresh_key: Optional[str] = None,
        debug: bool = False,
    ) -> CacheSettings:
        """Validate and build settings.

        Args:
            adapter: The storage collaborator. Required.
            ttl: A :class:`~datetime.timedelta`, or a number of seconds.
                Required and must be greater than zero.
            refresh_key: Optional refresh-trigger query parameter name.
            debug: Enable lifecycle diagnostics.

        Returns:
            A frozen :class:`CacheSettings`.

        Raises:
            ConfigurationError: If the adapter is unset, the TTL is unset or
                non-positive, or any field fails validation.
        """
        if adapter is None:
            raise ConfigurationError("cache client adapter is not set")
        if ttl is None:
            raise ConfigurationError("cache client ttl is not set")
        if not isinstance(adapter, Adapter):
            raise ConfigurationError(
                f"cache client adapter {type(adapter).__name__} does not implement "
                "get, set, release, release_prefix and release_if_starts_with"
            )
        try:
            return cls(adapter=adapter, ttl=ttl, refresh_key=refresh_key, debug=debug)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise ConfigurationError(f"invalid cache client {field}: {first['msg']}") from exc
