"""Response envelope: the record stored behind every cache key.

Storage adapters only understand bytes, so an envelope travels through them
in a small, versioned JSON document::

    {
      "format": "cachelayer.envelope",
      "version": 1,
      "value": "<base64 body>",
      "header": {"content-type": ["application/json"]},
      "expiration": 1767225600000000,
      "last_access": 1767225540000000,
      "frequency": 1
    }

Timestamps are integer microseconds since the Unix epoch (UTC), which is
exactly the precision of :class:`datetime.datetime`, so every field
round-trips losslessly. Header names are stored lower-cased; multi-valued
headers keep their value order.

:func:`decode` never returns a partially filled envelope: anything that is
not a complete, well-typed document of the supported version raises
:class:`~cachelayer.exceptions.DecodeError`.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Union

from cachelayer.exceptions import DecodeError

FORMAT_NAME = "cachelayer.envelope"
FORMAT_VERSION = 1

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)

HeaderPairs = Iterable[tuple[Union[str, bytes], Union[str, bytes]]]


@dataclass
class ResponseEnvelope:
    """A cached response.

    Attributes:
        value: Raw response body.
        header: Header name (lower-case) to ordered list of values.
        expiration: Absolute, timezone-aware time after which the entry is stale.
        last_access: Timezone-aware time of the most recent serve from cache.
        frequency: Number of times the entry was stored or served; starts at 1.
    """

    value: bytes
    header: dict[str, list[str]]
    expiration: datetime
    last_access: datetime
    frequency: int = 1

    def __post_init__(self) -> None:
        if self.expiration.tzinfo is None or self.last_access.tzinfo is None:
            raise ValueError("envelope expiration and last_access must be timezone-aware")

    @classmethod
    def fresh(
        cls,
        value: bytes,
        header: dict[str, list[str]],
        ttl: timedelta,
        now: datetime,
    ) -> ResponseEnvelope:
        """Build the envelope for a response just fetched from upstream."""
        return cls(
            value=bytes(value),
            header={name: list(values) for name, values in header.items()},
            expiration=now + ttl,
            last_access=now,
            frequency=1,
        )

    def is_fresh(self, now: datetime) -> bool:
        """Return ``True`` while *now* is strictly before :attr:`expiration`."""
        return self.expiration > now

    def touch(self, now: datetime) -> ResponseEnvelope:
        """Return a copy recording one more hit at *now*."""
        return replace(self, last_access=now, frequency=self.frequency + 1)

    def joined_header(self) -> list[tuple[str, str]]:
        """Return ``(name, value)`` pairs with multi-values joined by ``,``."""
        return [(name, ",".join(values)) for name, values in self.header.items()]


def header_from_pairs(pairs: HeaderPairs) -> dict[str, list[str]]:
    """Collect raw header pairs into a lower-cased multimap.

    Accepts ``str`` pairs (WSGI, httpx) or ``bytes`` pairs (ASGI); bytes are
    decoded as latin-1, the HTTP header charset.
    """
    header: dict[str, list[str]] = {}
    for raw_name, raw_value in pairs:
        name = raw_name.decode("latin-1") if isinstance(raw_name, bytes) else raw_name
        value = raw_value.decode("latin-1") if isinstance(raw_value, bytes) else raw_value
        header.setdefault(name.lower(), []).append(value)
    return header


# --- Encoding ---


def _to_micros(moment: datetime) -> int:
    return (moment - _EPOCH) // _MICROSECOND


def _from_micros(raw: Any) -> datetime:
    if not isinstance(raw, int) or isinstance(raw, bool):
        raise TypeError(f"timestamp must be an integer, got {type(raw).__name__}")
    return _EPOCH + timedelta(microseconds=raw)


def encode(envelope: ResponseEnvelope) -> bytes:
    """Serialise *envelope* to bytes for storage.

    Timestamps are stored as UTC microseconds, so an aware datetime comes back
    as the same instant in UTC.
    """
    document = {
        "format": FORMAT_NAME,
        "version": FORMAT_VERSION,
        "value": base64.b64encode(envelope.value).decode("ascii"),
        "header": {name: list(values) for name, values in envelope.header.items()},
        "expiration": _to_micros(envelope.expiration),
        "last_access": _to_micros(envelope.last_access),
        "frequency": envelope.frequency,
    }
    return json.dumps(document, separators=(",", ":"), ensure_ascii=True).encode("ascii")


# --- Decoding ---


def _decode_header(raw: Any) -> dict[str, list[str]]:
    if not isinstance(raw, dict):
        raise TypeError("header must be an object")
    header: dict[str, list[str]] = {}
    for name, values in raw.items():
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise TypeError(f"header {name!r} must be a list of strings")
        header[name] = list(values)
    return header


def decode(data: bytes) -> ResponseEnvelope:
    """Parse bytes produced by :func:`encode` back into an envelope.

    Args:
        data: The stored bytes.

    Returns:
        The decoded :class:`ResponseEnvelope`.

    Raises:
        DecodeError: If *data* is not valid JSON, is not an envelope
            document, has an unsupported version, or has missing or
            mistyped fields.
    """
    try:
        document = json.loads(data)
    except ValueError as exc:
        raise DecodeError(f"stored response is not a valid envelope: {exc}") from exc

    if not isinstance(document, dict) or document.get("format") != FORMAT_NAME:
        raise DecodeError("stored bytes are not a cachelayer response envelope")
    version = document.get("version")
    if version != FORMAT_VERSION:
        raise DecodeError(f"unsupported envelope version {version!r}")

    try:
        raw_value = document["value"]
        if not isinstance(raw_value, str):
            raise TypeError("value must be a base64 string")
        value = base64.b64decode(raw_value, validate=True)
        header = _decode_header(document["header"])
        expiration = _from_micros(document["expiration"])
        last_access = _from_micros(document["last_access"])
        frequency = document["frequency"]
    except (KeyError, TypeError, ValueError, binascii.Error, OverflowError) as exc:
        raise DecodeError(f"malformed response envelope: {exc}") from exc

    if not isinstance(frequency, int) or isinstance(frequency, bool) or frequency < 1:
        raise DecodeError(f"malformed response envelope: invalid frequency {frequency!r}")

    return ResponseEnvelope(
        value=value,
        header=header,
        expiration=expiration,
        last_access=last_access,
        frequency=frequency,
    )
