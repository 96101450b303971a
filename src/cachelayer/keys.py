"""Deterministic cache key derivation.

A request URL maps to a :class:`~cachelayer.models.CacheKey`:

1. Parse the query string into ``name -> [values]`` (blank values kept).
2. Sort the values of each parameter independently.
3. Re-encode the query; names come out in sorted order, so parameter order
   in the original URL never matters.
4. Canonical URL = ``path + "?" + query`` (or ``path`` alone when the query
   is empty).
5. Hash the canonical URL with 64-bit FNV-1a and render it in decimal.

The prefix is the path, unmodified. Everything here is a pure function of
the URL: no storage or network access.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlencode, urlsplit

from cachelayer.models import CacheKey

FNV64_OFFSET_BASIS = 0xCBF29CE484222325
FNV64_PRIME = 0x100000001B3
_UINT64_MASK = 0xFFFFFFFFFFFFFFFF

QUERY_ENCODING = "latin-1"
"""Byte-transparent charset used to unquote and re-quote query strings."""


def fnv1a_64(data: bytes) -> int:
    """Return the 64-bit FNV-1a hash of *data* as an unsigned integer."""
    value = FNV64_OFFSET_BASIS
    for byte in data:
        value ^= byte
        value = (value * FNV64_PRIME) & _UINT64_MASK
    return value


def _query_text(query: str) -> str:
    # Wire queries arrive latin-1 decoded, one character per byte. Characters
    # above U+00FF can only be text, so they stand for their UTF-8 bytes.
    try:
        query.encode(QUERY_ENCODING)
    except UnicodeEncodeError:
        return query.encode("utf-8").decode(QUERY_ENCODING)
    return query


def parse_query(query: str) -> dict[str, list[str]]:
    """Parse a raw query string into ``name -> [values]``.

    Parameters without ``=`` (``?refresh``) are kept with an empty value.
    Percent-escapes are unquoted byte for byte (latin-1), so ``%ff`` and
    ``%fe`` stay distinct even though neither is valid UTF-8.
    """
    return parse_qs(
        _query_text(query), keep_blank_values=True, encoding=QUERY_ENCODING
    )


def encode_query(params: dict[str, list[str]]) -> str:
    """Encode *params* with names in sorted order and values as given.

    The inverse of :func:`parse_query`: every byte is re-escaped exactly.
    """
    return urlencode(sorted(params.items()), doseq=True, encoding=QUERY_ENCODING)


def canonical_query(query: str) -> str:
    """Return *query* with each parameter's values sorted and names ordered."""
    params = parse_query(query)
    return encode_query({name: sorted(values) for name, values in params.items()})


def canonical_url(path: str, query: str = "") -> str:
    """Join *path* and the canonical form of *query*."""
    normalized = canonical_query(query)
    if normalized:
        return f"{path}?{normalized}"
    return path


def derive_key(path: str, query: str = "") -> CacheKey:
    """Derive the ``(prefix, key)`` pair for a request.

    Args:
        path: The request path, used verbatim as the prefix.
        query: The raw query string, without the leading ``?``.

    Returns:
        The :class:`~cachelayer.models.CacheKey` for the request.
    """
    digest = fnv1a_64(canonical_url(path, query).encode("utf-8"))
    return CacheKey(prefix=path, key=str(digest))


def derive_key_from_uri(uri: str) -> CacheKey:
    """Derive the cache key for a full URI or a ``path?query`` reference.

    Scheme and host are ignored so that ``https://api.example.com/items?a=1``
    and ``/items?a=1`` address the same entry.
    """
    parts = urlsplit(uri)
    return derive_key(parts.path, parts.query)


def has_param(query: str, name: str) -> bool:
    """Return ``True`` if *name* occurs as a parameter in *query*."""
    return name in parse_query(query)


def strip_param(query: str, name: str) -> str:
    """Remove every occurrence of *name* and return the canonical remainder."""
    params = parse_query(query)
    params.pop(name, None)
    return encode_query({key: sorted(values) for key, values in params.items()})
