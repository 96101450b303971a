"""Exception hierarchy for cachelayer.

All exceptions inherit from :class:`CacheLayerError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`cachelayer.exit_codes`.
The library raises :class:`ConfigurationError` at construction time and
:class:`DecodeError` from :func:`cachelayer.envelope.decode`; the request
path never lets either reach an HTTP caller.

Subclass hierarchy::

    CacheLayerError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ConfigurationError  (exit 3)
    +-- EntryNotFoundError  (exit 4)
    +-- DecodeError         (exit 8)
"""

from cachelayer.exit_codes import (
    EXIT_CONFIG_ERROR,
    EXIT_DECODE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
)


class CacheLayerError(Exception):
    """Base exception for all cachelayer errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`cachelayer.exit_codes`. The CLI entry point
    catches this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CacheLayerError):
    """Raised for invalid CLI arguments (e.g. a URL without a path)."""

    exit_code = EXIT_INVALID_USAGE


class ConfigurationError(CacheLayerError):
    """Raised when a cache client is built without an adapter or with a non-positive TTL.

    Fatal to construction: the caller must fix the settings and build a new
    client.
    """

    exit_code = EXIT_CONFIG_ERROR


class EntryNotFoundError(CacheLayerError):
    """Raised by the CLI when no entry is stored under the requested key."""

    exit_code = EXIT_NOT_FOUND


class DecodeError(CacheLayerError):
    """Raised when stored bytes cannot be parsed back into a response envelope.

    The cache client treats this exactly like a cache miss.
    """

    exit_code = EXIT_DECODE_ERROR
