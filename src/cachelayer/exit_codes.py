"""Numeric process exit codes for the ``cachelayer`` command line tool.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~cachelayer.exceptions.CacheLayerError` subclass.
Shell scripts that purge or inspect a cache directory can branch on the
exit code without parsing stderr.

Example::

    $ cachelayer inspect "/items?a=1"
    $ echo $?
    4   # EXIT_NOT_FOUND -- nothing is cached under that URL
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_CONFIG_ERROR = 3
"""The cache client could not be configured (missing adapter, bad TTL)."""

EXIT_NOT_FOUND = 4
"""No cached entry exists for the requested URL."""

EXIT_DECODE_ERROR = 8
"""A stored entry exists but could not be decoded."""
