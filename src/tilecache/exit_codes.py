"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~tilecache.exceptions.TileCacheError` subclass.
Shell wrappers around the ``tilecache`` command can inspect the exit code
to tell a dead origin from a broken cache directory without parsing stderr.

Example::

    $ tilecache activate
    $ echo $?
    9   # EXIT_PRECACHE_FAILURE -- strict precache aborted activation
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_NETWORK_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_STORE_ERROR = 8
"""The persistent cache store could not be read or written."""

EXIT_PRECACHE_FAILURE = 9
"""A precache URL could not be fetched while strict precaching was enabled."""
