"""Exception hierarchy for tilecache.

All exceptions inherit from :class:`TileCacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`tilecache.exit_codes`.
The engine itself never lets these escape a GET request: network failures
degrade to a synthetic error response and store failures are reported and
swallowed on the write path. They surface only from lifecycle calls
(activation) and from the CLI, where :func:`tilecache.app.main` turns them
into exit codes.

Subclass hierarchy::

    TileCacheError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- NetworkError        (exit 6)
    +-- StoreError          (exit 8)
    +-- PrecacheFetchError  (exit 9)
    +-- ActivationError     (exit 1)
    +-- ConfigError         (exit 1)
"""

from tilecache.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NETWORK_ERROR,
    EXIT_PRECACHE_FAILURE,
    EXIT_STORE_ERROR,
)


class TileCacheError(Exception):
    """Base exception for all tilecache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(TileCacheError):
    """Raised for invalid CLI arguments (e.g. an unknown generation name)."""

    exit_code = EXIT_INVALID_USAGE


class NetworkError(TileCacheError):
    """Raised when a fetch to the origin fails (timeout, DNS, connection refused)."""

    exit_code = EXIT_NETWORK_ERROR


class StoreError(TileCacheError):
    """Raised when the persistent store fails, or a destroyed store is written to."""

    exit_code = EXIT_STORE_ERROR


class PrecacheFetchError(TileCacheError):
    """Raised when a single precache URL cannot be fetched during activation.

    Args:
        url: The precache URL that failed.
        reason: Short description of the failure (status or transport error).
    """

    exit_code = EXIT_PRECACHE_FAILURE

    def __init__(self, url: str, reason: str):
        super().__init__(f"Precache of {url} failed: {reason}")
        self.url = url
        self.reason = reason


class ActivationError(TileCacheError):
    """Raised for generation lifecycle misuse (double activation, nothing active)."""

    exit_code = EXIT_GENERIC_FAILURE


class ConfigError(TileCacheError):
    """Raised for configuration problems (invalid JSON, bad environment values)."""

    exit_code = EXIT_GENERIC_FAILURE
