"""Exception hierarchy for mtgcache.

All exceptions inherit from :class:`MtgcacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`mtgcache.exit_codes`.
The top-level error handler in :func:`mtgcache.app.main` catches
``MtgcacheError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Failing to read the local cache file is deliberately *not* an exception:
the fetcher treats it as a cache miss and downloads the file again.

Subclass hierarchy::

    MtgcacheError (exit 1)
    +-- InvalidUsageError            (exit 2)
    +-- RemoteStatusError            (exit 4)
    +-- TransportError               (exit 6)
    +-- DecompressionOrWriteError    (exit 7)
    |   +-- DecompressionError
    |   +-- CacheWriteError
    +-- ParseError                   (exit 8)
    +-- ConfigError                  (exit 1)
"""

from mtgcache.exit_codes import (
    EXIT_DECOMPRESS_WRITE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PARSE_ERROR,
    EXIT_REMOTE_STATUS,
    EXIT_TRANSPORT_ERROR,
)


class MtgcacheError(Exception):
    """Base exception for all mtgcache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(MtgcacheError):
    """Raised for invalid CLI arguments or request values."""

    exit_code = EXIT_INVALID_USAGE


class RemoteStatusError(MtgcacheError):
    """Raised when the download endpoint answers with anything but HTTP 200.

    The numeric status code is the only detail and is available as
    :attr:`status_code`.
    """

    exit_code = EXIT_REMOTE_STATUS

    def __init__(self, status_code: int, url: str | None = None):
        message = f"HTTP {status_code}"
        if url:
            message = f"{message} from {url}"
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class TransportError(MtgcacheError):
    """Raised on network-level failures (DNS resolution, connection reset, timeout)."""

    exit_code = EXIT_TRANSPORT_ERROR


class DecompressionOrWriteError(MtgcacheError):
    """Raised when a downloaded body cannot be stored in the cache."""

    exit_code = EXIT_DECOMPRESS_WRITE_ERROR


class DecompressionError(DecompressionOrWriteError):
    """Raised when the response body is not a complete, valid gzip stream."""


class CacheWriteError(DecompressionOrWriteError):
    """Raised when the decompressed document cannot be written to disk."""


class ParseError(MtgcacheError):
    """Raised when the cached document is not valid UTF-8 JSON."""

    exit_code = EXIT_PARSE_ERROR


class ConfigError(MtgcacheError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
