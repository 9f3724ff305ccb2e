"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~mtgcache.exceptions.MtgcacheError` subclass, so
shell scripts can branch on the failure class without parsing stderr.

Example::

    $ mtgcache fetch NoSuchSet
    $ echo $?
    4   # EXIT_REMOTE_STATUS -- the server did not answer 200
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_REMOTE_STATUS = 4
"""The download endpoint answered with a status other than 200."""

EXIT_TRANSPORT_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection reset)."""

EXIT_DECOMPRESS_WRITE_ERROR = 7
"""The downloaded body could not be gunzipped or written to the cache."""

EXIT_PARSE_ERROR = 8
"""The cached document is not valid JSON."""
