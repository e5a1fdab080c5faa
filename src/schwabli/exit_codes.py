"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~schwabli.exceptions.SchwabliError` subclass.
Shell wrappers can inspect the exit code to tell a rejected login from a
network outage without parsing stderr.

Example::

    $ schwabli get https://client.schwab.com/api/positions
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- login or two-factor confirmation failed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (including configuration problems)."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Login, two-factor confirmation, or session validity check failed."""

EXIT_API_ERROR = 5
"""The remote API answered with an HTTP error status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_MALFORMED_RESPONSE = 7
"""The remote API answered with a body that is not valid JSON."""
