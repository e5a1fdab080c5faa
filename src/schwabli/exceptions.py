"""Exception hierarchy for schwabli.

All exceptions inherit from :class:`SchwabliError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`schwabli.exit_codes`.
The top-level error handler in :func:`schwabli.app.main` catches
``SchwabliError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    SchwabliError (exit 1)
    +-- ConfigurationError          (exit 1)
    +-- AuthError                   (exit 3)
    |   +-- AuthenticationFailed
    |   |   +-- ChallengeTimeout
    |   +-- NotAuthenticated
    |   +-- SessionExpired
    +-- APIError                    (exit 5)
    +-- TransportError              (exit 6)
    +-- MalformedResponse           (exit 7)
"""

from __future__ import annotations

from typing import Any

from schwabli.exit_codes import (
    EXIT_API_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_MALFORMED_RESPONSE,
)


class SchwabliError(Exception):
    """Base exception for all schwabli errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`schwabli.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(SchwabliError):
    """Raised for missing required settings, invalid config files, or bad credential sources."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthError(SchwabliError):
    """Base class for every failure to produce an authenticated request."""

    exit_code = EXIT_AUTH_FAILURE


class AuthenticationFailed(AuthError):
    """Raised when the primary login or the two-factor exchange fails."""


class ChallengeTimeout(AuthenticationFailed):
    """Raised when the two-factor confirmation is not observed within the wait bound."""


class NotAuthenticated(AuthError):
    """Raised when no credential is held and login is disabled for the call."""


class SessionExpired(AuthError):
    """Raised when the held credential has expired and login is disabled, or the server answers 401."""


class APIError(SchwabliError):
    """Raised when the API answers with an HTTP error status.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status code of the response.
        body: The decoded JSON body, or the raw text when it is not JSON.
    """

    exit_code = EXIT_API_ERROR

    def __init__(self, message: str, status_code: int, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransportError(SchwabliError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class MalformedResponse(SchwabliError):
    """Raised when a response body cannot be decoded as JSON.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status code of the offending response.
    """

    exit_code = EXIT_MALFORMED_RESPONSE

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
