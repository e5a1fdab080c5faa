"""Session authentication for the broker API.

The main entry points are:

- :class:`Credential` -- immutable cookie set with its computed expiry.
- :class:`LoginDriver` / :class:`LoginAttempt` -- the interactive login
  boundary, with :class:`PlaywrightLoginDriver` as the browser-backed
  implementation.
- :class:`PromptCodeProvider` / :class:`TotpCodeProvider` -- sources of the
  two-factor code.
- :class:`Authenticator` -- the login state machine that decorates
  outgoing requests with the credential.

Typical usage::

    from schwabli.auth import Authenticator, PlaywrightLoginDriver

    auth = Authenticator(settings, PlaywrightLoginDriver(settings))
    request = await auth.authenticate()
    # request.headers["Cookie"] carries the session cookies.
"""

from schwabli.auth.authenticator import Authenticator, AuthState
from schwabli.auth.codes import CodeProvider, PromptCodeProvider, TotpCodeProvider
from schwabli.auth.credential import Credential
from schwabli.auth.driver import (
    ChallengeIssued,
    LoginAttempt,
    LoginDriver,
    PrimarySuccess,
    TwoFactorFailure,
    TwoFactorSuccess,
)
from schwabli.auth.playwright_driver import PlaywrightLoginDriver

__all__ = [
    "Authenticator",
    "AuthState",
    "ChallengeIssued",
    "CodeProvider",
    "Credential",
    "LoginAttempt",
    "LoginDriver",
    "PlaywrightLoginDriver",
    "PrimarySuccess",
    "PromptCodeProvider",
    "TotpCodeProvider",
    "TwoFactorFailure",
    "TwoFactorSuccess",
]
