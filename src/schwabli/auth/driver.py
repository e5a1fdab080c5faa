"""Login driver contract and its result types.

A login driver performs the interactive part of authentication.  It never
holds browser state between logins: every login runs inside one
:class:`LoginAttempt`, opened with :meth:`LoginDriver.open_attempt` as an
async context manager, and the attempt's browser resources are released
when the ``async with`` block exits, whatever the outcome.

Results are tagged variants rather than booleans so the authenticator can
branch on exactly what happened:

* primary step -- :class:`PrimarySuccess` or :class:`ChallengeIssued`
* two-factor step -- :class:`TwoFactorSuccess` or :class:`TwoFactorFailure`

See Also:
    :class:`~schwabli.auth.playwright_driver.PlaywrightLoginDriver` for the
    browser-backed implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Union

from schwabli.auth.credential import Credential


@dataclass(frozen=True)
class PrimarySuccess:
    """Username/password login completed without a two-factor challenge."""

    credential: Credential


@dataclass(frozen=True)
class ChallengeIssued:
    """The broker requires a one-time code before the login completes."""

    detail: str = ""


@dataclass(frozen=True)
class TwoFactorSuccess:
    """The one-time code was accepted."""

    credential: Credential


@dataclass(frozen=True)
class TwoFactorFailure:
    """The one-time code was rejected or its confirmation never appeared.

    Attributes:
        reason: Human-readable description.
        timed_out: True when the confirmation signal was not observed
            within the wait bound.
    """

    reason: str
    timed_out: bool = False


PrimaryLoginResult = Union[PrimarySuccess, ChallengeIssued]
TwoFactorResult = Union[TwoFactorSuccess, TwoFactorFailure]


class LoginAttempt(ABC):
    """One interactive login, owning its browser resources for its lifetime.

    Attempts are not reentrant; the authenticator guarantees that at most
    one attempt per session is open at a time.
    """

    @abstractmethod
    async def begin_primary_login(self, username: str, password: str) -> PrimaryLoginResult:
        """Submit username and password.

        Raises:
            AuthenticationFailed: If the login produced neither a session
                nor a two-factor challenge.
        """
        ...

    @abstractmethod
    async def complete_two_factor(self, code: str, remember_device: bool) -> TwoFactorResult:
        """Submit the one-time code after a :class:`ChallengeIssued` result."""
        ...


class LoginDriver(ABC):
    """Factory for scoped :class:`LoginAttempt` instances."""

    @abstractmethod
    def open_attempt(self) -> AbstractAsyncContextManager[LoginAttempt]:
        """Return an async context manager that yields a fresh attempt.

        Leaving the context releases every resource the attempt acquired,
        exactly once, on success, failure, timeout, and cancellation alike.
        """
        ...
