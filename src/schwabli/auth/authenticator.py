"""Authenticator -- the session's login state machine and request decorator.

The :class:`Authenticator` decides when the costly interactive login must
run, drives it through the primary and two-factor steps, holds the
resulting :class:`~schwabli.auth.credential.Credential`, and decorates
outgoing :class:`~schwabli.models.RequestDescriptor` objects with it.

State machine::

    NO_CREDENTIAL ──authenticate──▶ LOGIN_IN_PROGRESS ──PrimarySuccess──▶ CREDENTIAL_VALID
          ▲                               │                                  │
          │                        ChallengeIssued                     clock passes
          │                               ▼                             expires_at
          └──failure / timeout──── AWAITING_TWO_FACTOR                       ▼
                                          │                          CREDENTIAL_EXPIRED
                                   TwoFactorSuccess ──▶ CREDENTIAL_VALID

At most one login runs per authenticator.  The first caller that needs a
login starts it as an :class:`asyncio.Task`; every concurrent caller that
also needs one awaits that same task and observes the same outcome.  The
task is shielded, so cancelling one waiter does not abort the login for
the others.

See Also:
    :class:`~schwabli.auth.driver.LoginDriver` for the interactive boundary.
    :class:`~schwabli.client.SessionClient` for the HTTP helpers built on
    :meth:`Authenticator.authenticate`.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import json
import time
from dataclasses import replace
from typing import Callable, Optional

from schwabli.auth.codes import CodeProvider, PromptCodeProvider, TotpCodeProvider
from schwabli.auth.credential import Credential
from schwabli.auth.driver import LoginAttempt, LoginDriver, PrimarySuccess, TwoFactorSuccess
from schwabli.exceptions import (
    AuthenticationFailed,
    ChallengeTimeout,
    ConfigurationError,
    NotAuthenticated,
    SchwabliError,
    SessionExpired,
)
from schwabli.models import (
    AuthenticationOptions,
    CustomDecoration,
    LoginSettings,
    RequestDescriptor,
)
from schwabli.output import OutputManager, format_message, get_output

CODE_PROMPT = "SMS Code: "


class AuthState(str, enum.Enum):
    """Observable state of an :class:`Authenticator`."""

    NO_CREDENTIAL = "no_credential"
    CREDENTIAL_VALID = "credential_valid"
    CREDENTIAL_EXPIRED = "credential_expired"
    LOGIN_IN_PROGRESS = "login_in_progress"
    AWAITING_TWO_FACTOR = "awaiting_two_factor"


def validate_settings(settings: Optional[LoginSettings]) -> list[str]:
    """Return human-readable problems with *settings*; empty when usable."""
    if settings is None:
        return ["login settings are required"]
    errors: list[str] = []
    if not settings.username:
        errors.append("a username is required (config 'session.username' or SCHWABLI_USERNAME)")
    if not settings.password:
        errors.append("a password is required (config 'session.password_source' or SCHWABLI_PASSWORD)")
    return errors


class Authenticator:
    """Login state machine and request decorator for one broker session.

    Args:
        settings: Resolved login settings; immutable for the session.
        driver: Opens the interactive login attempts.
        code_provider: Supplies the two-factor code.  Defaults to a
            :class:`~schwabli.auth.codes.TotpCodeProvider` when the
            settings carry a TOTP secret, otherwise to a
            :class:`~schwabli.auth.codes.PromptCodeProvider`.
        output: Diagnostics sink; defaults to the process-wide manager.
        clock: Returns the current epoch time in seconds.

    Raises:
        ConfigurationError: If required settings are missing.

    Example::

        auth = Authenticator(settings, PlaywrightLoginDriver(settings))
        request = await auth.authenticate()
        request.headers["Cookie"]  # "a=1; b=2;"
    """

    def __init__(
        self,
        settings: LoginSettings,
        driver: LoginDriver,
        code_provider: Optional[CodeProvider] = None,
        output: Optional[OutputManager] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        errors = validate_settings(settings)
        if errors:
            raise ConfigurationError("; ".join(errors))

        self._settings = settings
        self._driver = driver
        if code_provider is None:
            if settings.totp_secret:
                code_provider = TotpCodeProvider(settings.totp_secret)
            else:
                code_provider = PromptCodeProvider()
        self._code_provider = code_provider
        self._output = output or get_output()
        self._clock = clock

        self._credential: Optional[Credential] = None
        self._login_task: Optional[asyncio.Future[Credential]] = None
        self._phase: Optional[AuthState] = None

    @property
    def settings(self) -> LoginSettings:
        return self._settings

    @property
    def credential(self) -> Optional[Credential]:
        """The held credential, or ``None`` before the first login."""
        return self._credential

    @property
    def state(self) -> AuthState:
        if self._phase is not None:
            return self._phase
        if self._credential is None:
            return AuthState.NO_CREDENTIAL
        if self._credential.is_expired(self._clock()):
            return AuthState.CREDENTIAL_EXPIRED
        return AuthState.CREDENTIAL_VALID

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def authenticate(
        self, options: Optional[AuthenticationOptions] = None
    ) -> RequestDescriptor:
        """Return *options.request* decorated with the session credential.

        Runs (or joins) the interactive login first when no valid credential
        is held and ``options.login_if_required`` is set.

        Args:
            options: Per-call options; defaults decorate a bare GET and log
                in when required.

        Returns:
            The decorated request.  The caller's request is never mutated
            by the default decoration.

        Raises:
            AuthenticationFailed: If the login or two-factor step fails.
            ChallengeTimeout: If the two-factor confirmation times out.
            NotAuthenticated: If no credential is held after the login step.
            SessionExpired: If the held credential is expired after the
                login step.
        """
        if options is None:
            options = AuthenticationOptions()

        self._output.debug(
            f"authenticating request with options: {json.dumps(options.to_log_dict())}"
        )

        if options.login_if_required and self._login_required():
            await self._join_login(options.remember_device)

        credential = self._credential
        now = self._clock()
        if credential is None:
            message = "not logged in: you must log in before authenticating a request"
            self._output.error(message)
            raise NotAuthenticated(message)
        if credential.is_expired(now):
            message = (
                f"session expired at {credential.expires_at:.0f}, "
                f"current time: {now:.0f}: please log in again"
            )
            self._output.error(message)
            raise SessionExpired(message)

        request = options.request if options.request is not None else RequestDescriptor()
        if isinstance(options.decoration, CustomDecoration):
            decorated = options.decoration.apply(request)
            if inspect.isawaitable(decorated):
                decorated = await decorated
            return decorated
        return _inject_cookie(request, credential)

    async def login(self, remember_device: bool = True) -> Credential:
        """Run a login now, or join the one already in flight.

        Returns:
            The credential produced by the login.
        """
        return await self._join_login(remember_device)

    def invalidate(self) -> None:
        """Drop the held credential so the next call logs in again."""
        if self._credential is not None:
            self._output.debug("discarding session credential")
        self._credential = None

    # ------------------------------------------------------------------ #
    # Login orchestration
    # ------------------------------------------------------------------ #

    def _login_required(self) -> bool:
        credential = self._credential
        if credential is None:
            return True
        now = self._clock()
        if credential.is_expired(now):
            self._output.warning(
                f"current session expired at {credential.expires_at:.0f}, "
                f"current time: {now:.0f}, attempting re-authentication"
            )
            return True
        return False

    async def _join_login(self, remember_device: bool) -> Credential:
        task = self._login_task
        if task is None or task.done():
            self._output.info("login required, attempting login")
            task = asyncio.ensure_future(self._run_login(remember_device))
            task.add_done_callback(self._login_finished)
            self._login_task = task
        else:
            self._output.debug("login already in progress, joining it")
        return await asyncio.shield(task)

    def _login_finished(self, task: asyncio.Future[Credential]) -> None:
        if self._login_task is task:
            self._login_task = None
        # Mark the outcome retrieved even when every waiter was cancelled.
        if not task.cancelled():
            task.exception()

    async def _run_login(self, remember_device: bool) -> Credential:
        self._credential = None
        self._phase = AuthState.LOGIN_IN_PROGRESS
        try:
            async with self._driver.open_attempt() as attempt:
                result = await attempt.begin_primary_login(
                    self._settings.username, self._settings.password
                )
                if isinstance(result, PrimarySuccess):
                    credential = result.credential
                else:
                    self._phase = AuthState.AWAITING_TWO_FACTOR
                    self._output.info(
                        "authentication state is not available, attempting two-factor authentication"
                    )
                    credential = await self._complete_two_factor(attempt, remember_device)
        except SchwabliError as exc:
            self._output.error(f"login failed: {exc}")
            raise
        except Exception as exc:
            self._output.error(f"login failed: {exc}")
            raise AuthenticationFailed(f"login failed: {exc}") from exc
        finally:
            self._phase = None

        self._credential = credential
        expiry = f"{credential.expires_at:.0f}" if credential.expires_at is not None else "never"
        self._output.success(f"login successful, expires at {expiry}")
        return credential

    async def _complete_two_factor(
        self, attempt: LoginAttempt, remember_device: bool
    ) -> Credential:
        self._output.debug("waiting for two-factor code")
        code = await self._code_provider(format_message("info", CODE_PROMPT))
        self._output.info("submitting two-factor code")

        result = await attempt.complete_two_factor(code, remember_device)
        if isinstance(result, TwoFactorSuccess):
            self._output.info("two-factor code accepted, preparing session")
            return result.credential
        if result.timed_out:
            raise ChallengeTimeout(result.reason)
        raise AuthenticationFailed(result.reason)


def _inject_cookie(request: RequestDescriptor, credential: Credential) -> RequestDescriptor:
    """Return a copy of *request* with the credential in its ``Cookie`` header."""
    headers = dict(request.headers)
    value = credential.header_value()
    key = next((name for name in headers if name.lower() == "cookie"), "Cookie")
    existing = headers.get(key)
    headers[key] = f"{existing};{value}" if existing else value
    return replace(request, headers=headers)
