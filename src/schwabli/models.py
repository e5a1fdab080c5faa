"""Canonical data shapes shared across schwabli modules.

The models fall into two groups:

**Configuration models** -- Pydantic v2 models serialised as JSON in the
user's config directory or resolved from it:
    :class:`BrowserEngine`, :class:`SessionConfig`, :class:`RequestConfig`,
    :class:`OutputConfig`, :class:`GlobalConfig`, and the resolved,
    immutable :class:`LoginSettings`.

**Request models** -- plain dataclasses threaded through a single
authenticated call:
    :class:`RequestDescriptor`, the :data:`RequestDecoration` variant
    (:class:`DefaultDecoration` / :class:`CustomDecoration`), and
    :class:`AuthenticationOptions`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_HOME_URL = "https://www.schwab.com/"
DEFAULT_ACCOUNT_SUMMARY_URL = (
    "https://client.schwab.com/clientapps/accounts/summary/"
)


# --- Configuration ---


class BrowserEngine(str, enum.Enum):
    """Playwright browser engine used for the interactive login."""

    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class SessionConfig(BaseModel):
    """Login configuration persisted in the global config file.

    Secrets are never stored directly; ``password_source`` and
    ``totp_secret_source`` are source descriptors resolved at runtime by
    :func:`~schwabli.config.resolve_credential`.

    Example::

        SessionConfig(
            username="jdoe",
            password_source="env:SCHWAB_PASSWORD",
            browser=BrowserEngine.CHROMIUM,
            headless=False,
        )
    """

    username: Optional[str] = Field(default=None, description="Broker login ID")
    password_source: str = Field(
        default="prompt",
        description="Password source: env:VAR, file:/path, prompt",
    )
    totp_secret_source: Optional[str] = Field(
        default=None,
        description="Base32 TOTP secret source; when unset the code is prompted for",
    )
    browser: BrowserEngine = Field(
        default=BrowserEngine.FIREFOX, description="Browser engine for login"
    )
    headless: bool = Field(default=True, description="Run the login browser headless")
    two_factor_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for two-factor confirmation",
    )
    remember_device: bool = Field(
        default=True, description="Ask the broker to remember this device"
    )
    home_url: str = Field(default=DEFAULT_HOME_URL)
    account_summary_url: str = Field(default=DEFAULT_ACCOUNT_SUMMARY_URL)


class RequestConfig(BaseModel):
    """HTTP transport settings for :class:`~schwabli.client.SessionClient`."""

    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OutputConfig(BaseModel):
    """Default output preferences."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """Top-level configuration stored in ``config.json``.

    See Also:
        :func:`~schwabli.config.load_global_config`
    """

    session: SessionConfig = Field(default_factory=SessionConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


class LoginSettings(BaseModel):
    """Resolved, immutable login settings for one authenticator.

    Produced by :func:`~schwabli.config.resolve_login_settings` after every
    credential source has been resolved.  Missing ``username`` or
    ``password`` are reported by the
    :class:`~schwabli.auth.authenticator.Authenticator` as a
    :class:`~schwabli.exceptions.ConfigurationError`.
    """

    model_config = ConfigDict(frozen=True)

    username: str = ""
    password: str = Field(default="", repr=False)
    totp_secret: Optional[str] = Field(default=None, repr=False)
    browser: BrowserEngine = BrowserEngine.FIREFOX
    headless: bool = True
    two_factor_timeout: float = Field(default=10.0, gt=0)
    home_url: str = DEFAULT_HOME_URL
    account_summary_url: str = DEFAULT_ACCOUNT_SUMMARY_URL


# --- Requests ---


@dataclass
class RequestDescriptor:
    """Shape of an outgoing request before and after decoration.

    Attributes:
        method: HTTP method (e.g. ``"GET"``).
        headers: Request headers.
        body: Encoded request body, or ``None``.
    """

    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass(frozen=True)
class DefaultDecoration:
    """Inject the held credential into the request's ``Cookie`` header."""


@dataclass(frozen=True)
class CustomDecoration:
    """Hand the base request to *apply*, which returns the final request.

    *apply* may be a plain function or a coroutine function.
    """

    apply: Callable[
        [RequestDescriptor],
        Union[RequestDescriptor, Awaitable[RequestDescriptor]],
    ]


RequestDecoration = Union[DefaultDecoration, CustomDecoration]

DEFAULT_DECORATION = DefaultDecoration()


@dataclass
class AuthenticationOptions:
    """Per-call options for :meth:`~schwabli.auth.authenticator.Authenticator.authenticate`.

    Attributes:
        login_if_required: Run the interactive login when no valid
            credential is held.  When ``False`` the call fails instead.
        remember_device: Ask the broker to remember this device during the
            two-factor step.
        request: The base request to decorate.  ``None`` means a bare GET.
        decoration: How the request is decorated once a valid credential
            is held.
    """

    login_if_required: bool = True
    remember_device: bool = True
    request: Optional[RequestDescriptor] = None
    decoration: RequestDecoration = DEFAULT_DECORATION

    def to_log_dict(self) -> dict[str, Any]:
        return {
            "login_if_required": self.login_if_required,
            "remember_device": self.remember_device,
        }
