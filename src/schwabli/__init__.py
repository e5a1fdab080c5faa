"""schwabli -- Authenticated session client for a browser-login broker API.

The broker's web API only accepts requests carrying the cookies of an
interactive browser session that has passed username/password login and an
SMS or TOTP two-factor challenge.  This package drives that login with
Playwright, caches the resulting cookie credential in memory, and decorates
ordinary JSON requests with it.

Typical usage::

    from schwabli import Authenticator, PlaywrightLoginDriver, SessionClient
    from schwabli.config import resolve_login_settings

    settings = resolve_login_settings()
    auth = Authenticator(settings, PlaywrightLoginDriver(settings))
    async with SessionClient(auth) as client:
        positions = await client.get("https://client.schwab.com/api/positions")

Modules:
    auth: Credential model, login driver contract, code providers, and the
        authenticator state machine.
    client: httpx-backed GET/POST helpers.
    models: Pydantic configuration models and request descriptors.
    config: XDG-aware configuration and credential source resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr diagnostics with Rich support.
"""

__version__ = "0.1.0"

from schwabli.auth import (  # noqa: E402
    Authenticator,
    AuthState,
    Credential,
    PlaywrightLoginDriver,
)
from schwabli.client import SessionClient  # noqa: E402

__all__ = [
    "Authenticator",
    "AuthState",
    "Credential",
    "PlaywrightLoginDriver",
    "SessionClient",
    "__version__",
]
