"""Session commands -- log in and issue authenticated JSON requests.

``schwabli login`` runs the interactive browser login once and reports
the resulting credential.  ``schwabli get`` and ``schwabli post`` log in
when needed and print the decoded JSON response.

Each invocation is a fresh process, so the credential lives only for the
duration of one command.  Login settings are resolved by
:func:`~schwabli.config.resolve_login_settings` from the root callback's
flags, the ``SCHWABLI_*`` environment variables, and the config file.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer

from schwabli.auth import Authenticator, PlaywrightLoginDriver
from schwabli.client import SessionClient
from schwabli.config import load_global_config, resolve_login_settings
from schwabli.exceptions import ConfigurationError, SchwabliError, SessionExpired
from schwabli.exit_codes import EXIT_INVALID_USAGE
from schwabli.models import AuthenticationOptions, GlobalConfig
from schwabli.output import error, format_response, success, suggest


def _fail(exc: SchwabliError) -> NoReturn:
    error(str(exc))
    if isinstance(exc, ConfigurationError):
        suggest("Review the login settings with: schwabli config show")
    elif isinstance(exc, SessionExpired):
        suggest("Run the command again to start a new session.")
    raise typer.Exit(code=exc.exit_code)


def _build_authenticator(ctx: typer.Context) -> tuple[GlobalConfig, Authenticator]:
    """Resolve settings from *ctx* and build a browser-backed authenticator."""
    obj = ctx.obj or {}
    config = load_global_config()
    settings = resolve_login_settings(
        config,
        cli_username=obj.get("username"),
        cli_browser=obj.get("browser"),
        cli_headless=obj.get("headless"),
    )
    return config, Authenticator(settings, PlaywrightLoginDriver(settings))


def _remember(config: GlobalConfig, flag: Optional[bool]) -> bool:
    return config.session.remember_device if flag is None else flag


def _resolve_data(raw: str) -> Any:
    """Parse a ``--data`` value, supporting ``@filename`` file references."""
    if raw.startswith("@"):
        file_path = Path(raw[1:])
        if not file_path.is_file():
            error(f"data file not found: {file_path}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        raw = file_path.read_text(encoding="utf-8")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        error(f"--data is not valid JSON: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None


async def _request(
    auth: Authenticator,
    config: GlobalConfig,
    method: str,
    url: str,
    options: AuthenticationOptions,
    body: Any = None,
) -> Any:
    async with SessionClient(auth, request_config=config.request) as client:
        if method == "POST":
            return await client.post(url, body, options)
        return await client.get(url, options)


_REMEMBER_OPTION = typer.Option(
    None,
    "--remember-device/--no-remember-device",
    help="Ask the broker to trust this device (default from config).",
)


def login_command(
    ctx: typer.Context,
    remember_device: Optional[bool] = _REMEMBER_OPTION,
) -> None:
    """Log in through the browser and report the session expiry.

    Runs the primary login and, when challenged, the two-factor step.
    Prints the captured cookie names and the credential expiry.

    Example::

        schwabli login
        schwabli --headed login --no-remember-device
    """
    try:
        config, auth = _build_authenticator(ctx)
        credential = asyncio.run(auth.login(_remember(config, remember_device)))
    except SchwabliError as exc:
        _fail(exc)

    success("Logged in.")
    format_response(
        {
            "cookies": [name for name, _ in credential.cookies],
            "expires_at": credential.expires_at,
        }
    )


def get_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL to GET."),
    remember_device: Optional[bool] = _REMEMBER_OPTION,
) -> None:
    """Send an authenticated GET and print the JSON response.

    Example::

        schwabli get https://client.schwab.com/api/PositionV2/PositionsDataV2
    """
    try:
        config, auth = _build_authenticator(ctx)
        options = AuthenticationOptions(remember_device=_remember(config, remember_device))
        data = asyncio.run(_request(auth, config, "GET", url, options))
    except SchwabliError as exc:
        _fail(exc)
    format_response(data)


def post_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL to POST to."),
    data: str = typer.Option(
        "{}", "--data", "-d", help="JSON body, or @file to read it from a file."
    ),
    remember_device: Optional[bool] = _REMEMBER_OPTION,
) -> None:
    """Send an authenticated POST with a JSON body and print the JSON response.

    Example::

        schwabli post https://client.schwab.com/api/ts/stamp/verifyOrder -d '{"Symbol": "AAPL"}'
        schwabli post https://client.schwab.com/api/ts/stamp/verifyOrder -d @order.json
    """
    body = _resolve_data(data)
    try:
        config, auth = _build_authenticator(ctx)
        options = AuthenticationOptions(remember_device=_remember(config, remember_device))
        result = asyncio.run(_request(auth, config, "POST", url, options, body))
    except SchwabliError as exc:
        _fail(exc)
    format_response(result)
