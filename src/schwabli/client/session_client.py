"""Authenticated JSON client -- GET/POST through the session's authenticator.

This module provides :class:`SessionClient`, a thin wrapper around
:class:`httpx.AsyncClient`.  Every call builds a base
:class:`~schwabli.models.RequestDescriptor`, hands it to
:meth:`~schwabli.auth.authenticator.Authenticator.authenticate` for cookie
decoration (logging in first if needed), dispatches it, and decodes the
JSON body.

Error mapping:

* network failures -> :class:`~schwabli.exceptions.TransportError`
* HTTP 401 -> credential invalidated, :class:`~schwabli.exceptions.SessionExpired`
* other HTTP errors -> :class:`~schwabli.exceptions.APIError`
* undecodable body -> :class:`~schwabli.exceptions.MalformedResponse`

Nothing is retried at this layer.
"""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, Optional

import httpx

from schwabli.auth.authenticator import Authenticator
from schwabli.exceptions import APIError, MalformedResponse, SessionExpired, TransportError
from schwabli.models import AuthenticationOptions, RequestConfig, RequestDescriptor
from schwabli.output import OutputManager, get_output


class SessionClient:
    """Asynchronous JSON client whose requests carry the session cookies.

    Must be used as an async context manager.

    Args:
        authenticator: Decorates each request, logging in when required.
        request_config: Timeout and TLS verification; defaults apply when
            ``None``.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.
        output: Diagnostics sink; defaults to the process-wide manager.

    Example::

        async with SessionClient(auth) as client:
            positions = await client.get(POSITIONS_URL)
            order = await client.post(VERIFY_URL, {"ticker": "AAPL"})
    """

    def __init__(
        self,
        authenticator: Authenticator,
        request_config: Optional[RequestConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        output: Optional[OutputManager] = None,
    ) -> None:
        self._authenticator = authenticator
        self._config = request_config or RequestConfig()
        self._transport = transport
        self._output = output or get_output()
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def authenticator(self) -> Authenticator:
        return self._authenticator

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> SessionClient:
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def get(
        self, url: str, auth_options: Optional[AuthenticationOptions] = None
    ) -> Any:
        """Send an authenticated GET and return the decoded JSON body.

        Args:
            url: Absolute request URL.
            auth_options: Authentication options; ``request`` supplies extra
                headers; the method and body are set by the helper.

        Raises:
            AuthError: If the request cannot be authenticated.
            TransportError: On network failures.
            APIError: On HTTP error statuses other than 401.
            MalformedResponse: If the body is not JSON.
        """
        self._output.debug(f"performing HTTP GET request with authentication: {url}")
        return await self._send(url, RequestDescriptor(method="GET"), auth_options)

    async def post(
        self,
        url: str,
        body: Any,
        auth_options: Optional[AuthenticationOptions] = None,
    ) -> Any:
        """Send *body* as JSON in an authenticated POST and return the decoded JSON body.

        Raises the same exceptions as :meth:`get`.
        """
        self._output.debug(f"performing HTTP POST request with authentication: {url}")
        encoded = json.dumps(body)
        base = RequestDescriptor(
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Content-Length": str(len(encoded.encode("utf-8"))),
            },
            body=encoded,
        )
        return await self._send(url, base, auth_options)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _send(
        self,
        url: str,
        base: RequestDescriptor,
        auth_options: Optional[AuthenticationOptions],
    ) -> Any:
        assert self._client is not None, "Client not initialised -- use as async context manager"

        options = auth_options or AuthenticationOptions()
        if options.request is None:
            options = replace(options, request=base)
        else:
            # Method and body always come from the helper; caller headers win.
            caller = options.request
            merged = replace(
                caller,
                method=base.method,
                headers={**base.headers, **caller.headers},
                body=base.body,
            )
            options = replace(options, request=merged)
        request = await self._authenticator.authenticate(options)

        try:
            response = await self._client.request(
                request.method,
                url,
                headers=request.headers,
                content=request.body,
            )
        except httpx.HTTPError as exc:
            self._output.error(f"HTTP {request.method} {url} failed: {exc}")
            raise TransportError(f"{request.method} {url} failed: {exc}") from exc

        self._output.debug(
            f"authenticated HTTP {request.method} request {url} "
            f"responded with status code HTTP {response.status_code}"
        )
        return self._decode(response, url)

    def _decode(self, response: httpx.Response, url: str) -> Any:
        status = response.status_code

        if status == 401:
            self._authenticator.invalidate()
            raise SessionExpired(f"HTTP 401 from {url}: the session was rejected, log in again")

        try:
            data = response.json()
        except ValueError as exc:
            if status >= 400:
                raise APIError(
                    f"HTTP {status}: {response.text[:200]}", status, response.text
                ) from exc
            self._output.error(f"failed to decode response from {url}")
            raise MalformedResponse(
                f"response from {url} is not valid JSON: {exc}", status_code=status
            ) from exc

        if status >= 400:
            raise APIError(_error_message(status, data), status, data)
        return data


def _error_message(status: int, detail: Any) -> str:
    if isinstance(detail, dict):
        msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
    else:
        msg = str(detail)
    return f"HTTP {status}: {msg}" if msg else f"HTTP {status}"
