"""HTTP client module for schwabli.

Provides :class:`SessionClient`, an async JSON client backed by
:class:`httpx.AsyncClient` that decorates every request with the session
credential via :class:`~schwabli.auth.authenticator.Authenticator`.

Example::

    from schwabli.client import SessionClient

    async with SessionClient(authenticator) as client:
        data = await client.get("https://client.schwab.com/api/positions")
"""

from schwabli.client.session_client import SessionClient

__all__ = ["SessionClient"]
