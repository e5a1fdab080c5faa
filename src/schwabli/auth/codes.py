"""One-time code providers for the two-factor step.

A code provider is any ``async (prompt: str) -> str`` callable.  Two are
built in:

* :class:`PromptCodeProvider` -- asks the user on the terminal, for SMS
  codes.  The blocking read runs in a worker thread so the event loop
  keeps serving other tasks while the user types.
* :class:`TotpCodeProvider` -- computes an RFC 6238 code from a Base32
  secret, for accounts enrolled with an authenticator app.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import struct
import sys
import time
from typing import Awaitable, Callable, Protocol

import typer

from schwabli.exceptions import AuthenticationFailed, ConfigurationError


class CodeProvider(Protocol):
    """Supplies the one-time code for a two-factor challenge."""

    def __call__(self, prompt: str) -> Awaitable[str]: ...


class PromptCodeProvider:
    """Read the one-time code from the interactive terminal.

    Raises:
        AuthenticationFailed: If stdin is not a TTY or the user enters
            nothing.
    """

    async def __call__(self, prompt: str) -> str:
        if not sys.stdin.isatty():
            raise AuthenticationFailed(
                "two-factor code required but stdin is not an interactive terminal"
            )
        code = await asyncio.to_thread(typer.prompt, prompt, prompt_suffix="")
        code = code.strip()
        if not code:
            raise AuthenticationFailed("no two-factor code entered")
        return code


class TotpCodeProvider:
    """Generate time-based one-time passwords (RFC 6238, SHA-1, 30 s step).

    Args:
        secret: Base32-encoded shared secret; spaces and lowercase are
            accepted and padding is optional.
        digits: Code length.
        period: Time step in seconds.
        clock: Returns the current epoch time; injectable for tests.

    Raises:
        ConfigurationError: If *secret* is not valid Base32.
    """

    def __init__(
        self,
        secret: str,
        digits: int = 6,
        period: int = 30,
        clock: Callable[[], float] = time.time,
    ) -> None:
        normalized = secret.replace(" ", "").upper()
        normalized += "=" * (-len(normalized) % 8)
        try:
            self._key = base64.b32decode(normalized, casefold=True)
        except ValueError as exc:
            raise ConfigurationError(f"TOTP secret is not valid Base32: {exc}") from exc
        self._digits = digits
        self._period = period
        self._clock = clock

    def code_at(self, timestamp: float) -> str:
        """Return the code valid at *timestamp*."""
        counter = int(timestamp // self._period)
        digest = hmac.new(self._key, struct.pack(">Q", counter), hashlib.sha1).digest()
        offset = digest[-1] & 0x0F
        value = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF
        return f"{value % 10 ** self._digits:0{self._digits}d}"

    async def __call__(self, prompt: str) -> str:
        return self.code_at(self._clock())
