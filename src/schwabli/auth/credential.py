"""Cookie credential captured from a completed browser login.

A :class:`Credential` is the only authentication material schwabli holds.
It is built once per successful login from the browser context's cookie
jar, never mutated, and replaced wholesale on the next login.

Expiry policy:
    The credential expires as soon as *any* of its persistent cookies
    expires, so :attr:`Credential.expires_at` is the minimum of all strictly
    positive cookie expiries.  Session cookies report a non-positive expiry
    (Playwright uses ``-1``) and are ignored.  When no cookie carries a
    positive expiry, ``expires_at`` is ``None``: there is no client-side
    expiry and an HTTP 401 from the server is the only expiry signal.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class Credential(BaseModel):
    """Immutable cookie set plus its computed expiry.

    Attributes:
        cookies: ``(name, value)`` pairs in the order they were captured.
        expires_at: Epoch seconds after which the credential is expired,
            or ``None`` when no cookie carries a persistent expiry.

    Example::

        cred = Credential.from_cookies([
            {"name": "a", "value": "1", "expires": now + 100},
            {"name": "b", "value": "2", "expires": now + 50},
        ])
        assert cred.header_value() == "a=1; b=2;"
        assert cred.expires_at == now + 50
    """

    model_config = ConfigDict(frozen=True)

    cookies: tuple[tuple[str, str], ...] = Field(min_length=1)
    expires_at: Optional[float] = None

    @classmethod
    def from_cookies(cls, records: Iterable[Mapping[str, Any]]) -> Credential:
        """Build a credential from raw cookie records.

        Args:
            records: Mappings with ``name``, ``value``, and optionally
                ``expires`` (epoch seconds; missing or non-positive means a
                session cookie).  Playwright's ``BrowserContext.cookies()``
                output is accepted as-is.

        Returns:
            A new :class:`Credential`.

        Raises:
            ValueError: If *records* is empty.
        """
        records = list(records)
        if not records:
            raise ValueError("cannot build a credential from an empty cookie set")

        cookies = tuple((str(r["name"]), str(r["value"])) for r in records)
        expiries = (float(r.get("expires") or 0) for r in records)
        positive = [e for e in expiries if e > 0]
        return cls(cookies=cookies, expires_at=min(positive) if positive else None)

    def header_value(self) -> str:
        """Serialise the cookies as a ``Cookie`` header value.

        Each pair is rendered as ``name=value;`` and pairs are joined by a
        single space, e.g. ``"a=1; b=2;"``.
        """
        return " ".join(f"{name}={value};" for name, value in self.cookies)

    def is_expired(self, now: float) -> bool:
        """Return True when *now* (epoch seconds) is at or past :attr:`expires_at`."""
        return self.expires_at is not None and now >= self.expires_at

    def __repr__(self) -> str:
        names = ", ".join(name for name, _ in self.cookies)
        return f"Credential(cookies=[{names}], expires_at={self.expires_at})"
