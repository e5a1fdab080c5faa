"""Shared test fixtures for schwabli.

Provides isolated config environments, output state management, a
scriptable in-memory login driver, and a controllable clock.  These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import pytest

from schwabli.auth.credential import Credential
from schwabli.auth.driver import (
    ChallengeIssued,
    LoginAttempt,
    LoginDriver,
    PrimaryLoginResult,
    PrimarySuccess,
    TwoFactorResult,
    TwoFactorSuccess,
)
from schwabli.models import LoginSettings
from schwabli.output import OutputFormat, OutputManager, reset_output, set_output

T0 = 1_700_000_000.0


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config, clears all SCHWABLI_*
    environment variables, and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("schwabli.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "SCHWABLI_USERNAME",
        "SCHWABLI_PASSWORD",
        "SCHWABLI_TOTP_SECRET",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


class RecordingTransport:
    """Log transport that keeps every ``(level, message)`` it receives."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str]] = []

    def __call__(self, level: str, message: str) -> None:
        self.records.append((level, message))

    def contains(self, text: str, level: Optional[str] = None) -> bool:
        return any(
            text in message and (level is None or level == lvl)
            for lvl, message in self.records
        )


@pytest.fixture
def log_lines() -> RecordingTransport:
    """Install a verbose OutputManager whose diagnostics are recorded in memory."""
    transport = RecordingTransport()
    set_output(
        OutputManager(format=OutputFormat.PLAIN, verbose=True, transport=transport)
    )
    yield transport
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Set up a quiet output manager for tests that don't care about output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable epoch clock that only moves when told to."""

    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Login driver double
# ---------------------------------------------------------------------------


def make_credential(expires_at: Optional[float] = T0 + 3600, **cookies: str) -> Credential:
    """Build a credential from keyword cookies (default ``session=abc``)."""
    pairs = cookies or {"session": "abc"}
    return Credential.from_cookies(
        [{"name": k, "value": v, "expires": expires_at or -1} for k, v in pairs.items()]
    )


def make_settings(**overrides: Any) -> LoginSettings:
    values: dict[str, Any] = {"username": "jdoe", "password": "hunter2"}
    values.update(overrides)
    return LoginSettings(**values)


class FakeAttempt(LoginAttempt):
    """Login attempt that replays the outcomes scripted on its driver."""

    def __init__(self, driver: FakeDriver) -> None:
        self._driver = driver

    async def begin_primary_login(self, username: str, password: str) -> PrimaryLoginResult:
        driver = self._driver
        driver.primary_calls.append((username, password))
        if driver.gate is not None:
            await driver.gate.wait()
        if isinstance(driver.primary, Exception):
            raise driver.primary
        return driver.primary

    async def complete_two_factor(self, code: str, remember_device: bool) -> TwoFactorResult:
        driver = self._driver
        driver.two_factor_calls.append((code, remember_device))
        if isinstance(driver.two_factor, Exception):
            raise driver.two_factor
        return driver.two_factor


class FakeDriver(LoginDriver):
    """In-memory :class:`LoginDriver` that counts attempts and releases.

    Attributes:
        primary: Result (or exception) of every primary step.
        two_factor: Result (or exception) of every two-factor step.
        gate: When set, the primary step blocks until the event is set.
    """

    def __init__(
        self,
        primary: Any = None,
        two_factor: Any = None,
    ) -> None:
        self.primary = primary if primary is not None else PrimarySuccess(make_credential())
        self.two_factor = (
            two_factor if two_factor is not None else TwoFactorSuccess(make_credential())
        )
        self.gate: Optional[asyncio.Event] = None
        self.opened = 0
        self.released = 0
        self.primary_calls: list[tuple[str, str]] = []
        self.two_factor_calls: list[tuple[str, bool]] = []

    @property
    def open_attempts(self) -> int:
        return self.opened - self.released

    @asynccontextmanager
    async def open_attempt(self) -> AsyncIterator[FakeAttempt]:
        self.opened += 1
        try:
            yield FakeAttempt(self)
        finally:
            self.released += 1


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def challenge_driver() -> FakeDriver:
    """Driver whose primary step always issues a two-factor challenge."""
    return FakeDriver(primary=ChallengeIssued(detail="SMS code requested"))


class StaticCodes:
    """Code provider returning a fixed code and remembering the prompts."""

    def __init__(self, code: str = "123456") -> None:
        self.code = code
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.code


@pytest.fixture
def codes() -> StaticCodes:
    return StaticCodes()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
