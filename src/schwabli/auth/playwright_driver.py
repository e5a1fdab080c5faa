"""Playwright-backed login driver for the broker's web login.

Each :meth:`PlaywrightLoginDriver.open_attempt` launches a fresh browser,
context, and page, and closes all three when the ``async with`` block
exits.  The selectors below target the broker's current login pages; they
are the part of this module most likely to need updating after a site
redesign.

Primary step:
    Open the home page, fill the ``schwablmslogin`` frame, and submit.
    Landing on the account summary URL means the device is already trusted;
    anything else is treated as a two-factor challenge and the SMS delivery
    option is selected.

Two-factor step:
    Fill the code, optionally trust the device, submit, then wait at most
    ``two_factor_timeout`` seconds for the account list to render.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from schwabli.auth.credential import Credential
from schwabli.auth.driver import (
    ChallengeIssued,
    LoginAttempt,
    LoginDriver,
    PrimaryLoginResult,
    PrimarySuccess,
    TwoFactorFailure,
    TwoFactorResult,
    TwoFactorSuccess,
)
from schwabli.exceptions import AuthenticationFailed
from schwabli.models import LoginSettings
from schwabli.output import OutputManager, get_output

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/61.0.3163.100 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}

LOGIN_FRAME = "schwablmslogin"
LOGIN_ID_INPUT = '[placeholder="Login ID"]'
PASSWORD_INPUT = '[placeholder="Password"]'
SMS_OPTION = '[aria-label="Text me a 6 digit security code"]'
DELIVERY_METHOD_INPUT = 'input[name="DeliveryMethodSelection"]'
CODE_INPUT = 'input[type="text"]'
CODE_INPUT_FALLBACK = '[placeholder="Access Code"]'
REMEMBER_DEVICE_CHECKBOX = "#checkbox-remember-device"
REMEMBER_DEVICE_FALLBACK = 'input[name="TrustDeviceChecked"]'
CONTINUE_BUTTON = "#continueButton"
ACCOUNT_LIST = "#account-list"


class PlaywrightLoginAttempt(LoginAttempt):
    """One login running on a dedicated Playwright page.

    Created only by :meth:`PlaywrightLoginDriver.open_attempt`, which owns
    the browser lifecycle.
    """

    def __init__(
        self,
        settings: LoginSettings,
        context: BrowserContext,
        page: Page,
        output: OutputManager,
    ) -> None:
        self._settings = settings
        self._context = context
        self._page = page
        self._output = output

    async def begin_primary_login(self, username: str, password: str) -> PrimaryLoginResult:
        page = self._page
        try:
            self._output.debug(f"navigating to: {self._settings.home_url}")
            await page.goto(self._settings.home_url)
            await page.wait_for_load_state("networkidle")

            self._output.debug(f"waiting for login frame: #{LOGIN_FRAME}")
            await page.wait_for_selector(f"#{LOGIN_FRAME}")
            frame = page.frame(name=LOGIN_FRAME)
            if frame is None:
                raise AuthenticationFailed(f"login frame '{LOGIN_FRAME}' not found")

            self._output.debug(f"filling username: {LOGIN_ID_INPUT}")
            await frame.click(LOGIN_ID_INPUT)
            await frame.fill(LOGIN_ID_INPUT, username)

            self._output.debug(f"filling password: {PASSWORD_INPUT}")
            await frame.press(LOGIN_ID_INPUT, "Tab")
            await frame.fill(PASSWORD_INPUT, password)

            self._output.debug("submitting login form")
            async with page.expect_navigation():
                await frame.press(PASSWORD_INPUT, "Enter")

            if page.url == self._settings.account_summary_url:
                return PrimarySuccess(await self._capture_credential())

            self._output.warning("login did not reach the account summary, likely blocked by two-factor")
            await self._request_sms_code()
        except PlaywrightError as exc:
            raise AuthenticationFailed(f"primary login failed: {exc}") from exc

        self._output.info("if all went well, you should receive a code through SMS soon")
        return ChallengeIssued(detail="SMS code requested")

    async def complete_two_factor(self, code: str, remember_device: bool) -> TwoFactorResult:
        page = self._page
        try:
            await self._submit_code(code, remember_device)
        except PlaywrightError as exc:
            self._output.warning(f"default code form failed, trying secondary elements: {exc}")
            try:
                await self._submit_code_fallback(code, remember_device)
            except PlaywrightError as fallback_exc:
                return TwoFactorFailure(reason=f"could not submit two-factor code: {fallback_exc}")

        timeout = self._settings.two_factor_timeout
        self._output.debug(f"waiting up to {timeout}s for {ACCOUNT_LIST}")
        try:
            await page.wait_for_selector(ACCOUNT_LIST, timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            return TwoFactorFailure(
                reason=f"account list did not appear within {timeout}s, assuming login failed",
                timed_out=True,
            )
        except PlaywrightError as exc:
            return TwoFactorFailure(reason=f"two-factor confirmation failed: {exc}")

        try:
            return TwoFactorSuccess(await self._capture_credential())
        except PlaywrightError as exc:
            return TwoFactorFailure(reason=f"could not read session cookies: {exc}")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _request_sms_code(self) -> None:
        page = self._page
        self._output.debug(f"selecting SMS option: {SMS_OPTION}")
        try:
            async with page.expect_navigation():
                await page.click(SMS_OPTION)
        except PlaywrightError:
            self._output.debug(f"SMS option not found, using {DELIVERY_METHOD_INPUT}")
            await page.click(DELIVERY_METHOD_INPUT)
            await page.click("text=Text Message")
            await page.click('input:has-text("Continue")')

    async def _submit_code(self, code: str, remember_device: bool) -> None:
        page = self._page
        self._output.debug(f"filling code: {CODE_INPUT}")
        await page.click(CODE_INPUT)
        await page.fill(CODE_INPUT, code)
        if remember_device:
            await page.click(REMEMBER_DEVICE_CHECKBOX)
        async with page.expect_navigation():
            await page.click(CONTINUE_BUTTON)

    async def _submit_code_fallback(self, code: str, remember_device: bool) -> None:
        page = self._page
        if remember_device:
            await page.check(REMEMBER_DEVICE_FALLBACK)
        self._output.debug(f"filling code: {CODE_INPUT_FALLBACK}")
        await page.click(CODE_INPUT_FALLBACK)
        await page.fill(CODE_INPUT_FALLBACK, code)
        async with page.expect_navigation():
            await page.click(CONTINUE_BUTTON)

    async def _capture_credential(self) -> Credential:
        self._output.debug("storing cookies")
        cookies = await self._context.cookies()
        if not cookies:
            raise AuthenticationFailed("login completed but the browser holds no cookies")
        return Credential.from_cookies(cookies)


class PlaywrightLoginDriver(LoginDriver):
    """Open login attempts in a real browser via Playwright.

    Args:
        settings: Login settings; ``browser`` and ``headless`` select the
            engine and mode, the URLs and timeout drive the attempt.
        output: Diagnostics sink; defaults to the process-wide manager.
    """

    def __init__(self, settings: LoginSettings, output: Optional[OutputManager] = None) -> None:
        self._settings = settings
        self._output = output or get_output()

    @asynccontextmanager
    async def open_attempt(self) -> AsyncIterator[PlaywrightLoginAttempt]:
        engine = self._settings.browser.value
        async with async_playwright() as playwright:
            browser = await self._launch(playwright)
            try:
                self._output.debug(f"initializing new context with user agent: {USER_AGENT}")
                context = await browser.new_context(user_agent=USER_AGENT, viewport=VIEWPORT)
                page = await context.new_page()
                yield PlaywrightLoginAttempt(self._settings, context, page, self._output)
            finally:
                self._output.debug(f"closing {engine} browser")
                await browser.close()

    async def _launch(self, playwright: Playwright) -> Browser:
        engine = self._settings.browser.value
        self._output.debug(f"initializing {engine} browser with headless: {self._settings.headless}")
        try:
            return await getattr(playwright, engine).launch(headless=self._settings.headless)
        except PlaywrightError as exc:
            raise AuthenticationFailed(f"could not launch {engine}: {exc}") from exc
