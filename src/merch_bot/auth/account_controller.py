"""
Account Controller
Signed-in detection, human-paced credential sign-in, sign-out and
account-level purchase limit detection.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError

from merch_bot.core.config import BotConfig
from merch_bot.core.errors import SignInError
from merch_bot.core.models import Account
from merch_bot.core.run_context import RunContext
from merch_bot.dom import selectors as SEL
from merch_bot.dom.messages import find_message, find_purchase_limit
from merch_bot.dom.resolver import ElementResolver
from merch_bot.dom.strategies import css
from merch_bot.navigation.navigator import NavigationController
from merch_bot.utils.human_typing import type_like_human

logger = logging.getLogger(__name__)

# Human CAPTCHA window after submitting credentials
SIGN_IN_WAIT_SECONDS = 60
SIGN_IN_LOG_EVERY = 10
FORM_WAIT_POLLS = 30
FORM_POLL_S = 0.5
LINK_SCAN_LIMIT = 50

HEADER = (css('header'),)


class AccountController:
    def __init__(self, page, resolver: ElementResolver, config: BotConfig,
                 navigator: NavigationController, context: RunContext):
        self.page = page
        self.resolver = resolver
        self.config = config
        self.navigator = navigator
        self.context = context

    def _on_auth_url(self) -> bool:
        return bool(SEL.AUTH_URL_MARKERS.search(self.page.url or ''))

    def _on_storefront(self) -> bool:
        return urlparse(self.page.url or '').netloc == urlparse(self.config.url).netloc

    async def is_signed_in(self) -> bool:
        """
        Layered sign-in check. Being on an auth URL always means "not signed in",
        whatever the page shows. Undetermined states report False.
        """
        if self._on_auth_url():
            return False

        # A visible "Sign In" in the header settles it
        if await self.resolver.exists(SEL.HEADER_SIGN_IN_EXACT):
            return False

        if await self.resolver.exists(SEL.SIGNED_IN_INDICATORS):
            return True

        if self._on_storefront():
            header_text = await self.resolver.read_text(HEADER)
            if header_text and SEL.HEADER_ACCOUNT_TEXT.search(header_text):
                return True

        return False

    async def verify_signed_in_or_fail(self) -> None:
        """Used when attached to a user's browser: the session must already be signed in"""
        if not await self.is_signed_in():
            await self.context.screenshot(self.page, 'not-signed-in')
            raise SignInError('Browser session is not signed in. Sign in manually, then rerun.')
        logger.info("✅ Existing browser session is signed in")

    async def _click_sign_in_trigger(self) -> bool:
        result = await self.resolver.click_first(SEL.SIGN_IN_TRIGGER, 'sign in trigger')
        if result:
            return True

        # Last resort: scan every link and button for sign-in wording
        candidates = self.page.locator('a, button')
        try:
            count = min(await candidates.count(), LINK_SCAN_LIMIT)
            for i in range(count):
                element = candidates.nth(i)
                label = (await element.text_content() or '').strip()
                if SEL.SIGN_IN_LINK_TEXT.search(label) and await element.is_visible():
                    await element.click(timeout=self.config.action_timeout_ms)
                    logger.info(f"Clicked sign in via link scan: '{label[:30]}'")
                    return True
        except PlaywrightError as e:
            logger.debug(f"Sign in link scan failed: {e}")
        return False

    async def _wait_for_login_form(self) -> bool:
        """Wait for the auth redirect or the username field, whichever comes first"""
        for _ in range(FORM_WAIT_POLLS):
            if self._on_auth_url() or await self.resolver.exists(SEL.USERNAME_INPUT):
                await asyncio.sleep(1.5)
                return True
            await asyncio.sleep(FORM_POLL_S)
        return False

    async def _wait_for_sign_in_result(self) -> Optional[str]:
        """
        Poll once per second for up to SIGN_IN_WAIT_SECONDS. This is the window
        for a human to solve a CAPTCHA.

        Returns:
            Error message shown by the login form, or None
        """
        for second in range(1, SIGN_IN_WAIT_SECONDS + 1):
            await asyncio.sleep(1)

            if not self._on_auth_url() and not await self.resolver.exists(SEL.PASSWORD_INPUT):
                logger.info(f"Left login form after {second}s")
                return None

            error = await find_message(self.page, SEL.SIGN_IN_ERROR, (SEL.SIGN_IN_ERROR_TEXT,))
            if error:
                return error

            if second % SIGN_IN_LOG_EVERY == 0:
                logger.info(f"⏳ Waiting for sign in ({second}/{SIGN_IN_WAIT_SECONDS}s). "
                            "Solve any CAPTCHA in the browser window.")

        logger.warning(f"⚠️ Still on login form after {SIGN_IN_WAIT_SECONDS}s")
        return None

    async def sign_in(self, account: Account) -> Dict[str, Any]:
        """
        Sign in with human-paced typing.

        Args:
            account: Credentials to use

        Returns:
            Dict with success status and error message
        """
        masked = account.masked_username
        logger.info(f"🔐 Signing in as {masked}")

        # Step 1: Start from a clean session
        if await self.is_signed_in():
            logger.info("Already signed in, signing out first")
            await self.sign_out()
            await self.navigator.go_to_homepage()

        # Step 2: Open the login form
        if not await self._click_sign_in_trigger():
            return await self._fail('signin-no-trigger', 'Sign in button not found')

        if not await self._wait_for_login_form():
            logger.warning("⚠️ Login form did not appear in time, trying fields anyway")

        # Step 3: Credentials
        username_field = await self.resolver.resolve(SEL.USERNAME_INPUT, require_enabled=True)
        if username_field is None:
            return await self._fail('signin-no-username', 'Username field not found')
        await type_like_human(username_field, account.username)

        password_field = await self.resolver.resolve(SEL.PASSWORD_INPUT, require_enabled=True)
        if password_field is None:
            return await self._fail('signin-no-password', 'Password field not found')
        await type_like_human(password_field, account.password.get_secret_value())
        await asyncio.sleep(0.5)

        # Step 4: Submit
        if not await self.resolver.click_first(SEL.SIGN_IN_SUBMIT, 'sign in submit'):
            logger.info("Submit button not found, pressing Enter")
            await password_field.press('Enter')

        # Step 5: Wait out redirects and CAPTCHA
        error = await self._wait_for_sign_in_result()
        await asyncio.sleep(2)

        if error:
            return await self._fail('signin-error', f'Login error: {error}')

        if not await self.is_signed_in():
            return await self._fail('signin-unverified', 'Sign in could not be verified')

        logger.info(f"✅ Signed in as {masked}")
        return {'success': True, 'error': None}

    async def _fail(self, label: str, message: str) -> Dict[str, Any]:
        logger.error(f"❌ {message}")
        await self.context.screenshot(self.page, label)
        self.context.record_failure(label, message, self.page.url)
        return {'success': False, 'error': message}

    def _logout_urls(self) -> List[str]:
        return [
            f"{self.config.url}/account/logout",
            f"{self.config.url}/logout",
            'https://auth.riotgames.com/logout',
        ]

    async def _sign_out_via_ui(self) -> bool:
        result = await self.resolver.click_first(SEL.SIGN_OUT, 'sign out')
        if not result:
            # Sign out often sits inside the account menu
            if await self.resolver.click_first(SEL.ACCOUNT_MENU, 'account menu'):
                await asyncio.sleep(1)
                result = await self.resolver.click_first(SEL.SIGN_OUT + SEL.SIGN_OUT_IN_MENU, 'sign out in menu')
        if not result:
            return False

        self.navigator.consent.reset()
        await self.navigator.wait_for_quiescence()
        return not await self.is_signed_in()

    async def sign_out(self) -> bool:
        """
        Sign out through the UI, falling back to logout URLs.

        Returns:
            True if the session ends up signed out
        """
        if not await self.is_signed_in():
            logger.info("Already signed out")
            return True

        logger.info("🔓 Signing out")
        if await self._sign_out_via_ui():
            logger.info("✅ Signed out")
            return True

        for url in self._logout_urls():
            try:
                await self.navigator.go_to_url(url)
                await self.navigator.go_to_homepage()
            except PlaywrightError as e:
                logger.debug(f"Logout URL {url} failed: {e}")
                continue
            if not await self.is_signed_in():
                logger.info(f"✅ Signed out via {url}")
                return True

        logger.warning("⚠️ Still signed in after all sign out attempts")
        await self.context.screenshot(self.page, 'signout-failed')
        return False

    async def has_reached_purchase_limit(self) -> bool:
        message = await find_purchase_limit(self.page)
        if message:
            logger.warning(f"🚫 Purchase limit message on page: {message}")
            return True
        return False
