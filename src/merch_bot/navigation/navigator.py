"""
Navigation Controller
Storefront navigation, page settling, consent handling and search.
"""

import asyncio
import logging
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from merch_bot.core.config import BotConfig
from merch_bot.dom import selectors as SEL
from merch_bot.dom.resolver import ElementResolver
from merch_bot.utils.popup_dismisser import ConsentDismisser

logger = logging.getLogger(__name__)

NETWORK_IDLE_CAP_MS = 10000
LOADER_POLL_S = 0.25
LOADER_MAX_POLLS = 20


class NavigationController:
    def __init__(self, page, resolver: ElementResolver, config: BotConfig):
        self.page = page
        self.resolver = resolver
        self.config = config
        self.consent = ConsentDismisser(resolver)

    async def go_to_url(self, url: str) -> None:
        """Navigate and settle. Navigation errors propagate to the caller."""
        logger.info(f"🌐 Navigating to {url}")
        await self.page.goto(url, wait_until='domcontentloaded', timeout=self.config.nav_timeout_ms)
        self.consent.reset()
        await self.wait_for_quiescence()

    async def go_to_homepage(self) -> None:
        await self.go_to_url(self.config.url)
        await self.consent.dismiss()
        logger.info("✅ Reached homepage")

    async def wait_for_quiescence(self, timeout_ms: Optional[int] = None) -> bool:
        """
        Wait for network idle, then for visible loaders to disappear.

        Returns:
            True if the page settled within the bounds, False otherwise
        """
        timeout_ms = timeout_ms or min(self.config.nav_timeout_ms, NETWORK_IDLE_CAP_MS)
        settled = True
        try:
            await self.page.wait_for_load_state('networkidle', timeout=timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug(f"Network not idle after {timeout_ms}ms, continuing")
            settled = False
        except PlaywrightError as e:
            logger.debug(f"wait_for_load_state failed: {e}")
            settled = False

        for _ in range(LOADER_MAX_POLLS):
            if not await self.resolver.exists(SEL.LOADER):
                return settled
            await asyncio.sleep(LOADER_POLL_S)

        logger.debug("Loading indicator still visible, continuing anyway")
        return False

    async def _open_search(self) -> bool:
        if await self.resolver.exists(SEL.SEARCH_INPUT):
            return True

        result = await self.resolver.click_first(SEL.SEARCH_TRIGGER, 'search trigger')
        if not result:
            return False
        await asyncio.sleep(0.5)
        return True

    async def search_for_product(self, query: str) -> bool:
        """
        Search the storefront.

        Returns:
            True when a search was submitted, False when no search affordance exists
        """
        logger.info(f"🔍 Searching for: {query}")

        if not await self._open_search():
            logger.warning("⚠️ Could not open search")
            return False

        search_input = await self.resolver.resolve(SEL.SEARCH_INPUT, require_enabled=True)
        if search_input is None:
            logger.warning("⚠️ Search input not found")
            return False

        try:
            await search_input.fill(query, timeout=self.config.action_timeout_ms)
            await search_input.press('Enter', timeout=self.config.action_timeout_ms)
        except PlaywrightError as e:
            logger.debug(f"Enter on search input failed ({e}), trying submit button")
            if not await self.resolver.click_first(SEL.SEARCH_SUBMIT, 'search submit'):
                logger.warning("⚠️ Could not submit search")
                return False

        self.consent.reset()
        await self.wait_for_quiescence()
        logger.info(f"✅ Search submitted: {query}")
        return True

    async def go_to_shop(self) -> bool:
        result = await self.resolver.click_first(SEL.NAV_ALL_PRODUCTS, 'shop all link')
        if not result:
            logger.warning("⚠️ Could not find a shop/all products link")
            return False
        self.consent.reset()
        await self.wait_for_quiescence()
        logger.info("✅ Navigated to all products")
        return True

    async def scroll_to_bottom(self) -> None:
        try:
            await self.page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
        except PlaywrightError as e:
            logger.debug(f"Scroll failed: {e}")
