import asyncio
import logging

from playwright.async_api import Error as PlaywrightError

from merch_bot.dom import selectors as SEL
from merch_bot.dom.resolver import ElementResolver, ProbeResult

logger = logging.getLogger(__name__)


class ConsentDismisser:
    """
    Cookie/consent banner handling for one page.
    Accept is preferred, decline is the fallback. Once a banner was dismissed
    the page is marked handled until the next navigation resets it.
    """

    def __init__(self, resolver: ElementResolver):
        self.resolver = resolver
        self.handled = False

    def reset(self) -> None:
        self.handled = False

    async def dismiss(self, force: bool = False) -> ProbeResult:
        if self.handled and not force:
            return ProbeResult.skip('consent already handled on this page')

        logger.debug("🔍 Checking for cookie consent popup")

        result = await self.resolver.click_first(SEL.CONSENT_ACCEPT, 'cookie consent accept')
        if result:
            logger.info(f"✅ Cookie consent accepted via: {result.strategy.describe()[:40]}")
        else:
            result = await self.resolver.click_first(SEL.CONSENT_DECLINE, 'cookie consent decline')
            if result:
                logger.info(f"✅ Cookie consent declined via: {result.strategy.describe()[:40]}")

        if not result:
            logger.debug("No cookie consent popup found or already dismissed")
            return result

        self.handled = True
        await asyncio.sleep(1)
        return result


async def press_escape(page) -> bool:
    """Close whatever overlay currently has focus"""
    try:
        await page.keyboard.press('Escape')
    except PlaywrightError as e:
        logger.debug(f"Escape key failed: {e}")
        return False
    await asyncio.sleep(0.5)
    return True
