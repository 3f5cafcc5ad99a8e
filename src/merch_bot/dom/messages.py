import logging
from typing import Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from merch_bot.dom import selectors as SEL
from merch_bot.dom.strategies import Strategy

logger = logging.getLogger(__name__)


async def find_message(page, strategies: Sequence[Strategy], patterns: Sequence,
                       per_strategy: int = 5) -> Optional[str]:
    """
    Scan visible elements for text matching any of the patterns.

    Returns:
        The first matching message (whitespace collapsed), or None
    """
    for strategy in strategies:
        try:
            locator = strategy.locate(page)
            count = await locator.count()
            for i in range(min(count, per_strategy)):
                element = locator.nth(i)
                if not await element.is_visible():
                    continue
                content = ' '.join((await element.text_content() or '').split())
                if content and any(p.search(content) for p in patterns):
                    return content[:200]
        except PlaywrightError as e:
            logger.debug(f"Message scan via {strategy.describe()} failed: {e}")
    return None


async def find_purchase_limit(page) -> Optional[str]:
    """Purchase-limit message currently shown on the page, if any"""
    return await find_message(page, SEL.PURCHASE_LIMIT_MESSAGE + SEL.ALERT_CONTAINERS,
                              SEL.PURCHASE_LIMIT_PATTERNS)
