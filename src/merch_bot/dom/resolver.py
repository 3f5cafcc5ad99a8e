"""
Element Resolver
Tries ordered strategy lists against the current page and returns the first
visible (and, for click targets, enabled) element.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from merch_bot.core.errors import ElementNotFound
from merch_bot.dom.strategies import Strategy

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """
    Result of an optional UI affordance probe.
    found=False is a normal "not there, carry on" answer, not a fault.
    """
    found: bool
    strategy: Optional[Strategy] = None
    handle: Any = None
    reason: str = ''

    def __bool__(self) -> bool:
        return self.found

    @classmethod
    def skip(cls, reason: str) -> 'ProbeResult':
        return cls(found=False, reason=reason)


class ElementResolver:
    def __init__(self, page, action_timeout_ms: int = 30000,
                 poll_interval_ms: int = 200, scan_limit: int = 5):
        self.page = page
        self.action_timeout_ms = action_timeout_ms
        self.poll_interval_ms = poll_interval_ms
        # Matches beyond the first few are rarely the intended control
        self.scan_limit = scan_limit

    async def _first_usable(self, locator, require_enabled: bool):
        count = await locator.count()
        for i in range(min(count, self.scan_limit)):
            handle = locator.nth(i)
            if not await handle.is_visible():
                continue
            if require_enabled and not await handle.is_enabled():
                continue
            return handle
        return None

    async def probe(self, strategies: Sequence[Strategy], root=None,
                    require_enabled: bool = False) -> ProbeResult:
        """
        Evaluate strategies in order, stopping at the first usable match.

        Args:
            strategies: Ordered strategy list
            root: Page, frame or locator to search within (defaults to the page)
            require_enabled: Also require the element to be enabled

        Returns:
            ProbeResult with the matching strategy and element handle
        """
        scope = root if root is not None else self.page
        for strategy in strategies:
            try:
                handle = await self._first_usable(strategy.locate(scope), require_enabled)
            except PlaywrightError as e:
                # Detached frames and invalid selectors surface here
                logger.debug(f"Strategy {strategy.describe()} errored: {e}")
                continue
            if handle is not None:
                return ProbeResult(found=True, strategy=strategy, handle=handle)
        return ProbeResult.skip('no strategy matched')

    async def resolve(self, strategies: Sequence[Strategy], root=None,
                      require_enabled: bool = False):
        """Return the first usable element handle, or None when nothing matched"""
        result = await self.probe(strategies, root=root, require_enabled=require_enabled)
        return result.handle if result.found else None

    async def exists(self, strategies: Sequence[Strategy], root=None) -> bool:
        return (await self.probe(strategies, root=root)).found

    async def click_first(self, strategies: Sequence[Strategy], description: str = '',
                          root=None) -> ProbeResult:
        """Single best-effort pass: click the first usable element if there is one"""
        result = await self.probe(strategies, root=root, require_enabled=True)
        if not result.found:
            return result
        try:
            await result.handle.click(timeout=self.action_timeout_ms)
        except PlaywrightError as e:
            logger.debug(f"Click on {description or result.strategy.describe()} failed: {e}")
            return ProbeResult.skip(f'click failed: {e}')
        if description:
            logger.debug(f"Clicked {description} via {result.strategy.describe()}")
        return result

    async def click_with_fallback(self, strategies: Sequence[Strategy], description: str,
                                  timeout_ms: Optional[int] = None, root=None) -> Strategy:
        """
        Poll the whole strategy list until one element is clicked or the timeout elapses.

        Returns:
            The strategy that produced the clicked element

        Raises:
            ElementNotFound: when every strategy failed for the whole timeout
        """
        timeout_ms = self.action_timeout_ms if timeout_ms is None else timeout_ms
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000

        while True:
            result = await self.click_first(strategies, root=root)
            if result.found:
                logger.info(f"✅ {description}: clicked via {result.strategy.describe()}")
                return result.strategy
            if loop.time() >= deadline:
                break
            await asyncio.sleep(self.poll_interval_ms / 1000)

        raise ElementNotFound(description, timeout_ms)

    async def fill_first(self, strategies: Sequence[Strategy], value: str,
                         description: str = '', root=None) -> ProbeResult:
        """Fill the first usable input; a missing field is a skip, not an error"""
        result = await self.probe(strategies, root=root, require_enabled=True)
        if not result.found:
            return result
        try:
            await result.handle.fill(value, timeout=self.action_timeout_ms)
        except PlaywrightError as e:
            logger.debug(f"Fill of {description or result.strategy.describe()} failed: {e}")
            return ProbeResult.skip(f'fill failed: {e}')
        return result

    async def read_text(self, strategies: Sequence[Strategy], root=None) -> Optional[str]:
        """Text content of the first visible match"""
        handle = await self.resolve(strategies, root=root)
        if handle is None:
            return None
        try:
            content = await handle.text_content(timeout=self.action_timeout_ms)
        except PlaywrightError:
            return None
        return (content or '').strip()
