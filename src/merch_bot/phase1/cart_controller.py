"""
Cart Controller
Open/close the cart, detect emptiness, clear leftovers and proceed to checkout.
"""

import asyncio
import logging

from playwright.async_api import Error as PlaywrightError

from merch_bot.core.config import BotConfig
from merch_bot.core.errors import ElementNotFound
from merch_bot.core.run_context import RunContext
from merch_bot.dom import selectors as SEL
from merch_bot.dom.resolver import ElementResolver
from merch_bot.navigation.navigator import NavigationController
from merch_bot.utils.popup_dismisser import press_escape

logger = logging.getLogger(__name__)

MAX_CLEAR_ATTEMPTS = 10


class CartController:
    def __init__(self, page, resolver: ElementResolver, config: BotConfig,
                 navigator: NavigationController, context: RunContext):
        self.page = page
        self.resolver = resolver
        self.config = config
        self.navigator = navigator
        self.context = context

    async def open_cart(self) -> bool:
        logger.info("🛒 Opening cart")
        await self.navigator.consent.dismiss()

        try:
            await self.resolver.click_with_fallback(SEL.CART_ICON, 'Open Cart', self.config.action_timeout_ms)
        except ElementNotFound as e:
            logger.error(f"❌ Failed to open cart: {e}")
            await self.context.screenshot(self.page, 'error-open-cart')
            return False

        await asyncio.sleep(1.5)
        # Some stores show the consent banner only once the drawer opens
        await self.navigator.consent.dismiss(force=True)
        logger.info("✅ Cart opened")
        return True

    async def close_if_open(self) -> bool:
        """Close the cart drawer if it is showing. Returns True if something was closed."""
        if not await self.resolver.exists(SEL.CART_DRAWER):
            return False

        if await self.resolver.click_first(SEL.CART_CLOSE, 'cart close'):
            await asyncio.sleep(0.5)
            logger.debug("Closed cart drawer")
            return True

        return await press_escape(self.page)

    async def go_to_cart_page(self) -> None:
        await self.navigator.go_to_url(f"{self.config.url}/cart")
        await self.navigator.consent.dismiss()

    async def _item_list(self):
        """Locator over cart items from the first item strategy with any match"""
        for strategy in SEL.CART_ITEM:
            try:
                items = strategy.locate(self.page)
                if await items.count() > 0:
                    return items
            except PlaywrightError:
                continue
        return None

    async def item_count(self) -> int:
        items = await self._item_list()
        return await items.count() if items is not None else 0

    async def is_empty(self) -> bool:
        """
        Layered emptiness check.
        Item-like elements win over an empty-state message; when neither is
        conclusive the cart is treated as not empty.
        """
        if await self.resolver.exists(SEL.CART_ITEM):
            logger.debug("Cart has structured line items")
            return False

        if await self.resolver.exists(SEL.CART_PRODUCT_LIKE):
            logger.debug("Cart container holds product-like elements")
            return False

        if await self.resolver.exists(SEL.CART_EMPTY):
            logger.info("Cart is empty")
            return True

        logger.debug("Cart state ambiguous, assuming items are present")
        return False

    async def update_quantity(self, index: int, quantity: int) -> bool:
        items = await self._item_list()
        if items is None or await items.count() <= index:
            logger.warning(f"⚠️ No cart item at position {index}")
            return False

        field = await self.resolver.resolve(SEL.CART_QUANTITY_INPUT, root=items.nth(index), require_enabled=True)
        if field is None:
            logger.warning("⚠️ Cart quantity input not found")
            return False

        try:
            await field.fill(str(quantity), timeout=self.config.action_timeout_ms)
            await field.press('Enter', timeout=self.config.action_timeout_ms)
        except PlaywrightError as e:
            logger.warning(f"⚠️ Could not set cart quantity: {e}")
            return False

        await self.navigator.wait_for_quiescence()
        logger.info(f"Cart item {index} quantity set to {quantity}")
        return True

    async def remove_item(self, index: int = 0) -> bool:
        items = await self._item_list()
        if items is None or await items.count() <= index:
            return False

        if await self.resolver.click_first(SEL.CART_REMOVE, 'cart remove', root=items.nth(index)):
            await self.navigator.wait_for_quiescence()
            return True

        # No remove control, zero the quantity instead
        return await self.update_quantity(index, 0)

    async def clear_cart(self) -> bool:
        """
        Remove every item left from a previous session.

        Returns:
            True when the cart ends up empty
        """
        logger.info("🧹 Clearing cart")
        if not await self.open_cart():
            await self.go_to_cart_page()

        if await self.is_empty():
            logger.info("✅ Cart already empty")
            await self.close_if_open()
            return True

        for attempt in range(1, MAX_CLEAR_ATTEMPTS + 1):
            if not await self.remove_item(0):
                logger.warning(f"⚠️ Could not remove cart item (attempt {attempt})")
                break
            await asyncio.sleep(0.5)
            if await self.is_empty():
                logger.info(f"✅ Cart cleared after {attempt} removal(s)")
                await self.close_if_open()
                return True

        logger.error("❌ Items remain in cart after clearing attempts")
        await self.context.screenshot(self.page, 'error-clear-cart')
        self.context.record_failure('clear-cart', 'items remain in cart', self._current_url())
        return False

    async def proceed_to_checkout(self) -> bool:
        logger.info("➡️ Proceeding to checkout")
        await self.navigator.consent.dismiss()

        try:
            await self.resolver.click_with_fallback(SEL.CHECKOUT_BUTTON, 'Proceed to Checkout',
                                                    self.config.action_timeout_ms)
        except ElementNotFound as e:
            logger.error(f"❌ {e}")
            await self.context.screenshot(self.page, 'error-proceed-checkout')
            self.context.record_failure('proceed-to-checkout', e, self._current_url())
            return False

        await self.navigator.wait_for_quiescence()
        logger.info("✅ Reached checkout")
        return True

    def _current_url(self) -> str:
        try:
            return self.page.url
        except PlaywrightError:
            return ''
