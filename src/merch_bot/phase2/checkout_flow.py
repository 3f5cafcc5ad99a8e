"""
Checkout Flow - Phase 2
Sequences contact, shipping, discount and payment filling, then stops at the
review page unless FULL_SEND explicitly allows placing the order.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Dict

from merch_bot.auth.account_controller import AccountController
from merch_bot.core.config import BotConfig
from merch_bot.core.errors import ElementNotFound
from merch_bot.core.run_context import RunContext
from merch_bot.dom import selectors as SEL
from merch_bot.dom.resolver import ElementResolver
from merch_bot.navigation.navigator import NavigationController
from merch_bot.phase1.cart_controller import CartController
from merch_bot.phase2.form_filler import FormFiller, summarize
from merch_bot.utils.logger_config import log

logger = logging.getLogger(__name__)

ORDER_CONFIRMATION_WAIT_S = 30
CONFIRMATION_URL = re.compile(r'thank[-_]?you|/orders?/|order[-_]confirm', re.IGNORECASE)


@dataclass
class CheckoutResult:
    success: bool
    order_placed: bool = False
    stopped_at_review: bool = False
    limit_reached: bool = False
    message: str = ''
    fields: Dict[str, Dict[str, int]] = field(default_factory=dict)


class CheckoutOrchestrator:
    def __init__(self, page, resolver: ElementResolver, config: BotConfig,
                 navigator: NavigationController, cart: CartController,
                 accounts: AccountController, context: RunContext):
        self.page = page
        self.resolver = resolver
        self.config = config
        self.navigator = navigator
        self.cart = cart
        self.accounts = accounts
        self.context = context
        self.forms = FormFiller(page, resolver, config)

    async def run(self) -> CheckoutResult:
        log(logger, 'info', 'Starting checkout', 'CHECKOUT', 'FLOW')

        # STEP 1: Nothing to buy means nothing to do
        if await self.cart.is_empty():
            return await self._abort('checkout-cart-empty', 'Cart is empty')

        # STEP 2: Leave the cart
        if not await self.cart.proceed_to_checkout():
            return await self._abort('checkout-proceed-failed', 'Could not proceed to checkout')

        result = CheckoutResult(success=False)

        # Diagnostic only: field hints such as "Maximum 35 characters" match too
        if await self.accounts.has_reached_purchase_limit():
            log(logger, 'warning', 'Limit-like message on checkout page, continuing', 'CHECKOUT', 'FLOW')
            await self.context.screenshot(self.page, 'checkout-limit-message')
            result.limit_reached = True

        # STEP 3 + 4: Contact and shipping
        result.fields['contact'] = summarize(await self.forms.fill_contact(self.config.checkout))
        result.fields['shipping'] = summarize(await self.forms.fill_shipping(self.config.checkout))
        log(logger, 'info', f"Contact {result.fields['contact']}, shipping {result.fields['shipping']}", 'CHECKOUT', 'FORM')
        await self.context.screenshot(self.page, 'checkout-shipping-filled')

        # STEP 5: Either button may already be behind us
        await self._continue(SEL.CONTINUE_TO_SHIPPING, 'Continue to shipping')
        await self._continue(SEL.CONTINUE_TO_PAYMENT, 'Continue to payment')

        # STEP 6: Discount
        discount = await self.forms.apply_discount_code(self.config.discount_code)
        result.fields['discount'] = summarize([discount])

        # STEP 7: Payment
        payment = await self.forms.fill_payment(self.config.payment)
        result.fields['payment'] = summarize(payment.values())
        log(logger, 'info', f"Payment {result.fields['payment']}", 'CHECKOUT', 'FORM')

        # STEP 8: Review, then the FULL_SEND gate
        await self.context.screenshot(self.page, 'checkout-review')

        if not self.config.full_send:
            log(logger, 'info', '=== SAFE_STOP_BEFORE_PURCHASE ===', 'CHECKOUT', 'GATE')
            log(logger, 'info', 'FULL_SEND is disabled: stopped at the final review page, no order placed', 'CHECKOUT', 'GATE')
            log(logger, 'info', 'Set FULL_SEND=1 to place orders automatically', 'CHECKOUT', 'GATE')
            result.success = True
            result.stopped_at_review = True
            result.message = 'Stopped at review (FULL_SEND disabled)'
            return result

        return await self._place_order(result)

    async def _continue(self, strategies, description: str) -> bool:
        clicked = await self.resolver.click_first(strategies, description)
        if not clicked:
            log(logger, 'info', f"{description}: button not present, assuming step already passed", 'CHECKOUT', 'DOM')
            return False
        log(logger, 'info', f"{description}: clicked", 'CHECKOUT', 'DOM')
        await self.navigator.wait_for_quiescence()
        await asyncio.sleep(1)
        return True

    async def _place_order(self, result: CheckoutResult) -> CheckoutResult:
        log(logger, 'warning', '=== FULL_SEND MODE - PLACING ORDER ===', 'CHECKOUT', 'GATE')
        try:
            await self.resolver.click_with_fallback(SEL.PLACE_ORDER, 'Place Order', self.config.action_timeout_ms)
        except ElementNotFound as e:
            result.message = str(e)
            return await self._abort('place-order-not-found', str(e), result)

        result.order_placed = True
        if await self._wait_for_order_confirmation():
            log(logger, 'info', '🎉 Order confirmed', 'CHECKOUT', 'CONFIRMATION')
            await self.context.screenshot(self.page, 'order-confirmation')
            result.success = True
            result.message = 'Order placed'
            return result

        log(logger, 'warning', f'No order confirmation within {ORDER_CONFIRMATION_WAIT_S}s, check the account', 'CHECKOUT', 'CONFIRMATION')
        await self.context.screenshot(self.page, 'order-unconfirmed')
        self.context.record_failure('order-confirmation', 'no confirmation signal', self.page.url)
        result.message = 'Order submitted but not confirmed'
        return result

    async def _wait_for_order_confirmation(self) -> bool:
        for _ in range(ORDER_CONFIRMATION_WAIT_S):
            if CONFIRMATION_URL.search(self.page.url or ''):
                return True
            if await self.resolver.exists(SEL.ORDER_CONFIRMATION):
                return True
            await asyncio.sleep(1)
        return False

    async def _abort(self, label: str, message: str, result: CheckoutResult = None) -> CheckoutResult:
        log(logger, 'error', f"❌ {message}", 'CHECKOUT', 'FLOW')
        await self.context.screenshot(self.page, label)
        self.context.record_failure(label, message, self.page.url)
        result = result or CheckoutResult(success=False)
        result.success = False
        result.message = message
        return result
