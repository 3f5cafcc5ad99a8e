"""
Form Filler
Contact, shipping, discount and payment fields on the checkout page.

An empty configured value means "leave the field alone", and a field the
page already filled in is never overwritten.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError

from merch_bot.core.config import BotConfig
from merch_bot.core.models import CheckoutProfile, PaymentProfile
from merch_bot.dom import selectors as SEL
from merch_bot.dom.resolver import ElementResolver
from merch_bot.dom.strategies import Strategy

logger = logging.getLogger(__name__)

FILLED = 'filled'
SKIPPED_EMPTY = 'skipped_empty'
PREFILLED = 'prefilled'
NOT_FOUND = 'not_found'
FAILED = 'failed'

OPTIONS_SCRIPT = 'el => Array.from(el.options).map(o => [o.label || o.textContent || "", o.value])'


@dataclass
class FieldResult:
    name: str
    status: str
    detail: str = ''

    @property
    def located(self) -> bool:
        return self.status in (FILLED, PREFILLED)


class FormFiller:
    def __init__(self, page, resolver: ElementResolver, config: BotConfig):
        self.page = page
        self.resolver = resolver
        self.config = config

    async def fill_field(self, strategies: Sequence[Strategy], value: str, name: str,
                         root=None) -> FieldResult:
        if not value:
            return FieldResult(name, SKIPPED_EMPTY)

        handle = await self.resolver.resolve(strategies, root=root, require_enabled=True)
        if handle is None:
            logger.debug(f"{name} field not found")
            return FieldResult(name, NOT_FOUND)

        try:
            existing = (await handle.input_value(timeout=self.config.action_timeout_ms)).strip()
            if existing:
                logger.info(f"   {name}: already filled, leaving as is")
                return FieldResult(name, PREFILLED, existing)
            await handle.fill(value, timeout=self.config.action_timeout_ms)
        except PlaywrightError as e:
            logger.warning(f"⚠️ Failed to fill {name}: {e}")
            return FieldResult(name, FAILED, str(e))

        logger.info(f"   ✅ {name} filled")
        return FieldResult(name, FILLED)

    async def _read_options(self, handle) -> List[Tuple[str, str]]:
        try:
            options = await handle.evaluate(OPTIONS_SCRIPT, timeout=self.config.action_timeout_ms)
        except PlaywrightError as e:
            logger.debug(f"Could not read select options: {e}")
            return []
        return [(label.strip(), option_value) for label, option_value in options]

    async def _choose_option(self, handle, value: str) -> bool:
        """
        Select by label, then by value, then by partial label.
        Only options present on the page are requested, so a miss never waits out the timeout.
        """
        options = await self._read_options(handle)
        wanted = value.strip().lower()
        partial = re.compile(re.escape(value.strip()), re.IGNORECASE)

        choice = (
            next(({'label': label} for label, _ in options if label.lower() == wanted), None)
            or next(({'value': v} for _, v in options if v.lower() == wanted), None)
            or next(({'label': label} for label, _ in options if partial.search(label)), None)
        )
        if choice is None:
            return False

        try:
            await handle.select_option(timeout=self.config.action_timeout_ms, **choice)
        except PlaywrightError as e:
            logger.debug(f"select_option {choice} failed: {e}")
            return False
        return True

    async def fill_select(self, strategies: Sequence[Strategy], value: str, name: str,
                          root=None) -> FieldResult:
        if not value:
            return FieldResult(name, SKIPPED_EMPTY)

        handle = await self.resolver.resolve(strategies, root=root, require_enabled=True)
        if handle is None:
            return FieldResult(name, NOT_FOUND)

        try:
            current = (await handle.input_value(timeout=self.config.action_timeout_ms)).strip()
        except PlaywrightError:
            current = ''
        if current and current.lower() == value.lower():
            return FieldResult(name, PREFILLED, current)

        if await self._choose_option(handle, value):
            logger.info(f"   ✅ {name} selected: {value}")
            return FieldResult(name, FILLED)

        logger.warning(f"⚠️ No {name} option matches '{value}'")
        return FieldResult(name, FAILED, f'no option for {value}')

    async def fill_select_or_input(self, select_strategies: Sequence[Strategy],
                                   input_strategies: Sequence[Strategy], value: str,
                                   name: str, root=None) -> FieldResult:
        result = await self.fill_select(select_strategies, value, name, root=root)
        if result.status != NOT_FOUND:
            return result
        return await self.fill_field(input_strategies, value, name, root=root)

    async def fill_contact(self, profile: CheckoutProfile) -> List[FieldResult]:
        logger.info("📧 Filling contact information")
        return [
            await self.fill_field(SEL.EMAIL_INPUT, profile.email, 'Email'),
            await self.fill_field(SEL.PHONE_INPUT, profile.phone, 'Phone'),
        ]

    async def fill_shipping(self, profile: CheckoutProfile) -> List[FieldResult]:
        logger.info("🏠 Filling shipping address")
        results = [
            await self.fill_select(SEL.COUNTRY_SELECT, profile.country, 'Country'),
            await self.fill_field(SEL.FIRST_NAME_INPUT, profile.first_name, 'First name'),
            await self.fill_field(SEL.LAST_NAME_INPUT, profile.last_name, 'Last name'),
            await self.fill_field(SEL.ADDRESS1_INPUT, profile.address1, 'Address'),
            await self.fill_field(SEL.ADDRESS2_INPUT, profile.address2, 'Apartment/suite'),
            await self.fill_field(SEL.CITY_INPUT, profile.city, 'City'),
            await self.fill_select_or_input(SEL.STATE_SELECT, SEL.STATE_INPUT, profile.state, 'State'),
            await self.fill_field(SEL.ZIP_INPUT, profile.zip, 'ZIP'),
        ]
        # Phone sometimes lives in the shipping block instead of contact
        if profile.phone:
            results.append(await self.fill_field(SEL.PHONE_INPUT, profile.phone, 'Phone'))
        return results

    async def apply_discount_code(self, code: str) -> FieldResult:
        if not code:
            return FieldResult('Discount', SKIPPED_EMPTY)

        logger.info("🏷️ Applying discount code")
        if not await self.resolver.exists(SEL.DISCOUNT_INPUT):
            if await self.resolver.click_first(SEL.DISCOUNT_TOGGLE, 'discount toggle'):
                await asyncio.sleep(0.5)

        result = await self.fill_field(SEL.DISCOUNT_INPUT, code, 'Discount')
        if result.status != FILLED:
            return result

        if not await self.resolver.click_first(SEL.DISCOUNT_APPLY, 'discount apply'):
            handle = await self.resolver.resolve(SEL.DISCOUNT_INPUT)
            if handle is not None:
                try:
                    await handle.press('Enter')
                except PlaywrightError as e:
                    logger.warning(f"⚠️ Could not submit discount code: {e}")
                    return FieldResult('Discount', FAILED, str(e))
        await asyncio.sleep(2)
        logger.info("✅ Discount code submitted")
        return result

    async def _payment_frame(self):
        for selector in SEL.PAYMENT_IFRAMES:
            try:
                if await self.page.locator(selector).count() > 0:
                    logger.debug(f"Payment iframe found: {selector}")
                    return self.page.frame_locator(selector).first
            except PlaywrightError:
                continue
        return None

    async def _fill_payment_in(self, root, payment: PaymentProfile) -> Dict[str, FieldResult]:
        results = {
            'number': await self.fill_field(SEL.CARD_NUMBER_INPUT, payment.card_number, 'Card number', root=root),
            'name': await self.fill_field(SEL.CARD_NAME_INPUT, payment.card_name, 'Name on card', root=root),
        }

        expiry = await self.fill_field(SEL.CARD_EXPIRY_INPUT, payment.combined_expiry or '', 'Expiry', root=root)
        if expiry.status == NOT_FOUND:
            # Only split month/year when there is no combined field
            expiry = await self.fill_select_or_input(SEL.CARD_EXP_MONTH[:1], SEL.CARD_EXP_MONTH[1:],
                                                     payment.exp_month, 'Expiry month', root=root)
            results['exp_year'] = await self.fill_select_or_input(SEL.CARD_EXP_YEAR[:1], SEL.CARD_EXP_YEAR[1:],
                                                                  payment.exp_year, 'Expiry year', root=root)
        results['expiry'] = expiry
        results['cvv'] = await self.fill_field(SEL.CARD_CVV_INPUT, payment.cvv, 'CVV', root=root)
        return results

    async def fill_payment(self, payment: PaymentProfile) -> Dict[str, FieldResult]:
        """Fill card fields, preferring a hosted payment iframe over the main page"""
        logger.info("💳 Filling payment information")
        frame = await self._payment_frame()
        if frame is not None:
            results = await self._fill_payment_in(frame, payment)
            if results['number'].located:
                return results
            logger.info("Card number not inside payment iframe, trying main page")

        return await self._fill_payment_in(None, payment)


def summarize(results) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for result in results:
        counts[result.status] = counts.get(result.status, 0) + 1
    return counts
