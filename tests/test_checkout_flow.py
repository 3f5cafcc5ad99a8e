"""Tests for the checkout sequence and the order placement gate."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from fakes import STORE_URL, FakeElement, FakePage
from merch_bot.auth.account_controller import AccountController
from merch_bot.core.models import CheckoutProfile
from merch_bot.dom import selectors as SEL
from merch_bot.dom.resolver import ElementResolver
from merch_bot.phase2.checkout_flow import CheckoutOrchestrator


class RecordingResolver(ElementResolver):
    """Keeps every strategy list that was probed"""

    def __init__(self, page, **kwargs):
        super().__init__(page, **kwargs)
        self.probed = []

    async def probe(self, strategies, root=None, require_enabled=False):
        self.probed.append(tuple(strategies))
        return await super().probe(strategies, root=root, require_enabled=require_enabled)

    def queried_any(self, strategies) -> bool:
        return any(s in strategies for probed in self.probed for s in probed)


def make_checkout(page, config, run_context, cart_empty=False):
    resolver = RecordingResolver(page, action_timeout_ms=config.action_timeout_ms)
    navigator = MagicMock()
    navigator.wait_for_quiescence = AsyncMock(return_value=True)
    cart = MagicMock()
    cart.is_empty = AsyncMock(return_value=cart_empty)
    cart.proceed_to_checkout = AsyncMock(return_value=True)
    accounts = MagicMock()
    accounts.has_reached_purchase_limit = AsyncMock(return_value=False)
    return CheckoutOrchestrator(page, resolver, config, navigator, cart, accounts, run_context)


def checkout_page(place_order_click=None):
    email = FakeElement(role='textbox', name='Email')
    place_order = FakeElement('Place order', role='button', on_click=place_order_click)
    page = FakePage(email, place_order, url=f'{STORE_URL}/checkout')
    return page, email, place_order


class TestFullSendGate:
    @pytest.mark.asyncio
    async def test_stops_at_review_without_full_send(self, make_config, run_context):
        page, email, place_order = checkout_page()
        config = make_config(checkout_enabled=True, full_send=False,
                             checkout=CheckoutProfile(email='buyer@example.com'))
        checkout = make_checkout(page, config, run_context)

        result = await checkout.run()

        assert result.success
        assert result.stopped_at_review
        assert not result.order_placed
        assert email.value == 'buyer@example.com'
        assert place_order.clicks == 0
        assert not checkout.resolver.queried_any(SEL.PLACE_ORDER)
        assert any('checkout-review' in path for path in page.screenshots)

    @pytest.mark.asyncio
    async def test_places_order_with_full_send(self, make_config, run_context):
        def confirm(p):
            p.url = f'{STORE_URL}/checkout/thank-you'

        page, _, place_order = checkout_page(place_order_click=confirm)
        config = make_config(checkout_enabled=True, full_send=True)
        checkout = make_checkout(page, config, run_context)

        result = await checkout.run()

        assert result.success
        assert result.order_placed
        assert not result.stopped_at_review
        assert place_order.clicks == 1
        assert any('order-confirmation' in path for path in page.screenshots)

    @pytest.mark.asyncio
    async def test_unconfirmed_order(self, make_config, run_context):
        page, _, place_order = checkout_page()
        config = make_config(checkout_enabled=True, full_send=True)
        checkout = make_checkout(page, config, run_context)

        result = await checkout.run()

        assert result.order_placed
        assert not result.success
        assert result.message == 'Order submitted but not confirmed'


class TestCheckoutAborts:
    @pytest.mark.asyncio
    async def test_empty_cart(self, make_config, run_context):
        page, _, _ = checkout_page()
        checkout = make_checkout(page, make_config(checkout_enabled=True), run_context, cart_empty=True)

        result = await checkout.run()

        assert not result.success
        assert result.message == 'Cart is empty'
        checkout.cart.proceed_to_checkout.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_proceed_failure(self, make_config, run_context):
        page, _, _ = checkout_page()
        checkout = make_checkout(page, make_config(checkout_enabled=True), run_context)
        checkout.cart.proceed_to_checkout.return_value = False

        result = await checkout.run()

        assert not result.success
        assert run_context.failures_path.exists()

    @pytest.mark.asyncio
    async def test_field_hint_does_not_stop_checkout(self, make_config, run_context):
        page, email, _ = checkout_page()
        page.add(FakeElement('Maximum 35 characters', selectors={'[class*="message"]'}))
        config = make_config(checkout_enabled=True, checkout=CheckoutProfile(email='buyer@example.com'))
        checkout = make_checkout(page, config, run_context)
        checkout.accounts = AccountController(page, checkout.resolver, config, checkout.navigator, run_context)

        result = await checkout.run()

        assert result.success
        assert result.stopped_at_review
        assert result.limit_reached
        assert email.value == 'buyer@example.com'
        assert any('checkout-limit-message' in path for path in page.screenshots)


class TestFormFilling:
    @pytest.mark.asyncio
    async def test_prefilled_and_empty_fields_left_alone(self, make_config, run_context):
        page, email, _ = checkout_page()
        email.value = 'saved@example.com'
        config = make_config(checkout_enabled=True, checkout=CheckoutProfile(email='buyer@example.com'))
        checkout = make_checkout(page, config, run_context)

        result = await checkout.run()

        assert email.value == 'saved@example.com'
        assert email.fills == []
        assert result.fields['contact'] == {'prefilled': 1, 'skipped_empty': 1}

    @pytest.mark.asyncio
    async def test_state_select_by_label(self, make_config, run_context):
        state = FakeElement(role='combobox', name='State', options=['California', 'Texas'])
        page = FakePage(state, url=f'{STORE_URL}/checkout')
        config = make_config(checkout=CheckoutProfile(state='Texas'))
        checkout = make_checkout(page, config, run_context)

        results = await checkout.forms.fill_shipping(config.checkout)

        assert state.value == 'Texas'
        assert {r.name: r.status for r in results}['State'] == 'filled'

    @pytest.mark.asyncio
    async def test_state_select_by_abbreviation(self, make_config, run_context):
        state = FakeElement(role='combobox', name='State', options=[('California', 'CA'), ('Texas', 'TX')])
        page = FakePage(state, url=f'{STORE_URL}/checkout')
        config = make_config(checkout=CheckoutProfile(state='CA'))
        checkout = make_checkout(page, config, run_context)

        results = await checkout.forms.fill_shipping(config.checkout)

        assert state.value == 'CA'
        assert state.selections == [{'value': 'CA'}]
        assert {r.name: r.status for r in results}['State'] == 'filled'

    @pytest.mark.asyncio
    async def test_missing_option_is_not_requested(self, make_config, run_context):
        state = FakeElement(role='combobox', name='State', options=['California', 'Texas'])
        page = FakePage(state, url=f'{STORE_URL}/checkout')
        config = make_config(checkout=CheckoutProfile(state='Ontario'))
        checkout = make_checkout(page, config, run_context)

        results = await checkout.forms.fill_shipping(config.checkout)

        assert state.selections == []
        assert {r.name: r.status for r in results}['State'] == 'failed'

    @pytest.mark.asyncio
    async def test_payment_prefers_iframe(self, make_config, run_context):
        card_number = FakeElement(selectors={'input[name="cardnumber"]'})
        frame = FakeElement(selectors={'iframe[name*="card"]'}, children=[card_number])
        page = FakePage(frame, url=f'{STORE_URL}/checkout')
        config = make_config()
        config = config.model_copy(update={'payment': config.payment.model_copy(update={'card_number': '4242424242424242'})})
        checkout = make_checkout(page, config, run_context)

        results = await checkout.forms.fill_payment(config.payment)

        assert results['number'].status == 'filled'
        assert card_number.value == '4242424242424242'


