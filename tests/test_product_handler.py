"""Tests for product discovery and cart insertion."""

import itertools

import pytest
from unittest.mock import AsyncMock

from fakes import FakeElement, FakePage, FakeStore
from merch_bot.core.models import OutcomeKind, ProductOutcome, ProductRequest
from merch_bot.orchestrator import build_components
from merch_bot.phase1.product_handler import MAX_LOAD_ITERATIONS, detect_game

KEYCHAIN = ProductRequest(names=['Wingman Keychain', 'WNGMN Keychain'])


def handler_for(page, config, run_context):
    return build_components(page, config, run_context).products


class TestDetectGame:
    @pytest.mark.parametrize("name, game", [
        ("VALORANT Spike Plush", "VALORANT"),
        ("WNGMN Keychain", "VALORANT"),
        ("Arcane Jinx Figure", "LEAGUE OF LEGENDS"),
        ("TFT Little Legend", "TEAMFIGHT TACTICS"),
        ("Plain Mug", None),
    ])
    def test_detect_game(self, name, game):
        assert detect_game(name) == game


class TestLoadAllProducts:
    @pytest.mark.asyncio
    async def test_bounded_when_listing_keeps_growing(self, make_config, run_context):
        page = FakePage()
        handler = handler_for(page, make_config(), run_context)
        handler._count_products = AsyncMock(side_effect=itertools.count(1))

        assert await handler._load_all_products() == MAX_LOAD_ITERATIONS

    @pytest.mark.asyncio
    async def test_stops_when_count_is_stable(self, make_config, run_context):
        page = FakePage()
        handler = handler_for(page, make_config(), run_context)
        handler._count_products = AsyncMock(side_effect=[4, 4])

        assert await handler._load_all_products() == 1

    @pytest.mark.asyncio
    async def test_clicks_load_more_when_present(self, make_config, run_context):
        load_more = FakeElement('Load more', role='button')
        page = FakePage(load_more)
        handler = handler_for(page, make_config(), run_context)
        handler._count_products = AsyncMock(side_effect=[4, 8, 8])

        assert await handler._load_all_products() == 2
        assert load_more.clicks == 2


class TestProcessProduct:
    @pytest.mark.asyncio
    async def test_adds_product_found_by_synonym(self, make_config, run_context):
        store = FakeStore(title='WNGMN Keychain')
        handler = handler_for(store.page, make_config(), run_context)

        outcome = await handler.process_product(KEYCHAIN)

        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.product == 'Wingman Keychain'
        assert store.add_button.clicks == 1

    @pytest.mark.asyncio
    async def test_sold_out(self, make_config, run_context):
        store = FakeStore(sold_out=True)
        handler = handler_for(store.page, make_config(max_retries=3), run_context)

        outcome = await handler.process_product(KEYCHAIN)

        assert outcome.kind is OutcomeKind.OUT_OF_STOCK
        assert store.add_button.clicks == 0
        assert len(store.page.visited) == 1
        assert not any('retry-' in path for path in store.page.screenshots)

    @pytest.mark.asyncio
    async def test_limit_reached_is_not_retried(self, make_config, run_context):
        store = FakeStore(limit=True)
        handler = handler_for(store.page, make_config(max_retries=3), run_context)

        outcome = await handler.process_product(KEYCHAIN)

        assert outcome.kind is OutcomeKind.LIMIT_REACHED
        assert 'Limit 1 per customer' in outcome.message
        assert store.add_button.clicks == 1
        assert any('limit-reached' in path for path in store.page.screenshots)

    @pytest.mark.asyncio
    async def test_not_found_after_every_attempt(self, make_config, run_context):
        store = FakeStore(title='Arcane Poster')
        handler = handler_for(store.page, make_config(max_retries=3), run_context)

        outcome = await handler.process_product(KEYCHAIN)

        assert outcome.kind is OutcomeKind.NOT_FOUND
        # One homepage visit per attempt
        assert len(store.page.visited) == 3
        assert any('retry-1' in path for path in store.page.screenshots)
        assert any('error-Adding' in path for path in store.page.screenshots)
        assert run_context.failures_path.exists()

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_error_outcome(self, make_config, run_context):
        store = FakeStore()
        handler = handler_for(store.page, make_config(max_retries=2), run_context)
        handler.find_and_add_product = AsyncMock(side_effect=RuntimeError('page crashed'))

        outcome = await handler.process_product(KEYCHAIN)

        assert outcome.kind is OutcomeKind.ERROR
        assert outcome.message == 'page crashed'
        assert handler.find_and_add_product.await_count == 2

    @pytest.mark.asyncio
    async def test_one_outcome_per_product_in_order(self, make_config, run_context):
        store = FakeStore()
        handler = handler_for(store.page, make_config(), run_context)
        handler.process_product = AsyncMock(side_effect=[
            ProductOutcome.success('A'),
            ProductOutcome.out_of_stock('B'),
        ])

        outcomes = await handler.process_all_products([
            ProductRequest(names=['A']),
            ProductRequest(names=['B']),
        ])

        assert [o.product for o in outcomes] == ['A', 'B']
