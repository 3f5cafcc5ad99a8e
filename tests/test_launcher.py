"""Tests for browser session lifecycle and human-paced typing."""

import random

import pytest
from playwright.async_api import Error as PlaywrightError
from unittest.mock import AsyncMock, MagicMock

from fakes import FakeElement, FakePage
from merch_bot.browser.launcher import BrowserSession, normalize_endpoint, verify_cdp_endpoint
from merch_bot.core.errors import DriverSessionError
from merch_bot.utils.human_typing import MIN_DELAY_MS, keystroke_delay_ms, type_like_human


class TestEndpoint:
    def test_localhost_rewritten_to_ipv4(self):
        assert normalize_endpoint('http://localhost:9222/') == 'http://127.0.0.1:9222'

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self):
        with pytest.raises(DriverSessionError):
            await verify_cdp_endpoint('http://127.0.0.1:1')


class TestBrowserSession:
    @pytest.mark.asyncio
    async def test_attached_browser_is_only_disconnected(self, make_config):
        session = BrowserSession(make_config(keep_open=True))
        browser, driver = MagicMock(), MagicMock()
        browser.close = AsyncMock()
        driver.stop = AsyncMock()
        session.browser, session.playwright = browser, driver
        session.connected_over_cdp = True

        await session.close()

        browser.close.assert_awaited_once()
        driver.stop.assert_awaited_once()
        assert session.page is None
        assert not session.connected_over_cdp

    @pytest.mark.asyncio
    async def test_keep_open_leaves_launched_browser(self, make_config):
        session = BrowserSession(make_config(keep_open=True))
        browser = MagicMock()
        browser.close = AsyncMock()
        session.browser = browser

        await session.close()

        browser.close.assert_not_awaited()
        assert session.browser is browser

    @pytest.mark.asyncio
    async def test_forced_close(self, make_config):
        session = BrowserSession(make_config(keep_open=True))
        browser, driver = MagicMock(), MagicMock()
        browser.close = AsyncMock()
        driver.stop = AsyncMock()
        session.browser, session.playwright = browser, driver

        await session.close(keep_open=False)

        browser.close.assert_awaited_once()
        driver.stop.assert_awaited_once()
        assert session.browser is None

    @pytest.mark.asyncio
    async def test_is_alive(self, make_config):
        session = BrowserSession(make_config())
        assert await session.is_alive() is False

        session.page = FakePage()
        assert await session.is_alive() is True

        session.page.evaluate = AsyncMock(side_effect=PlaywrightError('Target closed'))
        assert await session.is_alive() is False

    @pytest.mark.asyncio
    async def test_connect_fails_fast_without_endpoint(self, make_config, monkeypatch):
        session = BrowserSession(make_config(connect_existing=True, cdp_endpoint='http://localhost:9222'))
        probe = AsyncMock(side_effect=DriverSessionError('not reachable'))
        monkeypatch.setattr('merch_bot.browser.launcher.verify_cdp_endpoint', probe)

        with pytest.raises(DriverSessionError):
            await session.start()
        probe.assert_awaited_once_with('http://127.0.0.1:9222')
        assert session.playwright is None


class TestHumanTyping:
    def test_delay_bounds(self):
        rng = random.Random(7)
        delays = [keystroke_delay_ms(67, rng) for _ in range(500)]
        assert min(delays) >= MIN_DELAY_MS
        # Jitter is +/-50% plus an occasional pause of at most 300ms
        assert max(delays) <= 67 * 1.5 + 300

    def test_floor(self):
        class LowRandom:
            def uniform(self, low, high):
                return low

            def random(self):
                return 0.99

        assert keystroke_delay_ms(1, LowRandom()) == MIN_DELAY_MS

    @pytest.mark.asyncio
    async def test_types_each_character(self, instant_sleep):
        field = FakeElement(role='textbox', name='Username', value='old')
        page = FakePage(field)

        await type_like_human(page.get_by_role('textbox'), 'abc', rng=random.Random(3))

        assert field.clicks == 1
        assert field.fills == ['']
        assert field.presses == ['a', 'b', 'c']
        assert len(instant_sleep) == 6
