import asyncio
import logging
import os

import pytest

from fakes import STORE_URL
from merch_bot.core.config import BotConfig
from merch_bot.core.models import ProductRequest
from merch_bot.core.run_context import RunContext
from merch_bot.utils.logger_config import ROOT_LOGGER_NAME

_real_sleep = asyncio.sleep

ENV_PREFIXES = (
    'URL', 'DRY_RUN', 'CHECKOUT_ENABLED', 'FULL_SEND', 'KEEP_OPEN', 'HEADLESS',
    'NAV_TIMEOUT_MS', 'ACTION_TIMEOUT_MS', 'MAX_RETRIES', 'FUZZY_THRESHOLD',
    'CONNECT_EXISTING', 'CDP_ENDPOINT', 'BRAVE_PATH', 'USER_DATA_DIR', 'PROFILE_DIR',
    'MULTI_ACCOUNT_FRESH_CONTEXT', 'RIOT_', 'MAX_ACCOUNTS', 'PRODUCT', 'QTY',
    'DISCOUNT_CODE', 'EMAIL', 'FIRST_NAME', 'LAST_NAME', 'PHONE', 'ADDRESS', 'CITY',
    'STATE', 'ZIP', 'COUNTRY', 'CARD_', 'SCREENS_DIR', 'LOGS_DIR',
)


@pytest.fixture(autouse=True)
def instant_sleep(monkeypatch):
    """Skip real waiting; the requested delays are collected for assertions"""
    delays = []

    async def fake_sleep(delay, result=None):
        delays.append(delay)
        await _real_sleep(0)
        return result

    monkeypatch.setattr(asyncio, 'sleep', fake_sleep)
    return delays


@pytest.fixture(autouse=True)
def detach_run_logs():
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()


@pytest.fixture
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith(ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def run_context(tmp_path):
    context = RunContext(tmp_path / 'logs', tmp_path / 'screens', run_id='test')
    context.prepare()
    return context


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        values = {
            'url': STORE_URL,
            'dry_run': False,
            'keep_open': False,
            'action_timeout_ms': 1000,
            'products': [ProductRequest(names=['Wingman Keychain', 'WNGMN Keychain'])],
            'screens_dir': tmp_path / 'screens',
            'logs_dir': tmp_path / 'logs',
        }
        values.update(overrides)
        return BotConfig(**values)
    return _make
