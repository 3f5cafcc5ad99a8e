"""End-to-end session runs against a fake storefront, plus account classification."""

import asyncio
import json

import pytest
from playwright.async_api import Error as PlaywrightError
from unittest.mock import AsyncMock, MagicMock

from fakes import FakeSession, FakeStore
from merch_bot.core.errors import DriverSessionError, SignInError
from merch_bot.core.models import Account, AccountResult, AccountStatus, ProductOutcome
from merch_bot.main import EXIT_FATAL, EXIT_OK, run_bot
from merch_bot.orchestrator import SESSION_LABEL, build_components, classify_account, format_report
from merch_bot.phase2.checkout_flow import CheckoutResult


def mock_accounts():
    accounts = MagicMock()
    accounts.sign_in = AsyncMock(return_value={'success': True, 'error': None})
    accounts.sign_out = AsyncMock(return_value=True)
    accounts.verify_signed_in_or_fail = AsyncMock()
    accounts.has_reached_purchase_limit = AsyncMock(return_value=False)
    return accounts


def mock_checkout():
    checkout = MagicMock()
    checkout.run = AsyncMock(return_value=CheckoutResult(success=True, stopped_at_review=True))
    return checkout


def factory_with(accounts, checkout):
    """Real navigation, cart and product components; mocked sign-in and checkout"""
    def factory(page, config, context):
        components = build_components(page, config, context)
        components.accounts = accounts
        components.checkout = checkout
        return components
    return factory


def saved_results(config):
    files = sorted(config.logs_dir.glob('account-results-*.json'))
    assert files, f"no account results in {config.logs_dir}"
    return json.loads(files[-1].read_text(encoding='utf-8'))


class TestSingleSession:
    @pytest.mark.asyncio
    async def test_adds_to_cart_and_stops_without_checkout(self, make_config):
        store = FakeStore(title='WNGMN Keychain')
        session = FakeSession(store.page)
        accounts, checkout = mock_accounts(), mock_checkout()
        config = make_config(checkout_enabled=False, full_send=False, accounts=[])

        exit_code = await run_bot(config, session=session, component_factory=factory_with(accounts, checkout))

        assert exit_code == EXIT_OK
        assert store.add_button.clicks == 1
        assert any('final-cart' in path for path in store.page.screenshots)
        accounts.sign_in.assert_not_awaited()
        accounts.verify_signed_in_or_fail.assert_not_awaited()
        checkout.run.assert_not_awaited()
        assert not any('checkout' in url for url in store.page.visited)
        session.close.assert_awaited_once()

        summary = saved_results(config)
        assert summary['totalAccounts'] == 1
        assert summary['successful'] == 1
        assert summary['results'][0]['username'] == SESSION_LABEL

    @pytest.mark.asyncio
    async def test_checkout_runs_when_enabled(self, make_config):
        store = FakeStore()
        accounts, checkout = mock_accounts(), mock_checkout()
        config = make_config(checkout_enabled=True)

        exit_code = await run_bot(config, session=FakeSession(store.page),
                                  component_factory=factory_with(accounts, checkout))

        assert exit_code == EXIT_OK
        checkout.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_attached_browser_must_be_signed_in(self, make_config):
        store = FakeStore()
        accounts, checkout = mock_accounts(), mock_checkout()
        accounts.verify_signed_in_or_fail.side_effect = SignInError('not signed in')
        config = make_config(connect_existing=True)

        exit_code = await run_bot(config, session=FakeSession(store.page, connected_over_cdp=True),
                                  component_factory=factory_with(accounts, checkout))

        assert exit_code == EXIT_OK
        assert store.add_button is None
        summary = saved_results(config)
        assert summary['results'][0]['status'] == 'error'

    @pytest.mark.asyncio
    async def test_dry_run_only_visits_homepage(self, make_config):
        store = FakeStore()
        accounts, checkout = mock_accounts(), mock_checkout()
        config = make_config(dry_run=True)

        exit_code = await run_bot(config, session=FakeSession(store.page),
                                  component_factory=factory_with(accounts, checkout))

        assert exit_code == EXIT_OK
        assert store.page.visited == [config.url]
        assert store.add_button is None
        assert any('dry-run-homepage' in path for path in store.page.screenshots)


class TestMultiAccount:
    @pytest.mark.asyncio
    async def test_limit_on_first_account_then_second_account_runs(self, make_config):
        store = FakeStore(limit=True)
        accounts, checkout = mock_accounts(), mock_checkout()

        async def sign_in(account):
            # Only the first account has already bought the item
            store.limit = account.username == 'first'
            return {'success': True, 'error': None}

        accounts.sign_in.side_effect = sign_in
        config = make_config(accounts=[
            Account(username='first', password='pw1'),
            Account(username='second', password='pw2'),
        ])

        exit_code = await run_bot(config, session=FakeSession(store.page),
                                  component_factory=factory_with(accounts, checkout))

        assert exit_code == EXIT_OK
        assert accounts.sign_in.await_count == 2
        assert accounts.sign_out.await_count == 2

        summary = saved_results(config)
        statuses = [r['status'] for r in summary['results']]
        assert statuses == ['limit_reached', 'success']
        assert summary['limitReached'] == 1
        assert [r['accountIndex'] for r in summary['results']] == [1, 2]
        assert any('_acc1_limit-reached' in path for path in store.page.screenshots)
        assert any('_acc2_final-cart' in path for path in store.page.screenshots)

    @pytest.mark.asyncio
    async def test_failed_sign_in_still_signs_out(self, make_config):
        store = FakeStore()
        accounts, checkout = mock_accounts(), mock_checkout()
        accounts.sign_in.return_value = {'success': False, 'error': 'Sign in button not found'}
        config = make_config(accounts=[Account(username='first', password='pw1')])

        await run_bot(config, session=FakeSession(store.page), component_factory=factory_with(accounts, checkout))

        accounts.sign_out.assert_awaited_once()
        assert store.add_button is None
        result = saved_results(config)['results'][0]
        assert result['status'] == 'error'
        assert 'Sign in button not found' in result['message']

    @pytest.mark.asyncio
    async def test_unexpected_error_is_isolated_to_account(self, make_config):
        store = FakeStore()
        accounts, checkout = mock_accounts(), mock_checkout()
        accounts.sign_in.side_effect = [RuntimeError('boom'), {'success': True, 'error': None}]
        config = make_config(accounts=[
            Account(username='first', password='pw1'),
            Account(username='second', password='pw2'),
        ])

        exit_code = await run_bot(config, session=FakeSession(store.page),
                                  component_factory=factory_with(accounts, checkout))

        assert exit_code == EXIT_OK
        statuses = [r['status'] for r in saved_results(config)['results']]
        assert statuses == ['error', 'success']
        assert accounts.sign_out.await_count == 2

    @pytest.mark.asyncio
    async def test_dead_session_reinitialised_once(self, make_config):
        store = FakeStore()
        session = FakeSession(store.page, alive=False)
        accounts, checkout = mock_accounts(), mock_checkout()
        config = make_config(accounts=[Account(username='first', password='pw1')])

        exit_code = await run_bot(config, session=session, component_factory=factory_with(accounts, checkout))

        assert exit_code == EXIT_OK
        session.reinitialize.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reinitialisation_failure_ends_run(self, make_config):
        store = FakeStore()
        session = FakeSession(store.page, alive=False)
        session.reinitialize.side_effect = DriverSessionError('browser gone')
        accounts, checkout = mock_accounts(), mock_checkout()
        config = make_config(accounts=[Account(username='first', password='pw1')])

        exit_code = await run_bot(config, session=session, component_factory=factory_with(accounts, checkout))

        assert exit_code == EXIT_FATAL
        accounts.sign_in.assert_not_awaited()
        session.close.assert_awaited()


class TestRunBot:
    @pytest.mark.asyncio
    async def test_no_products_is_fatal(self, make_config):
        store = FakeStore()
        session = FakeSession(store.page)

        exit_code = await run_bot(make_config(products=[]), session=session)

        assert exit_code == EXIT_FATAL
        session.start.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_launch_failure_is_fatal(self, make_config):
        store = FakeStore()
        session = FakeSession(store.page)
        session.start.side_effect = DriverSessionError('no browser')

        assert await run_bot(make_config(), session=session) == EXIT_FATAL

    @pytest.mark.asyncio
    async def test_interrupt_captures_state(self, make_config):
        store = FakeStore()
        session = FakeSession(store.page)
        accounts, checkout = mock_accounts(), mock_checkout()
        accounts.sign_in.side_effect = asyncio.CancelledError()
        config = make_config(accounts=[Account(username='first', password='pw1')])

        with pytest.raises(asyncio.CancelledError):
            await run_bot(config, session=session, component_factory=factory_with(accounts, checkout))

        assert any('interrupted' in path for path in store.page.screenshots)
        assert saved_results(config)['totalAccounts'] == 0
        session.close.assert_awaited_once_with(keep_open=False)
        accounts.sign_out.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreachable_store_is_fatal(self, make_config):
        store = FakeStore()
        session = FakeSession(store.page)
        store.page.goto = AsyncMock(side_effect=PlaywrightError('net::ERR_NAME_NOT_RESOLVED'))
        config = make_config(dry_run=True)

        exit_code = await run_bot(config, session=session)

        assert exit_code == EXIT_FATAL
        session.close.assert_awaited_once_with(keep_open=False)
        assert any('error-fatal' in path for path in store.page.screenshots)
        assert saved_results(config)['totalAccounts'] == 0
        assert len(list(config.logs_dir.glob('run_*/failures.jsonl'))) == 1


class TestClassifyAccount:
    def test_success_wins(self):
        outcomes = [ProductOutcome.success('A'), ProductOutcome.limit_reached('limit', 'B')]
        assert classify_account(outcomes) is AccountStatus.SUCCESS

    def test_limit_over_out_of_stock(self):
        outcomes = [ProductOutcome.out_of_stock('A'), ProductOutcome.limit_reached('limit', 'B')]
        assert classify_account(outcomes) is AccountStatus.LIMIT_REACHED

    def test_out_of_stock(self):
        assert classify_account([ProductOutcome.out_of_stock('A')]) is AccountStatus.OUT_OF_STOCK

    def test_nothing_found_is_error(self):
        assert classify_account([ProductOutcome.not_found('A')]) is AccountStatus.ERROR

    def test_checkout_limit_overrides(self):
        checkout = CheckoutResult(success=False, limit_reached=True)
        assert classify_account([ProductOutcome.success('A')], checkout) is AccountStatus.LIMIT_REACHED

    def test_limit_message_during_successful_checkout(self):
        checkout = CheckoutResult(success=True, stopped_at_review=True, limit_reached=True)
        assert classify_account([ProductOutcome.success('A')], checkout) is AccountStatus.SUCCESS

    def test_failed_checkout_is_error(self):
        checkout = CheckoutResult(success=False, message='Cart is empty')
        assert classify_account([ProductOutcome.success('A')], checkout) is AccountStatus.ERROR


def test_format_report_lists_every_account():
    results = [
        AccountResult(index=1, masked_username='****irst', status=AccountStatus.LIMIT_REACHED,
                      outcomes=[ProductOutcome.limit_reached('Limit 1 per customer', 'Keychain')]),
        AccountResult(index=2, masked_username='****cond', status=AccountStatus.SUCCESS),
    ]
    report = format_report(results)
    assert '[1] ****irst: LIMIT_REACHED' in report
    assert 'Keychain: limit_reached - Limit 1 per customer' in report
    assert 'limit_reached: 1, success: 1' in report
