"""
Session Orchestrator
Drives one browser session through every configured account (or a single
anonymous session), recording exactly one AccountResult per account.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from merch_bot.auth.account_controller import AccountController
from merch_bot.browser.launcher import BrowserSession
from merch_bot.core.config import BotConfig
from merch_bot.core.errors import DriverSessionError, SignInError
from merch_bot.core.models import (Account, AccountResult, AccountStatus, OutcomeKind,
                                   ProductOutcome)
from merch_bot.core.run_context import RunContext
from merch_bot.dom.resolver import ElementResolver
from merch_bot.navigation.navigator import NavigationController
from merch_bot.phase1.cart_controller import CartController
from merch_bot.phase1.product_handler import ProductHandler
from merch_bot.phase2.checkout_flow import CheckoutOrchestrator, CheckoutResult

logger = logging.getLogger(__name__)

SESSION_LABEL = 'current-session'
INTERRUPT_CAPTURE_TIMEOUT_S = 5


@dataclass
class Components:
    page: object
    resolver: ElementResolver
    navigator: NavigationController
    cart: CartController
    products: ProductHandler
    accounts: AccountController
    checkout: CheckoutOrchestrator


def build_components(page, config: BotConfig, context: RunContext) -> Components:
    resolver = ElementResolver(page, action_timeout_ms=config.action_timeout_ms)
    navigator = NavigationController(page, resolver, config)
    cart = CartController(page, resolver, config, navigator, context)
    products = ProductHandler(page, resolver, config, navigator, cart, context)
    accounts = AccountController(page, resolver, config, navigator, context)
    checkout = CheckoutOrchestrator(page, resolver, config, navigator, cart, accounts, context)
    return Components(page, resolver, navigator, cart, products, accounts, checkout)


def classify_account(outcomes: List[ProductOutcome],
                     checkout: Optional[CheckoutResult] = None) -> AccountStatus:
    """Collapse product outcomes and the checkout result into one account status"""
    kinds = {o.kind for o in outcomes}

    if checkout is not None and checkout.limit_reached and not checkout.success:
        return AccountStatus.LIMIT_REACHED
    if OutcomeKind.SUCCESS in kinds:
        if checkout is not None and not checkout.success:
            return AccountStatus.ERROR
        return AccountStatus.SUCCESS
    if OutcomeKind.LIMIT_REACHED in kinds:
        return AccountStatus.LIMIT_REACHED
    if OutcomeKind.OUT_OF_STOCK in kinds:
        return AccountStatus.OUT_OF_STOCK
    return AccountStatus.ERROR


def describe_outcomes(outcomes: List[ProductOutcome], checkout: Optional[CheckoutResult]) -> str:
    parts = [f"{o.product or '?'}: {o.kind.value}" + (f" ({o.message})" if o.message else '') for o in outcomes]
    if checkout is not None:
        parts.append(f"checkout: {checkout.message or ('ok' if checkout.success else 'failed')}")
    return '; '.join(parts)


class SessionOrchestrator:
    def __init__(self, config: BotConfig, context: RunContext, session: BrowserSession,
                 component_factory: Callable[..., Components] = build_components):
        self.config = config
        self.context = context
        self.session = session
        self.component_factory = component_factory
        self.components: Optional[Components] = None
        self.results: List[AccountResult] = []

    @property
    def page(self):
        return self.components.page if self.components else None

    def _bind(self, page) -> Components:
        self.components = self.component_factory(page, self.config, self.context)
        return self.components

    async def run(self) -> List[AccountResult]:
        """
        Initializing -> (per-account loop | single session) -> results.
        Cleanup is left to the caller so an interrupt can still capture state.
        """
        page = await self.session.start()
        self._bind(page)

        if self.config.dry_run:
            await self._dry_run()
            return self.results

        if self.config.accounts:
            await self._run_accounts(self.config.accounts)
        else:
            await self._run_single_session()
        return self.results

    async def _dry_run(self) -> None:
        logger.info("🔍 DRY_RUN: navigating to the store only, no interaction")
        await self.components.navigator.go_to_homepage()
        await self.context.screenshot(self.page, 'dry-run-homepage')
        logger.info("✅ DRY_RUN complete. Set DRY_RUN=0 to run the full flow.")

    async def ensure_session_alive(self) -> None:
        """Reinitialise once if the browser died; a second failure ends the run"""
        if await self.session.is_alive():
            return
        logger.warning("⚠️ Browser session is not responding")
        try:
            page = await self.session.reinitialize()
        except DriverSessionError:
            logger.error("❌ Browser reinitialisation failed")
            raise
        self._bind(page)
        logger.info("✅ Browser session restored")

    async def _run_accounts(self, accounts: List[Account]) -> None:
        total = len(accounts)
        for index, account in enumerate(accounts, start=1):
            logger.info("=" * 60)
            logger.info(f"👤 Account {index}/{total}: {account.masked_username}")
            logger.info("=" * 60)

            self.context.set_account(index)
            await self.ensure_session_alive()

            if index > 1 and self.config.multi_account_fresh_context:
                self._bind(await self.session.new_context_page())

            result = await self._process_account(index, account)
            self.results.append(result)
            logger.info(f"Account {index} finished: {result.status.value} {result.message}".rstrip())

    async def _process_account(self, index: int, account: Account) -> AccountResult:
        c = self.components
        outcomes: List[ProductOutcome] = []
        checkout: Optional[CheckoutResult] = None
        cancelled = False

        try:
            await c.navigator.go_to_homepage()

            sign_in = await c.accounts.sign_in(account)
            if not sign_in['success']:
                return self._result(index, account, AccountStatus.ERROR, f"Sign in failed: {sign_in['error']}")

            await c.cart.clear_cart()
            outcomes = await c.products.process_all_products(self.config.products)
            checkout = await self._maybe_checkout(outcomes)

            status = classify_account(outcomes, checkout)
            return self._result(index, account, status, describe_outcomes(outcomes, checkout), outcomes)

        except asyncio.CancelledError:
            # Interrupted: leave the page as it is for the capture
            cancelled = True
            raise
        except DriverSessionError:
            raise
        except Exception as e:
            logger.exception(f"❌ Account {index} failed: {e}")
            await self.context.screenshot(self.page, f'error-account-{index}')
            self.context.record_failure('account', e, self._current_url())
            return self._result(index, account, AccountStatus.ERROR, str(e), outcomes)

        finally:
            # Leave the session signed out for the next account
            if not cancelled:
                await self._sign_out_quietly(index)

    async def _sign_out_quietly(self, index: int) -> None:
        try:
            await self.components.accounts.sign_out()
        except Exception as e:
            logger.warning(f"⚠️ Sign out after account {index} failed: {e}")

    async def _maybe_checkout(self, outcomes: List[ProductOutcome]) -> Optional[CheckoutResult]:
        c = self.components
        if not any(o.is_success for o in outcomes):
            logger.warning("⚠️ Nothing added to cart, skipping checkout")
            return None

        opened = await c.cart.open_cart()
        await self.context.screenshot(self.page, 'final-cart')

        if not self.config.checkout_enabled:
            logger.info("Checkout disabled (CHECKOUT_ENABLED=0), stopping with items in cart")
            return None
        if not opened:
            await c.cart.go_to_cart_page()
        return await c.checkout.run()

    async def _run_single_session(self) -> None:
        """No accounts configured: run products, cart and checkout once"""
        c = self.components
        self.context.set_account(0)
        outcomes: List[ProductOutcome] = []
        checkout: Optional[CheckoutResult] = None

        try:
            await c.navigator.go_to_homepage()
            if self.session.connected_over_cdp:
                await c.accounts.verify_signed_in_or_fail()

            outcomes = await c.products.process_all_products(self.config.products)
            checkout = await self._maybe_checkout(outcomes)
            status = classify_account(outcomes, checkout)
            message = describe_outcomes(outcomes, checkout)
        except DriverSessionError:
            raise
        except SignInError as e:
            # No other account to fall back to
            logger.error(f"❌ {e}")
            self.context.record_failure('sign-in', e, self._current_url())
            status, message = AccountStatus.ERROR, str(e)
        except Exception as e:
            logger.exception(f"❌ Session failed: {e}")
            await self.context.screenshot(self.page, 'error-session')
            self.context.record_failure('session', e, self._current_url())
            status, message = AccountStatus.ERROR, str(e)

        self.results.append(AccountResult(index=0, masked_username=SESSION_LABEL, status=status,
                                          message=message, outcomes=outcomes))

    def _result(self, index: int, account: Account, status: AccountStatus, message: str,
                outcomes: Optional[List[ProductOutcome]] = None) -> AccountResult:
        return AccountResult(index=index, masked_username=account.masked_username, status=status,
                             message=message, outcomes=list(outcomes or []))

    def _current_url(self) -> str:
        page = self.page
        return page.url if page is not None else ''

    async def capture_fatal_state(self, error: Exception) -> None:
        await self.context.screenshot(self.page, 'error-fatal')
        self.context.record_failure('session', error, self._current_url())

    async def capture_interrupt_state(self) -> None:
        """
        Best effort on interrupt: one screenshot and one save of partial results.
        No further UI actions are attempted.
        """
        if self.page is not None:
            try:
                await asyncio.wait_for(self.context.screenshot(self.page, 'interrupted'),
                                       INTERRUPT_CAPTURE_TIMEOUT_S)
            except asyncio.TimeoutError:
                logger.warning("⚠️ Interrupt screenshot timed out")
        self.context.save_account_results(self.results)


def format_report(results: List[AccountResult]) -> str:
    lines = ['', '=' * 60, 'RUN SUMMARY', '=' * 60]
    if not results:
        lines.append('No sessions completed')
    for result in results:
        lines.append(f"[{result.index}] {result.masked_username}: {result.status.value.upper()}")
        for outcome in result.outcomes:
            detail = f" - {outcome.message}" if outcome.message else ''
            lines.append(f"      {outcome.product}: {outcome.kind.value}{detail}")
        if result.message and not result.outcomes:
            lines.append(f"      {result.message}")
    counts = {}
    for result in results:
        counts[result.status.value] = counts.get(result.status.value, 0) + 1
    if counts:
        lines.append('-' * 60)
        lines.append(', '.join(f"{k}: {v}" for k, v in sorted(counts.items())))
    lines.append('=' * 60)
    return '\n'.join(lines)
