"""
Product Discovery & Cart Insertion
Finds a configured product through category navigation, homepage listing,
shop listing and search (in that order), then adds it to the cart and
classifies the outcome.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from merch_bot.core.config import BotConfig
from merch_bot.core.errors import ProductNotFound, RetryExhausted
from merch_bot.core.models import ProductOutcome, ProductRequest
from merch_bot.core.run_context import RunContext
from merch_bot.dom import selectors as SEL
from merch_bot.dom.messages import find_purchase_limit
from merch_bot.dom.resolver import ElementResolver
from merch_bot.navigation.navigator import NavigationController
from merch_bot.phase1.cart_controller import CartController
from merch_bot.utils.retry import with_retry
from merch_bot.utils.text_matcher import MatchCandidate, best_score, match, rank_candidates

logger = logging.getLogger(__name__)

MAX_LOAD_ITERATIONS = 10
TOP_CANDIDATES = 5

GAME_KEYWORDS = (
    (('valorant', 'vlrnt', 'valo', 'frgmt', 'wngmn'), 'VALORANT'),
    (('league', 'lol', 'legends', 'arcane'), 'LEAGUE OF LEGENDS'),
    (('tft', 'teamfight'), 'TEAMFIGHT TACTICS'),
    (('wild rift', 'wildrift'), 'WILD RIFT'),
    (('lor', 'runeterra'), 'LEGENDS OF RUNETERRA'),
)


def detect_game(product_name: str) -> Optional[str]:
    """Map a product name to its storefront game category"""
    lowered = (product_name or '').lower()
    for keywords, game in GAME_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return game
    return None


class ProductHandler:
    def __init__(self, page, resolver: ElementResolver, config: BotConfig,
                 navigator: NavigationController, cart: CartController, context: RunContext):
        self.page = page
        self.resolver = resolver
        self.config = config
        self.navigator = navigator
        self.cart = cart
        self.context = context

    async def process_all_products(self, products: Sequence[ProductRequest]) -> List[ProductOutcome]:
        """One outcome per configured product, in configuration order"""
        outcomes = []
        for product in products:
            outcomes.append(await self.process_product(product))
            await self.cart.close_if_open()
        return outcomes

    async def process_product(self, product: ProductRequest) -> ProductOutcome:
        name = product.primary_name
        logger.info(f"📦 Processing product: {name} x{product.quantity}")

        async def attempt() -> ProductOutcome:
            outcome = await self.find_and_add_product(product)
            if outcome is None:
                raise ProductNotFound(product.names)
            return outcome

        try:
            outcome = await with_retry(
                attempt,
                self.config.max_retries,
                f"Adding {name[:30]}",
                capture=lambda label: self.context.screenshot(self.page, label),
            )
        except RetryExhausted as e:
            self.context.record_failure(f"add-product:{name}", e.last_error, self._current_url())
            if isinstance(e.last_error, ProductNotFound):
                logger.error(f"❌ Product not found: {name}")
                return ProductOutcome.not_found(name)
            logger.error(f"❌ Failed to add '{name}': {e.last_error}")
            return ProductOutcome.error(str(e.last_error), name)

        if outcome.is_success:
            logger.info(f"✅ Added to cart: {name} x{product.quantity}")
        else:
            logger.warning(f"⚠️ {name}: {outcome.kind.value} {outcome.message}".rstrip())
        return outcome

    async def find_and_add_product(self, product: ProductRequest) -> Optional[ProductOutcome]:
        """
        Run the browse strategies until one listing contains the product.

        Returns:
            The insertion outcome, or None if no strategy found the product
        """
        names = product.names

        # STRATEGY 1: Game category from the top nav
        logger.info("[Strategy 1] Navigating by game category")
        if await self._navigate_to_game_category(product.primary_name):
            await self._load_all_products()
            card = await self._find_product_in_listing(names)
            if card is not None:
                return await self._add_product_to_cart(card, product)

        # STRATEGY 2: Homepage listing
        logger.info("[Strategy 2] Browsing from homepage")
        await self.navigator.go_to_homepage()
        await self._load_all_products()
        card = await self._find_product_in_listing(names)
        if card is not None:
            return await self._add_product_to_cart(card, product)

        # STRATEGY 3: All products listing
        logger.info("[Strategy 3] Navigating to all products")
        if await self.navigator.go_to_shop():
            await self._load_all_products()
            card = await self._find_product_in_listing(names)
            if card is not None:
                return await self._add_product_to_cart(card, product)

        # STRATEGY 4: Search, one synonym at a time
        logger.info("[Strategy 4] Using search as fallback")
        for name in names:
            if not await self.navigator.search_for_product(name):
                continue
            card = await self._find_product_in_listing(names)
            if card is not None:
                return await self._add_product_to_cart(card, product)

        logger.warning("⚠️ Product not found with any strategy")
        return None

    async def _navigate_to_game_category(self, product_name: str) -> bool:
        game = detect_game(product_name)
        if not game:
            logger.info("Could not determine game category from product name")
            return False

        logger.info(f"Navigating to game category: {game}")

        menu = await self.resolver.probe(SEL.CATEGORY_MENU)
        if menu:
            try:
                await menu.handle.hover(timeout=self.config.action_timeout_ms)
                await asyncio.sleep(1)
            except PlaywrightError as e:
                logger.debug(f"Hover on categories menu failed: {e}")
        else:
            logger.warning("⚠️ Could not find CATEGORIES menu in top nav")

        if not await self.resolver.click_first(SEL.game_link_strategies(game), f'{game} category link'):
            logger.warning(f"⚠️ Could not navigate to {game} category")
            return False

        self.navigator.consent.reset()
        await self.navigator.wait_for_quiescence()
        logger.info(f"✅ Navigated to {game} category")
        return True

    async def _product_cards(self):
        """Card locator from the first card strategy that matches anything"""
        for strategy in SEL.PRODUCT_CARD:
            try:
                cards = strategy.locate(self.page)
                if await cards.count() > 0:
                    return cards
            except PlaywrightError:
                continue
        return None

    async def _count_products(self) -> int:
        cards = await self._product_cards()
        if cards is None:
            return 0
        try:
            return await cards.count()
        except PlaywrightError:
            return 0

    async def _load_all_products(self) -> int:
        """
        Click "load more" or scroll until the card count stops changing.

        Returns:
            Number of load iterations performed (at most MAX_LOAD_ITERATIONS)
        """
        logger.info("Loading all products (pagination/scroll)")
        previous = 0
        iterations = 0

        while iterations < MAX_LOAD_ITERATIONS:
            current = await self._count_products()
            if iterations > 0 and current == previous:
                logger.info(f"All products loaded: {current} items")
                break
            previous = current

            if not await self.resolver.click_first(SEL.LOAD_MORE, 'load more'):
                await self.navigator.scroll_to_bottom()
                await asyncio.sleep(1.5)

            iterations += 1
            await asyncio.sleep(1)
        else:
            logger.info(f"Stopped loading after {MAX_LOAD_ITERATIONS} iterations ({previous} items)")

        return iterations

    async def _get_product_title(self, card) -> Optional[str]:
        for selector in SEL.PRODUCT_TITLE_SELECTORS:
            try:
                title = card.locator(selector).first
                if await title.count() > 0:
                    content = (await title.text_content() or '').strip()
                    if content:
                        return content
            except PlaywrightError:
                continue

        # Fall back to the first line of the card text
        try:
            content = await card.text_content() or ''
        except PlaywrightError:
            return None
        for line in content.splitlines():
            if line.strip():
                return line.strip()
        return None

    async def _find_product_in_listing(self, names: Sequence[str]):
        """
        Scan the current listing and return the first card matching any name.
        When nothing matches the best candidates are logged and captured.
        """
        await asyncio.sleep(1)

        cards = await self._product_cards()
        if cards is None:
            logger.warning("⚠️ No product cards found on page")
            await self.context.screenshot(self.page, 'product-search-no-cards')
            return None

        count = await cards.count()
        logger.debug(f"Found {count} product cards")
        candidates: List[MatchCandidate] = []

        for i in range(count):
            card = cards.nth(i)
            try:
                if not await card.is_visible():
                    continue
                title = await self._get_product_title(card)
            except PlaywrightError as e:
                logger.debug(f"Error checking card {i}: {e}")
                continue
            if not title:
                continue

            score, against = best_score(title, names)
            candidates.append(MatchCandidate(label=title, score=score, matched_against=against, index=i))

            result = match(title, names, self.config.fuzzy_threshold)
            if result.matched:
                logger.info(f"✅ Found product: \"{title}\" (score: {result.score:.2f}, matched: \"{result.matched_name}\")")
                return card

        await self._log_top_candidates(names, candidates)
        return None

    async def _log_top_candidates(self, names: Sequence[str], candidates: List[MatchCandidate]) -> None:
        logger.warning(f"⚠️ Product not in listing. Searched for: \"{' | '.join(names)}\"")
        logger.warning(f"Fuzzy threshold: {self.config.fuzzy_threshold}")

        if not candidates:
            logger.warning("No product titles could be extracted from cards")
            await self.context.screenshot(self.page, 'product-search-failed-no-titles')
            return

        top = rank_candidates(candidates, TOP_CANDIDATES)
        logger.info(f"Top {len(top)} candidate matches:")
        for position, candidate in enumerate(top, start=1):
            logger.info(f"  {position}. \"{candidate.label}\" (score: {candidate.score:.3f} vs \"{candidate.matched_against}\")")
        await self.context.screenshot(self.page, 'product-search-failed-with-candidates')

    async def _open_product_page(self, card) -> None:
        link = await self.resolver.probe(SEL.PRODUCT_LINK, root=card)
        target = link.handle if link else card
        await target.click(timeout=self.config.action_timeout_ms)
        self.navigator.consent.reset()
        await self.navigator.wait_for_quiescence()

    async def _is_sold_out(self) -> bool:
        if await self.resolver.exists(SEL.SOLD_OUT):
            return True
        label = await self.resolver.read_text(SEL.ADD_BUTTON_LABEL)
        return bool(label and SEL.SOLD_OUT_TEXT.search(label))

    async def _set_quantity(self, quantity: int) -> bool:
        logger.info(f"Setting quantity to {quantity}")

        field = await self.resolver.fill_first(SEL.QUANTITY_INPUT, str(quantity), 'quantity input')
        if field:
            logger.info(f"✅ Set quantity via input to {quantity}")
            return True

        button = await self.resolver.resolve(SEL.QUANTITY_INCREASE, require_enabled=True)
        if button is None:
            logger.warning("⚠️ Could not set quantity, using default")
            return False

        for _ in range(1, quantity):
            await button.click(timeout=self.config.action_timeout_ms)
            await asyncio.sleep(0.2)
        logger.info(f"✅ Set quantity via button clicks to {quantity}")
        return True

    async def _add_product_to_cart(self, card, product: ProductRequest) -> ProductOutcome:
        name = product.primary_name
        logger.info("Opening product page")
        await self._open_product_page(card)

        if await self._is_sold_out():
            logger.warning(f"⚠️ Product is sold out: {name}")
            await self.context.screenshot(self.page, f'sold-out-{name}')
            return ProductOutcome.out_of_stock(name)

        if product.quantity > 1:
            await self._set_quantity(product.quantity)

        # ElementNotFound propagates so the retry executor tries again
        await self.resolver.click_with_fallback(SEL.ADD_TO_CART, 'Add to Cart', self.config.action_timeout_ms)
        await asyncio.sleep(1)

        limit_message = await find_purchase_limit(self.page)
        if limit_message:
            logger.warning(f"🚫 Purchase limit reached: {limit_message}")
            await self.context.screenshot(self.page, f'limit-reached-{name}')
            return ProductOutcome.limit_reached(limit_message, name)

        if await self.resolver.exists(SEL.ADDED_CONFIRMATION):
            logger.info("Add-to-cart confirmation detected")
        else:
            # Many storefronts add silently
            logger.info("No add-to-cart confirmation seen, treating as added")
        return ProductOutcome.success(name)

    def _current_url(self) -> str:
        try:
            return self.page.url
        except PlaywrightError:
            return ''
