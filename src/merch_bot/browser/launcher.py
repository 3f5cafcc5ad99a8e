"""
Browser session management
Attach to a running browser over CDP, or launch Brave (falling back to the
bundled Chromium) with stealth patches applied.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import aiohttp
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright
from playwright_stealth import stealth_async

from merch_bot.core.config import BotConfig
from merch_bot.core.errors import DriverSessionError

logger = logging.getLogger(__name__)

CONNECT_BACKOFFS_S = (0.5, 1, 2, 4, 8)
CDP_PROBE_TIMEOUT_S = 5

VIEWPORT = {'width': 1920, 'height': 1080}
LOCALE = 'en-US'
TIMEZONE = 'America/New_York'
LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',  # Hide automation flag
    '--no-sandbox',
    '--disable-dev-shm-usage',
]

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
"""

DEFAULT_BRAVE_PATHS = (
    'C:/Program Files/BraveSoftware/Brave-Browser/Application/brave.exe',
    '/Applications/Brave Browser.app/Contents/MacOS/Brave Browser',
    '/usr/bin/brave-browser',
    '/usr/bin/brave',
)


def normalize_endpoint(endpoint: str) -> str:
    # localhost may resolve to ::1 while the debug port only listens on IPv4
    return endpoint.rstrip('/').replace('://localhost', '://127.0.0.1')


async def verify_cdp_endpoint(endpoint: str) -> Dict[str, Any]:
    """
    Check that a browser debugging endpoint answers /json/version.

    Returns:
        The version payload reported by the browser

    Raises:
        DriverSessionError: endpoint unreachable or not a CDP endpoint
    """
    url = f"{normalize_endpoint(endpoint)}/json/version"
    timeout = aiohttp.ClientTimeout(total=CDP_PROBE_TIMEOUT_S)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                if response.status != 200:
                    raise DriverSessionError(f"CDP endpoint {url} answered HTTP {response.status}")
                payload = await response.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise DriverSessionError(f"CDP endpoint {url} not reachable: {e}") from e

    logger.info(f"✅ CDP endpoint alive: {payload.get('Browser', 'unknown browser')}")
    return payload


def log_debug_browser_instructions(endpoint: str) -> None:
    port = normalize_endpoint(endpoint).rsplit(':', 1)[-1]
    logger.info("=== BROWSER DEBUG MODE NOT DETECTED ===")
    logger.info("To attach to your own browser:")
    logger.info("  1. Close ALL windows of the browser")
    logger.info(f"  2. Start it with --remote-debugging-port={port} --user-data-dir=<profile dir>")
    logger.info("  3. Open the store and sign in")
    logger.info("  4. Run the bot again with CONNECT_EXISTING=1")
    logger.info("NOTE: --user-data-dir is required for --remote-debugging-port to work")


class BrowserSession:
    """Owns the Playwright driver, browser/context and the page the bot drives"""

    def __init__(self, config: BotConfig):
        self.config = config
        self.playwright = None
        self.browser = None
        self.context = None
        self.page = None
        self.connected_over_cdp = False

    async def start(self):
        """Attach or launch depending on configuration; returns the page"""
        if self.config.connect_existing:
            return await self.connect()
        return await self.launch()

    async def connect(self):
        endpoint = normalize_endpoint(self.config.cdp_endpoint)
        try:
            await verify_cdp_endpoint(endpoint)
        except DriverSessionError:
            log_debug_browser_instructions(endpoint)
            raise

        self.playwright = await async_playwright().start()
        last_error: Optional[Exception] = None
        for attempt, delay in enumerate(CONNECT_BACKOFFS_S, start=1):
            try:
                self.browser = await self.playwright.chromium.connect_over_cdp(endpoint)
                break
            except PlaywrightError as e:
                last_error = e
                logger.warning(f"⚠️ CDP connect attempt {attempt}/{len(CONNECT_BACKOFFS_S)} failed: {e}")
                await asyncio.sleep(delay)
        else:
            await self._stop_driver()
            raise DriverSessionError(f"Could not attach to {endpoint}: {last_error}")

        self.connected_over_cdp = True
        contexts = self.browser.contexts
        self.context = contexts[0] if contexts else await self.browser.new_context()
        pages = self.context.pages
        self.page = pages[0] if pages else await self.context.new_page()
        logger.info(f"✅ Attached to existing browser at {endpoint}")
        return self.page

    def _browser_executable(self) -> Optional[str]:
        if self.config.browser_path:
            if Path(self.config.browser_path).exists():
                return self.config.browser_path
            logger.warning(f"⚠️ BRAVE_PATH not found: {self.config.browser_path}")
            return None
        for candidate in DEFAULT_BRAVE_PATHS:
            if Path(candidate).exists():
                return candidate
        return None

    async def launch(self, fresh_context: bool = False):
        self.playwright = self.playwright or await async_playwright().start()
        chromium = self.playwright.chromium
        executable = self._browser_executable()
        user_data_dir = Path(self.config.user_data_dir) if self.config.user_data_dir else None
        context_options = {'viewport': VIEWPORT, 'locale': LOCALE, 'timezone_id': TIMEZONE}

        try:
            if user_data_dir and user_data_dir.exists() and not fresh_context:
                logger.info(f"Launching with persistent profile: {user_data_dir}")
                self.context = await chromium.launch_persistent_context(
                    user_data_dir=str(user_data_dir),
                    executable_path=executable,
                    headless=self.config.headless,
                    args=LAUNCH_ARGS + [f'--profile-directory={self.config.profile_dir}'],
                    **context_options,
                )
                self.browser = None
            else:
                self.browser = await self._launch_browser(chromium, executable)
                self.context = await self.browser.new_context(**context_options)
        except PlaywrightError as e:
            await self._stop_driver()
            raise DriverSessionError(f"Browser launch failed: {e}") from e

        await self.context.add_init_script(STEALTH_INIT_SCRIPT)
        pages = self.context.pages
        self.page = pages[0] if pages else await self.context.new_page()
        await stealth_async(self.page)
        logger.info("✅ Browser ready")
        return self.page

    async def _launch_browser(self, chromium, executable: Optional[str]):
        if executable:
            try:
                browser = await chromium.launch(executable_path=executable,
                                                headless=self.config.headless, args=LAUNCH_ARGS)
                logger.info(f"✅ Launched Brave from {executable}")
                return browser
            except PlaywrightError as e:
                logger.warning(f"⚠️ Failed to launch Brave ({e}), falling back to Chromium")
        else:
            logger.info("Brave not configured or not found, using Chromium")
        return await chromium.launch(headless=self.config.headless, args=LAUNCH_ARGS)

    async def new_context_page(self):
        """Fresh cookie jar for the next account (launch mode only)"""
        if self.connected_over_cdp or self.browser is None:
            return self.page
        old_context = self.context
        self.context = await self.browser.new_context(viewport=VIEWPORT, locale=LOCALE, timezone_id=TIMEZONE)
        await self.context.add_init_script(STEALTH_INIT_SCRIPT)
        self.page = await self.context.new_page()
        await stealth_async(self.page)
        try:
            await old_context.close()
        except PlaywrightError as e:
            logger.debug(f"Closing previous context failed: {e}")
        return self.page

    async def is_alive(self) -> bool:
        if self.page is None or self.page.is_closed():
            return False
        try:
            return await self.page.evaluate('() => 1 + 1') == 2
        except PlaywrightError:
            return False

    async def reinitialize(self):
        """Tear down whatever is left of the session and start again"""
        logger.warning("♻️ Browser session lost, reinitialising")
        await self.close(keep_open=False)
        return await self.start()

    async def close(self, keep_open: Optional[bool] = None) -> None:
        keep_open = self.config.keep_open if keep_open is None else keep_open
        try:
            if self.connected_over_cdp:
                # Never close the user's own browser
                logger.info("Disconnecting from browser (left running)")
                if self.browser is not None:
                    await self.browser.close()
            elif keep_open:
                logger.info("KEEP_OPEN set, leaving browser open")
                return
            elif self.browser is not None:
                await self.browser.close()
            elif self.context is not None:
                await self.context.close()
        except PlaywrightError as e:
            logger.debug(f"Browser close failed: {e}")
        finally:
            if not keep_open or self.connected_over_cdp:
                self.browser = self.context = self.page = None
                self.connected_over_cdp = False
                await self._stop_driver()

    async def _stop_driver(self) -> None:
        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except PlaywrightError as e:
                logger.debug(f"Stopping Playwright failed: {e}")
            self.playwright = None

    async def wait_until_closed(self) -> None:
        """Block until the user closes the window the bot was driving"""
        if self.page is None or self.page.is_closed():
            return
        logger.info("👀 Browser left open. Close the window or press Ctrl+C to exit.")
        try:
            await self.page.wait_for_event('close', timeout=0)
        except PlaywrightError as e:
            logger.debug(f"Stopped waiting for browser close: {e}")
