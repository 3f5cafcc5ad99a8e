#!/usr/bin/env python3
"""
Merch Bot entry point.

Examples:
  # Look at the store without touching anything (default)
  merch-bot

  # Find products and add them to the cart
  merch-bot --no-dry-run

  # Go through checkout and stop at the review page
  merch-bot --no-dry-run --checkout

  # Attach to a browser started with --remote-debugging-port=9222
  merch-bot --no-dry-run --connect
"""

import argparse
import asyncio
import logging
import sys
from typing import Callable, List, Optional

from playwright.async_api import Error as PlaywrightError

from merch_bot.browser.launcher import BrowserSession
from merch_bot.core.config import BotConfig, validate_config
from merch_bot.core.errors import ConfigurationError, DriverSessionError
from merch_bot.core.models import AccountResult
from merch_bot.core.run_context import RunContext
from merch_bot.orchestrator import SessionOrchestrator, build_components, format_report
from merch_bot.utils.logger_config import attach_run_log, setup_logger

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Merch store purchasing bot',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    flag = argparse.BooleanOptionalAction
    parser.add_argument('--dry-run', action=flag, default=None,
                        help='Only open the store and take a screenshot (env: DRY_RUN)')
    parser.add_argument('--checkout', action=flag, default=None,
                        help='Go through checkout after adding products (env: CHECKOUT_ENABLED)')
    parser.add_argument('--full-send', action=flag, default=None,
                        help='Actually place the order (env: FULL_SEND)')
    parser.add_argument('--headless', action=flag, default=None,
                        help='Run the browser headless (env: HEADLESS)')
    parser.add_argument('--connect', action=flag, default=None,
                        help='Attach to a running browser over CDP (env: CONNECT_EXISTING)')
    parser.add_argument('--keep-open', action=flag, default=None,
                        help='Leave the browser open when done (env: KEEP_OPEN)')
    parser.add_argument('--max-accounts', type=int, default=None,
                        help='Use at most N configured accounts')
    parser.add_argument('--debug', action='store_true', help='Verbose logging')
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace, base: Optional[BotConfig] = None) -> BotConfig:
    config = base or BotConfig.from_env()
    config = config.with_overrides(
        dry_run=args.dry_run,
        checkout_enabled=args.checkout,
        full_send=args.full_send,
        headless=args.headless,
        connect_existing=args.connect,
        keep_open=args.keep_open,
    )
    if args.max_accounts is not None and args.max_accounts > 0:
        config = config.with_overrides(accounts=config.accounts[:args.max_accounts])
    return config


async def run_bot(config: BotConfig, session: Optional[BrowserSession] = None,
                  component_factory: Callable = build_components) -> int:
    """
    Run the bot once.

    Returns:
        Process exit code: 0 when the run completed (whatever the per-account
        outcomes), 1 on configuration or unrecoverable browser errors
    """
    try:
        validate_config(config)
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return EXIT_FATAL

    context = RunContext(config.logs_dir, config.screens_dir)
    context.prepare()
    attach_run_log(context.run_dir)
    logger.info(f"🚀 Run {context.run_id} started (output: {context.run_dir})")

    session = session or BrowserSession(config)
    orchestrator = SessionOrchestrator(config, context, session, component_factory)
    exit_code = EXIT_OK
    results: List[AccountResult] = []
    keep_open: Optional[bool] = None

    try:
        try:
            results = await orchestrator.run()
        except DriverSessionError as e:
            logger.error(f"❌ Browser session failure: {e}")
            results = orchestrator.results
            exit_code = EXIT_FATAL
        except PlaywrightError as e:
            # Navigation outside a per-account step, e.g. the store root is unreachable
            logger.error(f"❌ Navigation failure: {e}")
            await orchestrator.capture_fatal_state(e)
            results = orchestrator.results
            exit_code = EXIT_FATAL
            keep_open = False
        except asyncio.CancelledError:
            logger.warning("🛑 Interrupted, saving what we have")
            keep_open = False
            await orchestrator.capture_interrupt_state()
            raise

        print(format_report(results))
        context.save_account_results(results)

        if exit_code == EXIT_OK and config.keep_open and not session.connected_over_cdp:
            await session.wait_until_closed()
    finally:
        await session.close(keep_open=keep_open)
    return exit_code


async def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logger(level=logging.DEBUG if args.debug else logging.INFO)
    return await run_bot(config_from_args(args))


def run() -> None:
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        exit_code = EXIT_INTERRUPTED
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
