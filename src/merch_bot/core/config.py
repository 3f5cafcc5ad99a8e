import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from merch_bot.core.errors import ConfigurationError
from merch_bot.core.models import Account, CheckoutProfile, PaymentProfile, ProductRequest

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_URL = 'https://merch.riotgames.com'
DEFAULT_CDP_ENDPOINT = 'http://127.0.0.1:9222'
MAX_PRODUCT_SLOTS = 5
MAX_NUMBERED_ACCOUNTS = 20


def get_project_root() -> Path:
    # src/merch_bot/core/ -> src/merch_bot/ -> src/ -> root
    return Path(__file__).parent.parent.parent.parent


def get_string(name: str, default: str = '') -> str:
    """Read a string variable, stripping one pair of surrounding quotes"""
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1].strip()
    return value if value else default


def get_bool(name: str, default: bool = False) -> bool:
    value = get_string(name)
    if not value:
        return default
    return value.lower() in ('1', 'true')


def get_int(name: str, default: int) -> int:
    value = get_string(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"⚠️ {name}={value!r} is not an integer, using {default}")
        return default


def get_float(name: str, default: float) -> float:
    value = get_string(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"⚠️ {name}={value!r} is not a number, using {default}")
        return default


def parse_accounts() -> List[Account]:
    """
    Accounts come from RIOT_ACCOUNTS (JSON list) or RIOT_USER_i / RIOT_PASS_i pairs.

    Returns:
        Accounts in configuration order, truncated to MAX_ACCOUNTS when set
    """
    accounts: List[Account] = []

    raw = get_string('RIOT_ACCOUNTS')
    if raw:
        try:
            entries = json.loads(raw)
            if not isinstance(entries, list):
                raise ValueError('RIOT_ACCOUNTS must be a JSON list')
            for entry in entries:
                username = entry.get('username') or entry.get('user') or entry.get('email')
                password = entry.get('password') or entry.get('pass')
                if username and password:
                    accounts.append(Account(username=username, password=password))
        except (ValueError, AttributeError) as e:
            logger.warning(f"⚠️ Could not parse RIOT_ACCOUNTS, falling back to numbered pairs: {e}")
            accounts = []

    if not accounts:
        # Gaps in numbering are allowed
        for i in range(1, MAX_NUMBERED_ACCOUNTS + 1):
            username = get_string(f'RIOT_USER_{i}')
            password = get_string(f'RIOT_PASS_{i}')
            if username and password:
                accounts.append(Account(username=username, password=password))

    max_accounts = get_int('MAX_ACCOUNTS', 0)
    if max_accounts > 0 and len(accounts) > max_accounts:
        logger.info(f"Limiting to {max_accounts} of {len(accounts)} configured accounts")
        accounts = accounts[:max_accounts]

    return accounts


def parse_products() -> List[ProductRequest]:
    """PRODUCT1..PRODUCT5 with '|'-separated synonyms and QTY1..QTY5"""
    products: List[ProductRequest] = []
    for i in range(1, MAX_PRODUCT_SLOTS + 1):
        raw = get_string(f'PRODUCT{i}')
        if not raw:
            continue
        names = [n.strip() for n in raw.split('|') if n.strip()]
        if not names:
            continue
        quantity = max(1, get_int(f'QTY{i}', 1))
        products.append(ProductRequest(names=names, quantity=quantity))
    return products


class BotConfig(BaseModel):
    """Resolved bot configuration"""
    model_config = ConfigDict(frozen=True)

    url: str = DEFAULT_URL
    dry_run: bool = True
    checkout_enabled: bool = False
    full_send: bool = False
    keep_open: bool = True
    headless: bool = False

    nav_timeout_ms: int = 45000
    action_timeout_ms: int = 30000
    max_retries: int = Field(default=3, ge=1)
    fuzzy_threshold: float = Field(default=0.5, ge=0.0, le=1.0)

    connect_existing: bool = False
    cdp_endpoint: str = DEFAULT_CDP_ENDPOINT
    browser_path: str = ''
    user_data_dir: str = ''
    profile_dir: str = 'Default'
    multi_account_fresh_context: bool = False

    accounts: List[Account] = Field(default_factory=list)
    products: List[ProductRequest] = Field(default_factory=list)
    discount_code: str = ''
    checkout: CheckoutProfile = Field(default_factory=CheckoutProfile)
    payment: PaymentProfile = Field(default_factory=PaymentProfile)

    screens_dir: Path = Field(default_factory=lambda: get_project_root() / 'screens')
    logs_dir: Path = Field(default_factory=lambda: get_project_root() / 'logs')

    @classmethod
    def from_env(cls) -> 'BotConfig':
        full_send = get_bool('FULL_SEND', False)
        root = get_project_root()

        return cls(
            url=get_string('URL', DEFAULT_URL).rstrip('/'),
            dry_run=get_bool('DRY_RUN', True),
            checkout_enabled=get_bool('CHECKOUT_ENABLED', False),
            full_send=full_send,
            keep_open=get_bool('KEEP_OPEN', True),
            headless=get_bool('HEADLESS', False),
            # FULL_SEND trades patience for speed
            nav_timeout_ms=get_int('NAV_TIMEOUT_MS', 10000 if full_send else 45000),
            action_timeout_ms=get_int('ACTION_TIMEOUT_MS', 5000 if full_send else 30000),
            max_retries=max(1, get_int('MAX_RETRIES', 2 if full_send else 3)),
            fuzzy_threshold=get_float('FUZZY_THRESHOLD', 0.5),
            connect_existing=get_bool('CONNECT_EXISTING', False),
            cdp_endpoint=get_string('CDP_ENDPOINT', DEFAULT_CDP_ENDPOINT),
            browser_path=get_string('BRAVE_PATH'),
            user_data_dir=get_string('USER_DATA_DIR'),
            profile_dir=get_string('PROFILE_DIR', 'Default'),
            multi_account_fresh_context=get_bool('MULTI_ACCOUNT_FRESH_CONTEXT', False),
            accounts=parse_accounts(),
            products=parse_products(),
            discount_code=get_string('DISCOUNT_CODE'),
            checkout=CheckoutProfile(
                email=get_string('EMAIL'),
                first_name=get_string('FIRST_NAME'),
                last_name=get_string('LAST_NAME'),
                phone=get_string('PHONE'),
                address1=get_string('ADDRESS1'),
                address2=get_string('ADDRESS2'),
                city=get_string('CITY'),
                state=get_string('STATE'),
                zip=get_string('ZIP'),
                country=get_string('COUNTRY', 'United States'),
            ),
            payment=PaymentProfile(
                card_number=get_string('CARD_NUMBER'),
                card_name=get_string('CARD_NAME'),
                exp_month=get_string('CARD_EXP_MONTH'),
                exp_year=get_string('CARD_EXP_YEAR'),
                cvv=get_string('CARD_CVV'),
            ),
            screens_dir=Path(get_string('SCREENS_DIR', str(root / 'screens'))),
            logs_dir=Path(get_string('LOGS_DIR', str(root / 'logs'))),
        )

    def with_overrides(self, **overrides) -> 'BotConfig':
        """Copy with CLI overrides applied (None values are ignored)"""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return self.model_copy(update=changes) if changes else self


def validate_config(config: BotConfig) -> None:
    """
    Fail fast on unusable configuration and warn about risky flags.

    Raises:
        ConfigurationError: when no products are configured
    """
    if not config.products:
        raise ConfigurationError('No products configured. Set PRODUCT1 (and optionally PRODUCT2..PRODUCT5).')

    if config.full_send and not config.checkout_enabled:
        logger.warning("⚠️ FULL_SEND is set but CHECKOUT_ENABLED is not; checkout will not run")

    if config.full_send:
        logger.warning("=" * 70)
        logger.warning("🚨 FULL_SEND ENABLED: a real order WILL be placed if checkout is reached")
        logger.warning("=" * 70)

    for i, product in enumerate(config.products, start=1):
        logger.info(f"Product {i}: {' | '.join(product.names)} x{product.quantity}")

    if config.accounts:
        logger.info(f"Accounts configured: {len(config.accounts)}")
    else:
        logger.info("No accounts configured, running a single session")
