"""
Data models shared by the bot components.
Configuration-sourced records are frozen pydantic models; outcomes are built
by the components and collected by the session orchestrator.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from merch_bot.utils.sanitize import mask_sensitive


class ProductRequest(BaseModel):
    """One configured product: synonyms (most preferred first) and quantity"""
    model_config = ConfigDict(frozen=True)

    names: List[str] = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)

    @field_validator('names')
    @classmethod
    def _strip_names(cls, value: List[str]) -> List[str]:
        names = [n.strip() for n in value if n and n.strip()]
        if not names:
            raise ValueError('at least one non-empty product name is required')
        return names

    @property
    def primary_name(self) -> str:
        return self.names[0]


class OutcomeKind(str, Enum):
    SUCCESS = 'success'
    OUT_OF_STOCK = 'out_of_stock'
    LIMIT_REACHED = 'limit_reached'
    NOT_FOUND = 'not_found'
    ERROR = 'error'


class ProductOutcome(BaseModel):
    """Terminal classification of one product insertion attempt"""
    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    product: str = ''
    message: str = ''

    @classmethod
    def success(cls, product: str = '') -> 'ProductOutcome':
        return cls(kind=OutcomeKind.SUCCESS, product=product)

    @classmethod
    def out_of_stock(cls, product: str = '') -> 'ProductOutcome':
        return cls(kind=OutcomeKind.OUT_OF_STOCK, product=product, message='Sold out')

    @classmethod
    def limit_reached(cls, message: str, product: str = '') -> 'ProductOutcome':
        return cls(kind=OutcomeKind.LIMIT_REACHED, product=product, message=message)

    @classmethod
    def not_found(cls, product: str = '') -> 'ProductOutcome':
        return cls(kind=OutcomeKind.NOT_FOUND, product=product, message='Product not found')

    @classmethod
    def error(cls, message: str, product: str = '') -> 'ProductOutcome':
        return cls(kind=OutcomeKind.ERROR, product=product, message=message)

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


class Account(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    password: SecretStr

    @property
    def masked_username(self) -> str:
        return mask_sensitive(self.username)


class AccountStatus(str, Enum):
    SUCCESS = 'success'
    OUT_OF_STOCK = 'out_of_stock'
    LIMIT_REACHED = 'limit_reached'
    ERROR = 'error'


class AccountResult(BaseModel):
    """Final per-account entry of the run report"""
    model_config = ConfigDict(populate_by_name=True)

    index: int = Field(alias='accountIndex')
    masked_username: str = Field(alias='username')
    status: AccountStatus
    message: str = ''
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    outcomes: List[ProductOutcome] = Field(default_factory=list)

    def to_record(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)


class CheckoutProfile(BaseModel):
    """Contact and shipping fields. An empty value means "do not fill"."""
    model_config = ConfigDict(frozen=True)

    email: str = ''
    first_name: str = ''
    last_name: str = ''
    phone: str = ''
    address1: str = ''
    address2: str = ''
    city: str = ''
    state: str = ''
    zip: str = ''
    country: str = 'United States'


class PaymentProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    card_number: str = ''
    card_name: str = ''
    exp_month: str = ''
    exp_year: str = ''
    cvv: str = ''

    @property
    def combined_expiry(self) -> Optional[str]:
        """Expiry as MM/YY, or None when either half is missing"""
        if not self.exp_month or not self.exp_year:
            return None
        month = self.exp_month.zfill(2)
        year = self.exp_year[-2:]
        return f"{month}/{year}"
