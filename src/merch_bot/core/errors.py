"""
Exception types raised across the bot.
Per-product and per-account failures are converted into recorded outcomes by
the session orchestrator; only configuration and driver errors end the run.
"""

from typing import Optional, Sequence


class MerchBotError(Exception):
    """Base class for bot errors"""


class ConfigurationError(MerchBotError):
    """Raised before any browser work when the configuration cannot be used"""


class DriverSessionError(MerchBotError):
    """Browser could not be launched, attached, or re-initialised"""


class ElementNotFound(MerchBotError):
    """No strategy produced a usable element before the timeout elapsed"""

    def __init__(self, description: str, timeout_ms: Optional[int] = None):
        self.description = description
        self.timeout_ms = timeout_ms
        suffix = f" within {timeout_ms}ms" if timeout_ms is not None else ""
        super().__init__(f"{description}: no strategy matched{suffix}")


class ProductNotFound(MerchBotError):
    def __init__(self, names: Sequence[str]):
        self.names = list(names)
        super().__init__(f"Product not found: {' | '.join(self.names)}")


class SignInError(MerchBotError):
    """Credentials rejected or sign-in not verified after the wait window"""


class RetryExhausted(MerchBotError):
    """Raised when every attempt of a retried operation failed"""

    def __init__(self, label: str, attempts: int, last_error: Optional[BaseException]):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label} failed after {attempts} attempts: {last_error}")
