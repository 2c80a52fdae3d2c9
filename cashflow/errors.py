"""Exception classes for the cash-flow engine."""


class CashflowError(Exception):
    """Base exception for all cash-flow engine errors."""
    pass


class ConfigurationError(CashflowError):
    """Raised when the engine is missing configuration it needs."""
    pass


class MissingRateError(ConfigurationError):
    """Raised when no exchange rate is known for a requested currency."""

    def __init__(self, currency: str):
        super().__init__(f"No exchange rate configured for {currency}")
        self.currency = currency


class ValidationError(CashflowError):
    """Raised when an input record fails validation."""
    pass


class InvalidRateError(ValidationError):
    """Raised when an exchange rate is zero, negative or not finite."""

    def __init__(self, currency: str, rate):
        super().__init__(f"Invalid exchange rate for {currency}: {rate!r}")
        self.currency = currency
        self.rate = rate


class DateParseError(ValidationError):
    """Raised when a date value cannot be parsed."""
    pass
