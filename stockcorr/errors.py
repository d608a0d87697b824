"""Custom exceptions for the correlation engine."""


class StockCorrError(Exception):
    """Base exception for stockcorr errors."""
    pass


class InsufficientDataError(StockCorrError):
    """Raised when a statistic is requested over an empty series."""
    pass


class InvalidInputError(StockCorrError, ValueError):
    """Raised when input is malformed (missing series, bad symbol, NaN price)."""
    pass


class DataError(StockCorrError):
    """Raised when price data cannot be fetched or parsed."""
    pass


class CacheError(StockCorrError):
    """Raised when caching operations fail."""
    pass


class ConfigError(StockCorrError):
    """Raised when settings are missing or invalid."""
    pass
