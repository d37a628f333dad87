"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from restaurant_billing.core.config import (
    get_settings,
    setup_logging,
    Settings,
    EnvironmentMode,
    StoreBackend,
)
from restaurant_billing.core.exceptions import (
    BillingError,
    ValidationError,
    NotFoundError,
    InvalidTransitionError,
    ConflictError,
    PaymentProviderError,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "StoreBackend",
    "BillingError",
    "ValidationError",
    "NotFoundError",
    "InvalidTransitionError",
    "ConflictError",
    "PaymentProviderError",
]
