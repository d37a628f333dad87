"""
Card payment providers.

get_payment_service() hands out one cached provider per process, chosen by
ENV_MODE: the mock in development, Stripe in staging (test keys) and in
production (live keys). OrderService only sees BasePaymentService.

    payments = get_payment_service()
    intent = await payments.create_intent(to_minor_units(order.total), "inr")
"""

import logging
from functools import lru_cache

from restaurant_billing.core.config import get_settings
from restaurant_billing.services.payment.base import (
    BasePaymentService,
    PaymentIntentResult,
    PaymentOutcome,
    PaymentOutcomeResult,
    to_minor_units,
)
from restaurant_billing.services.payment.mock import MockPaymentService

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_service() -> BasePaymentService:
    """
    Return the provider for the current ENV_MODE.

    Cached so the mock keeps its intents between requests. Raises
    ValueError outside development when STRIPE_SECRET_KEY is unset.
    """
    settings = get_settings()

    if settings.is_development:
        logger.debug("Payment provider: mock")
        return MockPaymentService(
            failure_rate=settings.mock_payment_failure_rate,
            min_latency=settings.mock_payment_min_latency,
            max_latency=settings.mock_payment_max_latency,
        )

    from restaurant_billing.services.payment.stripe import StripePaymentService

    logger.debug(f"Payment provider: stripe ({settings.env_mode.value})")
    return StripePaymentService()


def reset_payment_service() -> None:
    """Forget the cached provider; used by tests and after config changes."""
    get_payment_service.cache_clear()


__all__ = [
    "get_payment_service",
    "reset_payment_service",
    "to_minor_units",
    "BasePaymentService",
    "PaymentIntentResult",
    "PaymentOutcome",
    "PaymentOutcomeResult",
    "MockPaymentService",
]
