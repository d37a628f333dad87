"""
Mock Card Payments

Stands in for Stripe when ENV_MODE=development, so the whole card flow and
the concurrency simulation run offline.

Each intent is settled the moment it is created: it succeeds, or with
probability ``failure_rate`` it is declined with one of Stripe's decline
codes. Calls sleep for a random latency between min and max. Tests pin
outcomes with set_outcome().
"""

import asyncio
import dataclasses
import json
import random
import uuid
import logging
from typing import Optional

from restaurant_billing.services.payment.base import (
    BasePaymentService,
    PaymentIntentResult,
    PaymentOutcome,
    PaymentOutcomeResult,
)

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):
    """
    In-memory payment provider with Stripe-shaped ids (pi_mock_...).

    Example:
        >>> service = MockPaymentService(failure_rate=0.0, min_latency=0, max_latency=0)
        >>> intent = await service.create_intent(49500, "inr")
        >>> (await service.retrieve_outcome(intent.payment_intent_id)).outcome
        <PaymentOutcome.SUCCEEDED: 'succeeded'>
    """

    DECLINE_REASONS = [
        ("card_declined", "Your card was declined."),
        ("insufficient_funds", "Your card has insufficient funds."),
        ("expired_card", "Your card has expired."),
        ("incorrect_cvc", "Your card's security code is incorrect."),
        ("processing_error", "An error occurred while processing your card."),
    ]

    def __init__(
        self,
        failure_rate: float = 0.10,
        min_latency: float = 0.2,
        max_latency: float = 0.8,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self._intents: dict[str, PaymentOutcomeResult] = {}

        logger.info(
            f"🧪 Mock payments enabled "
            f"(decline rate {failure_rate:.0%}, latency {min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _pause(self) -> float:
        """Sleep for a random latency; returns it in milliseconds."""
        latency = random.uniform(self.min_latency, self.max_latency)
        if latency > 0:
            await asyncio.sleep(latency)
        return latency * 1000

    def _settle(
        self,
        payment_intent_id: str,
        amount: int,
        currency: str,
        metadata: dict[str, str],
    ) -> PaymentOutcomeResult:
        outcome = PaymentOutcomeResult(
            outcome=PaymentOutcome.SUCCEEDED,
            payment_intent_id=payment_intent_id,
            amount=amount,
            currency=currency,
            metadata=metadata,
        )
        if random.random() < self.failure_rate:
            outcome.outcome = PaymentOutcome.FAILED
            outcome.error_code, outcome.error_message = random.choice(self.DECLINE_REASONS)
            logger.debug(f"Mock: {payment_intent_id} will be declined ({outcome.error_code})")
        return outcome

    def set_outcome(
        self,
        payment_intent_id: str,
        outcome: PaymentOutcome,
        error_message: Optional[str] = None,
    ) -> None:
        """Override what retrieve_outcome reports for an existing intent."""
        current = self._intents[payment_intent_id]
        current.outcome = outcome
        current.error_message = error_message
        current.error_code = None if outcome == PaymentOutcome.SUCCEEDED else outcome.value

    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[dict] = None,
    ) -> PaymentIntentResult:
        latency_ms = await self._pause()

        if amount <= 0:
            return PaymentIntentResult(
                success=False,
                currency=currency,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
                response_time_ms=latency_ms,
            )

        payment_intent_id = f"pi_mock_{uuid.uuid4().hex[:24]}"
        metadata = {key: str(value) for key, value in (metadata or {}).items()}
        self._intents[payment_intent_id] = self._settle(payment_intent_id, amount, currency, metadata)

        order_id = metadata.get("order_id", "-")
        logger.info(f"Mock: {payment_intent_id} opened for {amount} {currency.upper()} (order {order_id})")

        return PaymentIntentResult(
            success=True,
            payment_intent_id=payment_intent_id,
            # Not usable with Stripe.js
            client_secret=f"{payment_intent_id}_secret_mock",
            amount=amount,
            currency=currency,
            response_time_ms=latency_ms,
        )

    async def retrieve_outcome(self, payment_intent_id: str) -> PaymentOutcomeResult:
        await self._pause()

        outcome = self._intents.get(payment_intent_id)
        if outcome is None:
            return PaymentOutcomeResult(
                outcome=PaymentOutcome.ERROR,
                payment_intent_id=payment_intent_id,
                error_message=f"No such payment intent: {payment_intent_id}",
                error_code="resource_missing",
            )
        # Copy so callers cannot mutate the stored outcome
        return dataclasses.replace(outcome, metadata=dict(outcome.metadata))

    async def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> Optional[dict]:
        """Parse the body; there is no signature to check."""
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Mock: webhook body is not JSON")
            return None

    async def health_check(self) -> bool:
        return True
