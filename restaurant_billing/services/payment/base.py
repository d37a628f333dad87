"""
Card payment provider interface.

OrderService needs two things from a provider: create_intent, which yields
the client secret the browser confirms the card with, and retrieve_outcome,
which says whether that intent went through. Only SUCCEEDED settles an
order. MockPaymentService and StripePaymentService both implement it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# Providers charge in minor units (paise for INR, cents for USD)
MINOR_UNITS_PER_UNIT = 100


def to_minor_units(amount: int) -> int:
    """Convert a billing amount to the provider's minor unit."""
    return amount * MINOR_UNITS_PER_UNIT


class PaymentOutcome(str, Enum):
    """Terminal or in-flight state of a payment intent."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"
    CANCELED = "canceled"
    ERROR = "error"  # the provider could not be asked


@dataclass
class PaymentIntentResult:
    """
    What create_intent returns. Failures carry error_code, never raise.

    Attributes:
        success: Whether the intent was created
        payment_intent_id: Provider identifier (Stripe format: pi_xxx)
        client_secret: Secret the frontend confirms the card with
        amount: Amount in minor units
        currency: Currency code (e.g., "inr")
        error_message: Error description if creation failed
        error_code: Machine-readable error code
        response_time_ms: Time taken by the provider
    """
    success: bool
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    amount: Optional[int] = None
    currency: str = "inr"
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0


@dataclass
class PaymentOutcomeResult:
    """
    Current state of one intent as reported by the provider.

    Attributes:
        outcome: PaymentOutcome value
        payment_intent_id: The intent that was looked up
        amount: Amount received, in minor units
        currency: Currency code
        error_message: Decline reason or provider error
        error_code: Machine-readable error code
        metadata: Key-value data attached when the intent was created
    """
    outcome: PaymentOutcome
    payment_intent_id: str
    amount: Optional[int] = None
    currency: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.outcome == PaymentOutcome.SUCCEEDED

    @property
    def order_id(self) -> Optional[str]:
        """The order the intent was opened for, if it says."""
        return self.metadata.get("order_id")


class BasePaymentService(ABC):
    """
    Provider-side problems are reported through the result objects;
    implementations do not raise for them.

    Example:
        >>> service = get_payment_service()  # Returns Mock or Stripe
        >>> intent = await service.create_intent(49500, "inr")
        >>> outcome = await service.retrieve_outcome(intent.payment_intent_id)
        >>> outcome.succeeded
        True
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Short provider id shown by /health ("mock", "stripe")."""
        pass

    @abstractmethod
    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[dict] = None,
    ) -> PaymentIntentResult:
        """
        Create a payment intent for client-side confirmation.

        Args:
            amount: Amount in minor units (e.g., 49500 paise)
            currency: Three-letter currency code
            metadata: Additional key-value data to attach

        Returns:
            PaymentIntentResult: Contains client_secret for the frontend
        """
        pass

    @abstractmethod
    async def retrieve_outcome(self, payment_intent_id: str) -> PaymentOutcomeResult:
        """
        Look up the current state of a payment intent.

        Returns:
            PaymentOutcomeResult: ERROR when the provider cannot answer
        """
        pass

    @abstractmethod
    async def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> Optional[dict]:
        """
        Verify and parse a webhook from the payment provider.

        Args:
            payload: Raw request body bytes
            signature: Signature header from the request

        Returns:
            dict: Parsed webhook event if valid, None if invalid
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the provider answers."""
        pass
