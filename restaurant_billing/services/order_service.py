"""
Order Service

All write operations on orders: creation, line edits, status transitions
and payment. Every operation follows the same read-validate-write cycle:

    1. Read the order from the store
    2. Validate the request against the state machines
    3. Write back, conditional on the version that was read

Two requests racing on the same order therefore cannot both win; the
loser gets ConflictError from the store and may retry. Nothing is retried
here. Requests that would leave the order unchanged return it without
writing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from restaurant_billing.core.config import get_settings
from restaurant_billing.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PaymentProviderError,
    ValidationError,
)
from restaurant_billing.domain import (
    Order,
    OrderLine,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from restaurant_billing.services.lifecycle import (
    check_lines_editable,
    check_payment_transition,
    check_status_transition,
)
from restaurant_billing.services.menu.base import BaseMenuCatalog
from restaurant_billing.services.payment.base import (
    BasePaymentService,
    PaymentIntentResult,
    PaymentOutcome,
    to_minor_units,
)
from restaurant_billing.services.pricing import compute_totals
from restaurant_billing.services.store.base import BaseOrderStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class NewLine:
    """A line as requested by the caller, before its price is captured."""
    menu_item_id: str
    quantity: int
    note: Optional[str] = None


def _check_quantity(quantity: Any) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError(f"Quantity must be a whole number of at least 1, got {quantity!r}")


class OrderService:
    """
    Order lifecycle operations.

    Args:
        store: Order persistence
        menu: Menu catalog used to snapshot prices
        payments: Card payment provider
        clock: Returns the current (timezone-aware) time
        currency: Currency code for card payment intents
        on_paid: Called with the order after each newly recorded payment
    """

    def __init__(
        self,
        store: BaseOrderStore,
        menu: BaseMenuCatalog,
        payments: BasePaymentService,
        clock: Callable[[], datetime] = utc_now,
        currency: Optional[str] = None,
        on_paid: Optional[Callable[[Order], None]] = None,
    ):
        self._store = store
        self._menu = menu
        self._payments = payments
        self._clock = clock
        self._currency = currency or get_settings().stripe_currency
        self._on_paid = on_paid

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _snapshot_line(self, request: NewLine) -> OrderLine:
        """Build an order line carrying a copy of the current menu price."""
        _check_quantity(request.quantity)

        item = await self._menu.resolve(request.menu_item_id)
        if item is None:
            raise NotFoundError(f"Menu item {request.menu_item_id} not found")
        if not item.is_available:
            raise ValidationError(f"Menu item '{item.name}' is not available")

        return OrderLine(
            menu_item_id=item.id,
            quantity=request.quantity,
            unit_price=int(item.price),
            note=request.note,
        )

    async def _load(self, order_id: str, expected_version: Optional[int]) -> Order:
        order = await self._store.get(order_id)
        if expected_version is not None and order.version != expected_version:
            raise ConflictError(
                f"Order {order_id} is at version {order.version}, not {expected_version}",
                expected_version=expected_version,
                actual_version=order.version,
            )
        return order

    async def _save(
        self,
        order: Order,
        patch: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> Order:
        patch["updated_at"] = now or self._clock()
        return await self._store.update(order.id, patch, expected_version=order.version)

    @staticmethod
    def _lines_patch(lines: list[OrderLine]) -> dict[str, Any]:
        totals = compute_totals(lines)
        return {
            "lines": lines,
            "subtotal": totals.subtotal,
            "tax": totals.tax,
            "total": totals.total,
        }

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_order(self, order_id: str) -> Order:
        return await self._store.get(order_id)

    async def list_orders(self, status: Optional[OrderStatus] = None) -> list[Order]:
        return await self._store.list_orders(status)

    # =========================================================================
    # CREATION & LINES
    # =========================================================================

    async def create_order(self, table_number: int, lines: list[NewLine]) -> Order:
        """
        Create a pending, unpaid order.

        Raises:
            ValidationError: bad table number, no lines, bad quantity,
                or an unavailable menu item
            NotFoundError: a menu item does not exist
        """
        if isinstance(table_number, bool) or not isinstance(table_number, int) or table_number < 1:
            raise ValidationError(f"Table number must be a positive integer, got {table_number!r}")
        if not lines:
            raise ValidationError("An order needs at least one line")

        order_lines = [await self._snapshot_line(line) for line in lines]
        totals = compute_totals(order_lines)
        now = self._clock()

        order = Order(
            table_number=table_number,
            lines=order_lines,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
            created_at=now,
            updated_at=now,
        )
        order_id = await self._store.create(order)

        logger.info(f"Order {order_id} created for table {table_number} - total {totals.total}")
        return await self._store.get(order_id)

    async def add_line(
        self,
        order_id: str,
        line: NewLine,
        expected_version: Optional[int] = None,
    ) -> Order:
        order = await self._load(order_id, expected_version)
        check_lines_editable(order)

        new_line = await self._snapshot_line(line)
        updated = await self._save(order, self._lines_patch(order.lines + [new_line]))

        logger.info(f"Order {order_id}: added {new_line.quantity} x {new_line.menu_item_id}")
        return updated

    def _line_at(self, order: Order, index: int) -> OrderLine:
        if index < 0 or index >= len(order.lines):
            raise NotFoundError(f"Order {order.id} has no line {index}")
        return order.lines[index]

    async def update_line(
        self,
        order_id: str,
        index: int,
        quantity: Optional[int] = None,
        note: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Change the quantity and/or note of one line. The price snapshot is kept."""
        order = await self._load(order_id, expected_version)
        check_lines_editable(order)
        line = self._line_at(order, index)

        if quantity is not None:
            _check_quantity(quantity)
        changes = {}
        if quantity is not None and quantity != line.quantity:
            changes["quantity"] = quantity
        if note is not None and note != line.note:
            changes["note"] = note
        if not changes:
            logger.debug(f"Order {order_id}: line {index} unchanged")
            return order

        for field_name, value in changes.items():
            setattr(line, field_name, value)

        updated = await self._save(order, self._lines_patch(order.lines))
        logger.info(f"Order {order_id}: line {index} updated")
        return updated

    async def remove_line(
        self,
        order_id: str,
        index: int,
        expected_version: Optional[int] = None,
    ) -> Order:
        order = await self._load(order_id, expected_version)
        check_lines_editable(order)
        self._line_at(order, index)

        if len(order.lines) == 1:
            raise ValidationError(f"Cannot remove the last line of order {order_id}; cancel it instead")

        lines = order.lines[:index] + order.lines[index + 1:]
        updated = await self._save(order, self._lines_patch(lines))
        logger.info(f"Order {order_id}: line {index} removed")
        return updated

    # =========================================================================
    # STATUS
    # =========================================================================

    async def transition_status(
        self,
        order_id: str,
        target: OrderStatus,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Move the order to ``target``.

        Raises:
            NotFoundError: unknown order
            InvalidTransitionError: not allowed from the current status
            ConflictError: the order changed concurrently
        """
        order = await self._load(order_id, expected_version)
        if not check_status_transition(order, target):
            logger.debug(f"Order {order_id} already {target.value}; nothing to do")
            return order

        updated = await self._save(order, {"status": target})
        logger.info(f"Order {order_id}: {order.status.value} → {target.value}")
        return updated

    async def cancel_order(self, order_id: str, expected_version: Optional[int] = None) -> Order:
        return await self.transition_status(order_id, OrderStatus.CANCELLED, expected_version)

    # =========================================================================
    # PAYMENT
    # =========================================================================

    async def start_card_payment(self, order_id: str) -> PaymentIntentResult:
        """
        Create a card payment intent for the order total.

        The intent id is remembered on the order so a later
        ``record_payment(..., CARD)`` can find it.
        """
        order = await self._load(order_id, None)
        if not check_payment_transition(order, PaymentMethod.CARD):
            raise InvalidTransitionError(f"Order {order_id} is already paid by card")

        result = await self._payments.create_intent(
            to_minor_units(order.total),
            self._currency,
            metadata={"order_id": order.id, "table_number": str(order.table_number)},
        )
        if not result.success:
            logger.error(f"Order {order_id}: payment intent failed - {result.error_message}")
            raise PaymentProviderError(
                result.error_message or "Could not start card payment",
                error_code=result.error_code,
            )

        await self._save(order, {"payment_intent_id": result.payment_intent_id})
        logger.info(f"Order {order_id}: card payment started ({result.payment_intent_id})")
        return result

    async def _confirm_card_payment(self, order: Order, payment_intent_id: str) -> None:
        outcome = await self._payments.retrieve_outcome(payment_intent_id)

        if outcome.outcome in (PaymentOutcome.ERROR, PaymentOutcome.FAILED):
            logger.error(
                f"Order {order.id}: card payment {payment_intent_id} "
                f"{outcome.outcome.value} - {outcome.error_message}"
            )
            raise PaymentProviderError(
                outcome.error_message or f"Card payment {payment_intent_id} failed",
                error_code=outcome.error_code,
            )

        if not outcome.succeeded:
            raise InvalidTransitionError(
                f"Card payment {payment_intent_id} is {outcome.outcome.value}; "
                f"order {order.id} stays unpaid"
            )

        expected = to_minor_units(order.total)
        if outcome.amount is not None and outcome.amount != expected:
            raise PaymentProviderError(
                f"Card payment {payment_intent_id} was for {outcome.amount}, "
                f"order {order.id} needs {expected}",
                error_code="amount_mismatch",
            )

        if outcome.order_id is not None and outcome.order_id != order.id:
            raise PaymentProviderError(
                f"Card payment {payment_intent_id} belongs to order {outcome.order_id}, "
                f"not {order.id}",
                error_code="order_mismatch",
            )

        settled = [o.id for o in await self._store.find_paid_by_intent(payment_intent_id) if o.id != order.id]
        if settled:
            raise PaymentProviderError(
                f"Card payment {payment_intent_id} already settled order {settled[0]}",
                error_code="intent_already_used",
            )

    async def record_payment(
        self,
        order_id: str,
        method: PaymentMethod,
        payment_intent_id: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Mark the order paid.

        Cash and UPI settle immediately. Card needs a payment intent whose
        provider outcome is ``succeeded``.

        Raises:
            NotFoundError: unknown order
            InvalidTransitionError: already paid another way, cancelled,
                zero total, or the card payment has not settled
            PaymentProviderError: the card payment failed or the provider
                could not be asked
            ConflictError: the order changed concurrently
        """
        order = await self._load(order_id, expected_version)
        if not check_payment_transition(order, method):
            logger.debug(f"Order {order_id} already paid by {method.value}; nothing to do")
            return order

        patch: dict[str, Any] = {
            "payment_status": PaymentStatus.PAID,
            "payment_method": method,
        }

        if method == PaymentMethod.CARD:
            intent_id = payment_intent_id or order.payment_intent_id
            if not intent_id:
                raise ValidationError("Card payments need a payment intent id")
            await self._confirm_card_payment(order, intent_id)
            patch["payment_intent_id"] = intent_id

        now = self._clock()
        patch["paid_at"] = now
        updated = await self._save(order, patch, now=now)

        logger.info(f"Order {order_id}: paid {updated.total} by {method.value}")
        if self._on_paid is not None:
            self._on_paid(updated)
        return updated
