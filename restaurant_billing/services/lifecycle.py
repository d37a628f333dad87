"""
Order State Machines

Two independent machines govern an order:

    status:          pending -> preparing -> served -> completed
                     (pending | preparing | served) -> cancelled
    payment_status:  pending -> paid

Each machine has exactly one validation function. A validation function
returns True when the request changes state, False when the state is
already what was asked for (an idempotent no-op), and raises
InvalidTransitionError for anything else.
"""

from restaurant_billing.core.exceptions import InvalidTransitionError
from restaurant_billing.domain import Order, OrderStatus, PaymentMethod, PaymentStatus

STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.SERVED, OrderStatus.CANCELLED}),
    OrderStatus.SERVED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PAYABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.SERVED})


def allowed_targets(status: OrderStatus) -> frozenset[OrderStatus]:
    """Statuses reachable from ``status`` in one step."""
    return STATUS_TRANSITIONS[status]


def check_status_transition(order: Order, target: OrderStatus) -> bool:
    """
    Validate moving ``order`` to ``target``.

    Returns:
        True if the status changes, False if it already is ``target``

    Raises:
        InvalidTransitionError: the move is not in the transition table,
            or it completes an order that has not been paid
    """
    current = order.status
    if target == current:
        return False

    if target not in STATUS_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot move order {order.id} from '{current.value}' to '{target.value}'"
        )

    if target == OrderStatus.COMPLETED and order.payment_status != PaymentStatus.PAID:
        raise InvalidTransitionError(
            f"Order {order.id} cannot be completed before it is paid"
        )

    return True


def check_payment_transition(order: Order, method: PaymentMethod) -> bool:
    """
    Validate settling ``order`` with ``method``.

    Returns:
        True if the order becomes paid, False if it is already paid
        with the same method

    Raises:
        InvalidTransitionError: already paid with another method, the
            order is cancelled, or there is nothing to pay
    """
    if order.payment_status == PaymentStatus.PAID:
        if order.payment_method == method:
            return False
        current = order.payment_method.value if order.payment_method else "unknown"
        raise InvalidTransitionError(
            f"Order {order.id} is already paid by {current}; cannot re-pay by {method.value}"
        )

    if order.status not in PAYABLE_STATUSES:
        raise InvalidTransitionError(
            f"Order {order.id} is {order.status.value} and cannot be paid"
        )

    if order.total <= 0:
        raise InvalidTransitionError(f"Order {order.id} has nothing to pay")

    return True


def check_lines_editable(order: Order) -> None:
    """Lines can change only before the kitchen starts and before payment."""
    if order.status != OrderStatus.PENDING or order.payment_status != PaymentStatus.PENDING:
        raise InvalidTransitionError(
            f"Lines of order {order.id} are locked "
            f"(status={order.status.value}, payment={order.payment_status.value})"
        )
