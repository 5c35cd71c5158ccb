"""
Order lifecycle state machine.

transition() is total over (status, event): every pair either yields a
Transition (target status plus the effects to apply) or raises
InvalidTransition. Applying the effects is the job of OrderStatusService.
"""
from collections import namedtuple

from apps.common.exceptions import InvalidTransition

# Statuses
PENDING_PAYMENT = 'pending_payment'
CONFIRMED = 'confirmed'
PROCESSING = 'processing'
SHIPPING = 'shipping'
DELIVERED = 'delivered'
CANCELLED = 'cancelled'
REFUNDED = 'refunded'

STATUSES = (PENDING_PAYMENT, CONFIRMED, PROCESSING, SHIPPING, DELIVERED, CANCELLED, REFUNDED)
TERMINAL_STATUSES = frozenset({DELIVERED, CANCELLED, REFUNDED})
CUSTOMER_CANCELLABLE = frozenset({PENDING_PAYMENT, CONFIRMED})

# Events
CONFIRM = 'confirm'
PAYMENT_SUCCEEDED = 'payment_succeeded'
CANCEL_BY_CUSTOMER = 'cancel_by_customer'
CANCEL_BY_ADMIN = 'cancel_by_admin'
START_PROCESSING = 'start_processing'
SHIP = 'ship'
DELIVER = 'deliver'

EVENTS = (CONFIRM, PAYMENT_SUCCEEDED, CANCEL_BY_CUSTOMER, CANCEL_BY_ADMIN, START_PROCESSING, SHIP, DELIVER)

# Effects
STAMP_CONFIRMED = 'stamp_confirmed'
MARK_PAID = 'mark_paid'
MARK_PAID_IF_UNPAID = 'mark_paid_if_unpaid'
STAMP_SHIPPED = 'stamp_shipped'
STAMP_DELIVERED = 'stamp_delivered'
RELEASE_STOCK = 'release_stock'
REVERSE_LOYALTY = 'reverse_loyalty'
STAMP_CANCELLED = 'stamp_cancelled'

CANCEL_EFFECTS = (RELEASE_STOCK, REVERSE_LOYALTY, STAMP_CANCELLED)

Transition = namedtuple('Transition', ['source', 'event', 'target', 'effects'])

_TABLE = {
    (PENDING_PAYMENT, CONFIRM): (CONFIRMED, (STAMP_CONFIRMED,)),
    (PENDING_PAYMENT, PAYMENT_SUCCEEDED): (CONFIRMED, (MARK_PAID, STAMP_CONFIRMED)),
    (CONFIRMED, START_PROCESSING): (PROCESSING, ()),
    (PROCESSING, SHIP): (SHIPPING, (STAMP_SHIPPED,)),
    (SHIPPING, DELIVER): (DELIVERED, (STAMP_DELIVERED, MARK_PAID_IF_UNPAID)),
}

for _status in CUSTOMER_CANCELLABLE:
    _TABLE[(_status, CANCEL_BY_CUSTOMER)] = (CANCELLED, CANCEL_EFFECTS)

for _status in STATUSES:
    if _status not in TERMINAL_STATUSES:
        _TABLE[(_status, CANCEL_BY_ADMIN)] = (CANCELLED, CANCEL_EFFECTS)

# Admin status updates are expressed as a target status
TARGET_TO_EVENT = {
    CONFIRMED: CONFIRM,
    PROCESSING: START_PROCESSING,
    SHIPPING: SHIP,
    DELIVERED: DELIVER,
    CANCELLED: CANCEL_BY_ADMIN,
}


def transition(status, event):
    """Return the Transition for (status, event) or raise InvalidTransition"""
    if status not in STATUSES:
        raise InvalidTransition(f"Unknown order status '{status}'", reason='invalid_transition')
    if event not in EVENTS:
        raise InvalidTransition(f"Unknown order event '{event}'", reason='invalid_transition')

    entry = _TABLE.get((status, event))
    if entry is None:
        if event == CANCEL_BY_CUSTOMER:
            raise InvalidTransition(
                f"Cannot cancel order in status '{status}'",
                reason='not_cancellable',
            )
        raise InvalidTransition(f"Cannot apply '{event}' to order in status '{status}'")

    target, effects = entry
    return Transition(source=status, event=event, target=target, effects=effects)


def event_for_target(target_status):
    """Map an admin target status onto the event that reaches it"""
    event = TARGET_TO_EVENT.get(target_status)
    if event is None:
        raise InvalidTransition(f"Status cannot be set to '{target_status}'")
    return event


def is_terminal(status):
    return status in TERMINAL_STATUSES
