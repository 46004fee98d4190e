"""Order lifecycle validation.

The machine only checks a requested status against the current one and
returns the result. Callers persist it, and they must serialise concurrent
updates of the same order themselves (row lock or version check), otherwise
two requests can both validate against the same stale ``current`` status.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple, Union


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


FORWARD_CHAIN: Tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)
TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

TRANSITIONS: Dict[OrderStatus, Tuple[OrderStatus, ...]] = {
    current: (successor, OrderStatus.CANCELLED)
    for current, successor in zip(FORWARD_CHAIN, FORWARD_CHAIN[1:])
}
TRANSITIONS[OrderStatus.DELIVERED] = ()
TRANSITIONS[OrderStatus.CANCELLED] = ()


class TransitionError(Exception):
    """Base class for rejected status changes."""

    def __init__(self, current: OrderStatus, requested: OrderStatus, message: str):
        super().__init__(message)
        self.current = current
        self.requested = requested


class AlreadyFinalizedError(TransitionError):
    """Raised when the order is already delivered or cancelled."""


class IllegalTransitionError(TransitionError):
    """Raised when a status would be skipped or moved backwards."""


class UnknownStatusError(ValueError):
    """Raised for values outside the order status enumeration."""


StatusLike = Union[OrderStatus, str]


def coerce_status(value: StatusLike) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise UnknownStatusError(f"Unbekannter Bestellstatus: {value!r}") from None


def is_terminal(status: StatusLike) -> bool:
    return coerce_status(status) in TERMINAL_STATUSES


def allowed_transitions(current: StatusLike) -> Tuple[OrderStatus, ...]:
    return TRANSITIONS[coerce_status(current)]


def transition(current: StatusLike, requested: StatusLike) -> OrderStatus:
    current = coerce_status(current)
    requested = coerce_status(requested)

    if current in TERMINAL_STATUSES:
        raise AlreadyFinalizedError(
            current,
            requested,
            f"Bestellung ist bereits abgeschlossen ({current.value}).",
        )
    if requested not in TRANSITIONS[current]:
        raise IllegalTransitionError(
            current,
            requested,
            f"Statuswechsel {current.value} -> {requested.value} ist nicht erlaubt.",
        )
    return requested


@dataclass(frozen=True)
class StatusChange:
    previous: OrderStatus
    status: OrderStatus
    changed_at: datetime
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


def apply_transition(
    current: StatusLike,
    requested: StatusLike,
    now: datetime,
    reason: str | None = None,
) -> StatusChange:
    new_status = transition(current, requested)
    cancelled = new_status is OrderStatus.CANCELLED
    return StatusChange(
        previous=coerce_status(current),
        status=new_status,
        changed_at=now,
        delivered_at=now if new_status is OrderStatus.DELIVERED else None,
        cancelled_at=now if cancelled else None,
        cancellation_reason=reason if cancelled else None,
    )
