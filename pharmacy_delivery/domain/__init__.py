"""
Domain layer для бизнес-логики
"""

from pharmacy_delivery.domain.exceptions import (
    ConflictError,
    DeliveryEngineError,
    InvalidStateTransitionError,
    NotFoundError,
    NotificationError,
    PaymentDeclinedError,
    PersistenceError,
    ValidationError,
)
from pharmacy_delivery.domain.order_state_machine import (
    OrderStateMachine,
    OrderStateTransitionResult,
)


__all__ = [
    "ConflictError",
    "DeliveryEngineError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "NotificationError",
    "OrderStateMachine",
    "OrderStateTransitionResult",
    "PaymentDeclinedError",
    "PersistenceError",
    "ValidationError",
]
