"""Ядро приложения - конфигурация и константы"""

from pharmacy_delivery.core.config import Config
from pharmacy_delivery.core.constants import (
    NotificationType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    UserRole,
)


__all__ = [
    "Config",
    "NotificationType",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "UserRole",
]
