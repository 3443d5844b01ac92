"""
Repository layer для абстракции работы с базой данных
"""

from pharmacy_delivery.repositories.base import BaseRepository
from pharmacy_delivery.repositories.driver_location_repository import (
    DriverLocationRepository,
)
from pharmacy_delivery.repositories.notification_repository import NotificationRepository
from pharmacy_delivery.repositories.order_repository import OrderRepository
from pharmacy_delivery.repositories.user_repository import UserRepository


__all__ = [
    "BaseRepository",
    "DriverLocationRepository",
    "NotificationRepository",
    "OrderRepository",
    "UserRepository",
]
