"""
Database package: ORM модели, подключение к БД и Unit of Work.

Класс ORMDatabase подключается лениво через `get_database()`, чтобы
репозитории могли импортировать модели без циклических импортов.
"""

from typing import TYPE_CHECKING

from pharmacy_delivery.database.orm_models import (
    Base,
    DriverLocation,
    Notification,
    Order,
    Pharmacy,
    TrackingUpdate,
    User,
)


if TYPE_CHECKING:
    from pharmacy_delivery.database.orm_database import ORMDatabase


def get_database(database_url: str | None = None) -> "ORMDatabase":
    """
    Фабрика для получения экземпляра БД.

    Args:
        database_url: URL базы данных (по умолчанию из Config)
    """
    from pharmacy_delivery.database.orm_database import ORMDatabase

    return ORMDatabase(database_url)


__all__ = [
    "Base",
    "DriverLocation",
    "Notification",
    "Order",
    "Pharmacy",
    "TrackingUpdate",
    "User",
    "get_database",
]
