"""
Базовый репозиторий для работы с базой данных
"""

import logging
from typing import Any, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pharmacy_delivery.repositories.exceptions import ConstraintViolationError


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Частичный уникальный индекс: не более одного in_transit заказа на курьера
ACTIVE_DRIVER_CONSTRAINT = "uq_orders_active_driver"


def describe_integrity_error(error: IntegrityError) -> ConstraintViolationError:
    """
    Определение нарушенного ограничения по тексту ошибки драйвера

    SQLite не называет индекс, а сообщает "UNIQUE constraint failed:
    orders.driver_id"; PostgreSQL называет индекс по имени.
    """
    detail = str(error.orig) if error.orig is not None else str(error)
    if ACTIVE_DRIVER_CONSTRAINT in detail or "orders.driver_id" in detail:
        return ConstraintViolationError(ACTIVE_DRIVER_CONSTRAINT, detail)
    return ConstraintViolationError("unknown", detail)


class BaseRepository(Generic[T]):
    """
    Базовый класс для всех репозиториев
    Предоставляет общую функциональность для работы с БД
    """

    model: type[Any]

    def __init__(self, session: AsyncSession):
        """
        Инициализация репозитория

        Args:
            session: Сессия текущей единицы работы
        """
        self.session = session

    async def get_by_id(self, entity_id: str) -> T | None:
        """
        Получение записи по ID

        Args:
            entity_id: ID записи

        Returns:
            Объект или None
        """
        return await self.session.get(self.model, entity_id)

    def add(self, entity: T) -> T:
        """Добавление новой записи в текущую транзакцию"""
        self.session.add(entity)
        return entity

    async def _fetch_one(self, stmt: Select) -> Any | None:
        """
        Получение одной записи

        Args:
            stmt: SELECT запрос

        Returns:
            Первый столбец первой строки или None
        """
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def _fetch_all(self, stmt: Select) -> list[Any]:
        """
        Получение всех записей (первый столбец)

        Args:
            stmt: SELECT запрос

        Returns:
            Список объектов
        """
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _fetch_rows(self, stmt: Select) -> list[Any]:
        """Получение строк целиком (для запросов с несколькими сущностями)"""
        result = await self.session.execute(stmt)
        return list(result.all())
