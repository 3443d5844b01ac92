"""
Unit of Work - одна транзакция и набор репозиториев поверх неё
"""

import logging
from types import TracebackType

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pharmacy_delivery.domain.exceptions import (
    ConflictError,
    DeliveryEngineError,
    PersistenceError,
)
from pharmacy_delivery.repositories.base import (
    ACTIVE_DRIVER_CONSTRAINT,
    describe_integrity_error,
)
from pharmacy_delivery.repositories.driver_location_repository import (
    DriverLocationRepository,
)
from pharmacy_delivery.repositories.exceptions import ConstraintViolationError
from pharmacy_delivery.repositories.notification_repository import NotificationRepository
from pharmacy_delivery.repositories.order_repository import OrderRepository
from pharmacy_delivery.repositories.user_repository import UserRepository


logger = logging.getLogger(__name__)


def translate_database_error(error: Exception) -> DeliveryEngineError:
    """
    Перевод ошибки БД в доменное исключение

    Нарушение индекса "один курьер - одна активная доставка" означает,
    что конкурентная транзакция успела первой: это конфликт, а не сбой.
    """
    if isinstance(error, IntegrityError):
        error = describe_integrity_error(error)
    if isinstance(error, ConstraintViolationError):
        if error.constraint == ACTIVE_DRIVER_CONSTRAINT:
            return ConflictError("driver has active delivery")
        return PersistenceError(str(error))
    return PersistenceError(f"Database error: {error}")


class UnitOfWork:
    """
    Единица работы

    Все репозитории используют одну сессию. При нормальном выходе из
    контекста транзакция фиксируется, при исключении - откатывается.
    Сессия закрывается всегда.

    Usage:
        async with UnitOfWork(session_factory) as uow:
            order = await uow.orders.get_by_id(order_id, for_update=True)
            ...
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self.orders = OrderRepository(self.session)
        self.users = UserRepository(self.session)
        self.driver_locations = DriverLocationRepository(self.session)
        self.notifications = NotificationRepository(self.session)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if exc is None:
                await self.commit()
                return

            await self.rollback()
            if isinstance(exc, DeliveryEngineError):
                logger.warning(f"Транзакция отменена (rollback): {exc}")
                return
            logger.error(f"ERROR: Транзакция отменена (rollback): {exc}")
            if isinstance(exc, (SQLAlchemyError, ConstraintViolationError)):
                raise translate_database_error(exc) from exc
        finally:
            await self.session.close()

    async def flush(self) -> None:
        """Отправка накопленных изменений в БД без фиксации"""
        try:
            await self.session.flush()
        except (SQLAlchemyError, ConstraintViolationError) as e:
            raise translate_database_error(e) from e

    async def commit(self) -> None:
        """Фиксация транзакции"""
        try:
            await self.session.commit()
            logger.debug("OK: Транзакция успешно завершена (commit)")
        except SQLAlchemyError as e:
            logger.error(f"ERROR: Не удалось зафиксировать транзакцию: {e}")
            await self.rollback()
            raise translate_database_error(e) from e

    async def rollback(self) -> None:
        """Откат транзакции"""
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            logger.error(f"ERROR: Ошибка при откате транзакции: {e}")
