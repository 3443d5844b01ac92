"""
Репозиторий для работы с заказами и журналом отслеживания
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from pharmacy_delivery.core.constants import OrderStatus
from pharmacy_delivery.database.orm_models import Order, Pharmacy, TrackingUpdate, User
from pharmacy_delivery.repositories.base import BaseRepository, describe_integrity_error
from pharmacy_delivery.repositories.exceptions import ConcurrentModificationError
from pharmacy_delivery.utils.helpers import get_now


logger = logging.getLogger(__name__)


class OrderRepository(BaseRepository[Order]):
    """Репозиторий для работы с заказами"""

    model = Order

    async def get_by_id(self, order_id: str, for_update: bool = False) -> Order | None:
        """
        Получение заказа по ID

        Args:
            order_id: ID заказа
            for_update: Заблокировать строку до конца транзакции

        Returns:
            Объект Order или None
        """
        stmt = select(Order).where(Order.id == order_id)
        if for_update:
            # Всегда перечитываем строку из БД, а не из identity map
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self._fetch_one(stmt)

    async def guarded_update(
        self,
        order: Order,
        values: dict[str, Any],
    ) -> Order:
        """
        Обновление заказа с проверкой версии и статуса

        UPDATE ... WHERE id = :id AND version = :version AND status = :status

        Args:
            order: Заказ, прочитанный в текущей транзакции
            values: Новые значения полей

        Returns:
            Обновлённый заказ

        Raises:
            ConcurrentModificationError: Строка изменена другой транзакцией
            ConstraintViolationError: Нарушено ограничение целостности
        """
        expected_version = order.version
        stmt = (
            update(Order)
            .where(
                Order.id == order.id,
                Order.version == expected_version,
                Order.status == order.status,
            )
            .values(**values, version=Order.version + 1, updated_at=get_now())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except IntegrityError as e:
            raise describe_integrity_error(e) from e

        if result.rowcount != 1:
            raise ConcurrentModificationError("Order", order.id, expected_version)

        await self.session.refresh(order)
        return order

    async def has_active_delivery(self, driver_id: str) -> bool:
        """Есть ли у курьера заказ в статусе in_transit"""
        stmt = (
            select(Order.id)
            .where(Order.driver_id == driver_id, Order.status == OrderStatus.IN_TRANSIT)
            .limit(1)
        )
        return await self._fetch_one(stmt) is not None

    async def get_active_for_driver(self, driver_id: str) -> list[Order]:
        """Заказы курьера в пути"""
        stmt = (
            select(Order)
            .where(Order.driver_id == driver_id, Order.status == OrderStatus.IN_TRANSIT)
            .order_by(Order.created_at)
        )
        return await self._fetch_all(stmt)

    async def get_available_with_details(self) -> list[tuple[Order, Pharmacy, User | None]]:
        """
        Заказы, доступные для доставки

        Статус ready/preparing, курьер не назначен; самые старые первыми.

        Returns:
            Список кортежей (заказ, аптека, пациент)
        """
        patient = aliased(User)
        stmt = (
            select(Order, Pharmacy, patient)
            .join(Pharmacy, Order.pharmacy_id == Pharmacy.id)
            .outerjoin(patient, Order.patient_id == patient.id)
            .where(
                Order.status.in_(sorted(OrderStatus.DELIVERABLE)),
                Order.driver_id.is_(None),
            )
            .order_by(Order.created_at.asc())
        )
        return [tuple(row) for row in await self._fetch_rows(stmt)]

    async def get_for_driver_with_details(
        self,
        driver_id: str,
        status: str | None = None,
        since: datetime | None = None,
    ) -> list[tuple[Order, Pharmacy, User | None]]:
        """
        Заказы курьера (история доставок), новые первыми

        Args:
            driver_id: ID курьера
            status: Фильтр по статусу
            since: Только заказы, созданные не раньше этого момента

        Returns:
            Список кортежей (заказ, аптека, пациент)
        """
        patient = aliased(User)
        stmt = (
            select(Order, Pharmacy, patient)
            .join(Pharmacy, Order.pharmacy_id == Pharmacy.id)
            .outerjoin(patient, Order.patient_id == patient.id)
            .where(Order.driver_id == driver_id)
        )
        if status:
            stmt = stmt.where(Order.status == status)
        if since is not None:
            stmt = stmt.where(Order.created_at >= since)
        stmt = stmt.order_by(Order.created_at.desc())
        return [tuple(row) for row in await self._fetch_rows(stmt)]

    async def get_all(self) -> list[Order]:
        """Все заказы (для проверки целостности)"""
        return await self._fetch_all(select(Order).order_by(Order.created_at))

    async def get_drivers_with_multiple_active(self) -> list[tuple[str, int]]:
        """Курьеры, у которых больше одного заказа в пути"""
        stmt = (
            select(Order.driver_id, func.count(Order.id))
            .where(Order.status == OrderStatus.IN_TRANSIT, Order.driver_id.is_not(None))
            .group_by(Order.driver_id)
            .having(func.count(Order.id) > 1)
        )
        return [(driver_id, count) for driver_id, count in await self._fetch_rows(stmt)]

    # ==================== TRACKING ====================

    def add_tracking_update(
        self,
        order_id: str,
        status: str,
        message: str,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> TrackingUpdate:
        """
        Добавление записи в журнал отслеживания

        Args:
            order_id: ID заказа
            status: Новый статус
            message: Сообщение для клиента
            latitude: Широта (опционально)
            longitude: Долгота (опционально)

        Returns:
            Объект TrackingUpdate
        """
        tracking = TrackingUpdate(
            order_id=order_id,
            status=status,
            message=message,
            latitude=latitude,
            longitude=longitude,
            created_at=get_now(),
        )
        self.session.add(tracking)
        return tracking

    async def get_tracking_history(self, order_id: str) -> list[TrackingUpdate]:
        """Журнал отслеживания заказа в хронологическом порядке"""
        stmt = (
            select(TrackingUpdate)
            .where(TrackingUpdate.order_id == order_id)
            .order_by(TrackingUpdate.created_at.asc())
        )
        return await self._fetch_all(stmt)

    async def get_latest_tracking_statuses(self) -> dict[str, str]:
        """Последний статус из журнала для каждого заказа"""
        stmt = select(TrackingUpdate.order_id, TrackingUpdate.status).order_by(
            TrackingUpdate.order_id, TrackingUpdate.created_at
        )
        latest: dict[str, str] = {}
        for order_id, status in await self._fetch_rows(stmt):
            latest[order_id] = status
        return latest
