"""
Отчёты по курьерам: статистика и история доставок
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal

from pharmacy_delivery.core.config import Config
from pharmacy_delivery.core.constants import OrderStatus
from pharmacy_delivery.database.orm_models import Order
from pharmacy_delivery.database.unit_of_work import UnitOfWork
from pharmacy_delivery.schemas.base import validate_input
from pharmacy_delivery.schemas.delivery import (
    DeliveryHistoryItem,
    DeliveryHistoryQuerySchema,
    DriverPeriodStats,
    DriverQuerySchema,
    DriverStats,
)
from pharmacy_delivery.services.delivery_service import build_delivery_summary, delivery_fee
from pharmacy_delivery.utils.helpers import get_now


logger = logging.getLogger(__name__)


def period_start(period: str | None, now: datetime | None = None) -> datetime | None:
    """
    Начало периода для фильтра истории

    Args:
        period: today, week, month или None
        now: Текущий момент (для тестов)

    Returns:
        datetime в UTC или None (без фильтра)
    """
    if period is None:
        return None
    now = now or get_now()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        return start_of_day
    if period == "week":
        return start_of_day - timedelta(days=7)
    if period == "month":
        return start_of_day - timedelta(days=30)
    return None


def _period_stats(delivered: list[Order]) -> DriverPeriodStats:
    """Количество, заработок и среднее время доставки"""
    earning = Decimal(str(Config.DRIVER_EARNING_PER_DELIVERY))
    durations = [
        (order.delivered_at - order.created_at).total_seconds() / 60
        for order in delivered
        if order.delivered_at is not None and order.created_at is not None
    ]
    average = round(sum(durations) / len(durations), 1) if durations else None
    return DriverPeriodStats(
        deliveries=len(delivered),
        earnings=(earning * len(delivered)).quantize(Decimal("0.01")),
        average_delivery_minutes=average,
    )


class DeliveryReportService:
    """Сервис отчётов по доставкам"""

    def __init__(self, uow_factory: Callable[[], UnitOfWork]):
        self._uow_factory = uow_factory

    async def get_driver_stats(self, driver_id: str) -> DriverStats:
        """
        Статистика курьера

        Args:
            driver_id: ID курьера

        Returns:
            DriverStats: сегодня, всего, доля завершённых и активная доставка
        """
        request = validate_input(DriverQuerySchema, driver_id=driver_id)
        today_start = period_start("today")

        async with self._uow_factory() as uow:
            rows = await uow.orders.get_for_driver_with_details(request.driver_id)
            location = await uow.driver_locations.get_by_driver(request.driver_id)

        orders = [order for order, _, _ in rows]
        delivered = [order for order in orders if order.status == OrderStatus.DELIVERED]
        delivered_today = [
            order
            for order in delivered
            if order.delivered_at is not None and order.delivered_at >= today_start
        ]

        active_delivery = None
        for order, pharmacy, patient in rows:
            if order.status == OrderStatus.IN_TRANSIT:
                active_delivery = build_delivery_summary(
                    order,
                    pharmacy,
                    patient,
                    location.latitude if location else None,
                    location.longitude if location else None,
                )
                break

        completion_rate = round(len(delivered) / len(orders) * 100, 1) if orders else 0.0

        return DriverStats(
            driver_id=request.driver_id,
            today=_period_stats(delivered_today),
            total=_period_stats(delivered),
            completion_rate=completion_rate,
            active_delivery=active_delivery,
        )

    async def get_delivery_history(
        self, driver_id: str, status: str | None = None, period: str | None = None
    ) -> list[DeliveryHistoryItem]:
        """
        История доставок курьера, новые первыми

        Args:
            driver_id: ID курьера
            status: Фильтр по статусу ('all' или None - без фильтра)
            period: today, week, month ('all' или None - без фильтра)

        Returns:
            Список DeliveryHistoryItem

        Raises:
            ValidationError: Неизвестный статус или период
        """
        query = validate_input(
            DeliveryHistoryQuerySchema, driver_id=driver_id, status=status, period=period
        )

        async with self._uow_factory() as uow:
            rows = await uow.orders.get_for_driver_with_details(
                query.driver_id, status=query.status, since=period_start(query.period)
            )

        return [
            DeliveryHistoryItem(
                order_id=order.id,
                status=order.status,
                total=order.total,
                delivery_fee=delivery_fee(),
                pharmacy_name=pharmacy.name,
                customer_name=patient.get_display_name() if patient else None,
                delivery_address=order.get_delivery_address(),
                created_at=order.created_at,
                estimated_delivery=order.estimated_delivery,
                delivered_at=order.delivered_at,
            )
            for order, pharmacy, patient in rows
        ]
