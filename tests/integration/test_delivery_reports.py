"""
Тесты статистики и истории доставок курьера
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pharmacy_delivery.core.constants import OrderStatus
from pharmacy_delivery.domain.exceptions import ValidationError
from pharmacy_delivery.services.delivery_reports import period_start
from pharmacy_delivery.utils.helpers import get_now


async def make_delivered(make_order, driver_id: str, days_ago: int, minutes: int) -> str:
    """Доставленный заказ: создан days_ago дней назад, в пути minutes минут"""
    created_at = get_now() - timedelta(days=days_ago)
    delivered_at = created_at + timedelta(minutes=minutes)
    return await make_order(
        OrderStatus.DELIVERED,
        driver_id=driver_id,
        created_at=created_at,
        estimated_delivery=created_at + timedelta(minutes=30),
        delivered_at=delivered_at,
    )


class TestPeriodStart:
    """Тесты начала периода"""

    def test_periods(self):
        """Тест границ периодов"""
        now = datetime(2025, 3, 15, 14, 30, tzinfo=timezone.utc)
        assert period_start("today", now) == datetime(2025, 3, 15, tzinfo=timezone.utc)
        assert period_start("week", now) == datetime(2025, 3, 8, tzinfo=timezone.utc)
        assert period_start("month", now) == datetime(2025, 2, 13, tzinfo=timezone.utc)
        assert period_start(None, now) is None


class TestDriverStats:
    """Тесты статистики курьера"""

    @pytest.mark.asyncio
    async def test_stats(self, services, seed, make_order):
        """Количество, заработок, среднее время и активная доставка"""
        driver_id = seed.driver_ids[0]
        await make_delivered(make_order, driver_id, days_ago=10, minutes=40)
        await make_delivered(make_order, driver_id, days_ago=12, minutes=20)
        await make_delivered(make_order, seed.driver_ids[1], days_ago=3, minutes=15)
        active = await make_order(OrderStatus.READY)
        await services.delivery_service.accept_delivery(active, driver_id)

        stats = await services.report_service.get_driver_stats(driver_id)

        assert stats.total.deliveries == 2
        assert stats.total.earnings == Decimal("10.00")
        assert stats.total.average_delivery_minutes == pytest.approx(30.0, abs=0.1)
        assert stats.today.deliveries == 0
        assert stats.today.average_delivery_minutes is None
        assert stats.completion_rate == pytest.approx(66.7)
        assert stats.active_delivery is not None
        assert stats.active_delivery.order_id == active

    @pytest.mark.asyncio
    async def test_delivered_today(self, services, seed, make_order):
        """Доставка, завершённая сейчас, попадает в статистику за сегодня"""
        driver_id = seed.driver_ids[0]
        order_id = await make_order(OrderStatus.READY, age_minutes=1)
        await services.delivery_service.accept_delivery(order_id, driver_id)
        await services.delivery_service.complete_delivery(order_id, driver_id)

        stats = await services.report_service.get_driver_stats(driver_id)

        assert stats.today.deliveries == 1
        assert stats.total.deliveries == 1
        assert stats.completion_rate == 100.0
        assert stats.active_delivery is None

    @pytest.mark.asyncio
    async def test_new_driver(self, services, seed):
        """Курьер без доставок"""
        stats = await services.report_service.get_driver_stats(seed.idle_driver_id)

        assert stats.total.deliveries == 0
        assert stats.total.earnings == Decimal("0.00")
        assert stats.completion_rate == 0.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("driver_id", [None, ""])
    async def test_invalid_driver_id(self, services, seed, make_order, driver_id):
        """Пустой ID курьера отклоняется"""
        await make_order(OrderStatus.READY)

        with pytest.raises(ValidationError) as exc_info:
            await services.report_service.get_driver_stats(driver_id)
        assert exc_info.value.field == "driver_id"


class TestDeliveryHistory:
    """Тесты истории доставок"""

    @pytest.mark.asyncio
    async def test_newest_first(self, services, seed, make_order):
        """История отсортирована от новых к старым"""
        driver_id = seed.driver_ids[0]
        old = await make_delivered(make_order, driver_id, days_ago=20, minutes=25)
        recent = await make_delivered(make_order, driver_id, days_ago=2, minutes=25)

        history = await services.report_service.get_delivery_history(driver_id)

        assert [item.order_id for item in history] == [recent, old]
        assert history[0].pharmacy_name == "Pharmacie Centrale"
        assert history[0].customer_name == "Paul Patient"
        assert history[0].delivery_fee == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_period_filter(self, services, seed, make_order):
        """Фильтр по периоду"""
        driver_id = seed.driver_ids[0]
        old = await make_delivered(make_order, driver_id, days_ago=20, minutes=25)
        recent = await make_delivered(make_order, driver_id, days_ago=2, minutes=25)

        week = await services.report_service.get_delivery_history(driver_id, period="week")
        month = await services.report_service.get_delivery_history(driver_id, period="month")

        assert [item.order_id for item in week] == [recent]
        assert [item.order_id for item in month] == [recent, old]

    @pytest.mark.asyncio
    async def test_status_filter(self, services, seed, make_order):
        """Фильтр по статусу"""
        driver_id = seed.driver_ids[0]
        delivered = await make_delivered(make_order, driver_id, days_ago=2, minutes=25)
        active = await make_order(OrderStatus.READY)
        await services.delivery_service.accept_delivery(active, driver_id)

        only_delivered = await services.report_service.get_delivery_history(
            driver_id, status=OrderStatus.DELIVERED
        )
        everything = await services.report_service.get_delivery_history(driver_id, status="all")

        assert [item.order_id for item in only_delivered] == [delivered]
        assert {item.order_id for item in everything} == {delivered, active}

    @pytest.mark.asyncio
    async def test_invalid_period(self, services, seed):
        """Неизвестный период"""
        with pytest.raises(ValidationError) as exc_info:
            await services.report_service.get_delivery_history(seed.driver_ids[0], period="year")
        assert exc_info.value.field == "period"
