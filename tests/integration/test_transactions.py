"""
Тесты единицы работы, охраняемых переходов и ограничений БД
"""

import pytest
from sqlalchemy import text, update

from pharmacy_delivery.core.constants import OrderStatus, UserRole
from pharmacy_delivery.database.orm_database import ORMDatabase
from pharmacy_delivery.database.orm_models import Order
from pharmacy_delivery.domain.exceptions import ConflictError, NotFoundError, PersistenceError
from pharmacy_delivery.domain.order_state_machine import OrderStateMachine
from pharmacy_delivery.repositories.base import ACTIVE_DRIVER_CONSTRAINT
from pharmacy_delivery.repositories.exceptions import (
    ConcurrentModificationError,
    ConstraintViolationError,
)
from pharmacy_delivery.repositories.order_repository import OrderRepository
from pharmacy_delivery.utils.helpers import get_now


class TestApplyTransition:
    """Тесты применения перехода внутри транзакции"""

    @pytest.mark.asyncio
    async def test_applies_and_tracks(self, database, seed, make_order, read):
        """Переход меняет статус, версию и добавляет одну запись журнала"""
        order_id = await make_order(OrderStatus.PREPARING)

        async with database.unit_of_work() as uow:
            order = await OrderStateMachine.apply_transition(
                uow,
                order_id,
                expected={OrderStatus.PREPARING},
                to_status=OrderStatus.READY,
                user_roles=[UserRole.PHARMACIST],
            )
            assert order.status == OrderStatus.READY
            assert order.version == 2

        tracking = await read.tracking(order_id)
        assert len(tracking) == 2
        assert tracking[-1].message == "Order ready for delivery"

    @pytest.mark.asyncio
    async def test_unexpected_status(self, database, seed, make_order, read):
        """Текущий статус не из ожидаемых - конфликт, ничего не меняется"""
        order_id = await make_order(OrderStatus.READY)

        with pytest.raises(ConflictError, match="order is ready, expected preparing"):
            async with database.unit_of_work() as uow:
                await OrderStateMachine.apply_transition(
                    uow, order_id, expected={OrderStatus.PREPARING}, to_status=OrderStatus.READY
                )

        assert len(await read.tracking(order_id)) == 1

    @pytest.mark.asyncio
    async def test_guard_runs_before_status_check(self, database, seed, make_order):
        """Ошибка guard имеет приоритет над проверкой статуса"""
        order_id = await make_order(OrderStatus.DELIVERED, driver_id=seed.driver_ids[0])

        async def guard(order):
            raise ConflictError("order already assigned", order_id=order.id)

        with pytest.raises(ConflictError, match="order already assigned"):
            async with database.unit_of_work() as uow:
                await OrderStateMachine.apply_transition(
                    uow,
                    order_id,
                    expected={OrderStatus.READY},
                    to_status=OrderStatus.IN_TRANSIT,
                    guard=guard,
                )

    @pytest.mark.asyncio
    async def test_missing_order(self, database, seed):
        """Несуществующий заказ"""
        with pytest.raises(NotFoundError):
            async with database.unit_of_work() as uow:
                await OrderStateMachine.apply_transition(
                    uow, "missing", expected={OrderStatus.READY}, to_status=OrderStatus.CANCELLED
                )

    @pytest.mark.asyncio
    async def test_lost_update_becomes_conflict(
        self, services, seed, make_order, read, monkeypatch
    ):
        """Потерянное обновление превращается в ConflictError без частичных изменений"""
        order_id = await make_order(OrderStatus.READY)

        async def stale_update(self, order, values):
            raise ConcurrentModificationError("Order", order.id, order.version)

        monkeypatch.setattr(OrderRepository, "guarded_update", stale_update)

        with pytest.raises(ConflictError, match="modified concurrently"):
            await services.delivery_service.accept_delivery(order_id, seed.driver_ids[0])

        monkeypatch.undo()
        order = await read.order(order_id)
        assert order.status == OrderStatus.READY
        assert order.driver_id is None
        assert len(await read.tracking(order_id)) == 1
        assert (await read.location(seed.driver_ids[0])).is_available is True


class TestGuardedUpdate:
    """Тесты UPDATE с проверкой версии"""

    @pytest.mark.asyncio
    async def test_stale_version(self, database, seed, make_order, read):
        """Обновление по устаревшей версии не применяется"""
        order_id = await make_order(OrderStatus.READY)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            async with database.unit_of_work() as uow:
                order = await uow.orders.get_by_id(order_id, for_update=True)
                # Другая транзакция успела изменить строку
                await uow.session.execute(
                    update(Order)
                    .where(Order.id == order_id)
                    .values(version=Order.version + 1)
                    .execution_options(synchronize_session=False)
                )
                await uow.orders.guarded_update(order, {"status": OrderStatus.CANCELLED})

        assert exc_info.value.expected_version == 1
        order = await read.order(order_id)
        assert order.status == OrderStatus.READY
        assert order.version == 1

    @pytest.mark.asyncio
    async def test_active_driver_index(self, database, seed, make_order, read):
        """БД не допускает двух активных доставок у одного курьера"""
        driver_id = seed.driver_ids[0]
        first = await make_order(OrderStatus.READY)
        second = await make_order(OrderStatus.READY)
        values = {
            "status": OrderStatus.IN_TRANSIT,
            "driver_id": driver_id,
            "estimated_delivery": get_now(),
        }
        violations = []

        with pytest.raises(ConflictError, match="driver has active delivery"):
            async with database.unit_of_work() as uow:
                for order_id in (first, second):
                    order = await uow.orders.get_by_id(order_id, for_update=True)
                    try:
                        await uow.orders.guarded_update(order, values)
                    except ConstraintViolationError as e:
                        violations.append(e)
                        raise

        assert [v.constraint for v in violations] == [ACTIVE_DRIVER_CONSTRAINT]
        # Вся транзакция откатилась, включая первое обновление
        assert (await read.order(first)).status == OrderStatus.READY
        assert (await read.order(second)).status == OrderStatus.READY

    @pytest.mark.asyncio
    async def test_driver_requires_assigned_status(self, database, seed, make_order):
        """Курьер не может быть назначен на заказ вне доставки"""
        order_id = await make_order(OrderStatus.READY)

        with pytest.raises(PersistenceError):
            async with database.unit_of_work() as uow:
                order = await uow.orders.get_by_id(order_id, for_update=True)
                await uow.orders.guarded_update(order, {"driver_id": seed.driver_ids[0]})


class TestUnitOfWork:
    """Тесты единицы работы"""

    @pytest.mark.asyncio
    async def test_commit_on_success(self, database, seed, read):
        """Нормальный выход фиксирует изменения"""
        async with database.unit_of_work() as uow:
            await uow.driver_locations.upsert(seed.driver_ids[0], latitude=10.0, longitude=20.0)

        location = await read.location(seed.driver_ids[0])
        assert location.latitude == 10.0
        assert location.longitude == 20.0

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, database, seed, read):
        """Исключение откатывает все изменения"""
        with pytest.raises(RuntimeError):
            async with database.unit_of_work() as uow:
                await uow.driver_locations.upsert(seed.driver_ids[0], latitude=10.0)
                raise RuntimeError("boom")

        location = await read.location(seed.driver_ids[0])
        assert location.latitude == 48.8600

    @pytest.mark.asyncio
    async def test_database_error_translated(self, database, seed):
        """Ошибка БД превращается в PersistenceError"""
        with pytest.raises(PersistenceError):
            async with database.unit_of_work() as uow:
                await uow.session.execute(text("SELECT * FROM missing_table"))

    @pytest.mark.asyncio
    async def test_upsert_updates_only_given_fields(self, database, seed, read):
        """Upsert меняет только переданные поля"""
        driver_id = seed.driver_ids[0]
        async with database.unit_of_work() as uow:
            location = await uow.driver_locations.upsert(driver_id, is_available=False)
            assert location.is_available is False
            assert location.latitude == 48.8600

        async with database.unit_of_work() as uow:
            location = await uow.driver_locations.upsert(driver_id, latitude=1.0)
            assert location.is_available is False
            assert location.latitude == 1.0
            assert location.longitude == 2.3500

    @pytest.mark.asyncio
    async def test_unit_of_work_requires_connection(self):
        """Без подключения единицу работы не создать"""
        db = ORMDatabase("sqlite+aiosqlite:///:memory:")
        with pytest.raises(RuntimeError):
            db.unit_of_work()
