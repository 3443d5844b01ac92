"""
Проверка целостности сохранённых заказов

Ищет нарушения инвариантов назначения курьеров и временных меток.
На корректно работающей системе список нарушений всегда пуст.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from pharmacy_delivery.core.constants import OrderStatus
from pharmacy_delivery.database.unit_of_work import UnitOfWork


logger = logging.getLogger(__name__)


class ViolationCode:
    """Коды нарушений"""

    DRIVER_ON_INACTIVE_ORDER = "driver_on_inactive_order"
    MULTIPLE_ACTIVE_DELIVERIES = "multiple_active_deliveries"
    DELIVERED_AT_MISMATCH = "delivered_at_mismatch"
    ESTIMATED_DELIVERY_MISMATCH = "estimated_delivery_mismatch"
    MISSING_DRIVER = "missing_driver"
    DRIVER_MARKED_AVAILABLE = "driver_marked_available"
    TRACKING_MISMATCH = "tracking_mismatch"


@dataclass(frozen=True)
class InvariantViolation:
    """Найденное нарушение"""

    code: str
    detail: str
    order_id: str | None = None
    driver_id: str | None = None


# Статусы, в которых у заказа уже есть курьер и ожидаемое время доставки
ASSIGNED_STATUSES = frozenset({OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED})


class IntegrityService:
    """Сервис проверки инвариантов"""

    def __init__(self, uow_factory: Callable[[], UnitOfWork]):
        self._uow_factory = uow_factory

    async def find_violations(self) -> list[InvariantViolation]:
        """
        Поиск нарушений инвариантов

        Returns:
            Список InvariantViolation (пустой, если всё в порядке)
        """
        violations: list[InvariantViolation] = []

        async with self._uow_factory() as uow:
            orders = await uow.orders.get_all()
            multiple_active = await uow.orders.get_drivers_with_multiple_active()
            locations = {loc.driver_id: loc for loc in await uow.driver_locations.get_all()}
            latest_tracking = await uow.orders.get_latest_tracking_statuses()

        for order in orders:
            assigned = order.status in ASSIGNED_STATUSES

            if order.driver_id is not None and not assigned:
                violations.append(
                    InvariantViolation(
                        ViolationCode.DRIVER_ON_INACTIVE_ORDER,
                        f"driver set while status is {order.status}",
                        order.id,
                        order.driver_id,
                    )
                )
            if assigned and order.driver_id is None:
                violations.append(
                    InvariantViolation(
                        ViolationCode.MISSING_DRIVER,
                        f"status {order.status} without driver",
                        order.id,
                    )
                )
            if (order.delivered_at is not None) != (order.status == OrderStatus.DELIVERED):
                violations.append(
                    InvariantViolation(
                        ViolationCode.DELIVERED_AT_MISMATCH,
                        f"delivered_at={order.delivered_at} with status {order.status}",
                        order.id,
                        order.driver_id,
                    )
                )
            if (order.estimated_delivery is not None) != assigned:
                violations.append(
                    InvariantViolation(
                        ViolationCode.ESTIMATED_DELIVERY_MISMATCH,
                        f"estimated_delivery={order.estimated_delivery} with status {order.status}",
                        order.id,
                        order.driver_id,
                    )
                )
            if order.status == OrderStatus.IN_TRANSIT and order.driver_id is not None:
                location = locations.get(order.driver_id)
                if location is not None and location.is_available:
                    violations.append(
                        InvariantViolation(
                            ViolationCode.DRIVER_MARKED_AVAILABLE,
                            "driver with active delivery is marked available",
                            order.id,
                            order.driver_id,
                        )
                    )
            tracked_status = latest_tracking.get(order.id)
            if tracked_status is not None and tracked_status != order.status:
                violations.append(
                    InvariantViolation(
                        ViolationCode.TRACKING_MISMATCH,
                        f"last tracking status {tracked_status}, order status {order.status}",
                        order.id,
                    )
                )

        for driver_id, count in multiple_active:
            violations.append(
                InvariantViolation(
                    ViolationCode.MULTIPLE_ACTIVE_DELIVERIES,
                    f"{count} orders in transit",
                    driver_id=driver_id,
                )
            )

        if violations:
            logger.warning(f"Найдено нарушений целостности: {len(violations)}")
        else:
            logger.info("OK: Нарушений целостности не найдено")
        return violations
