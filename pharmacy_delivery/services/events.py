"""
События жизненного цикла заказа

Событие собирается внутри транзакции (снимок заказа и связанных имён),
а отправляется в NotificationService только после фиксации.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pharmacy_delivery.database.orm_models import Order, Pharmacy, User
from pharmacy_delivery.utils.helpers import get_now, short_order_id


if TYPE_CHECKING:
    from pharmacy_delivery.database.unit_of_work import UnitOfWork


class OrderEventKind:
    """Виды событий"""

    DELIVERY_ACCEPTED = "delivery_accepted"
    DELIVERY_COMPLETED = "delivery_completed"
    PAYMENT_PROCESSED = "payment_processed"
    PAYMENT_VALIDATED = "payment_validated"
    ORDER_STATUS_CHANGED = "order_status_changed"

    @classmethod
    def all_kinds(cls) -> list[str]:
        """Список всех видов событий"""
        return [
            cls.DELIVERY_ACCEPTED,
            cls.DELIVERY_COMPLETED,
            cls.PAYMENT_PROCESSED,
            cls.PAYMENT_VALIDATED,
            cls.ORDER_STATUS_CHANGED,
        ]


@dataclass(frozen=True)
class OrderEvent:
    """Снимок заказа на момент зафиксированного перехода"""

    kind: str
    order_id: str
    status: str
    previous_status: str | None
    patient_id: str | None
    pharmacy_id: str
    pharmacy_owner_id: str | None
    pharmacy_name: str
    patient_name: str | None
    driver_id: str | None
    driver_name: str | None
    total: Decimal
    delivery_city: str = ""
    actor_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=get_now)

    @property
    def short_id(self) -> str:
        """Короткий номер заказа"""
        return short_order_id(self.order_id)


async def build_order_event(
    uow: "UnitOfWork",
    kind: str,
    order: Order,
    previous_status: str | None = None,
    actor_id: str | None = None,
    **details: Any,
) -> OrderEvent:
    """
    Сборка события внутри транзакции

    Args:
        uow: Открытая единица работы
        kind: Вид события (OrderEventKind)
        order: Заказ после перехода
        previous_status: Статус до перехода
        actor_id: Инициатор
        **details: Дополнительные данные для текста уведомлений

    Returns:
        OrderEvent
    """
    pharmacy: Pharmacy | None = await uow.users.get_pharmacy(order.pharmacy_id)
    patient: User | None = (
        await uow.users.get_by_id(order.patient_id) if order.patient_id else None
    )
    driver: User | None = await uow.users.get_by_id(order.driver_id) if order.driver_id else None

    return OrderEvent(
        kind=kind,
        order_id=order.id,
        status=order.status,
        previous_status=previous_status,
        patient_id=order.patient_id,
        pharmacy_id=order.pharmacy_id,
        pharmacy_owner_id=pharmacy.owner_id if pharmacy else None,
        pharmacy_name=pharmacy.name if pharmacy else "",
        patient_name=patient.get_display_name() if patient else None,
        driver_name=driver.get_display_name() if driver else None,
        driver_id=order.driver_id,
        total=order.total,
        delivery_city=order.delivery_city or "",
        actor_id=actor_id,
        details=dict(details),
    )
