"""
Сервис смены статусов заказа фармацевтом, пациентом и администратором
"""

import logging
from collections.abc import Callable

from pharmacy_delivery.core.constants import OrderStatus, UserRole
from pharmacy_delivery.database.orm_models import Order
from pharmacy_delivery.database.unit_of_work import UnitOfWork
from pharmacy_delivery.domain.exceptions import ConflictError, NotFoundError, ValidationError
from pharmacy_delivery.domain.order_state_machine import OrderStateMachine
from pharmacy_delivery.schemas.base import validate_input
from pharmacy_delivery.schemas.order import (
    OrderStatusChangeResult,
    OrderStatusChangeSchema,
    TrackingEntry,
)
from pharmacy_delivery.services.events import OrderEventKind, build_order_event
from pharmacy_delivery.services.notification_service import NotificationService


logger = logging.getLogger(__name__)


class OrderService:
    """Сервис для работы с жизненным циклом заказа"""

    def __init__(self, uow_factory: Callable[[], UnitOfWork], notifier: NotificationService):
        """
        Args:
            uow_factory: Фабрика единиц работы
            notifier: Сервис рассылки уведомлений
        """
        self._uow_factory = uow_factory
        self._notifier = notifier

    async def change_status(
        self,
        order_id: str,
        actor_id: str,
        actor_role: str,
        new_status: str,
        rejection_reason: str | None = None,
    ) -> OrderStatusChangeResult:
        """
        Смена статуса заказа

        Доступны переходы в validated, rejected, ready и cancelled. Оплата,
        подтверждение оплаты и доставка выполняются своими операциями.

        Args:
            order_id: ID заказа
            actor_id: ID инициатора
            actor_role: Роль инициатора
            new_status: Новый статус
            rejection_reason: Причина отклонения (обязательна для rejected)

        Returns:
            OrderStatusChangeResult

        Raises:
            ValidationError: Некорректные данные или статус выставляется отдельной операцией
            NotFoundError: Заказ не найден
            ConflictError: Переход запрещён, нет прав или заказ чужой
        """
        request = validate_input(
            OrderStatusChangeSchema,
            order_id=order_id,
            actor_id=actor_id,
            actor_role=actor_role,
            status=new_status,
            rejection_reason=rejection_reason,
        )
        if request.status in OrderStateMachine.DEDICATED_TARGETS:
            raise ValidationError(
                f"Status '{request.status}' is set by a dedicated operation", field="status"
            )

        logger.info(
            f"Смена статуса заказа {request.order_id} на {request.status} "
            f"({request.actor_role} {request.actor_id})"
        )

        previous_status = None

        async with self._uow_factory() as uow:

            async def ensure_actor_owns_order(order: Order) -> None:
                nonlocal previous_status
                previous_status = order.status
                if request.actor_role == UserRole.PATIENT:
                    if order.patient_id != request.actor_id:
                        raise ConflictError("order does not belong to this patient", order_id=order.id)
                elif request.actor_role == UserRole.PHARMACIST:
                    pharmacy = await uow.users.get_pharmacy(order.pharmacy_id)
                    if pharmacy is None:
                        raise NotFoundError("Pharmacy", order.pharmacy_id)
                    if pharmacy.owner_id != request.actor_id:
                        raise ConflictError(
                            "order does not belong to this pharmacist's pharmacy",
                            order_id=order.id,
                        )

            changes = {}
            if request.status == OrderStatus.REJECTED:
                changes["rejection_reason"] = request.rejection_reason

            order = await OrderStateMachine.apply_transition(
                uow,
                request.order_id,
                expected=OrderStateMachine.get_source_states(request.status),
                to_status=request.status,
                changes=changes,
                guard=ensure_actor_owns_order,
                user_roles=[request.actor_role],
            )
            event = await build_order_event(
                uow,
                OrderEventKind.ORDER_STATUS_CHANGED,
                order,
                previous_status=previous_status,
                actor_id=request.actor_id,
                reason=request.rejection_reason,
            )

        logger.info(f"OK: Заказ {order.id}: {previous_status} → {order.status}")
        await self._notifier.dispatch(event)

        return OrderStatusChangeResult(
            order_id=order.id, previous_status=previous_status, status=order.status
        )

    async def get_tracking_history(self, order_id: str) -> list[TrackingEntry]:
        """
        Журнал отслеживания заказа

        Args:
            order_id: ID заказа

        Returns:
            Записи в хронологическом порядке

        Raises:
            NotFoundError: Заказ не найден
        """
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                raise NotFoundError("Order", order_id)
            history = await uow.orders.get_tracking_history(order_id)
            return [TrackingEntry.model_validate(entry) for entry in history]
