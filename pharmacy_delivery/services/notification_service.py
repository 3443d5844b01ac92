"""
Рассылка уведомлений после зафиксированного перехода

Переход статуса фиксируется первым; рассылка идёт после и не может
его отменить. Любая ошибка создания записи или realtime-доставки
логируется как NotificationError и не пробрасывается.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from pharmacy_delivery.core.constants import NotificationType, OrderStatus
from pharmacy_delivery.database.orm_models import Notification
from pharmacy_delivery.database.unit_of_work import UnitOfWork
from pharmacy_delivery.domain.exceptions import NotificationError
from pharmacy_delivery.services.events import OrderEvent, OrderEventKind
from pharmacy_delivery.services.notification_channels import (
    NotificationPayload,
    NotificationPublisher,
    NullPublisher,
    PushEvent,
)
from pharmacy_delivery.utils.helpers import format_money


logger = logging.getLogger(__name__)


class Audience:
    """Кому адресован текст уведомления"""

    PATIENT = "patient"
    PHARMACY = "pharmacy"
    DRIVER = "driver"
    ADMIN = "admin"


@dataclass(frozen=True)
class Recipient:
    """Получатель уведомления"""

    user_id: str
    audience: str


@dataclass(frozen=True)
class MessageTemplate:
    """Шаблон уведомления (подстановки из OrderEvent)"""

    title: str
    message: str
    type: str = NotificationType.INFO


# Тексты по (событию, аудитории)
TEMPLATES: dict[tuple[str, str], MessageTemplate] = {
    (OrderEventKind.DELIVERY_ACCEPTED, Audience.PATIENT): MessageTemplate(
        "Driver on the way 🚚",
        "{driver_name} picked up your order #{short_id}. "
        "Estimated delivery in {eta_minutes} minutes.",
    ),
    (OrderEventKind.DELIVERY_ACCEPTED, Audience.PHARMACY): MessageTemplate(
        "Driver assigned ✅",
        "{driver_name} picked up order #{short_id}",
        NotificationType.SUCCESS,
    ),
    (OrderEventKind.DELIVERY_ACCEPTED, Audience.ADMIN): MessageTemplate(
        "Delivery in progress 🚛",
        "Order #{short_id} picked up by {driver_name}",
    ),
    (OrderEventKind.DELIVERY_COMPLETED, Audience.PATIENT): MessageTemplate(
        "Order delivered ✅",
        "Your order #{short_id} was delivered by {driver_name}. Thank you!",
        NotificationType.SUCCESS,
    ),
    (OrderEventKind.DELIVERY_COMPLETED, Audience.PHARMACY): MessageTemplate(
        "Delivery completed 📦",
        "Order #{short_id} delivered to {patient_name}",
        NotificationType.SUCCESS,
    ),
    (OrderEventKind.DELIVERY_COMPLETED, Audience.ADMIN): MessageTemplate(
        "Delivery completed 🎉",
        "Order #{short_id} delivered by {driver_name} - {total}",
        NotificationType.SUCCESS,
    ),
    (OrderEventKind.PAYMENT_PROCESSED, Audience.PHARMACY): MessageTemplate(
        "Payment received 💳",
        "Payment of {total} received for order #{short_id} from {patient_name}",
        NotificationType.SUCCESS,
    ),
    (OrderEventKind.PAYMENT_PROCESSED, Audience.ADMIN): MessageTemplate(
        "New payment 💰",
        "Payment of {total} received - order #{short_id} ({pharmacy_name})",
    ),
    (OrderEventKind.PAYMENT_PROCESSED, Audience.PATIENT): MessageTemplate(
        "Payment confirmed ✅",
        "Your payment of {total} was processed. The pharmacy will prepare your order.",
        NotificationType.SUCCESS,
    ),
    (OrderEventKind.PAYMENT_VALIDATED, Audience.PATIENT): MessageTemplate(
        "Preparation started 🔄",
        "Your payment was validated. {pharmacy_name} is preparing order #{short_id}",
    ),
    (OrderEventKind.PAYMENT_VALIDATED, Audience.DRIVER): MessageTemplate(
        "New delivery available 🚚",
        "Delivery to {delivery_city} - {total}",
    ),
    (OrderEventKind.PAYMENT_VALIDATED, Audience.ADMIN): MessageTemplate(
        "Order in preparation 📦",
        "Order #{short_id} validated by {pharmacy_name} - waiting for a driver",
    ),
    (OrderEventKind.ORDER_STATUS_CHANGED, Audience.PATIENT): MessageTemplate(
        "Order {status_name} {status_emoji}",
        "Your order #{short_id}: {status_name}. {reason}",
    ),
    (OrderEventKind.ORDER_STATUS_CHANGED, Audience.PHARMACY): MessageTemplate(
        "Order {status_name} {status_emoji}",
        "Order #{short_id} from {patient_name}: {status_name}. {reason}",
    ),
    (OrderEventKind.ORDER_STATUS_CHANGED, Audience.ADMIN): MessageTemplate(
        "Order {status_name} {status_emoji}",
        "Order #{short_id} ({pharmacy_name}): {status_name}. {reason}",
    ),
}


def notification_type_for_status(status: str) -> str:
    """Тип уведомления для смены статуса"""
    if status in (OrderStatus.REJECTED, OrderStatus.CANCELLED):
        return NotificationType.WARNING
    if status in (OrderStatus.VALIDATED, OrderStatus.READY, OrderStatus.DELIVERED):
        return NotificationType.SUCCESS
    return NotificationType.INFO


class NotificationService:
    """
    Рассылка уведомлений по событиям заказа

    Получатели вычисляются по виду события, для каждого создаётся запись
    Notification (в отдельной транзакции) и делается попытка realtime-доставки.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        publisher: NotificationPublisher | None = None,
    ):
        """
        Args:
            uow_factory: Фабрика единиц работы
            publisher: Realtime канал (по умолчанию - без доставки)
        """
        self._uow_factory = uow_factory
        self.publisher = publisher or NullPublisher()

    async def dispatch(self, event: OrderEvent) -> list[Notification]:
        """
        Рассылка уведомлений по событию (никогда не бросает исключений)

        Args:
            event: Зафиксированное событие заказа

        Returns:
            Созданные уведомления
        """
        try:
            recipients = await self.resolve_recipients(event)
        except Exception as e:
            logger.error(
                f"ERROR: Не удалось определить получателей для {event.kind} "
                f"заказа {event.order_id}: {e}"
            )
            return []

        created: list[Notification] = []
        for recipient in recipients:
            notification = await self._notify(recipient, event)
            if notification is not None:
                created.append(notification)

        logger.info(
            f"Событие {event.kind} заказа {event.order_id}: "
            f"уведомлений {len(created)} из {len(recipients)}"
        )
        return created

    async def resolve_recipients(self, event: OrderEvent) -> list[Recipient]:
        """
        Получатели по виду события

        Дубликаты убираются с сохранением порядка, пустые ID пропускаются.
        """
        candidates: list[Recipient] = []

        def add(user_ids, audience: str) -> None:
            for user_id in user_ids:
                if user_id:
                    candidates.append(Recipient(user_id, audience))

        async with self._uow_factory() as uow:
            admin_ids = await uow.users.get_active_admin_ids()

            if event.kind in (
                OrderEventKind.DELIVERY_ACCEPTED,
                OrderEventKind.DELIVERY_COMPLETED,
            ):
                add([event.patient_id], Audience.PATIENT)
                add([event.pharmacy_owner_id], Audience.PHARMACY)
                add(admin_ids, Audience.ADMIN)
            elif event.kind == OrderEventKind.PAYMENT_PROCESSED:
                add([event.pharmacy_owner_id], Audience.PHARMACY)
                add(admin_ids, Audience.ADMIN)
                add([event.patient_id], Audience.PATIENT)
            elif event.kind == OrderEventKind.PAYMENT_VALIDATED:
                driver_ids = await uow.driver_locations.get_available_driver_ids()
                add([event.patient_id], Audience.PATIENT)
                add(driver_ids, Audience.DRIVER)
                add(admin_ids, Audience.ADMIN)
            elif event.kind == OrderEventKind.ORDER_STATUS_CHANGED:
                add([event.patient_id], Audience.PATIENT)
                if event.pharmacy_owner_id != event.actor_id:
                    add([event.pharmacy_owner_id], Audience.PHARMACY)
                add(admin_ids, Audience.ADMIN)
            else:
                raise NotificationError(f"Unknown event kind '{event.kind}'")

        seen: set[str] = set()
        recipients = []
        for recipient in candidates:
            if recipient.user_id in seen:
                continue
            seen.add(recipient.user_id)
            recipients.append(recipient)
        return recipients

    def compose(self, event: OrderEvent, audience: str) -> MessageTemplate:
        """Текст уведомления для аудитории"""
        template = TEMPLATES.get((event.kind, audience))
        if template is None:
            raise NotificationError(f"No template for {event.kind}/{audience}")

        reason = event.details.get("reason") or ""
        values = {
            "short_id": event.short_id,
            "driver_name": event.driver_name or "Driver",
            "patient_name": event.patient_name or "customer",
            "pharmacy_name": event.pharmacy_name,
            "delivery_city": event.delivery_city,
            "total": format_money(event.total),
            "eta_minutes": event.details.get("eta_minutes", ""),
            "status_name": OrderStatus.get_status_name(event.status).lower(),
            "status_emoji": OrderStatus.get_status_emoji(event.status),
            "reason": f"Reason: {reason}" if reason else "",
        }
        notification_type = template.type
        if event.kind == OrderEventKind.ORDER_STATUS_CHANGED:
            notification_type = notification_type_for_status(event.status)

        return MessageTemplate(
            title=template.title.format(**values).strip(),
            message=template.message.format(**values).strip(),
            type=notification_type,
        )

    async def _notify(self, recipient: Recipient, event: OrderEvent) -> Notification | None:
        """Создание записи и realtime-доставка для одного получателя"""
        try:
            content = self.compose(event, recipient.audience)
            async with self._uow_factory() as uow:
                notification = await uow.notifications.create(
                    user_id=recipient.user_id,
                    title=content.title,
                    message=content.message,
                    notification_type=content.type,
                    order_id=event.order_id,
                )
        except Exception as e:
            error = NotificationError(
                f"Failed to create notification: {e}", recipient_id=recipient.user_id
            )
            logger.error(f"ERROR: {error}")
            return None

        await self.push(
            recipient.user_id,
            NotificationPayload(event=PushEvent.NEW_NOTIFICATION, data=notification.to_payload()),
        )
        return notification

    async def push(self, user_id: str, payload: NotificationPayload) -> bool:
        """
        Best-effort realtime-доставка

        Returns:
            True если канал принял сообщение
        """
        try:
            await self.publisher.publish(user_id, payload)
            return True
        except Exception as e:
            logger.error(f"ERROR: Realtime доставка {payload.event} пользователю {user_id}: {e}")
            return False
