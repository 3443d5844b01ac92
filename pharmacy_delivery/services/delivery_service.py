"""
Сервис назначения доставок

Назначает не более одного курьера на заказ и не более одной активной
доставки на курьера. Каждая операция - одна транзакция; при гонке
побеждает тот, кто первым зафиксировал транзакцию, проигравший получает
ConflictError без повторов.
"""

import logging
from collections.abc import Callable
from datetime import timedelta
from decimal import Decimal

from pharmacy_delivery.core.config import Config
from pharmacy_delivery.core.constants import OrderStatus, UserRole
from pharmacy_delivery.database.orm_models import Order, Pharmacy, User
from pharmacy_delivery.database.unit_of_work import UnitOfWork
from pharmacy_delivery.domain.exceptions import ConflictError, NotFoundError
from pharmacy_delivery.domain.order_state_machine import OrderStateMachine
from pharmacy_delivery.schemas.base import validate_input
from pharmacy_delivery.schemas.delivery import (
    AcceptDeliveryResult,
    AvailableDriver,
    CompleteDeliveryResult,
    DeliveryAcceptSchema,
    DeliveryCompleteSchema,
    DeliverySummary,
    DriverLocationInfo,
    DriverQuerySchema,
    LocationUpdateSchema,
    PharmacistQuerySchema,
)
from pharmacy_delivery.services.events import OrderEventKind, build_order_event
from pharmacy_delivery.services.notification_channels import NotificationPayload, PushEvent
from pharmacy_delivery.services.notification_service import NotificationService
from pharmacy_delivery.utils.helpers import distance_between, estimate_minutes, get_now


logger = logging.getLogger(__name__)


def delivery_fee() -> Decimal:
    """Фиксированная стоимость доставки"""
    return Decimal(str(Config.DELIVERY_FEE)).quantize(Decimal("0.01"))


def build_delivery_summary(
    order: Order,
    pharmacy: Pharmacy,
    patient: User | None,
    driver_latitude: float | None = None,
    driver_longitude: float | None = None,
) -> DeliverySummary:
    """
    Карточка заказа для курьера

    Args:
        order: Заказ
        pharmacy: Аптека заказа
        patient: Пациент (может отсутствовать)
        driver_latitude: Широта курьера
        driver_longitude: Долгота курьера

    Returns:
        DeliverySummary с расстоянием и оценкой времени
    """
    distance = distance_between(
        driver_latitude, driver_longitude, order.delivery_latitude, order.delivery_longitude
    )
    return DeliverySummary(
        order_id=order.id,
        status=order.status,
        total=order.total,
        delivery_fee=delivery_fee(),
        distance_km=round(distance, 2) if distance is not None else None,
        estimated_minutes=estimate_minutes(distance, Config.MINUTES_PER_KM),
        pharmacy_name=pharmacy.name,
        pharmacy_address=pharmacy.get_address(),
        customer_name=patient.get_display_name() if patient else None,
        delivery_address=order.get_delivery_address(),
        created_at=order.created_at,
    )


class DeliveryService:
    """Сервис назначения и выполнения доставок"""

    def __init__(self, uow_factory: Callable[[], UnitOfWork], notifier: NotificationService):
        """
        Args:
            uow_factory: Фабрика единиц работы
            notifier: Сервис рассылки уведомлений
        """
        self._uow_factory = uow_factory
        self._notifier = notifier

    @staticmethod
    async def _get_driver(uow: UnitOfWork, driver_id: str) -> User:
        """Курьер по ID или NotFoundError"""
        driver = await uow.users.get_by_id(driver_id)
        if driver is None or driver.role != UserRole.DRIVER:
            raise NotFoundError("Driver", driver_id)
        return driver

    async def accept_delivery(self, order_id: str, driver_id: str) -> AcceptDeliveryResult:
        """
        Принятие доставки курьером

        Заказ в статусе ready/preparing без курьера переходит в in_transit,
        курьер становится недоступным.

        Args:
            order_id: ID заказа
            driver_id: ID курьера

        Returns:
            AcceptDeliveryResult с ожидаемым временем доставки

        Raises:
            ValidationError: Некорректные входные данные
            NotFoundError: Заказ или курьер не найдены
            ConflictError: Заказ уже назначен, у курьера уже есть доставка
                или конкурентная транзакция успела первой
        """
        request = validate_input(DeliveryAcceptSchema, order_id=order_id, driver_id=driver_id)
        logger.info(f"Принятие доставки: заказ {request.order_id}, курьер {request.driver_id}")

        estimated_delivery = get_now() + timedelta(minutes=Config.DELIVERY_ETA_MINUTES)

        async with self._uow_factory() as uow:
            driver = await self._get_driver(uow, request.driver_id)
            if not driver.is_active:
                raise ConflictError("driver account is inactive")

            async def ensure_claimable(order: Order) -> None:
                if order.driver_id is not None:
                    raise ConflictError("order already assigned", order_id=order.id)
                if await uow.orders.has_active_delivery(request.driver_id):
                    raise ConflictError("driver has active delivery", order_id=order.id)

            order = await OrderStateMachine.apply_transition(
                uow,
                request.order_id,
                expected=OrderStatus.DELIVERABLE,
                to_status=OrderStatus.IN_TRANSIT,
                message="Driver assigned - delivery in progress",
                changes={
                    "driver_id": request.driver_id,
                    "estimated_delivery": estimated_delivery,
                },
                guard=ensure_claimable,
                user_roles=[UserRole.DRIVER],
            )
            await uow.driver_locations.upsert(request.driver_id, is_available=False)
            await uow.flush()

            event = await build_order_event(
                uow,
                OrderEventKind.DELIVERY_ACCEPTED,
                order,
                actor_id=request.driver_id,
                eta_minutes=Config.DELIVERY_ETA_MINUTES,
            )

        logger.info(f"OK: Курьер {request.driver_id} принял заказ {order.id}")
        await self._notifier.dispatch(event)

        return AcceptDeliveryResult(order_id=order.id, estimated_delivery=order.estimated_delivery)

    async def complete_delivery(
        self, order_id: str, driver_id: str, delivery_notes: str | None = None
    ) -> CompleteDeliveryResult:
        """
        Завершение доставки

        Операция не идемпотентна: повторный вызов даёт ConflictError.

        Args:
            order_id: ID заказа
            driver_id: ID курьера
            delivery_notes: Комментарий курьера (попадает в журнал)

        Returns:
            CompleteDeliveryResult со временем доставки

        Raises:
            ValidationError: Некорректные входные данные
            NotFoundError: Заказ не найден
            ConflictError: Чужой заказ или заказ не в пути
        """
        request = validate_input(
            DeliveryCompleteSchema,
            order_id=order_id,
            driver_id=driver_id,
            delivery_notes=delivery_notes,
        )
        logger.info(f"Завершение доставки: заказ {request.order_id}, курьер {request.driver_id}")

        async def ensure_assigned(order: Order) -> None:
            if order.driver_id != request.driver_id:
                raise ConflictError("not your order", order_id=order.id)

        async with self._uow_factory() as uow:
            order = await OrderStateMachine.apply_transition(
                uow,
                request.order_id,
                expected={OrderStatus.IN_TRANSIT},
                to_status=OrderStatus.DELIVERED,
                message=request.delivery_notes or "Order delivered successfully",
                changes={"delivered_at": get_now()},
                guard=ensure_assigned,
                user_roles=[UserRole.DRIVER],
            )
            await uow.driver_locations.upsert(request.driver_id, is_available=True)

            event = await build_order_event(
                uow,
                OrderEventKind.DELIVERY_COMPLETED,
                order,
                previous_status=OrderStatus.IN_TRANSIT,
                actor_id=request.driver_id,
            )

        logger.info(f"OK: Заказ {order.id} доставлен курьером {request.driver_id}")
        await self._notifier.dispatch(event)

        return CompleteDeliveryResult(order_id=order.id, delivered_at=order.delivered_at)

    async def get_available_deliveries(self, driver_id: str) -> list[DeliverySummary]:
        """
        Заказы, которые курьер может взять

        Курьер с активной доставкой получает пустой список.

        Args:
            driver_id: ID курьера

        Returns:
            Список DeliverySummary, самые старые заказы первыми
        """
        request = validate_input(DriverQuerySchema, driver_id=driver_id)

        async with self._uow_factory() as uow:
            if await uow.orders.has_active_delivery(request.driver_id):
                logger.debug(f"У курьера {request.driver_id} есть активная доставка, список пуст")
                return []

            location = await uow.driver_locations.get_by_driver(request.driver_id)
            rows = await uow.orders.get_available_with_details()

        latitude = location.latitude if location else None
        longitude = location.longitude if location else None
        return [
            build_delivery_summary(order, pharmacy, patient, latitude, longitude)
            for order, pharmacy, patient in rows
        ]

    async def update_location(
        self, driver_id: str, latitude: float, longitude: float
    ) -> DriverLocationInfo:
        """
        Обновление позиции курьера

        Доступность не меняется. Пациенты заказов, которые курьер везёт,
        получают realtime-событие driver_location_update.

        Args:
            driver_id: ID курьера
            latitude: Широта [-90, 90]
            longitude: Долгота [-180, 180]

        Returns:
            DriverLocationInfo
        """
        request = validate_input(
            LocationUpdateSchema, driver_id=driver_id, latitude=latitude, longitude=longitude
        )

        async with self._uow_factory() as uow:
            await self._get_driver(uow, request.driver_id)
            location = await uow.driver_locations.upsert(
                request.driver_id, latitude=request.latitude, longitude=request.longitude
            )
            active_orders = await uow.orders.get_active_for_driver(request.driver_id)
            info = DriverLocationInfo.model_validate(location)

        for order in active_orders:
            if not order.patient_id:
                continue
            await self._notifier.push(
                order.patient_id,
                NotificationPayload(
                    event=PushEvent.DRIVER_LOCATION_UPDATE,
                    data={
                        "orderId": order.id,
                        "driverId": request.driver_id,
                        "latitude": request.latitude,
                        "longitude": request.longitude,
                        "timestamp": info.updated_at.isoformat(),
                    },
                ),
            )

        return info

    async def get_available_drivers(self, pharmacist_id: str) -> list[AvailableDriver]:
        """
        Активные курьеры с расстоянием до аптеки фармацевта

        Доступные курьеры идут первыми, затем по имени.

        Args:
            pharmacist_id: ID фармацевта

        Returns:
            Список AvailableDriver
        """
        request = validate_input(PharmacistQuerySchema, pharmacist_id=pharmacist_id)

        async with self._uow_factory() as uow:
            pharmacy = await uow.users.get_pharmacy_by_owner(request.pharmacist_id)
            rows = await uow.driver_locations.get_drivers_with_locations()

        drivers = []
        for driver, location in rows:
            distance = None
            if location is not None and pharmacy is not None:
                distance = distance_between(
                    location.latitude, location.longitude, pharmacy.latitude, pharmacy.longitude
                )
            drivers.append(
                AvailableDriver(
                    driver_id=driver.id,
                    name=driver.get_display_name(),
                    phone=driver.phone,
                    is_available=bool(location and location.is_available),
                    distance_km=round(distance, 2) if distance is not None else None,
                )
            )

        drivers.sort(key=lambda d: (not d.is_available, d.name))
        return drivers
