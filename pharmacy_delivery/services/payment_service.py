"""
Сервис оплаты: validated → paid → preparing
"""

import logging
from collections.abc import Callable

from pharmacy_delivery.core.constants import OrderStatus, PaymentMethod, PaymentStatus, UserRole
from pharmacy_delivery.database.orm_models import Order
from pharmacy_delivery.database.unit_of_work import UnitOfWork
from pharmacy_delivery.domain.exceptions import ConflictError, NotFoundError, PaymentDeclinedError
from pharmacy_delivery.domain.order_state_machine import OrderStateMachine
from pharmacy_delivery.schemas.base import validate_input
from pharmacy_delivery.schemas.payment import (
    PaymentMethodInfo,
    PaymentResult,
    PaymentValidationResult,
    ProcessPaymentSchema,
    ValidatePaymentSchema,
)
from pharmacy_delivery.services.events import OrderEventKind, build_order_event
from pharmacy_delivery.services.notification_service import NotificationService
from pharmacy_delivery.services.payment_gateway import PaymentGateway, SimulatedPaymentGateway


logger = logging.getLogger(__name__)


PAYMENT_METHODS_CATALOGUE: list[PaymentMethodInfo] = [
    PaymentMethodInfo(
        id=PaymentMethod.CARD,
        name="Bank card",
        description="Visa, Mastercard, American Express",
        icon="💳",
    ),
    PaymentMethodInfo(
        id=PaymentMethod.PAYPAL,
        name="PayPal",
        description="Secure payment via PayPal",
        icon="🅿️",
    ),
    PaymentMethodInfo(
        id=PaymentMethod.APPLE_PAY,
        name="Apple Pay",
        description="Fast payment with Touch ID",
        icon="🍎",
    ),
    PaymentMethodInfo(
        id=PaymentMethod.GOOGLE_PAY,
        name="Google Pay",
        description="Fast payment with Google",
        icon="🔵",
    ),
]


class PaymentService:
    """Сервис оплаты заказов"""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        notifier: NotificationService,
        gateway: PaymentGateway | None = None,
    ):
        """
        Args:
            uow_factory: Фабрика единиц работы
            notifier: Сервис рассылки уведомлений
            gateway: Платёжный шлюз (по умолчанию - имитация)
        """
        self._uow_factory = uow_factory
        self._notifier = notifier
        self._gateway = gateway or SimulatedPaymentGateway()

    async def process_payment(
        self, order_id: str, patient_id: str, payment_method: str
    ) -> PaymentResult:
        """
        Оплата заказа пациентом (validated → paid)

        Args:
            order_id: ID заказа
            patient_id: ID пациента
            payment_method: card, paypal, apple_pay или google_pay

        Returns:
            PaymentResult

        Raises:
            ValidationError: Неизвестный способ оплаты
            NotFoundError: Заказ не найден
            ConflictError: Чужой заказ, неверный статус или отказ шлюза
        """
        request = validate_input(
            ProcessPaymentSchema,
            order_id=order_id,
            patient_id=patient_id,
            payment_method=payment_method,
        )
        logger.info(
            f"Оплата заказа {request.order_id} пациентом {request.patient_id} "
            f"({request.payment_method})"
        )

        authorization = None

        async def ensure_payable(order: Order) -> None:
            nonlocal authorization
            if order.patient_id != request.patient_id:
                raise ConflictError("order does not belong to this patient", order_id=order.id)
            if order.status != OrderStatus.VALIDATED:
                raise ConflictError(
                    f"order is {order.status}, expected validated", order_id=order.id
                )
            authorization = await self._gateway.authorize(
                order.id, order.total, request.payment_method
            )
            if not authorization.approved:
                raise PaymentDeclinedError(
                    authorization.failure_reason or "payment declined", order_id=order.id
                )

        async with self._uow_factory() as uow:
            order = await OrderStateMachine.apply_transition(
                uow,
                request.order_id,
                expected={OrderStatus.VALIDATED},
                to_status=OrderStatus.PAID,
                message="Payment completed successfully",
                changes={
                    "payment_method": request.payment_method,
                    "payment_status": PaymentStatus.COMPLETED,
                },
                guard=ensure_payable,
                user_roles=[UserRole.PATIENT],
            )
            event = await build_order_event(
                uow,
                OrderEventKind.PAYMENT_PROCESSED,
                order,
                previous_status=OrderStatus.VALIDATED,
                actor_id=request.patient_id,
            )

        logger.info(f"OK: Заказ {order.id} оплачен")
        await self._notifier.dispatch(event)

        return PaymentResult(
            order_id=order.id,
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            transaction_reference=authorization.reference if authorization else None,
        )

    async def validate_payment(self, order_id: str, pharmacist_id: str) -> PaymentValidationResult:
        """
        Подтверждение оплаты фармацевтом (paid → preparing)

        После подтверждения заказ становится виден курьерам.

        Args:
            order_id: ID заказа
            pharmacist_id: ID фармацевта - владельца аптеки

        Returns:
            PaymentValidationResult

        Raises:
            NotFoundError: Заказ или аптека не найдены
            ConflictError: Чужая аптека или неверный статус
        """
        request = validate_input(
            ValidatePaymentSchema, order_id=order_id, pharmacist_id=pharmacist_id
        )
        logger.info(f"Подтверждение оплаты заказа {request.order_id} фармацевтом {request.pharmacist_id}")

        async with self._uow_factory() as uow:

            async def ensure_pharmacy_owner(order: Order) -> None:
                pharmacy = await uow.users.get_pharmacy(order.pharmacy_id)
                if pharmacy is None:
                    raise NotFoundError("Pharmacy", order.pharmacy_id)
                if pharmacy.owner_id != request.pharmacist_id:
                    raise ConflictError(
                        "order does not belong to this pharmacist's pharmacy", order_id=order.id
                    )

            order = await OrderStateMachine.apply_transition(
                uow,
                request.order_id,
                expected={OrderStatus.PAID},
                to_status=OrderStatus.PREPARING,
                message="Payment validated - preparation in progress",
                guard=ensure_pharmacy_owner,
                user_roles=[UserRole.PHARMACIST],
            )
            event = await build_order_event(
                uow,
                OrderEventKind.PAYMENT_VALIDATED,
                order,
                previous_status=OrderStatus.PAID,
                actor_id=request.pharmacist_id,
            )

        logger.info(f"OK: Оплата заказа {order.id} подтверждена, заказ в сборке")
        await self._notifier.dispatch(event)

        return PaymentValidationResult(order_id=order.id, status=order.status)

    def get_payment_methods(self) -> list[PaymentMethodInfo]:
        """Каталог способов оплаты"""
        return [method.model_copy() for method in PAYMENT_METHODS_CATALOGUE]
