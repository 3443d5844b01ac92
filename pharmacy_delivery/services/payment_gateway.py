"""
Платёжный шлюз (внешний сервис)

Реальный провайдер вне рамок движка; SimulatedPaymentGateway одобряет
любую авторизацию и подходит для разработки и тестов.
"""

import logging
import uuid
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentAuthorization:
    """Результат авторизации платежа"""

    approved: bool
    reference: str | None = None
    failure_reason: str | None = None


class PaymentGateway(Protocol):
    """Интерфейс платёжного шлюза"""

    async def authorize(
        self, order_id: str, amount: Decimal, payment_method: str
    ) -> PaymentAuthorization: ...


class SimulatedPaymentGateway:
    """
    Имитация шлюза: всегда одобряет

    Вызовы запоминаются только при history_size > 0 (для тестов).
    """

    def __init__(self, history_size: int = 0) -> None:
        self.calls: deque[dict] = deque(maxlen=history_size)

    async def authorize(
        self, order_id: str, amount: Decimal, payment_method: str
    ) -> PaymentAuthorization:
        self.calls.append(
            {"order_id": order_id, "amount": amount, "payment_method": payment_method}
        )
        reference = f"sim_{uuid.uuid4().hex[:12]}"
        logger.debug(f"Платёж по заказу {order_id} одобрен ({reference})")
        return PaymentAuthorization(approved=True, reference=reference)
