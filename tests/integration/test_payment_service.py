"""
Интеграционные тесты оплаты и подтверждения оплаты
"""

from decimal import Decimal

import pytest

from pharmacy_delivery.core.constants import OrderStatus, PaymentStatus
from pharmacy_delivery.domain.exceptions import (
    ConflictError,
    NotFoundError,
    PaymentDeclinedError,
    ValidationError,
)
from pharmacy_delivery.services.payment_gateway import PaymentAuthorization
from pharmacy_delivery.services.service_factory import ServiceFactory


class DecliningGateway:
    """Шлюз, который отклоняет все платежи"""

    def __init__(self):
        self.calls = 0

    async def authorize(self, order_id: str, amount: Decimal, payment_method: str):
        self.calls += 1
        return PaymentAuthorization(approved=False, failure_reason="card declined")


class TestProcessPayment:
    """Тесты оплаты заказа пациентом"""

    @pytest.mark.asyncio
    async def test_pay_validated_order(self, services, seed, make_order, read):
        """Оплата переводит заказ в paid и уведомляет аптеку и администраторов"""
        order_id = await make_order(OrderStatus.VALIDATED)

        result = await services.payment_service.process_payment(order_id, seed.patient_id, "card")

        assert result.status == OrderStatus.PAID
        assert result.payment_status == PaymentStatus.COMPLETED
        assert result.payment_method == "card"
        assert result.transaction_reference.startswith("sim_")

        order = await read.order(order_id)
        assert order.status == OrderStatus.PAID
        assert order.payment_method == "card"

        tracking = await read.tracking(order_id)
        assert tracking[-1].status == OrderStatus.PAID
        assert tracking[-1].message == "Payment completed successfully"

        pharmacy_notifications = await read.notifications(seed.pharmacist_id)
        assert len(pharmacy_notifications) == 1
        assert "€42.50" in pharmacy_notifications[0].message
        for admin_id in seed.admin_ids:
            assert len(await read.notifications(admin_id)) == 1

        gateway_calls = services.payment_gateway.calls
        assert gateway_calls[0]["amount"] == Decimal("42.50")

    @pytest.mark.asyncio
    async def test_foreign_order(self, services, seed, make_order, read):
        """Пациент не может оплатить чужой заказ"""
        order_id = await make_order(OrderStatus.VALIDATED)

        with pytest.raises(ConflictError, match="does not belong"):
            await services.payment_service.process_payment(
                order_id, seed.other_patient_id, "card"
            )

        order = await read.order(order_id)
        assert order.status == OrderStatus.VALIDATED
        assert not services.payment_gateway.calls

    @pytest.mark.asyncio
    async def test_wrong_status(self, services, seed, make_order):
        """Заказ, ожидающий проверки аптекой, оплатить нельзя"""
        order_id = await make_order(OrderStatus.PENDING)
        with pytest.raises(ConflictError, match="order is pending, expected validated"):
            await services.payment_service.process_payment(order_id, seed.patient_id, "paypal")

    @pytest.mark.asyncio
    async def test_pay_twice(self, services, seed, make_order):
        """Повторная оплата - конфликт"""
        order_id = await make_order(OrderStatus.VALIDATED)
        await services.payment_service.process_payment(order_id, seed.patient_id, "card")

        with pytest.raises(ConflictError):
            await services.payment_service.process_payment(order_id, seed.patient_id, "card")

    @pytest.mark.asyncio
    async def test_invalid_method(self, services, seed, make_order):
        """Неизвестный способ оплаты"""
        order_id = await make_order(OrderStatus.VALIDATED)
        with pytest.raises(ValidationError) as exc_info:
            await services.payment_service.process_payment(order_id, seed.patient_id, "cash")
        assert exc_info.value.field == "payment_method"

    @pytest.mark.asyncio
    async def test_unknown_order(self, services, seed):
        """Несуществующий заказ"""
        with pytest.raises(NotFoundError):
            await services.payment_service.process_payment("missing", seed.patient_id, "card")

    @pytest.mark.asyncio
    async def test_declined_by_gateway(self, database, publisher, seed, make_order, read):
        """Отказ шлюза не меняет заказ и не рассылает уведомлений"""
        gateway = DecliningGateway()
        factory = ServiceFactory(database, publisher=publisher, payment_gateway=gateway)
        order_id = await make_order(OrderStatus.VALIDATED)

        with pytest.raises(PaymentDeclinedError, match="card declined"):
            await factory.payment_service.process_payment(order_id, seed.patient_id, "card")

        assert gateway.calls == 1
        order = await read.order(order_id)
        assert order.status == OrderStatus.VALIDATED
        assert order.payment_status == PaymentStatus.PENDING
        assert len(await read.tracking(order_id)) == 1
        assert await read.notifications(seed.pharmacist_id) == []
        assert not publisher.published


class TestValidatePayment:
    """Тесты подтверждения оплаты фармацевтом"""

    @pytest.mark.asyncio
    async def test_validate_payment(self, services, seed, make_order, read):
        """Заказ переходит в сборку, доступные курьеры получают уведомление"""
        order_id = await make_order(OrderStatus.PAID)

        result = await services.payment_service.validate_payment(order_id, seed.pharmacist_id)

        assert result.status == OrderStatus.PREPARING
        tracking = await read.tracking(order_id)
        assert tracking[-1].message == "Payment validated - preparation in progress"

        for driver_id in seed.driver_ids:
            notifications = await read.notifications(driver_id)
            assert len(notifications) == 1
            assert notifications[0].title == "New delivery available 🚚"
        # Курьер без позиции не считается доступным
        assert await read.notifications(seed.idle_driver_id) == []
        assert len(await read.notifications(seed.patient_id)) == 1

    @pytest.mark.asyncio
    async def test_busy_driver_not_notified(self, services, seed, make_order, read):
        """Курьер в доставке не получает предложение нового заказа"""
        busy_driver, free_driver = seed.driver_ids
        delivery = await make_order(OrderStatus.READY)
        await services.delivery_service.accept_delivery(delivery, busy_driver)
        order_id = await make_order(OrderStatus.PAID)

        await services.payment_service.validate_payment(order_id, seed.pharmacist_id)

        assert await read.notifications(busy_driver) == []
        assert len(await read.notifications(free_driver)) == 1

    @pytest.mark.asyncio
    async def test_foreign_pharmacy(self, services, seed, make_order, read):
        """Фармацевт чужой аптеки не может подтвердить оплату"""
        order_id = await make_order(OrderStatus.PAID)

        with pytest.raises(ConflictError):
            await services.payment_service.validate_payment(order_id, seed.other_pharmacist_id)

        order = await read.order(order_id)
        assert order.status == OrderStatus.PAID

    @pytest.mark.asyncio
    async def test_not_paid(self, services, seed, make_order):
        """Неоплаченный заказ подтвердить нельзя"""
        order_id = await make_order(OrderStatus.VALIDATED)
        with pytest.raises(ConflictError, match="order is validated, expected paid"):
            await services.payment_service.validate_payment(order_id, seed.pharmacist_id)

    @pytest.mark.asyncio
    async def test_order_becomes_available_to_drivers(self, services, seed, make_order):
        """После подтверждения заказ виден курьерам"""
        order_id = await make_order(OrderStatus.PAID)
        assert await services.delivery_service.get_available_deliveries(seed.driver_ids[0]) == []

        await services.payment_service.validate_payment(order_id, seed.pharmacist_id)

        deliveries = await services.delivery_service.get_available_deliveries(seed.driver_ids[0])
        assert [d.order_id for d in deliveries] == [order_id]


class TestPaymentMethods:
    """Тесты каталога способов оплаты"""

    @pytest.mark.asyncio
    async def test_catalogue(self, services):
        """Каталог содержит все поддерживаемые способы"""
        methods = services.payment_service.get_payment_methods()
        assert [m.id for m in methods] == ["card", "paypal", "apple_pay", "google_pay"]
        assert all(m.enabled for m in methods)

    @pytest.mark.asyncio
    async def test_catalogue_is_copy(self, services):
        """Изменение результата не меняет каталог"""
        methods = services.payment_service.get_payment_methods()
        methods[0].enabled = False
        assert services.payment_service.get_payment_methods()[0].enabled is True
