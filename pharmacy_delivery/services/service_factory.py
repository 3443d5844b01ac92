"""
Factory для создания сервисов
"""

import logging

from pharmacy_delivery.core.config import Config
from pharmacy_delivery.database.orm_database import ORMDatabase
from pharmacy_delivery.services.delivery_reports import DeliveryReportService
from pharmacy_delivery.services.delivery_service import DeliveryService
from pharmacy_delivery.services.integrity_service import IntegrityService
from pharmacy_delivery.services.notification_channels import (
    InMemoryPublisher,
    MultiChannelPublisher,
    NotificationPublisher,
    TelegramPublisher,
)
from pharmacy_delivery.services.notification_service import NotificationService
from pharmacy_delivery.services.order_service import OrderService
from pharmacy_delivery.services.payment_gateway import PaymentGateway, SimulatedPaymentGateway
from pharmacy_delivery.services.payment_service import PaymentService


logger = logging.getLogger(__name__)


def build_default_publisher(db: ORMDatabase) -> NotificationPublisher:
    """
    Канал уведомлений по конфигурации

    Внутрипроцессная шина всегда; Telegram - если задан TELEGRAM_BOT_TOKEN.
    """
    publishers: list[NotificationPublisher] = [InMemoryPublisher()]
    if Config.TELEGRAM_BOT_TOKEN:
        from aiogram import Bot
        from aiogram.client.default import DefaultBotProperties
        from aiogram.enums import ParseMode

        bot = Bot(
            token=Config.TELEGRAM_BOT_TOKEN,
            default=DefaultBotProperties(parse_mode=ParseMode.HTML),
        )
        publishers.append(TelegramPublisher(bot, db.unit_of_work))
        logger.info("OK: Telegram канал уведомлений включён")
    return MultiChannelPublisher(publishers)


class ServiceFactory:
    """
    Factory для создания сервисов с инжекцией зависимостей

    Все сервисы используют один и тот же ORMDatabase.
    """

    def __init__(
        self,
        db: ORMDatabase,
        publisher: NotificationPublisher | None = None,
        payment_gateway: PaymentGateway | None = None,
    ):
        """
        Инициализация фабрики

        Args:
            db: Подключённая база данных
            publisher: Realtime канал уведомлений (по умолчанию - из конфигурации)
            payment_gateway: Платёжный шлюз (по умолчанию - имитация)
        """
        self.db = db
        self._publisher = publisher
        self._payment_gateway = payment_gateway
        self._notification_service = None
        self._delivery_service = None
        self._payment_service = None
        self._order_service = None
        self._report_service = None
        self._integrity_service = None

    @property
    def publisher(self) -> NotificationPublisher:
        """Ленивая инициализация канала уведомлений"""
        if self._publisher is None:
            self._publisher = build_default_publisher(self.db)
        return self._publisher

    @property
    def payment_gateway(self) -> PaymentGateway:
        """Ленивая инициализация платёжного шлюза"""
        if self._payment_gateway is None:
            self._payment_gateway = SimulatedPaymentGateway()
        return self._payment_gateway

    @property
    def notification_service(self) -> NotificationService:
        """Получение Notification Service"""
        if self._notification_service is None:
            self._notification_service = NotificationService(
                self.db.unit_of_work, publisher=self.publisher
            )
        return self._notification_service

    @property
    def delivery_service(self) -> DeliveryService:
        """Получение Delivery Service"""
        if self._delivery_service is None:
            self._delivery_service = DeliveryService(
                self.db.unit_of_work, notifier=self.notification_service
            )
        return self._delivery_service

    @property
    def payment_service(self) -> PaymentService:
        """Получение Payment Service"""
        if self._payment_service is None:
            self._payment_service = PaymentService(
                self.db.unit_of_work,
                notifier=self.notification_service,
                gateway=self.payment_gateway,
            )
        return self._payment_service

    @property
    def order_service(self) -> OrderService:
        """Получение Order Service"""
        if self._order_service is None:
            self._order_service = OrderService(
                self.db.unit_of_work, notifier=self.notification_service
            )
        return self._order_service

    @property
    def report_service(self) -> DeliveryReportService:
        """Получение Delivery Report Service"""
        if self._report_service is None:
            self._report_service = DeliveryReportService(self.db.unit_of_work)
        return self._report_service

    @property
    def integrity_service(self) -> IntegrityService:
        """Получение Integrity Service"""
        if self._integrity_service is None:
            self._integrity_service = IntegrityService(self.db.unit_of_work)
        return self._integrity_service

    def reset(self):
        """Сброс кэшированных сервисов (для тестирования)"""
        self._notification_service = None
        self._delivery_service = None
        self._payment_service = None
        self._order_service = None
        self._report_service = None
        self._integrity_service = None
        logger.debug("ServiceFactory: сервисы сброшены")

    async def close(self) -> None:
        """Освобождение ресурсов каналов уведомлений (сессия Telegram бота)"""
        close = getattr(self._publisher, "close", None)
        if close is not None:
            await close()
        logger.info("OK: ServiceFactory закрыта")
