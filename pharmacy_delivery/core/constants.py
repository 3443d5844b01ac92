"""
Константы приложения - роли, статусы заказов, типы уведомлений, способы оплаты
"""


class UserRole:
    """Роли пользователей платформы"""

    PATIENT = "patient"
    PHARMACIST = "pharmacist"
    DRIVER = "driver"
    ADMIN = "admin"

    @classmethod
    def all_roles(cls) -> list[str]:
        """Список всех ролей"""
        return [cls.PATIENT, cls.PHARMACIST, cls.DRIVER, cls.ADMIN]


class OrderStatus:
    """Статусы заказов"""

    PENDING = "pending"  # Создан пациентом
    VALIDATED = "validated"  # Проверен аптекой
    REJECTED = "rejected"  # Отклонён аптекой
    PAID = "paid"  # Оплачен пациентом
    PREPARING = "preparing"  # Оплата подтверждена, аптека собирает заказ
    READY = "ready"  # Готов к выдаче курьеру
    IN_TRANSIT = "in_transit"  # У курьера
    DELIVERED = "delivered"  # Доставлен
    CANCELLED = "cancelled"  # Отменён

    # Заказы, которые курьер может взять в доставку
    DELIVERABLE = frozenset({"ready", "preparing"})

    @classmethod
    def all_statuses(cls) -> list[str]:
        """Список всех статусов"""
        return [
            cls.PENDING,
            cls.VALIDATED,
            cls.REJECTED,
            cls.PAID,
            cls.PREPARING,
            cls.READY,
            cls.IN_TRANSIT,
            cls.DELIVERED,
            cls.CANCELLED,
        ]

    @classmethod
    def get_status_emoji(cls, status: str) -> str:
        """Получение эмодзи для статуса"""
        emojis = {
            cls.PENDING: "🆕",
            cls.VALIDATED: "✅",
            cls.REJECTED: "❌",
            cls.PAID: "💳",
            cls.PREPARING: "🔄",
            cls.READY: "📦",
            cls.IN_TRANSIT: "🚚",
            cls.DELIVERED: "🏠",
            cls.CANCELLED: "🚫",
        }
        return emojis.get(status, "")

    @classmethod
    def get_status_name(cls, status: str) -> str:
        """Человекочитаемое название статуса"""
        names = {
            cls.PENDING: "Pending",
            cls.VALIDATED: "Validated",
            cls.REJECTED: "Rejected",
            cls.PAID: "Paid",
            cls.PREPARING: "Preparing",
            cls.READY: "Ready for pickup",
            cls.IN_TRANSIT: "In transit",
            cls.DELIVERED: "Delivered",
            cls.CANCELLED: "Cancelled",
        }
        return names.get(status, status)


class PaymentStatus:
    """Статусы оплаты заказа"""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod:
    """Поддерживаемые способы оплаты"""

    CARD = "card"
    PAYPAL = "paypal"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"

    @classmethod
    def all_methods(cls) -> list[str]:
        """Список всех способов оплаты"""
        return [cls.CARD, cls.PAYPAL, cls.APPLE_PAY, cls.GOOGLE_PAY]


class NotificationType:
    """Типы уведомлений"""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def all_types(cls) -> list[str]:
        """Список всех типов уведомлений"""
        return [cls.INFO, cls.SUCCESS, cls.WARNING, cls.ERROR]
