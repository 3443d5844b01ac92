"""
Тесты для модуля config и констант
"""
import pytest

from pharmacy_delivery.core.config import Config
from pharmacy_delivery.core.constants import (
    NotificationType,
    OrderStatus,
    PaymentMethod,
    UserRole,
)
from pharmacy_delivery.domain.exceptions import (
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    NotificationError,
    PaymentDeclinedError,
    PersistenceError,
    ValidationError,
    http_status_for,
)


class TestUserRole:
    """Тесты для класса UserRole"""

    def test_all_roles(self):
        """Тест получения всех ролей"""
        roles = UserRole.all_roles()
        assert roles == [UserRole.PATIENT, UserRole.PHARMACIST, UserRole.DRIVER, UserRole.ADMIN]


class TestOrderStatus:
    """Тесты для класса OrderStatus"""

    def test_all_statuses(self):
        """Тест получения всех статусов"""
        statuses = OrderStatus.all_statuses()
        assert len(statuses) == 9
        assert OrderStatus.IN_TRANSIT in statuses

    def test_deliverable(self):
        """Курьер может взять только ready и preparing"""
        assert OrderStatus.DELIVERABLE == {OrderStatus.READY, OrderStatus.PREPARING}

    def test_get_status_emoji(self):
        """Тест получения эмодзи для статуса"""
        assert OrderStatus.get_status_emoji(OrderStatus.IN_TRANSIT) == "🚚"
        assert OrderStatus.get_status_emoji("unknown") == ""

    def test_get_status_name(self):
        """Тест получения названия статуса"""
        assert OrderStatus.get_status_name(OrderStatus.READY) == "Ready for pickup"
        assert OrderStatus.get_status_name("unknown") == "unknown"


class TestOtherConstants:
    """Тесты остальных справочников"""

    def test_payment_methods(self):
        """Тест способов оплаты"""
        assert PaymentMethod.all_methods() == ["card", "paypal", "apple_pay", "google_pay"]

    def test_notification_types(self):
        """Тест типов уведомлений"""
        assert NotificationType.all_types() == ["info", "success", "warning", "error"]


class TestConfig:
    """Тесты для класса Config"""

    def test_defaults_are_valid(self):
        """Конфигурация по умолчанию корректна"""
        assert Config.validate() is True

    def test_database_url_from_path(self, monkeypatch):
        """URL строится из DATABASE_PATH, если DATABASE_URL не задан"""
        monkeypatch.setattr(Config, "DATABASE_URL", "")
        monkeypatch.setattr(Config, "DATABASE_PATH", "delivery.db")
        assert Config.get_database_url() == "sqlite+aiosqlite:///delivery.db"

    def test_database_url_explicit(self, monkeypatch):
        """DATABASE_URL имеет приоритет"""
        monkeypatch.setattr(Config, "DATABASE_URL", "postgresql+asyncpg://db/delivery")
        assert Config.get_database_url() == "postgresql+asyncpg://db/delivery"

    def test_negative_eta(self, monkeypatch):
        """Отрицательное время доставки недопустимо"""
        monkeypatch.setattr(Config, "DELIVERY_ETA_MINUTES", 0)
        with pytest.raises(ValueError, match="DELIVERY_ETA_MINUTES"):
            Config.validate()

    def test_default_latitude_out_of_range(self, monkeypatch):
        """Координаты по умолчанию вне диапазона"""
        monkeypatch.setattr(Config, "DEFAULT_DRIVER_LATITUDE", 120.0)
        with pytest.raises(ValueError, match="DEFAULT_DRIVER_LATITUDE"):
            Config.validate()


class TestErrorMapping:
    """Тесты отображения ошибок на HTTP статусы"""

    @pytest.mark.parametrize(
        "error,status",
        [
            (NotFoundError("Order", "o1"), 404),
            (ValidationError("bad input", field="latitude"), 422),
            (ConflictError("order already assigned"), 409),
            (InvalidStateTransitionError("delivered", "delivered"), 409),
            (PaymentDeclinedError("card declined"), 409),
            (PersistenceError("disk full"), 500),
            (NotificationError("push failed"), 500),
        ],
    )
    def test_http_status(self, error, status):
        """Тест HTTP статуса с учётом наследования"""
        assert http_status_for(error) == status

    def test_not_found_message(self):
        """Тест текста NotFoundError"""
        error = NotFoundError("Order", "o1")
        assert str(error) == "Order o1 not found"
        assert error.entity_type == "Order"


class TestSentry:
    """Тесты опциональной интеграции Sentry"""

    def test_disabled_without_dsn(self, monkeypatch):
        """Без DSN Sentry не инициализируется"""
        from pharmacy_delivery.utils.sentry import init_sentry

        monkeypatch.setattr(Config, "SENTRY_DSN", None)
        assert init_sentry() is None
