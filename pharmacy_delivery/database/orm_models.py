"""
SQLAlchemy ORM модели для базы данных
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator

from pharmacy_delivery.utils.helpers import ensure_utc, get_now


def generate_id() -> str:
    """Непрозрачный идентификатор записи"""
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
    """
    DateTime, который всегда хранит и возвращает UTC

    SQLite теряет timezone при сохранении, PostgreSQL - нет;
    приводим оба варианта к aware datetime в UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return ensure_utc(value)

    def process_result_value(self, value, dialect):
        return ensure_utc(value)


class Base(DeclarativeBase):
    """Базовый класс для всех моделей"""


class User(Base):
    """Пользователь платформы (владелец данных - провайдер идентификации)"""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    telegram_chat_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=get_now, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_users_role", "role"),
        CheckConstraint(
            "role IN ('patient', 'pharmacist', 'driver', 'admin')", name="chk_users_role"
        ),
    )

    def get_display_name(self) -> str:
        """Получение отображаемого имени"""
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or f"User {self.id}"


class Pharmacy(Base):
    """Аптека (владелец - фармацевт)"""

    __tablename__ = "pharmacies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    owner: Mapped[Optional["User"]] = relationship("User")

    __table_args__ = (Index("idx_pharmacies_owner_id", "owner_id"),)

    def get_address(self) -> str:
        """Адрес одной строкой"""
        return f"{self.street}, {self.city}"


class Order(Base):
    """Заказ пациента в одной аптеке"""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    patient_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    pharmacy_id: Mapped[str] = mapped_column(String(36), ForeignKey("pharmacies.id"), nullable=False)
    driver_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Адрес доставки
    delivery_street: Mapped[str] = mapped_column(String(255), nullable=False)
    delivery_city: Mapped[str] = mapped_column(String(100), nullable=False)
    delivery_postal_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    delivery_country: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    delivery_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    delivery_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Оплата
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Временные метки доставки
    estimated_delivery: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    # Системные поля
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=get_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=get_now, server_default=func.now(), onupdate=get_now
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    # Связи
    patient: Mapped[Optional["User"]] = relationship("User", foreign_keys=[patient_id])
    driver: Mapped[Optional["User"]] = relationship("User", foreign_keys=[driver_id])
    pharmacy: Mapped["Pharmacy"] = relationship("Pharmacy")
    tracking_updates: Mapped[list["TrackingUpdate"]] = relationship(
        "TrackingUpdate", back_populates="order", order_by="TrackingUpdate.created_at"
    )

    # Индексы и ограничения
    __table_args__ = (
        Index("idx_orders_patient_id", "patient_id"),
        Index("idx_orders_pharmacy_id", "pharmacy_id"),
        Index("idx_orders_driver_id", "driver_id"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_status_created", "status", "created_at"),
        # Один курьер - одна активная доставка
        Index(
            "uq_orders_active_driver",
            "driver_id",
            unique=True,
            sqlite_where=text("status = 'in_transit'"),
            postgresql_where=text("status = 'in_transit'"),
        ),
        CheckConstraint(
            "status IN ('pending', 'validated', 'rejected', 'paid', 'preparing', "
            "'ready', 'in_transit', 'delivered', 'cancelled')",
            name="chk_orders_status",
        ),
        CheckConstraint(
            "driver_id IS NULL OR status IN ('in_transit', 'delivered')",
            name="chk_orders_driver_status",
        ),
        CheckConstraint("total >= 0", name="chk_orders_total"),
    )

    def get_delivery_address(self) -> str:
        """Адрес доставки одной строкой"""
        return f"{self.delivery_street}, {self.delivery_city}"


class TrackingUpdate(Base):
    """Запись журнала отслеживания (только добавление)"""

    __tablename__ = "tracking_updates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=get_now, server_default=func.now()
    )

    order: Mapped["Order"] = relationship("Order", back_populates="tracking_updates")

    __table_args__ = (Index("idx_tracking_order_created", "order_id", "created_at"),)


class DriverLocation(Base):
    """Последняя известная позиция и доступность курьера"""

    __tablename__ = "driver_locations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    driver_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), unique=True, nullable=False
    )
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=get_now, server_default=func.now(), onupdate=get_now
    )

    driver: Mapped["User"] = relationship("User")

    __table_args__ = (
        Index("idx_driver_locations_available", "is_available"),
        CheckConstraint("latitude BETWEEN -90 AND 90", name="chk_driver_locations_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="chk_driver_locations_longitude"),
    )


class Notification(Base):
    """Уведомление пользователю"""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="info")
    order_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("orders.id"), nullable=True
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=get_now, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_notifications_user_id", "user_id", "is_read"),
        CheckConstraint(
            "type IN ('info', 'success', 'warning', 'error')", name="chk_notifications_type"
        ),
    )

    def to_payload(self) -> dict:
        """Представление для realtime-доставки"""
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "orderId": self.order_id,
            "isRead": self.is_read,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
