"""Pydantic схемы для доставок: входные данные и результаты операций"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pharmacy_delivery.core.constants import OrderStatus
from pharmacy_delivery.schemas.base import ID_MAX_LENGTH, ID_MIN_LENGTH


MAX_DELIVERY_NOTES_LENGTH = 500

# Периоды для истории доставок
HISTORY_PERIODS = ("today", "week", "month")


class DeliveryAcceptSchema(BaseModel):
    """Схема принятия доставки курьером"""

    model_config = ConfigDict(str_strip_whitespace=True)

    order_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)
    driver_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)


class DeliveryCompleteSchema(DeliveryAcceptSchema):
    """Схема завершения доставки"""

    delivery_notes: str | None = Field(None, description="Комментарий курьера")

    @field_validator("delivery_notes")
    @classmethod
    def validate_delivery_notes(cls, v: str | None) -> str | None:
        """Пустой комментарий равносилен отсутствию комментария"""
        if v is None:
            return None

        v = v.strip()
        if not v:
            return None

        if len(v) > MAX_DELIVERY_NOTES_LENGTH:
            raise ValueError(
                f"Delivery notes are too long (max {MAX_DELIVERY_NOTES_LENGTH} characters)"
            )
        return v


class LocationUpdateSchema(BaseModel):
    """Схема обновления позиции курьера"""

    model_config = ConfigDict(str_strip_whitespace=True)

    driver_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)


class DriverQuerySchema(BaseModel):
    """Запрос данных курьера"""

    model_config = ConfigDict(str_strip_whitespace=True)

    driver_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)


class PharmacistQuerySchema(BaseModel):
    """Запрос данных фармацевта"""

    model_config = ConfigDict(str_strip_whitespace=True)

    pharmacist_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)


class DeliveryHistoryQuerySchema(DriverQuerySchema):
    """Фильтры истории доставок курьера"""

    status: str | None = None
    period: str | None = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str | None) -> str | None:
        """Статус из списка; 'all' - без фильтра"""
        if v is None or v == "" or v == "all":
            return None
        if v not in OrderStatus.all_statuses():
            raise ValueError(f"Unknown order status '{v}'")
        return v

    @field_validator("period")
    @classmethod
    def validate_period(cls, v: str | None) -> str | None:
        """Период: today, week или month"""
        if v is None or v == "" or v == "all":
            return None
        if v not in HISTORY_PERIODS:
            raise ValueError(f"Unknown period '{v}'. Allowed: {', '.join(HISTORY_PERIODS)}")
        return v


class AcceptDeliveryResult(BaseModel):
    """Результат принятия доставки"""

    order_id: str
    estimated_delivery: datetime


class CompleteDeliveryResult(BaseModel):
    """Результат завершения доставки"""

    order_id: str
    delivered_at: datetime


class DeliverySummary(BaseModel):
    """Заказ, доступный курьеру, с оценкой расстояния"""

    order_id: str
    status: str
    total: Decimal
    delivery_fee: Decimal
    distance_km: float | None = None
    estimated_minutes: int | None = None
    pharmacy_name: str
    pharmacy_address: str
    customer_name: str | None = None
    delivery_address: str
    created_at: datetime


class DriverLocationInfo(BaseModel):
    """Позиция курьера"""

    model_config = ConfigDict(from_attributes=True)

    driver_id: str
    latitude: float
    longitude: float
    is_available: bool
    updated_at: datetime


class AvailableDriver(BaseModel):
    """Курьер в списке для фармацевта"""

    driver_id: str
    name: str
    phone: str | None = None
    is_available: bool
    distance_km: float | None = None


class DriverPeriodStats(BaseModel):
    """Статистика курьера за период"""

    deliveries: int = 0
    earnings: Decimal = Decimal("0.00")
    average_delivery_minutes: float | None = None


class DriverStats(BaseModel):
    """Сводная статистика курьера"""

    driver_id: str
    today: DriverPeriodStats
    total: DriverPeriodStats
    completion_rate: float = 0.0
    active_delivery: DeliverySummary | None = None


class DeliveryHistoryItem(BaseModel):
    """Запись истории доставок курьера"""

    order_id: str
    status: str
    total: Decimal
    delivery_fee: Decimal
    pharmacy_name: str
    customer_name: str | None = None
    delivery_address: str
    created_at: datetime
    estimated_delivery: datetime | None = None
    delivered_at: datetime | None = None
