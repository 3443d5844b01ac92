"""Pydantic схемы для смены статуса заказа и журнала отслеживания"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pharmacy_delivery.core.constants import OrderStatus, UserRole
from pharmacy_delivery.schemas.base import ID_MAX_LENGTH, ID_MIN_LENGTH


MIN_REJECTION_REASON_LENGTH = 3
MAX_REJECTION_REASON_LENGTH = 500


class OrderStatusChangeSchema(BaseModel):
    """Схема смены статуса заказа фармацевтом, пациентом или администратором"""

    model_config = ConfigDict(str_strip_whitespace=True)

    order_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)
    actor_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)
    actor_role: str
    status: str
    rejection_reason: str | None = Field(None, max_length=MAX_REJECTION_REASON_LENGTH)

    @field_validator("actor_role")
    @classmethod
    def validate_actor_role(cls, v: str) -> str:
        """Роль из списка"""
        if v not in UserRole.all_roles():
            raise ValueError(f"Unknown role '{v}'")
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        """Статус из списка"""
        if v not in OrderStatus.all_statuses():
            raise ValueError(f"Unknown order status '{v}'")
        return v

    @field_validator("rejection_reason")
    @classmethod
    def validate_rejection_reason(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def validate_rejection(self):
        """Отклонение требует причину не короче трёх символов"""
        if self.status == OrderStatus.REJECTED:
            if (
                self.rejection_reason is None
                or len(self.rejection_reason) < MIN_REJECTION_REASON_LENGTH
            ):
                raise ValueError(
                    f"Rejection reason is required "
                    f"(min {MIN_REJECTION_REASON_LENGTH} characters)"
                )
        return self


class OrderStatusChangeResult(BaseModel):
    """Результат смены статуса"""

    order_id: str
    previous_status: str
    status: str


class TrackingEntry(BaseModel):
    """Запись журнала отслеживания"""

    model_config = ConfigDict(from_attributes=True)

    status: str
    message: str
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime
