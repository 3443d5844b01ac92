"""Pydantic схемы для оплаты"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pharmacy_delivery.core.constants import PaymentMethod
from pharmacy_delivery.schemas.base import ID_MAX_LENGTH, ID_MIN_LENGTH


class ProcessPaymentSchema(BaseModel):
    """Схема оплаты заказа пациентом"""

    model_config = ConfigDict(str_strip_whitespace=True)

    order_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)
    patient_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)
    payment_method: str = Field(..., description="Способ оплаты")

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, v: str) -> str:
        """Способ оплаты - из списка поддерживаемых"""
        methods = PaymentMethod.all_methods()
        if v not in methods:
            raise ValueError(f"Invalid payment method. Allowed: {', '.join(methods)}")
        return v


class ValidatePaymentSchema(BaseModel):
    """Схема подтверждения оплаты фармацевтом"""

    model_config = ConfigDict(str_strip_whitespace=True)

    order_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)
    pharmacist_id: str = Field(..., min_length=ID_MIN_LENGTH, max_length=ID_MAX_LENGTH)


class PaymentResult(BaseModel):
    """Результат оплаты"""

    order_id: str
    status: str
    payment_status: str
    payment_method: str
    transaction_reference: str | None = None


class PaymentValidationResult(BaseModel):
    """Результат подтверждения оплаты"""

    order_id: str
    status: str


class PaymentMethodInfo(BaseModel):
    """Элемент каталога способов оплаты"""

    id: str
    name: str
    description: str
    icon: str = ""
    enabled: bool = True
