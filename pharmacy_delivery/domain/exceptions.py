"""
Типизированные ошибки движка заказов

Вызывающая сторона (HTTP, бот, очередь) сама решает, как отображать их на
свой транспорт; для HTTP есть готовая таблица HTTP_STATUS_BY_ERROR.
"""


class DeliveryEngineError(Exception):
    """Базовое исключение движка"""


class NotFoundError(DeliveryEngineError):
    """Заказ, курьер или аптека не существуют"""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class ValidationError(DeliveryEngineError):
    """
    Некорректные входные данные

    Проверяется до открытия транзакции.
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ConflictError(DeliveryEngineError):
    """
    Охранное условие не выполнено внутри транзакции

    Заказ уже назначен, статус уже изменился, заказ чужой и т.п.
    Автоматически не повторяется.
    """

    def __init__(self, message: str, order_id: str | None = None):
        self.order_id = order_id
        super().__init__(message)


class InvalidStateTransitionError(ConflictError):
    """Переход между статусами запрещён графом состояний или правами роли"""

    def __init__(self, from_state: str, to_state: str, reason: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        message = f"Invalid transition from '{from_state}' to '{to_state}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class PaymentDeclinedError(ConflictError):
    """Платёжный шлюз отклонил авторизацию"""


class PersistenceError(DeliveryEngineError):
    """Транзакция не смогла зафиксироваться (сбой инфраструктуры)"""


class NotificationError(DeliveryEngineError):
    """
    Ошибка создания уведомления или realtime-доставки

    Никогда не откатывает уже зафиксированный переход.
    """

    def __init__(self, message: str, recipient_id: str | None = None):
        self.recipient_id = recipient_id
        super().__init__(message)


HTTP_STATUS_BY_ERROR: dict[type[DeliveryEngineError], int] = {
    NotFoundError: 404,
    ValidationError: 422,
    ConflictError: 409,
    PersistenceError: 500,
}


def http_status_for(error: DeliveryEngineError) -> int:
    """HTTP статус для ошибки с учётом наследования (по умолчанию 500)"""
    for error_type in type(error).__mro__:
        if error_type in HTTP_STATUS_BY_ERROR:
            return HTTP_STATUS_BY_ERROR[error_type]
    return 500
