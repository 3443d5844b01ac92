"""Общие помощники для pydantic схем"""

from typing import TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from pharmacy_delivery.domain.exceptions import ValidationError


SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Ограничения для идентификаторов (UUID в текстовом виде)
ID_MIN_LENGTH = 1
ID_MAX_LENGTH = 36


def validate_input(schema: type[SchemaT], **data) -> SchemaT:
    """
    Валидация входных данных до открытия транзакции

    Args:
        schema: Класс pydantic схемы
        **data: Поля запроса

    Returns:
        Экземпляр схемы

    Raises:
        ValidationError: Первая ошибка валидации в доменном виде
    """
    try:
        return schema(**data)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ())) or None
        raise ValidationError(error["msg"], field=field) from e
