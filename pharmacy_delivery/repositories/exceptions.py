"""
Исключения для работы с репозиториями
"""


class RepositoryError(Exception):
    """Базовое исключение для репозиториев"""


class ConcurrentModificationError(RepositoryError):
    """
    Исключение при конфликте версий (optimistic locking)

    Возникает когда запись была изменена другой транзакцией между
    чтением и попыткой обновления.
    """

    def __init__(self, entity_type: str, entity_id: str, expected_version: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"{entity_type} {entity_id} was modified concurrently "
            f"(expected version {expected_version})"
        )


class ConstraintViolationError(RepositoryError):
    """
    Нарушение ограничения целостности на уровне БД
    """

    def __init__(self, constraint: str, detail: str = ""):
        self.constraint = constraint
        self.detail = detail
        super().__init__(f"Constraint '{constraint}' violated: {detail}")
