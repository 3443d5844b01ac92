"""
State Machine для валидации и применения переходов статусов заказов
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pharmacy_delivery.core.constants import OrderStatus, UserRole
from pharmacy_delivery.database.orm_models import Order
from pharmacy_delivery.domain.exceptions import (
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
)
from pharmacy_delivery.repositories.base import ACTIVE_DRIVER_CONSTRAINT
from pharmacy_delivery.repositories.exceptions import (
    ConcurrentModificationError,
    ConstraintViolationError,
)


if TYPE_CHECKING:
    from pharmacy_delivery.database.unit_of_work import UnitOfWork


logger = logging.getLogger(__name__)

# Дополнительная проверка заказа внутри транзакции (владелец, назначение и т.п.)
TransitionGuard = Callable[[Order], Awaitable[None]]


@dataclass
class OrderStateTransitionResult:
    """Результат валидации перехода статуса"""

    is_valid: bool
    error_message: str | None = None
    required_role: str | None = None
    warnings: list[str] | None = None


class OrderStateMachine:
    """
    State Machine для управления жизненным циклом заказа

    Граф переходов:

    PENDING → VALIDATED → PAID → PREPARING → READY → IN_TRANSIT → DELIVERED
       ↓          ↓         ↓        ↓    ↘______________↗
    REJECTED  CANCELLED  CANCELLED CANCELLED   (READY → CANCELLED)

    REJECTED, DELIVERED и CANCELLED - терминальные состояния.
    """

    # Допустимые переходы: из какого статуса в какие можно перейти
    TRANSITIONS: dict[str, set[str]] = {
        OrderStatus.PENDING: {
            OrderStatus.VALIDATED,  # Аптека проверила рецепт
            OrderStatus.REJECTED,  # Аптека отклонила
            OrderStatus.CANCELLED,  # Отмена пациентом
        },
        OrderStatus.VALIDATED: {
            OrderStatus.PAID,  # Пациент оплатил
            OrderStatus.CANCELLED,
        },
        OrderStatus.PAID: {
            OrderStatus.PREPARING,  # Аптека подтвердила оплату
            OrderStatus.CANCELLED,
        },
        OrderStatus.PREPARING: {
            OrderStatus.READY,
            OrderStatus.IN_TRANSIT,  # Курьер может забрать заказ ещё во время сборки
            OrderStatus.CANCELLED,
        },
        OrderStatus.READY: {
            OrderStatus.IN_TRANSIT,
            OrderStatus.CANCELLED,
        },
        OrderStatus.IN_TRANSIT: {
            OrderStatus.DELIVERED,
        },
        OrderStatus.REJECTED: set(),
        OrderStatus.DELIVERED: set(),
        OrderStatus.CANCELLED: set(),
    }

    # Роли, которые могут выполнять определённые переходы
    ROLE_PERMISSIONS: dict[tuple[str, str], set[str]] = {
        # (from_status, to_status): {allowed_roles}
        (OrderStatus.PENDING, OrderStatus.VALIDATED): {UserRole.PHARMACIST, UserRole.ADMIN},
        (OrderStatus.PENDING, OrderStatus.REJECTED): {UserRole.PHARMACIST, UserRole.ADMIN},
        (OrderStatus.PENDING, OrderStatus.CANCELLED): {UserRole.PATIENT, UserRole.ADMIN},
        (OrderStatus.VALIDATED, OrderStatus.PAID): {UserRole.PATIENT},
        (OrderStatus.VALIDATED, OrderStatus.CANCELLED): {UserRole.PATIENT, UserRole.ADMIN},
        (OrderStatus.PAID, OrderStatus.PREPARING): {UserRole.PHARMACIST},
        (OrderStatus.PAID, OrderStatus.CANCELLED): {UserRole.ADMIN},
        (OrderStatus.PREPARING, OrderStatus.READY): {UserRole.PHARMACIST, UserRole.ADMIN},
        (OrderStatus.PREPARING, OrderStatus.IN_TRANSIT): {UserRole.DRIVER},
        (OrderStatus.PREPARING, OrderStatus.CANCELLED): {UserRole.ADMIN},
        (OrderStatus.READY, OrderStatus.IN_TRANSIT): {UserRole.DRIVER},
        (OrderStatus.READY, OrderStatus.CANCELLED): {UserRole.ADMIN},
        (OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED): {UserRole.DRIVER},
    }

    # Статусы, которые выставляются только отдельными операциями
    # (оплата, подтверждение оплаты, принятие и завершение доставки)
    DEDICATED_TARGETS: frozenset[str] = frozenset(
        {
            OrderStatus.PAID,
            OrderStatus.PREPARING,
            OrderStatus.IN_TRANSIT,
            OrderStatus.DELIVERED,
        }
    )

    @classmethod
    def can_transition(cls, from_state: str, to_state: str) -> bool:
        """
        Проверка возможности перехода между статусами

        Переход в тот же статус недопустим: повторное действие над заказом
        (например, повторное завершение доставки) - это конфликт.

        Args:
            from_state: Текущий статус
            to_state: Целевой статус

        Returns:
            True если переход допустим
        """
        return to_state in cls.TRANSITIONS.get(from_state, set())

    @classmethod
    def validate_transition(
        cls,
        from_state: str,
        to_state: str,
        user_roles: list[str] | None = None,
        raise_exception: bool = True,
    ) -> OrderStateTransitionResult:
        """
        Валидация перехода статуса с проверкой прав

        Args:
            from_state: Текущий статус заказа
            to_state: Целевой статус
            user_roles: Роли инициатора (None - права не проверяются)
            raise_exception: Выбрасывать ли исключение при ошибке

        Returns:
            OrderStateTransitionResult с результатом валидации

        Raises:
            InvalidStateTransitionError: Если переход недопустим и raise_exception=True
        """
        if not cls.can_transition(from_state, to_state):
            error_msg = (
                f"Transition from '{OrderStatus.get_status_name(from_state)}' "
                f"to '{OrderStatus.get_status_name(to_state)}' is not allowed"
            )

            # Подсказываем допустимые переходы
            allowed = cls.TRANSITIONS.get(from_state, set())
            if allowed:
                allowed_names = sorted(OrderStatus.get_status_name(s) for s in allowed)
                error_msg += f". Allowed: {', '.join(allowed_names)}"
            else:
                error_msg += (
                    f". Status '{OrderStatus.get_status_name(from_state)}' is terminal"
                )

            if raise_exception:
                raise InvalidStateTransitionError(from_state, to_state, error_msg)

            return OrderStateTransitionResult(is_valid=False, error_message=error_msg)

        if user_roles is not None:
            required_roles = cls.ROLE_PERMISSIONS.get((from_state, to_state), set())
            if not any(role in required_roles for role in user_roles):
                role_names = ", ".join(sorted(required_roles))
                error_msg = (
                    f"Not permitted to move order from "
                    f"'{OrderStatus.get_status_name(from_state)}' to "
                    f"'{OrderStatus.get_status_name(to_state)}'. "
                    f"Required role: {role_names}"
                )

                if raise_exception:
                    raise InvalidStateTransitionError(from_state, to_state, error_msg)

                return OrderStateTransitionResult(
                    is_valid=False,
                    error_message=error_msg,
                    required_role=role_names,
                )

        return OrderStateTransitionResult(is_valid=True)

    @classmethod
    def get_available_transitions(
        cls, from_state: str, user_roles: list[str] | None = None
    ) -> list[str]:
        """
        Получение списка доступных переходов из текущего статуса

        Args:
            from_state: Текущий статус
            user_roles: Роли пользователя для фильтрации по правам

        Returns:
            Список доступных статусов для перехода
        """
        allowed_states = cls.TRANSITIONS.get(from_state, set())

        if not user_roles:
            return sorted(allowed_states)

        available = []
        for to_state in allowed_states:
            required_roles = cls.ROLE_PERMISSIONS.get((from_state, to_state), set())
            if any(role in required_roles for role in user_roles):
                available.append(to_state)

        return sorted(available)

    @classmethod
    def get_source_states(cls, to_state: str) -> set[str]:
        """Статусы, из которых можно перейти в to_state"""
        return {
            from_state for from_state, targets in cls.TRANSITIONS.items() if to_state in targets
        }

    @classmethod
    def get_transition_description(cls, from_state: str, to_state: str) -> str:
        """
        Сообщение для журнала отслеживания по умолчанию

        Args:
            from_state: Начальный статус
            to_state: Конечный статус

        Returns:
            Текст для клиента
        """
        descriptions = {
            OrderStatus.VALIDATED: "Order validated by the pharmacy",
            OrderStatus.REJECTED: "Order rejected by the pharmacy",
            OrderStatus.PAID: "Payment completed successfully",
            OrderStatus.PREPARING: "Order is being prepared",
            OrderStatus.READY: "Order ready for delivery",
            OrderStatus.IN_TRANSIT: "Driver assigned - delivery in progress",
            OrderStatus.DELIVERED: "Order delivered successfully",
            OrderStatus.CANCELLED: "Order cancelled",
        }
        return descriptions.get(
            to_state,
            f"Status changed from {OrderStatus.get_status_name(from_state)} "
            f"to {OrderStatus.get_status_name(to_state)}",
        )

    @classmethod
    def is_terminal_state(cls, state: str) -> bool:
        """
        Проверка, является ли статус терминальным

        Args:
            state: Статус для проверки

        Returns:
            True если из этого статуса нельзя никуда перейти
        """
        return len(cls.TRANSITIONS.get(state, set())) == 0

    @classmethod
    async def apply_transition(
        cls,
        uow: "UnitOfWork",
        order_id: str,
        expected: Iterable[str],
        to_status: str,
        message: str | None = None,
        changes: dict[str, Any] | None = None,
        guard: TransitionGuard | None = None,
        user_roles: list[str] | None = None,
    ) -> Order:
        """
        Применение перехода внутри открытой транзакции

        Порядок: блокировка и перечитывание строки → guard → проверка
        ожидаемого статуса и графа → UPDATE с проверкой версии → одна
        запись в журнале отслеживания. Всё в одной транзакции: переход
        либо применяется полностью, либо не применяется вовсе.

        Args:
            uow: Открытая единица работы
            order_id: ID заказа
            expected: Допустимые текущие статусы
            to_status: Целевой статус
            message: Сообщение в журнал (по умолчанию - описание перехода)
            changes: Дополнительные поля заказа (driver_id, delivered_at, ...)
            guard: Дополнительная проверка заказа, бросает ConflictError
            user_roles: Роли инициатора для проверки прав

        Returns:
            Обновлённый заказ

        Raises:
            NotFoundError: Заказ не существует
            ConflictError: Статус не совпал, переход запрещён или потерян гонку
        """
        order = await uow.orders.get_by_id(order_id, for_update=True)
        if order is None:
            raise NotFoundError("Order", order_id)

        if guard is not None:
            await guard(order)

        expected_statuses = set(expected)
        from_status = order.status
        if from_status not in expected_statuses:
            raise ConflictError(
                f"order is {from_status}, expected {' or '.join(sorted(expected_statuses))}",
                order_id=order_id,
            )

        cls.validate_transition(from_status, to_status, user_roles=user_roles)

        values = dict(changes or {})
        values["status"] = to_status
        try:
            order = await uow.orders.guarded_update(order, values)
        except ConcurrentModificationError as e:
            logger.warning(f"Потерянное обновление заказа {order_id}: {e}")
            raise ConflictError("order was modified concurrently", order_id=order_id) from e
        except ConstraintViolationError as e:
            if e.constraint == ACTIVE_DRIVER_CONSTRAINT:
                raise ConflictError("driver has active delivery", order_id=order_id) from e
            raise

        tracking_message = message or cls.get_transition_description(from_status, to_status)
        uow.orders.add_tracking_update(order.id, to_status, tracking_message)

        logger.info(f"OK: Заказ {order_id}: {from_status} → {to_status}")
        return order
