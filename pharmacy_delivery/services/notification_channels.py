"""
Каналы realtime-доставки уведомлений

Канал получает `publish(user_id, payload)` и доставляет сообщение
получателю. Доставка best-effort: ошибки оборачиваются в NotificationError
и не повторяются.
"""

import asyncio
import logging
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass, field
from html import escape
from typing import TYPE_CHECKING, Any, Protocol

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError

from pharmacy_delivery.domain.exceptions import NotificationError
from pharmacy_delivery.utils.helpers import truncate_text


if TYPE_CHECKING:
    from pharmacy_delivery.database.unit_of_work import UnitOfWork


logger = logging.getLogger(__name__)

# Лимит Telegram 4096 символов, с запасом под заголовок
TELEGRAM_MESSAGE_LIMIT = 3500

# Очередь подписчика; при переполнении новые события отбрасываются
SUBSCRIBER_QUEUE_SIZE = 100


class PushEvent:
    """Имена realtime-событий"""

    NEW_NOTIFICATION = "new_notification"
    DRIVER_LOCATION_UPDATE = "driver_location_update"


@dataclass(frozen=True)
class NotificationPayload:
    """Сообщение для realtime-канала"""

    event: str
    data: dict[str, Any] = field(default_factory=dict)


class NotificationPublisher(Protocol):
    """Канал доставки уведомлений"""

    async def publish(self, user_id: str, payload: NotificationPayload) -> None: ...


class NullPublisher:
    """Канал, который ничего не доставляет (realtime не настроен)"""

    async def publish(self, user_id: str, payload: NotificationPayload) -> None:
        logger.debug(f"Realtime канал не настроен, событие {payload.event} для {user_id} пропущено")


class InMemoryPublisher:
    """
    Внутрипроцессная шина событий

    Каждый подписчик получает свою ограниченную asyncio.Queue. Используется
    в тестах и в однопроцессных развёртываниях (например, за WebSocket шлюзом).

    История отправленных событий хранится только при history_size > 0
    и ограничена этим размером.
    """

    def __init__(self, history_size: int = 0, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queues: dict[str, list[asyncio.Queue]] = defaultdict(list)
        self._queue_size = queue_size
        self.published: deque[tuple[str, NotificationPayload]] = deque(maxlen=history_size)

    def subscribe(self, user_id: str) -> asyncio.Queue:
        """
        Подписка на события пользователя

        Args:
            user_id: ID пользователя

        Returns:
            Очередь, в которую будут приходить NotificationPayload
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._queues[user_id].append(queue)
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        """Отписка очереди от событий пользователя"""
        queues = self._queues.get(user_id, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._queues.pop(user_id, None)

    async def publish(self, user_id: str, payload: NotificationPayload) -> None:
        self.published.append((user_id, payload))
        for queue in self._queues.get(user_id, []):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                logger.warning(
                    f"Очередь подписчика {user_id} переполнена, событие {payload.event} отброшено"
                )

    def sent_to(self, user_id: str, event: str | None = None) -> list[NotificationPayload]:
        """Все события, отправленные пользователю (с фильтром по имени)"""
        return [
            payload
            for recipient, payload in self.published
            if recipient == user_id and (event is None or payload.event == event)
        ]


class TelegramPublisher:
    """
    Доставка уведомлений в Telegram через aiogram Bot

    chat_id получателя берётся из users.telegram_chat_id; пользователи без
    привязанного Telegram пропускаются.
    """

    def __init__(self, bot: Bot, uow_factory: Callable[[], "UnitOfWork"]):
        """
        Args:
            bot: Экземпляр aiogram Bot
            uow_factory: Фабрика единиц работы для поиска chat_id
        """
        self.bot = bot
        self._uow_factory = uow_factory

    @staticmethod
    def format_message(data: dict[str, Any]) -> str:
        """Текст сообщения в HTML разметке Telegram"""
        title = escape(str(data.get("title", "")))
        message = escape(truncate_text(str(data.get("message", "")), TELEGRAM_MESSAGE_LIMIT))
        return f"<b>{title}</b>\n\n{message}"

    async def publish(self, user_id: str, payload: NotificationPayload) -> None:
        # В Telegram отправляем только уведомления, позиции курьера - нет
        if payload.event != PushEvent.NEW_NOTIFICATION:
            return

        async with self._uow_factory() as uow:
            chat_id = await uow.users.get_telegram_chat_id(user_id)

        if chat_id is None:
            logger.debug(f"У пользователя {user_id} нет Telegram chat_id, пропускаем")
            return

        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=self.format_message(payload.data),
                parse_mode="HTML",
            )
            logger.info(f"Уведомление отправлено в Telegram пользователю {user_id}")
        except TelegramAPIError as e:
            raise NotificationError(
                f"Telegram delivery failed: {e}", recipient_id=user_id
            ) from e

    async def close(self) -> None:
        """Закрытие HTTP сессии бота"""
        await self.bot.session.close()
        logger.info("Bot session закрыта")


class MultiChannelPublisher:
    """Отправка в несколько каналов; ошибка одного канала не мешает остальным"""

    def __init__(self, publishers: list[NotificationPublisher]):
        self.publishers = list(publishers)

    async def publish(self, user_id: str, payload: NotificationPayload) -> None:
        errors: list[str] = []
        for publisher in self.publishers:
            try:
                await publisher.publish(user_id, payload)
            except NotificationError as e:
                errors.append(str(e))
            except Exception as e:
                errors.append(f"{type(publisher).__name__}: {e}")

        if errors:
            raise NotificationError("; ".join(errors), recipient_id=user_id)

    async def close(self) -> None:
        """Закрытие каналов, которые держат ресурсы"""
        for publisher in self.publishers:
            close = getattr(publisher, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.error(f"ERROR: Ошибка при закрытии канала {type(publisher).__name__}: {e}")
