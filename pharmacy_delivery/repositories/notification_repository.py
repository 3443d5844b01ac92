"""
Репозиторий для работы с уведомлениями
"""

import logging

from sqlalchemy import select

from pharmacy_delivery.database.orm_models import Notification
from pharmacy_delivery.repositories.base import BaseRepository
from pharmacy_delivery.utils.helpers import get_now


logger = logging.getLogger(__name__)


class NotificationRepository(BaseRepository[Notification]):
    """Репозиторий для работы с уведомлениями"""

    model = Notification

    async def create(
        self,
        user_id: str,
        title: str,
        message: str,
        notification_type: str = "info",
        order_id: str | None = None,
    ) -> Notification:
        """
        Создание уведомления

        Args:
            user_id: ID получателя
            title: Заголовок
            message: Текст
            notification_type: Тип (info/success/warning/error)
            order_id: ID связанного заказа

        Returns:
            Объект Notification
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=notification_type,
            order_id=order_id,
            is_read=False,
            created_at=get_now(),
        )
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def get_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        """Уведомления пользователя, новые первыми"""
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc())
        return await self._fetch_all(stmt)
