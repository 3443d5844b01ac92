"""
Репозиторий для чтения пользователей и аптек

Пользователи и аптеки принадлежат внешним сервисам; здесь только чтение.
"""

import logging

from sqlalchemy import select

from pharmacy_delivery.core.constants import UserRole
from pharmacy_delivery.database.orm_models import Pharmacy, User
from pharmacy_delivery.repositories.base import BaseRepository


logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Репозиторий для работы с пользователями"""

    model = User

    async def get_active_admin_ids(self) -> list[str]:
        """ID всех активных администраторов"""
        stmt = (
            select(User.id)
            .where(User.role == UserRole.ADMIN, User.is_active.is_(True))
            .order_by(User.id)
        )
        return await self._fetch_all(stmt)

    async def get_telegram_chat_id(self, user_id: str) -> int | None:
        """
        Telegram chat ID пользователя

        Args:
            user_id: ID пользователя

        Returns:
            chat_id или None, если пользователь не привязал Telegram
        """
        stmt = select(User.telegram_chat_id).where(User.id == user_id)
        return await self._fetch_one(stmt)

    async def get_pharmacy(self, pharmacy_id: str) -> Pharmacy | None:
        """Аптека по ID"""
        return await self.session.get(Pharmacy, pharmacy_id)

    async def get_pharmacy_by_owner(self, owner_id: str) -> Pharmacy | None:
        """Аптека, которой владеет фармацевт"""
        stmt = select(Pharmacy).where(Pharmacy.owner_id == owner_id).limit(1)
        return await self._fetch_one(stmt)
