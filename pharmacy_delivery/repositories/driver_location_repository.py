"""
Репозиторий для работы с позициями и доступностью курьеров
"""

import logging

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from pharmacy_delivery.core.config import Config
from pharmacy_delivery.core.constants import UserRole
from pharmacy_delivery.database.orm_models import DriverLocation, User, generate_id
from pharmacy_delivery.repositories.base import BaseRepository
from pharmacy_delivery.utils.helpers import get_now


logger = logging.getLogger(__name__)


class DriverLocationRepository(BaseRepository[DriverLocation]):
    """Репозиторий для работы с позициями курьеров"""

    model = DriverLocation

    async def get_by_driver(self, driver_id: str, for_update: bool = False) -> DriverLocation | None:
        """
        Последняя известная позиция курьера

        Args:
            driver_id: ID курьера
            for_update: Заблокировать строку до конца транзакции

        Returns:
            Объект DriverLocation или None
        """
        stmt = select(DriverLocation).where(DriverLocation.driver_id == driver_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self._fetch_one(stmt)

    async def upsert(
        self,
        driver_id: str,
        latitude: float | None = None,
        longitude: float | None = None,
        is_available: bool | None = None,
    ) -> DriverLocation:
        """
        Создание или обновление позиции курьера одним запросом

        Обновляются только переданные поля. Если строки ещё нет, недостающие
        координаты берутся из Config.DEFAULT_DRIVER_LATITUDE/LONGITUDE,
        доступность по умолчанию - True.

        Args:
            driver_id: ID курьера
            latitude: Широта
            longitude: Долгота
            is_available: Доступен ли курьер для новых заказов

        Returns:
            Актуальный объект DriverLocation
        """
        now = get_now()
        insert_values = {
            "id": generate_id(),
            "driver_id": driver_id,
            "latitude": latitude if latitude is not None else Config.DEFAULT_DRIVER_LATITUDE,
            "longitude": longitude if longitude is not None else Config.DEFAULT_DRIVER_LONGITUDE,
            "is_available": is_available if is_available is not None else True,
            "updated_at": now,
        }
        update_values: dict = {"updated_at": now}
        if latitude is not None:
            update_values["latitude"] = latitude
        if longitude is not None:
            update_values["longitude"] = longitude
        if is_available is not None:
            update_values["is_available"] = is_available

        dialect = self.session.get_bind().dialect.name
        insert = postgresql_insert if dialect == "postgresql" else sqlite_insert
        stmt = (
            insert(DriverLocation)
            .values(**insert_values)
            .on_conflict_do_update(index_elements=[DriverLocation.driver_id], set_=update_values)
        )
        await self.session.execute(stmt)

        location = await self.get_by_driver(driver_id, for_update=True)
        logger.debug(
            f"Позиция курьера {driver_id}: ({location.latitude}, {location.longitude}), "
            f"доступен={location.is_available}"
        )
        return location

    async def get_available_driver_ids(self) -> list[str]:
        """ID активных курьеров, отмеченных как доступные"""
        stmt = (
            select(User.id)
            .join(DriverLocation, DriverLocation.driver_id == User.id)
            .where(
                User.role == UserRole.DRIVER,
                User.is_active.is_(True),
                DriverLocation.is_available.is_(True),
            )
            .order_by(User.id)
        )
        return await self._fetch_all(stmt)

    async def get_drivers_with_locations(self) -> list[tuple[User, DriverLocation | None]]:
        """Все активные курьеры вместе с последней позицией (если есть)"""
        stmt = (
            select(User, DriverLocation)
            .outerjoin(DriverLocation, DriverLocation.driver_id == User.id)
            .where(User.role == UserRole.DRIVER, User.is_active.is_(True))
            .order_by(User.first_name, User.last_name)
        )
        return [tuple(row) for row in await self._fetch_rows(stmt)]

    async def get_all(self) -> list[DriverLocation]:
        """Все позиции курьеров"""
        return await self._fetch_all(select(DriverLocation))
