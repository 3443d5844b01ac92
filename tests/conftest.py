"""
Pytest fixtures и конфигурация для тестов
"""
import sys
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio


# Добавляем корневую директорию в PYTHONPATH
ROOT_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT_DIR))

from pharmacy_delivery.core.constants import OrderStatus, UserRole
from pharmacy_delivery.database.orm_database import ORMDatabase
from pharmacy_delivery.database.orm_models import (
    DriverLocation,
    Order,
    Pharmacy,
    TrackingUpdate,
    User,
)
from pharmacy_delivery.services.notification_channels import InMemoryPublisher
from pharmacy_delivery.services.payment_gateway import SimulatedPaymentGateway
from pharmacy_delivery.services.service_factory import ServiceFactory
from pharmacy_delivery.utils.helpers import get_now


@dataclass
class SeedData:
    """ID тестовых пользователей и аптеки"""

    patient_id: str
    other_patient_id: str
    pharmacist_id: str
    other_pharmacist_id: str
    pharmacy_id: str
    driver_ids: list[str]
    idle_driver_id: str
    admin_ids: list[str]
    inactive_admin_id: str


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[ORMDatabase, None]:
    """
    Тестовая база данных в файле

    Файл, а не :memory:, чтобы конкурентные соединения действительно
    конкурировали за блокировку.
    """
    db = ORMDatabase(f"sqlite+aiosqlite:///{tmp_path / 'test_delivery.db'}")
    await db.connect()
    await db.create_all()
    yield db
    await db.disconnect()


@pytest.fixture
def publisher() -> InMemoryPublisher:
    """Внутрипроцессный канал уведомлений"""
    return InMemoryPublisher(history_size=1000)


@pytest.fixture
def services(database: ORMDatabase, publisher: InMemoryPublisher) -> ServiceFactory:
    """Фабрика сервисов поверх тестовой БД"""
    return ServiceFactory(
        database,
        publisher=publisher,
        payment_gateway=SimulatedPaymentGateway(history_size=100),
    )


@pytest_asyncio.fixture
async def seed(database: ORMDatabase) -> SeedData:
    """
    Пользователи и аптека

    - два пациента
    - фармацевт с аптекой в Париже и второй фармацевт без аптеки
    - два доступных курьера с позицией и один курьер без позиции
    - два активных администратора и один неактивный
    """
    patient = User(first_name="Paul", last_name="Patient", role=UserRole.PATIENT)
    other_patient = User(first_name="Olga", last_name="Other", role=UserRole.PATIENT)
    pharmacist = User(first_name="Phil", last_name="Pharma", role=UserRole.PHARMACIST)
    other_pharmacist = User(first_name="Petra", last_name="Stranger", role=UserRole.PHARMACIST)
    driver_1 = User(first_name="Dan", last_name="Driver", role=UserRole.DRIVER, phone="+33100000001")
    driver_2 = User(first_name="Eve", last_name="Rider", role=UserRole.DRIVER, phone="+33100000002")
    idle_driver = User(first_name="Ivan", last_name="Idle", role=UserRole.DRIVER)
    admin_1 = User(first_name="Ada", last_name="Admin", role=UserRole.ADMIN)
    admin_2 = User(first_name="Alan", last_name="Admin", role=UserRole.ADMIN)
    inactive_admin = User(
        first_name="Old", last_name="Admin", role=UserRole.ADMIN, is_active=False
    )
    users = [
        patient,
        other_patient,
        pharmacist,
        other_pharmacist,
        driver_1,
        driver_2,
        idle_driver,
        admin_1,
        admin_2,
        inactive_admin,
    ]

    async with database.get_session() as session:
        session.add_all(users)
        await session.flush()

        pharmacy = Pharmacy(
            name="Pharmacie Centrale",
            owner_id=pharmacist.id,
            street="1 Rue de Rivoli",
            city="Paris",
            postal_code="75001",
            latitude=48.8566,
            longitude=2.3522,
        )
        session.add(pharmacy)
        session.add_all(
            [
                DriverLocation(
                    driver_id=driver_1.id, latitude=48.8600, longitude=2.3500, is_available=True
                ),
                DriverLocation(
                    driver_id=driver_2.id, latitude=48.8500, longitude=2.3400, is_available=True
                ),
            ]
        )
        await session.flush()

        return SeedData(
            patient_id=patient.id,
            other_patient_id=other_patient.id,
            pharmacist_id=pharmacist.id,
            other_pharmacist_id=other_pharmacist.id,
            pharmacy_id=pharmacy.id,
            driver_ids=[driver_1.id, driver_2.id],
            idle_driver_id=idle_driver.id,
            admin_ids=[admin_1.id, admin_2.id],
            inactive_admin_id=inactive_admin.id,
        )


@pytest.fixture
def make_order(database: ORMDatabase, seed: SeedData):
    """
    Фабрика заказов в заданном статусе

    Usage:
        order_id = await make_order(OrderStatus.READY)
    """
    counter = {"n": 0}

    async def _make_order(
        status: str = OrderStatus.READY,
        patient_id: str | None = None,
        driver_id: str | None = None,
        total: str = "42.50",
        age_minutes: int | None = None,
        created_at: datetime | None = None,
        latitude: float | None = 48.8738,
        longitude: float | None = 2.2950,
        **fields,
    ) -> str:
        counter["n"] += 1
        if created_at is None:
            # Каждый следующий заказ "моложе" предыдущего
            age = age_minutes if age_minutes is not None else 600 - counter["n"]
            created_at = get_now() - timedelta(minutes=age)

        order = Order(
            patient_id=patient_id or seed.patient_id,
            pharmacy_id=seed.pharmacy_id,
            driver_id=driver_id,
            status=status,
            total=Decimal(total),
            delivery_street=f"{counter['n']} Avenue des Champs-Elysees",
            delivery_city="Paris",
            delivery_postal_code="75008",
            delivery_country="France",
            delivery_latitude=latitude,
            delivery_longitude=longitude,
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )
        async with database.get_session() as session:
            session.add(order)
            await session.flush()
            session.add(
                TrackingUpdate(
                    order_id=order.id,
                    status=status,
                    message="Seeded",
                    created_at=created_at,
                )
            )
            return order.id

    return _make_order


class DatabaseReader:
    """Чтение состояния БД в отдельных транзакциях"""

    def __init__(self, db: ORMDatabase):
        self.db = db

    async def order(self, order_id: str) -> Order:
        """Свежее чтение заказа"""
        async with self.db.unit_of_work() as uow:
            return await uow.orders.get_by_id(order_id)

    async def tracking(self, order_id: str) -> list[TrackingUpdate]:
        """Журнал отслеживания заказа"""
        async with self.db.unit_of_work() as uow:
            return await uow.orders.get_tracking_history(order_id)

    async def notifications(self, user_id: str) -> list:
        """Уведомления пользователя"""
        async with self.db.unit_of_work() as uow:
            return await uow.notifications.get_for_user(user_id)

    async def location(self, driver_id: str) -> DriverLocation | None:
        """Позиция курьера"""
        async with self.db.unit_of_work() as uow:
            return await uow.driver_locations.get_by_driver(driver_id)


@pytest.fixture
def read(database: ORMDatabase) -> DatabaseReader:
    """Чтение состояния БД"""
    return DatabaseReader(database)
