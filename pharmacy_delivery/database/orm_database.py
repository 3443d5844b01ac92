"""
SQLAlchemy ORM Database класс
"""

import logging
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from pharmacy_delivery.core.config import Config
from pharmacy_delivery.database.orm_models import Base
from pharmacy_delivery.database.unit_of_work import UnitOfWork


logger = logging.getLogger(__name__)


def _install_sqlite_locking(engine: AsyncEngine) -> None:
    """
    Транзакции SQLite открываются через BEGIN IMMEDIATE

    Блокировка на запись берётся в момент начала транзакции, поэтому
    конкурирующие транзакции выстраиваются в очередь (ждут busy timeout),
    а не падают на апгрейде блокировки. Так SQLite даёт ту же семантику,
    что SELECT ... FOR UPDATE в PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Отключаем собственный BEGIN драйвера
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class ORMDatabase:
    """Класс для работы с базой данных через SQLAlchemy ORM"""

    def __init__(self, database_url: str | None = None, echo: bool = False):
        """
        Инициализация ORM Database

        Args:
            database_url: URL базы данных (SQLite или PostgreSQL)
            echo: Логировать SQL запросы
        """
        self.database_url = database_url or Config.get_database_url()
        self.echo = echo
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None
        self._is_sqlite = self.database_url.startswith("sqlite")

    async def connect(self):
        """Подключение к базе данных"""
        try:
            logger.info("Инициализация подключения к БД...")
            logger.info(f"   Database URL: {self.database_url}")
            logger.info(f"   Is SQLite: {self._is_sqlite}")

            if self._is_sqlite:
                self.engine = create_async_engine(
                    self.database_url,
                    echo=self.echo,
                    connect_args={
                        "check_same_thread": False,
                        "timeout": Config.SQLITE_BUSY_TIMEOUT,
                    },
                )
                _install_sqlite_locking(self.engine)
            else:
                self.engine = create_async_engine(
                    self.database_url,
                    echo=self.echo,
                    pool_pre_ping=True,  # Проверка соединения перед использованием
                    pool_recycle=3600,  # Переподключение каждый час
                )

            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,  # Важно для async работы
            )

            logger.info("OK: Подключено к базе данных")
            logger.debug("Используйте 'alembic upgrade head' для применения миграций БД")

        except Exception as e:
            logger.error(f"ERROR: Ошибка подключения к БД: {e}")
            raise

    async def disconnect(self):
        """Отключение от базы данных"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Отключено от базы данных")

    async def create_all(self):
        """Создание схемы без миграций (тесты, локальный запуск)"""
        if not self.engine:
            raise RuntimeError("База данных не подключена")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("OK: Схема БД создана")

    @asynccontextmanager
    async def get_session(self):
        """
        Context manager для получения сессии

        Usage:
            async with db.get_session() as session:
                user = await session.get(User, user_id)
                # Автоматический commit/rollback
        """
        if not self.session_factory:
            raise RuntimeError("База данных не подключена")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
                logger.debug("OK: Транзакция успешно завершена (commit)")
            except Exception as e:
                await session.rollback()
                logger.error(f"ERROR: Транзакция отменена (rollback): {e}")
                raise

    def unit_of_work(self) -> UnitOfWork:
        """
        Новая единица работы (одна транзакция)

        Usage:
            async with db.unit_of_work() as uow:
                order = await uow.orders.get_by_id(order_id, for_update=True)
        """
        if not self.session_factory:
            raise RuntimeError("База данных не подключена")
        return UnitOfWork(self.session_factory)
