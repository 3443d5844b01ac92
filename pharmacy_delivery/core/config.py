"""
Конфигурация движка доставки

Значения читаются из переменных окружения (и файла .env, если он есть).
"""

import os

from dotenv import load_dotenv


load_dotenv()


def _get_float(name: str, default: float) -> float:
    """Чтение вещественного числа из окружения"""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _get_int(name: str, default: int) -> int:
    """Чтение целого числа из окружения"""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


class Config:
    """Конфигурация приложения"""

    # База данных
    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "pharmacy_delivery.db")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    SQLITE_BUSY_TIMEOUT: float = _get_float("SQLITE_BUSY_TIMEOUT", 5.0)

    # Логирование и мониторинг
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOGS_DIR: str = os.getenv("LOGS_DIR", "logs")
    SENTRY_DSN: str = os.getenv("SENTRY_DSN", "")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Доставка
    DELIVERY_ETA_MINUTES: int = _get_int("DELIVERY_ETA_MINUTES", 30)
    MINUTES_PER_KM: int = _get_int("MINUTES_PER_KM", 3)
    # Фиксированная тарифная политика: одна ставка на любую доставку
    DELIVERY_FEE: float = _get_float("DELIVERY_FEE", 5.00)
    DRIVER_EARNING_PER_DELIVERY: float = _get_float("DRIVER_EARNING_PER_DELIVERY", 5.00)
    # Координаты по умолчанию для курьера без известной позиции (Париж)
    DEFAULT_DRIVER_LATITUDE: float = _get_float("DEFAULT_DRIVER_LATITUDE", 48.8566)
    DEFAULT_DRIVER_LONGITUDE: float = _get_float("DEFAULT_DRIVER_LONGITUDE", 2.3522)

    # Telegram канал уведомлений (опционально)
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

    @classmethod
    def get_database_url(cls) -> str:
        """URL базы данных: DATABASE_URL или SQLite файл по DATABASE_PATH"""
        if cls.DATABASE_URL:
            return cls.DATABASE_URL
        return f"sqlite+aiosqlite:///{cls.DATABASE_PATH}"

    @classmethod
    def validate(cls) -> bool:
        """
        Проверка корректности конфигурации

        Returns:
            True если конфигурация корректна

        Raises:
            ValueError: Если какое-то значение недопустимо
        """
        if cls.DELIVERY_ETA_MINUTES <= 0:
            raise ValueError("DELIVERY_ETA_MINUTES должен быть положительным")
        if cls.MINUTES_PER_KM <= 0:
            raise ValueError("MINUTES_PER_KM должен быть положительным")
        if cls.DELIVERY_FEE < 0 or cls.DRIVER_EARNING_PER_DELIVERY < 0:
            raise ValueError("Тарифы доставки не могут быть отрицательными")
        if not -90 <= cls.DEFAULT_DRIVER_LATITUDE <= 90:
            raise ValueError("DEFAULT_DRIVER_LATITUDE вне диапазона [-90, 90]")
        if not -180 <= cls.DEFAULT_DRIVER_LONGITUDE <= 180:
            raise ValueError("DEFAULT_DRIVER_LONGITUDE вне диапазона [-180, 180]")
        if cls.SQLITE_BUSY_TIMEOUT <= 0:
            raise ValueError("SQLITE_BUSY_TIMEOUT должен быть положительным")
        return True
