"""
Вспомогательные функции
"""

import logging
import math
from datetime import datetime, timezone
from decimal import Decimal


logger = logging.getLogger(__name__)


# Радиус Земли в километрах
EARTH_RADIUS_KM = 6371.0


def get_now() -> datetime:
    """
    Текущее время в UTC

    Returns:
        datetime объект с timezone UTC
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Приведение datetime к UTC

    SQLite возвращает naive значения - считаем их UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Расстояние по дуге большого круга между двумя точками

    Args:
        lat1, lon1: Координаты первой точки (градусы)
        lat2, lon2: Координаты второй точки (градусы)

    Returns:
        Расстояние в километрах
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_between(
    lat1: float | None, lon1: float | None, lat2: float | None, lon2: float | None
) -> float | None:
    """Расстояние в км или None, если хотя бы одна координата неизвестна"""
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return None
    return haversine_km(lat1, lon1, lat2, lon2)


def estimate_minutes(distance_km: float | None, minutes_per_km: int) -> int | None:
    """Оценка времени в пути: округление вверх до целых минут"""
    if distance_km is None:
        return None
    return math.ceil(distance_km * minutes_per_km)


def format_money(amount: Decimal | float | int | None) -> str:
    """Форматирование суммы в евро"""
    if amount is None:
        return "€0.00"
    return f"€{Decimal(str(amount)).quantize(Decimal('0.01'))}"


def short_order_id(order_id: str) -> str:
    """Короткий номер заказа (последние 6 символов)"""
    return order_id[-6:]


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Обрезка текста до максимальной длины

    Args:
        text: Исходный текст
        max_length: Максимальная длина
        suffix: Суффикс для обрезанного текста

    Returns:
        Обрезанный текст
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix
