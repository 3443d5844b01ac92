"""
Тесты для вспомогательных функций
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pharmacy_delivery.utils.helpers import (
    distance_between,
    ensure_utc,
    estimate_minutes,
    format_money,
    get_now,
    haversine_km,
    short_order_id,
    truncate_text,
)


class TestTime:
    """Тесты работы со временем"""

    def test_get_now_is_utc(self):
        """Текущее время всегда в UTC"""
        now = get_now()
        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(0)

    def test_ensure_utc_naive(self):
        """Naive datetime считается UTC"""
        value = ensure_utc(datetime(2025, 1, 1, 12, 0))
        assert value.tzinfo == timezone.utc
        assert value.hour == 12

    def test_ensure_utc_converts(self):
        """Aware datetime переводится в UTC"""
        paris = timezone(timedelta(hours=1))
        value = ensure_utc(datetime(2025, 1, 1, 12, 0, tzinfo=paris))
        assert value.hour == 11

    def test_ensure_utc_none(self):
        """None остаётся None"""
        assert ensure_utc(None) is None


class TestDistance:
    """Тесты расчёта расстояний"""

    def test_same_point(self):
        """Расстояние до той же точки - ноль"""
        assert haversine_km(48.8566, 2.3522, 48.8566, 2.3522) == pytest.approx(0.0)

    def test_paris_to_lyon(self):
        """Париж - Лион примерно 392 км"""
        assert haversine_km(48.8566, 2.3522, 45.7640, 4.8357) == pytest.approx(392, abs=5)

    def test_missing_coordinate(self):
        """Неизвестная координата - расстояние неизвестно"""
        assert distance_between(48.8566, None, 45.7640, 4.8357) is None

    def test_estimate_minutes_rounds_up(self):
        """Время в пути округляется вверх"""
        assert estimate_minutes(2.1, 3) == 7
        assert estimate_minutes(None, 3) is None


class TestFormatting:
    """Тесты форматирования"""

    def test_format_money(self):
        """Тест форматирования суммы"""
        assert format_money(Decimal("42.5")) == "€42.50"
        assert format_money(None) == "€0.00"

    def test_short_order_id(self):
        """Короткий номер - последние 6 символов"""
        assert short_order_id("123e4567-e89b-12d3-a456-426614174000") == "174000"

    def test_truncate_text(self):
        """Тест обрезки текста"""
        assert truncate_text("short", 10) == "short"
        assert truncate_text("a" * 20, 10) == "aaaaaaa..."
