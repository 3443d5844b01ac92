"""
Скрипт проверки инвариантов назначения курьеров в базе

Usage:
    python scripts/check_invariants.py
    python scripts/check_invariants.py --database-url sqlite+aiosqlite:///pharmacy_delivery.db
"""

import argparse
import asyncio
import logging
import sys

from pharmacy_delivery.core.logging_setup import setup_logging
from pharmacy_delivery.database import get_database
from pharmacy_delivery.services.integrity_service import IntegrityService
from pharmacy_delivery.utils.sentry import init_sentry


logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Проверка целостности заказов и доставок")
    parser.add_argument(
        "--database-url",
        default=None,
        help="URL базы данных (по умолчанию из DATABASE_URL / DATABASE_PATH)",
    )
    parser.add_argument("--verbose", action="store_true", help="Подробный лог")
    return parser.parse_args(argv)


async def check_invariants(database_url: str | None = None) -> int:
    """
    Проверка и вывод нарушений

    Returns:
        Количество найденных нарушений
    """
    db = get_database(database_url)
    await db.connect()
    try:
        violations = await IntegrityService(db.unit_of_work).find_violations()
    finally:
        await db.disconnect()

    print("\n" + "=" * 80)
    print("ПРОВЕРКА ИНВАРИАНТОВ")
    print("=" * 80)

    if not violations:
        print("\nНарушений не найдено\n")
        return 0

    print(f"\nНайдено нарушений: {len(violations)}\n")
    for violation in violations:
        print(f"[{violation.code}] order={violation.order_id or '-'} driver={violation.driver_id or '-'}")
        print(f"   {violation.detail}")
    print()
    return len(violations)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(level="DEBUG" if args.verbose else "WARNING")
    init_sentry()
    violations = asyncio.run(check_invariants(args.database_url))
    return 1 if violations else 0


if __name__ == "__main__":
    sys.exit(main())
