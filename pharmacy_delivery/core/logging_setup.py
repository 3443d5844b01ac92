"""
Гибкая настройка логирования:
- Пытаемся писать в файл <LOGS_DIR>/pharmacy_delivery.log с ротацией
- Если нет прав на запись (напр., bind mount в Docker), остаёмся только с выводом в консоль
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from pharmacy_delivery.core.config import Config


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None, logs_dir: str | None = None) -> logging.Logger:
    """
    Настройка root logger

    Args:
        level: Уровень логирования (по умолчанию Config.LOG_LEVEL)
        logs_dir: Директория логов (по умолчанию Config.LOGS_DIR)

    Returns:
        Логгер пакета pharmacy_delivery
    """
    log_formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_formatter)
    if hasattr(console_handler.stream, "reconfigure"):
        console_handler.stream.reconfigure(encoding="utf-8")

    handlers: list[logging.Handler] = [console_handler]

    log_file_path = Path(logs_dir or Config.LOGS_DIR) / "pharmacy_delivery.log"
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(log_file_path),
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(log_formatter)
        handlers.insert(0, file_handler)
    except (PermissionError, OSError) as e:
        sys.stderr.write(f"[logging] WARNING: cannot use file logging at {log_file_path}: {e}\n")

    log_level = getattr(logging, (level or Config.LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    package_logger = logging.getLogger("pharmacy_delivery")
    package_logger.setLevel(log_level)

    if log_level == logging.DEBUG:
        logging.getLogger("aiogram").setLevel(logging.INFO)
        logging.getLogger("aiosqlite").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
        package_logger.info("DEBUG режим включен (LOG_LEVEL=DEBUG)")
    else:
        logging.getLogger("aiogram").setLevel(logging.WARNING)
        logging.getLogger("aiosqlite").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return package_logger
