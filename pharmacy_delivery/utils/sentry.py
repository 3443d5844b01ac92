"""
Опциональная интеграция Sentry для error tracking
"""

import logging

from pharmacy_delivery.core.config import Config


logger = logging.getLogger(__name__)


def init_sentry(dsn: str | None = None, environment: str | None = None) -> str | None:
    """
    Инициализация Sentry (только если задан SENTRY_DSN)

    Ошибки уровня ERROR (откаты транзакций, сбои уведомлений) уходят
    в Sentry как события, остальное - как breadcrumbs.

    Args:
        dsn: DSN (по умолчанию Config.SENTRY_DSN)
        environment: Окружение (по умолчанию Config.ENVIRONMENT)

    Returns:
        Sentry DSN если успешно, None если Sentry не настроен
    """
    sentry_dsn = dsn if dsn is not None else Config.SENTRY_DSN
    environment = environment or Config.ENVIRONMENT

    if not sentry_dsn:
        logger.info("Sentry DSN не настроен, error tracking отключен")
        return None

    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration
    except ImportError:
        logger.warning(
            "Sentry SDK не установлен. "
            "Установите: pip install sentry-sdk или pip install -e .[monitoring]"
        )
        return None

    try:
        sentry_sdk.init(
            dsn=sentry_dsn,
            environment=environment,
            traces_sample_rate=0.1,
            integrations=[
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            send_default_pii=False,  # ID пользователей и адреса не отправляем
            attach_stacktrace=True,
            max_breadcrumbs=50,
        )
    except Exception as e:
        logger.error(f"Ошибка инициализации Sentry: {e}")
        return None

    logger.info(f"Sentry инициализирован (environment: {environment})")
    return sentry_dsn
