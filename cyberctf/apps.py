from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)


class CyberctfConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cyberctf"

    def ready(self) -> None:
        if settings.FIRST_BLOOD_BONUS_POINTS < 0:
            raise ImproperlyConfigured("FIRST_BLOOD_BONUS_POINTS must not be negative")

        if settings.FLAG_RATE_LIMIT_DELAY_STEP <= 0 or (
            settings.FLAG_RATE_LIMIT_MAX_DELAY < settings.FLAG_RATE_LIMIT_DELAY_STEP
        ):
            raise ImproperlyConfigured(
                "FLAG_RATE_LIMIT_DELAY_STEP must be positive and not exceed FLAG_RATE_LIMIT_MAX_DELAY"
            )

        if settings.FIRST_BLOOD_BONUS_POINTS:
            logger.info(
                f"First blood bonus enabled: bonus_points={settings.FIRST_BLOOD_BONUS_POINTS}"
            )
        else:
            logger.info("First blood bonus disabled, first blood is recorded only")
