import logging

from django.apps import AppConfig
from django.core.exceptions import ImproperlyConfigured


logger = logging.getLogger(__name__)


class YdtbAuthConfig(AppConfig):
    """YDTB Auth 应用配置"""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'ydtb_auth'
    verbose_name = 'YDTB Auth'

    def ready(self):
        """应用初始化时检查配置"""
        from .conf import auth_settings

        try:
            auth_settings.validate()
        except ImproperlyConfigured as e:
            logger.warning(f"YDTB Auth configuration issue: {e}")
            logger.warning("Run 'python manage.py check_auth_config' for details")
            return

        if auth_settings.is_development():
            logger.info("YDTB Auth configuration validated")
            logger.info("Development mode: emails will be logged instead of sent")
