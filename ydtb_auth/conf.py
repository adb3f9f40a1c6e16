"""
YDTB Auth - 极简配置
所有配置都有默认值，可通过 settings.YDTB_AUTH 或环境变量覆盖
"""

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from decouple import config as env_config


class YdtbAuthSettings:
    """
    极简配置类 - 大部分配置都有智能默认值

    查找顺序:
        1. settings.YDTB_AUTH 中显式配置的值
        2. 环境变量 (YDTB_AUTH_<NAME>，核心变量直接使用原名)
        3. DEFAULTS 中的默认值
    """

    DEFAULTS = {
        # 会话配置
        'AUTH_SECRET': None,  # 默认使用Django的SECRET_KEY
        'JWT_ALGORITHM': 'HS256',
        'SESSION_EXPIRES_IN': 60 * 60 * 24 * 7,  # 7天
        'SESSION_UPDATE_AGE': 60 * 60 * 24,  # 1天
        'TWO_FACTOR_TOKEN_LIFETIME': 60 * 10,  # 10分钟

        # 邮箱验证码
        'REQUIRE_EMAIL_VERIFICATION': True,
        'SEND_VERIFICATION_ON_SIGN_UP': True,
        'OTP_LENGTH': 6,
        'OTP_EXPIRES_IN': 300,  # 5分钟
        'OTP_ALLOWED_ATTEMPTS': 3,
        'RESET_PASSWORD_TOKEN_EXPIRES_IN': 60 * 60,  # 1小时

        # 工作空间邀请
        'INVITATION_EXPIRES_IN': 60 * 60 * 48,  # 48小时
        'ALLOW_USER_TO_CREATE_WORKSPACE': True,

        # 邮件频率限制
        'EMAIL_RATE_LIMIT_WINDOW': 60 * 15,  # 15分钟
        'EMAIL_RATE_LIMIT_MAX_ATTEMPTS': 3,
        'EMAIL_RATE_LIMIT_CLEANUP_INTERVAL': 60 * 5,  # 5分钟
        'EMAIL_RATE_LIMIT_STORE': 'memory',  # memory | cache
        'EMAIL_RATE_LIMIT_CACHE_ALIAS': 'default',

        # 邮件发送
        'EMAIL_ASYNC': False,  # True 时通过 celery 投递
        'SKIP_EMAIL_SENDING': False,
        'EMAIL_FROM': '"YDTB" <noreply@ydtb.com>',
        'APP_URL': 'http://localhost:3000',
        'APP_ENV': 'development',

        # 密码
        'PASSWORD_MIN_LENGTH': 8,
        'PASSWORD_MAX_LENGTH': 128,

        # 两步验证
        'TOTP_ISSUER': 'YDTB',
        'TOTP_DIGITS': 6,
        'TOTP_PERIOD': 30,
        'BACKUP_CODE_COUNT': 10,
        'BACKUP_CODE_LENGTH': 10,
    }

    # 核心环境变量直接使用原名，与 env.py 中的核心 schema 保持一致
    ENV_ALIASES = {
        'AUTH_SECRET': 'AUTH_SECRET',
        'APP_URL': 'APP_URL',
        'APP_ENV': 'APP_ENV',
        'SKIP_EMAIL_SENDING': 'SKIP_EMAIL_SENDING',
    }

    @property
    def user_settings(self):
        return getattr(settings, 'YDTB_AUTH', {})

    def __getattr__(self, name):
        """智能配置获取"""
        if name.startswith('_') or name not in self.DEFAULTS:
            raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

        # 1. 用户显式配置
        if name in self.user_settings:
            return self.user_settings[name]

        # 2. 环境变量
        default = self.DEFAULTS[name]
        env_key = self.ENV_ALIASES.get(name, f'YDTB_AUTH_{name}')
        if default is None:
            value = env_config(env_key, default=None)
        else:
            value = env_config(env_key, default=default, cast=type(default))

        # 3. 特殊默认值
        if name == 'AUTH_SECRET' and not value:
            value = getattr(settings, 'SECRET_KEY', '')
        return value

    def validate(self):
        """只验证必需的配置"""
        if not self.AUTH_SECRET:
            raise ImproperlyConfigured(
                "AUTH_SECRET is required. "
                "Configure YDTB_AUTH['AUTH_SECRET'] or set SECRET_KEY in settings.py"
            )
        if self.EMAIL_RATE_LIMIT_STORE not in ('memory', 'cache'):
            raise ImproperlyConfigured(
                f"EMAIL_RATE_LIMIT_STORE must be 'memory' or 'cache', got '{self.EMAIL_RATE_LIMIT_STORE}'"
            )

    def is_development(self):
        """检查是否为开发环境"""
        return self.APP_ENV == 'development'

    def build_url(self, path):
        """拼接应用绝对地址"""
        return f"{str(self.APP_URL).rstrip('/')}/{path.lstrip('/')}"


# 全局配置实例
auth_settings = YdtbAuthSettings()
