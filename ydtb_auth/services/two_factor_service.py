"""
两步验证服务 (TOTP + 备用码)
"""

import base64
import logging
import os
import secrets
import string
import time
from typing import Dict, List, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.twofactor.totp import TOTP
from django.db import transaction
from django.utils.crypto import constant_time_compare

from ..models import User, TwoFactor, AuditLog
from ..conf import auth_settings
from ..constants import AUDIT_ACTIONS
from ..exceptions import (
    InvalidCredentialsError,
    InvalidTwoFactorCodeError,
    ValidationError,
)
from .auth_service import AuthService
from .otp_service import hash_value


logger = logging.getLogger(__name__)

SECRET_BYTES = 20
BACKUP_CODE_ALPHABET = string.ascii_letters + string.digits


def generate_secret() -> str:
    """生成 Base32 编码的 TOTP 密钥"""
    return base64.b32encode(os.urandom(SECRET_BYTES)).decode('ascii').rstrip('=')


def _decode_secret(secret: str) -> bytes:
    padding = '=' * (-len(secret) % 8)
    return base64.b32decode(secret.upper() + padding)


def build_totp(secret: str) -> TOTP:
    return TOTP(
        _decode_secret(secret),
        auth_settings.TOTP_DIGITS,
        hashes.SHA1(),
        auth_settings.TOTP_PERIOD,
        enforce_key_length=False,
    )


def generate_totp_code(secret: str, at: Optional[float] = None) -> str:
    """生成指定时间的验证码"""
    at = time.time() if at is None else at
    return build_totp(secret).generate(int(at)).decode('ascii')


def verify_totp_code(secret: str, code: str, at: Optional[float] = None, window: int = 1) -> bool:
    """校验验证码，允许前后 window 个时间步"""
    if not code or not code.isdigit():
        return False
    at = time.time() if at is None else at
    totp = build_totp(secret)
    period = auth_settings.TOTP_PERIOD
    for step in range(-window, window + 1):
        expected = totp.generate(int(at + step * period)).decode('ascii')
        if constant_time_compare(expected, code):
            return True
    return False


def generate_backup_codes(count: Optional[int] = None, length: Optional[int] = None) -> List[str]:
    count = count or auth_settings.BACKUP_CODE_COUNT
    length = length or auth_settings.BACKUP_CODE_LENGTH
    return [
        ''.join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(length))
        for _ in range(count)
    ]


class TwoFactorService:
    """两步验证服务"""

    def __init__(self, auth_service: Optional[AuthService] = None):
        self.auth_service = auth_service or AuthService()

    @staticmethod
    def _check_password(user: User, password: str):
        account = user.get_credential_account()
        if account is None or not account.check_password(password):
            raise InvalidCredentialsError("Invalid password")

    @staticmethod
    def _get_two_factor(user: User) -> TwoFactor:
        two_factor = TwoFactor.objects.filter(user=user).first()
        if two_factor is None:
            raise ValidationError("Two factor isn't enabled", error_code='TWO_FACTOR_NOT_ENABLED')
        return two_factor

    @staticmethod
    def build_totp_uri(user: User, secret: str) -> str:
        return build_totp(secret).get_provisioning_uri(user.email, auth_settings.TOTP_ISSUER)

    def enable_two_factor(self, user: User, password: str) -> Dict[str, object]:
        """
        开启两步验证 (首次验证成功前 two_factor_enabled 保持 False)

        Args:
            user: 用户
            password: 当前密码

        Returns:
            Dict[str, object]: {totp_uri, backup_codes}

        Raises:
            InvalidCredentialsError: 密码错误
        """
        self._check_password(user, password)

        secret = generate_secret()
        codes = generate_backup_codes()

        TwoFactor.objects.update_or_create(
            user=user,
            defaults={
                'secret': secret,
                'backup_codes': [hash_value(code) for code in codes],
            }
        )
        logger.info(f"Two factor secret generated for {user.email}")

        return {
            'totp_uri': self.build_totp_uri(user, secret),
            'backup_codes': codes,
        }

    def verify_totp(self, user: User, code: str) -> bool:
        """
        校验 TOTP 验证码，首次成功时正式开启两步验证

        Raises:
            InvalidTwoFactorCodeError: 验证码错误
        """
        two_factor = self._get_two_factor(user)
        if not verify_totp_code(two_factor.secret, code):
            raise InvalidTwoFactorCodeError("Invalid code")

        if not user.two_factor_enabled:
            user.two_factor_enabled = True
            user.save(update_fields=['two_factor_enabled', 'updated_at'])
            AuditLog.log_action(
                user=user,
                action=AUDIT_ACTIONS['TWO_FACTOR_ENABLED'],
                resource_type='user',
                resource_id=user.id
            )
        return True

    def use_backup_code(self, user: User, code: str) -> bool:
        """备用码只能使用一次"""
        with transaction.atomic():
            two_factor = TwoFactor.objects.select_for_update().filter(user=user).first()
            if two_factor is None or not code:
                return False

            hashed = hash_value(code)
            remaining = [value for value in two_factor.backup_codes if not constant_time_compare(value, hashed)]
            if len(remaining) == len(two_factor.backup_codes):
                return False

            two_factor.backup_codes = remaining
            two_factor.save(update_fields=['backup_codes', 'updated_at'])
        logger.info(f"Backup code used by {user.email}, {len(remaining)} remaining")
        return True

    def complete_two_factor_sign_in(self, two_factor_token: str, code: str,
                                    ip_address: str = None, user_agent: str = None) -> Dict[str, object]:
        """
        完成两步验证登录，TOTP 或备用码均可

        Returns:
            Dict[str, object]: {token, session, user}

        Raises:
            TokenInvalidError: 两步验证令牌无效
            InvalidTwoFactorCodeError: 验证码错误
        """
        user = self.auth_service.get_user_from_two_factor_token(two_factor_token)
        two_factor = self._get_two_factor(user)

        if not verify_totp_code(two_factor.secret, code) and not self.use_backup_code(user, code):
            raise InvalidTwoFactorCodeError("Invalid code")

        return self.auth_service.create_session(user, ip_address=ip_address, user_agent=user_agent)

    def disable_two_factor(self, user: User, password: str) -> bool:
        self._check_password(user, password)

        with transaction.atomic():
            TwoFactor.objects.filter(user=user).delete()
            user.two_factor_enabled = False
            user.save(update_fields=['two_factor_enabled', 'updated_at'])

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['TWO_FACTOR_DISABLED'],
            resource_type='user',
            resource_id=user.id
        )
        return True

    def generate_backup_codes(self, user: User, password: str) -> List[str]:
        """重新生成备用码，旧的全部失效"""
        self._check_password(user, password)
        two_factor = self._get_two_factor(user)

        codes = generate_backup_codes()
        two_factor.backup_codes = [hash_value(code) for code in codes]
        two_factor.save(update_fields=['backup_codes', 'updated_at'])
        return codes

    def get_totp_uri(self, user: User, password: str) -> str:
        self._check_password(user, password)
        two_factor = self._get_two_factor(user)
        return self.build_totp_uri(user, two_factor.secret)
