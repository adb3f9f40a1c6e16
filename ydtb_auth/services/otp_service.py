"""
邮箱验证码服务
"""

import hashlib
import logging
import re
import secrets
from datetime import timedelta
from typing import Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone
from django.utils.crypto import constant_time_compare

from ..models import User, Verification, AuditLog
from ..conf import auth_settings
from ..constants import OTP_TYPES, OTP_TYPE_EMAIL_VERIFICATION, AUDIT_ACTIONS
from ..exceptions import (
    ValidationError,
    OTPInvalidError,
    OTPExpiredError,
    OTPAttemptsExceededError,
)
from .. import mailer


logger = logging.getLogger(__name__)

OTP_FORMAT = re.compile(r'^[0-9]{6}$', re.ASCII)


def is_valid_otp_format(otp) -> bool:
    """验证码必须是6位数字"""
    return isinstance(otp, str) and bool(OTP_FORMAT.match(otp))


def hash_value(value: str) -> str:
    """SHA-256 哈希，数据库只保存哈希值"""
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


class OTPService:
    """邮箱验证码服务"""

    @staticmethod
    def identifier(email: str, otp_type: str = OTP_TYPE_EMAIL_VERIFICATION) -> str:
        return f"{otp_type}-otp-{User.objects.normalize_email(email)}"

    @staticmethod
    def generate_otp(length: Optional[int] = None) -> str:
        """生成数字验证码"""
        length = length or auth_settings.OTP_LENGTH
        return ''.join(secrets.choice('0123456789') for _ in range(length))

    def send_verification_otp(self, email: str, otp_type: str = OTP_TYPE_EMAIL_VERIFICATION) -> bool:
        """
        生成并发送验证码

        Args:
            email: 邮箱
            otp_type: email-verification | sign-in | forget-password

        Returns:
            bool: 是否发送 (邮箱未注册时静默返回 False)

        Raises:
            ValidationError: 验证码类型无效
            RateLimitError: 发送过于频繁
            EmailDeliveryError: 邮件发送失败
        """
        if otp_type not in OTP_TYPES:
            raise ValidationError(f"Invalid OTP type: {otp_type}", field='type')

        try:
            user = User.objects.get_by_email(email)
        except User.DoesNotExist:
            # 不暴露邮箱是否已注册
            logger.info(f"Verification OTP requested for unknown email {email}")
            return False

        otp = self.generate_otp()
        identifier = self.identifier(user.email, otp_type)

        with transaction.atomic():
            Verification.objects.filter(identifier=identifier).delete()
            Verification.objects.create(
                identifier=identifier,
                value=hash_value(otp),
                expires_at=timezone.now() + timedelta(seconds=auth_settings.OTP_EXPIRES_IN),
            )
            # 发送失败时回滚，保留之前的验证码
            mailer.send_verification_otp_email(user.email, otp, user_name=user.name, otp_type=otp_type)

        return True

    def check_otp(self, email: str, otp: str, otp_type: str = OTP_TYPE_EMAIL_VERIFICATION):
        """
        校验并消费验证码

        读取与计数在同一事务中完成，并发请求按行锁串行。

        Raises:
            OTPInvalidError: 验证码不存在或不匹配
            OTPExpiredError: 验证码过期
            OTPAttemptsExceededError: 尝试次数过多
        """
        identifier = self.identifier(email, otp_type)
        error = None

        with transaction.atomic():
            verification = (
                Verification.objects.select_for_update()
                .filter(identifier=identifier)
                .order_by('-created_at')
                .first()
            )

            if verification is None:
                error = OTPInvalidError("Invalid OTP")
            elif verification.is_expired:
                verification.delete()
                error = OTPExpiredError("OTP expired")
            elif verification.attempts >= auth_settings.OTP_ALLOWED_ATTEMPTS:
                verification.delete()
                error = OTPAttemptsExceededError("Too many attempts")
            elif not constant_time_compare(verification.value, hash_value(otp)):
                Verification.objects.filter(pk=verification.pk).update(attempts=F('attempts') + 1)
                error = OTPInvalidError("Invalid OTP")
            else:
                verification.delete()

        # 在事务外抛出，删除与计数不会被回滚
        if error is not None:
            raise error

    def verify_email_otp(self, email: str, otp: str, ip_address: str = None, user_agent: str = None) -> User:
        """
        校验邮箱验证码并标记邮箱已验证

        Returns:
            User: 已验证的用户
        """
        self.check_otp(email, otp, OTP_TYPE_EMAIL_VERIFICATION)

        try:
            user = User.objects.get_by_email(email)
        except User.DoesNotExist:
            raise OTPInvalidError("Invalid OTP")

        if not user.email_verified:
            user.email_verified = True
            user.save(update_fields=['email_verified', 'updated_at'])

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['EMAIL_VERIFIED'],
            resource_type='user',
            resource_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info(f"Email verified for {user.email}")
        return user

    @staticmethod
    def cleanup_expired(now=None) -> int:
        """删除过期的验证记录"""
        deleted, _ = Verification.objects.expired(now).delete()
        return deleted
