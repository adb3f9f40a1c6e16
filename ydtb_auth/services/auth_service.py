"""
认证服务 - 邮箱密码登录与会话管理
"""

import logging
import secrets
from datetime import timedelta
from typing import Dict, List, Optional

import jwt
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.utils import timezone

from ..models import User, Account, Session, Verification, AuditLog
from ..conf import auth_settings
from ..constants import (
    PROVIDER_CREDENTIAL,
    OTP_TYPE_SIGN_IN,
    OTP_TYPE_FORGET_PASSWORD,
    RESET_PASSWORD_IDENTIFIER_PREFIX,
    TOKEN_TYPE_SESSION,
    TOKEN_TYPE_TWO_FACTOR,
    AUDIT_ACTIONS,
)
from ..exceptions import (
    YdtbAuthError,
    ValidationError,
    EmailAlreadyExistsError,
    InvalidCredentialsError,
    EmailNotVerifiedError,
    TokenInvalidError,
    SessionExpiredError,
    OTPInvalidError,
)
from .. import mailer
from .otp_service import OTPService, hash_value


logger = logging.getLogger(__name__)


class AuthService:
    """认证服务"""

    def __init__(self, otp_service: Optional[OTPService] = None):
        self.otp_service = otp_service or OTPService()

    # ------------------------------------------------------------------
    # JWT
    # ------------------------------------------------------------------

    @staticmethod
    def _encode(payload: Dict[str, object]) -> str:
        return jwt.encode(payload, auth_settings.AUTH_SECRET, algorithm=auth_settings.JWT_ALGORITHM)

    def verify_token(self, token: str, expected_type: str = TOKEN_TYPE_SESSION) -> Dict[str, object]:
        """
        验证JWT令牌

        Args:
            token: JWT令牌
            expected_type: 期望的 token_type

        Returns:
            Dict[str, object]: 解码后的payload

        Raises:
            SessionExpiredError: 令牌过期
            TokenInvalidError: 令牌无效
        """
        try:
            payload = jwt.decode(
                token,
                auth_settings.AUTH_SECRET,
                algorithms=[auth_settings.JWT_ALGORITHM]
            )
        except jwt.ExpiredSignatureError:
            raise SessionExpiredError("Token has expired")
        except jwt.InvalidTokenError:
            raise TokenInvalidError("Invalid token")

        if payload.get('token_type') != expected_type:
            raise TokenInvalidError("Invalid token type")
        return payload

    def issue_session_token(self, session: Session) -> str:
        """为会话签发 JWT，过期时间与会话一致"""
        payload = {
            'sid': session.token,
            'user_id': str(session.user_id),
            'token_type': TOKEN_TYPE_SESSION,
            'iat': int(timezone.now().timestamp()),
            'exp': int(session.expires_at.timestamp()),
        }
        return self._encode(payload)

    def issue_two_factor_token(self, user: User) -> str:
        """签发两步验证的临时令牌"""
        now = timezone.now()
        payload = {
            'user_id': str(user.id),
            'token_type': TOKEN_TYPE_TWO_FACTOR,
            'iat': int(now.timestamp()),
            'exp': int((now + timedelta(seconds=auth_settings.TWO_FACTOR_TOKEN_LIFETIME)).timestamp()),
        }
        return self._encode(payload)

    def get_user_from_two_factor_token(self, token: str) -> User:
        payload = self.verify_token(token, expected_type=TOKEN_TYPE_TWO_FACTOR)
        try:
            return User.objects.get(id=payload['user_id'])
        except (User.DoesNotExist, ValueError, DjangoValidationError):
            raise TokenInvalidError("User not found")

    # ------------------------------------------------------------------
    # 校验
    # ------------------------------------------------------------------

    @staticmethod
    def validate_email_address(email: str) -> str:
        email = User.objects.normalize_email(email)
        try:
            validate_email(email)
        except DjangoValidationError:
            raise ValidationError("Invalid email address", field='email')
        return email

    @staticmethod
    def validate_password(password: str):
        if not password or len(password) < auth_settings.PASSWORD_MIN_LENGTH:
            raise ValidationError(
                f"Password must be at least {auth_settings.PASSWORD_MIN_LENGTH} characters",
                error_code='PASSWORD_TOO_SHORT',
                field='password'
            )
        if len(password) > auth_settings.PASSWORD_MAX_LENGTH:
            raise ValidationError(
                f"Password cannot exceed {auth_settings.PASSWORD_MAX_LENGTH} characters",
                error_code='PASSWORD_TOO_LONG',
                field='password'
            )

    # ------------------------------------------------------------------
    # 注册与登录
    # ------------------------------------------------------------------

    def sign_up_email(self, name: str, email: str, password: str, ip_address: str = None, user_agent: str = None) -> User:
        """
        邮箱密码注册

        Args:
            name: 用户名
            email: 邮箱
            password: 密码
            ip_address: IP地址
            user_agent: User Agent

        Returns:
            User: 新用户 (需要验证邮箱后才能登录)

        Raises:
            ValidationError: 邮箱或密码格式错误
            EmailAlreadyExistsError: 邮箱已存在
        """
        email = self.validate_email_address(email)
        self.validate_password(password)

        if User.objects.filter(email=email).exists():
            raise EmailAlreadyExistsError("User already exists", field='email')

        with transaction.atomic():
            user = User.objects.create_user(email=email, name=name)
            account = Account(
                user=user,
                provider_id=PROVIDER_CREDENTIAL,
                account_id=str(user.id),
            )
            account.set_password(password, save=False)
            account.save()

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['USER_SIGNED_UP'],
            resource_type='user',
            resource_id=user.id,
            metadata={'email': email},
            ip_address=ip_address,
            user_agent=user_agent
        )
        logger.info(f"User signed up: {email}")

        if auth_settings.SEND_VERIFICATION_ON_SIGN_UP:
            try:
                self.otp_service.send_verification_otp(email)
            except YdtbAuthError as e:
                # 注册成功，用户可以在验证页面重新发送
                logger.error(f"Failed to send verification OTP on sign-up for {email}: {e.message}")

        return user

    def sign_in_email(self, email: str, password: str, ip_address: str = None, user_agent: str = None) -> Dict[str, object]:
        """
        邮箱密码登录

        Returns:
            Dict[str, object]: {token, session, user} 或两步验证跳转 {two_factor_redirect, two_factor_token}

        Raises:
            InvalidCredentialsError: 邮箱或密码错误
            EmailNotVerifiedError: 邮箱未验证
        """
        try:
            user = User.objects.get_by_email(email)
        except User.DoesNotExist:
            AuditLog.log_action(
                user=None,
                action=AUDIT_ACTIONS['USER_SIGNED_IN'],
                resource_type='user',
                metadata={'email': email, 'success': False, 'reason': 'user_not_found'},
                ip_address=ip_address,
                user_agent=user_agent
            )
            raise InvalidCredentialsError("Invalid email or password")

        account = user.get_credential_account()
        if account is None or not account.check_password(password):
            AuditLog.log_action(
                user=user,
                action=AUDIT_ACTIONS['USER_SIGNED_IN'],
                resource_type='user',
                metadata={'success': False, 'reason': 'invalid_password'},
                ip_address=ip_address,
                user_agent=user_agent
            )
            raise InvalidCredentialsError("Invalid email or password")

        if auth_settings.REQUIRE_EMAIL_VERIFICATION and not user.email_verified:
            raise EmailNotVerifiedError("Email not verified")

        if user.two_factor_enabled:
            return {
                'two_factor_redirect': True,
                'two_factor_token': self.issue_two_factor_token(user),
            }

        return self.create_session(user, ip_address=ip_address, user_agent=user_agent)

    def create_session(self, user: User, ip_address: str = None, user_agent: str = None) -> Dict[str, object]:
        """创建会话并返回 {token, session, user}"""
        session = Session.objects.create(
            user=user,
            token=secrets.token_urlsafe(32),
            expires_at=timezone.now() + timedelta(seconds=auth_settings.SESSION_EXPIRES_IN),
            ip_address=ip_address,
            user_agent=user_agent,
        )

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['USER_SIGNED_IN'],
            resource_type='session',
            resource_id=session.id,
            metadata={'success': True},
            ip_address=ip_address,
            user_agent=user_agent
        )

        return {
            'token': self.issue_session_token(session),
            'session': session,
            'user': user,
        }

    # ------------------------------------------------------------------
    # 会话
    # ------------------------------------------------------------------

    def get_session(self, token: Optional[str]) -> Optional[Session]:
        """
        获取会话，到达更新间隔时自动续期

        Args:
            token: 会话 JWT

        Returns:
            Optional[Session]: 会话，令牌无效或过期时为None
        """
        if not token:
            return None

        try:
            payload = self.verify_token(token)
        except YdtbAuthError:
            return None

        session = (
            Session.objects.select_related('user', 'active_workspace')
            .filter(token=payload.get('sid'))
            .first()
        )
        if session is None:
            return None

        now = timezone.now()
        if session.expires_at <= now:
            session.delete()
            return None

        expires_in = timedelta(seconds=auth_settings.SESSION_EXPIRES_IN)
        update_age = timedelta(seconds=auth_settings.SESSION_UPDATE_AGE)
        if session.expires_at - expires_in + update_age <= now:
            session.expires_at = now + expires_in
            session.save(update_fields=['expires_at', 'updated_at'])
            logger.debug(f"Session {session.id} refreshed")

        return session

    def sign_out(self, session: Session, ip_address: str = None, user_agent: str = None) -> bool:
        """删除会话"""
        AuditLog.log_action(
            user=session.user,
            action=AUDIT_ACTIONS['USER_SIGNED_OUT'],
            resource_type='session',
            resource_id=session.id,
            ip_address=ip_address,
            user_agent=user_agent
        )
        session.delete()
        return True

    @staticmethod
    def list_sessions(user: User) -> List[Session]:
        """列出用户有效的会话"""
        return list(Session.objects.filter(user=user, expires_at__gt=timezone.now()))

    @staticmethod
    def revoke_other_sessions(session: Session) -> int:
        """撤销当前会话以外的全部会话"""
        deleted, _ = Session.objects.filter(user_id=session.user_id).exclude(pk=session.pk).delete()
        return deleted

    @staticmethod
    def revoke_all_sessions(user: User) -> int:
        deleted, _ = Session.objects.filter(user=user).delete()
        return deleted

    @staticmethod
    def cleanup_expired_sessions(now=None) -> int:
        deleted, _ = Session.objects.filter(expires_at__lte=now or timezone.now()).delete()
        return deleted

    # ------------------------------------------------------------------
    # 密码
    # ------------------------------------------------------------------

    def change_password(self, user: User, current_password: str, new_password: str,
                        revoke_other_sessions: bool = False, session: Optional[Session] = None) -> bool:
        """
        修改密码

        Raises:
            InvalidCredentialsError: 当前密码错误
            ValidationError: 新密码格式错误
        """
        account = user.get_credential_account()
        if account is None or not account.check_password(current_password):
            raise InvalidCredentialsError("Invalid password")

        self.validate_password(new_password)
        account.set_password(new_password)

        if revoke_other_sessions:
            queryset = Session.objects.filter(user=user)
            if session is not None:
                queryset = queryset.exclude(pk=session.pk)
            queryset.delete()

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['PASSWORD_CHANGED'],
            resource_type='user',
            resource_id=user.id,
            metadata={'revoked_other_sessions': revoke_other_sessions}
        )
        return True

    def request_password_reset(self, email: str, redirect_to: Optional[str] = None) -> bool:
        """
        发送重置密码链接

        Returns:
            bool: 是否发送 (邮箱未注册时静默返回 False)
        """
        try:
            user = User.objects.get_by_email(email)
        except User.DoesNotExist:
            logger.info(f"Password reset requested for unknown email {email}")
            return False

        token = secrets.token_urlsafe(32)
        identifier = f"{RESET_PASSWORD_IDENTIFIER_PREFIX}:{hash_value(token)}"
        redirect_to = redirect_to or '/reset-password'

        with transaction.atomic():
            Verification.objects.filter(value=str(user.id), identifier__startswith=RESET_PASSWORD_IDENTIFIER_PREFIX).delete()
            Verification.objects.create(
                identifier=identifier,
                value=str(user.id),
                expires_at=timezone.now() + timedelta(seconds=auth_settings.RESET_PASSWORD_TOKEN_EXPIRES_IN),
            )
            separator = '&' if '?' in redirect_to else '?'
            url = auth_settings.build_url(f"{redirect_to}{separator}token={token}")
            mailer.send_reset_password_email(user.email, url)

        return True

    def reset_password(self, token: str, new_password: str) -> User:
        """
        使用重置令牌设置新密码，并撤销全部会话

        Raises:
            TokenInvalidError: 令牌无效或过期
            ValidationError: 新密码格式错误
        """
        identifier = f"{RESET_PASSWORD_IDENTIFIER_PREFIX}:{hash_value(token or '')}"
        verification = Verification.objects.filter(identifier=identifier).first()

        if verification is None:
            raise TokenInvalidError("Invalid token")

        if verification.is_expired:
            verification.delete()
            raise TokenInvalidError("Invalid token")

        self.validate_password(new_password)

        user = User.objects.filter(id=verification.value).first()
        if user is None:
            verification.delete()
            raise TokenInvalidError("Invalid token")

        with transaction.atomic():
            self._set_credential_password(user, new_password)
            verification.delete()
            self.revoke_all_sessions(user)

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['PASSWORD_RESET'],
            resource_type='user',
            resource_id=user.id
        )
        logger.info(f"Password reset for {user.email}")
        return user

    @staticmethod
    def _set_credential_password(user: User, new_password: str):
        """更新密码账号，没有密码账号时创建"""
        account = user.get_credential_account()
        if account is None:
            account = Account(user=user, provider_id=PROVIDER_CREDENTIAL, account_id=str(user.id))
            account.set_password(new_password, save=False)
            account.save()
        else:
            account.set_password(new_password)

    # ------------------------------------------------------------------
    # 邮箱验证码登录与重置密码
    # ------------------------------------------------------------------

    def sign_in_email_otp(self, email: str, otp: str, ip_address: str = None, user_agent: str = None) -> Dict[str, object]:
        """
        使用 sign-in 类型的验证码登录

        验证码由邮箱收到，登录成功同时视为邮箱已验证。

        Returns:
            Dict[str, object]: {token, session, user} 或两步验证跳转 {two_factor_redirect, two_factor_token}

        Raises:
            OTPInvalidError: 验证码无效或用户不存在
            OTPExpiredError: 验证码过期
            OTPAttemptsExceededError: 尝试次数过多
        """
        self.otp_service.check_otp(email, otp, OTP_TYPE_SIGN_IN)

        try:
            user = User.objects.get_by_email(email)
        except User.DoesNotExist:
            raise OTPInvalidError("Invalid OTP")

        if not user.email_verified:
            user.email_verified = True
            user.save(update_fields=['email_verified', 'updated_at'])

        if user.two_factor_enabled:
            return {
                'two_factor_redirect': True,
                'two_factor_token': self.issue_two_factor_token(user),
            }

        logger.info(f"User signed in with email OTP: {user.email}")
        return self.create_session(user, ip_address=ip_address, user_agent=user_agent)

    def reset_password_email_otp(self, email: str, otp: str, new_password: str) -> User:
        """
        使用 forget-password 类型的验证码重置密码，并撤销全部会话

        Raises:
            ValidationError: 新密码格式错误
            OTPInvalidError: 验证码无效或用户不存在
            OTPExpiredError: 验证码过期
            OTPAttemptsExceededError: 尝试次数过多
        """
        self.validate_password(new_password)
        self.otp_service.check_otp(email, otp, OTP_TYPE_FORGET_PASSWORD)

        try:
            user = User.objects.get_by_email(email)
        except User.DoesNotExist:
            raise OTPInvalidError("Invalid OTP")

        with transaction.atomic():
            self._set_credential_password(user, new_password)
            if not user.email_verified:
                user.email_verified = True
                user.save(update_fields=['email_verified', 'updated_at'])
            self.revoke_all_sessions(user)

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['PASSWORD_RESET'],
            resource_type='user',
            resource_id=user.id,
            metadata={'method': 'email_otp'}
        )
        logger.info(f"Password reset with email OTP for {user.email}")
        return user
