"""
测试认证服务
"""

from datetime import timedelta
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import jwt
from django.conf import settings
from django.core import mail
from django.test import TestCase
from django.utils import timezone

from .. import mailer
from ..constants import AUDIT_ACTIONS, OTP_TYPE_SIGN_IN, OTP_TYPE_FORGET_PASSWORD
from ..exceptions import (
    ValidationError,
    EmailAlreadyExistsError,
    InvalidCredentialsError,
    EmailNotVerifiedError,
    SessionExpiredError,
    TokenInvalidError,
    OTPInvalidError,
)
from ..models import User, Session, Verification, AuditLog
from ..rate_limiter import reset_email_rate_limiter
from ..services import AuthService, OTPService
from .factories import UserFactory, DEFAULT_PASSWORD


class AuthServiceTest(TestCase):
    """测试注册与登录"""

    def setUp(self):
        reset_email_rate_limiter()
        self.auth_service = AuthService()
        self.test_email = "test@example.com"
        self.test_password = "SecurePassword123!"
        self.test_name = "Test User"

    def test_sign_up_success(self):
        """测试注册成功并发送验证码"""
        user = self.auth_service.sign_up_email(self.test_name, "Test@Example.com", self.test_password)

        self.assertEqual(user.email, self.test_email)
        self.assertFalse(user.email_verified)
        self.assertTrue(user.get_credential_account().check_password(self.test_password))

        # 验证码邮件
        self.assertEqual(len(mail.outbox), 1)
        self.assertTrue(Verification.objects.filter(identifier=f'email-verification-otp-{self.test_email}').exists())

        # 审计日志
        self.assertTrue(AuditLog.objects.filter(user=user, action=AUDIT_ACTIONS['USER_SIGNED_UP']).exists())

    def test_sign_up_duplicate_email(self):
        """测试重复邮箱注册"""
        UserFactory(email=self.test_email)

        with self.assertRaises(EmailAlreadyExistsError) as cm:
            self.auth_service.sign_up_email(self.test_name, self.test_email, self.test_password)
        self.assertEqual(cm.exception.error_code, 'USER_ALREADY_EXISTS')

    def test_sign_up_invalid_input(self):
        with self.assertRaisesMessage(ValidationError, 'Invalid email address'):
            self.auth_service.sign_up_email(self.test_name, 'not-an-email', self.test_password)

        with self.assertRaises(ValidationError) as cm:
            self.auth_service.sign_up_email(self.test_name, self.test_email, 'short')
        self.assertEqual(cm.exception.error_code, 'PASSWORD_TOO_SHORT')
        self.assertFalse(User.objects.exists())

    def test_sign_up_survives_rate_limited_otp(self):
        """验证码发送失败时注册仍然成功"""
        for _ in range(3):
            mailer.send_verification_otp_email(self.test_email, '000000')

        user = self.auth_service.sign_up_email(self.test_name, self.test_email, self.test_password)

        self.assertIsNotNone(user.pk)
        self.assertFalse(Verification.objects.exists())

    def test_sign_in_success(self):
        user = UserFactory(email=self.test_email)

        result = self.auth_service.sign_in_email(self.test_email, DEFAULT_PASSWORD, ip_address='127.0.0.1')

        self.assertEqual(result['user'], user)
        self.assertEqual(result['session'].ip_address, '127.0.0.1')
        payload = jwt.decode(result['token'], settings.YDTB_AUTH['AUTH_SECRET'], algorithms=['HS256'])
        self.assertEqual(payload['sid'], result['session'].token)
        self.assertEqual(payload['token_type'], 'session')

    def test_sign_in_wrong_password(self):
        user = UserFactory(email=self.test_email)

        with self.assertRaisesMessage(InvalidCredentialsError, 'Invalid email or password'):
            self.auth_service.sign_in_email(self.test_email, 'wrong-password')

        log = AuditLog.objects.get(user=user, action=AUDIT_ACTIONS['USER_SIGNED_IN'])
        self.assertFalse(log.metadata['success'])
        self.assertFalse(Session.objects.exists())

    def test_sign_in_unknown_email(self):
        with self.assertRaises(InvalidCredentialsError):
            self.auth_service.sign_in_email('ghost@example.com', DEFAULT_PASSWORD)

        log = AuditLog.objects.get(action=AUDIT_ACTIONS['USER_SIGNED_IN'])
        self.assertIsNone(log.user)

    def test_sign_in_unverified_email(self):
        UserFactory(email=self.test_email, email_verified=False)

        with self.assertRaises(EmailNotVerifiedError) as cm:
            self.auth_service.sign_in_email(self.test_email, DEFAULT_PASSWORD)
        self.assertEqual(cm.exception.status_code, 403)

    def test_sign_in_with_two_factor_returns_redirect(self):
        user = UserFactory(email=self.test_email, two_factor_enabled=True)

        result = self.auth_service.sign_in_email(self.test_email, DEFAULT_PASSWORD)

        self.assertTrue(result['two_factor_redirect'])
        self.assertEqual(self.auth_service.get_user_from_two_factor_token(result['two_factor_token']), user)
        self.assertFalse(Session.objects.exists())


class SessionTest(TestCase):
    """测试会话令牌与续期"""

    def setUp(self):
        self.auth_service = AuthService()
        self.user = UserFactory()

    def test_get_session(self):
        result = self.auth_service.create_session(self.user)

        session = self.auth_service.get_session(result['token'])

        self.assertEqual(session, result['session'])

    def test_get_session_invalid_token(self):
        self.assertIsNone(self.auth_service.get_session(None))
        self.assertIsNone(self.auth_service.get_session('garbage'))

    def test_two_factor_token_is_not_a_session(self):
        token = self.auth_service.issue_two_factor_token(self.user)

        self.assertIsNone(self.auth_service.get_session(token))
        with self.assertRaises(TokenInvalidError):
            self.auth_service.verify_token(token)

    def test_expired_token(self):
        result = self.auth_service.create_session(self.user)
        session = result['session']
        session.expires_at = timezone.now() - timedelta(seconds=5)
        token = self.auth_service.issue_session_token(session)

        with self.assertRaises(SessionExpiredError):
            self.auth_service.verify_token(token)
        self.assertIsNone(self.auth_service.get_session(token))

    def test_expired_session_row_is_deleted(self):
        result = self.auth_service.create_session(self.user)
        Session.objects.filter(pk=result['session'].pk).update(expires_at=timezone.now() - timedelta(seconds=1))

        self.assertIsNone(self.auth_service.get_session(result['token']))
        self.assertFalse(Session.objects.filter(pk=result['session'].pk).exists())

    def test_revoked_session(self):
        result = self.auth_service.create_session(self.user)
        self.auth_service.sign_out(result['session'])

        self.assertIsNone(self.auth_service.get_session(result['token']))
        self.assertTrue(AuditLog.objects.filter(action=AUDIT_ACTIONS['USER_SIGNED_OUT']).exists())

    def test_fresh_session_is_not_extended(self):
        result = self.auth_service.create_session(self.user)
        original = result['session'].expires_at

        session = self.auth_service.get_session(result['token'])

        self.assertEqual(session.expires_at, original)

    def test_session_is_extended_after_update_age(self):
        result = self.auth_service.create_session(self.user)
        # 会话创建于2天前，剩余5天
        expires_at = timezone.now() + timedelta(days=5)
        Session.objects.filter(pk=result['session'].pk).update(expires_at=expires_at)

        session = self.auth_service.get_session(result['token'])

        self.assertGreater(session.expires_at, timezone.now() + timedelta(days=6, hours=23))

    def test_list_and_revoke_other_sessions(self):
        current = self.auth_service.create_session(self.user)['session']
        self.auth_service.create_session(self.user)
        self.auth_service.create_session(self.user)
        self.auth_service.create_session(UserFactory())

        self.assertEqual(len(self.auth_service.list_sessions(self.user)), 3)
        self.assertEqual(self.auth_service.revoke_other_sessions(current), 2)
        self.assertEqual(self.auth_service.list_sessions(self.user), [current])

    def test_cleanup_expired_sessions(self):
        self.auth_service.create_session(self.user)
        expired = self.auth_service.create_session(self.user)['session']
        Session.objects.filter(pk=expired.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

        self.assertEqual(self.auth_service.cleanup_expired_sessions(), 1)
        self.assertEqual(Session.objects.count(), 1)


class PasswordTest(TestCase):
    """测试修改与重置密码"""

    def setUp(self):
        reset_email_rate_limiter()
        self.auth_service = AuthService()
        self.user = UserFactory(email='reset@example.com')

    def test_change_password(self):
        current = self.auth_service.create_session(self.user)['session']
        self.auth_service.create_session(self.user)

        self.auth_service.change_password(
            self.user, DEFAULT_PASSWORD, 'NewPassword456!', revoke_other_sessions=True, session=current
        )

        self.assertTrue(self.user.get_credential_account().check_password('NewPassword456!'))
        self.assertEqual(list(Session.objects.filter(user=self.user)), [current])

    def test_change_password_wrong_current(self):
        with self.assertRaisesMessage(InvalidCredentialsError, 'Invalid password'):
            self.auth_service.change_password(self.user, 'wrong-password', 'NewPassword456!')

    def _request_reset_token(self, redirect_to=None):
        self.assertTrue(self.auth_service.request_password_reset(self.user.email, redirect_to))
        url = [line for line in mail.outbox[-1].body.splitlines() if line.startswith('http')][0]
        return url, parse_qs(urlparse(url).query)['token'][0]

    def test_request_password_reset_sends_link(self):
        url, token = self._request_reset_token()

        self.assertTrue(url.startswith('http://testserver/reset-password?token='))
        verification = Verification.objects.get()
        self.assertTrue(verification.identifier.startswith('reset-password:'))
        self.assertNotIn(token, verification.identifier)
        self.assertEqual(verification.value, str(self.user.id))

    def test_request_password_reset_custom_redirect(self):
        url, _ = self._request_reset_token('/account/reset?step=2')
        self.assertTrue(url.startswith('http://testserver/account/reset?step=2&token='))

    def test_request_password_reset_unknown_email(self):
        self.assertFalse(self.auth_service.request_password_reset('ghost@example.com'))
        self.assertEqual(len(mail.outbox), 0)

    def test_reset_password(self):
        self.auth_service.create_session(self.user)
        _, token = self._request_reset_token()

        user = self.auth_service.reset_password(token, 'BrandNewPass789!')

        self.assertEqual(user, self.user)
        self.assertTrue(user.get_credential_account().check_password('BrandNewPass789!'))
        self.assertFalse(Session.objects.filter(user=self.user).exists())
        self.assertFalse(Verification.objects.exists())

        # 令牌只能使用一次
        with self.assertRaises(TokenInvalidError):
            self.auth_service.reset_password(token, 'AnotherPass000!')

    def test_reset_password_expired_token(self):
        _, token = self._request_reset_token()
        Verification.objects.update(expires_at=timezone.now() - timedelta(seconds=1))

        with self.assertRaisesMessage(TokenInvalidError, 'Invalid token'):
            self.auth_service.reset_password(token, 'BrandNewPass789!')

    def test_reset_password_invalid_token(self):
        with self.assertRaises(TokenInvalidError):
            self.auth_service.reset_password('made-up', 'BrandNewPass789!')


class EmailOTPAuthTest(TestCase):
    """测试验证码登录与验证码重置密码"""

    def setUp(self):
        reset_email_rate_limiter()
        self.auth_service = AuthService()
        self.user = UserFactory(email='code@example.com', email_verified=False)

    def send_code(self, otp_type, otp='135790'):
        with patch.object(OTPService, 'generate_otp', return_value=otp):
            OTPService().send_verification_otp(self.user.email, otp_type)
        return otp

    def test_sign_in_with_code(self):
        otp = self.send_code(OTP_TYPE_SIGN_IN)

        result = self.auth_service.sign_in_email_otp('Code@Example.com', otp, ip_address='10.0.0.2')

        self.assertEqual(result['user'], self.user)
        self.assertEqual(self.auth_service.get_session(result['token']), result['session'])
        self.user.refresh_from_db()
        self.assertTrue(self.user.email_verified)
        self.assertFalse(Verification.objects.exists())

    def test_sign_in_code_cannot_verify_email(self):
        """不同类型的验证码互不通用"""
        otp = self.send_code(OTP_TYPE_SIGN_IN)

        with self.assertRaises(OTPInvalidError):
            OTPService().verify_email_otp(self.user.email, otp)
        with self.assertRaises(OTPInvalidError):
            self.auth_service.reset_password_email_otp(self.user.email, otp, 'BrandNewPass789!')

    def test_sign_in_with_code_and_two_factor(self):
        self.user.two_factor_enabled = True
        self.user.save()
        otp = self.send_code(OTP_TYPE_SIGN_IN)

        result = self.auth_service.sign_in_email_otp(self.user.email, otp)

        self.assertTrue(result['two_factor_redirect'])
        self.assertFalse(Session.objects.exists())

    def test_sign_in_with_wrong_code(self):
        self.send_code(OTP_TYPE_SIGN_IN)

        with self.assertRaises(OTPInvalidError):
            self.auth_service.sign_in_email_otp(self.user.email, '000000')
        self.assertFalse(Session.objects.exists())

    def test_reset_password_with_code(self):
        self.auth_service.create_session(self.user)
        otp = self.send_code(OTP_TYPE_FORGET_PASSWORD)

        user = self.auth_service.reset_password_email_otp(self.user.email, otp, 'BrandNewPass789!')

        self.assertTrue(user.get_credential_account().check_password('BrandNewPass789!'))
        self.assertFalse(Session.objects.filter(user=self.user).exists())
        self.assertFalse(Verification.objects.exists())
        log = AuditLog.objects.get(action=AUDIT_ACTIONS['PASSWORD_RESET'])
        self.assertEqual(log.metadata, {'method': 'email_otp'})

    def test_reset_password_with_code_checks_password_first(self):
        """密码不合法时验证码保留"""
        otp = self.send_code(OTP_TYPE_FORGET_PASSWORD)

        with self.assertRaises(ValidationError):
            self.auth_service.reset_password_email_otp(self.user.email, otp, 'short')
        self.assertTrue(Verification.objects.exists())
