"""
邮件发送

验证码、工作空间邀请和重置密码邮件都经过频率限制器。
开发环境或设置 SKIP_EMAIL_SENDING 时只打印日志，但仍然计入发送次数。
"""

import logging
from smtplib import SMTPException
from typing import Dict, Optional

from django.template.loader import render_to_string

from .conf import auth_settings
from .constants import OTP_TYPE_EMAIL_VERIFICATION, OTP_TYPE_SIGN_IN, OTP_TYPE_FORGET_PASSWORD
from .exceptions import EmailDeliveryError, RateLimitError
from .rate_limiter import email_rate_limiter
from .tasks import deliver_email


logger = logging.getLogger(__name__)

DEFAULT_FROM_EMAIL = '"YDTB" <noreply@ydtb.com>'

VERIFICATION_SUBJECT = 'Verify your email for YDTB'
OTP_SUBJECTS = {
    OTP_TYPE_EMAIL_VERIFICATION: VERIFICATION_SUBJECT,
    OTP_TYPE_SIGN_IN: 'Your YDTB sign-in code',
    OTP_TYPE_FORGET_PASSWORD: 'Your YDTB password reset code',
}
INVITATION_SUBJECT = "You're invited to join {workspace_name} on YDTB"
RESET_PASSWORD_SUBJECT = 'Reset your YDTB password'


def build_smtp_settings(env: Dict[str, Optional[str]]) -> Dict[str, object]:
    """
    将 SMTP_* 环境变量映射为 Django EMAIL_* 配置

    Args:
        env: load_env() 返回的环境变量字典

    Returns:
        Dict[str, object]: 可直接合并进 settings 的配置
    """
    secure = str(env.get('SMTP_SECURE') or '').lower() == 'true'
    port = env.get('SMTP_PORT') or 587

    smtp_settings = {
        'EMAIL_BACKEND': 'django.core.mail.backends.smtp.EmailBackend',
        'EMAIL_HOST': env.get('SMTP_HOST') or 'localhost',
        'EMAIL_PORT': int(port),
        'EMAIL_USE_SSL': secure,
        'EMAIL_USE_TLS': not secure and int(port) == 587,
        'DEFAULT_FROM_EMAIL': env.get('SMTP_FROM') or DEFAULT_FROM_EMAIL,
    }
    if env.get('SMTP_USER') and env.get('SMTP_PASSWORD'):
        smtp_settings['EMAIL_HOST_USER'] = env['SMTP_USER']
        smtp_settings['EMAIL_HOST_PASSWORD'] = env['SMTP_PASSWORD']
    return smtp_settings


def _should_skip_sending() -> bool:
    return auth_settings.is_development() or bool(auth_settings.SKIP_EMAIL_SENDING)


def _check_rate_limit(limiter, email: str, kind: str):
    result = limiter.can_send_email(email)
    if not result.allowed:
        minutes = limiter.minutes_until_reset(result)
        logger.warning(f"Email rate limit hit for {email} ({kind})")
        raise RateLimitError(
            f"Too many {kind} emails sent. Please try again after {minutes} minutes.",
            reset_time=result.reset_time,
        )


def _dispatch(email: str, subject: str, template: str, context: Dict[str, object]):
    text_body = render_to_string(f'ydtb_auth/email/{template}.txt', context)
    html_body = render_to_string(f'ydtb_auth/email/{template}.html', context)
    from_email = auth_settings.EMAIL_FROM

    if auth_settings.EMAIL_ASYNC:
        deliver_email.delay(email, subject, text_body, html_body, from_email)
    else:
        deliver_email(email, subject, text_body, html_body, from_email)


def send_verification_otp_email(
    email: str,
    otp: str,
    user_name: Optional[str] = None,
    limiter=None,
    otp_type: str = OTP_TYPE_EMAIL_VERIFICATION,
):
    """
    发送邮箱验证码

    Args:
        otp_type: 决定邮件标题，email-verification | sign-in | forget-password

    Raises:
        RateLimitError: 超出发送频率
        EmailDeliveryError: 发送失败
    """
    limiter = limiter or email_rate_limiter()
    _check_rate_limit(limiter, email, 'verification')

    if _should_skip_sending():
        logger.info(f"[dev] Verification code for {email}: {otp}")
        limiter.record_email_sent(email)
        return

    subject = OTP_SUBJECTS.get(otp_type, VERIFICATION_SUBJECT)
    context = {
        'heading': subject,
        'otp': otp,
        'user_name': user_name,
        'expiration_minutes': max(1, int(auth_settings.OTP_EXPIRES_IN) // 60),
    }
    try:
        _dispatch(email, subject, 'otp_verification', context)
    except (SMTPException, OSError) as e:
        logger.error(f"Failed to send verification email to {email}: {e}")
        raise EmailDeliveryError("Failed to send verification email. Please try again.")

    limiter.record_email_sent(email)
    logger.info(f"Verification email sent to {email}")


def send_workspace_invitation_email(
    email: str,
    invited_by_name: str,
    invited_by_email: str,
    workspace_name: str,
    workspace_slug: str,
    invitation_token: str,
    message: Optional[str] = None,
    limiter=None,
):
    """
    发送工作空间邀请邮件

    Raises:
        RateLimitError: 超出发送频率
        EmailDeliveryError: 发送失败
    """
    limiter = limiter or email_rate_limiter()
    _check_rate_limit(limiter, email, 'invitation')

    invite_link = auth_settings.build_url(f'/welcome/invite/{invitation_token}')

    if _should_skip_sending():
        logger.info(
            f"[dev] Invitation for {email} to join {workspace_name} "
            f"from {invited_by_name} <{invited_by_email}>: {invite_link}"
        )
        limiter.record_email_sent(email)
        return

    context = {
        'username': email.split('@')[0],
        'invited_by_name': invited_by_name,
        'invited_by_email': invited_by_email,
        'workspace_name': workspace_name,
        'workspace_slug': workspace_slug,
        'invite_link': invite_link,
        'message': message,
    }
    subject = INVITATION_SUBJECT.format(workspace_name=workspace_name)
    try:
        _dispatch(email, subject, 'workspace_invitation', context)
    except (SMTPException, OSError) as e:
        logger.error(f"Failed to send invitation email to {email}: {e}")
        raise EmailDeliveryError("Failed to send invitation email. Please try again.")

    limiter.record_email_sent(email)
    logger.info(f"Invitation email sent to {email} for workspace {workspace_slug}")


def send_reset_password_email(email: str, url: str, limiter=None):
    """
    发送重置密码邮件

    Raises:
        RateLimitError: 超出发送频率
        EmailDeliveryError: 发送失败
    """
    limiter = limiter or email_rate_limiter()
    _check_rate_limit(limiter, email, 'password reset')

    if _should_skip_sending():
        logger.info(f"[dev] Password reset link for {email}: {url}")
        limiter.record_email_sent(email)
        return

    context = {
        'reset_url': url,
        'expiration_minutes': max(1, int(auth_settings.RESET_PASSWORD_TOKEN_EXPIRES_IN) // 60),
    }
    try:
        _dispatch(email, RESET_PASSWORD_SUBJECT, 'reset_password', context)
    except (SMTPException, OSError) as e:
        logger.error(f"Failed to send password reset email to {email}: {e}")
        raise EmailDeliveryError("Failed to send password reset email. Please try again.")

    limiter.record_email_sent(email)
    logger.info(f"Password reset email sent to {email}")
