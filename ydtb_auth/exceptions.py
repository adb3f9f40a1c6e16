"""
YDTB Auth 自定义异常
"""

from datetime import datetime
from typing import Dict, List, Optional

from .constants import ErrorCode, HttpStatus


class YdtbAuthError(Exception):
    """YDTB Auth 基础异常"""
    status_code = HttpStatus.BAD_REQUEST
    default_error_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code or self.default_error_code
        super().__init__(message)


class AuthenticationError(YdtbAuthError):
    """认证错误基类"""
    status_code = HttpStatus.UNAUTHORIZED
    default_error_code = ErrorCode.UNAUTHORIZED


class InvalidCredentialsError(AuthenticationError):
    """无效凭据错误"""
    default_error_code = ErrorCode.INVALID_CREDENTIALS


class EmailNotVerifiedError(AuthenticationError):
    """邮箱未验证错误"""
    status_code = HttpStatus.FORBIDDEN
    default_error_code = ErrorCode.EMAIL_NOT_VERIFIED


class SessionExpiredError(AuthenticationError):
    """会话过期错误"""
    default_error_code = ErrorCode.SESSION_EXPIRED


class TokenInvalidError(AuthenticationError):
    """Token无效错误"""
    default_error_code = ErrorCode.TOKEN_INVALID


class InvalidTwoFactorCodeError(AuthenticationError):
    """两步验证码错误"""
    default_error_code = ErrorCode.INVALID_TWO_FACTOR_CODE


class ValidationError(YdtbAuthError):
    """验证错误"""

    def __init__(self, message: str, error_code: Optional[str] = None, field: Optional[str] = None):
        self.field = field
        super().__init__(message, error_code)


class EmailAlreadyExistsError(ValidationError):
    """邮箱已存在错误"""
    status_code = HttpStatus.UNPROCESSABLE_ENTITY
    default_error_code = ErrorCode.EMAIL_ALREADY_EXISTS


class SlugTakenError(ValidationError):
    """工作空间slug已被占用"""
    status_code = HttpStatus.CONFLICT
    default_error_code = ErrorCode.SLUG_TAKEN


class OTPError(YdtbAuthError):
    """验证码错误基类"""
    default_error_code = ErrorCode.INVALID_OTP


class OTPInvalidError(OTPError):
    """验证码无效"""
    pass


class OTPExpiredError(OTPError):
    """验证码过期"""
    default_error_code = ErrorCode.OTP_EXPIRED


class OTPAttemptsExceededError(OTPError):
    """验证码尝试次数过多"""
    status_code = HttpStatus.FORBIDDEN
    default_error_code = ErrorCode.TOO_MANY_ATTEMPTS


class PermissionDenied(YdtbAuthError):
    """权限被拒绝错误"""
    status_code = HttpStatus.FORBIDDEN
    default_error_code = ErrorCode.PERMISSION_DENIED


class NotFoundError(YdtbAuthError):
    """资源不存在错误基类"""
    status_code = HttpStatus.NOT_FOUND


class WorkspaceNotFoundError(NotFoundError):
    """工作空间不存在错误"""
    default_error_code = ErrorCode.WORKSPACE_NOT_FOUND


class MemberNotFoundError(NotFoundError):
    """成员不存在错误"""
    default_error_code = ErrorCode.MEMBER_NOT_FOUND


class InvitationNotFoundError(NotFoundError):
    """邀请不存在错误"""
    default_error_code = ErrorCode.INVITATION_NOT_FOUND


class PasskeyNotFoundError(NotFoundError):
    """Passkey不存在错误"""
    default_error_code = ErrorCode.PASSKEY_NOT_FOUND


class InvitationExpiredError(YdtbAuthError):
    """邀请已过期"""
    status_code = HttpStatus.GONE
    default_error_code = ErrorCode.INVITATION_EXPIRED


class RateLimitError(YdtbAuthError):
    """频率限制错误"""
    status_code = HttpStatus.TOO_MANY_REQUESTS
    default_error_code = ErrorCode.RATE_LIMIT_EXCEEDED

    def __init__(self, message: str, reset_time: Optional[datetime] = None, error_code: Optional[str] = None):
        self.reset_time = reset_time
        super().__init__(message, error_code)


class EmailDeliveryError(YdtbAuthError):
    """邮件发送失败"""
    status_code = HttpStatus.INTERNAL_SERVER_ERROR
    default_error_code = ErrorCode.EMAIL_DELIVERY_FAILED


class ConfigurationError(YdtbAuthError):
    """配置错误"""
    status_code = HttpStatus.INTERNAL_SERVER_ERROR
    default_error_code = ErrorCode.CONFIGURATION_ERROR

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None):
        self.errors = errors or {}
        super().__init__(message)
