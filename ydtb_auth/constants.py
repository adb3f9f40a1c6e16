"""
YDTB Auth 常量定义

所有枚举值在代码层面约束，不在数据库层面约束
"""

from typing import Dict, List

# 表名前缀
TABLE_PREFIX = 'ydtb_'

# 工作空间成员角色
ROLE_OWNER = 'owner'
ROLE_ADMIN = 'admin'
ROLE_MEMBER = 'member'
ROLE_GUEST = 'guest'

WORKSPACE_ROLES: List[str] = [ROLE_OWNER, ROLE_ADMIN, ROLE_MEMBER, ROLE_GUEST]

# 可以管理成员和邀请的角色
MANAGER_ROLES: List[str] = [ROLE_OWNER, ROLE_ADMIN]

# 邀请状态
INVITATION_PENDING = 'pending'
INVITATION_ACCEPTED = 'accepted'
INVITATION_REJECTED = 'rejected'
INVITATION_EXPIRED = 'expired'
INVITATION_CANCELED = 'canceled'

INVITATION_STATUSES: List[str] = [
    INVITATION_PENDING,
    INVITATION_ACCEPTED,
    INVITATION_REJECTED,
    INVITATION_EXPIRED,
    INVITATION_CANCELED,
]

# 账号提供方
PROVIDER_CREDENTIAL = 'credential'

# 验证码类型
OTP_TYPE_EMAIL_VERIFICATION = 'email-verification'
OTP_TYPE_SIGN_IN = 'sign-in'
OTP_TYPE_FORGET_PASSWORD = 'forget-password'

OTP_TYPES: List[str] = [
    OTP_TYPE_EMAIL_VERIFICATION,
    OTP_TYPE_SIGN_IN,
    OTP_TYPE_FORGET_PASSWORD,
]

RESET_PASSWORD_IDENTIFIER_PREFIX = 'reset-password'

# JWT Token 类型
TOKEN_TYPE_SESSION = 'session'
TOKEN_TYPE_TWO_FACTOR = 'two_factor'

# 工作空间创建向导错误信息
WORKSPACE_WIZARD_ERRORS: Dict[str, str] = {
    # 校验错误
    'SLUG_REQUIRED': 'A workspace subdomain is required',
    'SLUG_INVALID': 'Subdomain can only contain lowercase letters, numbers, and hyphens',
    'SLUG_TOO_SHORT': 'Subdomain must be at least 3 characters',
    'SLUG_TAKEN': 'This subdomain is already taken. Please choose another.',
    'NAME_REQUIRED': 'Please enter a workspace name',
    'NAME_TOO_SHORT': 'Workspace name must be at least 2 characters',
    'NAME_TOO_LONG': 'Workspace name cannot exceed 100 characters',

    # 通用错误
    'CREATION_FAILED': 'Failed to create workspace. Please try again.',
    'INVITATION_FAILED': 'Invitation failed - please check email addresses',
    'UNKNOWN_ERROR': 'Something went wrong. Please try again.',
}

WORKSPACE_NAME_MIN_LENGTH = 2
WORKSPACE_NAME_MAX_LENGTH = 100
WORKSPACE_SLUG_MIN_LENGTH = 3

# 审计动作类型
AUDIT_ACTIONS = {
    'USER_SIGNED_UP': 'user_signed_up',
    'USER_SIGNED_IN': 'user_signed_in',
    'USER_SIGNED_OUT': 'user_signed_out',
    'EMAIL_VERIFIED': 'email_verified',
    'PASSWORD_CHANGED': 'password_changed',
    'PASSWORD_RESET': 'password_reset',
    'TWO_FACTOR_ENABLED': 'two_factor_enabled',
    'TWO_FACTOR_DISABLED': 'two_factor_disabled',
    'WORKSPACE_CREATED': 'workspace_created',
    'WORKSPACE_DELETED': 'workspace_deleted',
    'MEMBER_INVITED': 'member_invited',
    'INVITATION_ACCEPTED': 'invitation_accepted',
    'INVITATION_REJECTED': 'invitation_rejected',
    'INVITATION_CANCELED': 'invitation_canceled',
    'MEMBER_ROLE_UPDATED': 'member_role_updated',
    'MEMBER_REMOVED': 'member_removed',
}


# HTTP 状态码
class HttpStatus:
    OK = 200
    CREATED = 201
    NO_CONTENT = 204
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    GONE = 410
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502


# 错误代码
class ErrorCode:
    # 认证错误
    UNAUTHORIZED = 'UNAUTHORIZED'
    INVALID_CREDENTIALS = 'INVALID_EMAIL_OR_PASSWORD'
    EMAIL_NOT_VERIFIED = 'EMAIL_NOT_VERIFIED'
    SESSION_EXPIRED = 'SESSION_EXPIRED'
    TOKEN_INVALID = 'INVALID_TOKEN'
    INVALID_TWO_FACTOR_CODE = 'INVALID_TWO_FACTOR_CODE'

    # 验证码错误
    INVALID_OTP = 'INVALID_OTP'
    OTP_EXPIRED = 'OTP_EXPIRED'
    TOO_MANY_ATTEMPTS = 'TOO_MANY_ATTEMPTS'

    # 验证错误
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    EMAIL_ALREADY_EXISTS = 'USER_ALREADY_EXISTS'
    SLUG_TAKEN = 'ORGANIZATION_ALREADY_EXISTS'

    # 权限错误
    PERMISSION_DENIED = 'FORBIDDEN'
    WORKSPACE_NOT_FOUND = 'ORGANIZATION_NOT_FOUND'
    MEMBER_NOT_FOUND = 'MEMBER_NOT_FOUND'
    INVITATION_NOT_FOUND = 'INVITATION_NOT_FOUND'
    INVITATION_EXPIRED = 'INVITATION_EXPIRED'
    PASSKEY_NOT_FOUND = 'PASSKEY_NOT_FOUND'

    # 速率限制错误
    RATE_LIMIT_EXCEEDED = 'RATE_LIMIT_EXCEEDED'

    # 系统错误
    EMAIL_DELIVERY_FAILED = 'EMAIL_DELIVERY_FAILED'
    CONFIGURATION_ERROR = 'CONFIGURATION_ERROR'
    INTERNAL_ERROR = 'INTERNAL_ERROR'
