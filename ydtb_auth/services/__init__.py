"""
YDTB Auth 业务逻辑服务
"""

from .otp_service import OTPService
from .auth_service import AuthService
from .two_factor_service import TwoFactorService
from .passkey_service import PasskeyService
from .workspace_service import WorkspaceService

__all__ = [
    'OTPService',
    'AuthService',
    'TwoFactorService',
    'PasskeyService',
    'WorkspaceService'
]
