"""
YDTB Auth 数据模型
"""

from .user import User
from .account import Account
from .session import Session, Verification
from .passkey import Passkey, TwoFactor
from .workspace import Workspace, WorkspaceMember, Invitation
from .audit import AuditLog

__all__ = [
    'User',
    'Account',
    'Session',
    'Verification',
    'Passkey',
    'TwoFactor',
    'Workspace',
    'WorkspaceMember',
    'Invitation',
    'AuditLog'
]
