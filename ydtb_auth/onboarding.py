"""
登录后的引导状态

根据会话判断用户下一步应该去哪里: 登录、验证邮箱、创建工作空间，或者直接进入应用。
"""

import enum
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote

from .models import Session, User, Workspace


class WorkspaceStatus(str, enum.Enum):
    NEEDS_AUTH = 'NEEDS_AUTH'
    NEEDS_VERIFICATION = 'NEEDS_VERIFICATION'
    NEEDS_WORKSPACE = 'NEEDS_WORKSPACE'
    READY = 'READY'


@dataclass
class OnboardingState:
    status: WorkspaceStatus
    email: Optional[str] = None
    user: Optional[User] = None
    workspaces: List[Workspace] = field(default_factory=list)


LOGIN_PATH = '/login'
VERIFY_OTP_PATH = '/verify-otp'
DEFAULT_WORKSPACE_REDIRECT = '/welcome'


def get_user_workspace_status(session: Optional[Session]) -> OnboardingState:
    """获取用户的引导状态"""
    if session is None or session.user_id is None:
        return OnboardingState(status=WorkspaceStatus.NEEDS_AUTH)

    user = session.user
    if not user.email_verified:
        return OnboardingState(status=WorkspaceStatus.NEEDS_VERIFICATION, email=user.email, user=user)

    workspaces = list(Workspace.objects.filter(members__user=user).order_by('created_at'))
    if not workspaces:
        return OnboardingState(status=WorkspaceStatus.NEEDS_WORKSPACE, email=user.email, user=user)

    return OnboardingState(status=WorkspaceStatus.READY, email=user.email, user=user, workspaces=workspaces)


def _verify_otp_url(email: Optional[str]) -> str:
    return f"{VERIFY_OTP_PATH}?email={quote(email or '', safe='')}"


def resolve_redirect(state: OnboardingState, redirect_to: str = DEFAULT_WORKSPACE_REDIRECT) -> Optional[str]:
    """
    需要跳转的地址，READY 时返回 None

    Args:
        state: 引导状态
        redirect_to: 没有工作空间时的跳转地址
    """
    if state.status == WorkspaceStatus.NEEDS_AUTH:
        return LOGIN_PATH
    if state.status == WorkspaceStatus.NEEDS_VERIFICATION:
        return _verify_otp_url(state.email)
    if state.status == WorkspaceStatus.NEEDS_WORKSPACE:
        return redirect_to
    return None


def invitation_redirect(state: OnboardingState, token: str) -> Optional[str]:
    """
    邀请链接页面的跳转地址

    NEEDS_WORKSPACE 时返回 None，表示可以直接接受邀请；已有工作空间的用户回到首页。
    """
    invite_path = f"/welcome/invite/{token}"

    if state.status == WorkspaceStatus.NEEDS_AUTH:
        return f"{LOGIN_PATH}?redirectTo={invite_path}"
    if state.status == WorkspaceStatus.NEEDS_VERIFICATION:
        return f"{_verify_otp_url(state.email)}&redirectTo={invite_path}"
    if state.status == WorkspaceStatus.READY:
        return '/'
    return None
