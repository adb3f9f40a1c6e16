"""
YDTB Auth 装饰器 - 视图级别的引导状态检查
"""

from functools import wraps

from django.http import JsonResponse

from .authentication import get_session_from_request
from .constants import HttpStatus
from .onboarding import (
    WorkspaceStatus,
    DEFAULT_WORKSPACE_REDIRECT,
    get_user_workspace_status,
    resolve_redirect,
)


STATUS_RESPONSES = {
    WorkspaceStatus.NEEDS_AUTH: ('Authentication required', HttpStatus.UNAUTHORIZED),
    WorkspaceStatus.NEEDS_VERIFICATION: ('Email verification required', HttpStatus.FORBIDDEN),
    WorkspaceStatus.NEEDS_WORKSPACE: ('Workspace required', HttpStatus.CONFLICT),
}


def require_workspace_ready(redirect_to=DEFAULT_WORKSPACE_REDIRECT):
    """
    只允许已登录、已验证邮箱且至少属于一个工作空间的用户访问

    使用示例:
        @require_workspace_ready()
        def dashboard(request):
            # request.auth_session / request.onboarding 已设置
            ...

        @require_workspace_ready(redirect_to="/welcome/join")
        def tools(request):
            ...

    未满足条件时返回 JSON: {"error", "code", "redirect"}，
    状态码分别为 401 (未登录)、403 (未验证邮箱)、409 (没有工作空间)。
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            session = get_session_from_request(request)
            state = get_user_workspace_status(session)

            if state.status != WorkspaceStatus.READY:
                message, status = STATUS_RESPONSES[state.status]
                return JsonResponse({
                    'error': message,
                    'code': state.status.value,
                    'redirect': resolve_redirect(state, redirect_to),
                }, status=status)

            request.auth_session = session
            request.onboarding = state
            return view_func(request, *args, **kwargs)

        return wrapper
    return decorator
