"""
DRF 认证类 - Authorization: Bearer <session token>
"""

from typing import Optional

from rest_framework import authentication, exceptions

from .models import Session
from .services import AuthService


KEYWORD = 'Bearer'


def get_token_from_request(request) -> Optional[str]:
    """从 Authorization 头中取出会话令牌"""
    header = request.META.get('HTTP_AUTHORIZATION', '')
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != KEYWORD.lower():
        return None
    return parts[1]


def get_session_from_request(request) -> Optional[Session]:
    """解析请求中的会话，令牌缺失或无效时返回 None"""
    return AuthService().get_session(get_token_from_request(request))


class SessionTokenAuthentication(authentication.BaseAuthentication):
    """
    会话令牌认证

    认证成功后 request.user 为 User，request.auth 为 Session。
    """

    keyword = KEYWORD

    def authenticate(self, request):
        header = authentication.get_authorization_header(request).split()
        if not header or header[0].lower() != self.keyword.lower().encode():
            return None

        if len(header) != 2:
            raise exceptions.AuthenticationFailed('Invalid token header.')

        try:
            token = header[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token header.')

        session = AuthService().get_session(token)
        if session is None:
            raise exceptions.AuthenticationFailed('Invalid or expired session.')

        return session.user, session

    def authenticate_header(self, request):
        return self.keyword


class OptionalSessionTokenAuthentication(SessionTokenAuthentication):
    """
    公开接口使用的会话认证

    令牌过期、被撤销或无法解析时按未登录处理，不返回 401。
    """

    def authenticate(self, request):
        try:
            return super().authenticate(request)
        except exceptions.AuthenticationFailed:
            return None
