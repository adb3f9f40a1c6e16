"""
YDTB Auth REST API 视图
"""

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ..authentication import SessionTokenAuthentication, OptionalSessionTokenAuthentication
from ..conf import auth_settings
from ..constants import OTP_TYPE_EMAIL_VERIFICATION
from ..exceptions import OTPError, ValidationError
from ..models.audit import get_client_ip
from ..onboarding import get_user_workspace_status, resolve_redirect
from ..services import (
    AuthService,
    OTPService,
    TwoFactorService,
    PasskeyService,
    WorkspaceService,
)
from ..services.otp_service import is_valid_otp_format
from .exceptions import error_response, exception_handler
from . import serializers as s


logger = logging.getLogger(__name__)


class BaseAPIView(APIView):
    """基础视图: 会话令牌认证 + 统一错误格式"""

    authentication_classes = [SessionTokenAuthentication]
    permission_classes = [IsAuthenticated]

    def get_exception_handler(self):
        return exception_handler

    @property
    def session(self):
        return self.request.auth

    def client_info(self):
        return {
            'ip_address': get_client_ip(self.request),
            'user_agent': self.request.META.get('HTTP_USER_AGENT', ''),
        }

    def require(self, name, message=None, source=None):
        """取出必填参数，缺失时抛出 ValidationError"""
        source = self.request.data if source is None else source
        value = source.get(name)
        if value in (None, ''):
            raise ValidationError(message or f"{name} is required", field=name)
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be a string", field=name)
        return value


class PublicAPIView(BaseAPIView):
    """公开接口: 无效令牌按未登录处理"""

    authentication_classes = [OptionalSessionTokenAuthentication]
    permission_classes = [AllowAny]


def session_payload(result):
    return {
        'token': result['token'],
        'session': result['session'].to_dict(),
        'user': result['user'].to_dict(),
    }


# ----------------------------------------------------------------------
# 注册、登录与会话
# ----------------------------------------------------------------------

class SignUpEmailView(PublicAPIView):

    def post(self, request):
        data = s.validate_data(s.SignUpSerializer, request.data)
        user = AuthService().sign_up_email(
            name=data['name'],
            email=data['email'],
            password=data['password'],
            **self.client_info()
        )
        return Response({'token': None, 'user': user.to_dict()}, status=status.HTTP_201_CREATED)


class SignInEmailView(PublicAPIView):

    def post(self, request):
        data = s.validate_data(s.SignInSerializer, request.data)
        result = AuthService().sign_in_email(data['email'], data['password'], **self.client_info())
        if result.get('two_factor_redirect'):
            return Response(result)
        return Response(session_payload(result))


class SignOutView(BaseAPIView):

    def post(self, request):
        AuthService().sign_out(self.session, **self.client_info())
        return Response({'success': True})


class GetSessionView(PublicAPIView):
    """未登录时返回 null"""

    def get(self, request):
        if self.session is None:
            return Response(None)
        return Response({
            'token': AuthService().issue_session_token(self.session),
            'session': self.session.to_dict(),
            'user': request.user.to_dict(),
        })


class ListSessionsView(BaseAPIView):

    def get(self, request):
        sessions = AuthService.list_sessions(request.user)
        return Response([session.to_dict() for session in sessions])


class RevokeOtherSessionsView(BaseAPIView):

    def post(self, request):
        revoked = AuthService.revoke_other_sessions(self.session)
        return Response({'success': True, 'revoked': revoked})


# ----------------------------------------------------------------------
# 邮箱验证码
# ----------------------------------------------------------------------

class SendVerificationOTPView(PublicAPIView):

    def post(self, request):
        self.require('email', 'Email is required')
        data = s.validate_data(s.SendVerificationOTPSerializer, request.data)
        OTPService().send_verification_otp(data['email'], data['type'] or OTP_TYPE_EMAIL_VERIFICATION)
        return Response({'success': True})


class VerifyOTPView(PublicAPIView):

    def post(self, request):
        email = request.data.get('email')
        otp = request.data.get('otp')

        if not email or not otp:
            return error_response('Email and OTP are required', 'VALIDATION_ERROR', status.HTTP_400_BAD_REQUEST)

        if not is_valid_otp_format(otp):
            return error_response('Invalid verification code format', 'VALIDATION_ERROR', status.HTTP_400_BAD_REQUEST)

        data = s.validate_data(s.VerifyOTPSerializer, request.data)
        try:
            OTPService().verify_email_otp(data['email'], data['otp'], **self.client_info())
        except OTPError as e:
            # 验证失败统一返回 400
            logger.warning(f"OTP verification failed for {data['email']}: {e.message}")
            return error_response(e.message, e.error_code, status.HTTP_400_BAD_REQUEST)

        return Response({'success': True})


class SignInEmailOTPView(PublicAPIView):
    """
    携带 sign-in 验证码时直接登录；
    只有邮箱时 (邮箱验证完成后) 提示用户使用密码登录
    """

    def post(self, request):
        self.require('email', 'Email is required')
        data = s.validate_data(s.SignInEmailOTPSerializer, request.data)

        if not data.get('otp'):
            return Response({
                'success': True,
                'message': 'Email verified successfully. Please sign in with your password.',
            })

        if not is_valid_otp_format(data['otp']):
            return error_response('Invalid verification code format', 'VALIDATION_ERROR', status.HTTP_400_BAD_REQUEST)

        result = AuthService().sign_in_email_otp(data['email'], data['otp'], **self.client_info())
        if result.get('two_factor_redirect'):
            return Response(result)
        return Response(session_payload(result))


# ----------------------------------------------------------------------
# 密码
# ----------------------------------------------------------------------

class ChangePasswordView(BaseAPIView):

    def post(self, request):
        data = s.validate_data(s.ChangePasswordSerializer, request.data)
        AuthService().change_password(
            request.user,
            data['current_password'],
            data['new_password'],
            revoke_other_sessions=data['revoke_other_sessions'],
            session=self.session,
        )
        return Response({'success': True})


class ForgetPasswordView(PublicAPIView):

    def post(self, request):
        data = s.validate_data(s.ForgetPasswordSerializer, request.data)
        AuthService().request_password_reset(data['email'], data['redirect_to'] or None)
        # 不暴露邮箱是否存在
        return Response({'success': True})


class ResetPasswordView(PublicAPIView):

    def post(self, request):
        data = s.validate_data(s.ResetPasswordSerializer, request.data)
        AuthService().reset_password(data['token'], data['new_password'])
        return Response({'success': True})


class ResetPasswordEmailOTPView(PublicAPIView):
    """使用 forget-password 验证码重置密码"""

    def post(self, request):
        data = s.validate_data(s.ResetPasswordEmailOTPSerializer, request.data)
        AuthService().reset_password_email_otp(data['email'], data['otp'], data['password'])
        return Response({'success': True})


# ----------------------------------------------------------------------
# 两步验证
# ----------------------------------------------------------------------

class EnableTwoFactorView(BaseAPIView):

    def post(self, request):
        data = s.validate_data(s.PasswordSerializer, request.data)
        return Response(TwoFactorService().enable_two_factor(request.user, data['password']))


class VerifyTOTPView(PublicAPIView):
    """已登录时确认开启两步验证；携带 two_factor_token 时完成两步验证登录"""

    def post(self, request):
        data = s.validate_data(s.TOTPCodeSerializer, request.data)
        service = TwoFactorService()

        if data.get('two_factor_token'):
            result = service.complete_two_factor_sign_in(
                data['two_factor_token'],
                data['code'],
                **self.client_info()
            )
            return Response(session_payload(result))

        if self.session is None:
            return error_response('Authentication required', 'UNAUTHORIZED', status.HTTP_401_UNAUTHORIZED)

        service.verify_totp(request.user, data['code'])
        return Response({'success': True, 'user': request.user.to_dict()})


class DisableTwoFactorView(BaseAPIView):

    def post(self, request):
        data = s.validate_data(s.PasswordSerializer, request.data)
        TwoFactorService().disable_two_factor(request.user, data['password'])
        return Response({'success': True})


class GenerateBackupCodesView(BaseAPIView):

    def post(self, request):
        data = s.validate_data(s.PasswordSerializer, request.data)
        codes = TwoFactorService().generate_backup_codes(request.user, data['password'])
        return Response({'success': True, 'backup_codes': codes})


class GetTOTPUriView(BaseAPIView):

    def post(self, request):
        data = s.validate_data(s.PasswordSerializer, request.data)
        return Response({'totp_uri': TwoFactorService().get_totp_uri(request.user, data['password'])})


# ----------------------------------------------------------------------
# Passkey
# ----------------------------------------------------------------------

class AddPasskeyView(BaseAPIView):

    def post(self, request):
        data = s.validate_data(s.PasskeySerializer, request.data)
        passkey = PasskeyService().add_passkey(request.user, **data)
        return Response(passkey.to_dict(), status=status.HTTP_201_CREATED)


class ListPasskeysView(BaseAPIView):

    def get(self, request):
        passkeys = PasskeyService.list_user_passkeys(request.user)
        return Response([passkey.to_dict() for passkey in passkeys])


class UpdatePasskeyView(BaseAPIView):

    def post(self, request):
        data = s.validate_data(s.PasskeyUpdateSerializer, request.data)
        passkey = PasskeyService().update_passkey(request.user, data['id'], data['name'])
        return Response({'passkey': passkey.to_dict()})


class DeletePasskeyView(BaseAPIView):

    def post(self, request):
        passkey_id = self.require('id', 'Passkey ID is required')
        PasskeyService().delete_passkey(request.user, passkey_id)
        return Response({'success': True})


# ----------------------------------------------------------------------
# 工作空间 (organization)
# ----------------------------------------------------------------------

class CreateWorkspaceView(BaseAPIView):

    def post(self, request):
        data = s.validate_data(s.CreateWorkspaceSerializer, request.data)
        workspace = WorkspaceService().create_workspace(
            request.user,
            name=data['name'],
            slug=data.get('slug') or None,
            description=data.get('description'),
            logo=data.get('logo'),
            metadata=data.get('metadata'),
            session=self.session,
        )
        return Response(workspace.to_dict(), status=status.HTTP_201_CREATED)


class CheckSlugView(BaseAPIView):

    def post(self, request):
        slug = self.require('slug', 'Slug is required')
        return Response({'status': WorkspaceService.check_slug(slug)})


class ListWorkspacesView(BaseAPIView):

    def get(self, request):
        workspaces = WorkspaceService.list_user_workspaces(request.user)
        return Response([workspace.to_dict() for workspace in workspaces])


class SetActiveWorkspaceView(BaseAPIView):

    def post(self, request):
        workspace = WorkspaceService().set_active_workspace(self.session, request.data.get('organization_id'))
        return Response(workspace.to_dict() if workspace else None)


class GetFullWorkspaceView(BaseAPIView):

    def get(self, request):
        service = WorkspaceService()
        workspace_id = request.query_params.get('organization_id')
        if not workspace_id:
            workspace = service.get_active_workspace(self.session)
            if workspace is None:
                return Response(None)
            workspace_id = workspace.id
        return Response(service.get_full_workspace(request.user, workspace_id))


class ListMembersView(BaseAPIView):

    def get(self, request):
        workspace_id = self.require('organization_id', 'Organization ID is required', request.query_params)
        members = WorkspaceService().list_members(request.user, workspace_id)
        return Response([member.to_dict() for member in members])


class InviteMemberView(BaseAPIView):

    def post(self, request):
        data = s.validate_data(s.InviteMemberSerializer, request.data)
        invitation = WorkspaceService().invite_member(
            request.user,
            data['organization_id'],
            data['email'],
            role=data['role'],
            resend=data['resend'],
            message=data.get('message'),
        )
        return Response(invitation.to_dict(), status=status.HTTP_201_CREATED)


class AcceptInvitationView(BaseAPIView):

    def post(self, request):
        token = self.require('token', 'Invitation token is required')
        invitation, member = WorkspaceService().accept_invitation(request.user, token)
        WorkspaceService().set_active_workspace(self.session, invitation.workspace_id)
        return Response({'invitation': invitation.to_dict(), 'member': member.to_dict()})


class RejectInvitationView(BaseAPIView):

    def post(self, request):
        invitation_id = self.require('invitation_id', 'Invitation ID is required')
        WorkspaceService().reject_invitation(request.user, invitation_id)
        return Response({'message': 'Invitation rejected successfully'})


class CancelInvitationView(BaseAPIView):

    def post(self, request):
        invitation_id = self.require('invitation_id', 'Invitation ID is required')
        invitation = WorkspaceService().cancel_invitation(request.user, invitation_id)
        return Response(invitation.to_dict())


class UpdateMemberRoleView(BaseAPIView):

    def post(self, request):
        data = s.validate_data(s.UpdateMemberRoleSerializer, request.data)
        member = WorkspaceService().update_member_role(
            request.user,
            data['organization_id'],
            data['member_id'],
            data['role'],
        )
        return Response(member.to_dict())


class RemoveMemberView(BaseAPIView):

    def post(self, request):
        workspace_id = self.require('organization_id', 'Organization ID is required')
        member_id = self.require('member_id', 'Member ID is required')
        WorkspaceService().remove_member(request.user, workspace_id, member_id)
        return Response({'success': True})


class LeaveWorkspaceView(BaseAPIView):

    def post(self, request):
        workspace_id = self.require('organization_id', 'Organization ID is required')
        WorkspaceService().leave_workspace(request.user, workspace_id)
        return Response({'success': True})


class DeleteWorkspaceView(BaseAPIView):

    def post(self, request):
        workspace_id = self.require('organization_id', 'Organization ID is required')
        WorkspaceService().delete_workspace(request.user, workspace_id)
        return Response({'success': True})


# ----------------------------------------------------------------------
# 引导状态
# ----------------------------------------------------------------------

class OnboardingStatusView(PublicAPIView):

    def get(self, request):
        state = get_user_workspace_status(self.session)
        redirect_to = request.query_params.get('redirect_to') or '/welcome'
        return Response({
            'status': state.status.value,
            'email': state.email,
            'redirect': resolve_redirect(state, redirect_to),
            'workspaces': [workspace.to_dict() for workspace in state.workspaces],
            'allow_create_workspace': bool(auth_settings.ALLOW_USER_TO_CREATE_WORKSPACE),
        })
