"""
YDTB Auth REST API 路由

在项目 urls.py 中引入:
    path('api/', include('ydtb_auth.api.urls'))
"""

from django.urls import include, path

from . import views


auth_urlpatterns = [
    # 注册、登录与会话
    path('sign-up/email', views.SignUpEmailView.as_view(), name='sign-up-email'),  # POST
    path('sign-in/email', views.SignInEmailView.as_view(), name='sign-in-email'),  # POST
    path('sign-out', views.SignOutView.as_view(), name='sign-out'),  # POST
    path('get-session', views.GetSessionView.as_view(), name='get-session'),  # GET
    path('list-sessions', views.ListSessionsView.as_view(), name='list-sessions'),  # GET
    path('revoke-other-sessions', views.RevokeOtherSessionsView.as_view(), name='revoke-other-sessions'),  # POST

    # 邮箱验证码
    path('send-verification-otp', views.SendVerificationOTPView.as_view(), name='send-verification-otp'),  # POST
    path('verify-otp', views.VerifyOTPView.as_view(), name='verify-otp'),  # POST
    path('sign-in/email-otp', views.SignInEmailOTPView.as_view(), name='sign-in-email-otp'),  # POST

    # 密码
    path('change-password', views.ChangePasswordView.as_view(), name='change-password'),  # POST
    path('forget-password', views.ForgetPasswordView.as_view(), name='forget-password'),  # POST
    path('reset-password', views.ResetPasswordView.as_view(), name='reset-password'),  # POST
    path('email-otp/reset-password', views.ResetPasswordEmailOTPView.as_view(), name='email-otp-reset-password'),  # POST

    # 两步验证
    path('two-factor/enable', views.EnableTwoFactorView.as_view(), name='two-factor-enable'),  # POST
    path('two-factor/verify-totp', views.VerifyTOTPView.as_view(), name='two-factor-verify-totp'),  # POST
    path('two-factor/disable', views.DisableTwoFactorView.as_view(), name='two-factor-disable'),  # POST
    path('two-factor/generate-backup-codes', views.GenerateBackupCodesView.as_view(), name='two-factor-generate-backup-codes'),  # POST
    path('two-factor/get-totp-uri', views.GetTOTPUriView.as_view(), name='two-factor-get-totp-uri'),  # POST

    # Passkey
    path('passkey/add', views.AddPasskeyView.as_view(), name='passkey-add'),  # POST
    path('passkey/list-user-passkeys', views.ListPasskeysView.as_view(), name='passkey-list'),  # GET
    path('passkey/update', views.UpdatePasskeyView.as_view(), name='passkey-update'),  # POST
    path('passkey/delete', views.DeletePasskeyView.as_view(), name='passkey-delete'),  # POST

    # 工作空间
    path('organization/create', views.CreateWorkspaceView.as_view(), name='organization-create'),  # POST
    path('organization/check-slug', views.CheckSlugView.as_view(), name='organization-check-slug'),  # POST
    path('organization/list', views.ListWorkspacesView.as_view(), name='organization-list'),  # GET
    path('organization/set-active', views.SetActiveWorkspaceView.as_view(), name='organization-set-active'),  # POST
    path('organization/get-full-organization', views.GetFullWorkspaceView.as_view(), name='organization-get-full'),  # GET
    path('organization/list-members', views.ListMembersView.as_view(), name='organization-list-members'),  # GET
    path('organization/invite-member', views.InviteMemberView.as_view(), name='organization-invite-member'),  # POST
    path('organization/accept-invitation', views.AcceptInvitationView.as_view(), name='organization-accept-invitation'),  # POST
    path('organization/reject-invitation', views.RejectInvitationView.as_view(), name='organization-reject-invitation'),  # POST
    path('organization/cancel-invitation', views.CancelInvitationView.as_view(), name='organization-cancel-invitation'),  # POST
    path('organization/update-member-role', views.UpdateMemberRoleView.as_view(), name='organization-update-member-role'),  # POST
    path('organization/remove-member', views.RemoveMemberView.as_view(), name='organization-remove-member'),  # POST
    path('organization/leave', views.LeaveWorkspaceView.as_view(), name='organization-leave'),  # POST
    path('organization/delete', views.DeleteWorkspaceView.as_view(), name='organization-delete'),  # POST
]

app_name = 'ydtb_auth'
urlpatterns = [
    path('auth/', include(auth_urlpatterns)),
    path('onboarding/status', views.OnboardingStatusView.as_view(), name='onboarding-status'),  # GET
]
