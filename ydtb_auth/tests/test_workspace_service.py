"""
测试工作空间服务
"""

from datetime import timedelta

from django.conf import settings
from django.core import mail
from django.test import TestCase
from django.utils import timezone

from ..constants import (
    ROLE_ADMIN,
    ROLE_MEMBER,
    ROLE_OWNER,
    INVITATION_ACCEPTED,
    INVITATION_CANCELED,
    INVITATION_EXPIRED,
    INVITATION_PENDING,
    INVITATION_REJECTED,
    WORKSPACE_WIZARD_ERRORS,
)
from ..exceptions import (
    InvitationExpiredError,
    InvitationNotFoundError,
    PermissionDenied,
    RateLimitError,
    SlugTakenError,
    ValidationError,
    WorkspaceNotFoundError,
)
from ..models import Invitation, Workspace, WorkspaceMember
from ..rate_limiter import reset_email_rate_limiter
from ..services import AuthService, WorkspaceService
from ..services.workspace_service import generate_slug, validate_workspace_input
from .factories import UserFactory, WorkspaceFactory, WorkspaceMemberFactory, OwnerFactory, InvitationFactory


class WorkspaceInputTest(TestCase):

    def test_generate_slug(self):
        self.assertEqual(generate_slug('Acme Corp!'), 'acme-corp')
        self.assertEqual(generate_slug('  Hello   World  '), 'hello-world')

    def test_validate_input(self):
        self.assertEqual(validate_workspace_input('Acme', 'acme'), {})
        self.assertEqual(validate_workspace_input('', 'ac'), {
            'name': WORKSPACE_WIZARD_ERRORS['NAME_REQUIRED'],
            'slug': WORKSPACE_WIZARD_ERRORS['SLUG_TOO_SHORT'],
        })
        self.assertEqual(validate_workspace_input('A', 'Bad_Slug')['slug'], WORKSPACE_WIZARD_ERRORS['SLUG_INVALID'])
        self.assertEqual(validate_workspace_input('x' * 101, 'ok-slug')['name'], WORKSPACE_WIZARD_ERRORS['NAME_TOO_LONG'])


class WorkspaceServiceTest(TestCase):
    """测试工作空间创建与查询"""

    def setUp(self):
        self.service = WorkspaceService()
        self.user = UserFactory()
        self.session = AuthService().create_session(self.user)['session']

    def test_create_workspace(self):
        workspace = self.service.create_workspace(self.user, 'Acme Corp', session=self.session)

        self.assertEqual(workspace.slug, 'acme-corp')
        member = WorkspaceMember.objects.get(workspace=workspace)
        self.assertEqual(member.user, self.user)
        self.assertEqual(member.role, ROLE_OWNER)
        self.session.refresh_from_db()
        self.assertEqual(self.session.active_workspace, workspace)

    def test_create_workspace_slug_taken(self):
        WorkspaceFactory(slug='acme')

        with self.assertRaisesMessage(SlugTakenError, WORKSPACE_WIZARD_ERRORS['SLUG_TAKEN']):
            self.service.create_workspace(self.user, 'Acme', slug='acme')
        self.assertFalse(self.service.check_slug('acme'))
        self.assertTrue(self.service.check_slug('acme-2'))

    def test_create_workspace_invalid_name(self):
        with self.assertRaises(ValidationError) as cm:
            self.service.create_workspace(self.user, 'A', slug='valid-slug')
        self.assertEqual(cm.exception.field, 'name')
        self.assertFalse(Workspace.objects.exists())

    def test_create_workspace_disabled(self):
        with self.settings(YDTB_AUTH={**settings.YDTB_AUTH, 'ALLOW_USER_TO_CREATE_WORKSPACE': False}):
            with self.assertRaises(PermissionDenied):
                self.service.create_workspace(self.user, 'Acme')

    def test_list_user_workspaces(self):
        first = self.service.create_workspace(self.user, 'First')
        second = self.service.create_workspace(self.user, 'Second')
        WorkspaceFactory()

        self.assertEqual(self.service.list_user_workspaces(self.user), [first, second])

    def test_set_active_workspace(self):
        workspace = OwnerFactory(user=self.user).workspace

        self.assertEqual(self.service.set_active_workspace(self.session, workspace.id), workspace)
        self.assertEqual(self.service.get_active_workspace(self.session), workspace)

        self.assertIsNone(self.service.set_active_workspace(self.session, None))
        self.assertIsNone(self.service.get_active_workspace(self.session))

    def test_set_active_workspace_not_member(self):
        workspace = WorkspaceFactory()

        with self.assertRaises(PermissionDenied):
            self.service.set_active_workspace(self.session, workspace.id)
        with self.assertRaises(WorkspaceNotFoundError):
            self.service.set_active_workspace(self.session, 'missing')

    def test_get_full_workspace(self):
        member = OwnerFactory(user=self.user)
        WorkspaceMemberFactory(workspace=member.workspace)
        InvitationFactory(workspace=member.workspace, inviter=self.user)
        InvitationFactory(workspace=member.workspace, inviter=self.user, status=INVITATION_ACCEPTED)

        data = self.service.get_full_workspace(self.user, member.workspace.id)

        self.assertEqual(data['slug'], member.workspace.slug)
        self.assertEqual(len(data['members']), 2)
        self.assertEqual(len(data['invitations']), 1)

    def test_delete_workspace_owner_only(self):
        member = WorkspaceMemberFactory(user=self.user, role=ROLE_ADMIN)

        with self.assertRaises(PermissionDenied):
            self.service.delete_workspace(self.user, member.workspace.id)

        owner = OwnerFactory(workspace=member.workspace)
        self.service.delete_workspace(owner.user, member.workspace.id)
        self.assertFalse(Workspace.objects.exists())


class InvitationTest(TestCase):
    """测试邀请流程"""

    def setUp(self):
        reset_email_rate_limiter()
        self.service = WorkspaceService()
        self.owner = OwnerFactory()
        self.workspace = self.owner.workspace
        self.invitee = UserFactory(email='invitee@example.com')

    def invite(self, email='invitee@example.com', role=ROLE_MEMBER, inviter=None, **kwargs):
        return self.service.invite_member(inviter or self.owner.user, self.workspace.id, email, role, **kwargs)

    def test_invite_sends_email(self):
        invitation = self.invite(message='Welcome aboard')

        self.assertEqual(invitation.status, INVITATION_PENDING)
        self.assertEqual(invitation.email, 'invitee@example.com')
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(f'/welcome/invite/{invitation.token}', mail.outbox[0].body)
        self.assertIn('Welcome aboard', mail.outbox[0].body)

    def test_invite_existing_member(self):
        WorkspaceMemberFactory(workspace=self.workspace, user=self.invitee)

        with self.assertRaises(ValidationError) as cm:
            self.invite()
        self.assertEqual(cm.exception.error_code, 'USER_IS_ALREADY_A_MEMBER')

    def test_invite_twice_requires_resend(self):
        first = self.invite()

        with self.assertRaises(ValidationError) as cm:
            self.invite()
        self.assertEqual(cm.exception.error_code, 'USER_IS_ALREADY_INVITED')

        resent = self.invite(role=ROLE_ADMIN, resend=True)
        self.assertEqual(resent.id, first.id)
        self.assertEqual(resent.role, ROLE_ADMIN)
        self.assertEqual(Invitation.objects.count(), 1)
        self.assertEqual(len(mail.outbox), 2)

    def test_reinvite_after_invitation_lapsed(self):
        """过期但尚未清理的邀请不阻止再次邀请"""
        first = self.invite()
        Invitation.objects.filter(pk=first.pk).update(expires_at=timezone.now() - timedelta(hours=1))

        second = self.invite()

        self.assertNotEqual(second.id, first.id)
        self.assertEqual(second.status, INVITATION_PENDING)
        self.assertGreater(second.expires_at, timezone.now())
        first.refresh_from_db()
        self.assertEqual(first.status, INVITATION_EXPIRED)
        self.assertEqual(list(self.workspace.invitations.pending()), [second])

    def test_member_cannot_invite(self):
        member = WorkspaceMemberFactory(workspace=self.workspace)

        with self.assertRaises(PermissionDenied):
            self.invite(inviter=member.user)

    def test_admin_cannot_invite_owner(self):
        admin = WorkspaceMemberFactory(workspace=self.workspace, role=ROLE_ADMIN)

        with self.assertRaises(PermissionDenied):
            self.invite(role=ROLE_OWNER, inviter=admin.user)
        self.invite(inviter=admin.user)

    def test_invite_invalid_role(self):
        with self.assertRaises(ValidationError):
            self.invite(role='superuser')

    def test_rate_limited_invitation_is_rolled_back(self):
        for index in range(3):
            self.invite(resend=index > 0)

        with self.assertRaises(RateLimitError):
            self.invite(resend=True)
        self.assertEqual(Invitation.objects.count(), 1)

    def test_accept_invitation(self):
        invitation = self.invite(role=ROLE_ADMIN)

        accepted, member = self.service.accept_invitation(self.invitee, invitation.token)

        self.assertEqual(accepted.status, INVITATION_ACCEPTED)
        self.assertEqual(member.workspace, self.workspace)
        self.assertEqual(member.role, ROLE_ADMIN)

        with self.assertRaises(InvitationNotFoundError):
            self.service.accept_invitation(self.invitee, invitation.token)

    def test_accept_wrong_recipient(self):
        invitation = self.invite()

        with self.assertRaises(PermissionDenied):
            self.service.accept_invitation(UserFactory(), invitation.token)

    def test_accept_expired_invitation(self):
        invitation = InvitationFactory(
            workspace=self.workspace,
            email=self.invitee.email,
            expires_at=timezone.now() - timedelta(minutes=1),
        )

        with self.assertRaises(InvitationExpiredError):
            self.service.accept_invitation(self.invitee, invitation.token)

        invitation.refresh_from_db()
        self.assertEqual(invitation.status, INVITATION_EXPIRED)
        self.assertFalse(WorkspaceMember.objects.filter(user=self.invitee).exists())

    def test_accept_unknown_token(self):
        with self.assertRaises(InvitationNotFoundError):
            self.service.accept_invitation(self.invitee, 'unknown')

    def test_reject_invitation(self):
        invitation = self.invite()

        self.service.reject_invitation(self.invitee, invitation.id)

        invitation.refresh_from_db()
        self.assertEqual(invitation.status, INVITATION_REJECTED)

    def test_cancel_invitation(self):
        invitation = self.invite()

        with self.assertRaises(PermissionDenied):
            self.service.cancel_invitation(self.invitee, invitation.id)

        self.service.cancel_invitation(self.owner.user, invitation.id)
        invitation.refresh_from_db()
        self.assertEqual(invitation.status, INVITATION_CANCELED)

    def test_expire_stale_invitations(self):
        InvitationFactory(expires_at=timezone.now() - timedelta(hours=1))
        InvitationFactory(expires_at=timezone.now() - timedelta(hours=1), status=INVITATION_ACCEPTED)
        InvitationFactory()

        self.assertEqual(self.service.expire_stale_invitations(), 1)
        self.assertEqual(Invitation.objects.filter(status=INVITATION_EXPIRED).count(), 1)


class MemberManagementTest(TestCase):
    """测试成员角色与移除"""

    def setUp(self):
        self.service = WorkspaceService()
        self.owner = OwnerFactory()
        self.workspace = self.owner.workspace
        self.admin = WorkspaceMemberFactory(workspace=self.workspace, role=ROLE_ADMIN)
        self.member = WorkspaceMemberFactory(workspace=self.workspace)

    def test_admin_can_change_member_role(self):
        updated = self.service.update_member_role(self.admin.user, self.workspace.id, self.member.id, ROLE_ADMIN)
        self.assertEqual(updated.role, ROLE_ADMIN)

    def test_admin_cannot_promote_to_owner(self):
        with self.assertRaises(PermissionDenied):
            self.service.update_member_role(self.admin.user, self.workspace.id, self.member.id, ROLE_OWNER)

    def test_member_cannot_change_roles(self):
        with self.assertRaises(PermissionDenied):
            self.service.update_member_role(self.member.user, self.workspace.id, self.admin.id, ROLE_MEMBER)

    def test_last_owner_cannot_be_demoted(self):
        with self.assertRaises(ValidationError) as cm:
            self.service.update_member_role(self.owner.user, self.workspace.id, self.owner.id, ROLE_ADMIN)
        self.assertEqual(cm.exception.error_code, 'LAST_OWNER')

    def test_owner_can_demote_when_another_owner_exists(self):
        self.service.update_member_role(self.owner.user, self.workspace.id, self.admin.id, ROLE_OWNER)

        self.service.update_member_role(self.owner.user, self.workspace.id, self.owner.id, ROLE_MEMBER)

        self.owner.refresh_from_db()
        self.assertEqual(self.owner.role, ROLE_MEMBER)

    def test_remove_member_clears_active_workspace(self):
        session = AuthService().create_session(self.member.user)['session']
        self.service.set_active_workspace(session, self.workspace.id)

        self.service.remove_member(self.admin.user, self.workspace.id, self.member.id)

        self.assertFalse(WorkspaceMember.objects.filter(id=self.member.id).exists())
        session.refresh_from_db()
        self.assertIsNone(session.active_workspace)

    def test_admin_cannot_remove_owner(self):
        with self.assertRaises(PermissionDenied):
            self.service.remove_member(self.admin.user, self.workspace.id, self.owner.id)

    def test_leave_workspace(self):
        self.service.leave_workspace(self.member.user, self.workspace.id)
        self.assertFalse(WorkspaceMember.objects.filter(id=self.member.id).exists())

        with self.assertRaises(ValidationError):
            self.service.leave_workspace(self.owner.user, self.workspace.id)

    def test_list_members(self):
        members = self.service.list_members(self.member.user, self.workspace.id)
        self.assertEqual(len(members), 3)

        with self.assertRaises(PermissionDenied):
            self.service.list_members(UserFactory(), self.workspace.id)
