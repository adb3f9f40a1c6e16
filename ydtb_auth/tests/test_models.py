"""
测试数据模型
"""

from datetime import timedelta

from django.db import IntegrityError
from django.test import TestCase, RequestFactory
from django.utils import timezone

from ..constants import INVITATION_ACCEPTED, ROLE_OWNER, ROLE_GUEST
from ..models import (
    User,
    Account,
    Session,
    Verification,
    Passkey,
    TwoFactor,
    Workspace,
    WorkspaceMember,
    Invitation,
    AuditLog,
)
from ..models.audit import get_client_ip
from .factories import UserFactory, WorkspaceMemberFactory, InvitationFactory, DEFAULT_PASSWORD


class UserModelTest(TestCase):
    """测试用户模型"""

    def test_create_user(self):
        """测试创建用户"""
        user = User.objects.create_user(email='  Test@Example.COM ', name='Test User')

        self.assertEqual(user.email, 'test@example.com')
        self.assertFalse(user.email_verified)
        self.assertFalse(user.two_factor_enabled)
        self.assertTrue(user.is_authenticated)
        self.assertFalse(user.is_anonymous)

    def test_create_user_requires_email(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='')

    def test_user_email_unique(self):
        """测试邮箱唯一性"""
        User.objects.create_user(email='test@example.com')
        with self.assertRaises(IntegrityError):
            User.objects.create_user(email='TEST@example.com')

    def test_display_name(self):
        self.assertEqual(User(email='jane@example.com', name='Jane').display_name, 'Jane')
        self.assertEqual(User(email='jane@example.com').display_name, 'jane')

    def test_to_dict(self):
        user = UserFactory(email='dict@example.com')
        data = user.to_dict()

        self.assertEqual(data['id'], str(user.id))
        self.assertEqual(data['email'], 'dict@example.com')
        self.assertTrue(data['email_verified'])

    def test_credential_account(self):
        user = UserFactory()
        account = user.get_credential_account()

        self.assertEqual(account.provider_id, 'credential')
        self.assertEqual(account.account_id, str(user.id))
        self.assertTrue(account.check_password(DEFAULT_PASSWORD))
        self.assertFalse(account.check_password('wrong'))
        self.assertNotEqual(account.password, DEFAULT_PASSWORD)

    def test_account_without_password(self):
        account = Account(provider_id='google', account_id='123')
        self.assertFalse(account.check_password('anything'))


class TableNameTest(TestCase):

    def test_tables_are_prefixed(self):
        models = [User, Account, Session, Verification, Passkey, TwoFactor,
                  Workspace, WorkspaceMember, Invitation, AuditLog]
        for model in models:
            self.assertTrue(model._meta.db_table.startswith('ydtb_'), model.__name__)


class WorkspaceModelTest(TestCase):
    """测试工作空间模型"""

    def test_membership_unique(self):
        member = WorkspaceMemberFactory()
        with self.assertRaises(IntegrityError):
            WorkspaceMember.objects.create(workspace=member.workspace, user=member.user)

    def test_member_permissions(self):
        self.assertTrue(WorkspaceMember(role=ROLE_OWNER).can_manage_members)
        self.assertTrue(WorkspaceMember(role=ROLE_OWNER).is_owner)
        self.assertFalse(WorkspaceMember(role=ROLE_GUEST).can_manage_members)

    def test_member_count(self):
        member = WorkspaceMemberFactory()
        WorkspaceMemberFactory(workspace=member.workspace)
        self.assertEqual(member.workspace.get_member_count(), 2)

    def test_invitation_querysets(self):
        stale = InvitationFactory(expires_at=timezone.now() - timedelta(minutes=1))
        InvitationFactory(status=INVITATION_ACCEPTED, expires_at=timezone.now() - timedelta(minutes=1))
        fresh = InvitationFactory()

        self.assertEqual(set(Invitation.objects.pending()), {stale, fresh})
        self.assertEqual(list(Invitation.objects.stale()), [stale])
        self.assertTrue(stale.is_expired)
        self.assertTrue(fresh.is_pending)


class AuditLogTest(TestCase):
    """测试审计日志"""

    def setUp(self):
        self.factory = RequestFactory()

    def test_log_user_action_from_request(self):
        user = UserFactory()
        request = self.factory.get('/', HTTP_USER_AGENT='pytest', HTTP_X_FORWARDED_FOR='203.0.113.5, 10.0.0.1')

        log = AuditLog.log_user_action(user, 'user_signed_in', request=request, metadata={'success': True})

        self.assertEqual(log.ip_address, '203.0.113.5')
        self.assertEqual(log.user_agent, 'pytest')
        self.assertEqual(log.metadata, {'success': True})

    def test_client_ip_fallback(self):
        request = self.factory.get('/', REMOTE_ADDR='192.0.2.1')
        self.assertEqual(get_client_ip(request), '192.0.2.1')

    def test_get_user_logs(self):
        user = UserFactory()
        AuditLog.log_action(user, 'a')
        AuditLog.log_action(user, 'b')
        AuditLog.log_action(None, 'a')

        self.assertEqual(len(AuditLog.get_user_logs(user)), 2)
        self.assertEqual(len(AuditLog.get_user_logs(user, action='a')), 1)

    def test_anonymous_log(self):
        log = AuditLog.log_action(None, 'user_signed_in')
        self.assertIn('anonymous', str(log))
