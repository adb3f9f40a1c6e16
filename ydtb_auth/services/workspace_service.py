"""
工作空间管理服务

工作空间即租户。成员角色: owner / admin / member / guest，owner 和 admin 可以管理成员与邀请。
"""

import logging
import re
import secrets
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..models import User, Session, Workspace, WorkspaceMember, Invitation, AuditLog
from ..conf import auth_settings
from ..constants import (
    WORKSPACE_ROLES,
    ROLE_OWNER,
    ROLE_MEMBER,
    INVITATION_PENDING,
    INVITATION_ACCEPTED,
    INVITATION_REJECTED,
    INVITATION_EXPIRED,
    INVITATION_CANCELED,
    WORKSPACE_WIZARD_ERRORS,
    WORKSPACE_NAME_MIN_LENGTH,
    WORKSPACE_NAME_MAX_LENGTH,
    WORKSPACE_SLUG_MIN_LENGTH,
    AUDIT_ACTIONS,
)
from ..exceptions import (
    ValidationError,
    SlugTakenError,
    PermissionDenied,
    WorkspaceNotFoundError,
    MemberNotFoundError,
    InvitationNotFoundError,
    InvitationExpiredError,
)
from .. import mailer


logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r'^[a-z0-9-]+$')


def generate_slug(name: str) -> str:
    """根据工作空间名称生成 slug"""
    slug = re.sub(r'[^a-z0-9]+', '-', (name or '').lower())
    return slug.strip('-')


def validate_workspace_input(name: str, slug: str) -> Dict[str, str]:
    """
    校验工作空间名称与 slug

    Returns:
        Dict[str, str]: 字段 -> 错误信息，校验通过时为空字典
    """
    errors = {}
    name = (name or '').strip()
    slug = (slug or '').strip()

    if not name:
        errors['name'] = WORKSPACE_WIZARD_ERRORS['NAME_REQUIRED']
    elif len(name) < WORKSPACE_NAME_MIN_LENGTH:
        errors['name'] = WORKSPACE_WIZARD_ERRORS['NAME_TOO_SHORT']
    elif len(name) > WORKSPACE_NAME_MAX_LENGTH:
        errors['name'] = WORKSPACE_WIZARD_ERRORS['NAME_TOO_LONG']

    if not slug:
        errors['slug'] = WORKSPACE_WIZARD_ERRORS['SLUG_REQUIRED']
    elif len(slug) < WORKSPACE_SLUG_MIN_LENGTH:
        errors['slug'] = WORKSPACE_WIZARD_ERRORS['SLUG_TOO_SHORT']
    elif not SLUG_PATTERN.match(slug):
        errors['slug'] = WORKSPACE_WIZARD_ERRORS['SLUG_INVALID']

    return errors


class WorkspaceService:
    """工作空间管理服务"""

    # ------------------------------------------------------------------
    # 查询辅助
    # ------------------------------------------------------------------

    @staticmethod
    def _get_workspace(workspace_id) -> Workspace:
        try:
            return Workspace.objects.get(id=workspace_id)
        except (Workspace.DoesNotExist, ValueError, DjangoValidationError):
            raise WorkspaceNotFoundError("Workspace not found")

    @staticmethod
    def get_membership(user: User, workspace: Workspace) -> Optional[WorkspaceMember]:
        return WorkspaceMember.objects.filter(workspace=workspace, user=user).first()

    def _require_membership(self, user: User, workspace: Workspace) -> WorkspaceMember:
        membership = self.get_membership(user, workspace)
        if membership is None:
            raise PermissionDenied("You are not a member of this workspace")
        return membership

    def _require_manager(self, user: User, workspace: Workspace) -> WorkspaceMember:
        membership = self._require_membership(user, workspace)
        if not membership.can_manage_members:
            raise PermissionDenied("You are not allowed to manage members of this workspace")
        return membership

    @staticmethod
    def _get_member(workspace: Workspace, member_id) -> WorkspaceMember:
        try:
            return WorkspaceMember.objects.select_related('user').get(id=member_id, workspace=workspace)
        except (WorkspaceMember.DoesNotExist, ValueError, DjangoValidationError):
            raise MemberNotFoundError("Member not found")

    @staticmethod
    def _get_invitation(invitation_id) -> Invitation:
        try:
            return Invitation.objects.select_related('workspace', 'inviter').get(id=invitation_id)
        except (Invitation.DoesNotExist, ValueError, DjangoValidationError):
            raise InvitationNotFoundError("Invitation not found")

    @staticmethod
    def _owner_count(workspace: Workspace) -> int:
        return WorkspaceMember.objects.filter(workspace=workspace, role=ROLE_OWNER).count()

    def _ensure_not_last_owner(self, member: WorkspaceMember, message: str):
        if member.is_owner and self._owner_count(member.workspace) <= 1:
            raise ValidationError(message, error_code='LAST_OWNER')

    @staticmethod
    def _validate_role(role: str):
        if role not in WORKSPACE_ROLES:
            raise ValidationError(f"Invalid role: {role}", field='role')

    # ------------------------------------------------------------------
    # 工作空间
    # ------------------------------------------------------------------

    @staticmethod
    def check_slug(slug: str) -> bool:
        """slug 是否可用"""
        return not Workspace.objects.filter(slug=(slug or '').strip().lower()).exists()

    def create_workspace(
        self,
        user: User,
        name: str,
        slug: Optional[str] = None,
        description: Optional[str] = None,
        logo: Optional[str] = None,
        metadata: Optional[Dict] = None,
        session: Optional[Session] = None,
    ) -> Workspace:
        """
        创建工作空间，创建者成为 owner

        Args:
            user: 创建者
            name: 名称
            slug: slug，默认根据名称生成
            description: 描述
            logo: Logo URL
            metadata: 附加信息
            session: 当前会话，新工作空间会被设为激活

        Returns:
            Workspace: 新工作空间

        Raises:
            PermissionDenied: 不允许用户创建工作空间
            ValidationError: 名称或 slug 无效
            SlugTakenError: slug 已被占用
        """
        if not auth_settings.ALLOW_USER_TO_CREATE_WORKSPACE:
            raise PermissionDenied("You are not allowed to create a new workspace")

        name = (name or '').strip()
        slug = (slug or generate_slug(name)).strip().lower()

        errors = validate_workspace_input(name, slug)
        if errors:
            field, message = next(iter(errors.items()))
            raise ValidationError(message, field=field)

        if not self.check_slug(slug):
            raise SlugTakenError(WORKSPACE_WIZARD_ERRORS['SLUG_TAKEN'], field='slug')

        try:
            with transaction.atomic():
                workspace = Workspace.objects.create(
                    name=name,
                    slug=slug,
                    description=description,
                    logo=logo,
                    metadata=metadata or {},
                )
                WorkspaceMember.objects.create(workspace=workspace, user=user, role=ROLE_OWNER)
        except IntegrityError:
            raise SlugTakenError(WORKSPACE_WIZARD_ERRORS['SLUG_TAKEN'], field='slug')

        if session is not None:
            session.active_workspace = workspace
            session.save(update_fields=['active_workspace', 'updated_at'])

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['WORKSPACE_CREATED'],
            resource_type='workspace',
            resource_id=workspace.id,
            metadata={'name': name, 'slug': slug}
        )

        logger.info(f"Workspace created: {workspace.slug} by {user.email}")
        return workspace

    @staticmethod
    def list_user_workspaces(user: User) -> List[Workspace]:
        return list(Workspace.objects.filter(members__user=user).order_by('created_at'))

    def set_active_workspace(self, session: Session, workspace_id=None) -> Optional[Workspace]:
        """
        设置会话的激活工作空间，workspace_id 为 None 时清除

        Raises:
            WorkspaceNotFoundError: 工作空间不存在
            PermissionDenied: 不是成员
        """
        if workspace_id is None:
            session.active_workspace = None
            session.save(update_fields=['active_workspace', 'updated_at'])
            return None

        workspace = self._get_workspace(workspace_id)
        self._require_membership(session.user, workspace)

        session.active_workspace = workspace
        session.save(update_fields=['active_workspace', 'updated_at'])
        return workspace

    def get_active_workspace(self, session: Session) -> Optional[Workspace]:
        workspace = session.active_workspace
        if workspace is None:
            return None
        # 成员关系可能已被移除
        if self.get_membership(session.user, workspace) is None:
            return None
        return workspace

    def get_full_workspace(self, user: User, workspace_id) -> Dict[str, object]:
        """工作空间详情: 成员与待处理邀请"""
        workspace = self._get_workspace(workspace_id)
        self._require_membership(user, workspace)

        members = workspace.members.select_related('user').order_by('created_at')
        invitations = workspace.invitations.pending()

        data = workspace.to_dict()
        data['members'] = [member.to_dict() for member in members]
        data['invitations'] = [invitation.to_dict() for invitation in invitations]
        return data

    def list_members(self, user: User, workspace_id) -> List[WorkspaceMember]:
        workspace = self._get_workspace(workspace_id)
        self._require_membership(user, workspace)
        return list(workspace.members.select_related('user').order_by('created_at'))

    def delete_workspace(self, user: User, workspace_id) -> bool:
        """只有 owner 可以删除工作空间"""
        workspace = self._get_workspace(workspace_id)
        membership = self._require_membership(user, workspace)
        if not membership.is_owner:
            raise PermissionDenied("Only owners can delete the workspace")

        slug = workspace.slug
        workspace.delete()

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['WORKSPACE_DELETED'],
            resource_type='workspace',
            resource_id=workspace_id,
            metadata={'slug': slug}
        )
        logger.info(f"Workspace deleted: {slug} by {user.email}")
        return True

    # ------------------------------------------------------------------
    # 邀请
    # ------------------------------------------------------------------

    def invite_member(
        self,
        inviter: User,
        workspace_id,
        email: str,
        role: str = ROLE_MEMBER,
        resend: bool = False,
        message: Optional[str] = None,
    ) -> Invitation:
        """
        邀请成员

        Args:
            inviter: 邀请人 (owner 或 admin)
            workspace_id: 工作空间ID
            email: 被邀请人邮箱
            role: 角色
            resend: 已有待处理邀请时重新发送
            message: 附言

        Returns:
            Invitation: 邀请

        Raises:
            PermissionDenied: 无权邀请
            ValidationError: 已是成员或已被邀请
            RateLimitError: 邀请邮件发送过于频繁
        """
        workspace = self._get_workspace(workspace_id)
        membership = self._require_manager(inviter, workspace)

        self._validate_role(role)
        if role == ROLE_OWNER and not membership.is_owner:
            raise PermissionDenied("Only owners can invite owners")

        email = User.objects.normalize_email(email)
        if not email:
            raise ValidationError("Email is required", field='email')

        if WorkspaceMember.objects.filter(workspace=workspace, user__email=email).exists():
            raise ValidationError("User is already a member of this workspace", error_code='USER_IS_ALREADY_A_MEMBER')

        now = timezone.now()
        expires_at = now + timedelta(seconds=auth_settings.INVITATION_EXPIRES_IN)

        # 已过期的待处理邀请不再阻止重新邀请
        workspace.invitations.stale(now).filter(email=email).update(status=INVITATION_EXPIRED, updated_at=now)

        with transaction.atomic():
            invitation = workspace.invitations.pending().filter(email=email).first()

            if invitation is not None:
                if not resend:
                    raise ValidationError(
                        "User is already invited to this workspace",
                        error_code='USER_IS_ALREADY_INVITED'
                    )
                invitation.expires_at = expires_at
                invitation.role = role
                invitation.inviter = inviter
                invitation.save(update_fields=['expires_at', 'role', 'inviter', 'updated_at'])
            else:
                invitation = Invitation.objects.create(
                    email=email,
                    workspace=workspace,
                    role=role,
                    status=INVITATION_PENDING,
                    expires_at=expires_at,
                    token=secrets.token_urlsafe(32),
                    inviter=inviter,
                )

            mailer.send_workspace_invitation_email(
                email=email,
                invited_by_name=inviter.display_name,
                invited_by_email=inviter.email,
                workspace_name=workspace.name,
                workspace_slug=workspace.slug,
                invitation_token=invitation.token,
                message=message,
            )

        AuditLog.log_action(
            user=inviter,
            action=AUDIT_ACTIONS['MEMBER_INVITED'],
            resource_type='workspace',
            resource_id=workspace.id,
            metadata={'email': email, 'role': role, 'resend': resend}
        )

        logger.info(f"Invitation sent: {email} to {workspace.slug} as {role}")
        return invitation

    @staticmethod
    def get_invitation_by_token(token: str) -> Invitation:
        invitation = (
            Invitation.objects.select_related('workspace', 'inviter')
            .filter(token=token)
            .first()
        ) if token else None
        if invitation is None:
            raise InvitationNotFoundError("Invitation not found")
        return invitation

    @staticmethod
    def _mark_expired(invitation: Invitation):
        invitation.status = INVITATION_EXPIRED
        invitation.save(update_fields=['status', 'updated_at'])

    def accept_invitation(self, user: User, token: str) -> Tuple[Invitation, WorkspaceMember]:
        """
        接受邀请

        Returns:
            Tuple[Invitation, WorkspaceMember]: 邀请与新成员

        Raises:
            InvitationNotFoundError: 邀请不存在或已处理
            InvitationExpiredError: 邀请已过期
            PermissionDenied: 邀请邮箱与当前用户不一致
        """
        invitation = self.get_invitation_by_token(token)

        if not invitation.is_pending:
            raise InvitationNotFoundError("Invitation not found")

        if invitation.is_expired:
            self._mark_expired(invitation)
            raise InvitationExpiredError("Invitation has expired")

        if User.objects.normalize_email(invitation.email) != user.email:
            raise PermissionDenied("You are not the recipient of the invitation")

        with transaction.atomic():
            member, created = WorkspaceMember.objects.get_or_create(
                workspace=invitation.workspace,
                user=user,
                defaults={'role': invitation.role}
            )
            invitation.status = INVITATION_ACCEPTED
            invitation.save(update_fields=['status', 'updated_at'])

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['INVITATION_ACCEPTED'],
            resource_type='invitation',
            resource_id=invitation.id,
            metadata={'workspace': invitation.workspace.slug, 'role': member.role, 'created': created}
        )

        logger.info(f"Invitation accepted: {user.email} joined {invitation.workspace.slug}")
        return invitation, member

    def reject_invitation(self, user: User, invitation_id) -> Invitation:
        invitation = self._get_invitation(invitation_id)

        if User.objects.normalize_email(invitation.email) != user.email:
            raise PermissionDenied("You are not the recipient of the invitation")
        if not invitation.is_pending:
            raise InvitationNotFoundError("Invitation not found")

        invitation.status = INVITATION_REJECTED
        invitation.save(update_fields=['status', 'updated_at'])

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['INVITATION_REJECTED'],
            resource_type='invitation',
            resource_id=invitation.id
        )
        return invitation

    def cancel_invitation(self, user: User, invitation_id) -> Invitation:
        invitation = self._get_invitation(invitation_id)
        self._require_manager(user, invitation.workspace)

        if not invitation.is_pending:
            raise InvitationNotFoundError("Invitation not found")

        invitation.status = INVITATION_CANCELED
        invitation.save(update_fields=['status', 'updated_at'])

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['INVITATION_CANCELED'],
            resource_type='invitation',
            resource_id=invitation.id,
            metadata={'email': invitation.email}
        )
        return invitation

    @staticmethod
    def expire_stale_invitations(now=None) -> int:
        """把过期的待处理邀请标记为 expired"""
        count = Invitation.objects.stale(now).update(status=INVITATION_EXPIRED, updated_at=timezone.now())
        if count:
            logger.info(f"Expired {count} stale invitations")
        return count

    # ------------------------------------------------------------------
    # 成员
    # ------------------------------------------------------------------

    def update_member_role(self, actor: User, workspace_id, member_id, role: str) -> WorkspaceMember:
        """
        修改成员角色

        Raises:
            PermissionDenied: 无权修改
            ValidationError: 角色无效或会移除最后一个 owner
        """
        workspace = self._get_workspace(workspace_id)
        actor_membership = self._require_manager(actor, workspace)
        self._validate_role(role)

        member = self._get_member(workspace, member_id)

        if (role == ROLE_OWNER or member.is_owner) and not actor_membership.is_owner:
            raise PermissionDenied("Only owners can change owner roles")
        if role != ROLE_OWNER:
            self._ensure_not_last_owner(member, "Cannot demote the last owner of the workspace")

        old_role = member.role
        member.role = role
        member.save(update_fields=['role', 'updated_at'])

        AuditLog.log_action(
            user=actor,
            action=AUDIT_ACTIONS['MEMBER_ROLE_UPDATED'],
            resource_type='workspace',
            resource_id=workspace.id,
            metadata={'member': member.user.email, 'old_role': old_role, 'new_role': role}
        )
        return member

    def remove_member(self, actor: User, workspace_id, member_id) -> bool:
        workspace = self._get_workspace(workspace_id)
        actor_membership = self._require_manager(actor, workspace)
        member = self._get_member(workspace, member_id)

        if member.is_owner and not actor_membership.is_owner:
            raise PermissionDenied("Only owners can remove owners")
        self._ensure_not_last_owner(member, "Cannot remove the last owner of the workspace")

        self._delete_membership(member)

        AuditLog.log_action(
            user=actor,
            action=AUDIT_ACTIONS['MEMBER_REMOVED'],
            resource_type='workspace',
            resource_id=workspace.id,
            metadata={'member': member.user.email}
        )
        logger.info(f"Member removed: {member.user.email} from {workspace.slug}")
        return True

    def leave_workspace(self, user: User, workspace_id) -> bool:
        workspace = self._get_workspace(workspace_id)
        member = self._require_membership(user, workspace)
        self._ensure_not_last_owner(member, "Cannot leave the workspace as the last owner")

        self._delete_membership(member)

        AuditLog.log_action(
            user=user,
            action=AUDIT_ACTIONS['MEMBER_REMOVED'],
            resource_type='workspace',
            resource_id=workspace.id,
            metadata={'member': user.email, 'left': True}
        )
        return True

    @staticmethod
    def _delete_membership(member: WorkspaceMember):
        with transaction.atomic():
            Session.objects.filter(
                user_id=member.user_id,
                active_workspace_id=member.workspace_id
            ).update(active_workspace=None)
            member.delete()
