"""
工作空间相关模型
"""

from django.db import models
from django.utils import timezone

from .base import BaseModel, prefixed_table_name
from ..constants import (
    WORKSPACE_ROLES,
    MANAGER_ROLES,
    ROLE_MEMBER,
    ROLE_OWNER,
    INVITATION_STATUSES,
    INVITATION_PENDING,
)


class Workspace(BaseModel):
    """工作空间模型 (租户)"""

    name = models.CharField(
        max_length=255,
        help_text="工作空间名称"
    )
    slug = models.SlugField(
        max_length=255,
        unique=True,
        help_text="工作空间slug，用作子域名"
    )
    description = models.TextField(
        null=True,
        blank=True,
        help_text="工作空间描述"
    )
    logo = models.TextField(
        null=True,
        blank=True
    )
    metadata = models.JSONField(
        default=dict,
        help_text="附加信息 {type, branding, enabled_tools}"
    )

    class Meta:
        db_table = prefixed_table_name('workspaces')
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.slug})"

    def get_member_count(self):
        """获取工作空间成员数量"""
        return self.members.count()

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'logo': self.logo,
            'metadata': self.metadata,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class WorkspaceMember(BaseModel):
    """工作空间成员"""

    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.CASCADE,
        related_name='members'
    )
    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    role = models.CharField(
        max_length=50,
        choices=[(role, role) for role in WORKSPACE_ROLES],
        default=ROLE_MEMBER
    )

    class Meta:
        db_table = prefixed_table_name('workspace_members')
        unique_together = ['workspace', 'user']
        indexes = [
            models.Index(fields=['workspace', 'user'], name='workspace_members_ws_user_idx'),
        ]

    def __str__(self):
        return f"{self.user.email} - {self.workspace.name} ({self.role})"

    @property
    def is_owner(self):
        return self.role == ROLE_OWNER

    @property
    def can_manage_members(self):
        """是否可以管理成员与邀请"""
        return self.role in MANAGER_ROLES

    def to_dict(self):
        return {
            'id': str(self.id),
            'workspace_id': str(self.workspace_id),
            'user_id': str(self.user_id),
            'role': self.role,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'user': {
                'id': str(self.user.id),
                'name': self.user.name,
                'email': self.user.email,
                'image': self.user.image,
            },
        }


class InvitationQuerySet(models.QuerySet):

    def pending(self):
        return self.filter(status=INVITATION_PENDING)

    def stale(self, now=None):
        """已过期但仍为 pending 的邀请"""
        return self.pending().filter(expires_at__lte=now or timezone.now())


class Invitation(BaseModel):
    """工作空间邀请"""

    email = models.EmailField(
        max_length=255
    )
    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.CASCADE,
        related_name='invitations'
    )
    role = models.CharField(
        max_length=50,
        choices=[(role, role) for role in WORKSPACE_ROLES],
        default=ROLE_MEMBER
    )
    status = models.CharField(
        max_length=20,
        choices=[(status, status) for status in INVITATION_STATUSES],
        default=INVITATION_PENDING
    )
    expires_at = models.DateTimeField()
    token = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True
    )
    inviter = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='sent_invitations'
    )

    objects = InvitationQuerySet.as_manager()

    class Meta:
        db_table = prefixed_table_name('invitations')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email', 'workspace'], name='invitations_email_ws_idx'),
        ]

    def __str__(self):
        return f"{self.email} -> {self.workspace.name} ({self.status})"

    @property
    def is_expired(self):
        return timezone.now() >= self.expires_at

    @property
    def is_pending(self):
        return self.status == INVITATION_PENDING

    def to_dict(self):
        return {
            'id': str(self.id),
            'email': self.email,
            'workspace_id': str(self.workspace_id),
            'role': self.role,
            'status': self.status,
            'expires_at': self.expires_at.isoformat(),
            'inviter_id': str(self.inviter_id),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
