"""
会话与验证记录模型
"""

from django.db import models
from django.utils import timezone

from .base import BaseModel, prefixed_table_name


class Session(BaseModel):
    """登录会话"""

    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='sessions'
    )
    token = models.CharField(
        max_length=255,
        unique=True,
        db_index=True
    )
    expires_at = models.DateTimeField()
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True
    )
    user_agent = models.TextField(
        null=True,
        blank=True
    )
    active_workspace = models.ForeignKey(
        'Workspace',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='active_sessions',
        help_text="当前激活的工作空间"
    )

    class Meta:
        db_table = prefixed_table_name('sessions')
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user.email} ({self.expires_at.isoformat()})"

    @property
    def is_expired(self):
        return timezone.now() >= self.expires_at

    def to_dict(self):
        return {
            'id': str(self.id),
            'user_id': str(self.user_id),
            'expires_at': self.expires_at.isoformat(),
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'active_workspace_id': str(self.active_workspace_id) if self.active_workspace_id else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class VerificationQuerySet(models.QuerySet):

    def expired(self, now=None):
        return self.filter(expires_at__lte=now or timezone.now())


class Verification(BaseModel):
    """验证记录 - 存放邮箱验证码和重置密码令牌的哈希"""

    identifier = models.CharField(
        max_length=255,
        db_index=True,
        help_text="例如 email-verification-otp-user@example.com"
    )
    value = models.CharField(
        max_length=255,
        help_text="哈希后的验证码或令牌"
    )
    attempts = models.PositiveIntegerField(
        default=0
    )
    expires_at = models.DateTimeField()

    objects = VerificationQuerySet.as_manager()

    class Meta:
        db_table = prefixed_table_name('verifications')
        ordering = ['-created_at']

    def __str__(self):
        return self.identifier

    @property
    def is_expired(self):
        return timezone.now() >= self.expires_at
