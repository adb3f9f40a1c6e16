"""
用户模型
"""

from django.db import models

from .base import BaseModel, prefixed_table_name


class UserManager(models.Manager):
    """自定义用户管理器"""

    def normalize_email(self, email):
        return (email or '').strip().lower()

    def create_user(self, email, name=None, **extra_fields):
        """创建普通用户 (密码存储在 Account 中)"""
        if not email:
            raise ValueError('Email is required')

        user = self.model(
            email=self.normalize_email(email),
            name=name,
            **extra_fields
        )
        user.save(using=self._db)
        return user

    def get_by_email(self, email):
        return self.get(email=self.normalize_email(email))


class User(BaseModel):
    """用户模型"""

    name = models.CharField(
        max_length=255,
        null=True,
        blank=True
    )
    email = models.EmailField(
        max_length=255,
        unique=True,
        db_index=True
    )
    email_verified = models.BooleanField(
        default=False
    )
    image = models.TextField(
        null=True,
        blank=True,
        help_text="头像URL"
    )
    two_factor_enabled = models.BooleanField(
        default=False
    )

    objects = UserManager()

    class Meta:
        db_table = prefixed_table_name('users')
        ordering = ['-created_at']

    def __str__(self):
        return self.email

    @property
    def is_anonymous(self):
        """是否匿名用户"""
        return False

    @property
    def is_authenticated(self):
        """已认证"""
        return True

    @property
    def display_name(self):
        """显示名称"""
        return self.name or self.email.split('@')[0]

    def get_credential_account(self):
        """获取邮箱密码账号"""
        from ..constants import PROVIDER_CREDENTIAL
        return self.accounts.filter(provider_id=PROVIDER_CREDENTIAL).first()

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'email': self.email,
            'email_verified': self.email_verified,
            'image': self.image,
            'two_factor_enabled': self.two_factor_enabled,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
