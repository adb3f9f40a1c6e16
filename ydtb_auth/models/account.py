"""
账号模型 - 一个用户可以关联多个登录方式
"""

from django.contrib.auth.hashers import check_password, make_password
from django.db import models

from .base import BaseModel, prefixed_table_name


class Account(BaseModel):
    """登录账号 (邮箱密码或第三方提供方)"""

    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='accounts'
    )
    provider_id = models.CharField(
        max_length=100,
        help_text="提供方: credential | google | ..."
    )
    account_id = models.CharField(
        max_length=255,
        help_text="提供方内的账号ID"
    )
    access_token = models.TextField(null=True, blank=True)
    refresh_token = models.TextField(null=True, blank=True)
    id_token = models.TextField(null=True, blank=True)
    access_token_expires_at = models.DateTimeField(null=True, blank=True)
    refresh_token_expires_at = models.DateTimeField(null=True, blank=True)
    scope = models.TextField(null=True, blank=True)
    password = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="密码哈希，仅 credential 账号使用"
    )

    class Meta:
        db_table = prefixed_table_name('accounts')
        indexes = [
            models.Index(fields=['provider_id', 'account_id'], name='accounts_provider_account_idx'),
        ]

    def __str__(self):
        return f"{self.provider_id}:{self.account_id}"

    def set_password(self, raw_password, save=True):
        """设置密码"""
        self.password = make_password(raw_password)
        if save:
            self.save(update_fields=['password', 'updated_at'])

    def check_password(self, raw_password):
        """验证密码"""
        if not self.password:
            return False
        return check_password(raw_password, self.password)
