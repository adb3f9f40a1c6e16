"""
Passkey 与两步验证模型
"""

from django.db import models

from .base import BaseModel, prefixed_table_name


class Passkey(BaseModel):
    """WebAuthn 凭据记录"""

    name = models.CharField(
        max_length=255
    )
    public_key = models.TextField()
    user = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='passkeys'
    )
    credential_id = models.CharField(
        max_length=512,
        unique=True,
        db_index=True
    )
    counter = models.PositiveIntegerField(
        default=0
    )
    device_type = models.CharField(
        max_length=50,
        help_text="singleDevice | multiDevice"
    )
    backed_up = models.BooleanField(
        default=False
    )
    transports = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="逗号分隔，例如 internal,hybrid"
    )
    aaguid = models.CharField(
        max_length=64,
        null=True,
        blank=True
    )

    class Meta:
        db_table = prefixed_table_name('passkeys')
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.user.email})"

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'credential_id': self.credential_id,
            'counter': self.counter,
            'device_type': self.device_type,
            'backed_up': self.backed_up,
            'transports': self.transports.split(',') if self.transports else [],
            'aaguid': self.aaguid,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class TwoFactor(BaseModel):
    """TOTP 密钥与备用码"""

    user = models.OneToOneField(
        'User',
        on_delete=models.CASCADE,
        related_name='two_factor'
    )
    secret = models.CharField(
        max_length=255,
        help_text="Base32 编码的 TOTP 密钥"
    )
    backup_codes = models.JSONField(
        default=list,
        help_text="哈希后的备用码列表"
    )

    class Meta:
        db_table = prefixed_table_name('two_factors')

    def __str__(self):
        return f"2FA for {self.user.email}"
