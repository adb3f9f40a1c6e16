"""
基础模型类
"""

import uuid

from django.db import models

from ..constants import TABLE_PREFIX


class BaseModel(models.Model):
    """基础模型类"""

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    created_at = models.DateTimeField(
        auto_now_add=True
    )
    updated_at = models.DateTimeField(
        auto_now=True
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']


def prefixed_table_name(table_name: str) -> str:
    """获取带前缀的完整表名"""
    return f'{TABLE_PREFIX}{table_name}'
