"""
Passkey 凭据管理

WebAuthn 的注册与认证仪式在客户端和浏览器中完成，这里只负责凭据记录。
"""

import logging
from typing import Iterable, List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from ..models import User, Passkey
from ..exceptions import (
    PasskeyNotFoundError,
    PermissionDenied,
    ValidationError,
    AuthenticationError,
)


logger = logging.getLogger(__name__)

DEVICE_TYPES = ('singleDevice', 'multiDevice')


class PasskeyService:
    """Passkey 服务"""

    @staticmethod
    def _get_passkey(passkey_id) -> Passkey:
        try:
            return Passkey.objects.select_related('user').get(id=passkey_id)
        except (Passkey.DoesNotExist, ValueError, DjangoValidationError):
            raise PasskeyNotFoundError("Passkey not found")

    def _get_owned_passkey(self, user: User, passkey_id) -> Passkey:
        passkey = self._get_passkey(passkey_id)
        if passkey.user_id != user.id:
            raise PermissionDenied("You are not allowed to modify this passkey")
        return passkey

    def add_passkey(
        self,
        user: User,
        name: str,
        credential_id: str,
        public_key: str,
        device_type: str,
        backed_up: bool = False,
        transports: Optional[Iterable[str]] = None,
        aaguid: Optional[str] = None,
    ) -> Passkey:
        """
        保存新注册的凭据

        Raises:
            ValidationError: 凭据已存在或参数无效
        """
        if not credential_id or not public_key:
            raise ValidationError("credential_id and public_key are required")
        if device_type not in DEVICE_TYPES:
            raise ValidationError(f"Invalid device type: {device_type}", field='device_type')
        if Passkey.objects.filter(credential_id=credential_id).exists():
            raise ValidationError("Passkey already registered", error_code='PASSKEY_ALREADY_EXISTS')

        passkey = Passkey.objects.create(
            user=user,
            name=name or 'Passkey',
            credential_id=credential_id,
            public_key=public_key,
            device_type=device_type,
            backed_up=backed_up,
            transports=','.join(transports) if transports else None,
            aaguid=aaguid,
        )
        logger.info(f"Passkey {passkey.id} registered for {user.email}")
        return passkey

    @staticmethod
    def list_user_passkeys(user: User) -> List[Passkey]:
        return list(Passkey.objects.filter(user=user))

    def update_passkey(self, user: User, passkey_id, name: str) -> Passkey:
        if not name:
            raise ValidationError("Name is required", field='name')
        passkey = self._get_owned_passkey(user, passkey_id)
        passkey.name = name
        passkey.save(update_fields=['name', 'updated_at'])
        return passkey

    def delete_passkey(self, user: User, passkey_id) -> bool:
        passkey = self._get_owned_passkey(user, passkey_id)
        passkey.delete()
        logger.info(f"Passkey {passkey_id} deleted by {user.email}")
        return True

    def record_authentication(self, credential_id: str, new_counter: int) -> User:
        """
        记录一次认证，签名计数器必须递增 (双方都为0的认证器不计数)

        Returns:
            User: 凭据所属用户

        Raises:
            PasskeyNotFoundError: 凭据不存在
            AuthenticationError: 计数器未递增，可能是克隆的认证器
        """
        with transaction.atomic():
            passkey = (
                Passkey.objects.select_for_update()
                .select_related('user')
                .filter(credential_id=credential_id)
                .first()
            )
            if passkey is None:
                raise PasskeyNotFoundError("Passkey not found")

            if (new_counter or passkey.counter) and new_counter <= passkey.counter:
                logger.warning(
                    f"Passkey {passkey.id} counter did not increase "
                    f"({passkey.counter} -> {new_counter}), possible cloned authenticator"
                )
                raise AuthenticationError("Authentication failed", error_code='PASSKEY_COUNTER_MISMATCH')

            passkey.counter = new_counter
            passkey.save(update_fields=['counter', 'updated_at'])

        return passkey.user
