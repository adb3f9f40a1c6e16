"""
Passkey 凭据测试
"""

import uuid

from django.test import TestCase

from ..exceptions import (
    AuthenticationError,
    PasskeyNotFoundError,
    PermissionDenied,
    ValidationError,
)
from ..models import Passkey
from ..services import PasskeyService
from .factories import UserFactory


class PasskeyServiceTest(TestCase):
    """Passkey 注册、管理与认证计数器"""

    def setUp(self):
        self.service = PasskeyService()
        self.user = UserFactory()

    def add(self, user=None, credential_id='cred-1', **kwargs):
        return self.service.add_passkey(
            user or self.user,
            name=kwargs.pop('name', 'MacBook'),
            credential_id=credential_id,
            public_key='pk-data',
            device_type=kwargs.pop('device_type', 'multiDevice'),
            **kwargs
        )

    def test_add_passkey(self):
        passkey = self.add(transports=['internal', 'hybrid'], backed_up=True)

        self.assertEqual(passkey.user, self.user)
        self.assertEqual(passkey.counter, 0)
        self.assertEqual(passkey.to_dict()['transports'], ['internal', 'hybrid'])

    def test_duplicate_credential(self):
        self.add()

        with self.assertRaises(ValidationError) as cm:
            self.add(user=UserFactory())
        self.assertEqual(cm.exception.error_code, 'PASSKEY_ALREADY_EXISTS')

    def test_invalid_device_type(self):
        with self.assertRaises(ValidationError):
            self.add(device_type='laptop')

    def test_list_only_own_passkeys(self):
        mine = self.add()
        self.add(user=UserFactory(), credential_id='cred-2')

        self.assertEqual(self.service.list_user_passkeys(self.user), [mine])

    def test_update_name(self):
        passkey = self.add()

        self.service.update_passkey(self.user, passkey.id, 'Work laptop')

        passkey.refresh_from_db()
        self.assertEqual(passkey.name, 'Work laptop')

    def test_cannot_modify_other_users_passkey(self):
        passkey = self.add(user=UserFactory())

        with self.assertRaises(PermissionDenied):
            self.service.update_passkey(self.user, passkey.id, 'Mine now')
        with self.assertRaises(PermissionDenied):
            self.service.delete_passkey(self.user, passkey.id)
        self.assertTrue(Passkey.objects.filter(id=passkey.id).exists())

    def test_delete(self):
        passkey = self.add()

        self.service.delete_passkey(self.user, passkey.id)

        self.assertFalse(Passkey.objects.exists())
        with self.assertRaises(PasskeyNotFoundError):
            self.service.delete_passkey(self.user, passkey.id)

    def test_delete_invalid_id(self):
        with self.assertRaises(PasskeyNotFoundError):
            self.service.delete_passkey(self.user, 'not-a-uuid')
        with self.assertRaises(PasskeyNotFoundError):
            self.service.delete_passkey(self.user, uuid.uuid4())

    def test_counter_must_increase(self):
        self.add()

        self.assertEqual(self.service.record_authentication('cred-1', 5), self.user)
        self.assertEqual(Passkey.objects.get().counter, 5)

        with self.assertRaises(AuthenticationError) as cm:
            self.service.record_authentication('cred-1', 5)
        self.assertEqual(cm.exception.error_code, 'PASSKEY_COUNTER_MISMATCH')

    def test_zero_counter_authenticators(self):
        self.add()

        self.service.record_authentication('cred-1', 0)
        self.service.record_authentication('cred-1', 0)

        self.assertEqual(Passkey.objects.get().counter, 0)

    def test_unknown_credential(self):
        with self.assertRaises(PasskeyNotFoundError):
            self.service.record_authentication('missing', 1)
