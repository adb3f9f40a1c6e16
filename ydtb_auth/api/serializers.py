"""
请求参数序列化器
"""

from rest_framework import serializers

from ..constants import WORKSPACE_ROLES, ROLE_MEMBER, OTP_TYPE_EMAIL_VERIFICATION
from ..exceptions import ValidationError


def validate_data(serializer_class, data):
    """
    校验请求数据

    Returns:
        dict: 校验后的数据

    Raises:
        ValidationError: 第一个字段错误
    """
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        field, messages = next(iter(serializer.errors.items()))
        message = messages[0] if isinstance(messages, list) else str(messages)
        if field == 'non_field_errors':
            raise ValidationError(str(message))
        raise ValidationError(f"{field}: {message}", field=field)
    return serializer.validated_data


class SignUpSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    email = serializers.CharField(max_length=255)
    password = serializers.CharField(trim_whitespace=False)


class SignInSerializer(serializers.Serializer):
    email = serializers.CharField(max_length=255)
    password = serializers.CharField(trim_whitespace=False)


class SendVerificationOTPSerializer(serializers.Serializer):
    email = serializers.CharField(max_length=255)
    type = serializers.CharField(max_length=50, required=False, allow_blank=True, default=OTP_TYPE_EMAIL_VERIFICATION)


class VerifyOTPSerializer(serializers.Serializer):
    email = serializers.CharField(max_length=255)
    otp = serializers.CharField(max_length=32)


class SignInEmailOTPSerializer(serializers.Serializer):
    email = serializers.CharField(max_length=255)
    otp = serializers.CharField(max_length=32, required=False, allow_blank=True)


class ResetPasswordEmailOTPSerializer(serializers.Serializer):
    email = serializers.CharField(max_length=255)
    otp = serializers.CharField(max_length=32)
    password = serializers.CharField(trim_whitespace=False)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(trim_whitespace=False)
    new_password = serializers.CharField(trim_whitespace=False)
    revoke_other_sessions = serializers.BooleanField(default=False)


class ForgetPasswordSerializer(serializers.Serializer):
    email = serializers.CharField(max_length=255)
    redirect_to = serializers.CharField(required=False, allow_blank=True, default='/reset-password')


class ResetPasswordSerializer(serializers.Serializer):
    token = serializers.CharField()
    new_password = serializers.CharField(trim_whitespace=False)


class PasswordSerializer(serializers.Serializer):
    password = serializers.CharField(trim_whitespace=False)


class TOTPCodeSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=32)
    two_factor_token = serializers.CharField(required=False)


class PasskeySerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    credential_id = serializers.CharField(max_length=512)
    public_key = serializers.CharField()
    device_type = serializers.CharField(max_length=50)
    backed_up = serializers.BooleanField(default=False)
    transports = serializers.ListField(child=serializers.CharField(), required=False)
    aaguid = serializers.CharField(max_length=64, required=False, allow_null=True)


class PasskeyUpdateSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    name = serializers.CharField(max_length=255)


class CreateWorkspaceSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, allow_blank=True)
    slug = serializers.CharField(max_length=255, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    logo = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    metadata = serializers.DictField(required=False)


class InviteMemberSerializer(serializers.Serializer):
    organization_id = serializers.UUIDField()
    email = serializers.EmailField()
    role = serializers.ChoiceField(choices=WORKSPACE_ROLES, default=ROLE_MEMBER)
    resend = serializers.BooleanField(default=False)
    message = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class UpdateMemberRoleSerializer(serializers.Serializer):
    organization_id = serializers.UUIDField()
    member_id = serializers.UUIDField()
    role = serializers.ChoiceField(choices=WORKSPACE_ROLES)
