"""
检查 YDTB Auth 配置
"""

from django.core.exceptions import ImproperlyConfigured
from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError, connection

from ...conf import auth_settings
from ...models import (
    User, Account, Session, Verification, Passkey, TwoFactor,
    Workspace, WorkspaceMember, Invitation, AuditLog,
)


EXPECTED_MODELS = [
    User, Account, Session, Verification, Passkey, TwoFactor,
    Workspace, WorkspaceMember, Invitation, AuditLog,
]


class Command(BaseCommand):
    help = 'Check YDTB Auth configuration'

    def handle(self, *args, **options):
        """执行配置检查"""
        self.stdout.write("🔍 Checking YDTB Auth configuration...")
        self.stdout.write("=" * 60)

        # 核心配置
        self.stdout.write("\n📋 Core Settings:")
        self.stdout.write(f"  🌍 Environment: {auth_settings.APP_ENV}")
        self.stdout.write(f"  🌐 App URL: {auth_settings.APP_URL}")
        self.stdout.write(f"  🔐 Auth Secret: {'✅ Set' if auth_settings.AUTH_SECRET else '❌ Missing'}")

        # 会话与验证码
        self.stdout.write("\n⚙️  Session & Verification:")
        self.stdout.write(f"  🕐 Session Lifetime: {auth_settings.SESSION_EXPIRES_IN}s")
        self.stdout.write(f"  🔄 Session Update Age: {auth_settings.SESSION_UPDATE_AGE}s")
        self.stdout.write(f"  📧 Require Email Verification: {auth_settings.REQUIRE_EMAIL_VERIFICATION}")
        self.stdout.write(f"  🔢 OTP: {auth_settings.OTP_LENGTH} digits, {auth_settings.OTP_EXPIRES_IN}s, "
                          f"{auth_settings.OTP_ALLOWED_ATTEMPTS} attempts")
        self.stdout.write(f"  ✉️  Invitation Lifetime: {auth_settings.INVITATION_EXPIRES_IN}s")

        # 邮件
        self.stdout.write("\n📮 Email:")
        self.stdout.write(f"  🚦 Rate Limit: {auth_settings.EMAIL_RATE_LIMIT_MAX_ATTEMPTS} per "
                          f"{auth_settings.EMAIL_RATE_LIMIT_WINDOW}s ({auth_settings.EMAIL_RATE_LIMIT_STORE} store)")
        self.stdout.write(f"  📤 Delivery: {'celery' if auth_settings.EMAIL_ASYNC else 'inline'}")
        if auth_settings.is_development() or auth_settings.SKIP_EMAIL_SENDING:
            self.stdout.write("  💡 Emails are logged instead of sent")

        try:
            auth_settings.validate()
        except ImproperlyConfigured as e:
            raise CommandError(f"Configuration check failed: {e}")

        # 数据库连接
        self.stdout.write("\n🔗 Database Connection:")
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            self.stdout.write("  ✅ Connection successful")
        except DatabaseError as e:
            self.stdout.write(f"  ❌ Connection failed: {e}")
            raise CommandError("Database connection failed")

        # 数据表
        tables = set(connection.introspection.table_names())
        expected_tables = [model._meta.db_table for model in EXPECTED_MODELS]
        found = [table for table in expected_tables if table in tables]

        self.stdout.write("\n🗂️  Tables:")
        self.stdout.write(f"  📊 Tables Found: {len(found)}/{len(expected_tables)}")
        for table in expected_tables:
            status = "✅" if table in tables else "❌"
            self.stdout.write(f"    {status} {table}")

        if len(found) != len(expected_tables):
            self.stdout.write("  💡 Run 'python manage.py init_auth' to create the tables")

        # 密钥长度
        secret = auth_settings.AUTH_SECRET or ''
        if len(secret) < 32:
            self.stdout.write("\n🔐 Auth Secret:")
            self.stdout.write(f"  ⚠️  Length: {len(secret)} (recommended: 32+)")

        self.stdout.write(f"\n{'=' * 60}")
        self.stdout.write(self.style.SUCCESS('✅ Configuration check completed!'))
