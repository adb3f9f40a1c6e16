"""
初始化 YDTB Auth
"""

from django.core.management import call_command
from django.core.management.base import BaseCommand, CommandError
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError, connection

from ...conf import auth_settings
from ...env import load_env
from ...exceptions import ConfigurationError


class Command(BaseCommand):
    help = 'Initialize YDTB Auth - 校验环境变量并创建数据表'

    def add_arguments(self, parser):
        parser.add_argument(
            '--skip-env-validation',
            action='store_true',
            help='Skip environment variable validation'
        )

    def handle(self, *args, **options):
        """执行初始化"""
        # 1. 环境变量
        self.stdout.write("🔍 Validating environment...")
        try:
            load_env(skip_validation=options['skip_env_validation'] or None)
        except ConfigurationError as e:
            for key, messages in sorted(e.errors.items()):
                self.stdout.write(self.style.ERROR(f"  ❌ {key}: {', '.join(messages)}"))
            raise CommandError(e.message)
        self.stdout.write("✅ Environment validated")

        # 2. 基本配置
        try:
            auth_settings.validate()
        except ImproperlyConfigured as e:
            raise CommandError(f"Configuration error: {e}")

        # 3. 数据库连接
        self.stdout.write("🔗 Testing database connection...")
        try:
            connection.ensure_connection()
        except DatabaseError as e:
            raise CommandError(f"Database connection failed: {e}")
        self.stdout.write("✅ Database connection successful")

        # 4. 建表
        self.stdout.write("🚀 Creating tables...")
        call_command('migrate', run_syncdb=True, interactive=False, verbosity=options['verbosity'])

        self.stdout.write(self.style.SUCCESS('\n🎉 YDTB Auth initialized successfully!'))
        self._show_usage_guide()

    def _show_usage_guide(self):
        """显示使用指南"""
        self.stdout.write('\n' + '=' * 60)
        self.stdout.write('📖 USAGE GUIDE')
        self.stdout.write('=' * 60)
        self.stdout.write('\n1. Add to settings.py:')
        self.stdout.write('   INSTALLED_APPS = [')
        self.stdout.write('       # ... your apps')
        self.stdout.write('       "rest_framework",')
        self.stdout.write('       "ydtb_auth",')
        self.stdout.write('   ]')
        self.stdout.write('\n2. Add to urls.py:')
        self.stdout.write('   urlpatterns = [')
        self.stdout.write('       path("api/", include("ydtb_auth.api.urls")),')
        self.stdout.write('   ]')
        self.stdout.write('\n3. Check status:')
        self.stdout.write('   python manage.py check_auth_config')
        self.stdout.write('\n4. Schedule cleanup:')
        self.stdout.write('   python manage.py cleanup_auth')
        self.stdout.write('\n' + '=' * 60)
