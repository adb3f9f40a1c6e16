"""
清理过期数据

邮件频率限制计数不在此清理: 内存存储只存在于服务进程中，cache 存储依靠 TTL 过期。
"""

from django.core.management.base import BaseCommand

from ...services import AuthService, OTPService, WorkspaceService


class Command(BaseCommand):
    help = 'Delete expired sessions and verifications, expire stale invitations'

    def handle(self, *args, **options):
        sessions = AuthService.cleanup_expired_sessions()
        verifications = OTPService.cleanup_expired()
        invitations = WorkspaceService.expire_stale_invitations()

        self.stdout.write(f"🧹 Expired sessions deleted: {sessions}")
        self.stdout.write(f"🧹 Expired verifications deleted: {verifications}")
        self.stdout.write(f"🧹 Stale invitations expired: {invitations}")
        self.stdout.write(self.style.SUCCESS('✅ Cleanup completed'))
