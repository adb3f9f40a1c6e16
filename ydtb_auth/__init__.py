"""
YDTB Auth

基于 Django 的认证与多租户工作空间库。

核心功能：
- 邮箱密码注册登录，注册后通过邮箱验证码验证
- 会话令牌 (JWT)，滑动续期
- TOTP 两步验证与备用码，Passkey 凭据管理
- 工作空间 (租户)、成员角色与邀请
- 邮件发送频率限制
"""

__version__ = "1.0.0"
__author__ = "YDTB Team"
__description__ = "认证与多租户工作空间库"
