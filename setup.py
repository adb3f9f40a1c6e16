"""
YDTB Auth
基于 Django 的认证与多租户工作空间库
"""

from setuptools import setup, find_packages
import os

# 读取 README 文件
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return "YDTB Auth - 认证与多租户工作空间库"

setup(
    name="ydtb-auth",
    version="1.0.0",
    author="YDTB Team",
    description="Django 认证与多租户工作空间库: 邮箱验证码、会话、两步验证、工作空间邀请",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["docs*", "examples*"]),
    include_package_data=True,
    package_data={
        "ydtb_auth": [
            "templates/ydtb_auth/email/*",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Framework :: Django",
        "Framework :: Django :: 4.2",
        "Framework :: Django :: 5.0",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: System :: Systems Administration :: Authentication/Directory",
    ],
    keywords="django multi-tenant authentication otp totp passkey workspace invitation",
    python_requires=">=3.9",
    install_requires=[
        "Django>=4.2,<5.1",
        "djangorestframework>=3.14.0",
        "python-decouple>=3.8",
        "python-dotenv>=1.0.0",
        "cryptography>=41.0.0",
        "PyJWT>=2.8.0",
        "psycopg2-binary>=2.9.0",
        "redis>=4.5.0",
        "celery>=5.3.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-django>=4.5.0",
            "pytest-cov>=4.1.0",
            "black>=23.3.0",
            "flake8>=6.0.0",
            "isort>=5.12.0",
            "mypy>=1.4.0",
            "factory-boy>=3.2.0",
            "faker>=18.6.0",
            "django-cors-headers>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ydtb-auth=ydtb_auth.cli:main",
        ],
        "django.apps": [
            "ydtb_auth=ydtb_auth.apps.YdtbAuthConfig",
        ],
    },
    zip_safe=False,
    platforms=["any"],
    license="MIT",
)
