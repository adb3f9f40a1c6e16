"""
YDTB Auth CLI 工具
提供命令行接口，在 Django 项目根目录中包装 manage.py 命令
"""

import os
import sys
import argparse
import subprocess


def main(argv=None):
    """CLI 主入口"""
    parser = argparse.ArgumentParser(
        description='YDTB Auth 管理工具',
        prog='ydtb-auth'
    )
    subparsers = parser.add_subparsers(dest='command', help='可用命令')

    # 初始化命令
    init_parser = subparsers.add_parser('init', help='校验环境变量并创建数据表')
    init_parser.add_argument(
        '--skip-env-validation',
        action='store_true',
        help='跳过环境变量校验'
    )

    # 检查配置命令
    subparsers.add_parser('check-config', help='检查配置、数据库连接和数据表')

    # 清理命令
    subparsers.add_parser('cleanup', help='清理过期会话、验证码和邀请')

    # 生成 .env.example
    generate_env_parser = subparsers.add_parser('generate-env', help='生成 .env.example')
    generate_env_parser.add_argument('--output', default='.env.example', help='输出文件')

    # 运行开发服务器命令
    runserver_parser = subparsers.add_parser('runserver', help='运行开发服务器')
    runserver_parser.add_argument('--port', type=int, default=8000, help='端口号')
    runserver_parser.add_argument('--host', default='127.0.0.1', help='主机地址')

    # 运行测试命令
    test_parser = subparsers.add_parser('test', help='运行测试')
    test_parser.add_argument('--coverage', action='store_true', help='生成覆盖率报告')
    test_parser.add_argument('path', nargs='?', help='指定测试路径')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        'init': init_project,
        'check-config': check_config,
        'cleanup': cleanup,
        'generate-env': generate_env,
        'runserver': run_server,
        'test': run_tests,
    }

    try:
        return commands[args.command](args)
    except subprocess.CalledProcessError as e:
        print(f"错误: 命令执行失败 (exit {e.returncode})")
        return e.returncode


def manage(*arguments, check=True):
    """执行 manage.py 命令"""
    if not os.path.exists('manage.py'):
        print("错误: 未找到 manage.py 文件。请确保在 Django 项目根目录中运行此命令。")
        sys.exit(1)
    return subprocess.run([sys.executable, 'manage.py', *arguments], check=check)


def init_project(args):
    """初始化认证系统"""
    print("正在初始化 YDTB Auth ...")
    arguments = ['init_auth']
    if args.skip_env_validation:
        arguments.append('--skip-env-validation')
    manage(*arguments)
    print("✅ YDTB Auth 初始化完成！")
    print("🚀 现在可以运行 'ydtb-auth runserver' 启动开发服务器")
    return 0


def check_config(args):
    manage('check_auth_config')
    return 0


def cleanup(args):
    manage('cleanup_auth')
    return 0


def generate_env(args):
    manage('generate_env_example', '--output', args.output)
    return 0


def run_server(args):
    """运行开发服务器"""
    manage('runserver', f'{args.host}:{args.port}', check=False)
    return 0


def run_tests(args):
    """运行测试"""
    cmd = [sys.executable, '-m', 'pytest']
    if args.coverage:
        cmd.extend(['--cov=ydtb_auth', '--cov-report=term-missing', '--cov-report=html'])
    if args.path:
        cmd.append(args.path)

    subprocess.run(cmd, check=True)
    if args.coverage:
        print("覆盖率报告已生成: htmlcov/index.html")
    return 0


if __name__ == '__main__':
    sys.exit(main())
