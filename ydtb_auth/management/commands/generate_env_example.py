"""
生成 .env.example
"""

from pathlib import Path

from django.core.management.base import BaseCommand

from ...env import generate_env_example


class Command(BaseCommand):
    help = 'Generate .env.example from the registered environment schemas'

    def add_arguments(self, parser):
        parser.add_argument('--output', default='.env.example', help='Output file path')
        parser.add_argument('--stdout', action='store_true', help='Print instead of writing a file')

    def handle(self, *args, **options):
        content = generate_env_example()

        if options['stdout']:
            self.stdout.write(content)
            return

        output = Path(options['output'])
        output.write_text(content)
        self.stdout.write(self.style.SUCCESS(f'✅ Generated {output}'))
