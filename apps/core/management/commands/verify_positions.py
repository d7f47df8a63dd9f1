# apps/core/management/commands/verify_positions.py

from django.core.management.base import BaseCommand

from apps.board import ordering
from apps.board.locking import board_key, list_key, serialize
from apps.core.models import Board, TaskList


class Command(BaseCommand):
    help = 'Checks that list and task positions are dense (0..N-1), optionally repairing them'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Renumber broken sequences keeping their current order'
        )
        parser.add_argument(
            '--board',
            type=int,
            help='Only check this board'
        )

    def handle(self, *args, **options):
        boards = Board.objects.order_by('pk')
        if options['board']:
            boards = boards.filter(pk=options['board'])

        self.stdout.write('🔍 Verifying positions...')

        broken = 0
        fixed = 0
        checked = 0

        for board in boards.iterator():
            sequences = [(board_key(board.pk), ordering.Sequence.lists(board.pk), f'board {board.pk} lists')]
            for list_id in TaskList.objects.filter(board=board).order_by('position', 'pk').values_list('pk', flat=True):
                sequences.append((list_key(list_id), ordering.Sequence.tasks(list_id), f'list {list_id} tasks'))

            for key, sequence, label in sequences:
                checked += 1
                gaps = ordering.check_density(sequence)
                if not gaps:
                    continue

                broken += 1
                self.stdout.write(
                    self.style.WARNING(f'  ⚠️  {label}: {len(gaps)} rows out of place (first: {gaps[0]})')
                )

                if options['fix']:
                    with serialize(key):
                        fixed += ordering.normalize(sequence)

        if not broken:
            self.stdout.write(self.style.SUCCESS(f'✅ All {checked} sequences are dense'))
        elif options['fix']:
            self.stdout.write(self.style.SUCCESS(f'🔧 Repaired {broken} sequences ({fixed} rows renumbered)'))
        else:
            self.stdout.write(
                self.style.ERROR(f'❌ {broken} of {checked} sequences are broken, run with --fix to repair')
            )
