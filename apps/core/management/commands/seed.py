# apps/core/management/commands/seed.py

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.board import coordinator, services
from apps.core.models import Board

User = get_user_model()

DEMO_PASSWORD = 'tandem123'

DEMO_USERS = [
    ('alice', 'alice@example.com', 'Alice', 'Martin'),
    ('bob', 'bob@example.com', 'Bob', 'Silva'),
    ('carol', 'carol@example.com', 'Carol', 'Nguyen'),
]

DEMO_TASKS = {
    'To Do': [
        ('Write onboarding guide', 'medium', ['docs']),
        ('Design list drag handle', 'low', ['ui']),
        ('Audit board permissions', 'high', ['security']),
    ],
    'In Progress': [
        ('WebSocket reconnect backoff', 'high', ['realtime']),
        ('Activity feed pagination', 'medium', ['api']),
    ],
    'Done': [
        ('Token authentication', 'urgent', ['api', 'security']),
    ],
}


class Command(BaseCommand):
    help = 'Creates demo users and a sample board (development only)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--force',
            action='store_true',
            help='Seed even when DEBUG is off'
        )

    def handle(self, *args, **options):
        if not settings.DEBUG and not options['force']:
            raise CommandError('🚫 Seeding is only allowed with DEBUG on (use --force to override)')

        self.stdout.write('🌱 Seeding demo data...')

        users = self._create_users()
        owner = users[0]

        if Board.objects.filter(owner=owner, name='Demo board').exists():
            self.stdout.write(self.style.WARNING('⚠️  Demo board already exists, nothing to do'))
            return

        board = self._create_board(owner, users[1:])

        self.stdout.write(
            self.style.SUCCESS(
                f'\n✅ Demo data ready!\n'
                f'\n'
                f'  Board: "{board["name"]}" (id {board["id"]})\n'
                f'  Users: {", ".join(u.username for u in users)}\n'
                f'  Password: {DEMO_PASSWORD}\n'
            )
        )

    def _create_users(self):
        users = []
        for username, email, first_name, last_name in DEMO_USERS:
            user, created = User.objects.get_or_create(
                username=username,
                defaults={'email': email, 'first_name': first_name, 'last_name': last_name},
            )
            if created:
                user.set_password(DEMO_PASSWORD)
                user.save()
                self.stdout.write(f'  👤 Created user {username}')
            users.append(user)
        return users

    def _create_board(self, owner, members):
        """Builds the board through the services so positions follow the engine"""
        with transaction.atomic():
            board = services.create_board(owner, {
                'name': 'Demo board',
                'description': 'Sample board created by the seed command',
            })
            for member in members:
                services.add_member(owner, board['id'], {'username': member.username})

            lists = {tl['name']: tl['id'] for tl in services.get_board(owner, board['id'])['lists']}
            created = []
            for list_name, tasks in DEMO_TASKS.items():
                if list_name not in lists:
                    lists[list_name] = services.create_list(owner, board['id'], {'name': list_name})['id']
                for title, priority, labels in tasks:
                    created.append(services.create_task(owner, {
                        'list_id': lists[list_name],
                        'title': title,
                        'priority': priority,
                        'labels': labels,
                        'assignee_ids': [members[len(created) % len(members)].pk] if members else [],
                    }))

            # One move so the activity feed has something to show
            if created:
                coordinator.move_task(owner, created[0]['id'], created[0]['list_id'], 1)

        self.stdout.write(f'  📋 Created board with {len(created)} tasks')
        return board
