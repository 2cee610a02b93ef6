"""
Management command to create the staff role groups.

Usage:
    python manage.py ensure_role_groups

Idempotent. Role membership is what the API permission classes check, so
every deployment needs these groups before staff accounts are assigned.
"""
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from apps.core.permissions import RoleChoices


class Command(BaseCommand):
    help = 'Create the role groups (admin, doctor, nurse, reception, lab)'

    def handle(self, *args, **options):
        created_count = 0
        existing_count = 0

        for role in RoleChoices:
            _, created = Group.objects.get_or_create(name=role.value)
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f'✓ Created group: {role.value}'))
            else:
                existing_count += 1
                self.stdout.write(self.style.WARNING(f'→ Group already exists: {role.value}'))

        self.stdout.write(
            self.style.SUCCESS(f'\nSummary: {created_count} created, {existing_count} existing')
        )
