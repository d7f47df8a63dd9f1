# apps/core/signals.py

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Board, BoardMember


@receiver(post_save, sender=Board)
def create_default_lists(sender, instance, created, raw=False, **kwargs):
    """
    New boards start with the owner as member and the default lists

    Skipped for fixture loading (raw) and when lists already exist.
    """
    if not created or raw:
        return

    BoardMember.objects.get_or_create(
        board=instance,
        user_id=instance.owner_id,
        defaults={'role': 'owner'},
    )

    if not instance.lists.exists():
        instance.create_default_lists()
