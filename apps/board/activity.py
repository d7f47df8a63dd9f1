# apps/board/activity.py

import logging

from django.db import transaction

from apps.core.models import Activity

from .realtime import publish
from .serializers import serialize_activity

logger = logging.getLogger(__name__)


def record_activity(user, description, board=None, task=None, action='updated',
                    entity_type=None, entity_id=None, metadata=None):
    """
    Writes an audit entry after the surrounding transaction commits and
    announces it with `activity:new`

    Fire-and-forget: failures are logged and never reach the caller.
    """
    board_id = getattr(board, 'pk', board)
    task_id = getattr(task, 'pk', task)

    if entity_type is None:
        entity_type = 'task' if task_id else 'board'
    if entity_id is None:
        entity_id = task_id or board_id or ''

    def write():
        try:
            with transaction.atomic():
                activity = Activity.objects.create(
                    action=action,
                    entity_type=entity_type,
                    entity_id=str(entity_id),
                    description=description[:500],
                    metadata=metadata,
                    user=user,
                    board_id=board_id,
                    task_id=task_id,
                )
        except Exception:
            logger.exception("❌ Failed to record activity '%s'", description)
            return

        if board_id:
            publish(board_id, 'activity:new', serialize_activity(activity))

    transaction.on_commit(write)
