# apps/board/ordering.py

"""
Ordering engine - dense integer positions

Tasks are ordered inside a list (non-archived tasks only) and lists inside a
board. After every completed operation the positions of a sequence with N
rows are exactly 0..N-1. This module is the only writer of `position`.

Every shift is one range UPDATE (`F('position') ± 1`). Callers run these
functions while holding the serialization point of the sequences involved
(see `apps.board.locking`); apply_move additionally wraps its writes in a
single atomic block.
"""

import logging

from django.db import transaction
from django.db.models import F

from apps.core.models import Task, TaskList

logger = logging.getLogger(__name__)


class Sequence:
    """Ordered rows of one model sharing a parent"""

    def __init__(self, model, parent_field, parent_id, **filters):
        self.model = model
        self.parent_field = parent_field
        self.parent_id = parent_id
        self.filters = filters

    @classmethod
    def tasks(cls, list_id):
        return cls(Task, 'task_list_id', list_id, is_archived=False)

    @classmethod
    def lists(cls, board_id):
        return cls(TaskList, 'board_id', board_id)

    @property
    def key(self):
        return (self.model._meta.label, self.parent_id)

    def __eq__(self, other):
        return isinstance(other, Sequence) and self.key == other.key

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return f"<Sequence {self.model.__name__} {self.parent_field}={self.parent_id}>"

    def rows(self):
        return self.model.objects.filter(**{self.parent_field: self.parent_id}, **self.filters)

    def count(self, exclude_pk=None):
        qs = self.rows()
        if exclude_pk is not None:
            qs = qs.exclude(pk=exclude_pk)
        return qs.count()


def next_position(sequence):
    """Insertion point for an appended row"""
    return sequence.count()


def reindex_for_insert(sequence, target_index, exclude_pk=None):
    """Opens a slot: positions >= target_index go up by one"""
    qs = sequence.rows().filter(position__gte=target_index)
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    return qs.update(position=F('position') + 1)


def reindex_for_removal(sequence, source_position, exclude_pk=None):
    """Closes a slot: positions > source_position go down by one"""
    qs = sequence.rows().filter(position__gt=source_position)
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    return qs.update(position=F('position') - 1)


def clamp(target_index, count):
    return max(0, min(target_index, count))


def apply_move(entity, source, target, source_position, target_index, update_fields=()):
    """
    Moves `entity` from `source_position` in `source` to `target_index` in
    `target` and saves it

    Returns the final index. `target_index` is clamped to the valid range of
    the destination; callers reject out-of-range input beforehand. Extra
    `update_fields` are saved together with the new position.
    """
    same = source == target
    count = target.count(exclude_pk=entity.pk) if same else target.count()
    target_index = clamp(target_index, count)

    if same and target_index == source_position:
        return target_index

    with transaction.atomic():
        if same:
            qs = source.rows().exclude(pk=entity.pk)
            if target_index > source_position:
                qs.filter(
                    position__gt=source_position, position__lte=target_index
                ).update(position=F('position') - 1)
            else:
                qs.filter(
                    position__gte=target_index, position__lt=source_position
                ).update(position=F('position') + 1)
        else:
            reindex_for_removal(source, source_position, exclude_pk=entity.pk)
            reindex_for_insert(target, target_index, exclude_pk=entity.pk)
            setattr(entity, target.parent_field, target.parent_id)

        entity.position = target_index
        fields = ['position', *update_fields]
        if not same:
            fields.append(target.parent_field.removesuffix('_id'))
        entity.save(update_fields=fields)

    return target_index


def check_density(sequence):
    """Returns the positions out of place, empty when the sequence is dense"""
    positions = list(sequence.rows().order_by('position', 'pk').values_list('position', flat=True))
    return [
        (expected, actual)
        for expected, actual in enumerate(positions)
        if expected != actual
    ]


def normalize(sequence):
    """
    Rewrites positions to 0..N-1 keeping the current order

    Repair tool for `verify_positions --fix`, never used on the request path.
    """
    fixed = 0
    with transaction.atomic():
        for index, row in enumerate(sequence.rows().order_by('position', 'pk').only('pk', 'position')):
            if row.position != index:
                sequence.model.objects.filter(pk=row.pk).update(position=index)
                fixed += 1

    if fixed:
        logger.warning("🔧 Renumbered %d rows in %r", fixed, sequence)
    return fixed
