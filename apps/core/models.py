# apps/core/models.py

from django.conf import settings
from django.db import models


class Board(models.Model):
    """
    Collaborative board - aggregates ordered lists and members

    The owner is always a member (role 'owner'); only the owner archives
    or deletes the board.
    """

    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    background = models.CharField(max_length=7, default='#1e3a5f')
    is_archived = models.BooleanField(default=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='owned_boards'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'board'
        ordering = ['-updated_at']

    def __str__(self):
        return self.name

    def create_default_lists(self):
        """Creates the default lists, appended in order"""
        for idx, name in enumerate(settings.BOARD_DEFAULT_LISTS):
            TaskList.objects.create(board=self, name=name, position=idx)


class BoardMember(models.Model):
    """Membership of a user in a board"""

    ROLE_CHOICES = [
        ('owner', 'Owner'),
        ('admin', 'Admin'),
        ('member', 'Member'),
    ]

    board = models.ForeignKey(Board, on_delete=models.CASCADE, related_name='members')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='board_memberships'
    )
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='member')
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'board_member'
        ordering = ['joined_at']
        constraints = [
            models.UniqueConstraint(fields=['board', 'user'], name='uq_board_member'),
        ]

    def __str__(self):
        return f"{self.user} @ {self.board} ({self.role})"


class TaskList(models.Model):
    """
    Ordered column of a board

    `position` is dense and zero-based within the board. There is no unique
    constraint on (board, position): range shifts pass through transient
    duplicates inside the transaction.
    """

    board = models.ForeignKey(Board, on_delete=models.CASCADE, related_name='lists')
    name = models.CharField(max_length=100)
    position = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'task_list'
        ordering = ['position', 'id']
        indexes = [
            models.Index(fields=['board', 'position'], name='task_list_board_position_idx'),
        ]

    def __str__(self):
        return f"{self.name} - {self.board.name}"


class Task(models.Model):
    """
    Unit of work inside a list

    Only non-archived tasks take part in the ordering. `version` goes up on
    every mutation of the task itself so receivers can drop stale events.
    """

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    task_list = models.ForeignKey(TaskList, on_delete=models.CASCADE, related_name='tasks')
    position = models.PositiveIntegerField(default=0)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    due_date = models.DateTimeField(null=True, blank=True)
    labels = models.JSONField(default=list, blank=True)
    is_archived = models.BooleanField(default=False)
    version = models.PositiveIntegerField(default=1)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_tasks'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'task'
        ordering = ['position', 'id']
        indexes = [
            models.Index(fields=['task_list', 'is_archived', 'position'], name='task_list_archived_pos_idx'),
        ]

    def __str__(self):
        return self.title

    @property
    def board_id(self):
        return self.task_list.board_id


class TaskAssignee(models.Model):
    """Assignment of a board member to a task"""

    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='assignees')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='task_assignments'
    )
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'task_assignee'
        ordering = ['assigned_at']
        constraints = [
            models.UniqueConstraint(fields=['task', 'user'], name='uq_task_assignee'),
        ]


class Comment(models.Model):
    """Comments on tasks"""

    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='comments')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'comment'
        ordering = ['-created_at']

    def __str__(self):
        return f"Comment by {self.user} on {self.task}"


class Activity(models.Model):
    """Audit trail entry, written fire-and-forget after a mutation commits"""

    action = models.CharField(max_length=30)
    entity_type = models.CharField(max_length=20)
    entity_id = models.CharField(max_length=64)
    description = models.CharField(max_length=500)
    metadata = models.JSONField(null=True, blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='activities'
    )
    board = models.ForeignKey(
        Board,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='activities'
    )
    task = models.ForeignKey(
        Task,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='activities'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'activity'
        ordering = ['-created_at', '-id']
        verbose_name_plural = 'activities'

    def __str__(self):
        return f"{self.user} {self.description}"
