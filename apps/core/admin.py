# apps/core/admin.py

from django.contrib import admin
from django.utils.html import format_html

from .models import Activity, Board, BoardMember, Comment, Task, TaskAssignee, TaskList


class BoardMemberInline(admin.TabularInline):
    model = BoardMember
    extra = 0
    autocomplete_fields = ['user']


class TaskListInline(admin.TabularInline):
    """Lists of a board. Positions are read-only: only the ordering engine writes them."""

    model = TaskList
    extra = 0
    fields = ['name', 'position']
    readonly_fields = ['position']
    ordering = ['position']
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Board)
class BoardAdmin(admin.ModelAdmin):
    """Admin for boards"""

    list_display = ['name', 'owner', 'background_swatch', 'lists_count', 'members_count', 'is_archived', 'updated_at']
    list_filter = ['is_archived', 'created_at']
    search_fields = ['name', 'description', 'owner__username']
    readonly_fields = ['created_at', 'updated_at']
    autocomplete_fields = ['owner']
    inlines = [BoardMemberInline, TaskListInline]

    def background_swatch(self, obj):
        return format_html(
            '<span style="background-color: {}; padding: 3px 12px; border-radius: 4px;">&nbsp;</span>',
            obj.background
        )

    background_swatch.short_description = 'Background'

    def lists_count(self, obj):
        return obj.lists.count()

    lists_count.short_description = 'Lists'

    def members_count(self, obj):
        return obj.members.count()

    members_count.short_description = 'Members'


@admin.register(BoardMember)
class BoardMemberAdmin(admin.ModelAdmin):
    list_display = ['user', 'board', 'role', 'joined_at']
    list_filter = ['role']
    search_fields = ['user__username', 'user__email', 'board__name']
    autocomplete_fields = ['user', 'board']


@admin.register(TaskList)
class TaskListAdmin(admin.ModelAdmin):
    list_display = ['name', 'board', 'position', 'tasks_count']
    list_filter = ['board']
    search_fields = ['name', 'board__name']
    readonly_fields = ['board', 'position', 'created_at', 'updated_at']

    def tasks_count(self, obj):
        return obj.tasks.filter(is_archived=False).count()

    tasks_count.short_description = 'Tasks'

    def has_add_permission(self, request):
        return False


class TaskAssigneeInline(admin.TabularInline):
    model = TaskAssignee
    extra = 0
    autocomplete_fields = ['user']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    """Admin for tasks. Moving and archiving go through the API so the order stays dense."""

    list_display = ['title', 'task_list', 'position', 'priority_badge', 'is_archived', 'version', 'updated_at']
    list_filter = ['priority', 'is_archived', 'task_list__board']
    search_fields = ['title', 'description', 'task_list__name', 'task_list__board__name']
    readonly_fields = ['task_list', 'position', 'is_archived', 'version', 'created_by', 'created_at', 'updated_at']
    inlines = [TaskAssigneeInline]

    def priority_badge(self, obj):
        colors = {
            'low': '#6B7280',
            'medium': '#3B82F6',
            'high': '#F59E0B',
            'urgent': '#EF4444',
        }
        return format_html(
            '<span style="background-color: {}; color: white; '
            'padding: 3px 8px; border-radius: 4px; font-size: 11px;">{}</span>',
            colors.get(obj.priority, '#6B7280'), obj.get_priority_display()
        )

    priority_badge.short_description = 'Priority'

    def has_add_permission(self, request):
        return False


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['task', 'user', 'short_content', 'created_at']
    search_fields = ['content', 'task__title', 'user__username']
    readonly_fields = ['created_at']

    def short_content(self, obj):
        return obj.content[:60]

    short_content.short_description = 'Content'


@admin.register(Activity)
class ActivityAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'user', 'action', 'entity_type', 'description', 'board']
    list_filter = ['action', 'entity_type']
    search_fields = ['description', 'user__username', 'board__name']
    readonly_fields = [f.name for f in Activity._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
