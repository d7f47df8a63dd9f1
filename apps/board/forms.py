# apps/board/forms.py

import re

from django import forms
from django.conf import settings
from django.forms.models import model_to_dict

from apps.core.forms import validated
from apps.core.models import Board, BoardMember, Task, TaskList

HEX_COLOR = re.compile(r'^#[0-9A-Fa-f]{6}$')


def bind_partial(form_class, instance, data):
    """
    Binds a ModelForm for a PATCH: fields missing from `data` keep the
    instance's current values
    """
    fields = list(form_class.base_fields)
    current = model_to_dict(instance, fields=fields)
    current.update({k: v for k, v in data.items() if k in fields})
    return form_class(data=current, instance=instance)


class BoardForm(forms.ModelForm):
    """Create / edit a board"""

    description = forms.CharField(max_length=500, required=False)

    class Meta:
        model = Board
        fields = ['name', 'description', 'background']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['background'].required = False

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if not name:
            raise forms.ValidationError('Board name is required')
        return name

    def clean_background(self):
        background = self.cleaned_data.get('background')
        if not background:
            return self.instance.background if self.instance.pk else settings.BOARD_DEFAULT_BACKGROUND
        if not HEX_COLOR.match(background):
            raise forms.ValidationError('Background must be a valid hex color')
        return background


class BoardUpdateForm(BoardForm):
    is_archived = forms.BooleanField(required=False)

    class Meta(BoardForm.Meta):
        fields = BoardForm.Meta.fields + ['is_archived']


class MemberForm(forms.Form):
    """Invite by username or e-mail"""

    username = forms.CharField(max_length=150, required=False)
    email = forms.EmailField(required=False)
    role = forms.ChoiceField(
        choices=[c for c in BoardMember.ROLE_CHOICES if c[0] != 'owner'],
        required=False,
    )

    def clean(self):
        cleaned_data = super().clean()
        if not cleaned_data.get('username') and not cleaned_data.get('email'):
            raise forms.ValidationError('Give a username or an email')
        cleaned_data['role'] = cleaned_data.get('role') or 'member'
        return cleaned_data


class TaskListForm(forms.ModelForm):
    class Meta:
        model = TaskList
        fields = ['name']

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if not name:
            raise forms.ValidationError('List name is required')
        return name


class ListOrderForm(forms.Form):
    list_ids = forms.JSONField()

    def clean_list_ids(self):
        list_ids = self.cleaned_data['list_ids']
        if not isinstance(list_ids, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) for i in list_ids
        ):
            raise forms.ValidationError('list_ids must be an array of ids')
        return list_ids


class TaskForm(forms.ModelForm):
    """Task fields shared by create and edit"""

    description = forms.CharField(max_length=2000, required=False)

    class Meta:
        model = Task
        fields = ['title', 'description', 'priority', 'due_date', 'labels']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['priority'].required = False
        self.fields['labels'].required = False

    def clean_title(self):
        title = self.cleaned_data['title'].strip()
        if not title:
            raise forms.ValidationError('Task title is required')
        return title

    def clean_priority(self):
        return self.cleaned_data.get('priority') or 'medium'

    def clean_labels(self):
        labels = self.cleaned_data.get('labels')
        if labels in (None, ''):
            return []
        if not isinstance(labels, list) or not all(isinstance(label, str) for label in labels):
            raise forms.ValidationError('Labels must be an array of strings')
        return labels


class TaskCreateForm(TaskForm):
    list_id = forms.IntegerField()
    assignee_ids = forms.JSONField(required=False)

    def clean_assignee_ids(self):
        ids = self.cleaned_data.get('assignee_ids') or []
        if not isinstance(ids, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
            raise forms.ValidationError('assignee_ids must be an array of user ids')
        return list(dict.fromkeys(ids))


class TaskUpdateForm(TaskForm):
    is_archived = forms.BooleanField(required=False)

    class Meta(TaskForm.Meta):
        fields = TaskForm.Meta.fields + ['is_archived']


class MoveTaskForm(forms.Form):
    """
    Move intent. Range checks on `position` belong to the coordinator, which
    knows the destination size, so negative values pass through here.
    """

    list_id = forms.IntegerField()
    position = forms.IntegerField()
    source_list_id = forms.IntegerField()


class MoveListForm(forms.Form):
    position = forms.IntegerField()


class AssigneeForm(forms.Form):
    user_id = forms.IntegerField()


class CommentForm(forms.Form):
    content = forms.CharField(max_length=5000)

    def clean_content(self):
        content = self.cleaned_data['content'].strip()
        if not content:
            raise forms.ValidationError('Comment cannot be empty')
        return content


class TaskSearchForm(forms.Form):
    query = forms.CharField(max_length=200, required=False)
    priority = forms.ChoiceField(choices=Task.PRIORITY_CHOICES, required=False)
    board_id = forms.IntegerField(required=False)
    assignee_id = forms.IntegerField(required=False)


class BoardFilterForm(forms.Form):
    search = forms.CharField(max_length=200, required=False)
    archived = forms.BooleanField(required=False)
