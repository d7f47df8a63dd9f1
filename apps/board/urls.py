# apps/board/urls.py

from django.urls import path
from . import views

app_name = 'board'

urlpatterns = [
    # Boards
    path('boards/', views.boards, name='boards'),
    path('boards/<int:board_id>/', views.board_detail, name='board_detail'),
    path('boards/<int:board_id>/members/', views.board_members, name='board_members'),
    path('boards/<int:board_id>/members/<int:user_id>/', views.board_member_detail, name='board_member_detail'),
    path('boards/<int:board_id>/activities/', views.board_activities, name='board_activities'),
    path('boards/<int:board_id>/presence/', views.board_presence, name='board_presence'),

    # Lists
    path('boards/<int:board_id>/lists/', views.board_lists, name='board_lists'),
    path('boards/<int:board_id>/lists/order/', views.list_order, name='list_order'),
    path('lists/<int:list_id>/', views.list_detail, name='list_detail'),
    path('lists/<int:list_id>/move/', views.list_move, name='list_move'),

    # Tasks
    path('tasks/', views.tasks, name='tasks'),
    path('tasks/search/', views.task_search, name='task_search'),
    path('tasks/<int:task_id>/', views.task_detail, name='task_detail'),
    path('tasks/<int:task_id>/move/', views.task_move, name='task_move'),
    path('tasks/<int:task_id>/assignees/', views.task_assignees, name='task_assignees'),
    path('tasks/<int:task_id>/assignees/<int:user_id>/', views.task_assignee_detail, name='task_assignee_detail'),
    path('tasks/<int:task_id>/comments/', views.task_comments, name='task_comments'),
]
