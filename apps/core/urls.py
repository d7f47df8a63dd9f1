# apps/core/urls.py

from django.urls import path
from . import views

app_name = 'core'

urlpatterns = [
    # === AUTHENTICATION ===
    path('api/auth/signup/', views.signup, name='signup'),
    path('api/auth/token/', views.issue_token, name='issue_token'),
    path('api/auth/me/', views.me, name='me'),
    path('api/users/search/', views.search_users, name='search_users'),

    # === MONITORING ===
    path('health/', views.health_check, name='health'),
]
