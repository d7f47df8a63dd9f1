# config/urls.py

from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Auth, health
    path('', include('apps.core.urls')),

    # Boards, lists, tasks
    path('api/', include('apps.board.urls')),
]

admin.site.site_header = 'Tandem Board Admin'
admin.site.site_title = 'Tandem Board'
admin.site.index_title = 'Administration'
