# apps/board/routing.py

from django.urls import re_path
from . import consumers

websocket_urlpatterns = [
    # One connection per client; boards are joined with `board:join`
    re_path(r'^ws/boards/$', consumers.BoardConsumer.as_asgi()),
]
