# apps/core/middleware.py

from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware

from .auth_service import auth_service


def _bearer_token(header):
    if not header:
        return None
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


class BearerTokenMiddleware:
    """
    Resolves `Authorization: Bearer <token>` for the JSON API

    Runs after AuthenticationMiddleware; a valid token replaces the session
    user, an invalid one leaves it untouched (the view then answers 401).
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        token = _bearer_token(request.META.get('HTTP_AUTHORIZATION'))
        if token:
            user = auth_service.resolve_token(token)
            if user is not None:
                request.user = user

        return self.get_response(request)


@database_sync_to_async
def _resolve_token(token):
    return auth_service.resolve_token(token)


class TokenAuthMiddleware(BaseMiddleware):
    """
    WebSocket counterpart: `ws/boards/?token=<token>`

    Sits inside AuthMiddlewareStack, so a session user stays in place when no
    token is given.
    """

    async def __call__(self, scope, receive, send):
        query = parse_qs(scope.get('query_string', b'').decode())
        token = (query.get('token') or [None])[0]

        if token:
            user = await _resolve_token(token)
            if user is not None:
                scope = dict(scope, user=user)

        return await super().__call__(scope, receive, send)
