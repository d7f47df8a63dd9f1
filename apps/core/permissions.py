# apps/core/permissions.py

import json
import logging
from functools import wraps

from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .exceptions import BadRequest, BoardError, Forbidden, Internal, NotFound, Unauthenticated
from .utils import api_error

logger = logging.getLogger(__name__)


class BoardPermissions:
    """
    Board-scoped access rules

    Every member reads and edits the board content; only the owner archives
    or deletes the board and manages its members.
    """

    @staticmethod
    def is_board_member(user, board):
        """Checks membership; `board` is a Board or its id"""
        if not user or not user.is_authenticated:
            return False

        from .models import BoardMember

        board_id = getattr(board, 'pk', board)
        return BoardMember.objects.filter(board_id=board_id, user_id=user.pk).exists()

    @staticmethod
    def is_board_owner(user, board):
        if not user or not user.is_authenticated:
            return False

        from .models import Board

        if isinstance(board, Board):
            return board.owner_id == user.pk
        return Board.objects.filter(pk=board, owner_id=user.pk).exists()


def require_authenticated(user):
    if user is None or not user.is_authenticated:
        raise Unauthenticated()


def require_board_member(user, board_id):
    """Loads the board for a member: Unauthenticated, NotFound or Forbidden otherwise"""
    from .models import Board

    require_authenticated(user)

    try:
        board = Board.objects.select_related('owner').get(pk=board_id)
    except Board.DoesNotExist:
        raise NotFound('Board not found')

    if not BoardPermissions.is_board_member(user, board):
        raise Forbidden('You are not a member of this board')

    return board


def require_board_owner(user, board_id, message='Only the board owner can do this'):
    board = require_board_member(user, board_id)
    if not BoardPermissions.is_board_owner(user, board):
        raise Forbidden(message)
    return board


# Decorator for the JSON views

def _parse_body(request):
    if request.method in ('GET', 'HEAD', 'DELETE') or not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise BadRequest('Malformed JSON body')
    if not isinstance(data, dict):
        raise BadRequest('JSON body must be an object')
    return data


def api_view(*methods, login_required=True):
    """
    Wraps a JSON API view

    Restricts the HTTP methods, parses the JSON body into `request.data`,
    requires authentication unless told otherwise and turns BoardError into
    the error envelope. Anything else is logged and answered as `internal`.
    """

    def decorator(view_func):
        @csrf_exempt
        @require_http_methods(list(methods))
        @wraps(view_func)
        def wrapped_view(request, *args, **kwargs):
            try:
                if login_required:
                    require_authenticated(request.user)
                request.data = _parse_body(request)
                return view_func(request, *args, **kwargs)
            except BoardError as e:
                if e.status_code >= 500:
                    logger.warning("%s %s -> %s: %s", request.method, request.path, e.kind, e.message)
                return api_error(e)
            except Exception:
                logger.exception("❌ Unhandled error in %s %s", request.method, request.path)
                return api_error(Internal())

        return wrapped_view

    return decorator
