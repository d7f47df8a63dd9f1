# apps/core/views.py

import logging

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import transaction
from django.db.models import Q
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET

from .auth_service import auth_service
from .exceptions import BadRequest, Unauthenticated
from .forms import SignupForm, TokenForm, UserSearchForm, validated
from .models import BoardMember
from .permissions import api_view, require_board_member
from .utils import api_success, serialize_user

logger = logging.getLogger(__name__)

User = get_user_model()

VERSION = '0.1.0'

USER_SEARCH_LIMIT = 10
USER_SEARCH_MAX_LIMIT = 20


@api_view('POST', login_required=False)
def signup(request):
    """Creates an account and returns a token for it"""
    cleaned = validated(SignupForm(data=request.data))

    with transaction.atomic():
        user = auth_service.register(cleaned)

    return api_success({
        'token': auth_service.issue_token(user),
        'expires_in': auth_service.max_age,
        'user': serialize_user(user),
    }, 'Account created', status=201)


@api_view('POST', login_required=False)
def issue_token(request):
    """
    Exchanges username (or email) and password for a bearer token

    Use it as `Authorization: Bearer <token>` on the API and as
    `ws/boards/?token=<token>` on the WebSocket.
    """
    form = TokenForm(data=request.data)
    if not form.is_valid():
        raise BadRequest('Username and password are required')

    user = auth_service.authenticate(form.cleaned_data['username'], form.cleaned_data['password'])
    if user is None:
        raise Unauthenticated('Invalid credentials')

    logger.info("🔑 Token issued for %s", user.username)
    return api_success({
        'token': auth_service.issue_token(user),
        'expires_in': auth_service.max_age,
        'user': serialize_user(user),
    }, 'Login successful')


@api_view('GET')
def me(request):
    return api_success(serialize_user(request.user))


@api_view('GET')
def search_users(request):
    """
    Active users whose username, name or email contains `query`

    With `board_id`, members of that board are left out so the result can be
    offered as invitees.
    """
    filters = validated(UserSearchForm(data=request.GET))
    query = filters['query'].strip()
    if not query:
        return api_success([])

    users = User.objects.filter(is_active=True).filter(
        Q(username__icontains=query)
        | Q(first_name__icontains=query)
        | Q(last_name__icontains=query)
        | Q(email__icontains=query)
    )
    if filters['board_id'] is not None:
        board = require_board_member(request.user, filters['board_id'])
        users = users.exclude(pk__in=BoardMember.objects.filter(board=board).values('user_id'))

    limit = min(filters['limit'] or USER_SEARCH_LIMIT, USER_SEARCH_MAX_LIMIT)
    return api_success([serialize_user(u) for u in users.order_by('username')[:limit]])


@require_GET
def health_check(request):
    """
    Health check for monitoring
    """
    try:
        # Database
        User.objects.exists()

        # Cache (Redis in production)
        cache.set('health_check', 'ok', 60)
        cache.get('health_check')

        return JsonResponse({
            'status': 'healthy',
            'database': 'ok',
            'cache': 'ok',
            'timestamp': timezone.now().isoformat(),
            'version': VERSION,
        })

    except Exception as e:
        logger.exception("❌ Health check failed")
        return JsonResponse({
            'status': 'unhealthy',
            'error': str(e),
            'timestamp': timezone.now().isoformat(),
            'version': VERSION,
        }, status=503)
