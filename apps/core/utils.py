# apps/core/utils.py

import hashlib
from typing import Dict, Optional, Tuple

from django.conf import settings
from django.core.paginator import EmptyPage, Paginator
from django.http import JsonResponse

from .exceptions import BadRequest, Busy


def user_color(username: str) -> str:
    """
    Consistent colour derived from the username
    Used for avatars when there is no picture
    """
    hash_hex = hashlib.md5(username.encode()).hexdigest()
    return f"#{hash_hex[:6]}"


def serialize_user(user):
    """Public shape of a user in API payloads and events"""
    if user is None:
        return None
    return {
        'id': user.pk,
        'username': user.username,
        'name': user.get_full_name() or user.username,
        'email': user.email,
        'color': user_color(user.username),
    }


def api_success(data=None, message: Optional[str] = None, status: int = 200,
                pagination: Optional[Dict] = None) -> JsonResponse:
    payload = {'success': True, 'data': data}
    if message:
        payload['message'] = message
    if pagination is not None:
        payload['pagination'] = pagination
    return JsonResponse(payload, status=status)


def api_error(error) -> JsonResponse:
    response = JsonResponse({'success': False, 'error': error.to_dict()}, status=error.status_code)
    if isinstance(error, Busy):
        response['Retry-After'] = '1'
    return response


def query_int(params, name: str, default: int, minimum: int = 1, maximum: Optional[int] = None) -> int:
    """Reads a positive integer query parameter"""
    raw = params.get(name)
    if raw in (None, ''):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise BadRequest(f"'{name}' must be an integer")
    if value < minimum:
        raise BadRequest(f"'{name}' must be at least {minimum}")
    if maximum is not None:
        value = min(value, maximum)
    return value


def query_bool(params, name: str, default: bool = False) -> bool:
    raw = params.get(name)
    if raw in (None, ''):
        return default
    return raw.lower() in ('1', 'true', 'yes', 'on')


def paginate(queryset, params) -> Tuple[list, Dict]:
    """
    Slices a queryset with ?page=&limit=

    Returns the page items and the pagination block of the response envelope.
    A page past the end is empty rather than an error.
    """
    page_number = query_int(params, 'page', 1)
    limit = query_int(params, 'limit', settings.API_PAGE_SIZE, maximum=settings.API_MAX_PAGE_SIZE)

    paginator = Paginator(queryset, limit)
    try:
        items = list(paginator.page(page_number).object_list)
    except EmptyPage:
        items = []

    total = paginator.count
    return items, {
        'page': page_number,
        'limit': limit,
        'total': total,
        'total_pages': paginator.num_pages if total else 0,
        'has_next': page_number * limit < total,
        'has_prev': page_number > 1,
    }
