"""
Authentication stub.

There is a single demo user; every request is attributed to DEMO_USER_ID.
Views still go through auth_required so a real check can replace this later.
"""
import logging
from functools import wraps
from typing import Callable

from django.conf import settings
from django.http import HttpRequest

logger = logging.getLogger(__name__)


def get_user_id(request: HttpRequest) -> str:
    """Return the id of the user making the request."""
    return getattr(settings, 'DEMO_USER_ID', 'demo-user-1')


def auth_required(view_func: Callable) -> Callable:
    """
    Decorator that attaches the requesting user id to request.user_id.

    Usage:
        @auth_required
        def my_view(request):
            user_id = request.user_id
            ...
    """
    @wraps(view_func)
    def wrapper(request: HttpRequest, *args, **kwargs):
        request.user_id = get_user_id(request)
        return view_func(request, *args, **kwargs)

    return wrapper
