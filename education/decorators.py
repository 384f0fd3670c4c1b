"""
Decorators for the JSON function endpoints
"""
import json
from functools import wraps

from django.http import JsonResponse

from .tokens import get_bearer_token, get_user_for_token


def json_body_required(view_func):
    """
    Decorator parsing the request body as a JSON object into ``request.json``.
    Answers 400 with ``{"error": ...}`` when the body is not a JSON object.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            data = json.loads(request.body or b'{}')
        except (ValueError, UnicodeDecodeError):
            return JsonResponse({'error': 'Invalid JSON body'}, status=400)
        if not isinstance(data, dict):
            return JsonResponse({'error': 'Request body must be a JSON object'}, status=400)
        request.json = data
        return view_func(request, *args, **kwargs)
    return wrapper


def bearer_admin_required(forbidden_message='Admin access required'):
    """
    Decorator ensuring the caller presents a valid bearer token and holds an
    admin role (super_admin or school_admin).

    401 when the header is missing or the token does not resolve to an active
    identity, 403 when the identity holds no admin role. The verified caller
    is stored on ``request.caller``.
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            token = get_bearer_token(request)
            if token is None:
                return JsonResponse({'error': 'No authorization header'}, status=401)

            caller = get_user_for_token(token)
            if caller is None:
                return JsonResponse({'error': 'Unauthorized'}, status=401)

            if not caller.is_admin():
                return JsonResponse({'error': forbidden_message}, status=403)

            request.caller = caller
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


def missing_fields(data, required_fields):
    """Names of required fields that are absent or blank in ``data``"""
    missing = []
    for field in required_fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    return missing
