"""
Education API views
Issues bearer tokens consumed by the function endpoints
"""
import logging

from django.conf import settings
from django.contrib.auth import authenticate
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .decorators import json_body_required, missing_fields
from .tokens import issue_access_token

logger = logging.getLogger(__name__)


@csrf_exempt
@require_http_methods(["POST"])
@json_body_required
def api_token(request):
    """Exchange email + password for a bearer access token"""
    data = request.json
    missing = missing_fields(data, ['email', 'password'])
    if missing:
        return JsonResponse({'error': f'Missing required fields: {", ".join(missing)}'}, status=400)

    user = authenticate(request, username=data['email'].strip(), password=data['password'])
    if user is None:
        logger.info("Token request rejected for %s", data['email'])
        return JsonResponse({'error': 'Invalid login credentials'}, status=401)

    return JsonResponse({
        'access_token': issue_access_token(user),
        'token_type': 'bearer',
        'expires_in': settings.ACCESS_TOKEN_TTL,
        'user_id': str(user.pk),
    })
