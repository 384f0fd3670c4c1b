"""
Bearer access tokens for the JSON endpoints.

Tokens are signed with Django's signing framework (keyed on SECRET_KEY) and
carry only the identity id; they expire after settings.ACCESS_TOKEN_TTL
seconds.
"""
import logging

from django.conf import settings
from django.core import signing

from .models import CustomUser

logger = logging.getLogger(__name__)

TOKEN_SALT = 'education.access-token'
BEARER_PREFIX = 'Bearer '


def issue_access_token(user):
    return signing.dumps({'uid': str(user.pk)}, salt=TOKEN_SALT, compress=True)


def get_user_for_token(token):
    """Active identity the token was issued to, or None if invalid or expired"""
    if not token:
        return None
    try:
        payload = signing.loads(token, salt=TOKEN_SALT, max_age=settings.ACCESS_TOKEN_TTL)
    except signing.SignatureExpired:
        logger.info("Rejected expired access token")
        return None
    except signing.BadSignature:
        logger.warning("Rejected access token with bad signature")
        return None
    return CustomUser.objects.filter(pk=payload.get('uid'), is_active=True).first()


def get_bearer_token(request):
    """Raw token from the Authorization header; None when the header is absent"""
    header = request.headers.get('Authorization')
    if not header:
        return None
    return header.replace(BEARER_PREFIX, '', 1).strip()
