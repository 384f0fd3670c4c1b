"""
Account provisioning endpoints: create-user-account and setup-admin
"""
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from education.decorators import bearer_admin_required, json_body_required
from . import services

logger = logging.getLogger(__name__)


@csrf_exempt
@require_http_methods(["POST"])
@bearer_admin_required('Only admins can create user accounts')
@json_body_required
def create_user_account(request):
    """Create a login for a teacher, student or parent (admins only)"""
    try:
        result = services.create_account(request.caller, request.json)
    except services.ProvisioningError as e:
        return JsonResponse(e.as_dict(), status=e.status)
    return JsonResponse(result)


@csrf_exempt
@require_http_methods(["POST"])
@json_body_required
def setup_admin(request):
    """
    Grant super_admin or school_admin, creating the school for a new school admin.

    Unauthenticated, as it is used to bootstrap the very first admin.
    """
    try:
        result = services.setup_admin(request.json)
    except services.ProvisioningError as e:
        logger.warning("Admin setup rejected: %s", e)
        return JsonResponse(e.as_dict(), status=e.status)
    return JsonResponse(result)
