from django.http import HttpResponse


class CorsMiddleware:
    """
    Open CORS for the browser dashboards.

    Every response gets ``Access-Control-Allow-Origin: *``; preflight
    ``OPTIONS`` requests are answered here with an empty 200 and never reach
    the views.
    """
    ALLOW_HEADERS = 'authorization, x-client-info, apikey, content-type'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        # Leave the Django admin alone
        if request.path.startswith('/django-admin/'):
            return self.get_response(request)

        if request.method == 'OPTIONS':
            response = HttpResponse(status=200)
        else:
            response = self.get_response(request)

        response['Access-Control-Allow-Origin'] = '*'
        response['Access-Control-Allow-Headers'] = self.ALLOW_HEADERS
        return response
