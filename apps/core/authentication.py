"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    DRF authentication class that uses the user set by TenantContextMiddleware.

    The middleware authenticates Bearer JWTs and X-API-KEY headers and sets
    request.user; this class hands that user to DRF.
    """

    def authenticate(self, request):
        """
        Return the user from the middleware if present.

        Returns:
            tuple: (user, auth) if user is authenticated, None otherwise.
            ``auth`` is the ApiKey instance for key-authenticated requests.
        """
        django_request = request._request

        user = getattr(django_request, 'user', None)
        if user is not None and user.is_authenticated:
            return (user, getattr(django_request, 'api_key', None))

        return None

    def authenticate_header(self, request):
        # Makes DRF answer 401 rather than 403 for anonymous requests
        return 'Bearer realm="api"'
