"""
Email authentication backend for the Django admin.
"""
from django.contrib.auth.backends import BaseBackend
from django.contrib.auth import get_user_model


class EmailAuthBackend(BaseBackend):
    """
    Authenticate using email address instead of username.

    Only platform administrators may use the admin site; the API
    authenticates with JWTs and API keys in TenantContextMiddleware.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        User = get_user_model()
        # Django admin passes email as 'username'
        email = username or kwargs.get('email')

        if not email or not password:
            return None

        user = User.objects.by_email(email)
        if user is None:
            # Run the hasher once to reduce the timing difference for unknown users
            User().set_password(password)
            return None

        if user.check_password(password) and user.is_active and not user.is_locked:
            return user

        return None

    def get_user(self, user_id):
        User = get_user_model()
        return User.objects.filter(pk=user_id, is_active=True).first()
