"""
Sentry utilities for adding context and capturing errors.
"""
import sentry_sdk
from django.conf import settings


def set_tenant_context(tenant):
    """
    Set tenant context in Sentry for error tracking.
    """
    if not settings.SENTRY_DSN:
        return

    sentry_sdk.set_context("tenant", {
        "id": str(tenant.id),
        "name": tenant.name,
        "slug": tenant.slug,
        "status": tenant.status,
    })
    sentry_sdk.set_tag("tenant_id", str(tenant.id))
    sentry_sdk.set_tag("tenant_slug", tenant.slug)


def set_user_context(user, membership=None):
    """
    Set user context in Sentry. Only identifiers are sent, never email.
    """
    if not settings.SENTRY_DSN:
        return

    user_data = {
        "id": str(user.id),
        "is_active": user.is_active,
    }
    if membership is not None:
        user_data["tenant_id"] = str(membership.tenant_id)
        user_data["membership_active"] = membership.is_active

    sentry_sdk.set_user(user_data)


def capture_exception(exception, **tags):
    """
    Capture an exception in Sentry, tagging it with the given values.
    """
    if not settings.SENTRY_DSN:
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in tags.items():
            if value is not None:
                scope.set_tag(key, str(value))
        sentry_sdk.capture_exception(exception)
