"""
Tenant models for multi-tenant isolation.

A tenant is one business account. Every IAM and formation record is
scoped to exactly one tenant; per-tenant security policy lives in
TenantSettings.
"""
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet


class TenantQuerySet(BaseModelQuerySet):

    def active(self):
        """Return only active tenants."""
        return self.filter(status=Tenant.STATUS_ACTIVE)


class TenantManager(BaseModelManager.from_queryset(TenantQuerySet)):
    """Manager for tenant lookups."""

    def by_slug(self, slug):
        return self.filter(slug=slug).first()


class Tenant(BaseModel):
    """
    Tenant model representing an isolated business account.
    """

    STATUS_ACTIVE = 'active'
    STATUS_SUSPENDED = 'suspended'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_SUSPENDED, 'Suspended'),
    ]

    name = models.CharField(
        max_length=255,
        help_text="Business or organization name"
    )
    slug = models.SlugField(
        unique=True,
        max_length=100,
        help_text="URL-friendly identifier"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True,
        help_text="Current tenant status"
    )
    contact_email = models.EmailField(
        blank=True,
        help_text="Primary contact email for the account"
    )

    objects = TenantManager()

    class Meta:
        db_table = 'tenants'
        ordering = ['name']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='tenants_status_created_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.slug})"

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE and not self.is_deleted


class TenantSettingsManager(models.Manager):

    def for_tenant(self, tenant):
        """Return the tenant's settings, creating defaults on first access."""
        settings_obj, _ = self.get_or_create(tenant=tenant)
        return settings_obj


class TenantSettings(models.Model):
    """
    Per-tenant security and notification policy.

    Exactly one row per tenant. Values are validated against the ranges
    below by both the model validators and the settings serializer.
    """

    AUDIT_RETENTION_RANGE = (30, 2555)
    SESSION_TIMEOUT_RANGE = (5, 1440)
    MAX_FAILED_LOGIN_RANGE = (3, 10)
    PASSWORD_EXPIRY_RANGE = (0, 365)

    tenant = models.OneToOneField(
        Tenant,
        on_delete=models.CASCADE,
        related_name='settings',
        help_text="Tenant these settings belong to"
    )
    audit_logging_enabled = models.BooleanField(
        default=True,
        help_text="Whether IAM changes are written to the audit log"
    )
    audit_retention_days = models.PositiveIntegerField(
        default=365,
        validators=[MinValueValidator(AUDIT_RETENTION_RANGE[0]), MaxValueValidator(AUDIT_RETENTION_RANGE[1])],
        help_text="Days audit log entries are kept"
    )
    mfa_required = models.BooleanField(
        default=False,
        help_text="Require multi-factor authentication for all members"
    )
    session_timeout_minutes = models.PositiveIntegerField(
        default=60,
        validators=[MinValueValidator(SESSION_TIMEOUT_RANGE[0]), MaxValueValidator(SESSION_TIMEOUT_RANGE[1])],
        help_text="Idle session timeout in minutes"
    )
    max_failed_login_attempts = models.PositiveIntegerField(
        default=5,
        validators=[MinValueValidator(MAX_FAILED_LOGIN_RANGE[0]), MaxValueValidator(MAX_FAILED_LOGIN_RANGE[1])],
        help_text="Failed logins before the account is locked"
    )
    password_expiry_days = models.PositiveIntegerField(
        default=90,
        validators=[MinValueValidator(PASSWORD_EXPIRY_RANGE[0]), MaxValueValidator(PASSWORD_EXPIRY_RANGE[1])],
        help_text="Days before a password must be changed (0 disables expiry)"
    )
    email_notifications_enabled = models.BooleanField(
        default=True,
        help_text="Send IAM notification emails"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantSettingsManager()

    class Meta:
        db_table = 'tenant_settings'
        verbose_name_plural = 'tenant settings'

    EDITABLE_FIELDS = (
        'audit_logging_enabled',
        'audit_retention_days',
        'mfa_required',
        'session_timeout_minutes',
        'max_failed_login_attempts',
        'password_expiry_days',
        'email_notifications_enabled',
    )

    def __str__(self):
        return f"Settings for {self.tenant_id}"

    def as_dict(self):
        return {field: getattr(self, field) for field in self.EDITABLE_FIELDS}
