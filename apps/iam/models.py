"""
IAM models for tenant-scoped access control.

Implements:
- Global User identity (can work across multiple tenants)
- TenantUser membership with invite tracking
- Permission (global permission catalog)
- Role, RolePermission, TenantUserRole (per-tenant role definitions and grants)
- Group (members and roles, permissions flow through group roles)
- ApiKey (hashed machine credentials)
- AccessRequest, AccessReview, AccessReviewItem (request and certification flows)
- AuditLog (audit trail with before/after state)
"""
import logging
from decimal import ROUND_HALF_UP, Decimal
from django.contrib.auth.hashers import make_password, check_password
from django.core.validators import MinLengthValidator
from django.utils.crypto import salted_hmac
from django.db import DatabaseError, models, transaction
from django.utils import timezone
from apps.core.log_sanitizer import sanitize_dict_for_logging
from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet

logger = logging.getLogger(__name__)


class UserManager(BaseModelManager):
    """
    Manager for User queries.

    Compatible with Django's authentication system and admin interface.
    """

    def active(self):
        """Return only active users."""
        return self.filter(is_active=True)

    def by_email(self, email):
        """Find user by email (case-insensitive)."""
        return self.filter(email__iexact=(email or '').strip()).first()

    def create_user(self, email, password=None, **extra_fields):
        """Create a new user with hashed password."""
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Create a platform administrator (used by createsuperuser)."""
        extra_fields.setdefault('is_superuser', True)
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')
        return self.create_user(email, password, **extra_fields)

    def normalize_email(self, email):
        """Lowercase the whole address; emails are matched case-insensitively."""
        return (email or '').strip().lower()

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: email})


class User(BaseModel):
    """
    Global user identity - can belong to multiple tenants.

    Authentication happens at the User level, authorization at the
    TenantUser level. ``is_superuser`` marks platform administrators who
    may act across tenants.

    This is the AUTH_USER_MODEL for the entire application, including Django admin.
    """

    email = models.EmailField(
        unique=True,
        help_text="User email address (unique globally)"
    )
    password_hash = models.CharField(
        max_length=255,
        help_text="Hashed password",
        db_column='password_hash'
    )
    first_name = models.CharField(
        max_length=100,
        blank=True,
        help_text="User first name"
    )
    last_name = models.CharField(
        max_length=100,
        blank=True,
        help_text="User last name"
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )
    is_superuser = models.BooleanField(
        default=False,
        help_text="Platform administrator"
    )

    # Login tracking
    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login timestamp"
    )
    failed_login_attempts = models.PositiveIntegerField(
        default=0,
        help_text="Consecutive failed login attempts"
    )
    locked_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the account was locked after too many failed logins"
    )
    password_changed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the password was last set"
    )

    # TOTP multi-factor authentication
    mfa_enabled = models.BooleanField(
        default=False,
        help_text="Whether login requires a TOTP or backup code"
    )
    mfa_secret = models.CharField(
        max_length=64,
        blank=True,
        help_text="Base32 TOTP secret; set at setup, enabled after the first verified code"
    )
    mfa_backup_codes = models.JSONField(
        default=list,
        blank=True,
        help_text="sha256 digests of unused one-time backup codes"
    )

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['email']
        indexes = [
            models.Index(fields=['is_active', 'created_at'], name='users_active_created_idx'),
        ]

    def __str__(self):
        return self.email

    @property
    def password(self):
        """Alias for password_hash; Django admin expects a 'password' attribute."""
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        self.password_hash = make_password(raw_password)
        self.password_changed_at = timezone.now()

    def get_full_name(self):
        """Return full name or email if name not set."""
        if self.first_name or self.last_name:
            return f"{self.first_name} {self.last_name}".strip()
        return self.email

    @property
    def is_locked(self):
        return self.locked_at is not None

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_staff(self):
        return self.is_superuser

    def has_perm(self, perm, obj=None):
        return self.is_superuser

    def has_perms(self, perm_list, obj=None):
        return self.is_superuser

    def has_module_perms(self, app_label):
        return self.is_superuser

    def natural_key(self):
        return (self.email,)

    def get_session_auth_hash(self):
        """HMAC of the password hash; sessions end when the password changes."""
        return salted_hmac(
            'apps.iam.models.User.get_session_auth_hash',
            self.password_hash,
            algorithm='sha256',
        ).hexdigest()


class TenantUserQuerySet(BaseModelQuerySet):

    def active(self):
        return self.filter(is_active=True, invite_status=TenantUser.INVITE_ACCEPTED)


class TenantUserManager(BaseModelManager.from_queryset(TenantUserQuerySet)):
    """Manager for TenantUser queries."""

    def for_tenant(self, tenant):
        """Get all active memberships of a tenant."""
        return self.filter(tenant=tenant, is_active=True)

    def for_user(self, user):
        """Get all active memberships of a user."""
        return self.filter(user=user, is_active=True)

    def get_membership(self, tenant, user):
        """Get specific tenant-user membership."""
        return self.filter(tenant=tenant, user=user, is_active=True).select_related('user').first()


class TenantUser(BaseModel):
    """
    Association between User and Tenant with invite tracking.

    A user can have multiple TenantUser records (one per tenant).
    """

    INVITE_PENDING = 'pending'
    INVITE_ACCEPTED = 'accepted'
    INVITE_REVOKED = 'revoked'
    INVITE_STATUS_CHOICES = [
        (INVITE_PENDING, 'Pending'),
        (INVITE_ACCEPTED, 'Accepted'),
        (INVITE_REVOKED, 'Revoked'),
    ]

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='tenant_users',
        help_text="Tenant this membership belongs to"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='tenant_memberships',
        help_text="User who is a member"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether membership is active"
    )
    invite_status = models.CharField(
        max_length=20,
        choices=INVITE_STATUS_CHOICES,
        default=INVITE_ACCEPTED,
        db_index=True,
        help_text="Invitation status"
    )
    invited_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invitations_sent',
        help_text="User who sent the invitation"
    )
    joined_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When user accepted invitation"
    )
    last_seen_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last activity timestamp in this tenant"
    )

    objects = TenantUserManager()

    class Meta:
        db_table = 'tenant_users'
        unique_together = [('tenant', 'user')]
        ordering = ['user__email']
        indexes = [
            models.Index(fields=['tenant', 'user', 'is_active'], name='tenant_users_active_idx'),
            models.Index(fields=['tenant', 'invite_status'], name='tenant_users_invite_idx'),
        ]

    def __str__(self):
        return f"{self.user.email} @ {self.tenant_id}"

    @property
    def is_usable(self):
        return self.is_active and self.invite_status == self.INVITE_ACCEPTED

    def accept_invitation(self):
        """Accept pending invitation."""
        if self.invite_status == self.INVITE_PENDING:
            self.invite_status = self.INVITE_ACCEPTED
            self.joined_at = timezone.now()
            self.save(update_fields=['invite_status', 'joined_at', 'updated_at'])

    def deactivate(self):
        """Revoke membership; roles and groups stay for the audit trail."""
        self.invite_status = self.INVITE_REVOKED
        self.is_active = False
        self.save(update_fields=['invite_status', 'is_active', 'updated_at'])


class PermissionManager(BaseModelManager):
    """Manager for Permission queries."""

    def by_code(self, code):
        return self.filter(code=code).first()

    def by_category(self, category):
        return self.filter(category=category)

    def get_or_create_permission(self, code, label, description='', category=''):
        """Get or create permission (idempotent)."""
        return self.get_or_create(
            code=code,
            defaults={
                'label': label,
                'description': description,
                'category': category,
            }
        )


class Permission(BaseModel):
    """
    Global permission catalog - shared across all tenants.

    Seeded from apps.iam.catalog by the seed_permissions command and on
    first use by the role services.
    """

    code = models.CharField(
        max_length=100,
        unique=True,
        help_text="Unique permission code (e.g., 'iam:roles:read')"
    )
    label = models.CharField(
        max_length=255,
        help_text="Human-readable label (e.g., 'View roles')"
    )
    description = models.TextField(
        blank=True,
        help_text="Detailed description of what this permission grants"
    )
    category = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Permission category (e.g., 'users', 'roles', 'formation')"
    )

    objects = PermissionManager()

    class Meta:
        db_table = 'permissions'
        ordering = ['category', 'code']

    def __str__(self):
        return f"{self.code} - {self.label}"


class RoleQuerySet(BaseModelQuerySet):

    def active(self):
        return self.filter(is_active=True)


class RoleManager(BaseModelManager.from_queryset(RoleQuerySet)):
    """Manager for Role queries with tenant scoping."""

    def system_roles(self, tenant):
        return self.filter(tenant=tenant, is_system=True, is_active=True)

    def by_name(self, tenant, name):
        """Find an active role by name, ignoring case."""
        return self.filter(tenant=tenant, name__iexact=name.strip(), is_active=True).first()


class Role(BaseModel):
    """
    Per-tenant role definition.

    System roles are seeded for every tenant (Owner, Admin, Member,
    Viewer, Auditor); tenants create custom roles on top. Deleting a role
    deactivates it.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='roles',
        help_text="Tenant this role belongs to"
    )
    name = models.CharField(
        max_length=100,
        validators=[MinLengthValidator(1)],
        help_text="Role name (e.g., 'Owner', 'Compliance Manager')"
    )
    description = models.CharField(
        max_length=500,
        blank=True,
        help_text="Role description"
    )
    is_system = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this is a system-seeded role"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive roles grant nothing and are hidden from lists"
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        help_text="User who created the role"
    )

    objects = RoleManager()

    class Meta:
        db_table = 'roles'
        ordering = ['name']
        indexes = [
            models.Index(fields=['tenant', 'is_system'], name='roles_tenant_system_idx'),
            models.Index(fields=['tenant', 'is_active', 'name'], name='roles_tenant_active_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.tenant_id})"

    def permission_codes(self):
        return sorted(
            self.role_permissions.values_list('permission__code', flat=True)
        )


class RolePermission(models.Model):
    """Maps permissions to roles."""

    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='role_permissions',
        help_text="Role that grants this permission"
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='role_permissions',
        help_text="Permission being granted"
    )

    class Meta:
        db_table = 'role_permissions'
        unique_together = [('role', 'permission')]
        ordering = ['role', 'permission']

    def __str__(self):
        return f"{self.role.name} -> {self.permission.code}"


class TenantUserRoleQuerySet(models.QuerySet):

    def effective(self, now=None):
        """Assignments whose role is active and which have not expired."""
        now = now or timezone.now()
        return self.filter(role__is_active=True).filter(
            models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now)
        )


class TenantUserRole(models.Model):
    """
    Maps roles to tenant users.

    ``expires_at`` is set for time-boxed grants from approved access requests.
    """

    tenant_user = models.ForeignKey(
        TenantUser,
        on_delete=models.CASCADE,
        related_name='user_roles',
        help_text="Tenant user who has this role"
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='user_roles',
        help_text="Role assigned to the user"
    )
    assigned_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        help_text="User who assigned this role"
    )
    assigned_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When role was assigned"
    )
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When a time-boxed assignment stops granting permissions"
    )

    objects = TenantUserRoleQuerySet.as_manager()

    class Meta:
        db_table = 'tenant_user_roles'
        unique_together = [('tenant_user', 'role')]

    def __str__(self):
        return f"{self.tenant_user_id} -> {self.role.name}"

    def clean(self):
        """Validate that tenant_user and role belong to same tenant."""
        super().clean()
        if self.tenant_user_id and self.role_id:
            if self.tenant_user.tenant_id != self.role.tenant_id:
                from django.core.exceptions import ValidationError
                raise ValidationError(
                    "TenantUser and Role must belong to the same tenant"
                )

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)


class GroupQuerySet(BaseModelQuerySet):

    def active(self):
        return self.filter(is_active=True)


class Group(BaseModel):
    """
    Named set of tenant members that shares a set of roles.

    Members receive the permissions of every role attached to the group
    while both group and role are active.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='groups',
        help_text="Tenant this group belongs to"
    )
    name = models.CharField(
        max_length=100,
        help_text="Group name, unique within the tenant"
    )
    description = models.CharField(
        max_length=500,
        blank=True,
        help_text="Group description"
    )
    members = models.ManyToManyField(
        TenantUser,
        related_name='groups',
        blank=True,
        db_table='group_members',
        help_text="Tenant members in this group"
    )
    roles = models.ManyToManyField(
        Role,
        related_name='groups',
        blank=True,
        db_table='group_roles',
        help_text="Roles granted to every member"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive groups grant nothing"
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )

    objects = BaseModelManager.from_queryset(GroupQuerySet)()

    class Meta:
        db_table = 'iam_groups'
        ordering = ['name']
        indexes = [
            models.Index(fields=['tenant', 'is_active', 'name'], name='iam_groups_active_idx'),
        ]

    def __str__(self):
        return self.name


class ApiKeyQuerySet(BaseModelQuerySet):

    def not_revoked(self):
        return self.filter(revoked_at__isnull=True)

    def usable(self, now=None):
        now = now or timezone.now()
        return self.not_revoked().filter(
            models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now)
        )


class ApiKey(BaseModel):
    """
    Machine credential scoped to one tenant.

    Only the sha256 hex digest of the key is stored; ``key_prefix`` (the
    first 12 characters) identifies the key in listings.

    Both owner types authenticate as ``owner``, the user who created the
    key: a service-account key acts through its creator's membership and
    carries exactly its ``scopes``, while a user key is narrowed to what the
    owner currently holds. Removing the creator from the tenant, or deactivating
    them, stops every key they created, service-account keys included.
    """

    OWNER_USER = 'user'
    OWNER_SERVICE_ACCOUNT = 'service_account'
    OWNER_TYPE_CHOICES = [
        (OWNER_USER, 'User'),
        (OWNER_SERVICE_ACCOUNT, 'Service account'),
    ]

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='api_keys',
        help_text="Tenant the key authenticates against"
    )
    name = models.CharField(
        max_length=100,
        validators=[MinLengthValidator(1)],
        help_text="Human-readable key name"
    )
    owner_type = models.CharField(
        max_length=20,
        choices=OWNER_TYPE_CHOICES,
        default=OWNER_USER,
        help_text="Whether the key acts for a user or a service account"
    )
    owner = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='api_keys',
        help_text="Owning user (user keys) or creator (service account keys)"
    )
    key_prefix = models.CharField(
        max_length=12,
        db_index=True,
        help_text="First 12 characters of the key, safe to display"
    )
    key_hash = models.CharField(
        max_length=64,
        unique=True,
        help_text="SHA-256 hex digest of the key"
    )
    scopes = models.JSONField(
        default=list,
        help_text="Permission codes granted to requests made with this key"
    )
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Expiry time; null keys never expire"
    )
    last_used_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last successful authentication"
    )
    last_used_ip = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="Client IP of the last successful authentication"
    )
    revoked_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the key was revoked"
    )
    revoked_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        help_text="User who revoked the key"
    )
    revoked_reason = models.CharField(
        max_length=500,
        blank=True,
        help_text="Why the key was revoked"
    )

    objects = BaseModelManager.from_queryset(ApiKeyQuerySet)()

    class Meta:
        db_table = 'api_keys'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'revoked_at'], name='api_keys_tenant_revoked_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.key_prefix}...)"

    @property
    def is_revoked(self):
        return self.revoked_at is not None

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at <= timezone.now()

    @property
    def is_active(self):
        return not self.is_revoked and not self.is_expired


class AccessRequest(BaseModel):
    """
    A member's request for additional roles or permissions.
    """

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_EXPIRED = 'expired'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_EXPIRED, 'Expired'),
    ]

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='access_requests',
    )
    requester = models.ForeignKey(
        TenantUser,
        on_delete=models.CASCADE,
        related_name='access_requests',
        help_text="Membership asking for access"
    )
    requested_roles = models.ManyToManyField(
        Role,
        related_name='access_requests',
        blank=True,
        db_table='access_request_roles',
    )
    requested_permissions = models.JSONField(
        default=list,
        blank=True,
        help_text="Permission codes requested directly"
    )
    reason = models.TextField(
        max_length=2000,
        help_text="Business justification"
    )
    duration_days = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Requested grant duration; null means permanent"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True,
    )
    approver = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        help_text="User who approved or rejected the request"
    )
    decided_at = models.DateTimeField(null=True, blank=True)
    decision_comment = models.CharField(max_length=1000, blank=True)
    effective_until = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When granted access ends"
    )

    class Meta:
        db_table = 'access_requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'status', 'created_at'], name='access_req_status_idx'),
        ]

    def __str__(self):
        return f"AccessRequest {self.id} ({self.status})"

    @property
    def is_pending(self):
        return self.status == self.STATUS_PENDING


class AccessReview(BaseModel):
    """
    Periodic certification of every member's access.

    Creation snapshots the reviewed memberships into AccessReviewItem rows;
    ``completed_item_count`` counts items that received a first decision.
    """

    STATUS_DRAFT = 'draft'
    STATUS_OPEN = 'open'
    STATUS_CLOSED = 'closed'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_OPEN, 'Open'),
        (STATUS_CLOSED, 'Closed'),
    ]

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='access_reviews',
    )
    name = models.CharField(max_length=200)
    description = models.CharField(max_length=1000, blank=True)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_OPEN,
        db_index=True,
    )
    due_at = models.DateTimeField(null=True, blank=True)
    item_count = models.PositiveIntegerField(default=0)
    completed_item_count = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )

    class Meta:
        db_table = 'access_reviews'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'status'], name='access_rev_status_idx'),
        ]

    def __str__(self):
        return self.name

    @property
    def is_closed(self):
        return self.status == self.STATUS_CLOSED

    @property
    def completion_percentage(self):
        if self.item_count == 0:
            return 0
        # Half-up, so 1 of 8 reports 13 rather than banker's 12
        percentage = Decimal(self.completed_item_count * 100) / Decimal(self.item_count)
        return int(percentage.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


class AccessReviewItem(BaseModel):
    """
    One reviewed membership inside an AccessReview.

    Holds a snapshot of the member's access at review creation so later
    changes do not alter what the reviewer certified.
    """

    DECISION_PENDING = 'pending'
    DECISION_KEEP = 'keep'
    DECISION_REMOVE = 'remove'
    DECISION_CHANGE = 'change'
    DECISION_CHOICES = [
        (DECISION_PENDING, 'Pending'),
        (DECISION_KEEP, 'Keep'),
        (DECISION_REMOVE, 'Remove'),
        (DECISION_CHANGE, 'Change'),
    ]

    review = models.ForeignKey(
        AccessReview,
        on_delete=models.CASCADE,
        related_name='items',
    )
    tenant_user = models.ForeignKey(
        TenantUser,
        on_delete=models.CASCADE,
        related_name='review_items',
    )
    user_email = models.EmailField()
    user_name = models.CharField(max_length=201, blank=True)
    current_roles = models.JSONField(default=list, help_text="[{id, name}] at snapshot time")
    current_permissions = models.JSONField(default=list)
    current_groups = models.JSONField(default=list, help_text="[{id, name}] at snapshot time")
    decision = models.CharField(
        max_length=20,
        choices=DECISION_CHOICES,
        default=DECISION_PENDING,
        db_index=True,
    )
    new_roles = models.JSONField(default=list, help_text="[{id, name}] for 'change' decisions")
    reviewer = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    notes = models.CharField(max_length=1000, blank=True)

    class Meta:
        db_table = 'access_review_items'
        ordering = ['user_email']
        unique_together = [('review', 'tenant_user')]

    def __str__(self):
        return f"{self.user_email} ({self.decision})"


class AuditLogQuerySet(models.QuerySet):

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def older_than(self, cutoff):
        return self.filter(created_at__lt=cutoff)


class AuditLog(models.Model):
    """
    Audit trail of IAM changes and authentication events.

    Rows are append-only; ``before``/``after`` carry only changed keys
    with secrets redacted.
    """

    ACTOR_USER = 'user'
    ACTOR_SERVICE_ACCOUNT = 'service_account'
    ACTOR_SYSTEM = 'system'
    ACTOR_TYPE_CHOICES = [
        (ACTOR_USER, 'User'),
        (ACTOR_SERVICE_ACCOUNT, 'Service account'),
        (ACTOR_SYSTEM, 'System'),
    ]

    id = models.BigAutoField(primary_key=True)
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Tenant this action belongs to (null for platform-level)"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="User who performed the action (null for system actions)"
    )
    actor_email = models.CharField(max_length=254, blank=True)
    actor_type = models.CharField(max_length=20, choices=ACTOR_TYPE_CHOICES, default=ACTOR_USER)

    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action performed (e.g., 'role_created', 'api_key_revoked')"
    )
    target_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Type of target entity (e.g., 'role', 'group', 'api_key')"
    )
    target_id = models.CharField(
        max_length=64,
        blank=True,
        db_index=True,
        help_text="ID of target entity"
    )
    target_name = models.CharField(max_length=255, blank=True)
    summary = models.CharField(max_length=500, blank=True)

    before = models.JSONField(default=dict, blank=True)
    after = models.JSONField(default=dict, blank=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)
    request_id = models.CharField(max_length=100, blank=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['tenant', 'created_at'], name='audit_tenant_created_idx'),
            models.Index(fields=['tenant', 'action', 'created_at'], name='audit_tenant_action_idx'),
            models.Index(fields=['target_type', 'target_id'], name='audit_target_idx'),
        ]

    def __str__(self):
        return f"{self.tenant_id or 'platform'} - {self.actor_email or 'system'} - {self.action}"

    @classmethod
    def log_action(cls, action, user=None, tenant=None, target_type='', target_id=None,
                   target_name='', summary='', before=None, after=None,
                   actor_type=None, actor_email=None, request=None):
        """
        Create an audit log entry.

        Entries are skipped when the tenant has disabled audit logging.
        A failure to write is logged and never breaks the calling operation.
        """
        if tenant is not None and not _audit_enabled(tenant):
            return None

        if user is not None and not user.is_authenticated:
            user = None

        if actor_type is None:
            api_key = getattr(request, 'api_key', None) if request is not None else None
            if api_key is not None and api_key.owner_type == ApiKey.OWNER_SERVICE_ACCOUNT:
                actor_type = cls.ACTOR_SERVICE_ACCOUNT
            else:
                actor_type = cls.ACTOR_USER if user else cls.ACTOR_SYSTEM

        log_data = {
            'action': action,
            'user': user,
            'tenant': tenant,
            'actor_email': actor_email if actor_email is not None else (user.email if user else ''),
            'actor_type': actor_type,
            'target_type': target_type,
            'target_id': str(target_id) if target_id is not None else '',
            'target_name': (target_name or '')[:255],
            'summary': (summary or '')[:500],
            'before': sanitize_dict_for_logging(before or {}),
            'after': sanitize_dict_for_logging(after or {}),
        }

        if request is not None:
            log_data['ip_address'] = get_client_ip(request)
            log_data['user_agent'] = request.META.get('HTTP_USER_AGENT', '')[:500]
            log_data['request_id'] = getattr(request, 'request_id', '') or ''

        try:
            with transaction.atomic():
                return cls.objects.create(**log_data)
        except DatabaseError as e:
            logger.error(
                f"Failed to create audit log: {e}",
                extra={'action': action, 'tenant_id': str(tenant.id) if tenant else None},
                exc_info=True
            )
            return None


def _audit_enabled(tenant):
    from apps.tenants.models import TenantSettings
    return TenantSettings.objects.for_tenant(tenant).audit_logging_enabled


def get_client_ip(request):
    """Extract client IP from request, honoring X-Forwarded-For."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')
