"""
IAM serializers for REST API endpoints.

Provides serialization for:
- Authentication (registration, login, profile)
- Tenant members and role assignments
- Roles, permissions and groups
- API keys
- Access requests and access reviews
- Audit logs
"""
from django.contrib.auth.password_validation import validate_password
from django.utils import timezone
from rest_framework import serializers

from apps.iam.models import (
    AccessRequest, AccessReview, AccessReviewItem, ApiKey, AuditLog, Group,
    Permission, Role, TenantUser, TenantUserRole, User,
)


# ===== AUTHENTICATION SERIALIZERS =====

class RegistrationSerializer(serializers.Serializer):
    """Serializer for user registration."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    business_name = serializers.CharField(required=True, max_length=200)

    def validate_email(self, value):
        """Normalize email to lowercase."""
        return value.strip().lower()

    def validate_password(self, value):
        """Validate password strength."""
        validate_password(value)
        return value

    def validate_business_name(self, value):
        """Validate business name is not empty."""
        if not value.strip():
            raise serializers.ValidationError(
                "Business name cannot be empty."
            )
        return value.strip()


class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    mfa_code = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=20,
        help_text="TOTP or backup code, required when MFA is enabled"
    )

    def validate_email(self, value):
        """Normalize email to lowercase."""
        return value.strip().lower()


class RefreshTokenSerializer(serializers.Serializer):
    refresh_token = serializers.CharField(required=True)


class LogoutSerializer(serializers.Serializer):
    refresh_token = serializers.CharField(required=False, allow_blank=True)


class ChangePasswordSerializer(serializers.Serializer):
    """Serializer for changing the caller's own password."""

    current_password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    new_password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_new_password(self, value):
        validate_password(value)
        return value


class MfaVerifySerializer(serializers.Serializer):
    code = serializers.RegexField(
        r'^\d{6}$',
        required=True,
        error_messages={'invalid': 'Code must be 6 digits'},
    )


class MfaDisableSerializer(serializers.Serializer):
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


class MfaStatusSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()
    enforced = serializers.BooleanField()
    backup_codes_remaining = serializers.IntegerField()


class UserSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name',
            'is_active', 'is_superuser', 'mfa_enabled', 'last_login_at', 'created_at',
        ]
        read_only_fields = fields


class MembershipSummarySerializer(serializers.ModelSerializer):
    """A user's membership as seen from the user (workspace switcher)."""

    tenant_id = serializers.UUIDField(source='tenant.id', read_only=True)
    tenant_name = serializers.CharField(source='tenant.name', read_only=True)
    tenant_slug = serializers.CharField(source='tenant.slug', read_only=True)
    roles = serializers.SerializerMethodField()

    class Meta:
        model = TenantUser
        fields = ['id', 'tenant_id', 'tenant_name', 'tenant_slug', 'roles', 'joined_at']
        read_only_fields = fields

    def get_roles(self, obj):
        return sorted(
            ur.role.name for ur in obj.user_roles.effective().select_related('role')
        )


class UserProfileSerializer(UserSerializer):
    """User profile with all active tenant memberships (GET /v1/auth/me)."""

    tenants = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['tenants']
        read_only_fields = fields

    def get_tenants(self, obj):
        memberships = TenantUser.objects.for_user(obj).select_related('tenant')
        return MembershipSummarySerializer(memberships, many=True).data


# ===== MEMBER SERIALIZERS =====

class RoleRefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ['id', 'name', 'is_system']
        read_only_fields = fields


class GroupRefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Group
        fields = ['id', 'name']
        read_only_fields = fields


class TenantMemberSerializer(serializers.ModelSerializer):
    """
    A tenant member: the user identity plus membership state, roles and groups.
    """

    user_id = serializers.UUIDField(source='user.id', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    first_name = serializers.CharField(source='user.first_name', read_only=True)
    last_name = serializers.CharField(source='user.last_name', read_only=True)
    is_locked = serializers.BooleanField(source='user.is_locked', read_only=True)
    last_login_at = serializers.DateTimeField(source='user.last_login_at', read_only=True)
    status = serializers.SerializerMethodField()
    roles = serializers.SerializerMethodField()
    groups = serializers.SerializerMethodField()

    class Meta:
        model = TenantUser
        fields = [
            'id', 'user_id', 'email', 'first_name', 'last_name', 'status',
            'is_active', 'is_locked', 'invite_status', 'roles', 'groups',
            'joined_at', 'last_seen_at', 'last_login_at',
        ]
        read_only_fields = fields

    def get_status(self, obj):
        if not obj.is_active:
            return 'inactive'
        if obj.user.is_locked:
            return 'locked'
        return 'active'

    def get_roles(self, obj):
        assignments = obj.user_roles.effective().select_related('role').order_by('role__name')
        return [
            {
                'id': str(ur.role.id),
                'name': ur.role.name,
                'is_system': ur.role.is_system,
                'expires_at': ur.expires_at.isoformat() if ur.expires_at else None,
            }
            for ur in assignments
        ]

    def get_groups(self, obj):
        return GroupRefSerializer(obj.groups.filter(is_active=True).order_by('name'), many=True).data


class MemberCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(
        required=False,
        write_only=True,
        style={'input_type': 'password'}
    )
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    role_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    group_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)

    def validate_email(self, value):
        return value.strip().lower()

    def validate(self, attrs):
        if not User.objects.by_email(attrs['email']) and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'A password is required for new users.'})
        if attrs.get('password'):
            validate_password(attrs['password'])
        return attrs


class MemberUpdateSerializer(serializers.Serializer):
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    is_active = serializers.BooleanField(required=False)


class AssignRolesSerializer(serializers.Serializer):
    """Replace a member's roles."""

    role_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)

    def validate_expires_at(self, value):
        if value is not None and value <= timezone.now():
            raise serializers.ValidationError('expires_at must be in the future')
        return value


class MemberGroupsSerializer(serializers.Serializer):
    group_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)


class ResetPasswordSerializer(serializers.Serializer):
    new_password = serializers.CharField(
        required=False,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_new_password(self, value):
        validate_password(value)
        return value


# ===== ROLE AND PERMISSION SERIALIZERS =====

class PermissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Permission
        fields = ['id', 'code', 'label', 'description', 'category']
        read_only_fields = fields


class RoleSerializer(serializers.ModelSerializer):
    """Role with its permission codes and member count."""

    permissions = serializers.SerializerMethodField()
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            'id', 'name', 'description', 'is_system', 'is_active',
            'permissions', 'member_count', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_permissions(self, obj):
        return obj.permission_codes()

    def get_member_count(self, obj):
        return TenantUserRole.objects.filter(role=obj, tenant_user__is_active=True).effective().count()


class RoleCreateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1, max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, max_length=500, default='')
    permissions = serializers.ListField(
        child=serializers.CharField(max_length=100),
        allow_empty=False,
    )

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Name cannot be blank.')
        return value.strip()


class RoleUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, min_length=1, max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, max_length=500)
    permissions = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False,
        allow_empty=False,
    )


# ===== GROUP SERIALIZERS =====

class GroupSerializer(serializers.ModelSerializer):
    roles = serializers.SerializerMethodField()
    members = serializers.SerializerMethodField()
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = Group
        fields = [
            'id', 'name', 'description', 'is_active', 'roles', 'members',
            'member_count', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_roles(self, obj):
        return RoleRefSerializer(obj.roles.filter(is_active=True).order_by('name'), many=True).data

    def get_members(self, obj):
        return [
            {'user_id': str(m.user_id), 'email': m.user.email, 'name': m.user.get_full_name()}
            for m in obj.members.select_related('user').order_by('user__email')
        ]

    def get_member_count(self, obj):
        return obj.members.count()


class GroupCreateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1, max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, max_length=500, default='')
    role_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    user_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)


class GroupUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, min_length=1, max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, max_length=500)


class GroupMembersActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['add', 'remove'])
    user_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class GroupRolesActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['add', 'remove'])
    role_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


# ===== API KEY SERIALIZERS =====

class ApiKeySerializer(serializers.ModelSerializer):
    """API key metadata. The hash and plaintext are never serialized."""

    owner = serializers.SerializerMethodField()
    is_expired = serializers.BooleanField(read_only=True)
    is_revoked = serializers.BooleanField(read_only=True)
    is_active = serializers.BooleanField(read_only=True)

    class Meta:
        model = ApiKey
        fields = [
            'id', 'name', 'key_prefix', 'owner_type', 'owner', 'scopes',
            'expires_at', 'last_used_at', 'last_used_ip', 'is_expired',
            'is_revoked', 'is_active', 'revoked_at', 'revoked_reason',
            'created_at',
        ]
        read_only_fields = fields

    def get_owner(self, obj):
        if obj.owner is None:
            return None
        return {'id': str(obj.owner.id), 'email': obj.owner.email, 'name': obj.owner.get_full_name()}


class ApiKeyCreateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1, max_length=100)
    scopes = serializers.ListField(child=serializers.CharField(max_length=100), allow_empty=False)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)
    owner_type = serializers.ChoiceField(choices=ApiKey.OWNER_TYPE_CHOICES, default=ApiKey.OWNER_USER)
    owner_id = serializers.UUIDField(required=False, allow_null=True)

    def validate_expires_at(self, value):
        if value is not None and value <= timezone.now():
            raise serializers.ValidationError('expires_at must be in the future')
        return value


class ApiKeyRevokeSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500, default='')


# ===== ACCESS REQUEST SERIALIZERS =====

class AccessRequestSerializer(serializers.ModelSerializer):
    requester = serializers.SerializerMethodField()
    requested_roles = RoleRefSerializer(many=True, read_only=True)
    approver_email = serializers.SerializerMethodField()

    class Meta:
        model = AccessRequest
        fields = [
            'id', 'requester', 'requested_roles', 'requested_permissions',
            'reason', 'duration_days', 'status', 'approver_email',
            'decided_at', 'decision_comment', 'effective_until', 'created_at',
        ]
        read_only_fields = fields

    def get_requester(self, obj):
        user = obj.requester.user
        return {'user_id': str(user.id), 'email': user.email, 'name': user.get_full_name()}

    def get_approver_email(self, obj):
        return obj.approver.email if obj.approver else None


class AccessRequestCreateSerializer(serializers.Serializer):
    role_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    permissions = serializers.ListField(child=serializers.CharField(max_length=100), required=False, default=list)
    reason = serializers.CharField(min_length=10, max_length=2000)
    duration_days = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=365)

    def validate(self, attrs):
        if not attrs.get('role_ids') and not attrs.get('permissions'):
            raise serializers.ValidationError('Request at least one role or permission.')
        return attrs


class AccessRequestDecisionSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, max_length=1000, default='')


# ===== ACCESS REVIEW SERIALIZERS =====

class AccessReviewSerializer(serializers.ModelSerializer):
    completion_percentage = serializers.IntegerField(read_only=True)
    created_by_email = serializers.SerializerMethodField()

    class Meta:
        model = AccessReview
        fields = [
            'id', 'name', 'description', 'status', 'due_at', 'item_count',
            'completed_item_count', 'completion_percentage', 'created_by_email',
            'closed_at', 'created_at',
        ]
        read_only_fields = fields

    def get_created_by_email(self, obj):
        return obj.created_by.email if obj.created_by else None


class AccessReviewCreateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1, max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, max_length=1000, default='')
    due_at = serializers.DateTimeField(required=False, allow_null=True)
    user_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)


class AccessReviewItemSerializer(serializers.ModelSerializer):
    user_id = serializers.UUIDField(source='tenant_user.user_id', read_only=True)
    reviewer_email = serializers.SerializerMethodField()

    class Meta:
        model = AccessReviewItem
        fields = [
            'id', 'user_id', 'user_email', 'user_name', 'current_roles',
            'current_permissions', 'current_groups', 'decision', 'new_roles',
            'reviewer_email', 'reviewed_at', 'notes',
        ]
        read_only_fields = fields

    def get_reviewer_email(self, obj):
        return obj.reviewer.email if obj.reviewer else None


class AccessReviewDecisionSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=[
        AccessReviewItem.DECISION_KEEP,
        AccessReviewItem.DECISION_REMOVE,
        AccessReviewItem.DECISION_CHANGE,
    ])
    new_role_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000, default='')

    def validate(self, attrs):
        if attrs['decision'] == AccessReviewItem.DECISION_CHANGE and not attrs.get('new_role_ids'):
            raise serializers.ValidationError({'new_role_ids': "Required for 'change' decisions."})
        return attrs


# ===== AUDIT SERIALIZERS =====

class AuditLogSerializer(serializers.ModelSerializer):
    actor_id = serializers.UUIDField(source='user_id', read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'actor_id', 'actor_email', 'actor_type', 'action',
            'target_type', 'target_id', 'target_name', 'summary', 'before',
            'after', 'ip_address', 'user_agent', 'request_id', 'created_at',
        ]
        read_only_fields = fields


class AuditLogQuerySerializer(serializers.Serializer):
    actor_id = serializers.UUIDField(required=False)
    actor_email = serializers.CharField(required=False, max_length=254)
    action = serializers.CharField(required=False, max_length=100)
    target_type = serializers.CharField(required=False, max_length=50)
    target_id = serializers.CharField(required=False, max_length=64)
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and start > end:
            raise serializers.ValidationError('start_date must be before end_date')
        return attrs
