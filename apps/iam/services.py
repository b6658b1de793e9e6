"""
IAM and authentication services.

Implements:
- PermissionService: effective permission resolution and caching
- RoleService: role CRUD, permission sync, role assignment, system role seeding
- GroupService: group CRUD, membership and group-role management
- MemberService: tenant member lifecycle (create, update, lock, deactivate)
- ApiKeyService: key generation, hashing, verification, revocation
- MfaService: TOTP setup, verification, backup codes
- AuthService: JWT issuing/validation, refresh and logout, login with lockout
  and MFA, password change, registration
"""
import hashlib
import hmac
import logging
import secrets
import uuid
from datetime import timedelta
from typing import Dict, Iterable, Optional, Set, Any

import jwt
import pyotp
from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from apps.core.exceptions import (
    AlreadyExists, BadRequest, Conflict, Forbidden, InvalidCredentials, MfaRequired,
    MfaVerificationFailed, NotFound, TokenExpired, Unauthorized, ValidationFailed,
)
from apps.core.logging import SecurityLogger
from apps.iam.audit import AuditAction, compute_diff
from apps.iam.catalog import (
    ALL_PERMISSIONS, PERMISSION_CATALOG, RESTRICTED_PERMISSIONS, SYSTEM_ROLES,
    system_role_permissions,
)
from apps.iam.models import (
    ApiKey, AuditLog, Group, Permission, Role, RolePermission, TenantUser,
    TenantUserRole, User, get_client_ip,
)

logger = logging.getLogger(__name__)

OWNER_ROLE = 'Owner'


class PermissionService:
    """
    Resolves the effective permission set of a tenant membership.

    Effective permissions are the union of the permissions of the member's
    active, unexpired roles and of the active roles of the member's active
    groups. Platform admins hold every permission in every tenant.
    """

    CACHE_TTL = 300  # 5 minutes

    @staticmethod
    def _cache_key(membership_id) -> str:
        return f"permissions:tenant_user:{membership_id}"

    @classmethod
    def ensure_catalog(cls) -> int:
        """Create catalog permissions that are missing; returns how many were added."""
        existing = set(Permission.objects.values_list('code', flat=True))
        missing = [
            Permission(code=code, label=label, category=category, description=description)
            for code, label, category, description in PERMISSION_CATALOG
            if code not in existing
        ]
        if missing:
            Permission.objects.bulk_create(missing, ignore_conflicts=True)
        return len(missing)

    @classmethod
    def resolve_permissions(cls, membership: TenantUser) -> Set[str]:
        """Return the member's effective permission codes (cached for 5 minutes)."""
        cache_key = cls._cache_key(membership.id)
        cached = cache.get(cache_key)
        if cached is not None:
            return set(cached)

        if not membership.is_usable:
            cache.set(cache_key, [], cls.CACHE_TTL)
            return set()

        direct_role_ids = set(
            TenantUserRole.objects.filter(tenant_user=membership)
            .effective()
            .values_list('role_id', flat=True)
        )
        group_role_ids = set(
            Role.objects.filter(
                is_active=True,
                groups__members=membership,
                groups__is_active=True,
                groups__deleted_at__isnull=True,
            ).values_list('id', flat=True)
        )

        codes = set(
            Permission.objects.filter(
                role_permissions__role_id__in=direct_role_ids | group_role_ids
            ).values_list('code', flat=True)
        )

        cache.set(cache_key, sorted(codes), cls.CACHE_TTL)
        return codes

    @classmethod
    def effective_permissions(cls, user: User, membership: Optional[TenantUser]) -> Set[str]:
        if user is not None and user.is_superuser:
            return set(ALL_PERMISSIONS)
        if membership is None:
            return set()
        return cls.resolve_permissions(membership)

    @classmethod
    def invalidate(cls, *memberships):
        """Invalidate cached permissions for memberships (instances or ids)."""
        keys = [cls._cache_key(getattr(m, 'id', m)) for m in memberships]
        if keys:
            cache.delete_many(keys)

    @classmethod
    def invalidate_role(cls, role: Role):
        """Invalidate every member holding the role directly or through a group."""
        direct = TenantUserRole.objects.filter(role=role).values_list('tenant_user_id', flat=True)
        via_groups = TenantUser.objects.filter(groups__roles=role).values_list('id', flat=True)
        cls.invalidate(*set(direct) | set(via_groups))

    @classmethod
    def invalidate_group(cls, group: Group):
        cls.invalidate(*group.members.values_list('id', flat=True))

    @classmethod
    def has_all(cls, permissions: Set[str], required: Iterable[str]) -> bool:
        return set(required).issubset(permissions)

    @classmethod
    def has_any(cls, permissions: Set[str], candidates: Iterable[str]) -> bool:
        return bool(set(candidates) & permissions)


def _validate_permission_codes(codes, actor: User):
    """Reject unknown codes (409) and restricted codes for non platform admins (403)."""
    invalid = [code for code in codes if code not in ALL_PERMISSIONS]
    if invalid:
        raise Conflict(f"Invalid permissions: {', '.join(invalid)}")
    restricted = sorted(set(codes) & RESTRICTED_PERMISSIONS)
    if restricted and not (actor and actor.is_superuser):
        raise Forbidden(f"Only platform administrators can grant: {', '.join(restricted)}")


def _role_names(roles):
    return sorted(role.name for role in roles)


def _later_expiry(current, requested):
    """An additive grant never shortens an existing one; None means permanent."""
    if current is None or requested is None:
        return None
    return max(current, requested)


class RoleService:
    """
    Role management within a tenant.
    """

    @classmethod
    def list_roles(cls, tenant):
        return Role.objects.filter(tenant=tenant, is_active=True).prefetch_related('role_permissions__permission')

    @classmethod
    def get_role(cls, tenant, role_id) -> Role:
        role = Role.objects.filter(tenant=tenant, id=role_id, is_active=True).first()
        if role is None:
            raise NotFound('Role')
        return role

    @classmethod
    def _sync_permissions(cls, role: Role, codes):
        PermissionService.ensure_catalog()
        wanted = set(codes)
        RolePermission.objects.filter(role=role).exclude(permission__code__in=wanted).delete()
        have = set(role.role_permissions.values_list('permission__code', flat=True))
        to_add = Permission.objects.filter(code__in=wanted - have)
        RolePermission.objects.bulk_create(
            [RolePermission(role=role, permission=permission) for permission in to_add],
            ignore_conflicts=True,
        )

    @classmethod
    @transaction.atomic
    def create_role(cls, tenant, name: str, permissions, actor: User,
                    description: str = '', request=None) -> Role:
        name = name.strip()
        if Role.objects.by_name(tenant, name):
            raise Conflict('Role name already exists')
        if not permissions:
            raise ValidationFailed('At least one permission is required')
        _validate_permission_codes(permissions, actor)

        role = Role.objects.create(
            tenant=tenant,
            name=name,
            description=description,
            created_by=actor,
        )
        cls._sync_permissions(role, permissions)

        AuditLog.log_action(
            AuditAction.ROLE_CREATED,
            user=actor,
            tenant=tenant,
            target_type='role',
            target_id=role.id,
            target_name=role.name,
            summary=f"Created role {role.name}",
            after={'name': role.name, 'description': description, 'permissions': sorted(permissions)},
            request=request,
        )
        return role

    @classmethod
    @transaction.atomic
    def update_role(cls, role: Role, data: Dict[str, Any], actor: User, request=None) -> Role:
        if role.is_system and not actor.is_superuser:
            raise Forbidden('Only platform administrators can modify system roles')

        before = {
            'name': role.name,
            'description': role.description,
            'permissions': role.permission_codes(),
        }

        if 'name' in data and data['name'].strip().lower() != role.name.lower():
            if Role.objects.by_name(role.tenant, data['name']):
                raise Conflict('Role name already exists')
            role.name = data['name'].strip()
        if 'description' in data:
            role.description = data['description']
        role.save()

        if 'permissions' in data:
            if not data['permissions']:
                raise ValidationFailed('At least one permission is required')
            _validate_permission_codes(data['permissions'], actor)
            cls._sync_permissions(role, data['permissions'])
            PermissionService.invalidate_role(role)

        after = {
            'name': role.name,
            'description': role.description,
            'permissions': role.permission_codes(),
        }
        diff_before, diff_after = compute_diff(before, after)
        AuditLog.log_action(
            AuditAction.ROLE_UPDATED,
            user=actor,
            tenant=role.tenant,
            target_type='role',
            target_id=role.id,
            target_name=role.name,
            summary=f"Updated role {role.name}",
            before=diff_before,
            after=diff_after,
            request=request,
        )
        return role

    @classmethod
    @transaction.atomic
    def delete_role(cls, role: Role, actor: User, request=None):
        """Deactivate a custom role. Members lose its permissions immediately."""
        if role.is_system:
            raise Forbidden('Cannot delete system roles')

        PermissionService.invalidate_role(role)
        role.is_active = False
        role.save(update_fields=['is_active', 'updated_at'])

        AuditLog.log_action(
            AuditAction.ROLE_DELETED,
            user=actor,
            tenant=role.tenant,
            target_type='role',
            target_id=role.id,
            target_name=role.name,
            summary=f"Deleted role {role.name}",
            before={'is_active': True},
            after={'is_active': False},
            request=request,
        )

    @classmethod
    def _roles_by_ids(cls, tenant, role_ids) -> list:
        wanted = {str(role_id) for role_id in role_ids}
        roles = list(Role.objects.filter(tenant=tenant, id__in=wanted, is_active=True))
        if len(roles) != len(wanted):
            raise NotFound('One or more roles')
        return roles

    @classmethod
    def _ensure_owner_remains(cls, membership: TenantUser, remaining_roles):
        """Raise if the change would leave the tenant without an active Owner."""
        if any(role.is_system and role.name == OWNER_ROLE for role in remaining_roles):
            return
        holds_owner = TenantUserRole.objects.filter(
            tenant_user=membership, role__is_system=True, role__name=OWNER_ROLE
        ).exists()
        if not holds_owner:
            return
        other_owners = TenantUserRole.objects.filter(
            role__tenant=membership.tenant,
            role__is_system=True,
            role__name=OWNER_ROLE,
            tenant_user__is_active=True,
        ).exclude(tenant_user=membership)
        if not other_owners.exists():
            raise Forbidden('Cannot remove the last Owner of the tenant. Assign another Owner first.')

    @classmethod
    @transaction.atomic
    def assign_roles(cls, membership: TenantUser, role_ids, actor: Optional[User],
                     replace: bool = True, expires_at=None, request=None) -> list:
        """
        Assign roles to a member.

        With ``replace`` the member ends up holding exactly ``role_ids``;
        otherwise the roles are added to what the member already holds.
        """
        roles = cls._roles_by_ids(membership.tenant, role_ids)
        for role in roles:
            if role.is_system and role.name == OWNER_ROLE and actor is not None and not actor.is_superuser:
                actor_membership = TenantUser.objects.get_membership(membership.tenant, actor)
                if not actor_membership or not TenantUserRole.objects.filter(
                    tenant_user=actor_membership, role=role
                ).exists():
                    raise Forbidden('Only an Owner can grant the Owner role')

        before_roles = list(
            Role.objects.filter(user_roles__tenant_user=membership, is_active=True)
        )

        if replace:
            cls._ensure_owner_remains(membership, roles)
            TenantUserRole.objects.filter(tenant_user=membership).exclude(
                role__in=roles
            ).delete()

        for role in roles:
            assignment, created = TenantUserRole.objects.get_or_create(
                tenant_user=membership,
                role=role,
                defaults={'assigned_by': actor, 'expires_at': expires_at},
            )
            if created:
                continue
            new_expiry = expires_at if replace else _later_expiry(assignment.expires_at, expires_at)
            if new_expiry != assignment.expires_at:
                assignment.expires_at = new_expiry
                assignment.assigned_by = actor
                assignment.save(update_fields=['expires_at', 'assigned_by'])

        PermissionService.invalidate(membership)

        after_roles = list(
            Role.objects.filter(user_roles__tenant_user=membership, is_active=True)
        )
        AuditLog.log_action(
            AuditAction.ROLE_ASSIGNED,
            user=actor,
            tenant=membership.tenant,
            target_type='user',
            target_id=membership.user_id,
            target_name=membership.user.email,
            summary=f"Updated roles for {membership.user.email}",
            before={'roles': _role_names(before_roles)},
            after={'roles': _role_names(after_roles)},
            request=request,
        )
        return after_roles

    @classmethod
    @transaction.atomic
    def remove_all_roles(cls, membership: TenantUser):
        cls._ensure_owner_remains(membership, [])
        TenantUserRole.objects.filter(tenant_user=membership).delete()
        PermissionService.invalidate(membership)

    @classmethod
    @transaction.atomic
    def seed_system_roles(cls, tenant) -> Dict[str, Role]:
        """Create or resync the tenant's system roles (idempotent)."""
        PermissionService.ensure_catalog()
        seeded = {}
        for name, (description, _) in SYSTEM_ROLES.items():
            role, created = Role.objects.get_or_create(
                tenant=tenant,
                name=name,
                is_system=True,
                defaults={'description': description},
            )
            if not role.is_active:
                role.is_active = True
                role.save(update_fields=['is_active', 'updated_at'])
            cls._sync_permissions(role, system_role_permissions(name))
            seeded[name] = role
            if created:
                logger.info(
                    f"Seeded system role {name}",
                    extra={'tenant_id': str(tenant.id), 'role_id': str(role.id)}
                )
        return seeded


class GroupService:
    """
    Group management within a tenant.
    """

    @classmethod
    def list_groups(cls, tenant):
        return Group.objects.filter(tenant=tenant, is_active=True).prefetch_related('roles', 'members__user')

    @classmethod
    def get_group(cls, tenant, group_id) -> Group:
        group = Group.objects.filter(tenant=tenant, id=group_id, is_active=True).first()
        if group is None:
            raise NotFound('Group')
        return group

    @classmethod
    def _name_taken(cls, tenant, name, exclude_id=None) -> bool:
        qs = Group.objects.filter(tenant=tenant, name__iexact=name.strip(), is_active=True)
        if exclude_id:
            qs = qs.exclude(id=exclude_id)
        return qs.exists()

    @classmethod
    def _members_by_user_ids(cls, tenant, user_ids) -> list:
        wanted = {str(user_id) for user_id in user_ids}
        members = list(
            TenantUser.objects.filter(tenant=tenant, user_id__in=wanted, is_active=True)
            .select_related('user')
        )
        if len(members) != len(wanted):
            raise NotFound('One or more users')
        return members

    @classmethod
    @transaction.atomic
    def create_group(cls, tenant, name: str, actor: User, description: str = '',
                     role_ids=None, user_ids=None, request=None) -> Group:
        if cls._name_taken(tenant, name):
            raise Conflict('Group name already exists')

        roles = RoleService._roles_by_ids(tenant, role_ids) if role_ids else []
        members = cls._members_by_user_ids(tenant, user_ids) if user_ids else []

        group = Group.objects.create(
            tenant=tenant,
            name=name.strip(),
            description=description,
            created_by=actor,
        )
        if roles:
            group.roles.set(roles)
        if members:
            group.members.set(members)
            PermissionService.invalidate(*members)

        AuditLog.log_action(
            AuditAction.GROUP_CREATED,
            user=actor,
            tenant=tenant,
            target_type='group',
            target_id=group.id,
            target_name=group.name,
            summary=f"Created group {group.name}",
            after={
                'name': group.name,
                'roles': _role_names(roles),
                'members': sorted(m.user.email for m in members),
            },
            request=request,
        )
        return group

    @classmethod
    @transaction.atomic
    def update_group(cls, group: Group, data: Dict[str, Any], actor: User, request=None) -> Group:
        before = {'name': group.name, 'description': group.description}
        if 'name' in data:
            if cls._name_taken(group.tenant, data['name'], exclude_id=group.id):
                raise Conflict('Group name already exists')
            group.name = data['name'].strip()
        if 'description' in data:
            group.description = data['description']
        group.save()

        diff_before, diff_after = compute_diff(
            before, {'name': group.name, 'description': group.description}
        )
        AuditLog.log_action(
            AuditAction.GROUP_UPDATED,
            user=actor,
            tenant=group.tenant,
            target_type='group',
            target_id=group.id,
            target_name=group.name,
            summary=f"Updated group {group.name}",
            before=diff_before,
            after=diff_after,
            request=request,
        )
        return group

    @classmethod
    @transaction.atomic
    def delete_group(cls, group: Group, actor: User, request=None):
        """Deactivate the group and detach it from all members."""
        member_ids = list(group.members.values_list('id', flat=True))
        group.members.clear()
        group.is_active = False
        group.save(update_fields=['is_active', 'updated_at'])
        PermissionService.invalidate(*member_ids)

        AuditLog.log_action(
            AuditAction.GROUP_DELETED,
            user=actor,
            tenant=group.tenant,
            target_type='group',
            target_id=group.id,
            target_name=group.name,
            summary=f"Deleted group {group.name}",
            before={'is_active': True, 'member_count': len(member_ids)},
            after={'is_active': False},
            request=request,
        )

    @classmethod
    @transaction.atomic
    def update_members(cls, group: Group, action: str, user_ids, actor: User, request=None) -> Group:
        """Add or remove members; every user must belong to the tenant."""
        members = cls._members_by_user_ids(group.tenant, user_ids)
        if action == 'add':
            group.members.add(*members)
            audit_action = AuditAction.GROUP_MEMBER_ADDED
        elif action == 'remove':
            group.members.remove(*members)
            audit_action = AuditAction.GROUP_MEMBER_REMOVED
        else:
            raise ValidationFailed("action must be 'add' or 'remove'")

        PermissionService.invalidate(*members)

        emails = sorted(m.user.email for m in members)
        AuditLog.log_action(
            audit_action,
            user=actor,
            tenant=group.tenant,
            target_type='group',
            target_id=group.id,
            target_name=group.name,
            summary=f"{'Added' if action == 'add' else 'Removed'} {len(members)} member(s) "
                    f"{'to' if action == 'add' else 'from'} {group.name}",
            after={'action': action, 'users': emails},
            request=request,
        )
        return group

    @classmethod
    @transaction.atomic
    def update_roles(cls, group: Group, action: str, role_ids, actor: User, request=None) -> Group:
        roles = RoleService._roles_by_ids(group.tenant, role_ids)
        before = _role_names(group.roles.filter(is_active=True))
        if action == 'add':
            group.roles.add(*roles)
        elif action == 'remove':
            group.roles.remove(*roles)
        else:
            raise ValidationFailed("action must be 'add' or 'remove'")

        PermissionService.invalidate_group(group)

        AuditLog.log_action(
            AuditAction.GROUP_ROLES_UPDATED,
            user=actor,
            tenant=group.tenant,
            target_type='group',
            target_id=group.id,
            target_name=group.name,
            summary=f"Updated roles for group {group.name}",
            before={'roles': before},
            after={'roles': _role_names(group.roles.filter(is_active=True))},
            request=request,
        )
        return group

    @classmethod
    @transaction.atomic
    def set_member_groups(cls, membership: TenantUser, group_ids, actor: User, request=None):
        """Replace the groups a member belongs to."""
        wanted = {str(group_id) for group_id in group_ids}
        groups = list(Group.objects.filter(tenant=membership.tenant, id__in=wanted, is_active=True))
        if len(groups) != len(wanted):
            raise NotFound('One or more groups')
        before = sorted(g.name for g in membership.groups.filter(is_active=True))
        membership.groups.set(groups)
        PermissionService.invalidate(membership)

        AuditLog.log_action(
            AuditAction.USER_UPDATED,
            user=actor,
            tenant=membership.tenant,
            target_type='user',
            target_id=membership.user_id,
            target_name=membership.user.email,
            summary=f"Updated groups for {membership.user.email}",
            before={'groups': before},
            after={'groups': sorted(g.name for g in groups)},
            request=request,
        )
        return groups


class MemberService:
    """
    Tenant member lifecycle.
    """

    @classmethod
    def list_members(cls, tenant, search: str = '', status: str = ''):
        qs = TenantUser.objects.filter(tenant=tenant).select_related('user')
        if search:
            from django.db.models import Q
            qs = qs.filter(
                Q(user__email__icontains=search)
                | Q(user__first_name__icontains=search)
                | Q(user__last_name__icontains=search)
            )
        if status == 'active':
            qs = qs.filter(is_active=True, user__locked_at__isnull=True)
        elif status == 'locked':
            qs = qs.filter(user__locked_at__isnull=False)
        elif status == 'inactive':
            qs = qs.filter(is_active=False)
        return qs.order_by('user__email')

    @classmethod
    def get_member(cls, tenant, user_id) -> TenantUser:
        membership = TenantUser.objects.filter(tenant=tenant, user_id=user_id).select_related('user').first()
        if membership is None:
            raise NotFound('User')
        return membership

    @classmethod
    @transaction.atomic
    def create_member(cls, tenant, email: str, actor: User, password: str = None,
                      first_name: str = '', last_name: str = '', role_ids=None,
                      group_ids=None, request=None) -> TenantUser:
        """
        Add a user to the tenant, creating the global identity if needed.
        """
        user = User.objects.by_email(email)
        if user is None:
            user = User.objects.create_user(
                email,
                password=password or secrets.token_urlsafe(24),
                first_name=first_name,
                last_name=last_name,
            )
        else:
            existing = TenantUser.objects_with_deleted.filter(tenant=tenant, user=user).first()
            if existing is not None and existing.is_active:
                raise Conflict('Email already in use')
            if existing is not None:
                existing.hard_delete()

        membership = TenantUser.objects.create(
            tenant=tenant,
            user=user,
            invited_by=actor,
            invite_status=TenantUser.INVITE_ACCEPTED,
            joined_at=timezone.now(),
        )

        if role_ids:
            RoleService.assign_roles(membership, role_ids, actor, request=request)
        if group_ids:
            GroupService.set_member_groups(membership, group_ids, actor, request=request)

        AuditLog.log_action(
            AuditAction.USER_CREATED,
            user=actor,
            tenant=tenant,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary=f"Added {user.email} to tenant",
            after={'email': user.email, 'first_name': user.first_name, 'last_name': user.last_name},
            request=request,
        )
        return membership

    @classmethod
    @transaction.atomic
    def update_member(cls, membership: TenantUser, data: Dict[str, Any], actor: User, request=None):
        user = membership.user
        before = {
            'first_name': user.first_name,
            'last_name': user.last_name,
            'is_active': membership.is_active,
        }
        for field in ('first_name', 'last_name'):
            if field in data:
                setattr(user, field, data[field])
        user.save()

        if 'is_active' in data and data['is_active'] != membership.is_active:
            if not data['is_active']:
                cls._guard_self(membership, actor, 'deactivate')
                RoleService._ensure_owner_remains(membership, [])
            membership.is_active = data['is_active']
            membership.invite_status = (
                TenantUser.INVITE_ACCEPTED if membership.is_active else TenantUser.INVITE_REVOKED
            )
            membership.save(update_fields=['is_active', 'invite_status', 'updated_at'])
            PermissionService.invalidate(membership)

        diff_before, diff_after = compute_diff(before, {
            'first_name': user.first_name,
            'last_name': user.last_name,
            'is_active': membership.is_active,
        })
        AuditLog.log_action(
            AuditAction.USER_UPDATED,
            user=actor,
            tenant=membership.tenant,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary=f"Updated {user.email}",
            before=diff_before,
            after=diff_after,
            request=request,
        )
        return membership

    @staticmethod
    def _guard_self(membership, actor, verb):
        if actor is not None and membership.user_id == actor.id:
            raise Forbidden(f"You cannot {verb} your own account")

    @classmethod
    @transaction.atomic
    def deactivate_member(cls, membership: TenantUser, actor: User, request=None):
        cls._guard_self(membership, actor, 'remove')
        RoleService._ensure_owner_remains(membership, [])
        membership.deactivate()
        PermissionService.invalidate(membership)

        AuditLog.log_action(
            AuditAction.USER_DELETED,
            user=actor,
            tenant=membership.tenant,
            target_type='user',
            target_id=membership.user_id,
            target_name=membership.user.email,
            summary=f"Removed {membership.user.email} from tenant",
            before={'is_active': True},
            after={'is_active': False},
            request=request,
        )

    @classmethod
    def lock_member(cls, membership: TenantUser, actor: User, request=None):
        cls._guard_self(membership, actor, 'lock')
        user = membership.user
        user.locked_at = timezone.now()
        user.save(update_fields=['locked_at', 'updated_at'])
        AuditLog.log_action(
            AuditAction.USER_LOCKED,
            user=actor,
            tenant=membership.tenant,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary=f"Locked {user.email}",
            request=request,
        )

    @classmethod
    def unlock_member(cls, membership: TenantUser, actor: User, request=None):
        user = membership.user
        user.locked_at = None
        user.failed_login_attempts = 0
        user.save(update_fields=['locked_at', 'failed_login_attempts', 'updated_at'])
        AuditLog.log_action(
            AuditAction.USER_UNLOCKED,
            user=actor,
            tenant=membership.tenant,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary=f"Unlocked {user.email}",
            request=request,
        )

    @classmethod
    def reset_password(cls, membership: TenantUser, actor: User, new_password: str = None,
                       request=None) -> str:
        """Set a new password (generated when not given) and return it."""
        password = new_password or secrets.token_urlsafe(12)
        user = membership.user
        user.set_password(password)
        user.failed_login_attempts = 0
        user.locked_at = None
        user.save()
        AuditLog.log_action(
            AuditAction.USER_PASSWORD_RESET,
            user=actor,
            tenant=membership.tenant,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary=f"Reset password for {user.email}",
            request=request,
        )
        return password


class ApiKeyService:
    """
    API key issuing and verification.

    Keys look like ``chg_`` followed by 64 hex characters. Only the sha256
    hex digest is stored; lookups narrow candidates by the 12 character
    prefix and compare digests with ``hmac.compare_digest``.
    """

    KEY_PREFIX = 'chg_'
    DISPLAY_PREFIX_LENGTH = 12

    @classmethod
    def generate_key(cls) -> str:
        return cls.KEY_PREFIX + secrets.token_hex(32)

    @staticmethod
    def hash_key(plain_key: str) -> str:
        return hashlib.sha256(plain_key.encode('utf-8')).hexdigest()

    @classmethod
    def verify_key(cls, plain_key: str, key_hash: str) -> bool:
        """Timing-safe comparison of a presented key against a stored digest."""
        return hmac.compare_digest(cls.hash_key(plain_key), key_hash)

    @classmethod
    def list_keys(cls, tenant, include_revoked: bool = False):
        qs = ApiKey.objects.filter(tenant=tenant).select_related('owner')
        if not include_revoked:
            qs = qs.not_revoked()
        return qs.order_by('-created_at')

    @classmethod
    def get_key(cls, tenant, key_id) -> ApiKey:
        api_key = ApiKey.objects.filter(tenant=tenant, id=key_id).first()
        if api_key is None:
            raise NotFound('API key')
        return api_key

    @classmethod
    @transaction.atomic
    def create_key(cls, tenant, name: str, scopes, actor: User, actor_permissions: Set[str],
                   owner_type: str = ApiKey.OWNER_USER, owner_id=None, expires_at=None,
                   request=None):
        """
        Create a key and return ``(api_key, plain_key)``.

        The plaintext is only ever available from this call.
        """
        if not scopes:
            raise ValidationFailed('At least one scope is required')
        _validate_permission_codes(scopes, actor)
        if not actor.is_superuser:
            not_held = sorted(set(scopes) - set(actor_permissions))
            if not_held:
                raise Forbidden(f"Cannot grant scopes you do not hold: {', '.join(not_held)}")
        if expires_at is not None and expires_at <= timezone.now():
            raise ValidationFailed('expires_at must be in the future')

        owner = actor
        if owner_type == ApiKey.OWNER_USER and owner_id and str(owner_id) != str(actor.id):
            membership = TenantUser.objects.filter(
                tenant=tenant, user_id=owner_id, is_active=True
            ).select_related('user').first()
            if membership is None:
                raise NotFound('Owner user')
            owner = membership.user

        plain_key = cls.generate_key()
        api_key = ApiKey.objects.create(
            tenant=tenant,
            name=name.strip(),
            owner_type=owner_type,
            owner=owner,
            key_prefix=plain_key[:cls.DISPLAY_PREFIX_LENGTH],
            key_hash=cls.hash_key(plain_key),
            scopes=sorted(set(scopes)),
            expires_at=expires_at,
        )

        AuditLog.log_action(
            AuditAction.API_KEY_CREATED,
            user=actor,
            tenant=tenant,
            target_type='api_key',
            target_id=api_key.id,
            target_name=api_key.name,
            summary=f"Created API key {api_key.name}",
            after={
                'name': api_key.name,
                'key_prefix': api_key.key_prefix,
                'scopes': api_key.scopes,
                'owner_type': owner_type,
                'expires_at': expires_at.isoformat() if expires_at else None,
            },
            request=request,
        )
        SecurityLogger.log_api_key_event(
            'created', api_key, actor=actor,
            ip_address=get_client_ip(request) if request is not None else None,
        )
        return api_key, plain_key

    @classmethod
    @transaction.atomic
    def revoke_key(cls, api_key: ApiKey, actor: User, reason: str = '', request=None) -> ApiKey:
        if api_key.is_revoked:
            raise Forbidden('API key is already revoked')

        api_key.revoked_at = timezone.now()
        api_key.revoked_by = actor
        api_key.revoked_reason = reason or ''
        api_key.save(update_fields=['revoked_at', 'revoked_by', 'revoked_reason', 'updated_at'])

        AuditLog.log_action(
            AuditAction.API_KEY_REVOKED,
            user=actor,
            tenant=api_key.tenant,
            target_type='api_key',
            target_id=api_key.id,
            target_name=api_key.name,
            summary=f"Revoked API key {api_key.name}",
            before={'revoked': False},
            after={'revoked': True, 'reason': api_key.revoked_reason},
            request=request,
        )
        SecurityLogger.log_api_key_event(
            'revoked', api_key, actor=actor,
            ip_address=get_client_ip(request) if request is not None else None,
        )
        return api_key

    @classmethod
    def authenticate(cls, plain_key: str, ip_address: str = None) -> Optional[ApiKey]:
        """
        Resolve a presented key to an active ApiKey, or None.

        Updates last_used_at / last_used_ip on success.
        """
        if not plain_key or not plain_key.startswith(cls.KEY_PREFIX):
            return None

        prefix = plain_key[:cls.DISPLAY_PREFIX_LENGTH]
        candidates = ApiKey.objects.filter(key_prefix=prefix).select_related('tenant', 'owner')
        match = None
        for candidate in candidates:
            if cls.verify_key(plain_key, candidate.key_hash):
                match = candidate
                break

        if match is None:
            return None

        if not match.is_active:
            SecurityLogger.log_api_key_event('rejected', match, ip_address=ip_address)
            return None

        ApiKey.objects.filter(id=match.id).update(last_used_at=timezone.now(), last_used_ip=ip_address)
        return match


class MfaService:
    """
    TOTP multi-factor authentication (RFC 6238, 6 digits, 30 second step).

    Setup stores a fresh secret and backup codes but leaves MFA off until
    the first code from the authenticator app is verified. Backup codes
    are stored as sha256 digests and each one works once.
    """

    VALID_WINDOW = 1  # one step either side for clock drift

    @staticmethod
    def _hash_code(code: str) -> str:
        return hashlib.sha256(code.strip().upper().encode()).hexdigest()

    @staticmethod
    def format_secret(secret: str) -> str:
        """Group the secret in fours for manual entry."""
        return ' '.join(secret[i:i + 4] for i in range(0, len(secret), 4))

    @classmethod
    def generate_backup_codes(cls, count: int = None):
        count = count or settings.MFA_BACKUP_CODE_COUNT
        return [
            f"{secrets.token_hex(2).upper()}-{secrets.token_hex(2).upper()}"
            for _ in range(count)
        ]

    @classmethod
    def verify_totp(cls, secret: str, code: str) -> bool:
        if not secret or not code:
            return False
        return pyotp.TOTP(secret).verify(code.strip(), valid_window=cls.VALID_WINDOW)

    @classmethod
    def is_enforced(cls, user: User) -> bool:
        """True when any of the user's tenants requires MFA."""
        from apps.tenants.models import TenantSettings
        return TenantSettings.objects.filter(
            tenant__tenant_users__user=user,
            tenant__tenant_users__is_active=True,
            mfa_required=True,
        ).exists()

    @classmethod
    def status(cls, user: User) -> Dict[str, Any]:
        return {
            'enabled': user.mfa_enabled,
            'enforced': cls.is_enforced(user),
            'backup_codes_remaining': len(user.mfa_backup_codes) if user.mfa_enabled else 0,
        }

    @classmethod
    def initiate_setup(cls, user: User) -> Dict[str, Any]:
        """
        Generate a secret and backup codes for ``user``.

        The plaintext backup codes are only ever available from this call.
        """
        if user.mfa_enabled:
            raise Conflict('MFA is already enabled')

        secret = pyotp.random_base32()
        backup_codes = cls.generate_backup_codes()
        user.mfa_secret = secret
        user.mfa_backup_codes = [cls._hash_code(code) for code in backup_codes]
        user.save(update_fields=['mfa_secret', 'mfa_backup_codes', 'updated_at'])

        return {
            'otpauth_url': pyotp.TOTP(secret).provisioning_uri(
                name=user.email, issuer_name=settings.MFA_ISSUER_NAME
            ),
            'manual_entry_key': cls.format_secret(secret),
            'backup_codes': backup_codes,
        }

    @classmethod
    def complete_setup(cls, user: User, code: str, request=None):
        """Enable MFA once the first code from the authenticator app checks out."""
        if user.mfa_enabled:
            raise Conflict('MFA is already enabled')
        if not user.mfa_secret:
            raise MfaVerificationFailed('MFA setup not initiated')
        if not cls.verify_totp(user.mfa_secret, code):
            raise MfaVerificationFailed('Invalid verification code')

        user.mfa_enabled = True
        user.save(update_fields=['mfa_enabled', 'updated_at'])

        AuditLog.log_action(
            AuditAction.MFA_ENABLED,
            user=user,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary='Enabled multi-factor authentication',
            request=request,
        )

    @classmethod
    def verify_login(cls, user: User, code: str) -> bool:
        """Accept a current TOTP code or consume an unused backup code."""
        if not user.mfa_enabled:
            return True
        if cls.verify_totp(user.mfa_secret, code):
            return True

        digest = cls._hash_code(code or '')
        if digest in user.mfa_backup_codes:
            user.mfa_backup_codes = [c for c in user.mfa_backup_codes if c != digest]
            user.save(update_fields=['mfa_backup_codes', 'updated_at'])
            logger.info(
                "Backup code used",
                extra={'user_id': str(user.id), 'remaining': len(user.mfa_backup_codes)}
            )
            return True
        return False

    @classmethod
    def disable(cls, user: User, password: str, request=None):
        if not user.check_password(password):
            raise MfaVerificationFailed('Invalid password')

        user.mfa_enabled = False
        user.mfa_secret = ''
        user.mfa_backup_codes = []
        user.save(update_fields=['mfa_enabled', 'mfa_secret', 'mfa_backup_codes', 'updated_at'])

        AuditLog.log_action(
            AuditAction.MFA_DISABLED,
            user=user,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary='Disabled multi-factor authentication',
            request=request,
        )
        SecurityLogger.log_event('mfa_disabled', user_id=str(user.id))


class AuthService:
    """
    Authentication: JWT issuing, refresh and revocation, login with lockout
    and MFA, password change, registration.
    """

    REVOKED_KEY = 'jwt:revoked:{jti}'

    @classmethod
    def _password_fingerprint(cls, user: User) -> str:
        return user.get_session_auth_hash()[:16]

    @classmethod
    def _encode(cls, user: User, token_type: str, lifetime: timedelta) -> str:
        now = timezone.now()
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'type': token_type,
            'jti': uuid.uuid4().hex,
            'pwd': cls._password_fingerprint(user),
            'exp': now + lifetime,
            'iat': now,
        }
        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        """Short-lived access token sent as ``Authorization: Bearer``."""
        return cls._encode(user, 'access', timedelta(hours=settings.JWT_EXPIRATION_HOURS))

    @classmethod
    def generate_refresh_token(cls, user: User) -> str:
        return cls._encode(user, 'refresh', timedelta(days=settings.JWT_REFRESH_EXPIRATION_DAYS))

    @classmethod
    def issue_tokens(cls, user: User) -> Dict[str, Any]:
        return {
            'token': cls.generate_jwt(user),
            'refresh_token': cls.generate_refresh_token(user),
            'expires_in': settings.JWT_EXPIRATION_HOURS * 3600,
        }

    @classmethod
    def decode_jwt(cls, token: str, token_type: str = 'access') -> Dict[str, Any]:
        """
        Decode and validate a JWT.

        Raises:
            TokenExpired: the token's exp has passed
            Unauthorized: the token is malformed, signed with another key,
                of the wrong type or revoked by logout
        """
        try:
            payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise TokenExpired('Token has expired')
        except jwt.InvalidTokenError:
            raise Unauthorized('Invalid token')

        if payload.get('type', 'access') != token_type:
            raise Unauthorized('Invalid token')
        jti = payload.get('jti')
        if jti and cache.get(cls.REVOKED_KEY.format(jti=jti)):
            raise Unauthorized('Token has been revoked')
        return payload

    @classmethod
    def _user_for_payload(cls, payload: Dict[str, Any]) -> User:
        user_id = payload.get('user_id')
        user = User.objects.filter(id=user_id, is_active=True).first() if user_id else None
        if user is None:
            raise Unauthorized('Invalid token')
        if user.is_locked:
            raise Unauthorized('Account is locked')
        # Tokens issued before the last password change stop working
        fingerprint = payload.get('pwd')
        if fingerprint and not hmac.compare_digest(fingerprint, cls._password_fingerprint(user)):
            raise Unauthorized('Token is no longer valid')
        return user

    @classmethod
    def get_user_from_jwt(cls, token: str) -> User:
        return cls._user_for_payload(cls.decode_jwt(token))

    @classmethod
    def revoke_token(cls, payload: Dict[str, Any]):
        """Deny the token's jti until it would have expired anyway."""
        jti = payload.get('jti')
        if not jti:
            return
        remaining = int(payload.get('exp', 0) - timezone.now().timestamp())
        cache.set(cls.REVOKED_KEY.format(jti=jti), True, timeout=max(remaining, 1))

    @classmethod
    def refresh(cls, refresh_token: str) -> Dict[str, Any]:
        """
        Exchange a refresh token for a new token pair.

        The presented refresh token is revoked, so each one works once.
        """
        payload = cls.decode_jwt(refresh_token, token_type='refresh')
        user = cls._user_for_payload(payload)
        cls.revoke_token(payload)
        return cls.issue_tokens(user)

    @classmethod
    def logout(cls, user: User, access_token: str, refresh_token: str = None, request=None):
        """Revoke the presented access token and, when given, its refresh token."""
        cls.revoke_token(cls.decode_jwt(access_token))
        if refresh_token:
            cls.revoke_token(cls.decode_jwt(refresh_token, token_type='refresh'))

        AuditLog.log_action(
            AuditAction.AUTH_LOGOUT,
            user=user,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary='Logged out',
            request=request,
        )

    @classmethod
    def change_password(cls, user: User, current_password: str, new_password: str,
                        request=None) -> Dict[str, Any]:
        """
        Change the caller's own password and return a fresh token pair.

        Every token issued before the change is rejected afterwards.
        """
        if not user.check_password(current_password):
            raise BadRequest('Current password is incorrect')
        if user.check_password(new_password):
            raise BadRequest('New password must be different from current password')

        user.set_password(new_password)
        user.save(update_fields=['password_hash', 'password_changed_at', 'updated_at'])

        AuditLog.log_action(
            AuditAction.USER_PASSWORD_CHANGED,
            user=user,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary='Changed password',
            request=request,
        )
        SecurityLogger.log_event('password_changed', level='info', user_id=str(user.id))
        return cls.issue_tokens(user)

    @classmethod
    def _lockout_threshold(cls, user: User) -> int:
        from apps.tenants.models import TenantSettings
        thresholds = list(
            TenantSettings.objects.filter(
                tenant__tenant_users__user=user,
                tenant__tenant_users__is_active=True,
            ).values_list('max_failed_login_attempts', flat=True)
        )
        return min(thresholds) if thresholds else settings.DEFAULT_MAX_FAILED_LOGIN_ATTEMPTS

    @classmethod
    def login(cls, email: str, password: str, mfa_code: str = None, request=None) -> Dict[str, Any]:
        """
        Authenticate by email and password and issue a token pair.

        Consecutive failures lock the account once they reach the strictest
        ``max_failed_login_attempts`` among the user's tenants. Users with MFA
        enabled must also send a TOTP or backup code.
        """
        ip_address = get_client_ip(request) if request is not None else None
        user = User.objects.by_email(email)

        if user is None or not user.is_active:
            SecurityLogger.log_failed_login(email, ip_address, reason='unknown_user')
            raise InvalidCredentials('Invalid email or password')

        if user.is_locked:
            SecurityLogger.log_failed_login(email, ip_address, reason='locked')
            raise Unauthorized('Account is locked. Contact an administrator.')

        if not user.check_password(password):
            user.failed_login_attempts += 1
            update_fields = ['failed_login_attempts', 'updated_at']
            threshold = cls._lockout_threshold(user)
            if user.failed_login_attempts >= threshold:
                user.locked_at = timezone.now()
                update_fields.append('locked_at')
            user.save(update_fields=update_fields)

            AuditLog.log_action(
                AuditAction.AUTH_LOGIN_FAILED,
                user=None,
                actor_email=user.email,
                actor_type=AuditLog.ACTOR_USER,
                target_type='user',
                target_id=user.id,
                target_name=user.email,
                summary='Failed login attempt',
                request=request,
            )
            if user.is_locked:
                SecurityLogger.log_account_locked(user.email, ip_address, user.failed_login_attempts)
            else:
                SecurityLogger.log_failed_login(email, ip_address, reason='bad_password')
            raise InvalidCredentials('Invalid email or password')

        if user.mfa_enabled:
            if not mfa_code:
                raise MfaRequired('MFA code required')
            if not MfaService.verify_login(user, mfa_code):
                SecurityLogger.log_failed_login(email, ip_address, reason='bad_mfa_code')
                raise InvalidCredentials('Invalid verification code')

        user.failed_login_attempts = 0
        user.last_login_at = timezone.now()
        user.save(update_fields=['failed_login_attempts', 'last_login_at', 'updated_at'])

        AuditLog.log_action(
            AuditAction.AUTH_LOGIN_SUCCESS,
            user=user,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary='Logged in',
            request=request,
        )

        return {
            'user': user,
            **cls.issue_tokens(user),
            'mfa_setup_required': not user.mfa_enabled and MfaService.is_enforced(user),
            'memberships': list(
                TenantUser.objects.for_user(user).select_related('tenant')
            ),
        }

    @classmethod
    @transaction.atomic
    def register_user(cls, email: str, password: str, business_name: str,
                      first_name: str = '', last_name: str = '', request=None) -> Dict[str, Any]:
        """
        Register a user together with a new tenant they own.

        Creates the User, the Tenant (settings and system roles are created
        by signals), the membership and the Owner role assignment.
        """
        from apps.tenants.models import Tenant

        if User.objects.by_email(email):
            raise AlreadyExists('User with this email already exists')

        user = User.objects.create_user(
            email,
            password=password,
            first_name=first_name,
            last_name=last_name,
        )

        base_slug = slugify(business_name)[:90] or 'tenant'
        tenant_slug = base_slug
        counter = 1
        while Tenant.objects_with_deleted.filter(slug=tenant_slug).exists():
            tenant_slug = f"{base_slug}-{counter}"
            counter += 1

        tenant = Tenant.objects.create(
            name=business_name,
            slug=tenant_slug,
            contact_email=user.email,
        )

        membership = TenantUser.objects.create(
            tenant=tenant,
            user=user,
            invite_status=TenantUser.INVITE_ACCEPTED,
            joined_at=timezone.now(),
        )

        owner_role = Role.objects.system_roles(tenant).filter(name=OWNER_ROLE).first()
        if owner_role is None:
            owner_role = RoleService.seed_system_roles(tenant)[OWNER_ROLE]
        TenantUserRole.objects.create(tenant_user=membership, role=owner_role, assigned_by=user)

        AuditLog.log_action(
            AuditAction.USER_CREATED,
            user=user,
            tenant=tenant,
            target_type='user',
            target_id=user.id,
            target_name=user.email,
            summary=f"Registered {user.email} with tenant {tenant.name}",
            after={'email': user.email, 'tenant': tenant.slug},
            request=request,
        )

        return {
            'user': user,
            'tenant': tenant,
            'membership': membership,
            **cls.issue_tokens(user),
        }
