"""
Access governance: access requests and periodic access reviews.
"""
import csv
import logging
from datetime import timedelta
from io import StringIO

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.core.exceptions import Forbidden, NotFound, ValidationFailed
from apps.iam.audit import AuditAction
from apps.iam.catalog import ALL_PERMISSIONS
from apps.iam.models import (
    AccessRequest, AccessReview, AccessReviewItem, AuditLog, Role, TenantUser,
)
from apps.iam.services import PermissionService, RoleService

logger = logging.getLogger(__name__)


class AccessRequestService:
    """
    Members ask for extra roles; approvers grant or reject.

    Approval assigns the requested roles, time-boxed when the request has a
    duration. Requested permission codes are recorded for the approver's
    information but are never granted directly.
    """

    @classmethod
    def list_requests(cls, tenant, status=None, requester=None):
        qs = AccessRequest.objects.filter(tenant=tenant).select_related(
            'requester__user', 'approver'
        ).prefetch_related('requested_roles')
        if status:
            qs = qs.filter(status=status)
        if requester is not None:
            qs = qs.filter(requester=requester)
        return qs.order_by('-created_at')

    @classmethod
    def get_request(cls, tenant, request_id) -> AccessRequest:
        access_request = AccessRequest.objects.filter(tenant=tenant, id=request_id).first()
        if access_request is None:
            raise NotFound('Access request')
        return access_request

    @classmethod
    @transaction.atomic
    def create_request(cls, membership: TenantUser, reason: str, role_ids=None,
                       permissions=None, duration_days=None, request=None) -> AccessRequest:
        role_ids = role_ids or []
        permissions = permissions or []
        if not role_ids and not permissions:
            raise ValidationFailed('Request at least one role or permission')

        invalid = [code for code in permissions if code not in ALL_PERMISSIONS]
        if invalid:
            raise ValidationFailed(f"Invalid permissions: {', '.join(invalid)}")

        roles = RoleService._roles_by_ids(membership.tenant, role_ids) if role_ids else []

        access_request = AccessRequest.objects.create(
            tenant=membership.tenant,
            requester=membership,
            requested_permissions=sorted(set(permissions)),
            reason=reason,
            duration_days=duration_days,
        )
        if roles:
            access_request.requested_roles.set(roles)

        AuditLog.log_action(
            AuditAction.ACCESS_REQUEST_CREATED,
            user=membership.user,
            tenant=membership.tenant,
            target_type='access_request',
            target_id=access_request.id,
            target_name=membership.user.email,
            summary=f"{membership.user.email} requested access",
            after={
                'roles': sorted(role.name for role in roles),
                'permissions': access_request.requested_permissions,
                'duration_days': duration_days,
            },
            request=request,
        )
        return access_request

    @classmethod
    @transaction.atomic
    def approve(cls, access_request: AccessRequest, approver, comment: str = '', request=None):
        if not access_request.is_pending:
            raise Forbidden('Access request is not pending')
        if access_request.requester.user_id == approver.id:
            raise Forbidden('You cannot approve your own access request')

        now = timezone.now()
        effective_until = None
        if access_request.duration_days:
            effective_until = now + timedelta(days=access_request.duration_days)

        role_ids = list(access_request.requested_roles.filter(is_active=True).values_list('id', flat=True))
        if role_ids:
            RoleService.assign_roles(
                access_request.requester,
                role_ids,
                approver,
                replace=False,
                expires_at=effective_until,
                request=request,
            )

        access_request.status = AccessRequest.STATUS_APPROVED
        access_request.approver = approver
        access_request.decided_at = now
        access_request.decision_comment = comment or ''
        access_request.effective_until = effective_until
        access_request.save()

        AuditLog.log_action(
            AuditAction.ACCESS_REQUEST_APPROVED,
            user=approver,
            tenant=access_request.tenant,
            target_type='access_request',
            target_id=access_request.id,
            target_name=access_request.requester.user.email,
            summary=f"Approved access request for {access_request.requester.user.email}",
            before={'status': AccessRequest.STATUS_PENDING},
            after={
                'status': AccessRequest.STATUS_APPROVED,
                'effective_until': effective_until.isoformat() if effective_until else None,
            },
            request=request,
        )
        return access_request

    @classmethod
    @transaction.atomic
    def reject(cls, access_request: AccessRequest, approver, comment: str = '', request=None):
        if not access_request.is_pending:
            raise Forbidden('Access request is not pending')

        access_request.status = AccessRequest.STATUS_REJECTED
        access_request.approver = approver
        access_request.decided_at = timezone.now()
        access_request.decision_comment = comment or ''
        access_request.save()

        AuditLog.log_action(
            AuditAction.ACCESS_REQUEST_REJECTED,
            user=approver,
            tenant=access_request.tenant,
            target_type='access_request',
            target_id=access_request.id,
            target_name=access_request.requester.user.email,
            summary=f"Rejected access request for {access_request.requester.user.email}",
            before={'status': AccessRequest.STATUS_PENDING},
            after={'status': AccessRequest.STATUS_REJECTED},
            request=request,
        )
        return access_request

    @classmethod
    def expire_stale(cls, now=None) -> int:
        """Mark pending requests older than ACCESS_REQUEST_EXPIRY_DAYS as expired."""
        now = now or timezone.now()
        cutoff = now - timedelta(days=settings.ACCESS_REQUEST_EXPIRY_DAYS)
        return AccessRequest.objects.filter(
            status=AccessRequest.STATUS_PENDING,
            created_at__lt=cutoff,
        ).update(status=AccessRequest.STATUS_EXPIRED, decided_at=now)


def _snapshot(membership: TenantUser):
    roles = list(
        Role.objects.filter(
            user_roles__tenant_user=membership, is_active=True
        ).order_by('name').distinct()
    )
    groups = list(membership.groups.filter(is_active=True).order_by('name'))
    return {
        'current_roles': [{'id': str(r.id), 'name': r.name} for r in roles],
        'current_groups': [{'id': str(g.id), 'name': g.name} for g in groups],
        'current_permissions': sorted(PermissionService.resolve_permissions(membership)),
    }


class AccessReviewService:
    """
    Access certification campaigns.

    A review snapshots every active member of the tenant (or the given
    users). Reviewers record a keep/remove/change decision per item and the
    decision is applied at once: ``remove`` strips the member's roles and
    groups, ``change`` replaces the member's roles. Closing freezes the review.
    """

    CSV_COLUMNS = [
        'User Email',
        'User Name',
        'Current Roles',
        'Current Groups',
        'Decision',
        'New Roles',
        'Reviewer Email',
        'Reviewed At',
        'Notes',
    ]

    @classmethod
    def list_reviews(cls, tenant, status=None):
        qs = AccessReview.objects.filter(tenant=tenant).select_related('created_by')
        if status:
            qs = qs.filter(status=status)
        return qs.order_by('-created_at')

    @classmethod
    def get_review(cls, tenant, review_id) -> AccessReview:
        review = AccessReview.objects.filter(tenant=tenant, id=review_id).first()
        if review is None:
            raise NotFound('Access review')
        return review

    @classmethod
    def list_items(cls, review: AccessReview, decision=None):
        qs = review.items.select_related('reviewer')
        if decision:
            qs = qs.filter(decision=decision)
        return qs.order_by('user_email')

    @classmethod
    @transaction.atomic
    def create_review(cls, tenant, name: str, actor, description: str = '',
                      due_at=None, user_ids=None, request=None) -> AccessReview:
        review = AccessReview.objects.create(
            tenant=tenant,
            name=name.strip(),
            description=description or '',
            due_at=due_at,
            created_by=actor,
        )

        memberships = TenantUser.objects.for_tenant(tenant).active().select_related('user')
        if user_ids:
            wanted = {str(user_id) for user_id in user_ids}
            memberships = memberships.filter(user_id__in=wanted)
            if memberships.count() != len(wanted):
                raise NotFound('One or more users')
        items = []
        for membership in memberships:
            items.append(AccessReviewItem(
                review=review,
                tenant_user=membership,
                user_email=membership.user.email,
                user_name=membership.user.get_full_name(),
                **_snapshot(membership),
            ))
        AccessReviewItem.objects.bulk_create(items)

        review.item_count = len(items)
        review.save(update_fields=['item_count', 'updated_at'])

        AuditLog.log_action(
            AuditAction.ACCESS_REVIEW_CREATED,
            user=actor,
            tenant=tenant,
            target_type='access_review',
            target_id=review.id,
            target_name=review.name,
            summary=f"Created access review {review.name} with {len(items)} item(s)",
            after={'name': review.name, 'item_count': len(items)},
            request=request,
        )
        return review

    @classmethod
    @transaction.atomic
    def decide(cls, review: AccessReview, item_id, decision: str, reviewer,
               new_role_ids=None, notes: str = '', request=None) -> AccessReviewItem:
        """
        Record a decision on one item.

        Re-deciding an item overwrites the previous decision; only the first
        decision increments the review's completed count.
        """
        review = AccessReview.objects.select_for_update().get(pk=review.pk)
        if review.is_closed:
            raise Forbidden('Access review is closed')

        item = review.items.filter(id=item_id).first()
        if item is None:
            raise NotFound('Review item')

        valid = {
            AccessReviewItem.DECISION_KEEP,
            AccessReviewItem.DECISION_REMOVE,
            AccessReviewItem.DECISION_CHANGE,
        }
        if decision not in valid:
            raise ValidationFailed(f"decision must be one of: {', '.join(sorted(valid))}")

        new_roles = []
        if decision == AccessReviewItem.DECISION_CHANGE:
            if not new_role_ids:
                raise ValidationFailed("new_role_ids is required for 'change' decisions")
            roles = RoleService._roles_by_ids(review.tenant, new_role_ids)
            new_roles = [{'id': str(r.id), 'name': r.name} for r in sorted(roles, key=lambda r: r.name)]

        first_decision = item.decision == AccessReviewItem.DECISION_PENDING

        membership = item.tenant_user
        if decision == AccessReviewItem.DECISION_REMOVE:
            RoleService.remove_all_roles(membership)
            membership.groups.clear()
            PermissionService.invalidate(membership)
        elif decision == AccessReviewItem.DECISION_CHANGE:
            RoleService.assign_roles(
                membership, [r['id'] for r in new_roles], reviewer, replace=True, request=request
            )

        item.decision = decision
        item.new_roles = new_roles
        item.notes = notes or ''
        item.reviewer = reviewer
        item.reviewed_at = timezone.now()
        item.save()

        if first_decision:
            AccessReview.objects.filter(pk=review.pk).update(
                completed_item_count=F('completed_item_count') + 1
            )

        AuditLog.log_action(
            AuditAction.ACCESS_REVIEW_DECISION,
            user=reviewer,
            tenant=review.tenant,
            target_type='access_review_item',
            target_id=item.id,
            target_name=item.user_email,
            summary=f"Review decision '{decision}' for {item.user_email}",
            after={'decision': decision, 'new_roles': [r['name'] for r in new_roles]},
            request=request,
        )
        return item

    @classmethod
    @transaction.atomic
    def close(cls, review: AccessReview, actor, request=None) -> AccessReview:
        if review.is_closed:
            raise Forbidden('Access review is already closed')

        review.status = AccessReview.STATUS_CLOSED
        review.closed_at = timezone.now()
        review.closed_by = actor
        review.save(update_fields=['status', 'closed_at', 'closed_by', 'updated_at'])

        AuditLog.log_action(
            AuditAction.ACCESS_REVIEW_CLOSED,
            user=actor,
            tenant=review.tenant,
            target_type='access_review',
            target_id=review.id,
            target_name=review.name,
            summary=f"Closed access review {review.name}",
            after={
                'completed_item_count': review.completed_item_count,
                'item_count': review.item_count,
            },
            request=request,
        )
        return review

    @classmethod
    def export_csv(cls, review: AccessReview) -> str:
        output = StringIO()
        output.write(f"# Access Review: {review.name}\n")
        output.write(f"# Created: {review.created_at.isoformat()}\n")
        output.write(f"# Status: {review.status}\n")
        output.write(f"# Completed: {review.completed_item_count}/{review.item_count}\n")
        output.write("\n")

        writer = csv.writer(output, lineterminator='\n')
        writer.writerow(cls.CSV_COLUMNS)
        for item in review.items.select_related('reviewer').order_by('user_email'):
            writer.writerow([
                item.user_email,
                item.user_name,
                '; '.join(r['name'] for r in item.current_roles),
                '; '.join(g['name'] for g in item.current_groups),
                item.decision,
                '; '.join(r['name'] for r in item.new_roles),
                item.reviewer.email if item.reviewer else '',
                item.reviewed_at.isoformat() if item.reviewed_at else '',
                item.notes,
            ])
        return output.getvalue()

    @classmethod
    def export_filename(cls, review: AccessReview) -> str:
        return f"access-review-{review.id}-{timezone.now().date().isoformat()}.csv"
