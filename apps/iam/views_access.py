"""
Access governance API views: access requests and access reviews.
"""
from django.http import HttpResponse
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import Forbidden
from apps.core.pagination import paginate_queryset
from apps.core.permissions import requires_scopes, requires_any_scope, HasTenantScopes
from apps.iam.catalog import IamPermission
from apps.iam.serializers import (
    AccessRequestCreateSerializer, AccessRequestDecisionSerializer, AccessRequestSerializer,
    AccessReviewCreateSerializer, AccessReviewDecisionSerializer, AccessReviewItemSerializer,
    AccessReviewSerializer,
)
from apps.iam.services_access import AccessRequestService, AccessReviewService


# ===== ACCESS REQUESTS =====

@extend_schema_view(
    get=extend_schema(
        tags=['IAM - Access Requests'],
        summary='List access requests',
        description='''
Callers with `iam:access_requests:read` see every request in the tenant;
other requesters see only their own.

**Required permission:** `iam:access_requests:read` or `iam:access_requests:create`
        ''',
        parameters=[
            OpenApiParameter('status', OpenApiTypes.STR, enum=['pending', 'approved', 'rejected', 'expired']),
        ],
        responses={200: AccessRequestSerializer(many=True)},
    ),
    post=extend_schema(
        tags=['IAM - Access Requests'],
        summary='Request access',
        description='''
Ask for additional roles (and/or note specific permissions) with a
justification. `duration_days` makes an approved grant expire.

**Required permission:** `iam:access_requests:create`

**Rate limit**: 30 requests/minute per user
        ''',
        request=AccessRequestCreateSerializer,
        responses={201: AccessRequestSerializer},
        examples=[
            OpenApiExample(
                'Temporary Admin',
                value={
                    'role_ids': ['123e4567-e89b-12d3-a456-426614174000'],
                    'reason': 'Covering for the office manager during leave',
                    'duration_days': 14
                },
                request_only=True
            )
        ]
    ),
)
class AccessRequestListView(APIView):
    """GET/POST /v1/iam/access-requests"""

    permission_classes = [HasTenantScopes]

    @requires_any_scope(IamPermission.ACCESS_REQUESTS_READ, IamPermission.ACCESS_REQUESTS_CREATE)
    def get(self, request):
        requester = None
        if IamPermission.ACCESS_REQUESTS_READ not in request.scopes:
            if request.membership is None:
                return Response({'results': [], 'pagination': None})
            requester = request.membership
        requests = AccessRequestService.list_requests(
            request.tenant,
            status=request.query_params.get('status'),
            requester=requester,
        )
        page, paginator = paginate_queryset(requests, request, view=self)
        return paginator.get_paginated_response(AccessRequestSerializer(page, many=True).data)

    @method_decorator(ratelimit(key='user_or_ip', rate='30/m', method='POST', block=True))
    @requires_scopes(IamPermission.ACCESS_REQUESTS_CREATE)
    def post(self, request):
        if request.membership is None:
            raise Forbidden('Only tenant members can request access')
        serializer = AccessRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        access_request = AccessRequestService.create_request(
            request.membership,
            reason=data['reason'],
            role_ids=data.get('role_ids'),
            permissions=data.get('permissions'),
            duration_days=data.get('duration_days'),
            request=request,
        )
        return Response(AccessRequestSerializer(access_request).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['IAM - Access Requests'],
    summary='Get access request',
    description='Requesters may always read their own requests.',
    responses={200: AccessRequestSerializer, 404: OpenApiTypes.OBJECT},
)
class AccessRequestDetailView(APIView):
    """GET /v1/iam/access-requests/{request_id}"""

    permission_classes = [HasTenantScopes]

    @requires_any_scope(IamPermission.ACCESS_REQUESTS_READ, IamPermission.ACCESS_REQUESTS_CREATE)
    def get(self, request, request_id):
        access_request = AccessRequestService.get_request(request.tenant, request_id)
        is_own = request.membership is not None and access_request.requester_id == request.membership.id
        if not is_own and IamPermission.ACCESS_REQUESTS_READ not in request.scopes:
            raise Forbidden('You can only view your own access requests')
        return Response(AccessRequestSerializer(access_request).data)


@extend_schema(
    tags=['IAM - Access Requests'],
    summary='Approve access request',
    description='''
Assigns the requested roles to the requester, expiring at `effective_until`
when the request has a duration. Only pending requests can be decided and
requesters cannot approve their own request.

**Required permission:** `iam:access_requests:approve`
    ''',
    request=AccessRequestDecisionSerializer,
    responses={200: AccessRequestSerializer, 403: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.ACCESS_REQUESTS_APPROVE)
class AccessRequestApproveView(APIView):
    """POST /v1/iam/access-requests/{request_id}/approve"""

    permission_classes = [HasTenantScopes]

    def post(self, request, request_id):
        access_request = AccessRequestService.get_request(request.tenant, request_id)
        serializer = AccessRequestDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        access_request = AccessRequestService.approve(
            access_request, request.user, comment=serializer.validated_data['comment'], request=request
        )
        return Response(AccessRequestSerializer(access_request).data)


@extend_schema(
    tags=['IAM - Access Requests'],
    summary='Reject access request',
    description='**Required permission:** `iam:access_requests:approve` or `iam:access_requests:write`',
    request=AccessRequestDecisionSerializer,
    responses={200: AccessRequestSerializer, 403: OpenApiTypes.OBJECT},
)
@requires_any_scope(IamPermission.ACCESS_REQUESTS_APPROVE, IamPermission.ACCESS_REQUESTS_WRITE)
class AccessRequestRejectView(APIView):
    """POST /v1/iam/access-requests/{request_id}/reject"""

    permission_classes = [HasTenantScopes]

    def post(self, request, request_id):
        access_request = AccessRequestService.get_request(request.tenant, request_id)
        serializer = AccessRequestDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        access_request = AccessRequestService.reject(
            access_request, request.user, comment=serializer.validated_data['comment'], request=request
        )
        return Response(AccessRequestSerializer(access_request).data)


# ===== ACCESS REVIEWS =====

@extend_schema_view(
    get=extend_schema(
        tags=['IAM - Access Reviews'],
        summary='List access reviews',
        description='**Required permission:** `iam:access_reviews:read`',
        parameters=[OpenApiParameter('status', OpenApiTypes.STR, enum=['draft', 'open', 'closed'])],
        responses={200: AccessReviewSerializer(many=True)},
    ),
    post=extend_schema(
        tags=['IAM - Access Reviews'],
        summary='Create access review',
        description='''
Snapshots the roles, groups and effective permissions of every active
member (or only `user_ids`) into review items and opens the review.

**Required permission:** `iam:access_reviews:write`
        ''',
        request=AccessReviewCreateSerializer,
        responses={201: AccessReviewSerializer},
    ),
)
class AccessReviewListView(APIView):
    """GET/POST /v1/iam/access-reviews"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(IamPermission.ACCESS_REVIEWS_READ)
    def get(self, request):
        reviews = AccessReviewService.list_reviews(request.tenant, status=request.query_params.get('status'))
        page, paginator = paginate_queryset(reviews, request, view=self)
        return paginator.get_paginated_response(AccessReviewSerializer(page, many=True).data)

    @requires_scopes(IamPermission.ACCESS_REVIEWS_WRITE)
    def post(self, request):
        serializer = AccessReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        review = AccessReviewService.create_review(
            request.tenant,
            name=data['name'],
            actor=request.user,
            description=data.get('description', ''),
            due_at=data.get('due_at'),
            user_ids=data.get('user_ids'),
            request=request,
        )
        return Response(AccessReviewSerializer(review).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['IAM - Access Reviews'],
    summary='Get access review',
    description='**Required permission:** `iam:access_reviews:read`',
    responses={200: AccessReviewSerializer},
)
@requires_scopes(IamPermission.ACCESS_REVIEWS_READ)
class AccessReviewDetailView(APIView):
    """GET /v1/iam/access-reviews/{review_id}"""

    permission_classes = [HasTenantScopes]

    def get(self, request, review_id):
        review = AccessReviewService.get_review(request.tenant, review_id)
        return Response(AccessReviewSerializer(review).data)


@extend_schema(
    tags=['IAM - Access Reviews'],
    summary='List review items',
    description='Ordered by user email. **Required permission:** `iam:access_reviews:read`',
    parameters=[
        OpenApiParameter('decision', OpenApiTypes.STR, enum=['pending', 'keep', 'remove', 'change']),
    ],
    responses={200: AccessReviewItemSerializer(many=True)},
)
@requires_scopes(IamPermission.ACCESS_REVIEWS_READ)
class AccessReviewItemListView(APIView):
    """GET /v1/iam/access-reviews/{review_id}/items"""

    permission_classes = [HasTenantScopes]

    def get(self, request, review_id):
        review = AccessReviewService.get_review(request.tenant, review_id)
        items = AccessReviewService.list_items(review, decision=request.query_params.get('decision'))
        page, paginator = paginate_queryset(items, request, view=self)
        return paginator.get_paginated_response(AccessReviewItemSerializer(page, many=True).data)


@extend_schema(
    tags=['IAM - Access Reviews'],
    summary='Decide a review item',
    description='''
`keep` leaves access unchanged, `remove` strips the member's roles and
groups, `change` replaces the member's roles with `new_role_ids`.
Decisions can be revised while the review is open.

**Required permission:** `iam:access_reviews:decide`
    ''',
    request=AccessReviewDecisionSerializer,
    responses={200: AccessReviewItemSerializer, 403: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.ACCESS_REVIEWS_DECIDE)
class AccessReviewDecideView(APIView):
    """POST /v1/iam/access-reviews/{review_id}/items/{item_id}/decide"""

    permission_classes = [HasTenantScopes]

    def post(self, request, review_id, item_id):
        review = AccessReviewService.get_review(request.tenant, review_id)
        serializer = AccessReviewDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        item = AccessReviewService.decide(
            review,
            item_id,
            data['decision'],
            request.user,
            new_role_ids=data.get('new_role_ids'),
            notes=data.get('notes', ''),
            request=request,
        )
        return Response(AccessReviewItemSerializer(item).data)


@extend_schema(
    tags=['IAM - Access Reviews'],
    summary='Close access review',
    description='Closed reviews accept no further decisions. **Required permission:** `iam:access_reviews:write`',
    request=None,
    responses={200: AccessReviewSerializer, 403: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.ACCESS_REVIEWS_WRITE)
class AccessReviewCloseView(APIView):
    """POST /v1/iam/access-reviews/{review_id}/close"""

    permission_classes = [HasTenantScopes]

    def post(self, request, review_id):
        review = AccessReviewService.get_review(request.tenant, review_id)
        review = AccessReviewService.close(review, request.user, request=request)
        return Response(AccessReviewSerializer(review).data)


@extend_schema(
    tags=['IAM - Access Reviews'],
    summary='Export access review as CSV',
    description='**Required permission:** `iam:access_reviews:read`',
    responses={(200, 'text/csv'): OpenApiTypes.STR},
)
@requires_scopes(IamPermission.ACCESS_REVIEWS_READ)
class AccessReviewExportView(APIView):
    """GET /v1/iam/access-reviews/{review_id}/export"""

    permission_classes = [HasTenantScopes]

    def get(self, request, review_id):
        review = AccessReviewService.get_review(request.tenant, review_id)
        response = HttpResponse(AccessReviewService.export_csv(review), content_type='text/csv')
        response['Content-Disposition'] = (
            f'attachment; filename="{AccessReviewService.export_filename(review)}"'
        )
        return response
