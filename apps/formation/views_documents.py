"""
Document API views.
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.pagination import paginate_queryset
from apps.core.permissions import requires_scopes, HasTenantScopes
from apps.formation.constants import DocumentStatus, DocumentType
from apps.formation.serializers import (
    DocumentContentSerializer,
    DocumentDetailSerializer,
    DocumentGenerateSerializer,
    DocumentListSerializer,
    DocumentQuerySerializer,
    DocumentRegenerateSerializer,
    DocumentTransitionSerializer,
)
from apps.formation.services import DocumentService
from apps.iam.catalog import AppPermission


@extend_schema(
    tags=['Documents'],
    summary='List documents',
    description='Newest first, paginated. **Required permission:** `documents:read`',
    parameters=[
        OpenApiParameter('type', OpenApiTypes.STR, enum=list(DocumentType.ALL)),
        OpenApiParameter('status', OpenApiTypes.STR, enum=list(DocumentStatus.ALL)),
        OpenApiParameter('page', OpenApiTypes.INT),
        OpenApiParameter('limit', OpenApiTypes.INT),
    ],
    responses={200: DocumentListSerializer(many=True)},
)
@requires_scopes(AppPermission.DOCUMENTS_READ)
class DocumentListView(APIView):
    """GET /v1/documents"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        query = DocumentQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        documents = DocumentService.list_documents(
            request.tenant,
            document_type=query.validated_data.get('type'),
            status=query.validated_data.get('status'),
        )
        page, paginator = paginate_queryset(documents, request, view=self)
        return paginator.get_paginated_response(DocumentListSerializer(page, many=True).data)


@extend_schema(
    tags=['Documents'],
    summary='List document templates',
    description='Templates applicable to the business type. **Required permission:** `documents:read`',
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.DOCUMENTS_READ)
class DocumentTemplateListView(APIView):
    """GET /v1/documents/templates"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        return Response({'results': DocumentService.available_templates(request.tenant)})


@extend_schema(
    tags=['Documents'],
    summary='Generate a document',
    description='''
Renders a template with business profile data. Custom data overrides
profile values; unfilled merge fields render as `_______________`.

**Required permission:** `documents:write`
    ''',
    request=DocumentGenerateSerializer,
    responses={201: DocumentDetailSerializer, 404: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Generate Articles',
            value={'template_key': 'articles_of_organization', 'custom_data': {'organizer_name': 'Jane Doe'}},
            request_only=True
        )
    ]
)
@requires_scopes(AppPermission.DOCUMENTS_WRITE)
class DocumentGenerateView(APIView):
    """POST /v1/documents/generate"""

    permission_classes = [HasTenantScopes]

    def post(self, request):
        serializer = DocumentGenerateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        document = DocumentService.generate(
            request.tenant,
            data['template_key'],
            request.user,
            custom_data=data['custom_data'],
            name=data.get('name') or None,
            request=request,
        )
        return Response(DocumentDetailSerializer(document).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['Documents'],
        summary='Get document',
        description='**Required permission:** `documents:read`',
        responses={200: DocumentDetailSerializer, 404: OpenApiTypes.OBJECT},
    ),
    put=extend_schema(
        tags=['Documents'],
        summary='Update document content',
        description='''
Adds a version entry. Only `draft` and `rejected` documents can be edited.

**Required permission:** `documents:write`
        ''',
        request=DocumentContentSerializer,
        responses={200: DocumentDetailSerializer, 400: OpenApiTypes.OBJECT},
    ),
)
class DocumentDetailView(APIView):
    """GET/PUT /v1/documents/{document_id}"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(AppPermission.DOCUMENTS_READ)
    def get(self, request, document_id):
        document = DocumentService.get_document(request.tenant, document_id)
        return Response(DocumentDetailSerializer(document).data)

    @requires_scopes(AppPermission.DOCUMENTS_WRITE)
    def put(self, request, document_id):
        document = DocumentService.get_document(request.tenant, document_id)
        serializer = DocumentContentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = DocumentService.update_content(
            document,
            serializer.validated_data['content'],
            request.user,
            notes=serializer.validated_data['notes'],
        )
        return Response(DocumentDetailSerializer(document).data)


@extend_schema(
    tags=['Documents'],
    summary='Change document status',
    description='''
Allowed: draft to pending_review, pending_review to approved or rejected,
rejected to draft, approved to final, and any status to archived.
Anything else returns 400 `INVALID_TRANSITION`.

**Required permission:** `documents:write`
    ''',
    request=DocumentTransitionSerializer,
    responses={200: DocumentDetailSerializer, 400: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.DOCUMENTS_WRITE)
class DocumentTransitionView(APIView):
    """POST /v1/documents/{document_id}/transition"""

    permission_classes = [HasTenantScopes]

    def post(self, request, document_id):
        document = DocumentService.get_document(request.tenant, document_id)
        serializer = DocumentTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = DocumentService.transition(
            document,
            serializer.validated_data['status'],
            request.user,
            notes=serializer.validated_data['notes'],
            request=request,
        )
        return Response(DocumentDetailSerializer(document).data)


@extend_schema(
    tags=['Documents'],
    summary='Regenerate a document',
    description='Re-renders from the template and resets the status to draft. **Required permission:** `documents:write`',
    request=DocumentRegenerateSerializer,
    responses={200: DocumentDetailSerializer, 400: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.DOCUMENTS_WRITE)
class DocumentRegenerateView(APIView):
    """POST /v1/documents/{document_id}/regenerate"""

    permission_classes = [HasTenantScopes]

    def post(self, request, document_id):
        document = DocumentService.get_document(request.tenant, document_id)
        serializer = DocumentRegenerateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = DocumentService.regenerate(
            document, request.user, custom_data=serializer.validated_data['custom_data']
        )
        return Response(DocumentDetailSerializer(document).data)


@extend_schema(
    tags=['Documents'],
    summary='Get version history',
    description='Newest version first. **Required permission:** `documents:read`',
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.DOCUMENTS_READ)
class DocumentVersionsView(APIView):
    """GET /v1/documents/{document_id}/versions"""

    permission_classes = [HasTenantScopes]

    def get(self, request, document_id):
        document = DocumentService.get_document(request.tenant, document_id)
        versions = sorted(document.version_history, key=lambda v: v['version'], reverse=True)
        return Response({
            'current_version': document.get_current_version(),
            'versions': versions,
        })
