"""
Task and home dashboard API views.
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.pagination import paginate_queryset
from apps.core.permissions import requires_scopes, HasTenantScopes
from apps.formation.constants import TaskCategory, TaskStatus, WorkflowPhase
from apps.formation.serializers import (
    ComplianceItemSerializer,
    TaskQuerySerializer,
    TaskSerializer,
    TaskWriteSerializer,
)
from apps.formation.services import HomeService, TaskService
from apps.iam.catalog import AppPermission


@extend_schema_view(
    get=extend_schema(
        tags=['Tasks'],
        summary='List tasks',
        description='Ordered by position then due date. **Required permission:** `tasks:read`',
        parameters=[
            OpenApiParameter('status', OpenApiTypes.STR, enum=list(TaskStatus.ALL)),
            OpenApiParameter('category', OpenApiTypes.STR, enum=list(TaskCategory.ALL)),
            OpenApiParameter('phase', OpenApiTypes.STR, enum=list(WorkflowPhase.ORDER)),
            OpenApiParameter('assignee_id', OpenApiTypes.UUID),
            OpenApiParameter('page', OpenApiTypes.INT),
            OpenApiParameter('limit', OpenApiTypes.INT),
        ],
        responses={200: TaskSerializer(many=True)},
    ),
    post=extend_schema(
        tags=['Tasks'],
        summary='Create task',
        description='**Required permission:** `tasks:write`',
        request=TaskWriteSerializer,
        responses={201: TaskSerializer, 404: OpenApiTypes.OBJECT},
    ),
)
class TaskListView(APIView):
    """GET/POST /v1/tasks"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(AppPermission.TASKS_READ)
    def get(self, request):
        query = TaskQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        tasks = TaskService.list_tasks(request.tenant, **query.validated_data)
        page, paginator = paginate_queryset(tasks, request, view=self)
        return paginator.get_paginated_response(TaskSerializer(page, many=True).data)

    @requires_scopes(AppPermission.TASKS_WRITE)
    def post(self, request):
        serializer = TaskWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = TaskService.create_task(request.tenant, serializer.validated_data, request.user)
        return Response(TaskSerializer(task).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['Tasks'],
        summary='Get task',
        description='**Required permission:** `tasks:read`',
        responses={200: TaskSerializer, 404: OpenApiTypes.OBJECT},
    ),
    put=extend_schema(
        tags=['Tasks'],
        summary='Update task',
        description='''
Any subset of fields. Moving to `completed` stamps `completed_at` and
`completed_by`; moving away clears them.

**Required permission:** `tasks:write`
        ''',
        request=TaskWriteSerializer,
        responses={200: TaskSerializer},
    ),
    delete=extend_schema(
        tags=['Tasks'],
        summary='Delete task',
        description='**Required permission:** `tasks:write`',
        responses={204: None},
    ),
)
class TaskDetailView(APIView):
    """GET/PUT/DELETE /v1/tasks/{task_id}"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(AppPermission.TASKS_READ)
    def get(self, request, task_id):
        task = TaskService.get_task(request.tenant, task_id)
        return Response(TaskSerializer(task).data)

    @requires_scopes(AppPermission.TASKS_WRITE)
    def put(self, request, task_id):
        task = TaskService.get_task(request.tenant, task_id)
        serializer = TaskWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        task = TaskService.update_task(task, serializer.validated_data, request.user)
        return Response(TaskSerializer(task).data)

    @requires_scopes(AppPermission.TASKS_WRITE)
    def delete(self, request, task_id):
        task = TaskService.get_task(request.tenant, task_id)
        TaskService.delete_task(task)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    tags=['Tasks'],
    summary='Complete task',
    description='Completing an already completed task returns 400. **Required permission:** `tasks:write`',
    request=None,
    responses={200: TaskSerializer, 400: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.TASKS_WRITE)
class TaskCompleteView(APIView):
    """POST /v1/tasks/{task_id}/complete"""

    permission_classes = [HasTenantScopes]

    def post(self, request, task_id):
        task = TaskService.get_task(request.tenant, task_id)
        task = TaskService.complete_task(task, request.user)
        return Response(TaskSerializer(task).data)


@extend_schema(
    tags=['Home'],
    summary='Home dashboard',
    description='''
Setup, formation and operations progress, the next suggested action,
open tasks (most urgent first) and upcoming compliance deadlines.

**Required permission:** `formation:read`
    ''',
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_READ)
class HomeView(APIView):
    """GET /v1/home"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        summary = HomeService.summary(request.tenant)
        summary['tasks'] = TaskSerializer(summary['tasks'], many=True).data
        summary['upcoming_compliance'] = ComplianceItemSerializer(
            summary['upcoming_compliance'], many=True
        ).data
        return Response(summary)
