"""
Pagination classes for list endpoints.
"""
import math

from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardResultsSetPagination(PageNumberPagination):
    """
    Page/limit pagination.

    Query params: ``page`` (1-based) and ``limit`` (default 20, max 100).
    """
    page_size = settings.PAGINATION_DEFAULT_LIMIT
    page_size_query_param = 'limit'
    max_page_size = settings.PAGINATION_MAX_LIMIT

    def get_paginated_response(self, data):
        return Response({
            'results': data,
            'pagination': build_pagination_meta(
                self.page.number,
                self.get_page_size(self.request),
                self.page.paginator.count,
            ),
        })

    def get_paginated_response_schema(self, schema):
        return {
            'type': 'object',
            'properties': {
                'results': schema,
                'pagination': {
                    'type': 'object',
                    'properties': {
                        'page': {'type': 'integer'},
                        'limit': {'type': 'integer'},
                        'total': {'type': 'integer'},
                        'total_pages': {'type': 'integer'},
                        'has_next': {'type': 'boolean'},
                        'has_prev': {'type': 'boolean'},
                    },
                },
            },
        }


def build_pagination_meta(page, limit, total):
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': math.ceil(total / limit) if limit else 0,
        'has_next': page * limit < total,
        'has_prev': page > 1,
    }


def paginate_queryset(queryset, request, view=None):
    """Paginate and return ``(page_items, paginator)`` for APIViews."""
    paginator = StandardResultsSetPagination()
    page = paginator.paginate_queryset(queryset, request, view=view)
    return page, paginator
