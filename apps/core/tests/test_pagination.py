"""
Tests for page/limit pagination.

Tests:
- Pagination metadata
- Default and capped limits
"""
import pytest
from rest_framework.exceptions import NotFound
from rest_framework.request import Request
from rest_framework.test import APIRequestFactory

from apps.core.pagination import build_pagination_meta, paginate_queryset


def _request(params=None):
    return Request(APIRequestFactory().get('/v1/iam/members', params or {}))


class TestBuildPaginationMeta:

    def test_first_page(self):
        assert build_pagination_meta(1, 20, 45) == {
            'page': 1,
            'limit': 20,
            'total': 45,
            'total_pages': 3,
            'has_next': True,
            'has_prev': False,
        }

    def test_last_page(self):
        meta = build_pagination_meta(3, 20, 45)

        assert meta['has_next'] is False
        assert meta['has_prev'] is True

    def test_exact_fit(self):
        meta = build_pagination_meta(2, 20, 40)

        assert meta['total_pages'] == 2
        assert meta['has_next'] is False

    def test_empty(self):
        meta = build_pagination_meta(1, 20, 0)

        assert meta['total_pages'] == 0
        assert meta['has_next'] is False


class TestPaginateQueryset:

    def test_default_limit(self):
        page, paginator = paginate_queryset(list(range(45)), _request())

        assert page == list(range(20))
        assert paginator.get_paginated_response(page).data['pagination']['limit'] == 20

    def test_limit_is_capped(self):
        page, paginator = paginate_queryset(list(range(250)), _request({'limit': 500, 'page': 2}))

        assert page == list(range(100, 200))
        assert paginator.get_paginated_response(page).data['pagination'] == {
            'page': 2,
            'limit': 100,
            'total': 250,
            'total_pages': 3,
            'has_next': True,
            'has_prev': True,
        }

    def test_page_out_of_range(self):
        with pytest.raises(NotFound):
            paginate_queryset(list(range(5)), _request({'page': 9}))
