"""
URL configuration for Charter.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),

    # Health checks: /health, /health/live, /health/ready
    path('', include('apps.core.urls')),

    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Authentication endpoints
    path('v1/auth/', include('apps.iam.urls_auth')),  # Register, login, me

    # IAM endpoints
    path('v1/iam/', include('apps.iam.urls')),  # Users, roles, groups, API keys, access requests/reviews, audit, settings

    # Formation endpoints
    path('v1/formation/', include('apps.formation.urls')),  # Setup wizard, profile, workflow, progress
    path('v1/operations/', include('apps.formation.urls_operations')),  # Banking, operating agreement, compliance
    path('v1/', include('apps.formation.urls_documents')),  # Documents and templates
    path('v1/', include('apps.formation.urls_tasks')),  # Tasks and the home dashboard
]
