"""
Document API URLs.
"""
from django.urls import path
from apps.formation.views_documents import (
    DocumentListView,
    DocumentTemplateListView,
    DocumentGenerateView,
    DocumentDetailView,
    DocumentTransitionView,
    DocumentRegenerateView,
    DocumentVersionsView,
)

app_name = 'documents'

urlpatterns = [
    path('documents', DocumentListView.as_view(), name='list'),
    path('documents/templates', DocumentTemplateListView.as_view(), name='templates'),
    path('documents/generate', DocumentGenerateView.as_view(), name='generate'),
    path('documents/<uuid:document_id>', DocumentDetailView.as_view(), name='detail'),
    path('documents/<uuid:document_id>/transition', DocumentTransitionView.as_view(), name='transition'),
    path('documents/<uuid:document_id>/regenerate', DocumentRegenerateView.as_view(), name='regenerate'),
    path('documents/<uuid:document_id>/versions', DocumentVersionsView.as_view(), name='versions'),
]
