"""
Formation API URLs.

Provides endpoints for:
- The setup wizard
- The business profile and formation milestones
- The formation workflow
"""
from django.urls import path
from apps.formation.views import (
    SetupStatusView,
    SetupStartView,
    SetupEntityTypeView,
    SetupStateView,
    SetupBusinessInfoView,
    SetupCompleteView,
    BusinessProfileView,
    FormationStatusView,
    FormationProgressView,
    WorkflowView,
    WorkflowStepView,
    WorkflowAdvanceView,
)

app_name = 'formation'

urlpatterns = [
    # Setup wizard
    path('setup/status', SetupStatusView.as_view(), name='setup-status'),
    path('setup/start', SetupStartView.as_view(), name='setup-start'),
    path('setup/entity-type', SetupEntityTypeView.as_view(), name='setup-entity-type'),
    path('setup/state', SetupStateView.as_view(), name='setup-state'),
    path('setup/business-info', SetupBusinessInfoView.as_view(), name='setup-business-info'),
    path('setup/complete', SetupCompleteView.as_view(), name='setup-complete'),

    # Profile and progress
    path('profile', BusinessProfileView.as_view(), name='profile'),
    path('status', FormationStatusView.as_view(), name='status'),
    path('progress', FormationProgressView.as_view(), name='progress'),

    # Workflow
    path('workflow', WorkflowView.as_view(), name='workflow'),
    path('workflow/steps/<str:step>', WorkflowStepView.as_view(), name='workflow-step'),
    path('workflow/advance', WorkflowAdvanceView.as_view(), name='workflow-advance'),
]
