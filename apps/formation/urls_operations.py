"""
Operations API URLs.
"""
from django.urls import path
from apps.formation.views_operations import (
    OperationsStatusView,
    BankingView,
    OperatingAgreementView,
    ComplianceSetupView,
    ComplianceItemListView,
    ComplianceItemCompleteView,
)

app_name = 'operations'

urlpatterns = [
    path('status', OperationsStatusView.as_view(), name='status'),
    path('banking', BankingView.as_view(), name='banking'),
    path('operating-agreement', OperatingAgreementView.as_view(), name='operating-agreement'),
    path('compliance/setup', ComplianceSetupView.as_view(), name='compliance-setup'),
    path('compliance/items', ComplianceItemListView.as_view(), name='compliance-items'),
    path(
        'compliance/items/<uuid:item_id>/complete',
        ComplianceItemCompleteView.as_view(),
        name='compliance-item-complete'
    ),
]
