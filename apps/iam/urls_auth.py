"""
URL routing for authentication endpoints.
"""
from django.urls import path
from apps.iam.views_auth import (
    RegistrationView, LoginView, TokenRefreshView, LogoutView, UserProfileView,
    ChangePasswordView, MfaStatusView, MfaSetupView, MfaVerifySetupView, MfaDisableView,
)

app_name = 'auth'

urlpatterns = [
    path('register', RegistrationView.as_view(), name='register'),
    path('login', LoginView.as_view(), name='login'),
    path('refresh', TokenRefreshView.as_view(), name='refresh'),
    path('logout', LogoutView.as_view(), name='logout'),
    path('me', UserProfileView.as_view(), name='profile'),
    path('change-password', ChangePasswordView.as_view(), name='change-password'),
    path('mfa/status', MfaStatusView.as_view(), name='mfa-status'),
    path('mfa/setup', MfaSetupView.as_view(), name='mfa-setup'),
    path('mfa/verify-setup', MfaVerifySetupView.as_view(), name='mfa-verify-setup'),
    path('mfa/disable', MfaDisableView.as_view(), name='mfa-disable'),
]
