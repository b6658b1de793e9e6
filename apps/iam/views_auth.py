"""
Authentication REST API views.

Implements endpoints for:
- User registration (creates the user's first tenant)
- Login, token refresh and logout
- Current user profile and password change
- TOTP multi-factor authentication setup
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from django_ratelimit.decorators import ratelimit
from django.utils.decorators import method_decorator
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import BadRequest, ratelimit_view
from apps.core.permissions import HasTenantScopes
from apps.iam.services import AuthService, MfaService
from apps.iam.serializers import (
    ChangePasswordSerializer, LoginSerializer, LogoutSerializer, MembershipSummarySerializer,
    MfaDisableSerializer, MfaStatusSerializer, MfaVerifySerializer, RefreshTokenSerializer,
    RegistrationSerializer, UserProfileSerializer, UserSerializer,
)


@extend_schema(
    tags=['Authentication'],
    summary='Register new user',
    description='''
Register a new user account with first tenant.

Creates:
- User account with hashed password
- Tenant with default IAM settings and system roles
- TenantUser membership with the Owner role

Returns a JWT for immediate use and the new tenant.

**No authentication required** - this is a public endpoint.

**Rate limit**: 3 requests/hour per IP
    ''',
    request=RegistrationSerializer,
    responses={
        201: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Registration Request',
            value={
                'email': 'founder@example.com',
                'password': 'SecurePass123!',
                'first_name': 'Ada',
                'last_name': 'Lovelace',
                'business_name': 'Analytical Engines LLC'
            },
            request_only=True
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='3/h', method='POST', block=False), name='dispatch')
class RegistrationView(APIView):
    """
    POST /v1/auth/register

    No authentication required.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return ratelimit_view(request, None)

        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.register_user(request=request, **serializer.validated_data)

        tenant = result['tenant']
        return Response(
            {
                'user': UserSerializer(result['user']).data,
                'tenant': {
                    'id': str(tenant.id),
                    'name': tenant.name,
                    'slug': tenant.slug,
                },
                'token': result['token'],
                'refresh_token': result['refresh_token'],
                'expires_in': result['expires_in'],
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Authentication'],
    summary='Login',
    description='''
Authenticate with email and password and receive a JWT.

Consecutive failures are counted; the account is locked once they reach
the strictest `max_failed_login_attempts` among the user's tenants.
A platform admin or a member with `iam:users:reset_password` unlocks it.

When the user has MFA enabled, `mfa_code` (a TOTP or backup code) is
required; without it the response is 401 `MFA_REQUIRED`.
`mfa_setup_required` is true when a tenant of the user requires MFA
that the user has not enabled yet.

**No authentication required** - this is a public endpoint.

**Rate limit**: 10 requests/minute per IP
    ''',
    request=LoginSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Invalid Credentials',
            value={
                'error': {
                    'code': 'INVALID_CREDENTIALS',
                    'message': 'Invalid email or password'
                }
            },
            response_only=True,
            status_codes=['401']
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='10/m', method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    POST /v1/auth/login

    Authenticate user and return JWT token.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        """Login user."""
        if getattr(request, 'limited', False):
            return ratelimit_view(request, None)

        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.login(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
            mfa_code=serializer.validated_data.get('mfa_code'),
            request=request,
        )

        return Response(
            {
                'user': UserSerializer(result['user']).data,
                'token': result['token'],
                'refresh_token': result['refresh_token'],
                'expires_in': result['expires_in'],
                'mfa_setup_required': result['mfa_setup_required'],
                'tenants': MembershipSummarySerializer(result['memberships'], many=True).data,
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Current user profile',
    description='Returns the authenticated user and all tenants they belong to. No tenant header needed.',
    responses={200: UserProfileSerializer, 401: OpenApiTypes.OBJECT},
)
class UserProfileView(APIView):
    """
    GET /v1/auth/me
    """
    permission_classes = [HasTenantScopes]

    def get(self, request):
        return Response(UserProfileSerializer(request.user).data)


@extend_schema(
    tags=['Authentication'],
    summary='Refresh tokens',
    description='''
Exchange a refresh token for a new access and refresh token pair.

Each refresh token works once; the presented one is revoked.

**No authentication required** - the refresh token is the credential.

**Rate limit**: 30 requests/minute per IP
    ''',
    request=RefreshTokenSerializer,
    responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
)
@method_decorator(ratelimit(key='ip', rate='30/m', method='POST', block=False), name='dispatch')
class TokenRefreshView(APIView):
    """
    POST /v1/auth/refresh
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return ratelimit_view(request, None)

        serializer = RefreshTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return Response(AuthService.refresh(serializer.validated_data['refresh_token']))


@extend_schema(
    tags=['Authentication'],
    summary='Logout',
    description='Revoke the bearer token and, when sent, the refresh token.',
    request=LogoutSerializer,
    responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
)
class LogoutView(APIView):
    """
    POST /v1/auth/logout
    """
    permission_classes = [HasTenantScopes]

    def post(self, request):
        auth_header = request.headers.get('Authorization', '')
        if not auth_header.startswith('Bearer '):
            raise BadRequest('Logout requires a bearer token')

        serializer = LogoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        AuthService.logout(
            request.user,
            auth_header[7:].strip(),
            refresh_token=serializer.validated_data.get('refresh_token') or None,
            request=request,
        )
        return Response({'message': 'Logged out successfully'})


@extend_schema(
    tags=['Authentication'],
    summary='Change password',
    description='''
Change the caller's own password.

Tokens issued before the change stop working; the response carries a
fresh token pair.

**Rate limit**: 5 requests/minute per user
    ''',
    request=ChangePasswordSerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
)
@method_decorator(ratelimit(key='user_or_ip', rate='5/m', method='POST', block=False), name='dispatch')
class ChangePasswordView(APIView):
    """
    POST /v1/auth/change-password
    """
    permission_classes = [HasTenantScopes]

    def post(self, request):
        if getattr(request, 'limited', False):
            return ratelimit_view(request, None)

        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        tokens = AuthService.change_password(
            request.user,
            serializer.validated_data['current_password'],
            serializer.validated_data['new_password'],
            request=request,
        )
        return Response({'message': 'Password changed successfully', **tokens})


@extend_schema(
    tags=['Multi-factor Authentication'],
    summary='MFA status',
    description='Whether MFA is enabled for the caller and whether any of their tenants requires it.',
    responses={200: MfaStatusSerializer},
)
class MfaStatusView(APIView):
    """
    GET /v1/auth/mfa/status
    """
    permission_classes = [HasTenantScopes]

    def get(self, request):
        return Response(MfaStatusSerializer(MfaService.status(request.user)).data)


@extend_schema(
    tags=['Multi-factor Authentication'],
    summary='Start MFA setup',
    description='''
Generate a TOTP secret and one-time backup codes.

MFA stays off until `/v1/auth/mfa/verify-setup` accepts a code from the
authenticator app. Backup codes are shown only in this response.
    ''',
    request=None,
    responses={200: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
)
class MfaSetupView(APIView):
    """
    POST /v1/auth/mfa/setup
    """
    permission_classes = [HasTenantScopes]

    def post(self, request):
        return Response(MfaService.initiate_setup(request.user))


@extend_schema(
    tags=['Multi-factor Authentication'],
    summary='Complete MFA setup',
    request=MfaVerifySerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
)
@method_decorator(ratelimit(key='user_or_ip', rate='10/m', method='POST', block=False), name='dispatch')
class MfaVerifySetupView(APIView):
    """
    POST /v1/auth/mfa/verify-setup
    """
    permission_classes = [HasTenantScopes]

    def post(self, request):
        if getattr(request, 'limited', False):
            return ratelimit_view(request, None)

        serializer = MfaVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        MfaService.complete_setup(request.user, serializer.validated_data['code'], request=request)
        return Response({'message': 'MFA enabled successfully'})


@extend_schema(
    tags=['Multi-factor Authentication'],
    summary='Disable MFA',
    description='Requires the account password.',
    request=MfaDisableSerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
)
@method_decorator(ratelimit(key='user_or_ip', rate='5/m', method='POST', block=False), name='dispatch')
class MfaDisableView(APIView):
    """
    POST /v1/auth/mfa/disable
    """
    permission_classes = [HasTenantScopes]

    def post(self, request):
        if getattr(request, 'limited', False):
            return ratelimit_view(request, None)

        serializer = MfaDisableSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        MfaService.disable(request.user, serializer.validated_data['password'], request=request)
        return Response({'message': 'MFA disabled successfully'})
