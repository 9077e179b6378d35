# apps/api/v1/views/auth.py
"""
JWT authentication views with httpOnly cookie support.

Browser clients get their tokens as httpOnly cookies. Scanning stations
and scripts use the plain simplejwt endpoints under auth/token/ and send
an Authorization header instead.
"""

from django.conf import settings
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError, InvalidToken
from drf_spectacular.utils import extend_schema

from apps.api.authentication import ACCESS_TOKEN_COOKIE
from apps.api.exceptions import error_response


REFRESH_TOKEN_COOKIE = 'stocktally_refresh'


def _cookie_max_age(key):
    return int(settings.SIMPLE_JWT[key].total_seconds())


def _get_cookie_settings():
    """Get cookie settings based on DEBUG mode."""
    return {
        'httponly': True,
        'secure': not settings.DEBUG,
        'samesite': 'Lax',
        'path': '/',
    }


class CookieTokenObtainPairView(TokenObtainPairView):
    """
    Login endpoint that sets JWT tokens in httpOnly cookies.

    POST /api/v1/auth/login/
    Body: { "username": "...", "password": "..." }
    """

    @extend_schema(
        tags=['auth'],
        summary='Login and receive JWT in httpOnly cookies',
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)

        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            raise InvalidToken(e.args[0])

        user = serializer.user
        response = Response({
            'user': {
                'id': user.id,
                'username': user.username,
                'name': user.name,
                'tenant': user.tenant_id,
            }
        })

        cookie_settings = _get_cookie_settings()
        response.set_cookie(
            ACCESS_TOKEN_COOKIE,
            serializer.validated_data['access'],
            max_age=_cookie_max_age('ACCESS_TOKEN_LIFETIME'),
            **cookie_settings
        )
        response.set_cookie(
            REFRESH_TOKEN_COOKIE,
            serializer.validated_data['refresh'],
            max_age=_cookie_max_age('REFRESH_TOKEN_LIFETIME'),
            **cookie_settings
        )
        return response


class CookieTokenRefreshView(APIView):
    """
    Refresh the access token using the refresh token cookie.

    POST /api/v1/auth/refresh/
    """
    permission_classes = [AllowAny]

    @extend_schema(
        tags=['auth'],
        summary='Refresh access token from httpOnly cookie',
    )
    def post(self, request, *args, **kwargs):
        refresh_token = request.COOKIES.get(REFRESH_TOKEN_COOKIE)
        if not refresh_token:
            return error_response(
                'NOT_AUTHENTICATED', 'No refresh token provided.',
                status_code=status.HTTP_401_UNAUTHORIZED,
            )

        try:
            refresh = RefreshToken(refresh_token)
        except TokenError:
            return error_response(
                'NOT_AUTHENTICATED', 'Invalid or expired refresh token.',
                status_code=status.HTTP_401_UNAUTHORIZED,
            )

        response = Response({'refreshed': True})
        response.set_cookie(
            ACCESS_TOKEN_COOKIE,
            str(refresh.access_token),
            max_age=_cookie_max_age('ACCESS_TOKEN_LIFETIME'),
            **_get_cookie_settings()
        )
        return response


class CookieLogoutView(APIView):
    """
    Logout by clearing JWT cookies.

    POST /api/v1/auth/logout/
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=['auth'], summary='Logout and clear JWT cookies')
    def post(self, request, *args, **kwargs):
        response = Response(status=status.HTTP_204_NO_CONTENT)
        response.delete_cookie(ACCESS_TOKEN_COOKIE, path='/')
        response.delete_cookie(REFRESH_TOKEN_COOKIE, path='/')
        return response
