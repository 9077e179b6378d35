# apps/api/authentication.py
"""
Custom JWT authentication that supports httpOnly cookies.

Checks for JWT tokens in the following order:
1. httpOnly cookie (browser clients)
2. Authorization header (scanning stations, scripts)
"""

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError


ACCESS_TOKEN_COOKIE = 'stocktally_access'


class CookieJWTAuthentication(JWTAuthentication):
    """
    JWT Authentication that reads tokens from httpOnly cookies.

    Falls back to the Authorization header for non-browser clients.
    """

    def authenticate(self, request):
        raw_token = request.COOKIES.get(ACCESS_TOKEN_COOKIE)

        if raw_token:
            try:
                validated_token = self.get_validated_token(raw_token)
                return self.get_user(validated_token), validated_token
            except (InvalidToken, TokenError):
                # Cookie token invalid, try header
                pass

        return super().authenticate(request)
