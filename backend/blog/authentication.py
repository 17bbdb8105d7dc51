"""
Bearer token authentication.

The Identity Validator seen by the rest of the app: turns
`Authorization: Bearer <jwt>` into request.user, or rejects the request.
Tokens are HS256 JWTs carrying the user id in the `id` claim.
"""
from datetime import datetime, timedelta, timezone

from django.conf import settings
from django.contrib.auth.models import User
from jose import jwt, JWTError
from rest_framework import authentication, exceptions


def create_access_token(user, expires_delta: timedelta = None) -> str:
    """Issue a token for `user`. Used by tests and the seed command."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode(
        {'id': user.id, 'username': user.username, 'exp': expire},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM
    )


def decode_token(token: str):
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


class BearerTokenAuthentication(authentication.BaseAuthentication):
    keyword = 'Bearer'

    def authenticate(self, request):
        header = authentication.get_authorization_header(request).split()
        if not header or header[0].lower() != self.keyword.lower().encode():
            return None

        if len(header) != 2:
            raise exceptions.AuthenticationFailed('Invalid token header.')

        try:
            token = header[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token header.')

        payload = decode_token(token)
        if not payload or 'id' not in payload:
            raise exceptions.AuthenticationFailed('Invalid or expired token')

        try:
            user = User.objects.get(id=payload['id'], is_active=True)
        except (User.DoesNotExist, ValueError, TypeError):
            # Missing user, or an id claim that is not an integer
            raise exceptions.AuthenticationFailed('Invalid or expired token')

        return user, token

    def authenticate_header(self, request):
        # Makes DRF answer 401 rather than 403 for anonymous requests
        return self.keyword
