import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt
from django.conf import settings
from django.http import HttpRequest
from ninja.security import HttpBearer

from slotting.models import CommunityApplication, User

logger = logging.getLogger(__name__)


def generate_jwt(user: User) -> str:
    """
    Generate a JWT token for a user.

    The token only identifies the user. Permissions are loaded from the
    database on every request so revoked grants take effect immediately.
    """
    now = datetime.now(timezone.utc)
    payload = {
        'user': {
            'uid': str(user.uid),
            'nickname': user.nickname,
            'community': {
                'uid': str(user.community.uid),
                'name': user.community.name,
                'tag': user.community.tag,
                'slug': user.community.slug,
            } if user.community else None,
        },
        'iat': now,
        'exp': now + timedelta(seconds=settings.JWT_EXPIRES_IN),
        'iss': settings.JWT_ISSUER,
        'aud': settings.JWT_AUDIENCE,
        'sub': str(user.uid),
    }

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_jwt(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a JWT token"""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        logger.debug('rejected expired token')
        return None
    except jwt.InvalidTokenError as err:
        logger.debug('rejected invalid token: %s', err)
        return None


def load_principal(payload: Optional[Dict[str, Any]]) -> Optional[User]:
    """Resolve the active user a decoded token was issued for."""
    if not payload:
        return None
    user_uid = payload.get('sub') or payload.get('user', {}).get('uid')
    if not user_uid:
        return None
    return User.objects.select_related('community').filter(uid=user_uid, active=True).first()


def authenticate_request(request: HttpRequest, token: str) -> Optional[Dict[str, Any]]:
    payload = decode_jwt(token)
    user = load_principal(payload)
    if user is None:
        return None
    request.principal = user
    return payload


def get_optional_principal(request: HttpRequest) -> Optional[User]:
    """
    Principal for endpoints that also serve anonymous callers.

    Reads the bearer token by hand since these routes are mounted with
    `auth=None`.
    """
    principal = getattr(request, 'principal', None)
    if principal is not None:
        return principal

    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None
    if authenticate_request(request, auth_header.split(' ', 1)[1]) is None:
        return None
    return request.principal


def has_approved_community(user: User) -> Tuple[bool, Optional[str]]:
    """
    Check if user has an approved community membership.

    Returns:
        tuple: (has_community, status_message)
        - has_community: bool indicating if user has approved community
        - status_message: None if has community, otherwise reason for blocking
    """
    if user.community_id is not None:
        return True, None

    pending_app = CommunityApplication.objects.filter(
        user=user,
        status=CommunityApplication.STATUS_SUBMITTED,
    ).exists()

    if pending_app:
        return False, 'You have a pending community application. Please wait for approval.'

    return False, 'You must be a member of a community to access this content. Please apply to a community first.'


class JWTAuth(HttpBearer):
    """
    JWT authentication for Django Ninja.
    Verifies the token, loads the user it was issued for into
    `request.principal` and attaches the decoded payload to `request.auth`.
    """

    def authenticate(self, request: HttpRequest, token: str) -> Optional[dict]:
        return authenticate_request(request, token)


class RequiresCommunityMembership(HttpBearer):
    """
    Authentication that requires both JWT and approved community membership.
    """

    def authenticate(self, request: HttpRequest, token: str) -> Optional[dict]:
        payload = authenticate_request(request, token)
        if payload is None:
            return None

        has_community, error_msg = has_approved_community(request.principal)
        if not has_community:
            # Store error for retrieval in endpoint if needed
            request.community_membership_error = error_msg
            return None

        return payload
