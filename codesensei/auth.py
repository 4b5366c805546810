import logging
from functools import wraps

from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from flask import g, request

from .errors import AuthenticationError

logger = logging.getLogger(__name__)


def verify_firebase_token(id_token):
    """Decode a Firebase ID token (Google or anonymous sign-in)"""
    return firebase_auth.verify_id_token(id_token)


def bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def require_user(verify_token):
    """Route decorator: verify the bearer token and expose the caller as g.uid / g.user"""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            token = bearer_token()
            if not token:
                raise AuthenticationError()
            try:
                decoded = verify_token(token)
            except (ValueError, firebase_exceptions.FirebaseError) as e:
                logger.warning("Rejected ID token: %s", e)
                raise AuthenticationError(f"Failed to verify token: {e}") from e
            g.uid = decoded['uid']
            g.user = decoded
            return view(*args, **kwargs)
        return wrapped
    return decorator
