"""Middleware for bearer-token authentication."""
import logging
from functools import wraps

from flask import g, request

from shopsmart.database import db_session
from shopsmart.exceptions import AuthenticationError, BusinessLogicError, UnauthorizedError
from shopsmart.models import User

logger = logging.getLogger(__name__)


def get_bearer_token():
    """Token from 'Authorization: Bearer <token>', or None."""
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def get_json_object():
    """
    Request body as a dict; an empty or unparsable body counts as {}.

    Raises:
        BusinessLogicError: The body is JSON but not an object
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BusinessLogicError('Request body must be a JSON object')
    return data


def load_current_user():
    """
    Load the user behind the request's bearer token into g.

    Called before each request. Sets g.user and g.user_role when the token
    is valid; otherwise keeps the reason in g.auth_error so that protected
    routes can report it. Public routes ignore bad tokens.
    """
    from shopsmart.services.auth_service import decode_token

    g.user = None
    g.user_role = None
    g.auth_error = None

    token = get_bearer_token()
    if not token:
        return

    try:
        payload = decode_token(token)
    except (AuthenticationError, UnauthorizedError) as e:
        g.auth_error = e
        return

    user = db_session.query(User).filter_by(id=payload.get('id')).first()
    if not user:
        logger.warning(f"[AUTH] Token for unknown user id={payload.get('id')}")
        g.auth_error = UnauthorizedError('Invalid token')
        return

    g.user = user
    g.user_role = user.role


def require_auth(f):
    """
    Decorator: Require a valid bearer token.

    Raises AuthenticationError (401) without a token or with an expired one,
    UnauthorizedError (403) for an invalid token.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise g.get('auth_error') or AuthenticationError()
        return f(*args, **kwargs)
    return decorated_function
