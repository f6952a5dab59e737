"""
Authentication service for storefront users.

Handles registration, credential checks and the bearer tokens (HS256 JWTs)
sent by clients in the Authorization header.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from shopsmart.database import db_session
from shopsmart.exceptions import AuthenticationError, BusinessLogicError, ConflictError, UnauthorizedError
from shopsmart.models import User, UserRole

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def is_valid_email(email: str) -> bool:
    """Validate email format."""
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def is_strong_password(password: str) -> bool:
    """Password must be at least MIN_PASSWORD_LENGTH characters long."""
    min_length = current_app.config.get('MIN_PASSWORD_LENGTH', 8)
    return bool(password) and len(password) >= min_length


def _require_text(*values) -> None:
    if any(value is not None and not isinstance(value, str) for value in values):
        raise BusinessLogicError('Email, password and names must be strings')


def find_user_by_email(email: str) -> Optional[User]:
    return db_session.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def register_user(email: str, password: str, first_name: Optional[str] = None,
                  last_name: Optional[str] = None, role: str = UserRole.CUSTOMER.value) -> User:
    """
    Create a new user.

    Raises:
        BusinessLogicError: Missing/invalid email or weak password
        ConflictError: Email already registered
    """
    _require_text(email, password, first_name, last_name)
    email = (email or '').strip()
    if not email or not password:
        raise BusinessLogicError('Email and password are required')
    if not is_valid_email(email):
        raise BusinessLogicError('Invalid email format')
    if not is_strong_password(password):
        min_length = current_app.config.get('MIN_PASSWORD_LENGTH', 8)
        raise BusinessLogicError(f'Password must be at least {min_length} characters long')
    if role not in (UserRole.CUSTOMER.value, UserRole.ADMIN.value):
        raise BusinessLogicError(f'Unknown role: {role}')

    if find_user_by_email(email):
        raise ConflictError('Email already registered')

    try:
        user = User(
            email=email,
            first_name=(first_name or '').strip() or None,
            last_name=(last_name or '').strip() or None,
            role=role
        )
        user.set_password(password)
        db_session.add(user)
        db_session.commit()
    except IntegrityError as e:
        # Lost a race against a concurrent registration
        db_session.rollback()
        logger.warning(f"[AUTH] Duplicate registration for {email}: {e}")
        raise ConflictError('Email already registered')

    logger.info(f"[AUTH] Registered {role} user {email} (id={user.id})")
    return user


def authenticate_user(email: str, password: str) -> User:
    """
    Check credentials.

    Raises:
        BusinessLogicError: Missing fields or invalid credentials
    """
    _require_text(email, password)
    if not email or not password:
        raise BusinessLogicError('Email and password are required')

    user = find_user_by_email(email)
    if not user or not user.check_password(password):
        logger.warning(f"[AUTH] Failed login for {email}")
        raise BusinessLogicError('Invalid credentials')

    return user


def generate_token(user: User) -> str:
    """Sign a bearer token carrying id, email and role."""
    now = datetime.now(timezone.utc)
    payload = {
        'id': user.id,
        'email': user.email,
        'role': user.role,
        'iat': now,
        'exp': now + timedelta(hours=current_app.config.get('JWT_EXPIRATION_HOURS', 24)),
    }
    return jwt.encode(
        payload,
        current_app.config['JWT_SECRET'],
        algorithm=current_app.config.get('JWT_ALGORITHM', 'HS256')
    )


def decode_token(token: str) -> Dict:
    """
    Verify a bearer token and return its payload.

    Raises:
        AuthenticationError: Token expired
        UnauthorizedError: Token invalid
    """
    try:
        return jwt.decode(
            token,
            current_app.config['JWT_SECRET'],
            algorithms=[current_app.config.get('JWT_ALGORITHM', 'HS256')]
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError('Token expired')
    except jwt.InvalidTokenError:
        raise UnauthorizedError('Invalid token')
