"""
Unit tests for registration, credential checks and bearer tokens.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from shopsmart.exceptions import AuthenticationError, BusinessLogicError, ConflictError, UnauthorizedError
from shopsmart.services.auth_service import (
    authenticate_user, decode_token, generate_token, is_valid_email, register_user
)


class TestRegisterUser:

    def test_creates_customer(self, app):
        user = register_user('New@Test.com', 'password123', 'Ada', 'Lovelace')

        assert user.id is not None
        assert user.role == 'customer'
        assert user.first_name == 'Ada'
        assert user.check_password('password123')

    def test_duplicate_email_is_case_insensitive(self, app, customer):
        with pytest.raises(ConflictError) as exc_info:
            register_user(customer.email.upper(), 'password123')

        assert exc_info.value.status_code == 409
        assert exc_info.value.message == 'Email already registered'

    @pytest.mark.parametrize('email, password, message', [
        ('', 'password123', 'Email and password are required'),
        ('a@b.co', '', 'Email and password are required'),
        ('not-an-email', 'password123', 'Invalid email format'),
        ('short@test.com', 'short', 'Password must be at least 8 characters long'),
    ])
    def test_validation(self, app, email, password, message):
        with pytest.raises(BusinessLogicError) as exc_info:
            register_user(email, password)

        assert exc_info.value.message == message

    def test_non_string_fields(self, app):
        with pytest.raises(BusinessLogicError, match='must be strings'):
            register_user('new@test.com', 'password123', first_name=['New'])

        with pytest.raises(BusinessLogicError, match='must be strings'):
            register_user({'email': 'new@test.com'}, 'password123')

    def test_email_pattern(self):
        assert is_valid_email('shopper@example.com')
        assert not is_valid_email('shopper@example')
        assert not is_valid_email('shop per@example.com')


class TestAuthenticateUser:

    def test_valid_credentials(self, app, customer):
        assert authenticate_user(customer.email, 'password123').id == customer.id

    def test_wrong_password(self, app, customer):
        with pytest.raises(BusinessLogicError) as exc_info:
            authenticate_user(customer.email, 'wrong-password')

        assert exc_info.value.message == 'Invalid credentials'

    def test_unknown_email(self, app):
        with pytest.raises(BusinessLogicError, match='Invalid credentials'):
            authenticate_user('nobody@test.com', 'password123')

    @pytest.mark.parametrize('email, password', [
        (5, 'password123'),
        (['a@test.com'], 'password123'),
        ('a@test.com', {'plain': 'password123'}),
    ])
    def test_non_string_credentials(self, app, email, password):
        with pytest.raises(BusinessLogicError, match='must be strings'):
            authenticate_user(email, password)


class TestTokens:

    def test_round_trip(self, app, admin):
        payload = decode_token(generate_token(admin))

        assert payload['id'] == admin.id
        assert payload['email'] == admin.email
        assert payload['role'] == 'admin'
        assert payload['exp'] > payload['iat']

    def test_expired_token(self, app, admin):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {'id': admin.id, 'email': admin.email, 'role': admin.role, 'iat': past, 'exp': past + timedelta(hours=1)},
            app.config['JWT_SECRET'],
            algorithm='HS256'
        )

        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(token)

        assert exc_info.value.message == 'Token expired'
        assert exc_info.value.status_code == 401

    def test_token_signed_with_other_secret(self, app, admin):
        token = jwt.encode({'id': admin.id}, 'some-other-secret', algorithm='HS256')

        with pytest.raises(UnauthorizedError) as exc_info:
            decode_token(token)

        assert exc_info.value.message == 'Invalid token'
        assert exc_info.value.status_code == 403

    def test_garbage_token(self, app):
        with pytest.raises(UnauthorizedError):
            decode_token('not.a.token')
