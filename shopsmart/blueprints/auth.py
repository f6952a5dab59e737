"""
Authentication blueprint.
Handles registration, login, logout and the current-user lookup over JSON.
"""

import logging

from flask import Blueprint, g, jsonify

from shopsmart.middleware import get_json_object, require_auth
from shopsmart.services.auth_service import authenticate_user, generate_token, register_user

logger = logging.getLogger(__name__)


auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create a customer account and log it in."""
    data = get_json_object()

    user = register_user(
        email=data.get('email'),
        password=data.get('password'),
        first_name=data.get('firstName'),
        last_name=data.get('lastName')
    )
    token = generate_token(user)

    return jsonify({
        'message': 'User registered successfully',
        'user': user.to_dict(),
        'token': token
    }), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = get_json_object()

    user = authenticate_user(data.get('email'), data.get('password'))
    token = generate_token(user)
    logger.info(f"[AUTH] User {user.email} logged in")

    return jsonify({
        'message': 'Login successful',
        'user': user.to_dict(),
        'token': token
    })


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Tokens are stateless; clients drop theirs."""
    return jsonify({'message': 'Logged out successfully'})


@auth_bp.route('/me', methods=['GET'])
@require_auth
def me():
    return jsonify({'user': g.user.to_dict()})
