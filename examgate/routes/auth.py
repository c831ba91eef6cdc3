"""
Authentication Routes
Handles registration, login and logout
"""
from flask import Blueprint, request, session, jsonify
from werkzeug.security import generate_password_hash, check_password_hash
from examgate.extensions import db
from examgate.models import User
from examgate.utils import get_current_user

auth_bp = Blueprint('auth', __name__)


def _payload():
    return request.get_json(silent=True) or request.form


@auth_bp.route('/register', methods=['POST'])
def register():
    """User registration"""
    data = _payload()
    username = (data.get('username') or '').strip()
    password = data.get('password')
    role = data.get('role')

    if not username or not password or role not in User.ROLES:
        return jsonify({'message': 'Invalid input', 'error': 'invalid_request'}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({'message': 'Username already exists', 'error': 'invalid_request'}), 400

    user = User(
        username=username,
        password=generate_password_hash(password),
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return jsonify({'message': 'Registration successful', 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """User login"""
    data = _payload()
    username = data.get('username')
    password = data.get('password') or ''

    user = User.query.filter_by(username=username).first()
    if not user or not check_password_hash(user.password, password):
        return jsonify({'message': 'Invalid username or password', 'error': 'unauthorized'}), 401

    session.clear()
    session['user_id'] = user.id
    session['username'] = user.username
    session['role'] = user.role
    return jsonify({'message': 'Login successful', 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """User logout"""
    session.clear()
    return jsonify({'message': 'Logged out successfully'})


@auth_bp.route('/me')
def me():
    """Current session user"""
    user = get_current_user()
    if not user:
        return jsonify({'message': 'Login required', 'error': 'unauthorized'}), 401
    return jsonify({'user': user.to_dict()})
