"""
Helper Functions
Utility functions used across the application
"""
from datetime import datetime, timezone
from flask import session, jsonify
from functools import wraps
import random
import string
import pytz


def now_utc():
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc)


def as_utc(dt):
    """Attach UTC to naive timestamps (SQLite drops tzinfo on reload)"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_to_local(utc_dt, timezone_name):
    """Convert UTC datetime to the configured display timezone"""
    if not utc_dt:
        return None
    local_tz = pytz.timezone(timezone_name)
    return as_utc(utc_dt).astimezone(local_tz)


def parse_datetime(value):
    """Parse an ISO-8601 string into an aware UTC datetime"""
    if isinstance(value, datetime):
        return as_utc(value)
    if not value or not isinstance(value, str):
        raise ValueError('Invalid date format')
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return as_utc(datetime.fromisoformat(text))


def generate_join_code(length=6):
    """Generate random join code"""
    return "".join(random.choices(string.ascii_uppercase + string.digits, k=length))


def get_current_user():
    """Get current logged-in user"""
    from examgate.extensions import db
    from examgate.models import User

    user_id = session.get("user_id")
    if user_id is None:
        return None
    return db.session.get(User, user_id)


def _require_role(role, label):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if "user_id" not in session:
                return jsonify({
                    'message': 'Login required',
                    'error': 'unauthorized',
                    'nextStep': 'login',
                }), 401
            if session.get("role") != role:
                return jsonify({
                    'message': f'Only {label} can perform this action',
                    'error': 'forbidden',
                    'nextStep': None,
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


# Decorators
def require_teacher(f):
    """Decorator to require teacher role"""
    return _require_role('teacher', 'teachers')(f)


def require_student(f):
    """Decorator to require student role"""
    return _require_role('student', 'students')(f)
