from functools import wraps

from flask import jsonify
from flask_login import current_user

ANY_USER = ('user', 'premium', 'admin')
PREMIUM = ('premium', 'admin')
ADMIN = ('admin',)


def has_role(user, roles):
    """True when the user is authenticated and holds one of ``roles``."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return False
    role = (getattr(user, 'role', None) or '').lower()
    return role in {r.lower() for r in roles}


def roles_required(*roles):
    """Gate a view on the caller's role: 401 when anonymous, 403 when the role is not allowed."""
    allowed = roles or ANY_USER

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'error': 'Authentication required'}), 401
            if not has_role(current_user, allowed):
                return jsonify({'error': 'Insufficient permissions'}), 403
            return view(*args, **kwargs)
        return wrapped
    return decorator


def is_owner_or_admin(user, owner_id):
    return has_role(user, ADMIN) or (user.is_authenticated and user.id == owner_id)
