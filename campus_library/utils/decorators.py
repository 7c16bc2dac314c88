from functools import wraps

from flask import g

from campus_library.utils.responses import error_response


def login_required(f):
    """Decorator to require login"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('user'):
            return error_response('Please sign in to continue', 401)
        return f(*args, **kwargs)
    return decorated_function


def role_required(*roles):
    """Decorator to require specific roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = g.get('user')
            if not user:
                return error_response('Please sign in to continue', 401)

            if user.role not in roles:
                return error_response('Only admins can access this resource', 403)

            return f(*args, **kwargs)
        return decorated_function
    return decorator


admin_required = role_required('ADMIN')
