from flask import Blueprint, current_app, g, request, session

from campus_library.extensions import broadcast_invalidation
from campus_library.models.system_log import SystemLog
from campus_library.models.user import User
from campus_library.utils.decorators import login_required
from campus_library.utils.responses import error_response, success_response
from campus_library.utils.validators import parse_bool, validate_sign_up

# Create auth blueprint
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def _start_session(user: User, remember: bool = False) -> None:
    session.clear()
    session['user_id'] = user.id
    session['user_role'] = user.role
    session.permanent = remember


@auth_bp.route('/sign-up', methods=['POST'])
def sign_up():
    """Register a new member account.

    The account starts PENDING and the user is signed in straight away so
    they can see their approval status.
    """
    data = request.get_json(silent=True) or {}
    cleaned, error = validate_sign_up(data)
    if error:
        return error_response(error, 400, 'Validation failed')

    user, message = User.create(**cleaned)
    if not user:
        return error_response(message, 400, 'Registration failed')

    _start_session(user)
    current_app.logger.info('New account registered: %s', user.email)
    broadcast_invalidation('users')
    return success_response(message, 201, user=user.to_dict())


@auth_bp.route('/sign-in', methods=['POST'])
def sign_in():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''

    if not email or not password:
        return error_response('Email and password are required', 400)

    user = User.login(email, password)
    if not user:
        current_app.logger.warning('Failed sign-in attempt for %s', email)
        return error_response('Invalid email or password', 401)

    _start_session(user, remember=parse_bool(data.get('remember')) is True)
    SystemLog.add('User Login', f'{user.full_name} ({user.role}) signed in', 'info', user.id)
    return success_response('Signed in successfully', user=user.to_dict())


@auth_bp.route('/sign-out', methods=['POST'])
def sign_out():
    user = g.get('user')
    if user:
        SystemLog.add('User Logout', f'{user.full_name} signed out', 'info', user.id)
    session.clear()
    return success_response('Signed out successfully')


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return success_response(user=g.user.to_dict())
