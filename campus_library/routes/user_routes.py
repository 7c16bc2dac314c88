import math

from flask import Blueprint, current_app, g, jsonify, request

from campus_library.models.admin_request import AdminRequest
from campus_library.models.user import User
from campus_library.utils.decorators import admin_required, login_required
from campus_library.utils.responses import error_response, success_response
from campus_library.utils.validators import parse_int

# Create user blueprint
user_bp = Blueprint('users', __name__, url_prefix='/api/users')


@user_bp.route('', methods=['GET'])
@user_bp.route('/', methods=['GET'])
@admin_required
def list_users():
    """Search members.

    Query params: search, status, role, sort, page, limit.
    """
    page = max(1, parse_int(request.args.get('page'), 1))
    limit = parse_int(request.args.get('limit'), current_app.config['USERS_PER_PAGE'])
    limit = min(max(1, limit), 200)

    users, total = User.search(
        search=request.args.get('search', '').strip(),
        status=request.args.get('status', ''),
        role=request.args.get('role', ''),
        sort=request.args.get('sort', 'name'),
        page=page,
        limit=limit,
    )
    return jsonify({
        'success': True,
        'users': [user.to_dict() for user in users],
        'total': total,
        'page': page,
        'totalPages': math.ceil(total / limit) if total else 0,
        'limit': limit,
    })


@user_bp.route('/admin-request', methods=['POST'])
@login_required
def submit_admin_request():
    data = request.get_json(silent=True) or {}
    admin_request, message = AdminRequest.create(g.user.id, data.get('requestReason', ''))
    if not admin_request:
        return error_response(message, 400)
    return success_response(message, 201, request=admin_request.to_dict())


@user_bp.route('/admin-request', methods=['GET'])
@login_required
def my_admin_request():
    admin_request = AdminRequest.get_latest_for_user(g.user.id)
    return success_response(request=admin_request.to_dict() if admin_request else None)
