import math

from flask import Blueprint, current_app, g, jsonify, request

from campus_library.extensions import broadcast_invalidation
from campus_library.models.borrow import STATUSES, Borrow
from campus_library.utils.decorators import login_required
from campus_library.utils.responses import error_response, success_response
from campus_library.utils.validators import parse_int

# Create borrow blueprint
borrow_bp = Blueprint('borrows', __name__, url_prefix='/api/borrow-records')


@borrow_bp.route('', methods=['GET'])
@borrow_bp.route('/', methods=['GET'])
@login_required
def list_records():
    """List borrow records.

    Members only ever see their own records; admins may filter by any user.
    """
    user_id = request.args.get('userId') or None
    if not g.user.is_admin:
        if user_id and user_id != g.user.id:
            return error_response('You can only access your own borrow records', 403)
        user_id = g.user.id

    status = request.args.get('status') or None
    if status and status not in STATUSES:
        return error_response(f"Invalid status. Must be one of: {', '.join(STATUSES)}", 400)

    page = max(1, parse_int(request.args.get('page'), 1))
    limit = parse_int(request.args.get('limit'), current_app.config['RECORDS_PER_PAGE'])
    limit = min(max(1, limit), 200)

    records, total = Borrow.search(
        user_id=user_id,
        book_id=request.args.get('bookId') or None,
        status=status,
        date_from=request.args.get('dateFrom') or None,
        date_to=request.args.get('dateTo') or None,
        overdue=request.args.get('overdue', '').lower() in ('1', 'true', 'yes'),
        sort_by=request.args.get('sort', 'date'),
        page=page,
        limit=limit,
    )

    return jsonify({
        'success': True,
        'records': records,
        'pagination': {
            'currentPage': page,
            'totalPages': math.ceil(total / limit) if total else 0,
            'totalRecords': total,
            'recordsPerPage': limit,
        },
    })


@borrow_bp.route('/<record_id>/return', methods=['POST'])
@login_required
def return_record(record_id):
    record = Borrow.get_by_id(record_id)
    if not record or (record.user_id != g.user.id and not g.user.is_admin):
        return error_response('Borrow record not found', 404)

    success, message = record.return_book(g.user.email)
    if not success:
        return error_response(message, 400)

    broadcast_invalidation('borrows', 'books')
    return success_response(message, record=record.to_dict())


@borrow_bp.route('/<record_id>/renew', methods=['POST'])
@login_required
def renew_record(record_id):
    record = Borrow.get_by_id(record_id)
    if not record or record.user_id != g.user.id:
        return error_response('Borrow record not found', 404)

    success, message = record.renew(g.user.id)
    if not success:
        return error_response(message, 400)

    broadcast_invalidation('borrows')
    return success_response(message, record=record.to_dict())
