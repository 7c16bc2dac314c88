import csv
from io import StringIO

from flask import Blueprint, current_app, g, make_response, request

from campus_library.extensions import broadcast_invalidation
from campus_library.models.admin_request import AdminRequest
from campus_library.models.analytics import Analytics
from campus_library.models.book import Book
from campus_library.models.borrow import STATUSES, Borrow
from campus_library.models.recommendation import Recommendation
from campus_library.models.system_config import SystemConfig
from campus_library.models.system_log import SystemLog
from campus_library.services import exports, reminders
from campus_library.utils.decorators import admin_required
from campus_library.utils.responses import error_response, success_response
from campus_library.utils.validators import parse_int, validate_book

# Create admin blueprint
admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


@admin_bp.before_request
@admin_required
def require_admin():
    """Every admin endpoint needs a signed-in ADMIN."""
    return None


# ==================== DASHBOARD ====================

@admin_bp.route('/stats', methods=['GET'])
def stats():
    """Display admin dashboard statistics."""
    return success_response(stats=g.user.get_dashboard_stats())


@admin_bp.route('/analytics', methods=['GET'])
def analytics():
    return success_response(analytics=Analytics.get_all())


# ==================== BORROW REQUESTS ====================

@admin_bp.route('/borrow-requests', methods=['GET'])
def borrow_requests():
    status = request.args.get('status', '')
    if status and status != 'all' and status not in STATUSES:
        return error_response(f"Invalid status. Must be one of: {', '.join(STATUSES)}", 400)

    records = Borrow.search_requests(status=status, query=request.args.get('search', '').strip())
    return success_response(requests=records, total=len(records))


@admin_bp.route('/borrow-requests/<record_id>/approve', methods=['POST'])
def approve_borrow(record_id):
    record = Borrow.get_by_id(record_id)
    if not record:
        return error_response('Borrow request not found', 404)

    success, message = record.approve(g.user.email)
    if not success:
        return error_response(message, 400)

    broadcast_invalidation('borrows', 'books')
    return success_response(message, record=record.to_dict())


@admin_bp.route('/borrow-requests/<record_id>/reject', methods=['POST'])
def reject_borrow(record_id):
    record = Borrow.get_by_id(record_id)
    if not record:
        return error_response('Borrow request not found', 404)

    success, message = record.reject(g.user.email)
    if not success:
        return error_response(message, 400)

    broadcast_invalidation('borrows')
    return success_response(message)


@admin_bp.route('/borrow-requests/<record_id>/return', methods=['POST'])
def return_borrow(record_id):
    record = Borrow.get_by_id(record_id)
    if not record:
        return error_response('Borrow record not found', 404)

    success, message = record.return_book(g.user.email)
    if not success:
        return error_response(message, 400)

    broadcast_invalidation('borrows', 'books')
    return success_response(message, record=record.to_dict())


# ==================== FINES ====================

@admin_bp.route('/fine-config', methods=['GET'])
def get_fine_config():
    entry = SystemConfig.get_entry('daily_fine_amount') or {}
    return success_response(
        fineAmount=SystemConfig.get_daily_fine_amount(),
        updatedBy=entry.get('updated_by'),
        updatedAt=entry.get('updated_at'),
    )


@admin_bp.route('/fine-config', methods=['POST'])
def save_fine_config():
    """Save the daily fine amount."""
    data = request.get_json(silent=True) or {}
    success, message = SystemConfig.set_daily_fine_amount(
        data.get('fineAmount'), data.get('updatedBy') or g.user.email
    )
    if not success:
        return error_response(message, 400)

    broadcast_invalidation('config')
    return success_response(message, fineAmount=SystemConfig.get_daily_fine_amount())


@admin_bp.route('/update-overdue-fines', methods=['POST'])
def update_overdue_fines():
    """Recalculate every overdue fine, optionally with a custom daily amount."""
    data = request.get_json(silent=True) or {}
    custom_amount = data.get('fineAmount')
    if custom_amount is not None:
        try:
            custom_amount = float(custom_amount)
        except (TypeError, ValueError):
            return error_response('Invalid fine amount. Must be a positive number.', 400)
        if custom_amount < 0 or isinstance(data.get('fineAmount'), bool):
            return error_response('Invalid fine amount. Must be a positive number.', 400)

    updated = Borrow.update_overdue_fines(custom_amount=custom_amount, force=True)
    broadcast_invalidation('borrows')
    return success_response(f'Updated fines for {updated} overdue record(s)', updatedCount=updated)


# ==================== AUTOMATION ====================

@admin_bp.route('/send-due-reminders', methods=['POST'])
def send_due_reminders():
    summary = reminders.send_all_reminders()
    return success_response(
        f"Sent {summary['sent']} reminder(s), {summary['failed']} failed",
        results=summary,
    )


@admin_bp.route('/reminder-stats', methods=['GET'])
def reminder_stats():
    return success_response(stats=reminders.get_reminder_stats())


@admin_bp.route('/update-trending-books', methods=['POST'])
def update_trending_books():
    result = Recommendation.update_trending_books()
    message = result.pop('message')
    return success_response(message, **result)


@admin_bp.route('/refresh-recommendation-cache', methods=['POST'])
def refresh_recommendation_cache():
    result = Recommendation.refresh_cache()
    message = result.pop('message')
    return success_response(message, **result)


@admin_bp.route('/recommendation-stats', methods=['GET'])
def recommendation_stats():
    return success_response(stats=Recommendation.get_stats())


# ==================== EXPORTS ====================

@admin_bp.route('/export/<kind>', methods=['GET'])
def export_data(kind):
    """Download books, users, borrows or analytics as CSV or JSON."""
    exporter = exports.EXPORTERS.get(kind)
    if not exporter:
        return error_response(f'Unknown export type: {kind}', 404)

    export_format = request.args.get('format', 'csv').lower()
    if export_format not in exports.EXPORT_FORMATS:
        return error_response('Format must be csv or json', 400)

    if kind == 'borrows':
        status = request.args.get('status') or None
        if status and status not in STATUSES:
            return error_response(f"Invalid status. Must be one of: {', '.join(STATUSES)}", 400)
        result = exporter(export_format, status=status,
                          date_from=request.args.get('dateFrom'),
                          date_to=request.args.get('dateTo'))
    else:
        result = exporter(export_format)

    SystemLog.add('Data Exported', f'{g.user.email} exported {kind} as {export_format}',
                  'info', g.user.id)

    output = make_response(result['data'])
    output.headers["Content-Disposition"] = f"attachment; filename={result['filename']}"
    output.headers["Content-type"] = result['contentType']
    return output


@admin_bp.route('/export-stats', methods=['GET'])
def export_stats():
    return success_response(stats=exports.get_export_stats())


# ==================== BOOKS ====================

@admin_bp.route('/books', methods=['POST'])
def create_book():
    cleaned, error = validate_book(request.get_json(silent=True) or {})
    if error:
        return error_response(error, 400, 'Validation failed')

    book, message = Book.create(updated_by=g.user.email, **cleaned)
    broadcast_invalidation('books')
    return success_response(message, 201, book=book.to_dict())


@admin_bp.route('/books/<book_id>', methods=['PUT', 'PATCH'])
def update_book(book_id):
    book = Book.get_by_id(book_id)
    if not book:
        return error_response('Book not found', 404)

    cleaned, error = validate_book(request.get_json(silent=True) or {}, partial=True)
    if error:
        return error_response(error, 400, 'Validation failed')

    success, message = book.update_fields(updated_by=g.user.email, **cleaned)
    if not success:
        return error_response(message, 400)

    broadcast_invalidation('books')
    return success_response(message, book=Book.get_by_id(book_id).to_dict())


@admin_bp.route('/books/<book_id>', methods=['DELETE'])
def delete_book(book_id):
    book = Book.get_by_id(book_id)
    if not book:
        return error_response('Book not found', 404)

    success, message = book.deactivate(g.user.email)
    if not success:
        return error_response(message, 400)

    broadcast_invalidation('books')
    return success_response(message)


# ==================== USERS ====================

@admin_bp.route('/users/<user_id>/status', methods=['POST'])
def set_user_status(user_id):
    data = request.get_json(silent=True) or {}
    success, message = g.user.set_user_status(user_id, (data.get('status') or '').upper())
    if not success:
        status = 404 if message == 'User not found' else 400
        return error_response(message, status)

    broadcast_invalidation('users')
    return success_response(message)


@admin_bp.route('/users/<user_id>/role', methods=['POST'])
def set_user_role(user_id):
    data = request.get_json(silent=True) or {}
    success, message = g.user.change_user_role(user_id, (data.get('role') or '').upper())
    if not success:
        status = 404 if message == 'User not found' else 400
        return error_response(message, status)

    broadcast_invalidation('users')
    return success_response(message)


@admin_bp.route('/admin-requests', methods=['GET'])
def admin_requests():
    pending_only = request.args.get('pending', '').lower() in ('1', 'true', 'yes')
    items = AdminRequest.get_all(pending_only=pending_only)
    return success_response(requests=[item.to_dict() for item in items])


@admin_bp.route('/admin-requests/<request_id>/approve', methods=['POST'])
def approve_admin_request(request_id):
    admin_request = AdminRequest.get_by_id(request_id)
    if not admin_request:
        return error_response('Admin request not found', 404)

    success, message = admin_request.approve(g.user.email)
    if not success:
        return error_response(message, 400)

    broadcast_invalidation('users')
    return success_response(message)


@admin_bp.route('/admin-requests/<request_id>/reject', methods=['POST'])
def reject_admin_request(request_id):
    admin_request = AdminRequest.get_by_id(request_id)
    if not admin_request:
        return error_response('Admin request not found', 404)

    data = request.get_json(silent=True) or {}
    success, message = admin_request.reject(g.user.email, (data.get('reason') or '').strip())
    if not success:
        return error_response(message, 400)
    return success_response(message)


# ==================== MAINTENANCE ====================

@admin_bp.route('/inventory', methods=['GET'])
def check_inventory():
    mismatches = Book.check_inventory_sync()
    return success_response(inSync=not mismatches, mismatches=mismatches)


@admin_bp.route('/inventory/repair', methods=['POST'])
def repair_inventory():
    fixed = Book.repair_inventory_sync(updated_by=g.user.email)
    if fixed:
        current_app.logger.warning('Repaired available copies for %d book(s)', len(fixed))
        broadcast_invalidation('books')
    return success_response(f'Repaired {len(fixed)} book(s)', fixed=fixed)


@admin_bp.route('/logs', methods=['GET'])
def logs():
    limit = min(max(1, parse_int(request.args.get('limit'), 100)), 1000)
    return success_response(logs=[log.to_dict() for log in SystemLog.get_recent(limit)])


@admin_bp.route('/logs/clear', methods=['POST'])
def clear_logs():
    """Clear old system logs."""
    data = request.get_json(silent=True) or {}
    days = max(1, parse_int(data.get('days'), 30))
    deleted = SystemLog.clear_old_logs(days)
    return success_response(f'Deleted {deleted} log entries older than {days} days',
                            deleted=deleted)


@admin_bp.route('/logs/export')
def export_logs():
    """Export system logs to CSV file."""
    logs = SystemLog.get_recent(1000)

    si = StringIO()
    writer = csv.writer(si)

    writer.writerow(['Timestamp', 'Action', 'Details', 'Type', 'User ID'])

    for log in logs:
        writer.writerow([
            log.timestamp,
            log.action,
            log.details,
            log.log_type,
            log.user_id or ''
        ])

    output = make_response(si.getvalue())
    output.headers["Content-Disposition"] = "attachment; filename=system_logs.csv"
    output.headers["Content-type"] = "text/csv"

    return output
