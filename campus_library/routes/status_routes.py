import platform
import sqlite3
import time
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify

from campus_library.models.database import TIMESTAMP_FORMAT, get_db

# Create status blueprint
status_bp = Blueprint('status', __name__, url_prefix='/api/status')

COUNTED_TABLES = ('users', 'books', 'borrow_records', 'book_reviews', 'system_config',
                  'admin_requests')

STARTED_AT = time.time()


def _check_database():
    started = time.perf_counter()
    try:
        get_db().execute('SELECT 1').fetchone()
    except sqlite3.Error as e:
        current_app.logger.error('Database health check failed: %s', e)
        return {'status': 'UNHEALTHY', 'error': str(e)}
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    return {'status': 'HEALTHY', 'responseTime': elapsed_ms}


@status_bp.route('/health', methods=['GET'])
def health():
    """Overall service health. 503 when the database is unreachable."""
    database = _check_database()
    healthy = database['status'] == 'HEALTHY'
    body = {
        'status': 'HEALTHY' if healthy else 'UNHEALTHY',
        'services': {'database': database},
        'timestamp': datetime.now().isoformat(),
    }
    return jsonify(body), 200 if healthy else 503


@status_bp.route('/database', methods=['GET'])
def database_status():
    database = _check_database()
    if database['status'] != 'HEALTHY':
        return jsonify({'success': False, 'database': database}), 503

    db = get_db()
    counts = {
        table: db.execute(f'SELECT COUNT(*) FROM {table}').fetchone()[0]
        for table in COUNTED_TABLES
    }
    return jsonify({'success': True, 'database': database, 'tables': counts})


@status_bp.route('/api-server', methods=['GET'])
def api_server_status():
    return jsonify({
        'status': 'HEALTHY',
        'details': {
            'uptime': round(time.time() - STARTED_AT, 2),
            'pythonVersion': platform.python_version(),
            'platform': platform.system(),
        },
        'timestamp': datetime.now().isoformat(),
    })


@status_bp.route('/email-service', methods=['GET'])
def email_service_status():
    """Report which email providers are configured.

    HEALTHY when Brevo is configured, DEGRADED when only the Resend
    fallback is, DOWN when neither is.
    """
    has_brevo = bool(current_app.config.get('BREVO_API_KEY'))
    has_resend = bool(current_app.config.get('RESEND_API_KEY'))

    if has_brevo:
        status, provider = 'HEALTHY', 'Brevo (Primary)'
    elif has_resend:
        status, provider = 'DEGRADED', 'Resend (Fallback)'
    else:
        status, provider = 'DOWN', 'None'
        current_app.logger.warning('No email provider configured')

    return jsonify({
        'status': status,
        'provider': provider,
        'details': {
            'primary': {
                'service': 'Brevo',
                'status': 'Configured' if has_brevo else 'Not configured',
                'senderEmail': current_app.config.get('MAIL_FROM') or 'Not configured',
            },
            'fallback': {
                'service': 'Resend',
                'status': 'Configured' if has_resend else 'Not configured',
            },
        },
        'timestamp': datetime.now().isoformat(),
    })


@status_bp.route('/metrics', methods=['GET'])
def metrics():
    """Activity counters drawn from the users, borrow and log tables."""
    database = _check_database()
    if database['status'] != 'HEALTHY':
        return jsonify({'status': 'DOWN', 'database': database}), 503

    db = get_db()
    now = datetime.now()
    hour_ago = (now - timedelta(hours=1)).strftime(TIMESTAMP_FORMAT)
    today = now.strftime('%Y-%m-%d')

    borrows = db.execute('''
        SELECT COUNT(*) AS total,
               COALESCE(SUM(CASE WHEN created_at > ? THEN 1 ELSE 0 END), 0) AS recent,
               COALESCE(SUM(CASE WHEN status = 'PENDING' THEN 1 ELSE 0 END), 0) AS pending
        FROM borrow_records
    ''', (hour_ago,)).fetchone()
    logs = db.execute('''
        SELECT COUNT(*) AS total,
               COALESCE(SUM(CASE WHEN log_type = 'error' THEN 1 ELSE 0 END), 0) AS errors
        FROM system_logs WHERE timestamp > ?
    ''', (hour_ago,)).fetchone()
    active_today = db.execute(
        'SELECT COUNT(*) FROM users WHERE last_activity_date = ?', (today,)
    ).fetchone()[0]
    page_count = db.execute('PRAGMA page_count').fetchone()[0]
    page_size = db.execute('PRAGMA page_size').fetchone()[0]

    error_rate = round(logs['errors'] / logs['total'] * 100, 2) if logs['total'] else 0.0
    return jsonify({
        'status': 'HEALTHY',
        'timestamp': now.isoformat(),
        'metrics': {
            'databasePerformance': database,
            'borrowRequests': {
                'total': borrows['total'],
                'lastHour': borrows['recent'],
                'pending': borrows['pending'],
            },
            'errorRate': {
                'percentage': error_rate,
                'errors': logs['errors'],
                'events': logs['total'],
            },
            'activeUsers': {'today': active_today},
            'storageUsage': {'bytes': page_count * page_size},
        },
    })
