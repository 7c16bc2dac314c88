from datetime import date

import pytest

from conftest import make_book, make_user

from campus_library import scheduled_tasks
from campus_library.models.borrow import Borrow
from campus_library.models.database import get_db
from campus_library.models.system_config import SystemConfig


@pytest.mark.parametrize('due, on, rate, expected', [
    (date(2026, 3, 10), date(2026, 3, 10), 1.0, 0.0),
    (date(2026, 3, 10), date(2026, 3, 9), 1.0, 0.0),
    (date(2026, 3, 10), date(2026, 3, 13), 1.0, 3.0),
    (date(2026, 3, 10), date(2026, 3, 13), 0.75, 2.25),
    ('2026-03-10', '2026-03-12 18:30:00', 2.5, 5.0),
    (date(2026, 3, 10), date(2026, 3, 20), 0.0, 0.0),
])
def test_calculate_fine(due, on, rate, expected):
    assert Borrow.calculate_fine(due, on, rate) == expected


def _overdue_loan(email, university_id, book):
    user = make_user(email, university_id)
    record, _ = Borrow.request(user.id, book.id)
    record.approve('admin@uni.edu', today=date(2026, 1, 1))
    return record


def test_update_overdue_fines_uses_configured_rate(ctx):
    book = make_book(total_copies=3)
    late = _overdue_loan('late@uni.edu', 1, book)

    updated = Borrow.update_overdue_fines(today=date(2026, 1, 12))
    assert updated == 1
    assert Borrow.get_by_id(late.id).fine_amount == 4.0


def test_update_overdue_fines_with_custom_amount(ctx):
    book = make_book(total_copies=3)
    late = _overdue_loan('late@uni.edu', 1, book)

    Borrow.update_overdue_fines(custom_amount=0.5, today=date(2026, 1, 12))
    assert Borrow.get_by_id(late.id).fine_amount == 2.0


def test_unforced_update_keeps_existing_fines(ctx):
    book = make_book(total_copies=3)
    late = _overdue_loan('late@uni.edu', 1, book)

    Borrow.update_overdue_fines(today=date(2026, 1, 10))
    assert Borrow.update_overdue_fines(force=False, today=date(2026, 1, 12)) == 0
    assert Borrow.get_by_id(late.id).fine_amount == 2.0

    assert Borrow.update_overdue_fines(force=True, today=date(2026, 1, 12)) == 1
    assert Borrow.get_by_id(late.id).fine_amount == 4.0


def test_loans_not_yet_due_are_untouched(ctx):
    book = make_book(total_copies=3)
    loan = _overdue_loan('ontime@uni.edu', 1, book)

    assert Borrow.update_overdue_fines(today=date(2026, 1, 8)) == 0
    assert Borrow.get_by_id(loan.id).fine_amount == 0.0


@pytest.mark.parametrize('amount', [-1, 'abc', None, True, float('inf')])
def test_invalid_fine_amounts_are_rejected(ctx, amount):
    success, message = SystemConfig.set_daily_fine_amount(amount, 'admin@uni.edu')
    assert success is False
    assert message == 'Invalid fine amount. Must be a positive number.'
    assert SystemConfig.get_daily_fine_amount() == 1.0


def test_fine_amount_is_stored_with_two_decimals(ctx):
    success, message = SystemConfig.set_daily_fine_amount('2.5', 'admin@uni.edu')
    assert success is True
    assert message == 'Fine amount updated to $2.50 per day'
    assert SystemConfig.get_entry('daily_fine_amount')['value'] == '2.50'
    assert SystemConfig.get_entry('daily_fine_amount')['updated_by'] == 'admin@uni.edu'


def test_fine_config_endpoints(admin_client):
    response = admin_client.get('/api/admin/fine-config')
    assert response.get_json()['fineAmount'] == 1.0

    saved = admin_client.post('/api/admin/fine-config', json={'fineAmount': 0.25})
    assert saved.status_code == 200
    assert saved.get_json()['fineAmount'] == 0.25

    bad = admin_client.post('/api/admin/fine-config', json={'fineAmount': -3})
    assert bad.status_code == 400

    updated = admin_client.post('/api/admin/update-overdue-fines', json={})
    assert updated.get_json()['updatedCount'] == 0


def test_fine_config_requires_admin(reader_client):
    assert reader_client.get('/api/admin/fine-config').status_code == 403


def test_scheduled_fine_job_only_charges_unfined_loans(app):
    with app.app_context():
        book = make_book(total_copies=3)
        unfined = _overdue_loan('late@uni.edu', 1, book)
        fined = _overdue_loan('later@uni.edu', 2, book)
        db = get_db()
        db.execute('UPDATE borrow_records SET fine_amount = 5.0 WHERE id = ?', (fined.id,))
        db.commit()

    scheduled_tasks.update_fines_job(app)

    with app.app_context():
        expected = Borrow.calculate_fine(unfined.due_date, date.today(), 1.0)
        assert expected > 0
        assert Borrow.get_by_id(unfined.id).fine_amount == expected
        assert Borrow.get_by_id(fined.id).fine_amount == 5.0
