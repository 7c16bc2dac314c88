"""Background automation jobs run by APScheduler.

Each job opens its own application context, so it gets a fresh database
connection that is closed again when the job ends.
"""
import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

scheduler: Optional[BackgroundScheduler] = None


def update_fines_job(app) -> None:
    """Daily: charge fines on overdue loans that have none yet."""
    from campus_library.models.borrow import Borrow
    with app.app_context():
        try:
            updated = Borrow.update_overdue_fines(force=False)
            logger.info('Scheduled fine update touched %d record(s)', updated)
        except Exception:
            logger.exception('Scheduled fine update failed')


def send_reminders_job(app) -> None:
    """Daily: email due-soon and overdue reminders."""
    from campus_library.services.reminders import send_all_reminders
    with app.app_context():
        try:
            send_all_reminders()
        except Exception:
            logger.exception('Scheduled reminder run failed')


def refresh_recommendations_job(app) -> None:
    """Weekly: recompute trending books and drop cached recommendations."""
    from campus_library.models.recommendation import Recommendation
    with app.app_context():
        try:
            result = Recommendation.update_trending_books()
            Recommendation.refresh_cache()
            logger.info(result['message'])
        except Exception:
            logger.exception('Scheduled recommendation refresh failed')


def start_scheduler(app) -> BackgroundScheduler:
    """Create and start the background scheduler for this app."""
    global scheduler
    if scheduler is not None and scheduler.running:
        return scheduler

    config = app.config
    scheduler = BackgroundScheduler()
    scheduler.add_job(update_fines_job, 'cron', hour=config['FINE_UPDATE_HOUR'],
                      args=[app], id='update_overdue_fines', replace_existing=True)
    scheduler.add_job(send_reminders_job, 'cron', hour=config['REMINDER_HOUR'],
                      args=[app], id='send_due_reminders', replace_existing=True)
    scheduler.add_job(refresh_recommendations_job, 'cron',
                      day_of_week=config['TRENDING_REFRESH_DAY'], hour=3,
                      args=[app], id='refresh_recommendations', replace_existing=True)
    scheduler.start()
    logger.info('Background scheduler started with %d job(s)', len(scheduler.get_jobs()))
    return scheduler


def shutdown_scheduler() -> None:
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info('Background scheduler stopped')
    scheduler = None
