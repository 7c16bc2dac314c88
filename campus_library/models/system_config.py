import math
import uuid
from typing import Any, Dict, Optional, Tuple

from campus_library.config.config import Config
from campus_library.models.database import get_db, now_timestamp


class SystemConfig:
    """System configuration settings manager.

    Settings are stored one per row in the ``system_config`` table as text.
    Readers fall back to the ``Config`` constants if a key is missing or
    cannot be parsed.
    """

    DEFAULT_CONFIG: Dict[str, Any] = {
        'daily_fine_amount': Config.DAILY_FINE_AMOUNT,
        'borrow_duration_days': Config.BORROW_DURATION_DAYS,
        'max_renewals': Config.MAX_RENEWAL_COUNT,
    }

    @staticmethod
    def get() -> Dict[str, str]:
        """Get all settings as a key -> value dict."""
        db = get_db()
        rows = db.execute('SELECT key, value FROM system_config ORDER BY key').fetchall()
        return {row['key']: row['value'] for row in rows}

    @staticmethod
    def get_entry(key: str) -> Optional[Dict[str, Any]]:
        db = get_db()
        row = db.execute('SELECT * FROM system_config WHERE key = ?', (key,)).fetchone()
        return dict(row) if row else None

    @staticmethod
    def get_value(key: str, default: Any = None, type_cast: type = str) -> Any:
        """Helper: Get specific config value from DB, fallback to provided default."""
        db = get_db()
        row = db.execute('SELECT value FROM system_config WHERE key = ?', (key,)).fetchone()
        if row is None:
            return default if default is not None else SystemConfig.DEFAULT_CONFIG.get(key)

        try:
            if type_cast == bool:
                return row['value'].lower() in ('true', '1', 'yes', 'on')
            return type_cast(row['value'])
        except (ValueError, TypeError):
            return default

    @staticmethod
    def get_int(key: str, default: int = 0) -> int:
        """Get integer config value."""
        return SystemConfig.get_value(key, default, int)

    @staticmethod
    def get_float(key: str, default: float = 0.0) -> float:
        """Get float config value."""
        return SystemConfig.get_value(key, default, float)

    @staticmethod
    def set_value(key: str, value: Any, updated_by: Optional[str] = None,
                  description: Optional[str] = None) -> None:
        """Insert or update a single setting."""
        db = get_db()
        timestamp = now_timestamp()
        db.execute('''
            INSERT INTO system_config (id, key, value, description, updated_by,
                                       created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_by = excluded.updated_by,
                updated_at = excluded.updated_at,
                description = COALESCE(excluded.description, system_config.description)
        ''', (str(uuid.uuid4()), key, str(value), description, updated_by,
              timestamp, timestamp))
        db.commit()

    # ==================== FINE SETTINGS ====================

    @staticmethod
    def get_daily_fine_amount() -> float:
        return SystemConfig.get_float('daily_fine_amount', Config.DAILY_FINE_AMOUNT)

    @staticmethod
    def set_daily_fine_amount(amount: Any, updated_by: Optional[str] = None) -> Tuple[bool, str]:
        """Validate and store the per-day fine.

        Args:
            amount: New fine amount. Numbers or numeric strings are accepted.
            updated_by: Email of the admin making the change.

        Returns:
            Tuple of (success, message).
        """
        if isinstance(amount, bool):
            return False, "Invalid fine amount. Must be a positive number."

        try:
            value = float(amount)
        except (TypeError, ValueError):
            return False, "Invalid fine amount. Must be a positive number."

        if value < 0 or not math.isfinite(value):
            return False, "Invalid fine amount. Must be a positive number."

        SystemConfig.set_value('daily_fine_amount', f'{value:.2f}', updated_by)

        from campus_library.models.system_log import SystemLog
        SystemLog.add(
            'Fine Config Updated',
            f'Daily fine set to ${value:.2f} by {updated_by or "system"}',
            'info'
        )
        return True, f"Fine amount updated to ${value:.2f} per day"

    @staticmethod
    def get_borrow_duration_days() -> int:
        return SystemConfig.get_int('borrow_duration_days', Config.BORROW_DURATION_DAYS)

    @staticmethod
    def get_max_renewals() -> int:
        return SystemConfig.get_int('max_renewals', Config.MAX_RENEWAL_COUNT)
