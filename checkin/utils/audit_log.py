# checkin/utils/audit_log.py
import logging
import os
from datetime import datetime
from typing import Optional

from checkin.core.config import settings as default_settings, Settings

logger = logging.getLogger(__name__)


def log_schema_change(
        operation: str,
        table_name: str,
        column_name: str,
        config: Optional[Settings] = None
) -> None:
    """Append a column add/drop to the daily schema change log file"""
    config = config or default_settings
    if not config.SCHEMA_CHANGE_LOG_ENABLED:
        return

    try:
        log_dir = config.get_logs_dir

        # Get the current date for the log file name
        current_date = datetime.utcnow().strftime("%Y%m%d")
        log_file = os.path.join(log_dir, f"schema_changes_{current_date}.log")

        timestamp = datetime.utcnow().isoformat()
        log_entry = f"{timestamp} | {operation} | {table_name} | {column_name}\n"

        with open(log_file, "a", encoding="utf-8") as f:
            f.write(log_entry)

    except OSError as e:
        logger.error(f"Error writing to schema change log file: {str(e)}")
