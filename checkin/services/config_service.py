# checkin/services/config_service.py
import logging
from typing import Any, Optional

from sqlalchemy import select, update, func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from checkin.models.site_configuration import SiteConfiguration

logger = logging.getLogger(__name__)

TRUTHY_STRINGS = ("1", "TRUE", "YES", "ON")


def to_flag(value: Any) -> int:
    """Normalize a submitted value to the stored 1/0 encoding"""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return 1 if value == 1 else 0
    return 1 if str(value).strip().upper() in TRUTHY_STRINGS else 0


class SiteConfigStore:
    """
    Boolean site settings stored as rows in ``site_configurations``.

    ``get`` cannot tell a missing row from a failed query; both return None.
    ``set`` only updates existing rows, it never inserts one.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.table = SiteConfiguration.__table__

    def get(self, site_id: int, config_key: str) -> Optional[str]:
        key = (config_key or "").strip()
        try:
            with self.engine.connect() as conn:
                return conn.execute(
                    select(self.table.c.config_value).where(
                        self.table.c.site_id == site_id,
                        self.table.c.config_key == key
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error reading config '{key}' for site {site_id}: {str(e)}")
            return None

    def set(self, site_id: int, config_key: str, value: Any) -> bool:
        """Update an existing flag; False when no row exists for (site, key)"""
        key = (config_key or "").strip()
        flag = to_flag(value)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    update(self.table)
                    .where(self.table.c.site_id == site_id, self.table.c.config_key == key)
                    .values(config_value=str(flag), updated_at=func.now())
                )
                rows_affected = result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error updating config '{key}' for site {site_id}: {str(e)}")
            return False

        if rows_affected == 0:
            logger.warning(f"Config '{key}' for site {site_id} not updated: no existing row")
            return False

        logger.info(f"Config '{key}' for site {site_id} set to {flag}")
        return True

    def is_enabled(self, site_id: int, config_key: str, default: bool = False) -> bool:
        value = self.get(site_id, config_key)
        if value is None:
            return default
        return to_flag(value) == 1
