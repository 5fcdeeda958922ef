# checkin/models/check_in.py
from sqlalchemy import Column, Integer, String, DateTime, MetaData, Table, func
from checkin.core.config import settings
from checkin.core.db_base import Base


class CheckIn(Base):
    """
    Wide operational table with one row per check-in.

    Answer columns (``q_<base name>``) are added and dropped at runtime by
    SchemaColumnManager, so they are not declared here.
    """
    __tablename__ = settings.CHECKIN_TABLE

    id = Column(Integer, primary_key=True, index=True)
    site_id = Column(Integer, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    check_in_time = Column(DateTime, server_default=func.now(), nullable=False)
    client_email = Column(String(255), nullable=True)
    client_id = Column(Integer, nullable=True)  # Null for manual/anonymous check-ins


def check_in_table_for(table_name: str) -> Table:
    """The check-in table definition under ``table_name``"""
    if table_name == CheckIn.__table__.name:
        return CheckIn.__table__
    # Index names are regenerated for the new table name
    return CheckIn.__table__.to_metadata(MetaData(), name=table_name)
