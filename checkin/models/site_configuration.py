# checkin/models/site_configuration.py
from sqlalchemy import Column, Integer, String, Text, DateTime, UniqueConstraint, func
from checkin.core.db_base import Base


class SiteConfiguration(Base):
    __tablename__ = "site_configurations"
    __table_args__ = (
        UniqueConstraint("site_id", "config_key", name="site_key_unique"),
    )

    id = Column(Integer, primary_key=True, index=True)
    site_id = Column(Integer, nullable=False, index=True)
    config_key = Column(String(50), nullable=False)  # e.g. allow_email_collection
    config_value = Column(Text, nullable=True)  # Stored as '1' / '0' for flags
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), nullable=False)
