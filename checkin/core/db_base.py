# checkin/core/db_base.py
from sqlalchemy.orm import declarative_base

# Create base class
Base = declarative_base()
