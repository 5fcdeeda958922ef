# checkin/core/db.py
from fastapi import Depends
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
import logging
from typing import Generator, Optional

from checkin.core.config import settings as default_settings, Settings
from checkin.core.db_base import Base

logger = logging.getLogger(__name__)

# Initialize engine as None - it will be created on first use
engine: Optional[Engine] = None


def create_db_engine(config: Optional[Settings] = None) -> Engine:
    """Create a database engine for the configured URL"""
    config = config or default_settings
    url = config.SQLALCHEMY_DATABASE_URI

    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=config.DB_ECHO,
            future=True,
            connect_args={
                "check_same_thread": False,  # Needed for SQLite
                "timeout": config.DB_STATEMENT_TIMEOUT,
            }
        )

    connect_args = {}
    if url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={config.DB_STATEMENT_TIMEOUT * 1000}"
    elif url.startswith(("mysql", "mariadb")):
        connect_args["read_timeout"] = config.DB_STATEMENT_TIMEOUT
        connect_args["write_timeout"] = config.DB_STATEMENT_TIMEOUT

    return create_engine(
        url,
        echo=config.DB_ECHO,
        future=True,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
        pool_pre_ping=True,  # Verify connections before using them
        pool_recycle=3600,
        connect_args=connect_args
    )


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first use"""
    global engine

    if engine is None:
        engine = create_db_engine()
        logger.info(f"Created database engine for dialect '{engine.dialect.name}'")

    return engine


def init_db(bind: Optional[Engine] = None, config: Optional[Settings] = None) -> bool:
    """Create the check-in tables if they do not exist yet"""
    config = config or default_settings
    # Import models to ensure they're registered with Base
    from checkin.models.site_configuration import SiteConfiguration  # noqa: F401
    from checkin.models.question import GlobalQuestion, SiteQuestion  # noqa: F401
    from checkin.models.check_in import check_in_table_for

    bind = bind or get_engine()
    try:
        Base.metadata.create_all(bind=bind)
        # The configured check-in table may differ from the one the model was declared with
        check_in_table_for(config.CHECKIN_TABLE).create(bind=bind, checkfirst=True)
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database initialization completed successfully")
        return True
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}", exc_info=True)
        raise


def get_db(bind: Engine = Depends(get_engine)) -> Generator[Session, None, None]:
    """Dependency for getting a database session bound to the current engine"""
    db = Session(bind=bind, autoflush=False, expire_on_commit=False)
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {str(e)}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()
