# checkin/api/dependencies.py
from fastapi import Depends
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from checkin.core.config import get_settings, Settings
from checkin.core.db import get_db, get_engine
from checkin.services.config_service import SiteConfigStore
from checkin.services.ordering_service import OrderingEngine
from checkin.services.question_service import QuestionService
from checkin.services.schema_service import SchemaColumnManager


def get_schema_manager(
        engine: Engine = Depends(get_engine),
        config: Settings = Depends(get_settings)
) -> SchemaColumnManager:
    return SchemaColumnManager(engine, config)


def get_ordering_engine(
        engine: Engine = Depends(get_engine),
        config: Settings = Depends(get_settings)
) -> OrderingEngine:
    return OrderingEngine(engine, config)


def get_config_store(engine: Engine = Depends(get_engine)) -> SiteConfigStore:
    return SiteConfigStore(engine)


def get_question_service(
        db: Session = Depends(get_db),
        schema: SchemaColumnManager = Depends(get_schema_manager),
        ordering: OrderingEngine = Depends(get_ordering_engine)
) -> QuestionService:
    return QuestionService(db, schema, ordering)
