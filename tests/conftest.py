import pytest
from sqlalchemy import event, insert, select
from sqlalchemy.orm import Session

from checkin.core.config import Settings
from checkin.core.db import create_db_engine, init_db
from checkin.models.question import GlobalQuestion, SiteQuestion
from checkin.services.config_service import SiteConfigStore
from checkin.services.ordering_service import OrderingEngine
from checkin.services.question_service import QuestionService
from checkin.services.schema_service import SchemaColumnManager


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'checkin_test.db'}",
        DATA_DIR=tmp_path / "data",
        LOGS_DIR=tmp_path / "logs",
    )


@pytest.fixture
def engine(test_settings):
    engine = create_db_engine(test_settings)
    init_db(engine, test_settings)
    yield engine
    engine.dispose()


@pytest.fixture
def statements(engine):
    """Record every SQL statement sent to the database"""
    seen = []

    def record(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement)

    event.listen(engine, "before_cursor_execute", record)
    yield seen
    event.remove(engine, "before_cursor_execute", record)


@pytest.fixture
def schema_manager(engine, test_settings):
    return SchemaColumnManager(engine, test_settings)


@pytest.fixture
def ordering(engine, test_settings):
    return OrderingEngine(engine, test_settings)


@pytest.fixture
def config_store(engine):
    return SiteConfigStore(engine)


@pytest.fixture
def db_session(engine):
    session = Session(bind=engine, autoflush=False, expire_on_commit=False)
    yield session
    session.close()


@pytest.fixture
def question_service(db_session, schema_manager, ordering):
    return QuestionService(db_session, schema_manager, ordering)


@pytest.fixture
def add_site_questions(engine):
    """Insert site_questions rows for a site with the given display orders; returns their ids"""
    counter = {"n": 0}

    def _add(site_id, orders):
        ids = []
        with engine.begin() as conn:
            for order in orders:
                counter["n"] += 1
                gq_id = conn.execute(
                    insert(GlobalQuestion.__table__).values(
                        question_text=f"Question {counter['n']}?",
                        question_title=f"question_{counter['n']}",
                    )
                ).inserted_primary_key[0]
                sq_id = conn.execute(
                    insert(SiteQuestion.__table__).values(
                        site_id=site_id,
                        global_question_id=gq_id,
                        display_order=order,
                        is_active=True,
                    )
                ).inserted_primary_key[0]
                ids.append(sq_id)
        return ids

    return _add


@pytest.fixture
def orders_of(engine):
    """Map of site_question id -> display_order for a site"""

    def _orders(site_id):
        table = SiteQuestion.__table__
        with engine.connect() as conn:
            rows = conn.execute(
                select(table.c.id, table.c.display_order).where(table.c.site_id == site_id)
            ).all()
        return {row_id: order for row_id, order in rows}

    return _orders
