from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from sqlalchemy import inspect, text

from checkin.core.config import Settings
from checkin.models.question import GlobalQuestion, SiteQuestion
from checkin.services.question_service import QuestionService
from checkin.services.schema_service import SchemaColumnManager


def _columns(engine):
    return [col["name"] for col in inspect(engine).get_columns("check_ins")]


def _status(exc_info):
    return exc_info.value.status_code


def test_add_global_question_creates_row_and_column(engine, question_service):
    question = question_service.add_global_question("Do you need help with a resume?", "Needs Resume?")

    assert question.id is not None
    assert question.question_title == "needs_resume"
    assert question_service.global_title_exists("needs_resume")
    assert "q_needs_resume" in _columns(engine)


def test_add_rejects_duplicate_base_name(question_service):
    question_service.add_global_question("Are you a veteran?", "Veteran")

    with pytest.raises(HTTPException) as exc_info:
        question_service.add_global_question("Veteran status?", "  veteran ")
    assert _status(exc_info) == 409


@pytest.mark.parametrize("text_value, title", [("Question?", "   "), ("Question?", "???"), ("   ", "title")])
def test_add_rejects_invalid_input(engine, question_service, text_value, title):
    with pytest.raises(HTTPException) as exc_info:
        question_service.add_global_question(text_value, title)

    assert _status(exc_info) == 400
    assert question_service.list_global_questions() == []
    assert not any(name.startswith("q_") for name in _columns(engine))


def test_add_fails_when_column_cannot_be_created(question_service, monkeypatch):
    monkeypatch.setattr(question_service.schema, "ensure_column", lambda base_name: False)

    with pytest.raises(HTTPException) as exc_info:
        question_service.add_global_question("Are you in school?", "School")

    assert _status(exc_info) == 500
    assert not question_service.global_title_exists("school")


def test_update_question_text(question_service):
    question = question_service.add_global_question("Old text", "Age")

    updated = question_service.update_question_text(question.id, "  Are you 55 or older? ")
    assert updated.question_text == "Are you 55 or older?"

    with pytest.raises(HTTPException) as exc_info:
        question_service.update_question_text(question.id, "")
    assert _status(exc_info) == 400

    with pytest.raises(HTTPException) as exc_info:
        question_service.update_question_text(9999, "Text")
    assert _status(exc_info) == 404


def test_assign_appends_to_site_order(question_service):
    questions = [
        question_service.add_global_question(f"Question {title}?", title)
        for title in ("Veteran", "School", "Age")
    ]

    assignments = [question_service.assign_to_site(1, q.id) for q in questions]
    assert [a.display_order for a in assignments] == [0, 1, 2]

    # Another site starts its own sequence
    assert question_service.assign_to_site(2, questions[2].id).display_order == 0


def test_assign_rejects_duplicates_and_unknown_questions(question_service):
    question = question_service.add_global_question("Are you a veteran?", "Veteran")
    question_service.assign_to_site(1, question.id)

    with pytest.raises(HTTPException) as exc_info:
        question_service.assign_to_site(1, question.id)
    assert _status(exc_info) == 409

    with pytest.raises(HTTPException) as exc_info:
        question_service.assign_to_site(1, 9999)
    assert _status(exc_info) == 404


def test_remove_from_site_renumbers_remaining_questions(question_service):
    questions = [
        question_service.add_global_question(f"Question {n}?", f"Question {n}")
        for n in range(5)
    ]
    assignments = [question_service.assign_to_site(1, q.id) for q in questions]

    assert question_service.remove_from_site(assignments[2].id, 1) is True

    listed = question_service.list_site_questions(1)
    assert [row["display_order"] for row in listed] == [0, 1, 2, 3]
    assert [row["site_question_id"] for row in listed] == [
        assignments[0].id, assignments[1].id, assignments[3].id, assignments[4].id
    ]


def test_remove_from_wrong_site_is_not_found(question_service):
    question = question_service.add_global_question("Are you a veteran?", "Veteran")
    assignment = question_service.assign_to_site(1, question.id)

    with pytest.raises(HTTPException) as exc_info:
        question_service.remove_from_site(assignment.id, 2)
    assert _status(exc_info) == 404


def test_toggle_active_and_active_only_listing(question_service):
    first = question_service.add_global_question("Are you a veteran?", "Veteran")
    second = question_service.add_global_question("Are you in school?", "School")
    a1 = question_service.assign_to_site(1, first.id)
    question_service.assign_to_site(1, second.id)

    toggled = question_service.toggle_active(a1.id, 1)
    assert toggled.is_active is False

    active = question_service.list_site_questions(1, active_only=True)
    assert [row["question_title"] for row in active] == ["school"]

    assert question_service.toggle_active(a1.id, 1).is_active is True


def test_list_site_questions_includes_labels_and_columns(question_service):
    question = question_service.add_global_question("Did you get laid off?", "Employment Layoff")
    question_service.assign_to_site(3, question.id)

    [row] = question_service.list_site_questions(3)
    assert row["display_name"] == "Employment Layoff"
    assert row["column_name"] == "q_employment_layoff"
    assert row["is_active"] is True


def test_move_site_question(question_service):
    questions = [
        question_service.add_global_question(f"Question {title}?", title)
        for title in ("Veteran", "School", "Age")
    ]
    assignments = [question_service.assign_to_site(1, q.id) for q in questions]

    assert question_service.move_site_question(1, assignments[2].id, "up") is True

    titles = [row["question_title"] for row in question_service.list_site_questions(1)]
    assert titles == ["veteran", "age", "school"]

    with pytest.raises(HTTPException) as exc_info:
        question_service.move_site_question(1, 9999, "up")
    assert _status(exc_info) == 404


def test_delete_global_question_cleans_up_everything(engine, db_session, question_service):
    keep = question_service.add_global_question("Are you a veteran?", "Veteran")
    doomed = question_service.add_global_question("Do you need a resume?", "Needs Resume")
    last = question_service.add_global_question("Are you in school?", "School")
    for site_id in (1, 2):
        for question in (keep, doomed, last):
            question_service.assign_to_site(site_id, question.id)

    # Stored answers do not prevent the drop
    with engine.begin() as conn:
        conn.execute(
            text("INSERT INTO check_ins (site_id, first_name, last_name, q_needs_resume) "
                 "VALUES (1, 'Ada', 'Lovelace', 'YES')")
        )

    result = question_service.delete_global_question(doomed.id)

    assert result == {
        "deleted": True,
        "question_title": "needs_resume",
        "display_name": "Needs Resume",
        "column_dropped": True,
    }
    assert "q_needs_resume" not in _columns(engine)
    assert db_session.query(GlobalQuestion).filter(GlobalQuestion.id == doomed.id).first() is None
    assert db_session.query(SiteQuestion).filter(SiteQuestion.global_question_id == doomed.id).count() == 0

    for site_id in (1, 2):
        listed = question_service.list_site_questions(site_id)
        assert [row["question_title"] for row in listed] == ["veteran", "school"]
        assert [row["display_order"] for row in listed] == [0, 1]


def test_delete_reports_column_left_behind(question_service, monkeypatch):
    question = question_service.add_global_question("Are you a veteran?", "Veteran")
    monkeypatch.setattr(question_service.schema, "drop_column_if_unused", lambda base_name: False)

    result = question_service.delete_global_question(question.id)

    assert result["deleted"] is True
    assert result["column_dropped"] is False


def test_delete_unknown_question_is_not_found(question_service):
    with pytest.raises(HTTPException) as exc_info:
        question_service.delete_global_question(9999)
    assert _status(exc_info) == 404


def test_base_name_length_follows_settings(engine, db_session, ordering, tmp_path):
    config = Settings(
        DATABASE_URL=str(engine.url),
        LOGS_DIR=tmp_path / "logs",
        BASE_NAME_MAX_LENGTH=10,
    )
    service = QuestionService(db_session, SchemaColumnManager(engine, config), ordering)

    question = service.add_global_question("Do you need help with a resume?", "Needs help with a resume")

    assert question.question_title == "needs_help"
    assert "q_needs_help" in _columns(engine)


NOW = datetime(2026, 10, 18, 15, 30)


def _check_in(engine, site_id, when, **answers):
    names = ", ".join(["site_id", "first_name", "last_name", "check_in_time", *answers])
    values = ", ".join([":site_id", "'Ada'", "'Lovelace'", ":when", *[f":{name}" for name in answers]])
    with engine.begin() as conn:
        conn.execute(
            text(f"INSERT INTO check_ins ({names}) VALUES ({values})"),
            {"site_id": site_id, "when": when.strftime("%Y-%m-%d %H:%M:%S"), **answers},
        )


@pytest.fixture
def answered_questions(engine, question_service):
    veteran = question_service.add_global_question("Are you a veteran?", "Veteran")
    resume = question_service.add_global_question("Do you need a resume?", "Needs Resume")
    school = question_service.add_global_question("Are you in school?", "School")
    question_service.assign_to_site(1, veteran.id)
    question_service.assign_to_site(1, resume.id)
    inactive = question_service.assign_to_site(1, school.id, is_active=False)
    question_service.assign_to_site(2, school.id)

    _check_in(engine, 1, NOW - timedelta(hours=2), q_veteran="YES", q_needs_resume="NO")
    _check_in(engine, 1, NOW - timedelta(hours=1), q_veteran="YES", q_needs_resume="YES")
    _check_in(engine, 1, NOW - timedelta(days=3), q_veteran="YES", q_needs_resume="YES")
    _check_in(engine, 1, NOW - timedelta(days=40), q_veteran="YES")
    _check_in(engine, 2, NOW - timedelta(hours=1), q_veteran="YES", q_school="YES")
    return inactive


def test_list_active_question_titles(question_service, answered_questions):
    assert question_service.list_active_question_titles(1) == ["needs_resume", "veteran"]
    assert question_service.list_active_question_titles(2) == ["school"]
    assert question_service.list_active_question_titles() == ["needs_resume", "school", "veteran"]
    assert question_service.list_active_question_titles(99) == []


@pytest.mark.parametrize(
    "time_frame, expected",
    [("today", [1, 2]), ("last_7_days", [2, 3]), ("last_30_days", [2, 3]), ("last_365_days", [2, 4])],
)
def test_aggregate_yes_counts_for_site(question_service, answered_questions, time_frame, expected):
    result = question_service.aggregate_yes_counts(1, time_frame, now=NOW)

    assert result["columns"] == ["q_needs_resume", "q_veteran"]
    assert result["labels"] == ["Needs Resume", "Veteran"]
    assert result["data"] == expected


def test_aggregate_yes_counts_across_sites(question_service, answered_questions):
    result = question_service.aggregate_yes_counts(None, "today", now=NOW)

    assert result["columns"] == ["q_needs_resume", "q_school", "q_veteran"]
    # Site 2 answers count for veteran even though it is only active at site 1
    assert result["data"] == [1, 1, 3]


def test_aggregate_skips_invalid_and_missing_columns(engine, db_session, question_service, answered_questions):
    # Titles written outside the service: one malformed, one with no column behind it
    for title in ("Bad Title", "Legacy", "no_column"):
        question = GlobalQuestion(question_text=f"{title}?", question_title=title)
        db_session.add(question)
        db_session.commit()
        question_service.assign_to_site(1, question.id)

    result = question_service.aggregate_yes_counts(1, "today", now=NOW)

    assert result["columns"] == ["q_needs_resume", "q_veteran"]
    assert result["data"] == [1, 2]


def test_aggregate_with_no_active_questions(question_service):
    result = question_service.aggregate_yes_counts(5, "today", now=NOW)
    assert result["columns"] == [] and result["data"] == []


def test_aggregate_rejects_unknown_time_frame(question_service):
    with pytest.raises(HTTPException) as exc_info:
        question_service.aggregate_yes_counts(1, "last_decade")
    assert _status(exc_info) == 400
