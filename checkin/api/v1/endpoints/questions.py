# checkin/api/v1/endpoints/questions.py
import logging
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from checkin.api.dependencies import get_question_service, get_schema_manager
from checkin.services.question_service import QuestionService, question_to_dict
from checkin.services.schema_service import SchemaColumnManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["questions"])


class QuestionCreate(BaseModel):
    question_text: str
    question_title: str


class QuestionUpdate(BaseModel):
    question_text: str


class SiteQuestionAssign(BaseModel):
    global_question_id: int
    is_active: bool = True


class MoveRequest(BaseModel):
    direction: Literal["up", "down"]


@router.get("/questions")
def list_questions(service: QuestionService = Depends(get_question_service)):
    """List every global question"""
    return {"questions": [question_to_dict(q) for q in service.list_global_questions()]}


@router.post("/questions", status_code=201)
def create_question(
        payload: QuestionCreate,
        service: QuestionService = Depends(get_question_service)
):
    """Add a global question and its answer column"""
    question = service.add_global_question(payload.question_text, payload.question_title)
    return question_to_dict(question)


@router.get("/questions/columns")
def list_question_columns(schema: SchemaColumnManager = Depends(get_schema_manager)):
    """Answer columns currently present on the check-in table"""
    return {"table": schema.table_name, "columns": schema.list_question_columns()}


@router.patch("/questions/{question_id}")
def update_question(
        question_id: int,
        payload: QuestionUpdate,
        service: QuestionService = Depends(get_question_service)
):
    question = service.update_question_text(question_id, payload.question_text)
    return question_to_dict(question)


@router.delete("/questions/{question_id}")
def delete_question(
        question_id: int,
        service: QuestionService = Depends(get_question_service)
):
    """Delete a global question; its answer column is dropped with any data in it"""
    return service.delete_global_question(question_id)


@router.get("/sites/{site_id}/questions")
def list_site_questions(
        site_id: int,
        active_only: bool = False,
        service: QuestionService = Depends(get_question_service)
):
    return {"site_id": site_id, "questions": service.list_site_questions(site_id, active_only)}


@router.post("/sites/{site_id}/questions", status_code=201)
def assign_site_question(
        site_id: int,
        payload: SiteQuestionAssign,
        service: QuestionService = Depends(get_question_service)
):
    assignment = service.assign_to_site(site_id, payload.global_question_id, payload.is_active)
    return {
        "site_question_id": assignment.id,
        "site_id": assignment.site_id,
        "global_question_id": assignment.global_question_id,
        "display_order": assignment.display_order,
        "is_active": bool(assignment.is_active),
    }


@router.delete("/sites/{site_id}/questions/{site_question_id}")
def remove_site_question(
        site_id: int,
        site_question_id: int,
        service: QuestionService = Depends(get_question_service)
):
    renumbered = service.remove_from_site(site_question_id, site_id)
    return {"success": True, "renumbered": renumbered}


@router.post("/sites/{site_id}/questions/{site_question_id}/toggle")
def toggle_site_question(
        site_id: int,
        site_question_id: int,
        service: QuestionService = Depends(get_question_service)
):
    assignment = service.toggle_active(site_question_id, site_id)
    return {"site_question_id": assignment.id, "is_active": bool(assignment.is_active)}


@router.post("/sites/{site_id}/questions/{site_question_id}/move")
def move_site_question(
        site_id: int,
        site_question_id: int,
        payload: MoveRequest,
        service: QuestionService = Depends(get_question_service)
):
    service.move_site_question(site_id, site_question_id, payload.direction)
    return {"success": True, "questions": service.list_site_questions(site_id)}


@router.get("/questions/responses")
def all_sites_question_responses(
        time_frame: str = "today",
        service: QuestionService = Depends(get_question_service)
):
    """YES counts per active question across every site"""
    return service.aggregate_yes_counts(None, time_frame)


@router.get("/sites/{site_id}/questions/active-titles")
def active_question_titles(
        site_id: int,
        service: QuestionService = Depends(get_question_service)
):
    return {"site_id": site_id, "titles": service.list_active_question_titles(site_id)}


@router.get("/sites/{site_id}/questions/responses")
def site_question_responses(
        site_id: int,
        time_frame: str = "today",
        service: QuestionService = Depends(get_question_service)
):
    """YES counts per active question at one site over a reporting window"""
    return service.aggregate_yes_counts(site_id, time_frame)
