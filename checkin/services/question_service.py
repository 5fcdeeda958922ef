# checkin/services/question_service.py
import logging
from datetime import datetime, time, timedelta
from typing import Optional, Dict, Any, List

from fastapi import HTTPException, status
from sqlalchemy import DateTime, case, column, func, select, table
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from checkin.core.exceptions import EmptyBaseNameError, InvalidIdentifierError
from checkin.models.question import GlobalQuestion, SiteQuestion
from checkin.services.ordering_service import OrderingEngine, OrderScope
from checkin.services.schema_service import SchemaColumnManager
from checkin.utils.naming import sanitize_title_to_base_name, format_base_name_for_display

# Set up logging
logger = logging.getLogger(__name__)

SITE_QUESTION_SCOPE = OrderScope("site_questions", "display_order", "site_id")

# Days before today included in each reporting window
TIME_FRAMES = {
    "today": 0,
    "last_7_days": 6,
    "last_30_days": 29,
    "last_365_days": 364,
}


def question_to_dict(question: GlobalQuestion) -> Dict[str, Any]:
    return {
        "id": question.id,
        "question_text": question.question_text,
        "question_title": question.question_title,
        "display_name": format_base_name_for_display(question.question_title),
        "created_at": question.created_at.isoformat() if question.created_at else None,
    }


class QuestionService:
    """Admin operations on global questions and their per-site assignments"""

    def __init__(self, db: Session, schema: SchemaColumnManager, ordering: OrderingEngine):
        self.db = db
        self.schema = schema
        self.ordering = ordering
        self.config = schema.config

    # Global questions

    def list_global_questions(self) -> List[GlobalQuestion]:
        return self.db.query(GlobalQuestion).order_by(GlobalQuestion.question_title.asc()).all()

    def get_global_question(self, global_question_id: int) -> Optional[GlobalQuestion]:
        return self.db.query(GlobalQuestion).filter(GlobalQuestion.id == global_question_id).first()

    def global_title_exists(self, base_name: str) -> bool:
        if not base_name:
            return False
        return self.db.query(GlobalQuestion.id).filter(
            GlobalQuestion.question_title == base_name
        ).first() is not None

    def _get_or_404(self, global_question_id: int) -> GlobalQuestion:
        question = self.get_global_question(global_question_id)
        if not question:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Global question {global_question_id} not found"
            )
        return question

    def add_global_question(self, question_text: str, raw_title: str) -> GlobalQuestion:
        """Create a global question and the answer column backing it"""
        question_text = (question_text or "").strip()
        if not question_text:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Question text is required"
            )

        try:
            base_name = sanitize_title_to_base_name(raw_title, self.config.BASE_NAME_MAX_LENGTH)
        except EmptyBaseNameError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A valid title is required (letters, numbers or underscores)"
            )

        if self.global_title_exists(base_name):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A question generating the internal title '{base_name}' already exists"
            )

        if not self.schema.ensure_column(base_name):
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to create data column for '{base_name}'"
            )

        question = GlobalQuestion(question_text=question_text, question_title=base_name)
        try:
            self.db.add(question)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A question generating the internal title '{base_name}' already exists"
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error adding global question '{base_name}': {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error while adding question"
            )

        logger.info(f"Added global question {question.id} ('{base_name}')")
        return question

    def update_question_text(self, global_question_id: int, new_text: str) -> GlobalQuestion:
        new_text = (new_text or "").strip()
        if not new_text:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Question text cannot be empty"
            )

        question = self._get_or_404(global_question_id)
        try:
            question.question_text = new_text
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating text of global question {global_question_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error while updating question"
            )
        return question

    def delete_global_question(self, global_question_id: int) -> Dict[str, Any]:
        """
        Delete a global question, its site assignments and its answer column.

        The column is dropped even if check-ins hold answers in it.
        """
        question = self._get_or_404(global_question_id)
        base_name = question.question_title

        site_ids = [
            site_id for (site_id,) in self.db.query(SiteQuestion.site_id).filter(
                SiteQuestion.global_question_id == global_question_id
            ).distinct()
        ]

        try:
            # Site assignments go with it through the relationship cascade
            self.db.delete(question)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting global question {global_question_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error while deleting question"
            )

        for site_id in site_ids:
            renumbered = self.ordering.renumber(
                SITE_QUESTION_SCOPE.table, SITE_QUESTION_SCOPE.order_column,
                SITE_QUESTION_SCOPE.group_column, site_id
            )
            if not renumbered:
                logger.warning(f"Could not renumber questions for site {site_id} after deleting {global_question_id}")
        self.db.expire_all()

        column_dropped = self.schema.drop_column_if_unused(base_name)
        if not column_dropped:
            logger.warning(
                f"Could not drop column for '{base_name}' after deleting question {global_question_id}. "
                f"Manual check required."
            )

        return {
            "deleted": True,
            "question_title": base_name,
            "display_name": format_base_name_for_display(base_name),
            "column_dropped": column_dropped,
        }

    # Site assignments

    def _get_assignment_or_404(self, site_question_id: int, site_id: int) -> SiteQuestion:
        assignment = self.db.query(SiteQuestion).filter(
            SiteQuestion.id == site_question_id,
            SiteQuestion.site_id == site_id
        ).first()
        if not assignment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Question assignment {site_question_id} not found for site {site_id}"
            )
        return assignment

    def assign_to_site(self, site_id: int, global_question_id: int, is_active: bool = True) -> SiteQuestion:
        """Assign a global question to a site, appended after its current questions"""
        self._get_or_404(global_question_id)

        already_assigned = self.db.query(SiteQuestion.id).filter(
            SiteQuestion.site_id == site_id,
            SiteQuestion.global_question_id == global_question_id
        ).first()
        if already_assigned:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Question {global_question_id} is already assigned to site {site_id}"
            )

        position = self.ordering.next_position(
            SITE_QUESTION_SCOPE.table, SITE_QUESTION_SCOPE.order_column,
            SITE_QUESTION_SCOPE.group_column, site_id
        )
        if position is None:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not determine display order for the new assignment"
            )

        assignment = SiteQuestion(
            site_id=site_id,
            global_question_id=global_question_id,
            display_order=position,
            is_active=is_active
        )
        try:
            self.db.add(assignment)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Attempted to assign duplicate question (Site: {site_id}, GlobalQ: {global_question_id})")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Question {global_question_id} is already assigned to site {site_id}"
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error assigning question {global_question_id} to site {site_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error while assigning question"
            )
        return assignment

    def remove_from_site(self, site_question_id: int, site_id: int) -> bool:
        """Remove an assignment and close the gap it leaves in the site's order"""
        assignment = self._get_assignment_or_404(site_question_id, site_id)
        try:
            self.db.delete(assignment)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error removing question assignment {site_question_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error while removing question"
            )

        renumbered = self.ordering.renumber(
            SITE_QUESTION_SCOPE.table, SITE_QUESTION_SCOPE.order_column,
            SITE_QUESTION_SCOPE.group_column, site_id
        )
        # Order values were rewritten outside this session
        self.db.expire_all()
        if not renumbered:
            logger.warning(f"Question {site_question_id} removed but site {site_id} was not renumbered")
        return renumbered

    def toggle_active(self, site_question_id: int, site_id: int) -> SiteQuestion:
        assignment = self._get_assignment_or_404(site_question_id, site_id)
        try:
            assignment.is_active = not assignment.is_active
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error toggling question assignment {site_question_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error while toggling question"
            )
        return assignment

    def move_site_question(self, site_id: int, site_question_id: int, direction: str) -> bool:
        self._get_assignment_or_404(site_question_id, site_id)
        # End the read transaction before the ordering engine opens its own
        self.db.rollback()

        moved = self.ordering.move(
            SITE_QUESTION_SCOPE.table, SITE_QUESTION_SCOPE.order_column,
            SITE_QUESTION_SCOPE.group_column, site_id,
            site_question_id, direction
        )
        self.db.expire_all()
        if not moved:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to move question {site_question_id} {direction}"
            )
        return True

    def list_site_questions(self, site_id: int, active_only: bool = False) -> List[Dict[str, Any]]:
        query = self.db.query(SiteQuestion, GlobalQuestion).join(
            GlobalQuestion, SiteQuestion.global_question_id == GlobalQuestion.id
        ).filter(SiteQuestion.site_id == site_id)

        if active_only:
            query = query.filter(SiteQuestion.is_active == True)  # noqa: E712

        rows = query.order_by(SiteQuestion.display_order.asc(), SiteQuestion.id.asc()).all()

        return [
            {
                "site_question_id": assignment.id,
                "global_question_id": question.id,
                "display_order": assignment.display_order,
                "is_active": bool(assignment.is_active),
                "question_text": question.question_text,
                "question_title": question.question_title,
                "display_name": format_base_name_for_display(question.question_title),
                "column_name": self.schema.column_name_for(question.question_title),
            }
            for assignment, question in rows
        ]

    # Answer reporting

    def list_active_question_titles(self, site_id: Optional[int] = None) -> List[str]:
        """Distinct base names of questions active at ``site_id``, or at any site when None"""
        query = self.db.query(GlobalQuestion.question_title).join(
            SiteQuestion, SiteQuestion.global_question_id == GlobalQuestion.id
        ).filter(SiteQuestion.is_active == True)  # noqa: E712

        if site_id is not None:
            query = query.filter(SiteQuestion.site_id == site_id)

        rows = query.distinct().order_by(GlobalQuestion.question_title.asc()).all()
        return [title for (title,) in rows]

    def _answer_columns(self, titles: List[str]) -> List[str]:
        """Answer column for each title, skipping any that is malformed or missing from the table"""
        existing = set(self.schema.list_question_columns())
        columns = []
        for title in titles:
            try:
                column_name = self.schema.column_name_for(title)
            except InvalidIdentifierError:
                column_name = None

            if not self.schema.is_answer_column(column_name):
                logger.error(f"Skipping invalid answer column derived from title {title!r}")
                continue
            if column_name not in existing:
                logger.warning(f"Skipping answer column '{column_name}': not present on '{self.schema.table_name}'")
                continue
            columns.append(column_name)
        return columns

    def aggregate_yes_counts(
            self,
            site_id: Optional[int] = None,
            time_frame: str = "today",
            now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Count YES answers per active question over a reporting window.

        The window runs from midnight ``TIME_FRAMES[time_frame]`` days ago up to
        ``now``. With ``site_id`` None every site is counted.
        """
        if time_frame not in TIME_FRAMES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown time frame '{time_frame}'. Use one of: {', '.join(TIME_FRAMES)}"
            )

        now = now or datetime.now()
        start = datetime.combine(now.date() - timedelta(days=TIME_FRAMES[time_frame]), time.min)

        columns = self._answer_columns(self.list_active_question_titles(site_id))
        result = {
            "site_id": site_id,
            "time_frame": time_frame,
            "labels": [format_base_name_for_display(name[len(self.schema.prefix):]) for name in columns],
            "columns": columns,
            "data": [],
        }
        if not columns:
            logger.info(f"No active answer columns for site {site_id}; nothing to aggregate")
            return result

        check_ins = table(
            self.schema.table_name,
            column("site_id"),
            column("check_in_time", DateTime),
            *[column(name) for name in columns]
        )
        stmt = select(
            *[func.sum(case((check_ins.c[name] == "YES", 1), else_=0)) for name in columns]
        ).where(check_ins.c.check_in_time.between(start, now))
        if site_id is not None:
            stmt = stmt.where(check_ins.c.site_id == site_id)

        try:
            row = self.db.execute(stmt).one()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error aggregating answers for site {site_id}, time frame {time_frame}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error while aggregating answers"
            )

        result["data"] = [int(count or 0) for count in row]
        return result
