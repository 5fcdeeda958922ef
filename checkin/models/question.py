# checkin/models/question.py
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint, func
)
from sqlalchemy.orm import relationship

from checkin.core.db_base import Base


class GlobalQuestion(Base):
    __tablename__ = "global_questions"

    id = Column(Integer, primary_key=True, index=True)
    question_text = Column(Text, nullable=False)
    question_title = Column(String(50), nullable=False, unique=True)  # Sanitized base name
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    site_assignments = relationship(
        "SiteQuestion", back_populates="global_question", cascade="all, delete-orphan"
    )


class SiteQuestion(Base):
    __tablename__ = "site_questions"
    __table_args__ = (
        UniqueConstraint("site_id", "global_question_id", name="uq_site_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    site_id = Column(Integer, nullable=False, index=True)
    global_question_id = Column(Integer, ForeignKey("global_questions.id"), nullable=False, index=True)
    display_order = Column(Integer, nullable=False, default=0, server_default="0")
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    global_question = relationship("GlobalQuestion", back_populates="site_assignments")
