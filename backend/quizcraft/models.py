"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Primary keys are opaque uuid4 hex strings so ids can be handed to
clients without leaking row counts.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, Relationship


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    TUTOR = "TUTOR"
    STUDENT = "STUDENT"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"
    ESSAY = "ESSAY"


OBJECTIVE_TYPES = frozenset({QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE})


class User(SQLModel, table=True):
    """A registered tutor or student.

    Fields:
    - `email`: unique login identifier
    - `password_hash`: hashed password, `None` for accounts created through Google sign-in
    - `google_id` / `avatar` / `provider`: external identity, set when a Google account is linked
    - `email_verification_token` / `email_verification_expires`: pending verification, cleared once verified
    """
    __tablename__ = "users"

    id: str = Field(default_factory=_new_id, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    name: str
    password_hash: Optional[str] = None
    role: Role = Field(default=Role.STUDENT)
    google_id: Optional[str] = Field(default=None, index=True, unique=True)
    avatar: Optional[str] = None
    provider: str = "local"
    is_email_verified: bool = False
    email_verification_token: Optional[str] = Field(default=None, index=True)
    email_verification_expires: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    exams: List["Exam"] = Relationship(
        back_populates="author",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class Exam(SQLModel, table=True):
    """An exam authored by a tutor and shared with students through `share_link`."""
    __tablename__ = "exams"

    id: str = Field(default_factory=_new_id, primary_key=True)
    title: str
    description: Optional[str] = None
    time_limit: Optional[int] = None
    share_link: str = Field(default_factory=lambda: str(uuid.uuid4()), index=True, unique=True)
    is_active: bool = True
    author_id: str = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    author: Optional[User] = Relationship(back_populates="exams")
    questions: List["Question"] = Relationship(
        back_populates="exam",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "Question.order"},
    )
    responses: List["Response"] = Relationship(
        back_populates="exam",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "Response.submitted_at.desc()"},
    )

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)


class Question(SQLModel, table=True):
    """A single question of an exam.

    `order` is dense per exam (1..N, assigned at creation) and drives
    both display and grading order. `options` is only used by
    multiple-choice questions.
    """
    __tablename__ = "questions"

    id: str = Field(default_factory=_new_id, primary_key=True)
    exam_id: str = Field(foreign_key="exams.id", index=True, ondelete="CASCADE")
    type: QuestionType
    question_text: str
    options: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    correct_answer: Optional[str] = None
    points: int = 1
    order: int

    exam: Optional[Exam] = Relationship(back_populates="questions")
    answers: List["Answer"] = Relationship(
        back_populates="question",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )

    @property
    def is_objective(self) -> bool:
        return self.type in OBJECTIVE_TYPES


class Response(SQLModel, table=True):
    """One student submission against an exam.

    `total_points` is a snapshot of the exam's point total at submission
    time; `score` stays mutable through manual review.
    """
    __tablename__ = "responses"

    id: str = Field(default_factory=_new_id, primary_key=True)
    exam_id: str = Field(foreign_key="exams.id", index=True, ondelete="CASCADE")
    student_name: Optional[str] = None
    student_email: Optional[str] = Field(default=None, index=True)
    score: Optional[int] = None
    total_points: int
    submitted_at: datetime = Field(default_factory=_utcnow, index=True)

    exam: Optional[Exam] = Relationship(back_populates="responses")
    answers: List["Answer"] = Relationship(
        back_populates="response",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class Answer(SQLModel, table=True):
    """A response's submitted text for one question."""
    __tablename__ = "answers"

    id: str = Field(default_factory=_new_id, primary_key=True)
    response_id: str = Field(foreign_key="responses.id", index=True, ondelete="CASCADE")
    question_id: str = Field(foreign_key="questions.id", index=True, ondelete="CASCADE")
    answer: str
    is_correct: bool = False

    response: Optional[Response] = Relationship(back_populates="answers")
    question: Optional[Question] = Relationship(back_populates="answers")
