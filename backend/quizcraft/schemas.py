"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and validate every request body
before it reaches a service. Wire names are camelCase (`questionId`,
`timeLimit`); Python attributes stay snake_case.
"""

import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import QuestionType, Role

_PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


class WireModel(BaseModel):
    """Base for request bodies that accept both camelCase aliases and field names."""
    model_config = ConfigDict(populate_by_name=True)


def _check_password(value: str) -> str:
    if not _PASSWORD_RULE.match(value):
        raise ValueError("Password must contain at least one lowercase letter, one uppercase letter, and one number")
    return value


class RegisterIn(WireModel):
    """Payload for local account registration."""
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role = Role.STUDENT

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def _password_strength(cls, v: str) -> str:
        return _check_password(v)


class LoginIn(WireModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ProfileUpdate(WireModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    avatar: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class ChangePasswordIn(WireModel):
    """`current_password` may be omitted by accounts that never had one (Google sign-in)."""
    current_password: Optional[str] = Field(default=None, alias="currentPassword")
    new_password: str = Field(min_length=6, alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def _password_strength(cls, v: str) -> str:
        return _check_password(v)


class GoogleAuthIn(WireModel):
    """Authorization code returned to the frontend by Google's consent screen."""
    code: str = Field(min_length=1)
    redirect_uri: Optional[str] = Field(default=None, alias="redirectUri")


class QuestionIn(WireModel):
    """A question authored as part of exam creation."""
    type: QuestionType
    question: str = Field(min_length=1, max_length=1000)
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = Field(default=None, alias="correctAnswer")
    points: int = Field(default=1, ge=1, le=100)

    @field_validator("question", mode="before")
    @classmethod
    def _strip_question(cls, v):
        return v.strip() if isinstance(v, str) else v


class ExamCreate(WireModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    time_limit: Optional[int] = Field(default=None, ge=1, le=480, alias="timeLimit")
    questions: List[QuestionIn] = Field(default_factory=list)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class ExamUpdate(WireModel):
    """Partial update; only fields present in the request body are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    time_limit: Optional[int] = Field(default=None, ge=1, le=480, alias="timeLimit")
    is_active: Optional[bool] = Field(default=None, alias="isActive")

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class SubmissionAnswerIn(WireModel):
    """Single submitted answer. The text is kept verbatim for grading."""
    question_id: str = Field(min_length=1, alias="questionId")
    answer: str

    @field_validator("answer")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Answer is required")
        return v


class SubmissionIn(WireModel):
    """A student's submission against a shared exam; no account required."""
    student_name: Optional[str] = Field(default=None, min_length=1, max_length=100, alias="studentName")
    student_email: Optional[EmailStr] = Field(default=None, alias="studentEmail")
    answers: List[SubmissionAnswerIn] = Field(min_length=1)

    @field_validator("student_name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class ScoreUpdate(WireModel):
    score: int = Field(ge=0)
