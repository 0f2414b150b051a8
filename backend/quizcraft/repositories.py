"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
exams with their questions, responses with their answers).
Repositories return SQLModel objects. Aggregates that span several
rows are written with a single commit so they land atomically.
"""

from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlmodel import Session, select

from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: models.User) -> models.User:
        """Commit changes made to an existing user."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: str) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by e-mail (case-insensitive) or `None`."""
        stmt = select(models.User).where(func.lower(models.User.email) == email.lower())
        return self.session.exec(stmt).first()

    def get_by_google_id(self, google_id: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.google_id == google_id)
        return self.session.exec(stmt).first()

    def get_by_verification_token(self, token: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.email_verification_token == token)
        return self.session.exec(stmt).first()

    def list(self, search: str = "", page: int = 1, limit: int = 10) -> Tuple[List[models.User], int]:
        """One page of users (newest first) whose name or e-mail contains `search`, and the total count."""
        conditions = []
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(func.lower(models.User.name).like(pattern), func.lower(models.User.email).like(pattern))
            )
        stmt = (
            select(models.User)
            .where(*conditions)
            .order_by(models.User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = self.session.exec(select(func.count()).select_from(models.User).where(*conditions)).one()
        return list(self.session.exec(stmt).all()), total


class ExamRepository:
    """Exams and their ordered questions."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, exam: models.Exam, questions: List[models.Question]) -> models.Exam:
        """Create an exam together with its questions in one transaction.

        Questions receive their `order` from their position (1..N).
        """
        self.session.add(exam)
        for idx, q in enumerate(questions, start=1):
            q.exam_id = exam.id
            q.order = idx
            self.session.add(q)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(exam)
        return exam

    def save(self, exam: models.Exam) -> models.Exam:
        self.session.add(exam)
        self.session.commit()
        self.session.refresh(exam)
        return exam

    def delete(self, exam: models.Exam) -> None:
        self.session.delete(exam)
        self.session.commit()

    def get(self, exam_id: str) -> Optional[models.Exam]:
        return self.session.get(models.Exam, exam_id)

    def get_owned(self, exam_id: str, author_id: str) -> Optional[models.Exam]:
        """Return the exam only when `author_id` owns it."""
        stmt = select(models.Exam).where(models.Exam.id == exam_id, models.Exam.author_id == author_id)
        return self.session.exec(stmt).first()

    def get_active_by_share_link(self, share_link: str) -> Optional[models.Exam]:
        """Return an active exam by its public share link."""
        stmt = select(models.Exam).where(models.Exam.share_link == share_link, models.Exam.is_active == True)  # noqa: E712
        return self.session.exec(stmt).first()

    def list_for_author(self, author_id: str, page: int = 1, limit: int = 10) -> Tuple[List[models.Exam], int]:
        """Return one page of the author's exams (newest first) and the total count."""
        stmt = (
            select(models.Exam)
            .where(models.Exam.author_id == author_id)
            .order_by(models.Exam.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = self.session.exec(
            select(func.count()).select_from(models.Exam).where(models.Exam.author_id == author_id)
        ).one()
        return list(self.session.exec(stmt).all()), total

    def all_for_author(self, author_id: str) -> List[models.Exam]:
        stmt = select(models.Exam).where(models.Exam.author_id == author_id).order_by(models.Exam.created_at.desc())
        return list(self.session.exec(stmt).all())

    def count_responses(self, exam_id: str) -> int:
        stmt = select(func.count()).select_from(models.Response).where(models.Response.exam_id == exam_id)
        return self.session.exec(stmt).one()


class QuestionRepository:
    """Query helpers for `Question` records."""
    def __init__(self, session: Session):
        self.session = session

    def list_for_exam(self, exam_id: str) -> List[models.Question]:
        """Questions of `exam_id` in their display/grading order."""
        stmt = select(models.Question).where(models.Question.exam_id == exam_id).order_by(models.Question.order)
        return list(self.session.exec(stmt).all())


class ResponseRepository:
    """Persist responses and their answers; look them up for review."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, response: models.Response, answers: List[models.Answer]) -> models.Response:
        """Store a `Response` and its `Answer`s in one transaction."""
        self.session.add(response)
        for a in answers:
            a.response_id = response.id
            self.session.add(a)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(response)
        return response

    def get(self, response_id: str) -> Optional[models.Response]:
        return self.session.get(models.Response, response_id)

    def update_score(self, response: models.Response, score: int) -> models.Response:
        response.score = score
        self.session.add(response)
        self.session.commit()
        self.session.refresh(response)
        return response

    def list_for_exam(self, exam_id: str, page: int = 1, limit: int = 10) -> Tuple[List[models.Response], int]:
        """One page of the exam's responses (newest first) and the total count."""
        stmt = (
            select(models.Response)
            .where(models.Response.exam_id == exam_id)
            .order_by(models.Response.submitted_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = self.session.exec(
            select(func.count()).select_from(models.Response).where(models.Response.exam_id == exam_id)
        ).one()
        return list(self.session.exec(stmt).all()), total

    def list_for_author(self, author_id: str) -> List[models.Response]:
        """Every response to any exam owned by `author_id`."""
        stmt = (
            select(models.Response)
            .join(models.Exam, models.Exam.id == models.Response.exam_id)
            .where(models.Exam.author_id == author_id)
            .order_by(models.Response.submitted_at.desc())
        )
        return list(self.session.exec(stmt).all())
