"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the grading/analytics helpers. Services validate ownership, run the
domain logic and persist aggregates via repositories. Expected failures
come back as `Result.failure(...)` rather than exceptions; the caller
decides how to present them.
"""

import logging
import math
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlmodel import Session

from . import models, repositories, schemas
from .auth import Principal, create_access_token, hash_password, verify_password
from .config import settings
from .errors import ErrorKind, Result
from .utils import analytics
from .utils.grading import GradeResult, grade
from .utils.mailer import send_verification_email
from .utils.oauth import GoogleProfile

logger = logging.getLogger("quizcraft.services")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


class AuthService:
    """Account operations: registration, login, verification, Google linking."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, payload: schemas.RegisterIn) -> Result:
        """Create a local account and send its verification e-mail.

        Returns `(user, token)`; a taken e-mail is a CONFLICT.
        """
        email = payload.email.lower()
        if self.user_repo.get_by_email(email):
            return Result.failure(ErrorKind.CONFLICT, "User already exists with this email")
        token = secrets.token_hex(32)
        user = models.User(
            email=email,
            name=payload.name,
            password_hash=hash_password(payload.password),
            role=payload.role,
            email_verification_token=token,
            email_verification_expires=_utcnow() + timedelta(hours=settings.VERIFICATION_TTL_HOURS),
        )
        user = self.user_repo.create(user)
        send_verification_email(user.email, user.name, token)
        logger.info("registered user %s as %s", user.id, user.role.value)
        return Result.success((user, create_access_token(user)))

    def authenticate(self, email: str, password: str) -> Result:
        """Verify credentials and return `(user, token)`.

        Accounts created through Google have no password and cannot log
        in this way until they set one.
        """
        user = self.user_repo.get_by_email(email)
        if not user or not user.password_hash or not verify_password(password, user.password_hash):
            return Result.failure(ErrorKind.UNAUTHORIZED, "Invalid email or password")
        return Result.success((user, create_access_token(user)))

    def verify_email(self, token: str) -> Result:
        user = self.user_repo.get_by_verification_token(token)
        if not user:
            return Result.failure(ErrorKind.VALIDATION, "Invalid verification token")
        expires = user.email_verification_expires
        if expires is not None and _aware(expires) < _utcnow():
            return Result.failure(ErrorKind.VALIDATION, "Verification token has expired")
        user.is_email_verified = True
        user.email_verification_token = None
        user.email_verification_expires = None
        user.updated_at = _utcnow()
        return Result.success(self.user_repo.save(user))

    def get_profile(self, principal: Principal) -> Result:
        user = self.user_repo.get(principal.id)
        if not user:
            return Result.failure(ErrorKind.NOT_FOUND, "User not found")
        return Result.success(user)

    def update_profile(self, principal: Principal, payload: schemas.ProfileUpdate) -> Result:
        user = self.user_repo.get(principal.id)
        if not user:
            return Result.failure(ErrorKind.NOT_FOUND, "User not found")
        changes = payload.model_dump(exclude_unset=True)
        if changes.get("name") is not None:
            user.name = changes["name"]
        if "avatar" in changes:
            user.avatar = changes["avatar"]
        user.updated_at = _utcnow()
        return Result.success(self.user_repo.save(user))

    def list_users(self, search: str = "", page: int = 1, limit: int = 10) -> Result:
        """Return `(users, total)` for one page of the user directory."""
        return Result.success(self.user_repo.list(search.strip(), page=page, limit=limit))

    def change_password(self, principal: Principal, payload: schemas.ChangePasswordIn) -> Result:
        user = self.user_repo.get(principal.id)
        if not user:
            return Result.failure(ErrorKind.NOT_FOUND, "User not found")
        if user.password_hash:
            if not payload.current_password or not verify_password(payload.current_password, user.password_hash):
                return Result.failure(ErrorKind.UNAUTHORIZED, "Current password is incorrect")
        user.password_hash = hash_password(payload.new_password)
        user.updated_at = _utcnow()
        return Result.success(self.user_repo.save(user))

    def login_with_google(self, profile: GoogleProfile) -> Result:
        """Resolve a Google profile to a local account and return `(user, token)`.

        Matching order: the linked Google id, then the e-mail address
        (linking Google to that existing account), else a new verified
        STUDENT account without a password.
        """
        user = self.user_repo.get_by_google_id(profile.google_id)
        if user:
            logger.info("google login for linked user %s", user.id)
            return Result.success((user, create_access_token(user)))

        user = self.user_repo.get_by_email(profile.email)
        if user:
            user.google_id = profile.google_id
            user.avatar = profile.avatar
            user.provider = "google"
            user.is_email_verified = True
            user.updated_at = _utcnow()
            user = self.user_repo.save(user)
            logger.info("linked google account to existing user %s", user.id)
            return Result.success((user, create_access_token(user)))

        user = self.user_repo.create(models.User(
            email=profile.email,
            name=profile.name,
            google_id=profile.google_id,
            avatar=profile.avatar,
            provider="google",
            is_email_verified=True,
            role=models.Role.STUDENT,
        ))
        logger.info("created user %s from google sign-in", user.id)
        return Result.success((user, create_access_token(user)))


class ExamService:
    """Exam authoring. Every operation except `get_public` is scoped to the author."""
    def __init__(self, session: Session):
        self.session = session
        self.exam_repo = repositories.ExamRepository(session)

    def create(self, principal: Principal, payload: schemas.ExamCreate) -> Result:
        exam = models.Exam(
            title=payload.title,
            description=payload.description,
            time_limit=payload.time_limit,
            author_id=principal.id,
        )
        questions = [
            models.Question(
                type=q.type,
                question_text=q.question,
                options=q.options or None,
                correct_answer=q.correct_answer or None,
                points=q.points,
                order=0,
            )
            for q in payload.questions
        ]
        exam = self.exam_repo.create(exam, questions)
        logger.info("exam %s created by %s with %d questions", exam.id, principal.id, len(questions))
        return Result.success(exam)

    def list(self, principal: Principal, page: int = 1, limit: int = 10) -> Result:
        """Return `(exams, total)` for one page of the author's exams."""
        return Result.success(self.exam_repo.list_for_author(principal.id, page=page, limit=limit))

    def get(self, principal: Principal, exam_id: str) -> Result:
        exam = self.exam_repo.get_owned(exam_id, principal.id)
        if not exam:
            return Result.failure(ErrorKind.NOT_FOUND, "Exam not found")
        return Result.success(exam)

    def update(self, principal: Principal, exam_id: str, payload: schemas.ExamUpdate) -> Result:
        """Apply the fields present in `payload`.

        `description` and `timeLimit` may be cleared with null; a null
        `title` or `isActive` leaves the stored value alone.
        """
        exam = self.exam_repo.get_owned(exam_id, principal.id)
        if not exam:
            return Result.failure(ErrorKind.NOT_FOUND, "Exam not found")
        changes = payload.model_dump(exclude_unset=True)
        for field in ("title", "is_active"):
            if changes.get(field) is not None:
                setattr(exam, field, changes[field])
        for field in ("description", "time_limit"):
            if field in changes:
                setattr(exam, field, changes[field])
        exam.updated_at = _utcnow()
        return Result.success(self.exam_repo.save(exam))

    def delete(self, principal: Principal, exam_id: str) -> Result:
        exam = self.exam_repo.get_owned(exam_id, principal.id)
        if not exam:
            return Result.failure(ErrorKind.NOT_FOUND, "Exam not found")
        self.exam_repo.delete(exam)
        logger.info("exam %s deleted by %s", exam_id, principal.id)
        return Result.success(None)

    def get_public(self, share_link: str) -> Result:
        exam = self.exam_repo.get_active_by_share_link(share_link)
        if not exam:
            return Result.failure(ErrorKind.NOT_FOUND, "Exam not found or inactive")
        return Result.success(exam)


class ResponseService:
    """Student submissions and their review by the exam author."""
    def __init__(self, session: Session):
        self.session = session
        self.exam_repo = repositories.ExamRepository(session)
        self.question_repo = repositories.QuestionRepository(session)
        self.response_repo = repositories.ResponseRepository(session)

    def submit(self, share_link: str, payload: schemas.SubmissionIn) -> Result:
        """Grade a submission against the active exam behind `share_link` and store it.

        Returns `(response, grade_result)`. The response and its answers
        are written in one transaction; `total_points` is frozen at the
        exam's current point total.
        """
        exam = self.exam_repo.get_active_by_share_link(share_link)
        if not exam:
            return Result.failure(ErrorKind.NOT_FOUND, "Exam not found or inactive")
        questions = self.question_repo.list_for_exam(exam.id)
        result: GradeResult = grade(questions, payload.answers)
        response = models.Response(
            exam_id=exam.id,
            student_name=payload.student_name,
            student_email=payload.student_email.lower() if payload.student_email else None,
            score=result.score,
            total_points=result.total_points,
        )
        answers = [
            models.Answer(question_id=a.question_id, answer=a.answer, is_correct=a.is_correct, response_id=response.id)
            for a in result.answers
        ]
        response = self.response_repo.create(response, answers)
        logger.info(
            "response %s for exam %s graded %d/%d (%d answers kept of %d submitted)",
            response.id, exam.id, result.score, result.total_points, len(answers), len(payload.answers),
        )
        return Result.success((response, result))

    def list_for_exam(self, principal: Principal, exam_id: str, page: int = 1, limit: int = 10) -> Result:
        """Return `(responses, total)` for one page of an owned exam's responses."""
        if not self.exam_repo.get_owned(exam_id, principal.id):
            return Result.failure(ErrorKind.NOT_FOUND, "Exam not found")
        return Result.success(self.response_repo.list_for_exam(exam_id, page=page, limit=limit))

    def set_score(self, response_id: str, score: int, principal: Principal) -> Result:
        """Overwrite a response's score after manual review.

        Only the author of the response's exam may do this. `total_points`
        and the answers are left untouched, and the score is not capped
        at `total_points`.
        """
        response = self.response_repo.get(response_id)
        if not response:
            return Result.failure(ErrorKind.NOT_FOUND, "Response not found")
        if response.exam.author_id != principal.id:
            return Result.failure(ErrorKind.FORBIDDEN, "Not allowed to grade this response")
        previous = response.score
        response = self.response_repo.update_score(response, score)
        logger.info("response %s score overridden by %s: %s -> %d", response.id, principal.id, previous, score)
        return Result.success(response)


class AnalyticsService:
    """Tutor dashboards, recomputed from every response on each call."""
    def __init__(self, session: Session):
        self.session = session
        self.exam_repo = repositories.ExamRepository(session)
        self.response_repo = repositories.ResponseRepository(session)

    def overview(self, principal: Principal, time_range: str = "30d", now: Optional[datetime] = None) -> Result:
        if time_range not in analytics.TIME_RANGES:
            return Result.failure(
                ErrorKind.VALIDATION,
                "Validation failed",
                [{"field": "timeRange", "message": f"must be one of {', '.join(analytics.TIME_RANGES)}"}],
            )
        exams = self.exam_repo.all_for_author(principal.id)
        return Result.success(analytics.overview(exams, time_range, now=now))

    def students(self, principal: Principal) -> Result:
        responses: List[models.Response] = self.response_repo.list_for_author(principal.id)
        rows = analytics.student_summaries(responses)
        return Result.success(sorted(rows, key=lambda r: (r["name"].lower(), r["email"] or "")))


def paginate(total: int, page: int, limit: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit) if limit else 0}

