"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the Quiz Craft backend.
Controllers are intentionally thin: they accept validated requests,
delegate to services, check the returned `Result` and shape JSON.

Every body uses the same envelope: `{success: true, message?, data}` on
success and `{success: false, message, errors?}` on failure.

Endpoints implemented:
- POST /auth/register, POST /auth/login, POST /auth/logout
- GET /auth/verify-email/{token}
- GET|PUT /auth/profile, POST /auth/change-password
- GET /auth/users
- POST /auth/google
- POST|GET /exams, GET|PUT|DELETE /exams/{id}, GET /exams/public/{share_link}
- POST /responses/submit/{share_link}
- GET /responses/exam/{exam_id}, PUT /responses/{response_id}/score
- GET /analytics/overview, GET /analytics/students
- GET /health
"""

import json
import logging
import os
import time
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models, schemas, services
from .auth import Principal, get_current_principal, require_tutor
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import ServiceError
from .utils.oauth import OAuthError, exchange_code

app = FastAPI(title="Quiz Craft API")
logger = logging.getLogger("quizcraft.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

# Wide-open CORS keeps a locally served frontend working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


def _fail(status_code: int, message: str, errors: Optional[list] = None, headers: Optional[dict] = None) -> JSONResponse:
    content = {"success": False, "message": message}
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _error_response(error: ServiceError) -> JSONResponse:
    return _fail(error.status_code, error.message, error.errors)


def _ok(data=None, message: Optional[str] = None) -> dict:
    out = {"success": True}
    if message:
        out["message"] = message
    if data is not None:
        out["data"] = data
    return out


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "invalid value")})
    return _fail(400, "Validation failed", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _fail(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return _fail(500, "Internal server error")


def _user_out(user: models.User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "avatar": user.avatar,
        "provider": user.provider,
        "isEmailVerified": user.is_email_verified,
        "createdAt": user.created_at,
    }


def _question_out(q: models.Question, include_answer: bool = True) -> dict:
    out = {
        "id": q.id,
        "type": q.type.value,
        "question": q.question_text,
        "options": q.options,
        "points": q.points,
        "order": q.order,
    }
    if include_answer:
        out["correctAnswer"] = q.correct_answer
    return out


def _answer_out(a: models.Answer) -> dict:
    q = a.question
    return {
        "id": a.id,
        "questionId": a.question_id,
        "answer": a.answer,
        "isCorrect": a.is_correct,
        "question": {
            "id": q.id,
            "question": q.question_text,
            "type": q.type.value,
            "correctAnswer": q.correct_answer,
            "points": q.points,
            "order": q.order,
        } if q else None,
    }


def _response_out(r: models.Response) -> dict:
    answers = sorted(r.answers, key=lambda a: a.question.order if a.question else 0)
    return {
        "id": r.id,
        "examId": r.exam_id,
        "studentName": r.student_name,
        "studentEmail": r.student_email,
        "score": r.score,
        "totalPoints": r.total_points,
        "submittedAt": r.submitted_at,
        "answers": [_answer_out(a) for a in answers],
    }


def _exam_out(exam: models.Exam, include_responses: bool = False) -> dict:
    out = {
        "id": exam.id,
        "title": exam.title,
        "description": exam.description,
        "timeLimit": exam.time_limit,
        "shareLink": exam.share_link,
        "isActive": exam.is_active,
        "authorId": exam.author_id,
        "createdAt": exam.created_at,
        "updatedAt": exam.updated_at,
        "totalPoints": exam.total_points,
        "questions": [_question_out(q) for q in exam.questions],
    }
    if include_responses:
        out["responses"] = [_response_out(r) for r in exam.responses]
    return out


# ---------------------------------------------------------------- auth


@app.post('/auth/register', status_code=201)
def register(payload: schemas.RegisterIn, db: Session = Depends(get_session)):
    """Register a local account.

    The account starts unverified; a verification link is e-mailed (or
    logged when SMTP is not configured). A token is returned right away
    so the client can continue without a separate login.
    """
    result = services.AuthService(db).register(payload)
    if not result.ok:
        return _error_response(result.error)
    user, token = result.value
    return _ok({"user": _user_out(user), "token": token}, "User registered successfully")


@app.post('/auth/login')
def login(payload: schemas.LoginIn, db: Session = Depends(get_session)):
    """Authenticate with e-mail and password and return a signed JWT."""
    result = services.AuthService(db).authenticate(payload.email, payload.password)
    if not result.ok:
        return _error_response(result.error)
    user, token = result.value
    return _ok({"user": _user_out(user), "token": token}, "Login successful")


@app.post('/auth/logout')
def logout():
    """Tokens are stateless; the client forgets its token."""
    return _ok(message="Logged out successfully")


@app.get('/auth/verify-email/{token}')
def verify_email(token: str, db: Session = Depends(get_session)):
    result = services.AuthService(db).verify_email(token)
    if not result.ok:
        return _error_response(result.error)
    return _ok({"user": _user_out(result.value)}, "Email verified successfully")


@app.get('/auth/profile')
def get_profile(db: Session = Depends(get_session), principal: Principal = Depends(get_current_principal)):
    result = services.AuthService(db).get_profile(principal)
    if not result.ok:
        return _error_response(result.error)
    return _ok({"user": _user_out(result.value)})


@app.put('/auth/profile')
def update_profile(payload: schemas.ProfileUpdate, db: Session = Depends(get_session), principal: Principal = Depends(get_current_principal)):
    result = services.AuthService(db).update_profile(principal, payload)
    if not result.ok:
        return _error_response(result.error)
    return _ok({"user": _user_out(result.value)}, "Profile updated successfully")


@app.post('/auth/change-password')
def change_password(payload: schemas.ChangePasswordIn, db: Session = Depends(get_session), principal: Principal = Depends(get_current_principal)):
    result = services.AuthService(db).change_password(principal, payload)
    if not result.ok:
        return _error_response(result.error)
    return _ok(message="Password updated successfully")


@app.get('/auth/users')
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = Query(""),
    db: Session = Depends(get_session),
    principal: Principal = Depends(require_tutor),
):
    """Page through registered users, optionally filtered by name or e-mail."""
    result = services.AuthService(db).list_users(search, page=page, limit=limit)
    if not result.ok:
        return _error_response(result.error)
    users, total = result.value
    return _ok({"users": [_user_out(u) for u in users], "pagination": services.paginate(total, page, limit)})


@app.post('/auth/google')
def google_login(payload: schemas.GoogleAuthIn, db: Session = Depends(get_session)):
    """Finish Google sign-in with the authorization code from the consent screen.

    The Google profile is matched to an existing account by Google id,
    then by e-mail; otherwise a new student account is created.
    """
    if not settings.google_oauth_enabled:
        return _fail(503, "Google OAuth not configured")
    try:
        profile = exchange_code(payload.code, payload.redirect_uri)
    except OAuthError as e:
        return _fail(400, str(e))
    result = services.AuthService(db).login_with_google(profile)
    if not result.ok:
        return _error_response(result.error)
    user, token = result.value
    return _ok({"user": _user_out(user), "token": token}, "Login successful")


# ---------------------------------------------------------------- exams


@app.post('/exams', status_code=201)
def create_exam(payload: schemas.ExamCreate, db: Session = Depends(get_session), principal: Principal = Depends(require_tutor)):
    """Create an exam with its questions and generate its share link."""
    result = services.ExamService(db).create(principal, payload)
    if not result.ok:
        return _error_response(result.error)
    return _ok({"exam": _exam_out(result.value)}, "Exam created successfully")


@app.get('/exams')
def list_exams(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=1000),
    db: Session = Depends(get_session),
    principal: Principal = Depends(require_tutor),
):
    """List the caller's exams, newest first, with response counts."""
    svc = services.ExamService(db)
    result = svc.list(principal, page=page, limit=limit)
    if not result.ok:
        return _error_response(result.error)
    exams, total = result.value
    out = []
    for exam in exams:
        out.append({
            "id": exam.id,
            "title": exam.title,
            "description": exam.description,
            "timeLimit": exam.time_limit,
            "shareLink": exam.share_link,
            "isActive": exam.is_active,
            "createdAt": exam.created_at,
            "updatedAt": exam.updated_at,
            "questions": [{"id": q.id, "type": q.type.value, "points": q.points} for q in exam.questions],
            "responseCount": svc.exam_repo.count_responses(exam.id),
        })
    return _ok({"exams": out, "pagination": services.paginate(total, page, limit)})


@app.get('/exams/public/{share_link}')
def get_public_exam(share_link: str, db: Session = Depends(get_session)):
    """Fetch an active exam for a student. Correct answers are not exposed."""
    result = services.ExamService(db).get_public(share_link)
    if not result.ok:
        return _error_response(result.error)
    exam = result.value
    return _ok({"exam": {
        "id": exam.id,
        "title": exam.title,
        "description": exam.description,
        "timeLimit": exam.time_limit,
        "shareLink": exam.share_link,
        "totalPoints": exam.total_points,
        "author": {"name": exam.author.name if exam.author else None},
        "questions": [_question_out(q, include_answer=False) for q in exam.questions],
    }})


@app.get('/exams/{exam_id}')
def get_exam(exam_id: str, db: Session = Depends(get_session), principal: Principal = Depends(require_tutor)):
    result = services.ExamService(db).get(principal, exam_id)
    if not result.ok:
        return _error_response(result.error)
    return _ok({"exam": _exam_out(result.value, include_responses=True)})


@app.put('/exams/{exam_id}')
def update_exam(exam_id: str, payload: schemas.ExamUpdate, db: Session = Depends(get_session), principal: Principal = Depends(require_tutor)):
    result = services.ExamService(db).update(principal, exam_id, payload)
    if not result.ok:
        return _error_response(result.error)
    return _ok({"exam": _exam_out(result.value)}, "Exam updated successfully")


@app.delete('/exams/{exam_id}')
def delete_exam(exam_id: str, db: Session = Depends(get_session), principal: Principal = Depends(require_tutor)):
    """Delete an exam together with its questions, responses and answers."""
    result = services.ExamService(db).delete(principal, exam_id)
    if not result.ok:
        return _error_response(result.error)
    return _ok(message="Exam deleted successfully")


# ---------------------------------------------------------------- responses


@app.post('/responses/submit/{share_link}', status_code=201)
def submit_response(share_link: str, payload: schemas.SubmissionIn, db: Session = Depends(get_session)):
    """Submit and auto-grade a student's answers. No account is required.

    Multiple-choice and true/false answers are scored on exact match;
    short-answer and essay answers are stored for manual grading.
    """
    result = services.ResponseService(db).submit(share_link, payload)
    if not result.ok:
        return _error_response(result.error)
    response, graded = result.value
    return _ok({
        "response": _response_out(response),
        "score": graded.score,
        "totalPoints": graded.total_points,
        "percentage": graded.percentage,
    }, "Response submitted successfully")


@app.get('/responses/exam/{exam_id}')
def list_exam_responses(
    exam_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=1000),
    db: Session = Depends(get_session),
    principal: Principal = Depends(require_tutor),
):
    result = services.ResponseService(db).list_for_exam(principal, exam_id, page=page, limit=limit)
    if not result.ok:
        return _error_response(result.error)
    responses, total = result.value
    return _ok({
        "responses": [_response_out(r) for r in responses],
        "pagination": services.paginate(total, page, limit),
    })


@app.put('/responses/{response_id}/score')
def update_response_score(response_id: str, payload: schemas.ScoreUpdate, db: Session = Depends(get_session), principal: Principal = Depends(get_current_principal)):
    """Manually set a response's score (for short-answer/essay review)."""
    result = services.ResponseService(db).set_score(response_id, payload.score, principal)
    if not result.ok:
        return _error_response(result.error)
    return _ok({"response": _response_out(result.value)}, "Response score updated successfully")


# ---------------------------------------------------------------- analytics


@app.get('/analytics/overview')
def analytics_overview(
    time_range: str = Query("30d", alias="timeRange"),
    db: Session = Depends(get_session),
    principal: Principal = Depends(require_tutor),
):
    """Dashboard totals, score distribution and per-exam performance."""
    result = services.AnalyticsService(db).overview(principal, time_range)
    if not result.ok:
        return _error_response(result.error)
    return _ok(result.value)


@app.get('/analytics/students')
def analytics_students(db: Session = Depends(get_session), principal: Principal = Depends(require_tutor)):
    """One row per student e-mail across all of the caller's exams."""
    result = services.AnalyticsService(db).students(principal)
    if not result.ok:
        return _error_response(result.error)
    return _ok({"students": result.value})


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
