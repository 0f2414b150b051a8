"""Dashboard aggregates folded from raw responses.

Nothing here is cached or stored: every function takes the full set of
responses (or exams with their responses) and recomputes from scratch.
A response with no score yet counts as 0, and one with no points
counts as 0%.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from ..models import Exam, Response
from .grading import round_half_up

TIME_RANGES = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "all": None,
}

# (bucket, lower bound in percent), checked top-down
DISTRIBUTION_BUCKETS = (
    ("excellent", 90),
    ("good", 80),
    ("average", 70),
    ("poor", 60),
)


def _aware(dt: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo; they are stored as UTC
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def response_percentage(response: Response) -> float:
    """Unrounded percentage of a single response."""
    if not response.total_points:
        return 0.0
    return (response.score or 0) / response.total_points * 100


def bucket_for(pct: float) -> str:
    for name, lower in DISTRIBUTION_BUCKETS:
        if pct >= lower:
            return name
    return "failing"


def filter_by_time_range(responses: Iterable[Response], time_range: str, now: Optional[datetime] = None) -> List[Response]:
    """Keep responses submitted within `time_range` (`7d`, `30d`, `90d` or `all`) of `now`."""
    if time_range not in TIME_RANGES:
        raise ValueError(f"unknown time range: {time_range}")
    window = TIME_RANGES[time_range]
    if window is None:
        return list(responses)
    now = now or datetime.now(timezone.utc)
    return [r for r in responses if now - _aware(r.submitted_at) <= window]


def score_distribution(responses: Iterable[Response]) -> Dict[str, int]:
    dist = {name: 0 for name, _ in DISTRIBUTION_BUCKETS}
    dist["failing"] = 0
    for r in responses:
        dist[bucket_for(response_percentage(r))] += 1
    return dist


def exam_performance(exams: Iterable[Exam]) -> List[dict]:
    """Per-exam average/high/low percentage; exams without responses are left out."""
    out = []
    for exam in exams:
        if not exam.responses:
            continue
        scores = [response_percentage(r) for r in exam.responses]
        out.append({
            "examId": exam.id,
            "examTitle": exam.title,
            "totalResponses": len(scores),
            "averageScore": round_half_up(sum(scores) / len(scores)),
            "highestScore": round_half_up(max(scores)),
            "lowestScore": round_half_up(min(scores)),
        })
    return out


def student_summaries(responses: Sequence[Response]) -> List[dict]:
    """Group responses by student e-mail.

    `averageScore` is points-weighted: total scored points over total
    available points across every response of that student.
    """
    groups: Dict[Optional[str], dict] = {}
    for r in responses:
        submitted = _aware(r.submitted_at)
        row = groups.get(r.student_email)
        if row is None:
            row = groups[r.student_email] = {
                "email": r.student_email,
                "name": r.student_name or "Anonymous",
                "totalExamsTaken": 0,
                "firstSubmission": submitted,
                "lastActivity": submitted,
                "_score": 0,
                "_possible": 0,
            }
        row["totalExamsTaken"] += 1
        row["firstSubmission"] = min(row["firstSubmission"], submitted)
        row["lastActivity"] = max(row["lastActivity"], submitted)
        row["_score"] += r.score or 0
        row["_possible"] += r.total_points
    out = []
    for row in groups.values():
        possible = row.pop("_possible")
        scored = row.pop("_score")
        row["averageScore"] = round_half_up(scored / possible * 100) if possible > 0 else 0
        out.append(row)
    return out


def overview(exams: Sequence[Exam], time_range: str = "30d", now: Optional[datetime] = None) -> dict:
    """Build the tutor dashboard summary for `exams` and their responses."""
    all_responses = [r for exam in exams for r in exam.responses]
    titles = {exam.id: exam.title for exam in exams}
    filtered = filter_by_time_range(all_responses, time_range, now=now)
    average = sum(response_percentage(r) for r in filtered) / len(filtered) if filtered else 0
    performance = exam_performance(exams)
    recent = sorted(filtered, key=lambda r: _aware(r.submitted_at), reverse=True)[:10]
    top = sorted(performance, key=lambda p: p["averageScore"], reverse=True)[:5]
    return {
        "totalExams": len(exams),
        "totalResponses": len(filtered),
        "totalStudents": len({r.student_email for r in filtered}),
        "averageScore": round_half_up(average),
        "scoreDistribution": score_distribution(filtered),
        "examPerformance": performance,
        "recentActivity": [
            {
                "responseId": r.id,
                "examId": r.exam_id,
                "examTitle": titles.get(r.exam_id),
                "studentName": r.student_name,
                "studentEmail": r.student_email,
                "score": r.score,
                "totalPoints": r.total_points,
                "submittedAt": _aware(r.submitted_at),
            }
            for r in recent
        ],
        "topPerformingExams": [
            {"examTitle": p["examTitle"], "averageScore": p["averageScore"], "responseCount": p["totalResponses"]}
            for p in top
        ],
    }
