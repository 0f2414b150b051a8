"""Auto-grading of a single exam submission.

`grade` is pure: it reads the exam's questions and the validated
submitted answers and returns per-answer correctness plus the totals.
Persisting the outcome is the caller's job.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from ..models import Question
from ..schemas import SubmissionAnswerIn


@dataclass(frozen=True)
class GradedAnswer:
    question_id: str
    answer: str
    is_correct: bool


@dataclass(frozen=True)
class GradeResult:
    answers: List[GradedAnswer]
    score: int
    total_points: int

    @property
    def percentage(self) -> int:
        return percentage(self.score, self.total_points)


def round_half_up(value: float) -> int:
    """Round .5 upward (2.5 -> 3), unlike the built-in banker's `round`."""
    return math.floor(value + 0.5)


def percentage(score: int, total_points: int) -> int:
    """Return `score / total_points` as a whole percentage, 0 when there are no points."""
    if total_points <= 0:
        return 0
    return round_half_up(score / total_points * 100)


def grade(questions: Sequence[Question], submitted: Iterable[SubmissionAnswerIn]) -> GradeResult:
    """Grade `submitted` against `questions`.

    Questions are walked in their `order`. Every question counts toward
    `total_points`; only answered questions produce a `GradedAnswer`.
    Objective questions (multiple choice, true/false) score their points
    when the answer equals the configured correct answer exactly.
    Subjective questions are never auto-scored. Answers referencing ids
    outside `questions` are ignored; for repeated ids the first wins.
    """
    by_question: Dict[str, str] = {}
    for item in submitted:
        by_question.setdefault(item.question_id, item.answer)

    score = 0
    total_points = 0
    graded: List[GradedAnswer] = []
    for q in sorted(questions, key=lambda q: q.order):
        total_points += q.points
        if q.id not in by_question:
            continue
        text = by_question[q.id]
        is_correct = False
        if q.is_objective and q.correct_answer and text == q.correct_answer:
            is_correct = True
            score += q.points
        graded.append(GradedAnswer(question_id=q.id, answer=text, is_correct=is_correct))
    return GradeResult(answers=graded, score=score, total_points=total_points)
