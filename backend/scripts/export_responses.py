"""CLI script to export every response of one exam as CSV.
Usage: python scripts/export_responses.py EXAM_ID [--out FILE]
"""
import sys
import csv
import argparse
import pathlib
from typing import Optional
# Ensure `backend/` is on sys.path so `quizcraft` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from quizcraft.database import engine
from quizcraft import repositories
from quizcraft.utils.grading import percentage

COLUMNS = ['response_id', 'student_name', 'student_email', 'score', 'total_points', 'percentage', 'submitted_at']


def export(session: Session, exam_id: str, out) -> int:
    """Write one CSV row per response of `exam_id` to `out`; return the row count."""
    exam = repositories.ExamRepository(session).get(exam_id)
    if exam is None:
        raise ValueError(f'exam not found: {exam_id}')
    writer = csv.writer(out)
    writer.writerow(COLUMNS)
    for r in exam.responses:
        writer.writerow([
            r.id,
            r.student_name or '',
            r.student_email or '',
            '' if r.score is None else r.score,
            r.total_points,
            percentage(r.score or 0, r.total_points),
            r.submitted_at.isoformat(),
        ])
    return len(exam.responses)


def main(exam_id: str, out_path: Optional[str] = None):
    with Session(engine) as session:
        try:
            if out_path:
                with open(out_path, 'w', newline='', encoding='utf-8') as f:
                    count = export(session, exam_id, f)
                print(f'Exported {count} responses to {out_path}')
            else:
                export(session, exam_id, sys.stdout)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            sys.exit(1)


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('exam_id')
    parser.add_argument('--out', help='Write to this file instead of stdout')
    args = parser.parse_args()
    main(args.exam_id, out_path=args.out)
