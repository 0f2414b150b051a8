"""CLI script to create (or promote) a tutor account.
Usage: python scripts/create_tutor.py EMAIL NAME PASSWORD
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `quizcraft` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from quizcraft.database import engine, create_db_and_tables
from quizcraft import models, repositories, services
from quizcraft.errors import ErrorKind
from quizcraft.schemas import RegisterIn


def main(email: str, name: str, password: str):
    """Register a tutor, or switch an existing account with that e-mail to TUTOR.

    Results are printed to stdout for a quick CLI feedback loop.
    """
    create_db_and_tables()
    with Session(engine) as session:
        payload = RegisterIn(name=name, email=email, password=password, role=models.Role.TUTOR)
        result = services.AuthService(session).register(payload)
        if result.ok:
            user, _token = result.value
            print(f'Created tutor {user.email} ({user.id})')
            return
        if result.error.kind != ErrorKind.CONFLICT:
            print(f'Failed: {result.error.message}')
            return
        repo = repositories.UserRepository(session)
        user = repo.get_by_email(email)
        user.role = models.Role.TUTOR
        repo.save(user)
        print(f'Promoted existing user {user.email} ({user.id}) to tutor')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('email')
    parser.add_argument('name')
    parser.add_argument('password')
    args = parser.parse_args()
    main(args.email, args.name, args.password)
