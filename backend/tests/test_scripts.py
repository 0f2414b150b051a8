import importlib.util
import io
from pathlib import Path

from sqlmodel import Session

from quizcraft.database import engine

SCRIPTS = Path(__file__).resolve().parents[1] / "scripts"


def _load(name):
    spec = importlib.util.spec_from_file_location(name, SCRIPTS / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_export_responses_csv(client, sample_exam):
    q1 = sample_exam['questions'][0]['id']
    client.post(f"/responses/submit/{sample_exam['shareLink']}", json={'studentName': 'Ann', 'answers': [{'questionId': q1, 'answer': 'B'}]})
    export_responses = _load("export_responses")
    out = io.StringIO()
    with Session(engine) as session:
        count = export_responses.export(session, sample_exam['id'], out)
    assert count == 1
    lines = out.getvalue().strip().splitlines()
    assert lines[0].split(',') == export_responses.COLUMNS
    assert ',Ann,,10,15,67,' in lines[1]


def test_create_tutor_promotes_existing_student(client, student, capsys):
    create_tutor = _load("create_tutor")
    create_tutor.main(student['user']['email'], 'Promoted', 'Secret123')
    assert 'Promoted existing user' in capsys.readouterr().out
    login = client.post('/auth/login', json={'email': student['user']['email'], 'password': 'Secret123'})
    assert login.json()['data']['user']['role'] == 'TUTOR'
