from sqlmodel import Session, select

from quizcraft import models
from quizcraft.database import engine


def _submit(client, share_link, answers, **student):
    payload = {'answers': [{'questionId': k, 'answer': v} for k, v in answers.items()], **student}
    return client.post(f'/responses/submit/{share_link}', json=payload)


def test_create_exam_assigns_dense_order_and_share_link(client, sample_exam):
    assert sample_exam['shareLink']
    assert sample_exam['isActive'] is True
    assert sample_exam['totalPoints'] == 15
    assert [q['order'] for q in sample_exam['questions']] == [1, 2]
    assert sample_exam['questions'][0]['correctAnswer'] == 'B'
    assert sample_exam['questions'][1]['points'] == 5


def test_students_cannot_author_exams(client, student):
    r = client.post('/exams', json={'title': 'Nope'}, headers=student['headers'])
    assert r.status_code == 403
    assert r.json()['success'] is False


def test_exam_validation(client, tutor):
    r = client.post('/exams', json={'title': '', 'timeLimit': 999, 'questions': [{'type': 'MATCHING', 'question': 'x'}]}, headers=tutor['headers'])
    assert r.status_code == 400
    fields = {e['field'] for e in r.json()['errors']}
    assert 'title' in fields
    assert 'timeLimit' in fields
    assert 'questions.0.type' in fields


def test_public_exam_hides_answers(client, sample_exam):
    r = client.get(f"/exams/public/{sample_exam['shareLink']}")
    assert r.status_code == 200
    exam = r.json()['data']['exam']
    assert exam['author']['name'] == 'Tutor User'
    assert all('correctAnswer' not in q for q in exam['questions'])
    assert client.get('/exams/public/does-not-exist').status_code == 404


def test_list_get_update_delete(client, tutor, other_tutor, sample_exam):
    headers = tutor['headers']
    listed = client.get('/exams', headers=headers).json()['data']
    assert listed['pagination']['total'] == 1
    assert listed['exams'][0]['responseCount'] == 0

    # other tutors cannot see or change it
    assert client.get(f"/exams/{sample_exam['id']}", headers=other_tutor['headers']).status_code == 404
    assert client.put(f"/exams/{sample_exam['id']}", json={'title': 'x'}, headers=other_tutor['headers']).status_code == 404

    upd = client.put(f"/exams/{sample_exam['id']}", json={'title': 'Renamed', 'isActive': False}, headers=headers)
    assert upd.status_code == 200
    exam = upd.json()['data']['exam']
    assert exam['title'] == 'Renamed'
    assert exam['isActive'] is False
    assert exam['timeLimit'] == 30

    # inactive exams are not reachable through the share link
    assert client.get(f"/exams/public/{sample_exam['shareLink']}").status_code == 404
    r = _submit(client, sample_exam['shareLink'], {sample_exam['questions'][0]['id']: 'B'})
    assert r.status_code == 404
    assert r.json()['message'] == 'Exam not found or inactive'

    client.put(f"/exams/{sample_exam['id']}", json={'isActive': True}, headers=headers)
    assert _submit(client, sample_exam['shareLink'], {sample_exam['questions'][0]['id']: 'B'}).status_code == 201

    d = client.delete(f"/exams/{sample_exam['id']}", headers=headers)
    assert d.status_code == 200
    assert client.get(f"/exams/{sample_exam['id']}", headers=headers).status_code == 404


def test_submission_scenarios(client, tutor, sample_exam):
    q1, q2 = (q['id'] for q in sample_exam['questions'])
    link = sample_exam['shareLink']

    a = _submit(client, link, {q1: 'B', q2: 'free text'}, studentName='Ann', studentEmail='ann@example.com')
    assert a.status_code == 201
    data = a.json()['data']
    assert (data['score'], data['totalPoints'], data['percentage']) == (10, 15, 67)
    answers = data['response']['answers']
    assert [(x['questionId'], x['isCorrect']) for x in answers] == [(q1, True), (q2, False)]
    assert answers[0]['question']['points'] == 10

    b = _submit(client, link, {q1: 'C'}).json()['data']
    assert (b['score'], b['totalPoints'], b['percentage']) == (0, 15, 0)
    assert len(b['response']['answers']) == 1

    c = _submit(client, link, {'not-a-question': 'B', q1: 'b'}).json()['data']
    assert (c['score'], c['totalPoints']) == (0, 15)
    assert [x['questionId'] for x in c['response']['answers']] == [q1]

    # the same submission twice gives two identical, independent rows
    first = _submit(client, link, {q1: 'B'}).json()['data']
    second = _submit(client, link, {q1: 'B'}).json()['data']
    assert first['response']['id'] != second['response']['id']
    assert (first['score'], first['totalPoints']) == (second['score'], second['totalPoints'])

    listed = client.get(f"/responses/exam/{sample_exam['id']}?limit=2", headers=tutor['headers']).json()['data']
    assert listed['pagination'] == {'page': 1, 'limit': 2, 'total': 5, 'pages': 3}
    assert len(listed['responses']) == 2


def test_submission_validation(client, sample_exam):
    link = sample_exam['shareLink']
    empty = client.post(f'/responses/submit/{link}', json={'answers': []})
    assert empty.status_code == 400
    assert empty.json()['message'] == 'Validation failed'
    blank = client.post(f'/responses/submit/{link}', json={'answers': [{'questionId': 'x', 'answer': '   '}]})
    assert blank.status_code == 400
    bad_email = client.post(f'/responses/submit/{link}', json={'studentEmail': 'nope', 'answers': [{'questionId': 'x', 'answer': 'a'}]})
    assert bad_email.status_code == 400


def test_manual_score_override(client, tutor, other_tutor, sample_exam):
    q1, q2 = (q['id'] for q in sample_exam['questions'])
    resp = _submit(client, sample_exam['shareLink'], {q1: 'B', q2: 'essay'}).json()['data']['response']

    forbidden = client.put(f"/responses/{resp['id']}/score", json={'score': 12}, headers=other_tutor['headers'])
    assert forbidden.status_code == 403
    missing = client.put('/responses/nope/score', json={'score': 12}, headers=tutor['headers'])
    assert missing.status_code == 404
    negative = client.put(f"/responses/{resp['id']}/score", json={'score': -1}, headers=tutor['headers'])
    assert negative.status_code == 400

    # no upper bound against totalPoints
    r = client.put(f"/responses/{resp['id']}/score", json={'score': 20}, headers=tutor['headers'])
    assert r.status_code == 200
    updated = r.json()['data']['response']
    assert updated['score'] == 20
    assert updated['totalPoints'] == 15
    assert [a['isCorrect'] for a in updated['answers']] == [True, False]


def test_total_points_snapshot_survives_exam_changes(client, tutor, sample_exam):
    q1 = sample_exam['questions'][0]['id']
    resp = _submit(client, sample_exam['shareLink'], {q1: 'B'}).json()['data']['response']
    client.put(f"/exams/{sample_exam['id']}", json={'title': 'Edited'}, headers=tutor['headers'])
    exam = client.get(f"/exams/{sample_exam['id']}", headers=tutor['headers']).json()['data']['exam']
    stored = next(r for r in exam['responses'] if r['id'] == resp['id'])
    assert stored['totalPoints'] == 15
    assert stored['score'] == 10


def test_exam_without_questions_grades_to_zero_percent(client, tutor):
    exam = client.post('/exams', json={'title': 'Blank'}, headers=tutor['headers']).json()['data']['exam']
    r = _submit(client, exam['shareLink'], {'anything': 'x'})
    assert r.status_code == 201
    data = r.json()['data']
    assert (data['score'], data['totalPoints'], data['percentage']) == (0, 0, 0)


def test_delete_exam_removes_questions_responses_and_answers(client, tutor, sample_exam):
    q1, q2 = (q['id'] for q in sample_exam['questions'])
    resp = _submit(client, sample_exam['shareLink'], {q1: 'B', q2: 'essay'}).json()['data']['response']
    assert client.delete(f"/exams/{sample_exam['id']}", headers=tutor['headers']).status_code == 200

    with Session(engine) as session:
        assert session.get(models.Response, resp['id']) is None
        assert session.exec(select(models.Answer).where(models.Answer.response_id == resp['id'])).all() == []
        assert session.exec(select(models.Question).where(models.Question.exam_id == sample_exam['id'])).all() == []
