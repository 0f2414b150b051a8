import uuid
from datetime import datetime, timedelta, timezone

from sqlmodel import Session

from quizcraft import repositories
from quizcraft.config import settings
from quizcraft.database import engine
from quizcraft.utils.oauth import GoogleProfile, OAuthError


def _email():
    return f"user-{uuid.uuid4().hex[:8]}@example.com"


def test_register_login_and_profile(client):
    email = _email()
    r = client.post('/auth/register', json={'name': 'Tess Tutor', 'email': email, 'password': 'Passw0rd', 'role': 'TUTOR'})
    assert r.status_code == 201
    body = r.json()
    assert body['success'] is True
    assert body['data']['user']['role'] == 'TUTOR'
    assert body['data']['user']['isEmailVerified'] is False

    r2 = client.post('/auth/login', json={'email': email, 'password': 'Passw0rd'})
    assert r2.status_code == 200
    token = r2.json()['data']['token']
    headers = {'Authorization': f'Bearer {token}'}

    p = client.get('/auth/profile', headers=headers)
    assert p.status_code == 200
    assert p.json()['data']['user']['email'] == email

    u = client.put('/auth/profile', json={'name': 'Tess T.'}, headers=headers)
    assert u.status_code == 200
    assert u.json()['data']['user']['name'] == 'Tess T.'


def test_register_defaults_to_student_and_rejects_duplicates(client):
    email = _email()
    r = client.post('/auth/register', json={'name': 'Stu', 'email': email, 'password': 'Passw0rd'})
    assert r.status_code == 201
    assert r.json()['data']['user']['role'] == 'STUDENT'
    dup = client.post('/auth/register', json={'name': 'Stu', 'email': email.upper(), 'password': 'Passw0rd'})
    assert dup.status_code == 409
    assert dup.json() == {'success': False, 'message': 'User already exists with this email'}


def test_register_validation_errors_are_structured(client):
    r = client.post('/auth/register', json={'name': 'X', 'email': 'not-an-email', 'password': 'weak'})
    assert r.status_code == 400
    body = r.json()
    assert body['success'] is False
    assert body['message'] == 'Validation failed'
    fields = {e['field'] for e in body['errors']}
    assert {'name', 'email', 'password'} <= fields


def test_bad_credentials_and_tokens(client):
    r = client.post('/auth/login', json={'email': _email(), 'password': 'whatever'})
    assert r.status_code == 401
    assert r.json()['success'] is False
    assert client.get('/auth/profile').status_code == 401
    bad = client.get('/auth/profile', headers={'Authorization': 'Bearer invalid.token.here'})
    assert bad.status_code == 401
    assert bad.json()['message'] == 'Invalid token'


def test_change_password(client, student):
    headers = student['headers']
    wrong = client.post('/auth/change-password', json={'currentPassword': 'nope', 'newPassword': 'N3wPassword'}, headers=headers)
    assert wrong.status_code == 401
    ok = client.post('/auth/change-password', json={'currentPassword': 'Secret123', 'newPassword': 'N3wPassword'}, headers=headers)
    assert ok.status_code == 200
    login = client.post('/auth/login', json={'email': student['user']['email'], 'password': 'N3wPassword'})
    assert login.status_code == 200


def test_verify_email_flow(client):
    email = _email()
    client.post('/auth/register', json={'name': 'Vera', 'email': email, 'password': 'Passw0rd'})
    with Session(engine) as session:
        token = repositories.UserRepository(session).get_by_email(email).email_verification_token
    assert token
    r = client.get(f'/auth/verify-email/{token}')
    assert r.status_code == 200
    assert r.json()['data']['user']['isEmailVerified'] is True
    again = client.get(f'/auth/verify-email/{token}')
    assert again.status_code == 400


def test_google_login_not_configured(client, monkeypatch):
    monkeypatch.setattr(settings, 'GOOGLE_CLIENT_ID', '')
    r = client.post('/auth/google', json={'code': 'abc'})
    assert r.status_code == 503


def test_google_login_links_and_creates_accounts(client, monkeypatch):
    monkeypatch.setattr(settings, 'GOOGLE_CLIENT_ID', 'cid')
    monkeypatch.setattr(settings, 'GOOGLE_CLIENT_SECRET', 'secret')
    email = _email()
    client.post('/auth/register', json={'name': 'Local', 'email': email, 'password': 'Passw0rd', 'role': 'TUTOR'})

    profile = GoogleProfile(google_id=f'g-{uuid.uuid4().hex}', email=email, name='Local G', avatar='http://img')
    monkeypatch.setattr('quizcraft.main.exchange_code', lambda *_args, **_kwargs: profile)

    linked = client.post('/auth/google', json={'code': 'abc'})
    assert linked.status_code == 200
    user = linked.json()['data']['user']
    assert user['email'] == email
    assert user['role'] == 'TUTOR'
    assert user['provider'] == 'google'
    assert user['isEmailVerified'] is True

    # second login resolves by google id to the same account
    again = client.post('/auth/google', json={'code': 'abc'})
    assert again.json()['data']['user']['id'] == user['id']

    fresh = GoogleProfile(google_id=f'g-{uuid.uuid4().hex}', email=_email(), name='New Person')
    monkeypatch.setattr('quizcraft.main.exchange_code', lambda *_args, **_kwargs: fresh)
    created = client.post('/auth/google', json={'code': 'xyz'})
    assert created.status_code == 200
    new_user = created.json()['data']['user']
    assert new_user['role'] == 'STUDENT'
    assert new_user['id'] != user['id']

    # google-only accounts have no password to log in with
    login = client.post('/auth/login', json={'email': fresh.email, 'password': 'Passw0rd'})
    assert login.status_code == 401


def test_google_login_exchange_failure(client, monkeypatch):
    monkeypatch.setattr(settings, 'GOOGLE_CLIENT_ID', 'cid')
    monkeypatch.setattr(settings, 'GOOGLE_CLIENT_SECRET', 'secret')

    def _boom(*_args, **_kwargs):
        raise OAuthError('Failed to exchange authorization code')

    monkeypatch.setattr('quizcraft.main.exchange_code', _boom)
    r = client.post('/auth/google', json={'code': 'bad'})
    assert r.status_code == 400
    assert r.json()['message'] == 'Failed to exchange authorization code'


def test_profile_name_is_stripped_before_length_check(client, student):
    r = client.put('/auth/profile', json={'name': '  a  '}, headers=student['headers'])
    assert r.status_code == 400
    assert r.json()['errors'][0]['field'] == 'name'
    ok = client.put('/auth/profile', json={'name': '  Stu Dent  '}, headers=student['headers'])
    assert ok.json()['data']['user']['name'] == 'Stu Dent'


def test_verify_email_rejects_expired_token(client):
    email = _email()
    client.post('/auth/register', json={'name': 'Late', 'email': email, 'password': 'Passw0rd'})
    with Session(engine) as session:
        repo = repositories.UserRepository(session)
        user = repo.get_by_email(email)
        user.email_verification_expires = datetime.now(timezone.utc) - timedelta(hours=1)
        token = repo.save(user).email_verification_token
    r = client.get(f'/auth/verify-email/{token}')
    assert r.status_code == 400
    assert r.json()['message'] == 'Verification token has expired'


def test_list_users_paginates_and_searches(client, tutor, student):
    tag = uuid.uuid4().hex[:8]
    for i in range(3):
        client.post('/auth/register', json={'name': f'Dir {tag} {i}', 'email': f'dir-{i}-{tag}@example.com', 'password': 'Passw0rd'})

    r = client.get('/auth/users', params={'search': tag.upper(), 'limit': 2}, headers=tutor['headers'])
    assert r.status_code == 200
    data = r.json()['data']
    assert data['pagination'] == {'page': 1, 'limit': 2, 'total': 3, 'pages': 2}
    assert len(data['users']) == 2
    assert all(tag in u['name'] for u in data['users'])

    by_email = client.get('/auth/users', params={'search': f'dir-0-{tag}'}, headers=tutor['headers']).json()['data']
    assert [u['email'] for u in by_email['users']] == [f'dir-0-{tag}@example.com']

    assert client.get('/auth/users', headers=student['headers']).status_code == 403
    assert client.get('/auth/users').status_code == 401
