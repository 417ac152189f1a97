import uuid

import jwt

from campuseats.services import JWT_SECRET, JWT_ALGORITHM


def _signup(client, **overrides):
    suffix = uuid.uuid4().hex[:8]
    payload = {
        'email': f'user{suffix}@mec.edu',
        'password': 'secret',
        'full_name': 'New Student',
        'phone_number': '9123456789',
        'is_campus_student': True,
        'rfid_number': f'RFID{suffix}',
    }
    payload.update(overrides)
    return client.post('/auth/signup', json=payload)


def test_campus_signup_and_login(client):
    r = _signup(client)
    assert r.status_code == 200, r.text
    user = r.json()['user']
    assert user['role'] == 'STUDENT'
    assert user['rfid_balance'] == 0.0
    assert 'password_hash' not in user

    login = client.post('/auth/login', json={'email': user['email'], 'password': 'secret'})
    assert login.status_code == 200
    token = login.json()['access_token']
    payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    assert payload['user_id'] == user['id']
    assert payload['role'] == 'STUDENT'


def test_campus_signup_rules(client):
    assert _signup(client, email='someone@gmail.com').status_code == 400
    assert _signup(client, rfid_number=None).status_code == 400
    assert _signup(client, rfid_number='123').status_code == 400
    assert _signup(client, phone_number='').status_code == 400


def test_non_campus_signup_requires_college_email(client):
    suffix = uuid.uuid4().hex[:8]
    base = {'email': f'guest{suffix}@gmail.com', 'is_campus_student': False, 'rfid_number': None}
    assert _signup(client, **base).status_code == 400
    r = _signup(client, college_email='guest@othercollege.edu', **base)
    assert r.status_code == 200
    user = r.json()['user']
    assert user['rfid_number'] is None
    assert user['rfid_balance'] is None


def test_duplicate_email_or_rfid_conflicts(client):
    first = _signup(client).json()['user']
    assert _signup(client, email=first['email']).status_code == 409
    assert _signup(client, rfid_number=first['rfid_number']).status_code == 409


def test_bad_credentials_and_tokens(client):
    r = client.post('/auth/login', json={'email': 'admin@mec.edu', 'password': 'wrong'})
    assert r.status_code == 401
    r = client.get('/users/me', headers={'Authorization': 'Bearer invalid.token.here'})
    assert r.status_code == 401
    r = client.get('/users/me')
    assert r.status_code in (401, 403)
    expired = jwt.encode({'user_id': 1, 'exp': 1}, JWT_SECRET, algorithm=JWT_ALGORITHM)
    r = client.get('/users/me', headers={'Authorization': f'Bearer {expired}'})
    assert r.status_code == 401
    assert r.json()['detail'] == 'token expired'


def test_profile_read_and_update(client, make_student, vendor_headers):
    student = make_student()
    me = client.get('/users/me', headers=student['headers']).json()
    assert me['email'] == student['email']

    handle = f'handle_{uuid.uuid4().hex[:6]}'
    r = client.put('/users/me', json={'username': handle, 'full_name': 'Renamed'}, headers=student['headers'])
    assert r.status_code == 200
    assert r.json()['username'] == handle
    assert r.json()['full_name'] == 'Renamed'

    other = make_student()
    taken = client.put('/users/me', json={'username': handle}, headers=other['headers'])
    assert taken.status_code == 400
    assert taken.json()['detail'] == 'Username already taken'

    vendor_me = client.get('/users/me', headers=vendor_headers).json()
    assert vendor_me['vendor']['shop_name'] == 'Campus Canteen'


def test_admin_user_listing(client, admin_headers, make_student):
    student = make_student()
    r = client.get('/users', headers=admin_headers)
    assert r.status_code == 200
    users = r.json()
    assert any(u['email'] == student['email'] for u in users)
    assert all('password_hash' not in u for u in users)
    assert client.get('/users', headers=student['headers']).status_code == 403


def test_health_and_request_id(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    assert 'X-Request-ID' in r.headers
    r = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r.headers['X-Request-ID'] == 'abc123'
