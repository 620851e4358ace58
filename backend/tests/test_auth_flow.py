from robotcare.constants.permissions import permissions_for, Role
from robotcare.models.authz import User
from tests.test_utils_seed import seed_tenancy, ensure_user, unique
from tests.test_lifecycle_helpers import assert_error


def _login(client, email, password='pw'):
    return client.post('/iam/auth/login', json={'email': email, 'password': password})


def test_login_and_me(client, session):
    t = seed_tenancy()
    resp = _login(client, t.engineer.email)
    assert resp.status_code == 200
    token = resp.get_json()['access_token']
    me = client.get('/iam/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    body = me.get_json()
    assert body['id'] == t.engineer.id
    assert body['org_id'] == t.provider.id
    assert body['role'] == 'service_engineer'
    assert body['capability'] == 'service'
    assert body['perms'] == permissions_for(Role.SERVICE_ENGINEER)
    assert body['last_login_at']


def test_token_drives_ticket_permissions(client):
    t = seed_tenancy()
    token = _login(client, t.end_admin.email).get_json()['access_token']
    resp = client.post('/tickets', json={'robot_id': t.robot.id, 'title': 'Servo alarm'},
                       headers={'Authorization': f'Bearer {token}'})
    assert resp.status_code == 201
    assert resp.get_json()['created_by'] == t.end_admin.id


def test_login_failures(client):
    t = seed_tenancy()
    assert_error(_login(client, t.engineer.email, 'wrong'), 401, 'http_error')
    assert_error(client.post('/iam/auth/login', json={'email': t.engineer.email}), 400, 'http_error')
    assert_error(_login(client, f'nobody-{unique()}@example.com'), 401, 'http_error')


def test_inactive_accounts_cannot_login(client):
    t = seed_tenancy()
    disabled = ensure_user(f'off-{t.tag}@provider.example', Role.SERVICE_ENGINEER, t.provider,
                           status=User.STATUS_DISABLED)
    pending = ensure_user(f'new-{t.tag}@provider.example', Role.SERVICE_ENGINEER, t.provider,
                          status=User.STATUS_PENDING)
    assert_error(_login(client, disabled.email), 403, 'http_error')
    assert_error(_login(client, pending.email), 403, 'http_error')
