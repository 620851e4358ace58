from robotcare.errors import WorkflowError, Forbidden, NotFound, ValidationError, Conflict, AlreadyCompleted, AlreadyConfirmed
from tests.test_utils_seed import seed_tenancy
from tests.test_lifecycle_helpers import jwt_headers, assert_error


def test_error_kinds_and_status_codes():
    cases = [
        (Forbidden, 403, 'forbidden'),
        (NotFound, 404, 'not_found'),
        (ValidationError, 400, 'validation_error'),
        (Conflict, 409, 'conflict'),
        (AlreadyCompleted, 409, 'already_completed'),
        (AlreadyConfirmed, 409, 'already_confirmed'),
    ]
    for cls, status, kind in cases:
        err = cls('boom', meta={'x': 1})
        assert isinstance(err, WorkflowError)
        assert err.to_dict() == {'status': status, 'title': cls.title, 'detail': 'boom', 'kind': kind, 'meta': {'x': 1}}


def test_meta_omitted_when_empty():
    assert 'meta' not in NotFound('gone').to_dict()
    assert NotFound().detail == 'Not Found'


def test_http_error_shape(client):
    resp = client.get('/no/such/route')
    body = assert_error(resp, 404, 'http_error')
    assert body['error']['title'] == 'Not Found'


def test_permission_error_carries_required_codes(app_instance, client):
    t = seed_tenancy()
    with app_instance.app_context():
        headers = jwt_headers(t.end_engineer)
    body = assert_error(client.post('/tickets/notifications/dispatch', json={}, headers=headers), 403, 'forbidden')
    assert body['error']['meta']['required'] == ['NOTIFY.DISPATCH']


def test_non_object_body_rejected(app_instance, client):
    t = seed_tenancy()
    with app_instance.app_context():
        headers = jwt_headers(t.end_admin)
    assert_error(client.post('/tickets', json=[1, 2], headers=headers), 400, 'validation_error')


def test_unhandled_exception_becomes_internal_error(app_instance, client, monkeypatch):
    import robotcare.routes.team as team_routes

    def explode(*args, **kwargs):
        raise RuntimeError('db on fire')

    monkeypatch.setattr(team_routes, 'list_engineers', explode)
    t = seed_tenancy()
    with app_instance.app_context():
        headers = jwt_headers(t.service_admin)
    body = assert_error(client.get('/team/engineers', headers=headers), 500, 'internal_error')
    assert 'db on fire' not in body['error']['detail']
