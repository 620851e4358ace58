import re
from robotcare.models.robot import Robot
from tests.test_utils_seed import seed_tenancy, create_ticket, ensure_robot, unique, make_engine, actor_for
from tests.test_lifecycle_helpers import jwt_headers, assert_error


def _headers(app, user):
    with app.app_context():
        return jwt_headers(user)


def test_create_ticket_defaults_and_robot_status(app_instance, client, session):
    t = seed_tenancy()
    headers = _headers(app_instance, t.end_admin)
    resp = client.post('/tickets', json={'robot_id': t.robot.id, 'title': 'Arm overheats'}, headers=headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert re.fullmatch(r'RB\d{5}', body['ticket_number'])
    assert body['status'] == 'open'
    assert body['priority'] == 'medium'
    assert body['customer_id'] == t.customer.id
    assert body['service_provider_id'] == t.provider.id
    assert body['assigned_to'] is None
    session.expire_all()
    assert session.get(Robot, t.robot.id).status == Robot.STATUS_FAULT


def test_ticket_numbers_increase(app_instance):
    t = seed_tenancy()
    first = create_ticket(app_instance, t)
    second = create_ticket(app_instance, t)
    assert int(second.ticket_number[2:]) == int(first.ticket_number[2:]) + 1


def test_create_ticket_validation(app_instance, client):
    t = seed_tenancy()
    other = seed_tenancy()
    headers = _headers(app_instance, t.end_admin)
    assert_error(client.post('/tickets', json={'title': 'x'}, headers=headers), 400, 'validation_error')
    assert_error(client.post('/tickets', json={'robot_id': t.robot.id, 'title': ''}, headers=headers),
                 400, 'validation_error')
    assert_error(client.post('/tickets', json={'robot_id': t.robot.id, 'title': 'x', 'priority': 'asap'},
                             headers=headers), 400, 'validation_error')
    assert_error(client.post('/tickets', json={'robot_id': 987654, 'title': 'x'}, headers=headers), 404, 'not_found')
    assert_error(client.post('/tickets', json={'robot_id': other.robot.id, 'title': 'x'}, headers=headers),
                 403, 'forbidden')


def test_service_side_needs_contract_to_create(app_instance, client):
    t = seed_tenancy()
    other = seed_tenancy()
    headers = _headers(app_instance, t.service_admin)
    resp = client.post('/tickets', json={'robot_id': t.robot.id, 'title': 'Preventive check', 'priority': 'low'},
                       headers=headers)
    assert resp.status_code == 201
    assert_error(client.post('/tickets', json={'robot_id': other.robot.id, 'title': 'x'}, headers=headers),
                 403, 'forbidden')


def test_list_scope_filters_and_search(app_instance, client):
    t = seed_tenancy()
    other = seed_tenancy()
    mine = create_ticket(app_instance, t, title=f'Gripper {t.tag}', priority='urgent')
    create_ticket(app_instance, t, title='Weld seam offset')
    foreign = create_ticket(app_instance, other)

    headers = _headers(app_instance, t.end_engineer)
    body = client.get('/tickets?limit=200', headers=headers).get_json()
    ids = {row['id'] for row in body['data']}
    assert mine.id in ids
    assert foreign.id not in ids
    assert body['pagination']['total'] == 2

    body = client.get('/tickets?priority=urgent', headers=headers).get_json()
    assert [row['id'] for row in body['data']] == [mine.id]
    body = client.get('/tickets', query_string={'search': f'GRIPPER {t.tag}'.upper()}, headers=headers).get_json()
    assert [row['id'] for row in body['data']] == [mine.id]
    body = client.get('/tickets?assigned_to=none', headers=headers).get_json()
    assert body['pagination']['total'] == 2
    assert_error(client.get('/tickets?status=bogus', headers=headers), 400, 'validation_error')
    assert_error(client.get('/tickets?sort=-nope', headers=headers), 400, 'validation_error')


def test_list_default_sort_newest_first(app_instance, client):
    t = seed_tenancy()
    a = create_ticket(app_instance, t, title='first')
    b = create_ticket(app_instance, t, title='second')
    headers = _headers(app_instance, t.end_admin)
    ids = [row['id'] for row in client.get('/tickets', headers=headers).get_json()['data']]
    assert ids.index(b.id) < ids.index(a.id)
    ids = [row['id'] for row in client.get('/tickets?sort=ticket_number', headers=headers).get_json()['data']]
    assert ids.index(a.id) < ids.index(b.id)


def test_provider_sees_contracted_customer_tickets(app_instance, client):
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    headers = _headers(app_instance, t.engineer)
    ids = {row['id'] for row in client.get('/tickets?limit=200', headers=headers).get_json()['data']}
    assert ticket.id in ids
    assert client.get(f'/tickets/{ticket.id}', headers=headers).status_code == 200


def test_detail_etag_and_head(app_instance, client):
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    headers = _headers(app_instance, t.end_admin)
    resp = client.get(f'/tickets/{ticket.id}', headers=headers)
    assert resp.status_code == 200
    etag = resp.headers['ETag']
    assert resp.headers.get('Last-Modified')
    body = resp.get_json()
    assert body['ticket_number'] == ticket.ticket_number
    assert body['stages'] == [] and body['comments'] == [] and body['rating'] is None
    assert body['gantt'] == {'spans': []}

    again = client.get(f'/tickets/{ticket.id}', headers={**headers, 'If-None-Match': etag})
    assert again.status_code == 304
    head = client.head(f'/tickets/{ticket.id}', headers=headers)
    assert head.status_code == 200
    assert head.headers['ETag'] == etag
    assert head.data == b''


def test_detail_hidden_from_other_tenants(app_instance, client):
    t = seed_tenancy()
    other = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    for user in (other.end_admin, other.service_admin):
        assert_error(client.get(f'/tickets/{ticket.id}', headers=_headers(app_instance, user)), 404, 'not_found')
    assert_error(client.get('/tickets/99999999', headers=_headers(app_instance, t.end_admin)), 404, 'not_found')


def test_stages_endpoint_returns_gantt_window(app_instance, client):
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    engine = make_engine(app_instance)
    engine.create_or_update_stage(actor_for(t.engineer), ticket.id, 'abnormal_analysis',
                                  {'content': 'Encoder fault', 'expected_date': '2099-12-01'})
    engine.create_or_update_stage(actor_for(t.engineer), ticket.id, 'abnormal_description',
                                  {'content': 'Stops mid-cycle'})
    body = client.get(f'/tickets/{ticket.id}/stages', headers=_headers(app_instance, t.end_admin)).get_json()
    assert [s['stage_type'] for s in body['data']] == ['abnormal_description', 'abnormal_analysis']
    spans = body['gantt']['spans']
    assert [s['stage_type'] for s in spans] == ['abnormal_analysis']
    assert spans[0]['end'] == '2099-12-01'
    assert 'today' in body['gantt']['window']
    assert len(body['gantt']['window']['positions']) == 1


def test_timeline_newest_first(app_instance, client):
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    make_engine(app_instance).add_comment(actor_for(t.end_admin), ticket.id, 'ping')
    body = client.get(f'/tickets/{ticket.id}/timeline', headers=_headers(app_instance, t.end_admin)).get_json()
    types = [e['event_type'] for e in body['data']]
    assert types[0] == 'comment_added'
    assert 'ticket_created' in types


def test_unauthenticated_requests_rejected(client):
    assert client.get('/tickets').status_code == 401


def test_robot_status_override(app_instance, session):
    t = seed_tenancy()
    robot = ensure_robot(f'SN-{unique()}', t.customer, t.provider)
    ticket = make_engine(app_instance).create_ticket(
        actor_for(t.end_admin), robot.id, 'Scheduled service', robot_status=Robot.STATUS_MAINTENANCE)
    session.expire_all()
    assert session.get(Robot, robot.id).status == Robot.STATUS_MAINTENANCE
    assert ticket.robot_id == robot.id
