"""Reusable test helpers for the ticket workflow over HTTP.

Patterns unified:
 - Auth header creation using the same claims login issues (bypassing /login).
 - The full assign -> summary -> complete -> confirm sequence with assertions.
"""
from __future__ import annotations
from typing import Dict
from flask_jwt_extended import create_access_token
from robotcare.services.policy import claims_for

# ---------- Generic Auth Helpers ---------- #

def jwt_headers(user) -> Dict[str, str]:
    token = create_access_token(identity=str(user.id), additional_claims=claims_for(user))
    return {'Authorization': f'Bearer {token}'}

# ---------- Assertion Helpers ---------- #

def post_ok(client, url: str, headers: Dict[str, str], payload: dict = None, expected_status: int = 200):
    resp = client.post(url, json=payload or {}, headers=headers)
    assert resp.status_code == expected_status, resp.get_json()
    return resp.get_json()


def assert_error(resp, status: int, kind: str = None):
    assert resp.status_code == status, resp.get_json()
    body = resp.get_json()
    assert body['error']['status'] == status
    if kind:
        assert body['error']['kind'] == kind
    return body


def exercise_ticket_workflow(client, tenancy, summary: str = 'Replaced motor', score: int = 5, comment: str = 'Great'):
    """Drive one ticket through the whole workflow; returns the final detail body."""
    customer = jwt_headers(tenancy.end_admin)
    provider = jwt_headers(tenancy.service_admin)

    ticket = post_ok(client, '/tickets', customer,
                     {'robot_id': tenancy.robot.id, 'title': 'Gripper jams', 'priority': 'high'}, 201)
    assert ticket['status'] == 'open'
    tid = ticket['id']

    body = post_ok(client, f'/tickets/{tid}/assign', provider, {'engineer_id': tenancy.engineer.id})
    assert body['status'] == 'in_progress'
    assert body['assigned_to'] == tenancy.engineer.id

    stage = post_ok(client, f'/tickets/{tid}/stages', provider, {'stage_type': 'summary', 'content': summary})
    assert stage['status'] == 'in_progress'

    stage = post_ok(client, f'/tickets/{tid}/stages/summary/complete', provider, {'summary_content': summary})
    assert stage['status'] == 'completed'
    assert stage['completed_at']

    rating = post_ok(client, f'/tickets/{tid}/confirm', customer, {'score': score, 'comment': comment}, 201)
    assert rating['score'] == score

    detail = client.get(f'/tickets/{tid}', headers=customer)
    assert detail.status_code == 200
    return detail.get_json()
