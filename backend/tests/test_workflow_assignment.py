import pytest
from robotcare.errors import Forbidden, NotFound, ValidationError
from robotcare.models.notification import Notification
from robotcare.models.timeline import TimelineEvent
from tests.test_utils_seed import seed_tenancy, actor_for, make_engine, create_ticket, ensure_user
from robotcare.constants.permissions import Role


def test_assign_moves_open_ticket_to_in_progress(app_instance, session):
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    assert ticket.status == 'open' and ticket.assigned_to is None
    updated = make_engine(app_instance).assign_engineer(actor_for(t.service_admin), ticket.id, t.engineer.id)
    assert updated.status == 'in_progress'
    assert updated.assigned_to == t.engineer.id
    events = [e.event_type for e in session.query(TimelineEvent).filter_by(ticket_id=ticket.id)]
    assert 'assigned' in events and 'status_changed' in events
    note = session.query(Notification).filter_by(ticket_id=ticket.id, type=Notification.TYPE_ASSIGNED).one()
    assert note.recipients == [t.engineer.email]


def test_reassignment_keeps_status(app_instance):
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    engine = make_engine(app_instance)
    engine.assign_engineer(actor_for(t.service_admin), ticket.id, t.engineer.id)
    version = ticket.version
    updated = engine.assign_engineer(actor_for(t.engineer), ticket.id, t.engineer2.id)
    assert updated.status == 'in_progress'
    assert updated.assigned_to == t.engineer2.id
    assert updated.version > version


def test_end_roles_cannot_assign(app_instance):
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    with pytest.raises(Forbidden):
        make_engine(app_instance).assign_engineer(actor_for(t.end_admin), ticket.id, t.engineer.id)


def test_unknown_or_foreign_engineer_not_found(app_instance):
    t = seed_tenancy()
    other = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    engine = make_engine(app_instance)
    actor = actor_for(t.service_admin)
    with pytest.raises(NotFound):
        engine.assign_engineer(actor, ticket.id, 999999)
    with pytest.raises(NotFound):
        engine.assign_engineer(actor, ticket.id, other.engineer.id)
    with pytest.raises(NotFound):
        engine.assign_engineer(actor, ticket.id, t.end_engineer.id)
    pending = ensure_user(f'pending-{t.tag}@provider.example', Role.SERVICE_ENGINEER, t.provider, status='pending')
    with pytest.raises(NotFound):
        engine.assign_engineer(actor, ticket.id, pending.id)
    with pytest.raises(ValidationError):
        engine.assign_engineer(actor, ticket.id, 'abc')
    assert ticket.status == 'open'


def test_assign_missing_ticket(app_instance):
    t = seed_tenancy()
    with pytest.raises(NotFound):
        make_engine(app_instance).assign_engineer(actor_for(t.service_admin), 424242, t.engineer.id)


def test_assignee_sees_ticket_of_uncontracted_customer(app_instance):
    from robotcare.models.authz import ServiceContract
    from robotcare import get_db
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    engine = make_engine(app_instance)
    engine.assign_engineer(actor_for(t.service_admin), ticket.id, t.engineer.id)
    session = get_db()
    contract = session.query(ServiceContract).filter_by(service_provider_id=t.provider.id, end_customer_id=t.customer.id).one()
    contract.status = ServiceContract.STATUS_TERMINATED
    session.commit()
    # provider org still matches the robot's provider; assignee path also holds
    assert engine.get_ticket(actor_for(t.engineer), ticket.id).id == ticket.id


def test_assignable_engineers_match_team_listing(app_instance, session):
    from robotcare.services.team import list_engineers
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    engine = make_engine(app_instance)
    admin = actor_for(t.service_admin)
    with pytest.raises(NotFound):
        engine.assign_engineer(admin, ticket.id, t.service_admin.id)
    listed = {row['id'] for row in list_engineers(session, admin, include_stats=False)}
    assert t.service_admin.id not in listed
    for engineer_id in sorted(listed):
        assert engine.assign_engineer(admin, ticket.id, engineer_id).assigned_to == engineer_id
