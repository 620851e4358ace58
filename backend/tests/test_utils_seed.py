"""Test seeding utilities to reduce duplication.

Every helper is idempotent on its natural key (org name, email, robot sn) so
tests sharing the in-memory database can call them freely. ``seed_tenancy``
builds a fresh, isolated provider/customer pair per call.
"""
from types import SimpleNamespace
from typing import Optional
import uuid
from robotcare import get_db
from robotcare.constants.permissions import Role
from robotcare.models.authz import Organization, User, ServiceContract
from robotcare.models.robot import Robot
from robotcare.services.policy import Actor


def unique(prefix: str = '') -> str:
    return f"{prefix}{uuid.uuid4().hex[:8]}"


def ensure_org(name: str, type: str = Organization.TYPE_END_CUSTOMER, contact_email: Optional[str] = None) -> Organization:
    session = get_db()
    org = session.query(Organization).filter_by(name=name).one_or_none()
    if not org:
        org = Organization(name=name, type=type, contact_email=contact_email)
        session.add(org); session.commit(); session.refresh(org)
    return org


def ensure_user(email: str, role: Role, org: Organization, display_name: Optional[str] = None,
                password: str = 'pw', status: str = User.STATUS_ACTIVE) -> User:
    session = get_db()
    u = session.query(User).filter_by(email=email).one_or_none()
    if not u:
        u = User(org_id=org.id, role=Role(role).value, display_name=display_name or email.split('@')[0],
                 email=email, password_hash='', status=status)
        u.set_password(password)
        session.add(u); session.commit(); session.refresh(u)
    return u


def ensure_contract(provider: Organization, customer: Organization, status: str = ServiceContract.STATUS_ACTIVE) -> ServiceContract:
    session = get_db()
    c = session.query(ServiceContract).filter_by(service_provider_id=provider.id, end_customer_id=customer.id).one_or_none()
    if not c:
        c = ServiceContract(service_provider_id=provider.id, end_customer_id=customer.id, status=status)
        session.add(c); session.commit()
    return c


def ensure_robot(sn: str, owner: Organization, provider: Optional[Organization] = None,
                 status: str = Robot.STATUS_ACTIVE) -> Robot:
    session = get_db()
    r = session.query(Robot).filter_by(sn=sn).one_or_none()
    if not r:
        r = Robot(sn=sn, brand='Fanuc', model='M-20iD', org_id=owner.id,
                  service_provider_id=provider.id if provider else None, status=status)
        session.add(r); session.commit(); session.refresh(r)
    return r


def seed_tenancy(tag: Optional[str] = None) -> SimpleNamespace:
    """Provider + customer under an active contract, one user per role, one robot."""
    tag = tag or unique()
    provider = ensure_org(f'Provider {tag}', Organization.TYPE_SERVICE_PROVIDER, f'ops-{tag}@provider.example')
    customer = ensure_org(f'Customer {tag}', Organization.TYPE_END_CUSTOMER, f'maint-{tag}@customer.example')
    ensure_contract(provider, customer)
    return SimpleNamespace(
        tag=tag,
        provider=provider,
        customer=customer,
        service_admin=ensure_user(f'sadmin-{tag}@provider.example', Role.SERVICE_ADMIN, provider),
        engineer=ensure_user(f'eng-{tag}@provider.example', Role.SERVICE_ENGINEER, provider, display_name=f'Eng A {tag}'),
        engineer2=ensure_user(f'eng2-{tag}@provider.example', Role.SERVICE_ENGINEER, provider, display_name=f'Eng B {tag}'),
        end_admin=ensure_user(f'eadmin-{tag}@customer.example', Role.END_ADMIN, customer),
        end_engineer=ensure_user(f'eeng-{tag}@customer.example', Role.END_ENGINEER, customer),
        robot=ensure_robot(f'SN-{tag}', customer, provider),
    )


def actor_for(user: User) -> Actor:
    return Actor.from_user(user)


def make_engine(app, **overrides):
    from robotcare.services.workflow import TicketWorkflowEngine
    engine = TicketWorkflowEngine.from_app(app, get_db())
    for key, value in overrides.items():
        setattr(engine, key, value)
    return engine


def create_ticket(app, tenancy: SimpleNamespace, title: str = 'Arm stalls at joint 3', **kwargs):
    """Open a ticket through the engine as the customer admin. Returns the Ticket."""
    return make_engine(app).create_ticket(actor_for(tenancy.end_admin), tenancy.robot.id, title, **kwargs)


__all__ = [
    'unique', 'ensure_org', 'ensure_user', 'ensure_contract', 'ensure_robot', 'seed_tenancy',
    'actor_for', 'make_engine', 'create_ticket',
]
