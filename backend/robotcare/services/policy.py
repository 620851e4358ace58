from __future__ import annotations
from dataclasses import dataclass
from typing import FrozenSet, List, Set
from flask_jwt_extended import get_jwt, get_jwt_identity
from sqlalchemy import select, or_, false
from robotcare.constants.permissions import Role, Capability, ROLE_PRESETS, capability_of
from robotcare.errors import Forbidden, NotFound
from robotcare.models.authz import ServiceContract

POLICY_NOT_FOUND = 'not_found'
POLICY_FORBIDDEN = 'forbidden'


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, passed explicitly into every workflow operation."""
    user_id: int
    org_id: int
    role: Role

    @property
    def capability(self) -> Capability:
        return capability_of(self.role)

    @property
    def permissions(self) -> FrozenSet[str]:
        return ROLE_PRESETS.get(self.role, frozenset())

    @property
    def is_service(self) -> bool:
        return self.capability == Capability.SERVICE

    @property
    def is_end(self) -> bool:
        return self.capability == Capability.END

    def can(self, *codes: str) -> bool:
        perms = self.permissions
        return all(c in perms for c in codes)

    @classmethod
    def from_user(cls, user) -> 'Actor':
        return cls(user_id=user.id, org_id=user.org_id, role=Role(user.role))


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def current_actor() -> Actor:
    """Build the Actor from verified JWT claims (identity + role + org_id)."""
    claims = get_jwt()
    try:
        role = Role(claims.get('role'))
        return Actor(user_id=int(get_jwt_identity()), org_id=int(claims['org_id']), role=role)
    except (KeyError, TypeError, ValueError):
        raise Forbidden('Token lacks a valid role/organization')


def require(actor: Actor, code: str, message: str = 'Missing permission'):
    if not actor.can(code):
        raise Forbidden(message, meta={'permission': code, 'role': actor.role.value})


def contracted_customer_ids(session, provider_org_id: int) -> List[int]:
    rows = session.execute(
        select(ServiceContract.end_customer_id).where(
            ServiceContract.service_provider_id == provider_org_id,
            ServiceContract.status == ServiceContract.STATUS_ACTIVE,
        )
    ).scalars().all()
    return sorted(set(rows))


def has_active_contract(session, provider_org_id, customer_org_id) -> bool:
    if provider_org_id is None or customer_org_id is None:
        return False
    return session.execute(
        select(ServiceContract.id).where(
            ServiceContract.service_provider_id == provider_org_id,
            ServiceContract.end_customer_id == customer_org_id,
            ServiceContract.status == ServiceContract.STATUS_ACTIVE,
        )
    ).first() is not None


def can_view_ticket(session, actor: Actor, ticket) -> bool:
    """Visible when the actor's org is the ticket's customer or provider, when a
    service actor's org holds an active contract with the customer, or when the
    actor is the assignee."""
    if ticket.assigned_to is not None and ticket.assigned_to == actor.user_id:
        return True
    if actor.org_id == ticket.customer_id:
        return True
    if actor.is_service:
        if actor.org_id == ticket.service_provider_id:
            return True
        return has_active_contract(session, actor.org_id, ticket.customer_id)
    return False


def scope_ticket_query(session, query, ticket_model, actor: Actor):
    """Restrict a Ticket query to what ``actor`` may see (mirror of can_view_ticket)."""
    clauses = [ticket_model.customer_id == actor.org_id, ticket_model.assigned_to == actor.user_id]
    if actor.is_service:
        clauses.append(ticket_model.service_provider_id == actor.org_id)
        customer_ids = contracted_customer_ids(session, actor.org_id)
        if customer_ids:
            clauses.append(ticket_model.customer_id.in_(customer_ids))
    return query.filter(or_(false(), *clauses))


def deny_invisible(ticket_id, policy: str = POLICY_NOT_FOUND):
    """Raise the configured error for a ticket outside the actor's visible scope."""
    if policy == POLICY_FORBIDDEN:
        raise Forbidden('No access to this ticket')
    raise NotFound('Ticket not found', meta={'ticket_id': ticket_id})


def claims_for(user) -> dict:
    """Additional JWT claims for ``user``; the route seam rebuilds an Actor from them."""
    role = Role(user.role)
    return {
        'role': role.value,
        'org_id': user.org_id,
        'capability': capability_of(role).value,
        'perms': sorted(ROLE_PRESETS.get(role, frozenset())),
    }
