"""Central enum-like definitions for roles, capabilities and permission codes.
Extend cautiously; never rename codes silently since tokens issued earlier carry them.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, FrozenSet, List


class Role(str, Enum):
    SERVICE_ADMIN = 'service_admin'
    SERVICE_ENGINEER = 'service_engineer'
    END_ADMIN = 'end_admin'
    END_ENGINEER = 'end_engineer'


class Capability(str, Enum):
    SERVICE = 'service'
    END = 'end'


ROLE_CAPABILITIES: Dict[Role, Capability] = {
    Role.SERVICE_ADMIN: Capability.SERVICE,
    Role.SERVICE_ENGINEER: Capability.SERVICE,
    Role.END_ADMIN: Capability.END,
    Role.END_ENGINEER: Capability.END,
}

ENGINEER_ROLES = (Role.SERVICE_ENGINEER, Role.END_ENGINEER)
ADMIN_ROLES = (Role.SERVICE_ADMIN, Role.END_ADMIN)

SERVICES = ['TKT', 'TEAM', 'NOTIFY']

SERVICE_ACTIONS = {
    'TKT': ['READ', 'CREATE', 'COMMENT', 'STAGE.WRITE', 'ASSIGN', 'SUMMARY.COMPLETE', 'CONFIRM'],
    'TEAM': ['READ'],
    'NOTIFY': ['DISPATCH'],
}

# Permission codes referenced by the workflow engine and route decorators
TKT_READ = 'TKT.READ'
TKT_CREATE = 'TKT.CREATE'
TKT_COMMENT = 'TKT.COMMENT'
TKT_STAGE_WRITE = 'TKT.STAGE.WRITE'
TKT_ASSIGN = 'TKT.ASSIGN'
TKT_SUMMARY_COMPLETE = 'TKT.SUMMARY.COMPLETE'
TKT_CONFIRM = 'TKT.CONFIRM'
TEAM_READ = 'TEAM.READ'
NOTIFY_DISPATCH = 'NOTIFY.DISPATCH'


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

_COMMON = [TKT_READ, TKT_CREATE, TKT_COMMENT, TEAM_READ]
_SERVICE_SIDE = [TKT_STAGE_WRITE, TKT_ASSIGN, TKT_SUMMARY_COMPLETE]
_END_SIDE = [TKT_CONFIRM]

# Single source of truth for the permission matrix: role -> permitted operations.
ROLE_PRESETS: Dict[Role, FrozenSet[str]] = {
    Role.SERVICE_ADMIN: frozenset(_COMMON + _SERVICE_SIDE + [NOTIFY_DISPATCH]),
    Role.SERVICE_ENGINEER: frozenset(_COMMON + _SERVICE_SIDE),
    Role.END_ADMIN: frozenset(_COMMON + _END_SIDE + [NOTIFY_DISPATCH]),
    Role.END_ENGINEER: frozenset(_COMMON + _END_SIDE),
}


def permissions_for(role: Role) -> List[str]:
    return sorted(ROLE_PRESETS.get(Role(role), frozenset()))


def capability_of(role: Role) -> Capability:
    return ROLE_CAPABILITIES[Role(role)]
