#!/usr/bin/env python
"""Idempotent seed script for the demo tenancy (orgs, contract, users, robots).

Usage:
    python backend/scripts/seed_demo.py               # seed normally
    python backend/scripts/seed_demo.py --show-users  # print users with role & permission counts
    python backend/scripts/seed_demo.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_demo.py --export-json # print role -> permissions JSON with checksum
    python backend/scripts/seed_demo.py --validate    # check the permission matrix; exits 2 on problems
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json, hashlib
from sqlalchemy import select, text

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from robotcare import create_app, get_db  # type: ignore
from robotcare.constants.permissions import Role, ROLE_PRESETS, ALL_PERMISSION_CODES, permissions_for
from robotcare.models.authz import Base, Organization, User, ServiceContract
from robotcare.models.robot import Robot
from seeds import demo_data


def ensure_organizations(session):
    by_key = {}
    created = 0
    for spec in demo_data.ORGANIZATIONS:
        org = session.execute(select(Organization).where(Organization.name == spec['name'])).scalar_one_or_none()
        if not org:
            org = Organization(name=spec['name'], type=spec['type'], contact_email=spec['contact_email'])
            session.add(org)
            created += 1
        by_key[spec['key']] = org
    session.flush()
    return by_key, created


def ensure_contracts(session, orgs):
    created = 0
    for provider_key, customer_key in demo_data.CONTRACTS:
        provider, customer = orgs[provider_key], orgs[customer_key]
        exists = session.execute(select(ServiceContract).where(
            ServiceContract.service_provider_id == provider.id,
            ServiceContract.end_customer_id == customer.id,
        )).scalar_one_or_none()
        if not exists:
            session.add(ServiceContract(service_provider_id=provider.id, end_customer_id=customer.id))
            created += 1
    return created


def ensure_users(session, orgs, password: str):
    created = 0
    for email, name, role, org_key in demo_data.USERS:
        if session.execute(select(User).where(User.email == email)).scalar_one_or_none():
            continue
        user = User(org_id=orgs[org_key].id, role=Role(role).value, display_name=name, email=email, password_hash='')
        user.set_password(password)
        session.add(user)
        created += 1
    return created


def ensure_robots(session, orgs):
    created = 0
    for sn, brand, model, owner_key, provider_key in demo_data.ROBOTS:
        if session.execute(select(Robot).where(Robot.sn == sn)).scalar_one_or_none():
            continue
        session.add(Robot(sn=sn, brand=brand, model=model, org_id=orgs[owner_key].id,
                          service_provider_id=orgs[provider_key].id))
        created += 1
    return created


def seed_demo(session, password: str = 'ChangeMe123!'):
    """Create whatever part of the demo tenancy is missing; returns created counts."""
    orgs, created_orgs = ensure_organizations(session)
    counts = {
        'organizations': created_orgs,
        'contracts': ensure_contracts(session, orgs),
        'users': ensure_users(session, orgs, password),
        'robots': ensure_robots(session, orgs),
    }
    session.flush()
    return counts


def build_role_permission_map():
    return {role.value: permissions_for(role) for role in Role}


def validate_matrix():
    problems = []
    known = set(ALL_PERMISSION_CODES)
    for role, codes in ROLE_PRESETS.items():
        for code in codes:
            if code not in known:
                problems.append(f"Role '{role.value}' references unknown permission code: {code}")
    for role in Role:
        if role not in ROLE_PRESETS:
            problems.append(f"Role '{role.value}' has no permission preset")
    return problems


def print_user_summary(session):
    rows = session.execute(select(User).order_by(User.org_id, User.email)).scalars().all()
    if not rows:
        print("[INFO] No users present.")
        return
    w = max(len(u.email) for u in rows)
    print(f"{'Email'.ljust(w)} | Role             | Perms")
    print('-' * (w + 32))
    for u in rows:
        print(f"{u.email.ljust(w)} | {u.role.ljust(16)} | {len(permissions_for(u.role))}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed RobotCare demo tenancy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_demo.py\n  dry run: seed_demo.py --dry-run\n  show users: seed_demo.py --show-users\n""")
    )
    p.add_argument('--show-users', action='store_true', help='Print users after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export role->permissions JSON (to FILE or stdout if omitted)')
    p.add_argument('--validate', action='store_true', help='Validate the role permission matrix; exits non-zero on problems')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if args.validate:
        problems = validate_matrix()
        if problems:
            print('\n[VALIDATION] FAIL:')
            for p in problems:
                print(' -', p)
            sys.exit(2)
        print('[VALIDATION] OK: role permission matrix is consistent.')

    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM organizations LIMIT 1'))
        except Exception:
            # Auto-create schema for bootstrap; in real env prefer alembic upgrade
            session.rollback()
            import robotcare.models.ticket, robotcare.models.timeline, robotcare.models.notification  # noqa: F401
            Base.metadata.create_all(session.get_bind())
        try:
            counts = seed_demo(session, password=os.getenv('SEED_PASSWORD', 'ChangeMe123!'))
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) would create: {counts}")
            else:
                session.commit()
                print(f"[DONE] created: {counts}")
            if args.show_users:
                print_user_summary(session)
            if args.export_json is not None:
                role_map = build_role_permission_map()
                canonical = json.dumps(role_map, sort_keys=True, separators=(',', ':'))
                payload = {
                    'roles': role_map,
                    'meta': {
                        'roles_checksum_sha256': hashlib.sha256(canonical.encode('utf-8')).hexdigest(),
                        'distinct_permissions': len({p for plist in role_map.values() for p in plist}),
                    },
                }
                if args.export_json == '-':
                    print(json.dumps(payload, indent=2, sort_keys=True))
                else:
                    with open(args.export_json, 'w', encoding='utf-8') as f:
                        json.dump(payload, f, indent=2, sort_keys=True)
                    print(f"[INFO] Exported JSON to {args.export_json}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
