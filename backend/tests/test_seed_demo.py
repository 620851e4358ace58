from sqlalchemy import select
from robotcare.constants.permissions import Role
from robotcare.models.authz import User, Organization
from scripts.seed_demo import seed_demo, validate_matrix, build_role_permission_map
from seeds import demo_data


def test_seed_is_idempotent(session):
    first = seed_demo(session, password='pw')
    session.commit()
    second = seed_demo(session, password='pw')
    session.commit()
    assert second == {'organizations': 0, 'contracts': 0, 'users': 0, 'robots': 0}
    assert first['users'] in (0, len(demo_data.USERS))
    for email, _name, role, _org in demo_data.USERS:
        user = session.execute(select(User).where(User.email == email)).scalar_one()
        assert user.role == Role(role).value
        assert user.verify_password('pw') or first['users'] == 0
    names = {o['name'] for o in demo_data.ORGANIZATIONS}
    assert len(session.execute(select(Organization).where(Organization.name.in_(names))).scalars().all()) == len(names)


def test_permission_matrix_is_consistent():
    assert validate_matrix() == []
    role_map = build_role_permission_map()
    assert set(role_map) == {r.value for r in Role}
    assert 'TKT.CONFIRM' not in role_map['service_admin']
    assert 'TKT.ASSIGN' not in role_map['end_admin']
