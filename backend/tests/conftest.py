import os, sys, pytest
# Ensure backend directory is on path so 'robotcare' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from robotcare import create_app, get_db
from robotcare.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import robotcare.models.robot  # noqa: F401
import robotcare.models.ticket  # noqa: F401
import robotcare.models.timeline  # noqa: F401
import robotcare.models.notification  # noqa: F401


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
        'NOTIFY_WEBHOOK_URL': None,
        'WORKFLOW_STRICT_STAGE_ORDER': False,
        'CROSS_TENANT_POLICY': 'not_found',
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def session(app_instance):
    return get_db()
