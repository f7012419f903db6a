import os, sys, pytest
# Ensure backend directory is on path so 'ems', 'seeds' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from ems import create_app, get_db
from ems.models.base import Base
# Import all model modules to ensure tables are registered before create_all
import ems.models.audit  # noqa: F401
import ems.models.config_document  # noqa: F401
import ems.models.directory  # noqa: F401
import ems.models.inventory_part  # noqa: F401
import ems.models.report  # noqa: F401
from ems.models.config_document import ConfigDocument
from tests.test_utils_seed import seed_directory


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret',
        'TESTING': True,
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
        seed_directory()
    yield app


@pytest.fixture(autouse=True)
def fresh_config(app_instance):
    """Every test starts from the seed config (written lazily on first load)."""
    with app_instance.app_context():
        session = get_db()
        session.query(ConfigDocument).delete()
        session.commit()
    yield


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
