import pytest

from app import create_app
from config import Settings
from definitions import User, ROLE_ADMIN
from workflow import Identity

MEMBER = Identity('3f1c9a52-0000-4000-8000-000000000001', 'reader@example.com')
ADMIN = Identity('3f1c9a52-0000-4000-8000-000000000002', 'librarian@example.com')


def headers_for(identity):
    return {'X-User-Id': identity.id, 'X-User-Email': identity.email}


@pytest.fixture
def app(tmp_path, request):
    # Each test gets its own database file
    db_file = tmp_path / f"test_{request.node.name}.db"
    settings = Settings(database_url=f"sqlite:///{db_file}", scheduler_enabled=False)
    app = create_app(settings, start_jobs=False)
    app.config['TESTING'] = True
    yield app
    app.config['ENGINE'].dispose()


@pytest.fixture
def db(app):
    session = app.config['SESSION_FACTORY']()
    yield session
    session.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin(db):
    user = User(id=ADMIN.id, email=ADMIN.email, name='Librarian', role=ROLE_ADMIN)
    db.add(user)
    db.commit()
    return ADMIN


@pytest.fixture
def member_headers():
    return headers_for(MEMBER)


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)
