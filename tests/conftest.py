import pytest
from arena.app import create_app, db
from arena.services.bootstrap import ensure_system_admin
from arena.storage import get_storage


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        ensure_system_admin(get_storage(), app.config)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage(app):
    return get_storage(app)


@pytest.fixture
def admin_client(app):
    """Test client logged in as the seeded protected system admin."""
    admin = app.test_client()
    res = admin.post('/api/login', json={
        'username': app.config['SYSTEM_ADMIN_USERNAME'],
        'password': app.config['SYSTEM_ADMIN_PASSWORD'],
    })
    assert res.status_code == 200
    return admin
