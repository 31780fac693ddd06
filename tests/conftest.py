import pytest

from timekeeper import create_app
from timekeeper.database.models import db
from timekeeper.encryption.digital_signatures import ParticipantSigner


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'NTP_SERVERS': ['ntp.test'],
    })
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def signer():
    return ParticipantSigner()
