import os
import re
import smtplib
import sys

import pytest
from fastapi.testclient import TestClient

TEST_SECRET_KEY = "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"

os.environ.setdefault("SECRET_KEY", TEST_SECRET_KEY)

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from crm_auth.config import Settings
from crm_auth.database import Database
from crm_auth.main import create_app
from crm_auth.models.user import Role
from crm_auth.services.credentials import CredentialStore
from crm_auth.services.notifications import Notifier

ADMIN_EMAIL = "admin@yitro.com"
ADMIN_PASSWORD = "AdminPass123!"
USER_PASSWORD = "longenough1"

_TOKEN_RE = re.compile(r"token=([A-Za-z0-9_-]+)")


class RecordingNotifier(Notifier):
    """Captures outgoing mail instead of talking to a relay."""

    def __init__(self):
        super().__init__(smtp_host="smtp.test", base_url="http://crm.test")
        self.outbox = []
        self.fail = False
        self.crash = False

    def _deliver(self, msg):
        if self.crash:
            raise RuntimeError("template rendering broke")
        if self.fail:
            raise smtplib.SMTPException("relay unavailable")
        self.outbox.append(msg)

    def messages_to(self, email):
        return [msg for msg in self.outbox if msg["To"] == email]

    @staticmethod
    def html_of(msg):
        html_part = msg.get_payload()[1]
        return html_part.get_payload(decode=True).decode("utf-8")

    def last_token(self, email):
        html = self.html_of(self.messages_to(email)[-1])
        match = _TOKEN_RE.search(html)
        assert match, html
        return match.group(1)


def make_settings(**overrides):
    values = {
        "secret_key": TEST_SECRET_KEY,
        "database_url": "sqlite://",
        "bcrypt_rounds": 4,
        "system_admin_email": ADMIN_EMAIL,
        "smtp_host": None,
        "bootstrap_admin_password": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(settings, database, notifier):
    return create_app(settings, database=database, notifier=notifier)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def token_service(app):
    return app.state.token_service


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def signup(client, email, password=USER_PASSWORD, display_name="Test User"):
    return client.post(
        "/api/auth/signup",
        json={"email": email, "password": password, "displayName": display_name},
    )


def signin(client, email, password=USER_PASSWORD):
    return client.post("/api/auth/signin", json={"email": email, "password": password})


def user_token(client, email, password=USER_PASSWORD):
    response = signup(client, email, password)
    assert response.status_code == 201, response.text
    return response.json()["data"]["token"]


@pytest.fixture
def admin_headers(client, database):
    with database.session_scope() as db:
        CredentialStore(db, bcrypt_rounds=4).create_identity(
            ADMIN_EMAIL, ADMIN_PASSWORD, "System Administrator", Role.ADMIN, verified=True,
        )
    response = signin(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert response.status_code == 200, response.text
    return bearer(response.json()["data"]["token"])
