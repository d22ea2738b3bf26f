import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from motorsite.app import create_app
from motorsite.auth.passwords import hash_password
from motorsite.auth.session import MemorySessionBackend
from motorsite.auth.users import UserRecord
from motorsite.core.settings import Settings, load_settings


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch) -> Settings:
    """Test settings: temp data dir, in-memory sessions, non-secure cookies, cheap hashing."""
    monkeypatch.delenv("MOTOR_SETTINGS_PATH", raising=False)
    return load_settings(
        overrides={
            "app": {"secret_key": "test-secret", "data_dir": str(tmp_path / "data")},
            "session": {"backend": "memory", "cookie_secure": False},
            "password": {"time_cost": 1, "memory_cost": 8192, "parallelism": 1},
            "logger": {"path": "stderr", "level": "WARNING"},
        }
    )


@pytest.fixture()
def session_backend() -> MemorySessionBackend:
    return MemorySessionBackend()


@pytest.fixture()
def app(settings, session_backend):
    return create_app(settings, session_backend=session_backend)


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def alice(app) -> UserRecord:
    return app.state.users.create(
        login="alice",
        email="alice@example.com",
        password_hash=hash_password("secret123"),
    )


@pytest.fixture()
def session_of(app, session_backend):
    """Return the server-side session data behind the client's session cookie."""

    def _read(client: TestClient) -> dict:
        sessions = app.state.sessions
        sid = sessions.decode_id(client.cookies.get(sessions.cookie_name) or "")
        if not sid:
            return {}
        return session_backend.read(sid) or {}

    return _read


@pytest.fixture()
def put_in_session(app, session_backend):
    """Store extra keys in the client's current session (creating one if needed)."""

    def _put(client: TestClient, **values) -> None:
        sessions = app.state.sessions
        if not sessions.decode_id(client.cookies.get(sessions.cookie_name) or ""):
            # An empty login attempt is enough to get a session cookie.
            client.post("/login", data={}, follow_redirects=False)
        sid = sessions.decode_id(client.cookies.get(sessions.cookie_name) or "")
        data = session_backend.read(sid) or {}
        data.update(values)
        session_backend.write(sid, data)

    return _put
