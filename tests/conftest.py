import os
import sys

import pytest
from fastapi.testclient import TestClient

# Must be in place before educonnect.core.config is first imported
os.environ["LOG_TO_FILE"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["SENDGRID_API_KEY"] = ""
os.environ["SMTP_USER"] = ""

PASSWORD = "Password123!"


@pytest.fixture(scope="session")
def test_db_url(tmp_path_factory):
    db_path = tmp_path_factory.mktemp("db") / "test_educonnect.db"
    return f"sqlite:///{db_path}"


@pytest.fixture(scope="session")
def app(test_db_url, tmp_path_factory):
    os.environ["DATABASE_URL"] = test_db_url
    os.environ["UPLOAD_DIR"] = str(tmp_path_factory.mktemp("uploads"))

    # Drop anything already bound to earlier settings or another engine
    for module_name in list(sys.modules):
        if module_name == "educonnect" or module_name.startswith("educonnect."):
            del sys.modules[module_name]
    sys.modules.pop("main", None)

    import main as main_module

    app_instance = main_module.app
    app_instance.router.on_startup.clear()
    app_instance.router.on_shutdown.clear()

    from educonnect.db.database import init_db
    init_db()
    return app_instance


@pytest.fixture()
def db_session(app):
    from educonnect.db.database import SessionLocal
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session):
    """Create (or fetch) a user with the shared test password."""
    def _make(email, role="student", full_name=None, **fields):
        from educonnect.core.security import get_password_hash
        from educonnect.models.user import User, UserRole

        user = db_session.query(User).filter(User.email == email).first()
        if user:
            return user
        user = User(
            email=email,
            full_name=full_name or email.split("@")[0].replace("_", " ").title(),
            role=UserRole(role),
            hashed_password=get_password_hash(PASSWORD),
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make

