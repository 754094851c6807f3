import os
import sys
from contextlib import contextmanager

import pytest

# Path setup before any project imports to satisfy E402
ROOT = os.path.dirname(__file__)
PARENT = os.path.abspath(os.path.join(ROOT, ".."))
if PARENT not in sys.path:  # pragma: no cover - environment dependent
    sys.path.insert(0, PARENT)

# Rate limits are exercised explicitly in test_rate_limits.py; everything else runs unthrottled.
os.environ.setdefault("RATE_LIMIT_BACKEND", "noop")

ADMIN_ID = "00000000-0000-4000-8000-000000000001"
MOD_ID = "00000000-0000-4000-8000-000000000002"
USER_ID = "00000000-0000-4000-8000-000000000003"
OWNER_ID = "00000000-0000-4000-8000-000000000004"
OTHER_ID = "00000000-0000-4000-8000-000000000005"


def _lazy_imports():  # isolate heavy imports & satisfy lint ordering
    from nightlife.app_factory import create_app  # noqa: E402
    from nightlife.db import create_all  # noqa: E402
    from nightlife.models import EstablishmentCategory, User  # noqa: E402

    return create_app, create_all, EstablishmentCategory, User


def hdr(user_id: str, role: str = "user") -> dict:
    return {"X-User-Id": user_id, "X-User-Role": role}


ADMIN = hdr(ADMIN_ID, "admin")
MOD = hdr(MOD_ID, "moderator")
USER = hdr(USER_ID)
OWNER = hdr(OWNER_ID)
OTHER = hdr(OTHER_ID)


@contextmanager
def db_session(app):
    """Fresh scoped session; removed again when the app context tears down."""
    from nightlife.db import get_session

    with app.app_context():
        yield get_session()


@pytest.fixture(autouse=True)
def _reset_process_state():
    from nightlife import limit_registry, rate_limiter
    from nightlife.audit_events import clear_audit_events
    from nightlife.logging_setup import LOG_BUFFER

    rate_limiter._test_reset()
    limit_registry.refresh({})
    clear_audit_events()
    LOG_BUFFER.clear()
    yield


def _make_app(tmp_path, **overrides):
    create_app, create_all, EstablishmentCategory, User = _lazy_imports()
    url = f"sqlite:///{tmp_path / 'test_app.db'}"
    cfg = {
        "TESTING": True,
        "SECRET_KEY": "test",
        "database_url": url,
        "FORCE_DB_REINIT": True,
        "CACHE_BACKEND": "memory",
    }
    cfg.update(overrides)
    app = create_app(cfg)
    with app.app_context():
        create_all()
        from nightlife.db import get_session

        db = get_session()
        db.add_all(
            [
                User(id=ADMIN_ID, email="admin@example.com", pseudonym="admin", password_hash="x", role="admin"),
                User(id=MOD_ID, email="mod@example.com", pseudonym="mod", password_hash="x", role="moderator"),
                User(id=USER_ID, email="user@example.com", pseudonym="user", password_hash="x"),
                User(
                    id=OWNER_ID,
                    email="owner@example.com",
                    pseudonym="owner",
                    password_hash="x",
                    account_type="establishment_owner",
                ),
                User(id=OTHER_ID, email="other@example.com", pseudonym="other", password_hash="x"),
                EstablishmentCategory(id=1, name="Bar", icon="bar", color="#e91e63"),
                EstablishmentCategory(id=2, name="GoGo Bar", icon="gogo", color="#9c27b0"),
            ]
        )
        db.commit()
    return app


@pytest.fixture
def app(tmp_path):
    return _make_app(tmp_path)


@pytest.fixture
def make_app(tmp_path):
    """Factory for tests that need non-default config (strict CSRF, strict transitions)."""

    def _factory(**overrides):
        return _make_app(tmp_path, **overrides)

    return _factory


@pytest.fixture
def client(app):
    c = app.test_client()
    c.environ_base = {}
    return c


@pytest.fixture
def csrf_headers(client):
    """Return headers containing a valid CSRF token (double-submit pattern)."""
    r = client.get("/api/auth/csrf-token")
    token = r.get_json()["csrf_token"]
    cookie = client.get_cookie("csrf_token")
    assert cookie is not None and cookie.value == token
    return {"X-CSRF-Token": token}


# --- Seed helpers shared by the test modules ---
def seed_establishment(app, name="Lucky Bar", status="approved", **kw):
    from nightlife.models import Establishment

    with db_session(app) as db:
        est = Establishment(name=name, status=status, category_id=kw.pop("category_id", 1), **kw)
        db.add(est)
        db.commit()
        return est.id


def seed_employee(app, name="Nok", status="approved", **kw):
    from nightlife.models import Employee

    with db_session(app) as db:
        emp = Employee(name=name, sex=kw.pop("sex", "female"), status=status, **kw)
        db.add(emp)
        db.commit()
        return emp.id


def seed_owner_link(app, user_id, establishment_id, permissions=None):
    from nightlife.models import EstablishmentOwner
    from nightlife.ownership_service import DEFAULT_PERMISSIONS

    with db_session(app) as db:
        link = EstablishmentOwner(
            user_id=user_id,
            establishment_id=establishment_id,
            owner_role="owner",
            permissions=dict(permissions if permissions is not None else DEFAULT_PERMISSIONS),
        )
        db.add(link)
        db.commit()
        return link.id


def notifications_for(app, user_id, type_=None):
    from nightlife.models import Notification

    with db_session(app) as db:
        q = db.query(Notification).filter(Notification.user_id == user_id)
        if type_:
            q = q.filter(Notification.type == type_)
        return [(n.type, n.title, n.link) for n in q.all()]
