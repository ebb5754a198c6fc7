from datetime import timedelta
from types import SimpleNamespace

import pytest

from app import create_app
from configs import Config, db
from dao import user as user_dao
from db.models.supplier import Supplier, SupplierStatus
from db.models.tenant import Tenant
from db.models.user import User, UserRole
from utils.auth import issue_token
from utils.dates import utcnow

PASSWORD = "secret-pw"


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    ADMIN_ENABLED = False
    DEFAULT_TAX_RATE = "0.21"
    LOG_LEVEL = "WARNING"


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def ctx(app):
    """App context for tests that call the DAO layer directly.

    HTTP tests must not hold it open: requests would share its `g`.
    """
    with app.app_context():
        yield app


def _active_supplier(tenant_id, code, name, tax_id):
    s = Supplier(
        tenant_id=tenant_id,
        code=code,
        name=name,
        tax_id=tax_id,
        email=f"{code.lower()}@example.com",
        status=SupplierStatus.ACTIVE,
    )
    db.session.add(s)
    return s


@pytest.fixture()
def env(app):
    """Two tenants, one user per role, two active suppliers. Only ids leave the context."""
    with app.app_context():
        acme = Tenant(code="acme", name="Acme SA", currency="ARS")
        other = Tenant(code="other", name="Other SRL", currency="ARS")
        db.session.add_all([acme, other])
        db.session.commit()

        s1 = _active_supplier(acme.id, "PROV-1", "Proveedor Uno", "30-11111111-1")
        s2 = _active_supplier(acme.id, "PROV-2", "Proveedor Dos", "30-22222222-2")
        db.session.commit()

        users = {}
        for role in UserRole:
            name = role.value.lower()
            users[name] = user_dao.create_user(
                acme.id,
                f"{name}1",
                PASSWORD,
                role,
                full_name=role.value.title(),
                supplier_id=s1.id if role == UserRole.SUPPLIER else None,
            ).id
        users["supplier2"] = user_dao.create_user(
            acme.id, "supplier2", PASSWORD, UserRole.SUPPLIER, supplier_id=s2.id
        ).id
        users["outsider"] = user_dao.create_user(
            other.id, "outsider", PASSWORD, UserRole.ADMIN
        ).id

        return SimpleNamespace(
            tenant_id=acme.id,
            other_tenant_id=other.id,
            supplier_id=s1.id,
            supplier2_id=s2.id,
            users=users,
        )


@pytest.fixture()
def auth(app, env):
    """auth("buyer") -> Authorization header for that user."""

    def _headers(who: str, **extra):
        with app.app_context():
            user = db.session.get(User, env.users[who])
            headers = {"Authorization": f"Bearer {issue_token(user)}"}
        headers.update(extra)
        return headers

    return _headers


@pytest.fixture()
def future():
    return (utcnow() + timedelta(days=7)).isoformat()
