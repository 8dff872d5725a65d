"""
Pytest fixtures for consignment backend tests.

Provides test database setup, two tenant organizations, staff users,
consignors, items and a test client.
"""

from datetime import datetime

import pytest
from consignment import create_app
from consignment.extensions import db
from consignment.enums import ConsignorStatus, SubscriptionStatus, SubscriptionTier, UserRole
from consignment.models import Consignor, Item, Organization, User
from consignment.services.auth_service import hash_password
from consignment.services import transaction_service


PASSWORD = "Password123!"
# bcrypt is deliberately slow; hash once for every fixture user
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Organization A: PRO subscription in good standing."""
    org = Organization(
        name="Second Chances",
        slug="second-chances",
        subscription_status=SubscriptionStatus.ACTIVE.value,
        subscription_tier=SubscriptionTier.PRO.value,
        default_split_bps=6000,
    )
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Organization B: BASIC trial."""
    org = Organization(
        name="Thrift Row",
        slug="thrift-row",
        subscription_status=SubscriptionStatus.TRIAL.value,
        subscription_tier=SubscriptionTier.BASIC.value,
        default_split_bps=5000,
    )
    db_session.add(org)
    db_session.commit()
    return org


def _make_user(db_session, org, email, role=UserRole.OWNER.value):
    user = User(org_id=org.id, email=email, password_hash=PASSWORD_HASH, role=role)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner_a(db_session, org_a):
    return _make_user(db_session, org_a, "owner@secondchances.test")


@pytest.fixture(scope='function')
def clerk_a(db_session, org_a):
    return _make_user(db_session, org_a, "clerk@secondchances.test", UserRole.CLERK.value)


@pytest.fixture(scope='function')
def consignor_user_a(db_session, org_a):
    return _make_user(db_session, org_a, "portal@secondchances.test", UserRole.CONSIGNOR.value)


@pytest.fixture(scope='function')
def owner_b(db_session, org_b):
    return _make_user(db_session, org_b, "owner@thriftrow.test")


def make_consignor(db_session, org, number, first_name="Jane", last_name="Doe",
                   split_bps=6000, status=ConsignorStatus.ACTIVE.value):
    consignor = Consignor(
        org_id=org.id,
        consignor_number=number,
        first_name=first_name,
        last_name=last_name,
        default_split_bps=split_bps,
        status=status,
    )
    db_session.add(consignor)
    db_session.commit()
    return consignor


def make_item(db_session, consignor, sku, price_cents=10000, override_split_bps=None):
    item = Item(
        org_id=consignor.org_id,
        consignor_id=consignor.id,
        sku=sku,
        title=f"Item {sku}",
        price_cents=price_cents,
        override_split_bps=override_split_bps,
    )
    db_session.add(item)
    db_session.commit()
    return item


def make_sale(db_session, consignor, sku, price_cents=10000, sale_date=None, override_split_bps=None):
    """Take in an item and sell it through the transaction service."""
    item = make_item(db_session, consignor, sku, price_cents, override_split_bps)
    return transaction_service.create_transaction(
        consignor.org_id,
        item_id=item.id,
        payment_method="CASH",
        sale_date=sale_date or datetime(2025, 11, 15, 14, 30),
    )


@pytest.fixture(scope='function')
def consignor_a(db_session, org_a):
    return make_consignor(db_session, org_a, "CON-00001")


@pytest.fixture(scope='function')
def consignor_b(db_session, org_b):
    return make_consignor(db_session, org_b, "CON-00001", first_name="Bob", last_name="Smith", split_bps=5000)


@pytest.fixture(scope='function')
def item_a(db_session, consignor_a):
    return make_item(db_session, consignor_a, "SC-0001")


@pytest.fixture(scope='function')
def item_b(db_session, consignor_b):
    return make_item(db_session, consignor_b, "TR-0001", price_cents=2000)


def get_auth_token(client, org_slug: str, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'org_slug': org_slug,
        'email': email,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers(client, owner_a):
    """Bearer headers for the OWNER of organization A (PRO)."""
    return auth_headers(get_auth_token(client, "second-chances", owner_a.email))


@pytest.fixture(scope='function')
def owner_b_headers(client, owner_b):
    """Bearer headers for the OWNER of organization B (BASIC)."""
    return auth_headers(get_auth_token(client, "thrift-row", owner_b.email))
