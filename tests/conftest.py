"""
Shared fixtures.

The application is pointed at an in-memory SQLite database before it is
imported; every test starts from an empty schema.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["ADMIN_EMAILS"] = "admin@example.com"

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from finboard.auth import hash_password, token_for
from finboard.database import Base, SessionLocal, engine, transaction_scope
from finboard.main import app
from finboard.models import AccountType, TransactionStatus, TransactionType, User
from finboard import repository, transactions, users


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def user(db):
    return users.register_user(db, "Ada", "Lovelace", "ada@example.com", "secret-pass")


@pytest.fixture
def other_user(db):
    return users.register_user(db, "Alan", "Turing", "alan@example.com", "enigma-pass")


@pytest.fixture
def bare_user(db):
    """A user row without the default accounts."""
    with transaction_scope(db):
        u = User(first_name="Grace", last_name="Hopper", email="grace@example.com", password_hash=hash_password("cobol"))
        db.add(u)
    db.refresh(u)
    return u


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {token_for(user)}"}


def account_of(db, user, account_type=AccountType.BUSINESS):
    return repository.get_account_by_type(db, user.id, account_type)


def make_txn(
    db,
    account,
    amount,
    transaction_type=TransactionType.EXPENSE,
    status=None,
    category="General",
    business="Shop",
    when=None,
):
    """Record a transaction and optionally settle it, committed."""
    with transaction_scope(db):
        txn = transactions.add_transaction(
            db,
            account,
            business,
            category,
            Decimal(str(amount)),
            transaction_type,
            transaction_date=when or datetime.now(),
        )
        if status is not None:
            transactions.settle(db, txn, status)
    db.refresh(txn)
    return txn


SUCCESS = TransactionStatus.SUCCESS
FAILED = TransactionStatus.FAILED
