"""Lookups shared by the services.

Relationship loading is always requested explicitly through the
``include_*`` flags; nothing relies on lazy loading behind the caller's back.

``for_update`` lookups lock the row and overwrite any copy already held by
the session, so checks made after the lock see committed state.
"""
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, selectinload

from .models import Account, AccountType, Transaction, User


def get_user(db: Session, user_id: int, include_accounts: bool = False) -> Optional[User]:
    q = db.query(User).filter(User.id == user_id)
    if include_accounts:
        q = q.options(selectinload(User.accounts))
    return q.first()


def get_user_by_email(db: Session, email: str, include_accounts: bool = False) -> Optional[User]:
    q = db.query(User).filter(User.email == email)
    if include_accounts:
        q = q.options(selectinload(User.accounts))
    return q.first()


def email_exists(db: Session, email: str) -> bool:
    return db.query(User.id).filter(User.email == email).first() is not None


def get_account(db: Session, account_id: int, for_update: bool = False) -> Optional[Account]:
    q = db.query(Account).filter(Account.id == account_id)
    if for_update:
        q = q.with_for_update().populate_existing()
    return q.first()


def list_accounts(db: Session, user_id: int, include_transactions: bool = False) -> list[Account]:
    q = db.query(Account).filter(Account.user_id == user_id)
    if include_transactions:
        q = q.options(selectinload(Account.transactions))
    return q.order_by(Account.account_type.asc(), Account.id.asc()).all()


def get_account_by_type(db: Session, user_id: int, account_type: AccountType) -> Optional[Account]:
    return (
        db.query(Account)
        .filter(Account.user_id == user_id, Account.account_type == account_type)
        .first()
    )


def get_wallet(db: Session, user_id: int) -> Optional[Account]:
    return get_account_by_type(db, user_id, AccountType.WALLET)


def count_account_transactions(db: Session, account_id: int) -> int:
    return db.query(func.count(Transaction.id)).filter(Transaction.account_id == account_id).scalar() or 0


def get_transaction(db: Session, transaction_id: int, for_update: bool = False) -> Optional[Transaction]:
    q = db.query(Transaction).filter(Transaction.id == transaction_id)
    if for_update:
        q = q.with_for_update().populate_existing()
    return q.first()


def user_transactions_query(db: Session, user_id: int) -> Query:
    """All transactions on accounts owned by ``user_id`` (unordered)."""
    return db.query(Transaction).join(Account, Transaction.account_id == Account.id).filter(Account.user_id == user_id)


def newest_first(q: Query) -> Query:
    return q.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
