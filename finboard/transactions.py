"""Transaction journal and the PENDING -> SUCCESS/FAILED settlement."""
import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from .database import transaction_scope
from .errors import ImmutableTransaction, InvalidTransition, NotFound, ValidationFailed
from .models import Account, Transaction, TransactionStatus, TransactionType, to_money
from . import repository

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10

# (business, category, amount, type, description, settle_to)
SAMPLE_TRANSACTIONS = (
    ("Gym", "Payment", Decimal("300.00"), TransactionType.EXPENSE, "Monthly gym membership", None),
    ("Al-Bank", "Deposit", Decimal("890.00"), TransactionType.INCOME, "Bank deposit", TransactionStatus.SUCCESS),
    ("Facebook Ads", "Payment", Decimal("123.00"), TransactionType.EXPENSE, "Marketing campaign", TransactionStatus.FAILED),
)


def require_transaction(db: Session, transaction_id: int, for_update: bool = False) -> Transaction:
    txn = repository.get_transaction(db, transaction_id, for_update=for_update)
    if not txn:
        raise NotFound(f"Transaction not found with id: {transaction_id}")
    return txn


def add_transaction(
    db: Session,
    account: Account,
    business_name: str,
    category: Optional[str],
    amount,
    transaction_type: TransactionType,
    description: Optional[str] = None,
    transaction_date: Optional[datetime] = None,
) -> Transaction:
    """Stage a PENDING transaction on ``db`` without committing."""
    if amount is None:
        raise ValidationFailed("amount is required")
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationFailed("amount must be greater than 0")
    if not (business_name or "").strip():
        raise ValidationFailed("businessName is required")
    if transaction_type is None:
        raise ValidationFailed("transactionType is required")

    txn = Transaction(
        account_id=account.id,
        business_name=business_name.strip(),
        category=category,
        amount=amount,
        transaction_type=transaction_type,
        status=TransactionStatus.PENDING,
        description=description,
        transaction_date=transaction_date or datetime.now(),
    )
    db.add(txn)
    db.flush()
    return txn


def create_transaction(
    db: Session,
    account_id: int,
    business_name: str,
    category: Optional[str],
    amount,
    transaction_type: TransactionType,
    description: Optional[str] = None,
) -> Transaction:
    account = repository.get_account(db, account_id)
    if not account:
        raise NotFound(f"Account not found with id: {account_id}")

    with transaction_scope(db):
        txn = add_transaction(db, account, business_name, category, amount, transaction_type, description)

    db.refresh(txn)
    logger.info("Recorded %s transaction %s on account %s", txn.transaction_type.name, txn.id, account_id)
    return txn


def settle(db: Session, txn: Transaction, new_status: TransactionStatus) -> Transaction:
    """Apply the status change (and balance effect) on ``db`` without committing."""
    if new_status not in (TransactionStatus.SUCCESS, TransactionStatus.FAILED):
        raise ValidationFailed("Transactions can only be moved to SUCCESS or FAILED")
    if txn.status != TransactionStatus.PENDING:
        raise InvalidTransition("Only pending transactions can be processed")

    if new_status == TransactionStatus.SUCCESS:
        account = repository.get_account(db, txn.account_id, for_update=True)
        current = Decimal(account.current_balance)
        if txn.transaction_type == TransactionType.INCOME:
            account.snapshot_and_set(current + Decimal(txn.amount))
        else:
            account.snapshot_and_set(current - Decimal(txn.amount))

    txn.status = new_status
    db.flush()
    return txn


def process_transaction(db: Session, transaction_id: int, new_status: TransactionStatus) -> Transaction:
    with transaction_scope(db):
        txn = require_transaction(db, transaction_id, for_update=True)
        settle(db, txn, new_status)

    db.refresh(txn)
    logger.info("Transaction %s settled as %s", txn.id, new_status.name)
    return txn


def delete_transaction(db: Session, transaction_id: int) -> None:
    with transaction_scope(db):
        txn = require_transaction(db, transaction_id, for_update=True)
        if txn.status == TransactionStatus.SUCCESS:
            raise ImmutableTransaction("Cannot delete successful transactions")
        db.delete(txn)
    logger.info("Deleted transaction %s", transaction_id)


def add_sample_transactions(db: Session, account: Account) -> list[Transaction]:
    out = []
    for business, category, amount, ttype, description, settle_to in SAMPLE_TRANSACTIONS:
        txn = add_transaction(db, account, business, category, amount, ttype, description)
        if settle_to is not None:
            settle(db, txn, settle_to)
        out.append(txn)
    return out


# -----------------------------
# Queries
# -----------------------------
def _with_account(q):
    return q.options(joinedload(Transaction.account))


def recent_transactions(db: Session, user_id: int, limit: int = RECENT_LIMIT) -> list[Transaction]:
    q = repository.newest_first(repository.user_transactions_query(db, user_id))
    return _with_account(q).limit(limit).all()


def _page(q, page: int, size: int) -> dict:
    if page < 0:
        raise ValidationFailed("page must be >= 0")
    if size < 1:
        raise ValidationFailed("size must be >= 1")

    total = q.order_by(None).count()
    items = _with_account(repository.newest_first(q)).offset(page * size).limit(size).all()
    return {
        "items": items,
        "totalElements": total,
        "totalPages": math.ceil(total / size) if total else 0,
        "currentPage": page,
        "size": size,
    }


def page_for_user(db: Session, user_id: int, page: int = 0, size: int = 10) -> dict:
    return _page(repository.user_transactions_query(db, user_id), page, size)


def page_for_account(db: Session, account_id: int, page: int = 0, size: int = 10) -> dict:
    return _page(db.query(Transaction).filter(Transaction.account_id == account_id), page, size)


def pending_transactions(db: Session, user_id: int) -> list[Transaction]:
    q = repository.user_transactions_query(db, user_id).filter(Transaction.status == TransactionStatus.PENDING)
    return _with_account(repository.newest_first(q)).all()


def search_transactions(db: Session, user_id: int, term: str) -> list[Transaction]:
    term = (term or "").strip().lower()
    q = repository.user_transactions_query(db, user_id)
    if term:
        # escape LIKE wildcards so the term is matched literally
        escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        q = q.filter(Transaction.business_name.ilike(f"%{escaped}%", escape="\\"))
    return _with_account(repository.newest_first(q)).all()
