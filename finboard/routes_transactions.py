from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .auth import get_current_user, require_owner
from .database import get_db
from .models import Transaction, User
from .routes_accounts import owned_account
from .schemas import StatusUpdateIn, TransactionCreateIn, transaction_to_dict
from . import reporting, transactions

router = APIRouter(prefix="/transactions", tags=["Transactions"])


def owned_transaction(db: Session, transaction_id: int, current_user: User) -> Transaction:
    txn = transactions.require_transaction(db, transaction_id)
    require_owner(current_user, txn.account.user_id)
    return txn


def _page_payload(page: dict) -> dict:
    out = {k: v for k, v in page.items() if k != "items"}
    out["transactions"] = [transaction_to_dict(t) for t in page["items"]]
    return out


# =========================
# Listings
# =========================
@router.get("/recent/user/{user_id}")
def recent(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return {"transactions": [transaction_to_dict(t) for t in transactions.recent_transactions(db, user_id)]}


@router.get("/user/{user_id}")
def user_transactions(
    user_id: int,
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return _page_payload(transactions.page_for_user(db, user_id, page, size))


@router.get("/account/{account_id}")
def account_transactions(
    account_id: int,
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned_account(db, account_id, current_user)
    return _page_payload(transactions.page_for_account(db, account_id, page, size))


@router.get("/pending/user/{user_id}")
def pending(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return {"transactions": [transaction_to_dict(t) for t in transactions.pending_transactions(db, user_id)]}


@router.get("/search/user/{user_id}")
def search(
    user_id: int,
    query: str = Query(..., max_length=255),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return {"transactions": [transaction_to_dict(t) for t in transactions.search_transactions(db, user_id, query)]}


# =========================
# Dashboard widgets
# =========================
@router.get("/chart/user/{user_id}")
def chart(
    user_id: int,
    year: Optional[int] = Query(None, ge=1, le=9998),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return reporting.monthly_flow(db, user_id, year or datetime.now().year)


@router.get("/statistics/user/{user_id}")
def statistics(
    user_id: int,
    period: str = "current",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return reporting.category_statistics(db, user_id, period)


@router.get("/summary/user/{user_id}")
def summary(
    user_id: int,
    period: str = "current",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return reporting.summary(db, user_id, period)


# =========================
# Lifecycle
# =========================
@router.post("", status_code=201)
def create(
    payload: TransactionCreateIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned_account(db, payload.account_id, current_user)
    txn = transactions.create_transaction(
        db,
        payload.account_id,
        payload.business_name,
        payload.category,
        payload.amount,
        payload.transaction_type,
        payload.description,
    )
    return transaction_to_dict(txn)


@router.get("/{transaction_id}")
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return transaction_to_dict(owned_transaction(db, transaction_id, current_user))


@router.put("/{transaction_id}/status")
def process(
    transaction_id: int,
    payload: StatusUpdateIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned_transaction(db, transaction_id, current_user)
    return transaction_to_dict(transactions.process_transaction(db, transaction_id, payload.status))


@router.delete("/{transaction_id}")
def delete(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned_transaction(db, transaction_id, current_user)
    transactions.delete_transaction(db, transaction_id)
    return {"message": "Transaction deleted successfully"}
