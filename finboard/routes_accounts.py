from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .auth import get_current_user, require_owner
from .database import get_db
from .models import Account, User
from .schemas import (
    AccountCreateIn,
    AccountUpdateIn,
    BalanceUpdateIn,
    SpendingLimitIn,
    TransferIn,
    account_to_dict,
)
from . import accounts

router = APIRouter(prefix="/accounts", tags=["Accounts"])


def owned_account(db: Session, account_id: int, current_user: User) -> Account:
    account = accounts.require_account(db, account_id)
    require_owner(current_user, account.user_id)
    return account


@router.get("/user/{user_id}")
def list_user_accounts(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return {
        "accounts": [account_to_dict(a) for a in accounts.list_accounts(db, user_id)],
        "totalBalance": accounts.get_total_balance(db, user_id),
    }


@router.post("/user/{user_id}", status_code=201)
def create_account(
    user_id: int,
    payload: AccountCreateIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    account = accounts.create_account(db, user_id, payload.account_name, payload.account_type, payload.initial_balance)
    return account_to_dict(account)


@router.get("/wallet/user/{user_id}")
def get_wallet(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return account_to_dict(accounts.get_wallet(db, user_id))


@router.post("/transfer")
def transfer(
    payload: TransferIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    # the source decides ownership; a foreign destination fails as a cross-user transfer
    owned_account(db, payload.from_account_id, current_user)
    source, target = accounts.transfer(db, payload.from_account_id, payload.to_account_id, payload.amount)
    return {
        "message": "Transfer completed successfully",
        "fromAccount": account_to_dict(source),
        "toAccount": account_to_dict(target),
    }


@router.get("/{account_id}")
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return account_to_dict(owned_account(db, account_id, current_user))


@router.put("/{account_id}")
def update_account(
    account_id: int,
    payload: AccountUpdateIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned_account(db, account_id, current_user)
    account = accounts.update_account(
        db,
        account_id,
        account_name=payload.account_name,
        current_balance=payload.current_balance,
        spending_limit=payload.spending_limit,
        total_limit=payload.total_limit,
        card_type=payload.card_type,
    )
    return account_to_dict(account)


@router.delete("/{account_id}")
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned_account(db, account_id, current_user)
    accounts.delete_account(db, account_id)
    return {"message": "Account deleted successfully"}


@router.get("/{account_id}/can-delete")
def can_delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned_account(db, account_id, current_user)
    return {"canDelete": accounts.can_delete_account(db, account_id)}


@router.put("/{account_id}/balance")
def update_balance(
    account_id: int,
    payload: BalanceUpdateIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned_account(db, account_id, current_user)
    return account_to_dict(accounts.update_balance(db, account_id, payload.balance))


@router.put("/{account_id}/spending-limit")
def update_spending_limit(
    account_id: int,
    payload: SpendingLimitIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned_account(db, account_id, current_user)
    return account_to_dict(accounts.update_spending_limit(db, account_id, payload.spending_limit))
