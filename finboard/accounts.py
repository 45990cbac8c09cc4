"""Account ledger: per-user accounts and their balances."""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .database import transaction_scope
from .errors import (
    AccountHasTransactions,
    AccountTypeConflict,
    CrossUserTransfer,
    InsufficientFunds,
    InvalidAccountType,
    NotFound,
    ValidationFailed,
)
from .models import Account, AccountType, to_money
from . import repository

logger = logging.getLogger(__name__)

WALLET_TOTAL_LIMIT = Decimal("13000.00")
WALLET_SPENDING_LIMIT = Decimal("9800.00")
WALLET_CARD_TYPE = "VISA"
WALLET_CARD_NUMBER = "**** **** **** 1234"

# (type, name, opening balance) created for every new user
DEFAULT_ACCOUNTS = (
    (AccountType.BUSINESS, "Business account", Decimal("24098.00")),
    (AccountType.TAX_RESERVE, "Tax Reserve", Decimal("2456.89")),
    (AccountType.SAVINGS, "Savings", Decimal("1980.00")),
    (AccountType.WALLET, "Wallet", Decimal("1550.62")),
)


def require_account(db: Session, account_id: int, for_update: bool = False) -> Account:
    account = repository.get_account(db, account_id, for_update=for_update)
    if not account:
        raise NotFound(f"Account not found with id: {account_id}")
    return account


def list_accounts(db: Session, user_id: int) -> list[Account]:
    return repository.list_accounts(db, user_id)


def get_wallet(db: Session, user_id: int) -> Account:
    wallet = repository.get_wallet(db, user_id)
    if not wallet:
        raise NotFound("Wallet not found")
    return wallet


def get_total_balance(db: Session, user_id: int) -> Decimal:
    total = Decimal("0.00")
    for account in repository.list_accounts(db, user_id):
        total += Decimal(account.current_balance)
    return to_money(total)


def add_account(
    db: Session,
    user_id: int,
    account_name: str,
    account_type: AccountType,
    initial_balance,
) -> Account:
    """Stage a new account on ``db`` without committing."""
    if repository.get_account_by_type(db, user_id, account_type):
        raise AccountTypeConflict(f"Account type {account_type.name} already exists for user")

    account = Account(
        user_id=user_id,
        account_name=account_name,
        account_type=account_type,
        current_balance=to_money(initial_balance),
        previous_balance=Decimal("0.00"),
    )
    if account_type == AccountType.WALLET:
        account.total_limit = WALLET_TOTAL_LIMIT
        account.spending_limit = WALLET_SPENDING_LIMIT
        account.card_type = WALLET_CARD_TYPE
        account.card_number = WALLET_CARD_NUMBER

    db.add(account)
    db.flush()
    return account


def create_account(
    db: Session,
    user_id: int,
    account_name: str,
    account_type: AccountType,
    initial_balance,
) -> Account:
    if not repository.get_user(db, user_id):
        raise NotFound(f"User not found with id: {user_id}")

    try:
        with transaction_scope(db):
            account = add_account(db, user_id, account_name, account_type, initial_balance)
    except IntegrityError:
        # lost a race against a concurrent create of the same type
        raise AccountTypeConflict(f"Account type {account_type.name} already exists for user")

    db.refresh(account)
    logger.info("Created %s account %s for user %s", account_type.name, account.id, user_id)
    return account


def add_default_accounts(db: Session, user_id: int) -> list[Account]:
    return [add_account(db, user_id, name, account_type, balance) for account_type, name, balance in DEFAULT_ACCOUNTS]


def update_balance(db: Session, account_id: int, new_balance) -> Account:
    if new_balance is None:
        raise ValidationFailed("balance is required")

    with transaction_scope(db):
        account = require_account(db, account_id, for_update=True)
        account.snapshot_and_set(new_balance)

    db.refresh(account)
    return account


def update_spending_limit(db: Session, account_id: int, new_limit) -> Account:
    if new_limit is None:
        raise ValidationFailed("spendingLimit is required")

    with transaction_scope(db):
        account = require_account(db, account_id, for_update=True)
        if not account.is_wallet:
            raise InvalidAccountType("Spending limit can only be set for wallet accounts")
        account.spending_limit = to_money(new_limit)

    db.refresh(account)
    return account


def update_account(
    db: Session,
    account_id: int,
    account_name: Optional[str] = None,
    current_balance=None,
    spending_limit=None,
    total_limit=None,
    card_type: Optional[str] = None,
) -> Account:
    """Partial update. Wallet-only fields are ignored for other account types."""
    with transaction_scope(db):
        account = require_account(db, account_id, for_update=True)
        if account_name is not None:
            account.account_name = account_name
        if current_balance is not None:
            account.snapshot_and_set(current_balance)
        if account.is_wallet:
            if spending_limit is not None:
                account.spending_limit = to_money(spending_limit)
            if total_limit is not None:
                account.total_limit = to_money(total_limit)
            if card_type is not None:
                account.card_type = card_type

    db.refresh(account)
    return account


def transfer(db: Session, from_account_id: int, to_account_id: int, amount) -> tuple[Account, Account]:
    if amount is None or to_money(amount) <= 0:
        raise ValidationFailed("Transfer amount must be greater than 0")
    if from_account_id == to_account_id:
        raise ValidationFailed("Source and destination accounts must differ")
    amount = to_money(amount)

    with transaction_scope(db):
        # lock in id order so two opposite transfers cannot deadlock
        first_id, second_id = sorted((from_account_id, to_account_id))
        locked = {
            first_id: repository.get_account(db, first_id, for_update=True),
            second_id: repository.get_account(db, second_id, for_update=True),
        }
        source = locked[from_account_id]
        target = locked[to_account_id]
        if not source:
            raise NotFound("Source account not found")
        if not target:
            raise NotFound("Destination account not found")

        if source.user_id != target.user_id:
            raise CrossUserTransfer("Can only transfer between accounts of the same user")
        if Decimal(source.current_balance) < amount:
            raise InsufficientFunds("Insufficient balance for transfer")

        source.snapshot_and_set(Decimal(source.current_balance) - amount)
        target.snapshot_and_set(Decimal(target.current_balance) + amount)

    db.refresh(source)
    db.refresh(target)
    logger.info("Transferred %s from account %s to account %s", amount, source.id, target.id)
    return source, target


def can_delete_account(db: Session, account_id: int) -> bool:
    require_account(db, account_id)
    return repository.count_account_transactions(db, account_id) == 0


def delete_account(db: Session, account_id: int) -> None:
    with transaction_scope(db):
        account = require_account(db, account_id, for_update=True)
        if repository.count_account_transactions(db, account_id) > 0:
            raise AccountHasTransactions("Cannot delete account with existing transactions")
        db.delete(account)
    logger.info("Deleted account %s", account_id)
