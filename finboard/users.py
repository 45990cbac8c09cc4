"""Identity store: registration, credentials and profile."""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .auth import hash_password, verify_password
from .database import transaction_scope
from .errors import DuplicateEmail, IncorrectPassword, InvalidCredentials, NotFound, UserHasAccounts, ValidationFailed
from .models import AccountType, User
from . import accounts, repository, transactions

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def require_user(db: Session, user_id: int, include_accounts: bool = False) -> User:
    user = repository.get_user(db, user_id, include_accounts=include_accounts)
    if not user:
        raise NotFound(f"User not found with id: {user_id}")
    return user


def register_user(
    db: Session,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    seed_demo_data: bool = False,
) -> User:
    """Create a user with the four default accounts (and optional sample data) in one unit."""
    email = normalize_email(email)
    if not email or not password:
        raise ValidationFailed("email and password are required")
    if repository.email_exists(db, email):
        raise DuplicateEmail("Email already exists")

    try:
        with transaction_scope(db):
            user = User(
                first_name=(first_name or "").strip(),
                last_name=(last_name or "").strip(),
                email=email,
                password_hash=hash_password(password),
            )
            db.add(user)
            db.flush()

            created = accounts.add_default_accounts(db, user.id)
            if seed_demo_data:
                business = next(a for a in created if a.account_type == AccountType.BUSINESS)
                transactions.add_sample_transactions(db, business)
    except IntegrityError:
        raise DuplicateEmail("Email already exists")

    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = repository.get_user_by_email(db, normalize_email(email))
    if not user or not verify_password(password or "", user.password_hash):
        raise InvalidCredentials("Invalid credentials")
    return user


def change_password(db: Session, user_id: int, old_password: str, new_password: str) -> None:
    user = require_user(db, user_id)
    if not verify_password(old_password or "", user.password_hash):
        raise IncorrectPassword("Current password is incorrect")
    if not new_password:
        raise ValidationFailed("newPassword is required")

    with transaction_scope(db):
        user.password_hash = hash_password(new_password)
        user.updated_at = datetime.now()
    logger.info("Password changed for user %s", user_id)


def update_profile(db: Session, user_id: int, first_name: str, last_name: str) -> User:
    user = require_user(db, user_id)
    with transaction_scope(db):
        user.first_name = first_name
        user.last_name = last_name
        user.updated_at = datetime.now()
    db.refresh(user)
    return user


def user_statistics(db: Session, user_id: int) -> dict:
    user = require_user(db, user_id, include_accounts=True)
    return {
        "totalAccounts": len(user.accounts),
        "memberSince": user.created_at,
        "lastLogin": user.updated_at,
        "accountStatus": "Active",
    }


def delete_user(db: Session, user_id: int) -> None:
    with transaction_scope(db):
        user = require_user(db, user_id)
        if repository.list_accounts(db, user_id):
            raise UserHasAccounts("Cannot delete user with existing accounts")
        db.delete(user)
    logger.info("Deleted user %s", user_id)
