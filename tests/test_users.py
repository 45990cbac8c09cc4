from datetime import datetime
from decimal import Decimal

import pytest

from finboard.auth import verify_password
from finboard.errors import (
    DuplicateEmail,
    IncorrectPassword,
    InvalidCredentials,
    NotFound,
    UserHasAccounts,
)
from finboard.models import Account, AccountType, Transaction, TransactionStatus, User
from finboard import repository, users

from conftest import account_of


class TestRegistration:
    def test_register_creates_default_accounts(self, db, user):
        accounts = repository.list_accounts(db, user.id)
        balances = {a.account_type: a.current_balance for a in accounts}
        assert balances == {
            AccountType.BUSINESS: Decimal("24098.00"),
            AccountType.TAX_RESERVE: Decimal("2456.89"),
            AccountType.SAVINGS: Decimal("1980.00"),
            AccountType.WALLET: Decimal("1550.62"),
        }
        assert all(a.previous_balance == Decimal("0.00") for a in accounts)

    def test_password_is_stored_hashed(self, user):
        assert user.password_hash != "secret-pass"
        assert verify_password("secret-pass", user.password_hash)

    def test_duplicate_email_rejected(self, db, user):
        with pytest.raises(DuplicateEmail):
            users.register_user(db, "Other", "Person", "ada@example.com", "x")
        assert db.query(User).filter(User.email == "ada@example.com").count() == 1

    def test_duplicate_email_is_case_insensitive(self, db, user):
        with pytest.raises(DuplicateEmail):
            users.register_user(db, "Other", "Person", "  ADA@Example.com ", "x")
        assert db.query(User).count() == 1

    def test_no_sample_transactions_by_default(self, db, user):
        assert db.query(Transaction).count() == 0

    def test_seed_demo_data(self, db):
        u = users.register_user(db, "Demo", "User", "demo@example.com", "pw", seed_demo_data=True)
        business = account_of(db, u)

        txns = {t.business_name: t for t in business.transactions}
        assert set(txns) == {"Gym", "Al-Bank", "Facebook Ads"}
        assert txns["Gym"].status == TransactionStatus.PENDING
        assert txns["Al-Bank"].status == TransactionStatus.SUCCESS
        assert txns["Facebook Ads"].status == TransactionStatus.FAILED

        # only the settled income moved the balance
        assert business.current_balance == Decimal("24988.00")
        assert business.previous_balance == Decimal("24098.00")


class TestCredentials:
    def test_authenticate(self, db, user):
        assert users.authenticate(db, "ADA@example.com", "secret-pass").id == user.id

    def test_authenticate_wrong_password(self, db, user):
        with pytest.raises(InvalidCredentials):
            users.authenticate(db, "ada@example.com", "nope")

    def test_authenticate_unknown_email(self, db, user):
        with pytest.raises(InvalidCredentials):
            users.authenticate(db, "nobody@example.com", "secret-pass")

    def test_change_password(self, db, user):
        users.change_password(db, user.id, "secret-pass", "new-pass")
        assert users.authenticate(db, "ada@example.com", "new-pass").id == user.id
        with pytest.raises(InvalidCredentials):
            users.authenticate(db, "ada@example.com", "secret-pass")

    def test_change_password_wrong_current(self, db, user):
        before = user.password_hash
        with pytest.raises(IncorrectPassword) as exc:
            users.change_password(db, user.id, "wrong", "new-pass")
        assert isinstance(exc.value, InvalidCredentials)
        db.refresh(user)
        assert user.password_hash == before


class TestProfile:
    def test_update_profile(self, db, user):
        before = user.updated_at
        updated = users.update_profile(db, user.id, "Augusta", "King")
        assert (updated.first_name, updated.last_name) == ("Augusta", "King")
        assert updated.full_name == "Augusta King"
        assert updated.updated_at >= before

    def test_update_unknown_user(self, db):
        with pytest.raises(NotFound):
            users.update_profile(db, 999, "A", "B")

    def test_statistics(self, db, user):
        stats = users.user_statistics(db, user.id)
        assert stats["totalAccounts"] == 4
        assert stats["accountStatus"] == "Active"
        assert isinstance(stats["memberSince"], datetime)


class TestDeletion:
    def test_delete_blocked_while_accounts_exist(self, db, user):
        with pytest.raises(UserHasAccounts):
            users.delete_user(db, user.id)
        assert repository.get_user(db, user.id) is not None

    def test_delete_user_without_accounts(self, db, bare_user):
        users.delete_user(db, bare_user.id)
        assert repository.get_user(db, bare_user.id) is None

    def test_delete_unknown_user(self, db):
        with pytest.raises(NotFound):
            users.delete_user(db, 12345)

    def test_include_accounts_flag_loads_accounts(self, db, user):
        db.expunge_all()
        loaded = repository.get_user(db, user.id, include_accounts=True)
        assert "accounts" in loaded.__dict__
        assert all(isinstance(a, Account) for a in loaded.accounts)
