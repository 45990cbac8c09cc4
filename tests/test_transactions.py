from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text

from finboard.database import SessionLocal
from finboard.errors import ImmutableTransaction, InvalidTransition, NotFound, ValidationFailed
from finboard.models import AccountType, Transaction, TransactionStatus, TransactionType
from finboard import accounts, repository, transactions

from conftest import FAILED, SUCCESS, account_of, make_txn


@pytest.fixture
def business(db, user):
    return accounts.update_balance(db, account_of(db, user).id, Decimal("200.00"))


@pytest.fixture
def second_session():
    """A separate session, standing in for a concurrent request."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


class TestCreate:
    def test_create_is_pending(self, db, business):
        before = datetime.now()
        txn = transactions.create_transaction(
            db, business.id, "Coffee Corner", "Food", Decimal("4.5"), TransactionType.EXPENSE, "latte"
        )
        assert txn.status == TransactionStatus.PENDING
        assert txn.amount == Decimal("4.50")
        assert txn.transaction_date >= before
        assert txn.account_id == business.id

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1.00"), Decimal("0.004")])
    def test_amount_must_be_positive(self, db, business, amount):
        with pytest.raises(ValidationFailed):
            transactions.create_transaction(db, business.id, "Shop", None, amount, TransactionType.EXPENSE)
        assert db.query(Transaction).count() == 0

    def test_unknown_account(self, db):
        with pytest.raises(NotFound):
            transactions.create_transaction(db, 999, "Shop", None, Decimal("1"), TransactionType.EXPENSE)

    def test_creating_does_not_touch_balance(self, db, business):
        transactions.create_transaction(db, business.id, "Shop", None, Decimal("50"), TransactionType.EXPENSE)
        db.refresh(business)
        assert business.current_balance == Decimal("200.00")


class TestSettlement:
    def test_success_expense(self, db, business):
        txn = make_txn(db, business, "30.00")

        settled = transactions.process_transaction(db, txn.id, SUCCESS)
        assert settled.status == SUCCESS

        db.refresh(business)
        assert business.current_balance == Decimal("170.00")
        assert business.previous_balance == Decimal("200.00")

        with pytest.raises(InvalidTransition):
            transactions.process_transaction(db, txn.id, SUCCESS)
        db.refresh(business)
        assert business.current_balance == Decimal("170.00")

    def test_success_income(self, db, business):
        txn = make_txn(db, business, "75.25", transaction_type=TransactionType.INCOME)
        transactions.process_transaction(db, txn.id, SUCCESS)
        db.refresh(business)
        assert business.current_balance == Decimal("275.25")
        assert business.previous_balance == Decimal("200.00")

    def test_failed_leaves_balance(self, db, business):
        txn = make_txn(db, business, "30.00")
        assert transactions.process_transaction(db, txn.id, FAILED).status == FAILED
        db.refresh(business)
        assert business.current_balance == Decimal("200.00")

        with pytest.raises(InvalidTransition):
            transactions.process_transaction(db, txn.id, SUCCESS)

    def test_expense_may_go_negative(self, db, business):
        txn = make_txn(db, business, "250.00")
        transactions.process_transaction(db, txn.id, SUCCESS)
        db.refresh(business)
        assert business.current_balance == Decimal("-50.00")

    def test_cannot_move_back_to_pending(self, db, business):
        txn = make_txn(db, business, "1.00")
        with pytest.raises(ValidationFailed):
            transactions.process_transaction(db, txn.id, TransactionStatus.PENDING)

    def test_unknown_transaction(self, db):
        with pytest.raises(NotFound):
            transactions.process_transaction(db, 4242, SUCCESS)

    def test_settlement_is_atomic(self, db, business, monkeypatch):
        txn = make_txn(db, business, "30.00")
        real_settle = transactions.settle

        def settle_then_crash(session, t, status):
            real_settle(session, t, status)
            raise RuntimeError("store went away")

        monkeypatch.setattr(transactions, "settle", settle_then_crash)
        with pytest.raises(RuntimeError):
            transactions.process_transaction(db, txn.id, SUCCESS)

        db.expire_all()
        assert repository.get_transaction(db, txn.id).status == TransactionStatus.PENDING
        assert repository.get_account(db, business.id).current_balance == Decimal("200.00")

    def test_settled_by_another_session(self, db, business, second_session):
        txn = make_txn(db, business, "30.00")

        # loaded the way a route does for its ownership check
        loaded = transactions.require_transaction(db, txn.id)
        assert loaded.account.user_id == business.user_id

        transactions.process_transaction(second_session, txn.id, SUCCESS)

        with pytest.raises(InvalidTransition):
            transactions.process_transaction(db, txn.id, SUCCESS)
        with pytest.raises(InvalidTransition):
            transactions.process_transaction(db, txn.id, FAILED)

        db.expire_all()
        assert repository.get_transaction(db, txn.id).status == SUCCESS
        assert repository.get_account(db, business.id).current_balance == Decimal("170.00")

class TestDelete:
    def test_settled_is_immutable(self, db, business):
        txn = make_txn(db, business, "10.00", status=SUCCESS)
        with pytest.raises(ImmutableTransaction):
            transactions.delete_transaction(db, txn.id)
        assert repository.get_transaction(db, txn.id) is not None

    @pytest.mark.parametrize("status", [None, FAILED])
    def test_delete_unsettled(self, db, business, status):
        txn = make_txn(db, business, "10.00", status=status)
        transactions.delete_transaction(db, txn.id)
        assert repository.get_transaction(db, txn.id) is None

    def test_settled_by_another_session_is_immutable(self, db, business, second_session):
        txn = make_txn(db, business, "10.00")
        assert transactions.require_transaction(db, txn.id).status == TransactionStatus.PENDING

        transactions.process_transaction(second_session, txn.id, SUCCESS)

        with pytest.raises(ImmutableTransaction):
            transactions.delete_transaction(db, txn.id)
        db.expire_all()
        assert repository.get_transaction(db, txn.id) is not None


class TestQueries:
    def test_search_is_case_insensitive_and_scoped(self, db, user, other_user, business):
        now = datetime.now()
        older = make_txn(db, business, "1.00", business="Starbucks Reserve", when=now - timedelta(days=2))
        newer = make_txn(db, business, "2.00", business="STARBUCKS", when=now - timedelta(days=1))
        make_txn(db, business, "3.00", business="Gym")
        make_txn(db, account_of(db, other_user), "4.00", business="Starbucks")

        found = transactions.search_transactions(db, user.id, "starbucks")
        assert [t.id for t in found] == [newer.id, older.id]

    def test_search_treats_wildcards_literally(self, db, user, business):
        make_txn(db, business, "1.00", business="100% Organic")
        make_txn(db, business, "1.00", business="Organic Store")
        assert [t.business_name for t in transactions.search_transactions(db, user.id, "%")] == ["100% Organic"]

    def test_recent_is_limited_to_ten(self, db, user, business):
        base = datetime.now() - timedelta(days=30)
        for i in range(12):
            make_txn(db, business, "1.00", business=f"Shop {i}", when=base + timedelta(days=i))

        recent = transactions.recent_transactions(db, user.id)
        assert len(recent) == 10
        assert recent[0].business_name == "Shop 11"

    def test_paging(self, db, user, business):
        base = datetime.now() - timedelta(days=30)
        for i in range(12):
            make_txn(db, business, "1.00", business=f"Shop {i}", when=base + timedelta(days=i))

        first = transactions.page_for_user(db, user.id, page=0, size=5)
        assert first["totalElements"] == 12
        assert first["totalPages"] == 3
        assert [t.business_name for t in first["items"]] == [f"Shop {i}" for i in (11, 10, 9, 8, 7)]

        last = transactions.page_for_user(db, user.id, page=2, size=5)
        assert len(last["items"]) == 2
        assert last["currentPage"] == 2

    def test_page_for_account(self, db, user, business):
        make_txn(db, business, "1.00")
        make_txn(db, account_of(db, user, AccountType.SAVINGS), "1.00")
        page = transactions.page_for_account(db, business.id)
        assert page["totalElements"] == 1

    def test_empty_page(self, db, user):
        page = transactions.page_for_user(db, user.id)
        assert page["items"] == []
        assert page["totalPages"] == 0

    def test_pending(self, db, user, business):
        pending = make_txn(db, business, "1.00")
        make_txn(db, business, "1.00", status=SUCCESS)
        make_txn(db, business, "1.00", status=FAILED)
        assert [t.id for t in transactions.pending_transactions(db, user.id)] == [pending.id]


def test_unknown_stored_status_fails_loudly(db, business):
    txn = make_txn(db, business, "1.00")
    db.execute(text("UPDATE transactions SET status = 'BOGUS' WHERE id = :id"), {"id": txn.id})
    db.commit()
    db.expire_all()

    with pytest.raises(LookupError):
        db.query(Transaction).filter(Transaction.id == txn.id).one()
