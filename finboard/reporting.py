"""Dashboard aggregates derived from settled transactions.

Everything is summed in Python with ``Decimal`` so the totals are exact on
every database backend, including SQLite which has no native decimal type.
"""
from calendar import monthrange
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .errors import ValidationFailed
from .models import Transaction, TransactionStatus, TransactionType, to_money
from . import repository

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
PERIODS = ("current", "last", "quarter", "year")
OTHERS = "Others"

ZERO = Decimal("0.00")


def _settled(db: Session, user_id: int):
    return repository.user_transactions_query(db, user_id).filter(Transaction.status == TransactionStatus.SUCCESS)


def _between(q, start: datetime, end: datetime):
    return q.filter(Transaction.transaction_date >= start, Transaction.transaction_date <= end)


def monthly_flow(db: Session, user_id: int, year: int) -> dict:
    """12 income and 12 expense buckets for ``year``; empty months are 0."""
    if year < 1 or year > 9998:
        raise ValidationFailed("year out of range")

    start = datetime(year, 1, 1)
    end = datetime(year + 1, 1, 1)
    rows = (
        _settled(db, user_id)
        .filter(Transaction.transaction_date >= start, Transaction.transaction_date < end)
        .with_entities(Transaction.transaction_date, Transaction.transaction_type, Transaction.amount)
        .all()
    )

    income = [ZERO] * 12
    expense = [ZERO] * 12
    for txn_date, ttype, amount in rows:
        idx = txn_date.month - 1
        if ttype == TransactionType.INCOME:
            income[idx] += Decimal(amount)
        else:
            expense[idx] += Decimal(amount)

    return {
        "income": [to_money(v) for v in income],
        "expense": [to_money(v) for v in expense],
        "months": list(MONTH_LABELS),
        "year": year,
    }


def spending_by_category(db: Session, user_id: int, start: datetime, end: datetime) -> list[tuple[str, Decimal]]:
    """Settled expenses in ``[start, end]`` per category, largest first."""
    rows = (
        _between(_settled(db, user_id), start, end)
        .filter(Transaction.transaction_type == TransactionType.EXPENSE)
        .with_entities(Transaction.category, Transaction.amount)
        .all()
    )

    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for category, amount in rows:
        key = (category or "").strip() or OTHERS
        totals[key] += Decimal(amount)

    return sorted(((k, to_money(v)) for k, v in totals.items()), key=lambda kv: (-kv[1], kv[0]))


def _total(db: Session, user_id: int, ttype: TransactionType, start: datetime, end: datetime) -> Decimal:
    rows = (
        _between(_settled(db, user_id), start, end)
        .filter(Transaction.transaction_type == ttype)
        .with_entities(Transaction.amount)
        .all()
    )
    return to_money(sum((Decimal(a) for (a,) in rows), ZERO))


def total_income(db: Session, user_id: int, start: datetime, end: datetime) -> Decimal:
    return _total(db, user_id, TransactionType.INCOME, start, end)


def total_expenses(db: Session, user_id: int, start: datetime, end: datetime) -> Decimal:
    return _total(db, user_id, TransactionType.EXPENSE, start, end)


def status_counts(db: Session, user_id: int) -> dict[str, int]:
    counts = {s.name: 0 for s in TransactionStatus}
    rows = (
        repository.user_transactions_query(db, user_id)
        .with_entities(Transaction.status, func.count(Transaction.id))
        .group_by(Transaction.status)
        .all()
    )
    for status, n in rows:
        counts[status.name] = n
    return counts


def period_window(period: str, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Resolve a statistics period name to an inclusive ``(start, end)`` window."""
    now = now or datetime.now()
    p = (period or "").strip().lower()

    if p == "current":
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), now
    if p == "last":
        last = now.replace(day=1) - timedelta(days=1)
        start = last.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        end = last.replace(day=monthrange(last.year, last.month)[1], hour=23, minute=59, second=59, microsecond=999999)
        return start, end
    if p == "quarter":
        first_month = ((now.month - 1) // 3) * 3 + 1
        return now.replace(month=first_month, day=1, hour=0, minute=0, second=0, microsecond=0), now
    if p == "year":
        return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0), now

    raise ValidationFailed(f"Unknown period '{period}'. Use one of: {', '.join(PERIODS)}")


def category_statistics(db: Session, user_id: int, period: str, now: Optional[datetime] = None) -> dict:
    start, end = period_window(period, now)
    categories = spending_by_category(db, user_id, start, end)
    return {
        "categories": [{"category": c, "amount": a} for c, a in categories],
        "total": to_money(sum((a for _, a in categories), ZERO)),
        "period": period.strip().lower(),
        "startDate": start,
        "endDate": end,
    }


def summary(db: Session, user_id: int, period: str, now: Optional[datetime] = None) -> dict:
    start, end = period_window(period, now)
    income = total_income(db, user_id, start, end)
    expense = total_expenses(db, user_id, start, end)
    return {
        "income": income,
        "expense": expense,
        "net": income - expense,
        "statusCounts": status_counts(db, user_id),
        "period": period.strip().lower(),
        "startDate": start,
        "endDate": end,
    }
