from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from .models import Account, Transaction, User
from . import accounts, reporting, transactions

STATEMENT_TRANSACTIONS = 20


def build_statement_pdf(
    user: User,
    account_rows: list[Account],
    total_balance: Decimal,
    income: Decimal,
    expense: Decimal,
    recent: list[Transaction],
    generated_at: Optional[datetime] = None,
) -> bytes:
    generated_at = generated_at or datetime.now()

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    w, h = A4

    y = h - 50
    c.setFont("Helvetica-Bold", 16)
    c.drawString(50, y, "Account Statement")
    y -= 20

    c.setFont("Helvetica", 11)
    c.drawString(50, y, f"Customer: {user.full_name} <{user.email}>")
    y -= 16
    c.drawString(50, y, f"Generated: {generated_at:%Y-%m-%d %H:%M}")
    y -= 24

    c.setFont("Helvetica-Bold", 12)
    c.drawString(50, y, "Accounts")
    y -= 16
    c.setFont("Helvetica", 10)
    for a in account_rows:
        c.drawString(50, y, f"{a.account_name} ({a.account_type.name}): {Decimal(a.current_balance):.2f}")
        y -= 14
    c.setFont("Helvetica-Bold", 10)
    c.drawString(50, y, f"Total balance: {total_balance:.2f}")
    y -= 24

    c.setFont("Helvetica", 11)
    c.drawString(50, y, f"Income this year: {income:.2f}")
    y -= 16
    c.drawString(50, y, f"Expenses this year: {expense:.2f}")
    y -= 24

    c.setFont("Helvetica-Bold", 12)
    c.drawString(50, y, f"Recent Transactions (last {STATEMENT_TRANSACTIONS})")
    y -= 16
    c.setFont("Helvetica", 10)

    for t in recent[:STATEMENT_TRANSACTIONS]:
        line = (
            f"{t.transaction_date:%Y-%m-%d} | {t.transaction_type.name} | {t.status.name} | "
            f"{t.category or '-'} | {Decimal(t.amount):.2f} | {t.business_name}"
        )
        c.drawString(50, y, line[:110])
        y -= 14
        if y < 60:
            c.showPage()
            y = h - 50
            c.setFont("Helvetica", 10)

    c.showPage()
    c.save()

    pdf = buf.getvalue()
    buf.close()
    return pdf


def statement_for_user(db: Session, user: User, now: Optional[datetime] = None) -> bytes:
    now = now or datetime.now()
    start, end = reporting.period_window("year", now)
    return build_statement_pdf(
        user,
        accounts.list_accounts(db, user.id),
        accounts.get_total_balance(db, user.id),
        reporting.total_income(db, user.id, start, end),
        reporting.total_expenses(db, user.id, start, end),
        transactions.recent_transactions(db, user.id, limit=STATEMENT_TRANSACTIONS),
        generated_at=now,
    )
