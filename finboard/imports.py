import io
import logging
from decimal import Decimal, InvalidOperation

import pandas as pd
from sqlalchemy.orm import Session

from .database import transaction_scope
from .errors import ValidationFailed
from .models import Account, Transaction, TransactionType, to_money
from . import transactions

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 10

# Column aliases (extend anytime)
COLUMN_ALIASES = {
    "date": ["date", "transaction_date", "transactiondate", "txn_date", "value_date", "posting_date"],
    "business": ["business_name", "businessname", "business", "merchant", "payee", "counterparty"],
    "description": ["description", "narration", "particulars", "details", "remark", "remarks"],
    "amount": ["amount", "amt", "transaction_amount"],
    "debit": ["debit", "dr", "withdrawal", "withdrawals"],
    "credit": ["credit", "cr", "deposit", "deposits"],
    "category": ["category", "expense_category", "head"],
    "type": ["type", "transaction_type", "transactiontype", "direction"],
}

INCOME_WORDS = {"income", "credit", "cr", "in", "inflow", "deposit"}
EXPENSE_WORDS = {"expense", "debit", "dr", "out", "outflow", "withdrawal"}

OUTPUT_COLUMNS = ["transaction_date", "business_name", "category", "amount", "transaction_type", "description"]


def _find_col(df: pd.DataFrame, candidates: list[str]) -> str | None:
    cols = {str(c).strip().lower(): c for c in df.columns}
    for key in candidates:
        if key in cols:
            return cols[key]
    return None


def _to_decimal(x) -> Decimal:
    if x is None or (not isinstance(x, str) and pd.isna(x)):
        return Decimal("0")
    s = str(x).replace(",", "").strip()
    if s == "":
        return Decimal("0")
    try:
        d = Decimal(s)
    except InvalidOperation:
        raise ValidationFailed(f"Invalid amount: {x}")
    if not d.is_finite():
        raise ValidationFailed(f"Invalid amount: {x}")
    return d


def _to_type(value, signed_amount: Decimal) -> TransactionType:
    s = str(value or "").strip().lower()
    if s in INCOME_WORDS:
        return TransactionType.INCOME
    if s in EXPENSE_WORDS:
        return TransactionType.EXPENSE
    return TransactionType.INCOME if signed_amount >= 0 else TransactionType.EXPENSE


def _text(value) -> str | None:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    s = str(value).strip()
    return s or None


def read_file_to_df(filename: str, content: bytes) -> pd.DataFrame:
    name = (filename or "").lower()
    buf = io.BytesIO(content)

    if name.endswith(".csv"):
        return pd.read_csv(buf, dtype=str, keep_default_na=False)
    if name.endswith(".xlsx") or name.endswith(".xls"):
        return pd.read_excel(buf, dtype=str)

    raise ValidationFailed("Unsupported file. Upload CSV or XLSX.")


def normalize_rows(df: pd.DataFrame) -> tuple[list[dict], dict]:
    """
    Required: a date column and either amount or debit/credit columns.
    Optional: business name, description, category, type.

    Rows come back with Decimal amounts (> 0) and a TransactionType;
    the sign of ``amount`` decides the type when no type column exists.
    """
    if df is None or df.empty:
        return [], {"rows": 0}

    date_col = _find_col(df, COLUMN_ALIASES["date"])
    business_col = _find_col(df, COLUMN_ALIASES["business"])
    desc_col = _find_col(df, COLUMN_ALIASES["description"])
    amt_col = _find_col(df, COLUMN_ALIASES["amount"])
    debit_col = _find_col(df, COLUMN_ALIASES["debit"])
    credit_col = _find_col(df, COLUMN_ALIASES["credit"])
    cat_col = _find_col(df, COLUMN_ALIASES["category"])
    type_col = _find_col(df, COLUMN_ALIASES["type"])

    if not date_col:
        raise ValidationFailed("Could not detect a date column. Use 'date' or 'transaction_date'.")
    if not amt_col and not (debit_col or credit_col):
        raise ValidationFailed("Could not detect amount OR debit/credit columns.")
    if not business_col and not desc_col:
        raise ValidationFailed("Need a business name or description column.")

    dates = pd.to_datetime(df[date_col], errors="coerce")

    rows = []
    for i, (idx, raw) in enumerate(df.iterrows(), start=2):  # header is line 1
        ts = dates.loc[idx]
        if pd.isna(ts):
            raise ValidationFailed(f"Row {i}: could not parse date '{raw[date_col]}'")

        if amt_col:
            signed = _to_decimal(raw[amt_col])
        else:
            credit = _to_decimal(raw[credit_col]) if credit_col else Decimal("0")
            debit = _to_decimal(raw[debit_col]) if debit_col else Decimal("0")
            signed = credit - debit

        amount = to_money(abs(signed))
        if amount <= 0:
            raise ValidationFailed(f"Row {i}: amount must be greater than 0")

        description = _text(raw[desc_col]) if desc_col else None
        business = (_text(raw[business_col]) if business_col else None) or description
        if not business:
            raise ValidationFailed(f"Row {i}: business name is empty")

        rows.append({
            "transaction_date": ts.to_pydatetime().replace(tzinfo=None),
            "business_name": business[:255],
            "category": (_text(raw[cat_col]) if cat_col else None),
            "amount": amount,
            "transaction_type": _to_type(raw[type_col] if type_col else None, signed),
            "description": description[:500] if description else None,
        })

    detected = {
        "date_col": date_col,
        "business_col": business_col,
        "description_col": desc_col,
        "amount_col": amt_col,
        "debit_col": debit_col,
        "credit_col": credit_col,
        "category_col": cat_col,
        "type_col": type_col,
        "rows": len(rows),
    }
    return rows, detected


def preview(filename: str, content: bytes) -> dict:
    rows, detected = normalize_rows(read_file_to_df(filename, content))
    out = []
    for r in rows[:PREVIEW_ROWS]:
        item = dict(r)
        item["transaction_date"] = r["transaction_date"].isoformat()
        item["transaction_type"] = r["transaction_type"].name
        out.append(item)
    return {"columns": OUTPUT_COLUMNS, "preview": out, "detected": detected}


def commit(db: Session, account: Account, filename: str, content: bytes) -> list[Transaction]:
    """Record every row as a PENDING transaction on ``account``; all or nothing."""
    rows, _ = normalize_rows(read_file_to_df(filename, content))
    if not rows:
        raise ValidationFailed("No transactions found in file")

    with transaction_scope(db):
        created = [
            transactions.add_transaction(
                db,
                account,
                r["business_name"],
                r["category"],
                r["amount"],
                r["transaction_type"],
                r["description"],
                transaction_date=r["transaction_date"],
            )
            for r in rows
        ]

    logger.info("Imported %d transactions from %s into account %s", len(created), filename, account.id)
    return created
