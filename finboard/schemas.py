from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .models import Account, AccountType, Transaction, TransactionStatus, TransactionType, User


class _In(BaseModel):
    class Config:
        populate_by_name = True
        str_strip_whitespace = True


# ---------- Auth / users ----------
class RegisterIn(_In):
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _email_shape(cls, v: str) -> str:
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("must be a valid email address")
        return v.lower()


class LoginIn(_In):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdateIn(_In):
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)


class PasswordChangeIn(_In):
    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=1)


# ---------- Accounts ----------
def _parse_account_type(v):
    if isinstance(v, AccountType):
        return v
    name = str(v or "").strip().upper()
    if name not in AccountType.__members__:
        raise ValueError(f"must be one of {', '.join(AccountType.__members__)}")
    return AccountType[name]


class AccountCreateIn(_In):
    account_name: str = Field(..., alias="accountName", min_length=1, max_length=255)
    account_type: AccountType = Field(..., alias="accountType")
    initial_balance: Decimal = Field(..., alias="initialBalance", gt=0, max_digits=15, decimal_places=2)

    @field_validator("account_type", mode="before")
    @classmethod
    def _account_type(cls, v):
        return _parse_account_type(v)


class AccountUpdateIn(_In):
    account_name: Optional[str] = Field(None, alias="accountName", min_length=1, max_length=255)
    current_balance: Optional[Decimal] = Field(None, alias="currentBalance", gt=0, max_digits=15, decimal_places=2)
    spending_limit: Optional[Decimal] = Field(None, alias="spendingLimit", ge=0, max_digits=15, decimal_places=2)
    total_limit: Optional[Decimal] = Field(None, alias="totalLimit", ge=0, max_digits=15, decimal_places=2)
    card_type: Optional[str] = Field(None, alias="cardType", max_length=32)


class BalanceUpdateIn(_In):
    balance: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)


class SpendingLimitIn(_In):
    spending_limit: Decimal = Field(..., alias="spendingLimit", ge=0, max_digits=15, decimal_places=2)


class TransferIn(_In):
    from_account_id: int = Field(..., alias="fromAccountId")
    to_account_id: int = Field(..., alias="toAccountId")
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)


# ---------- Transactions ----------
class TransactionCreateIn(_In):
    account_id: int = Field(..., alias="accountId")
    business_name: str = Field(..., alias="businessName", min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    transaction_type: TransactionType = Field(..., alias="transactionType")
    description: Optional[str] = Field(None, max_length=500)


class StatusUpdateIn(_In):
    status: TransactionStatus


# ---------- Projections ----------
def user_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "firstName": u.first_name,
        "lastName": u.last_name,
        "fullName": u.full_name,
        "email": u.email,
        "createdAt": u.created_at,
        "updatedAt": u.updated_at,
    }


def account_to_dict(a: Account) -> dict:
    out = {
        "id": a.id,
        "userId": a.user_id,
        "accountName": a.account_name,
        "accountType": a.account_type.name,
        "displayName": a.account_type.display_name,
        "currentBalance": a.current_balance,
        "previousBalance": a.previous_balance,
        "percentageChange": a.percentage_change(),
        "createdAt": a.created_at,
        "updatedAt": a.updated_at,
    }
    if a.is_wallet:
        out.update({
            "spendingLimit": a.spending_limit,
            "totalLimit": a.total_limit,
            "cardNumber": a.card_number,
            "cardType": a.card_type,
        })
    return out


def transaction_to_dict(t: Transaction) -> dict:
    return {
        "id": t.id,
        "accountId": t.account_id,
        "businessName": t.business_name,
        "category": t.category,
        "amount": t.amount,
        "transactionType": t.transaction_type.name,
        "status": t.status.name,
        "description": t.description,
        "transactionDate": t.transaction_date,
        "createdAt": t.created_at,
        "updatedAt": t.updated_at,
    }
