import enum
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce ``value`` to a 2-decimal ``Decimal`` (half-up). Floats go through ``str``."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class AccountType(enum.Enum):
    BUSINESS = "Business account"
    TAX_RESERVE = "Tax Reserve"
    SAVINGS = "Savings"
    WALLET = "Wallet"

    @property
    def display_name(self) -> str:
        return self.value


class TransactionType(enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionStatus(enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


def _enum_column(enum_cls, length: int):
    # Stored by member name; unknown names raise LookupError on load.
    return Enum(
        enum_cls,
        name=enum_cls.__name__.lower(),
        native_enum=False,
        validate_strings=True,
        create_constraint=False,
        length=length,
    )


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    accounts = relationship("Account", back_populates="user", order_by="Account.account_type")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (UniqueConstraint("user_id", "account_type", name="uq_account_user_type"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    account_name = Column(String(255), nullable=False)
    account_type = Column(_enum_column(AccountType, 20), nullable=False)
    current_balance = Column(Numeric(15, 2), nullable=False)
    previous_balance = Column(Numeric(15, 2), nullable=True)

    # wallet only
    spending_limit = Column(Numeric(15, 2), nullable=True)
    total_limit = Column(Numeric(15, 2), nullable=True)
    card_number = Column(String(32), nullable=True)
    card_type = Column(String(32), nullable=True)  # VISA, MASTERCARD, ...

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    user = relationship("User", back_populates="accounts")
    transactions = relationship("Transaction", back_populates="account")

    @property
    def is_wallet(self) -> bool:
        return self.account_type == AccountType.WALLET

    def snapshot_and_set(self, new_balance) -> None:
        """Remember the current balance as previous, then overwrite it."""
        self.previous_balance = self.current_balance
        self.current_balance = to_money(new_balance)

    def percentage_change(self) -> Decimal:
        previous = self.previous_balance
        if previous is None or Decimal(previous) == 0:
            return Decimal("0")
        change = Decimal(self.current_balance) - Decimal(previous)
        ratio = (change / Decimal(previous)).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
        return ratio * 100


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), index=True, nullable=False)

    business_name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)  # always > 0, sign comes from transaction_type
    transaction_type = Column(_enum_column(TransactionType, 10), nullable=False)
    status = Column(_enum_column(TransactionStatus, 10), nullable=False, default=TransactionStatus.PENDING)
    description = Column(String(500), nullable=True)

    transaction_date = Column(DateTime, default=datetime.now, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    account = relationship("Account", back_populates="transactions")
