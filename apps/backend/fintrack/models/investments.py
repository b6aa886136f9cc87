"""Investment holdings: stocks, mutual funds, fixed deposits, long-term funds."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from fintrack.database import Base
from fintrack.models.base import SourceTrackedMixin, TimestampMixin, UserOwnedMixin, UUIDMixin


class Stock(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SourceTrackedMixin):
    """Equity holding on a broker platform."""

    __tablename__ = "stocks"

    symbol: Mapped[str] = mapped_column(String(50), nullable=False, comment="Trading symbol (TCS, RELIANCE)")
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    platform: Mapped[str | None] = mapped_column(String(50), nullable=True, comment="zerodha, groww, ...")
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    average_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    invested_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    current_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    current_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    def __repr__(self) -> str:
        return f"<Stock {self.symbol} x{self.quantity}>"


class MutualFund(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SourceTrackedMixin):
    """Mutual fund folio holding (CAMS / KFintech statements)."""

    __tablename__ = "mutual_funds"

    fund_name: Mapped[str] = mapped_column(String(255), nullable=False)
    folio_number: Mapped[str] = mapped_column(String(50), nullable=False)
    amc: Mapped[str | None] = mapped_column(String(100), nullable=True)
    units: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    nav: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    invested_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    current_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    plan_type: Mapped[str | None] = mapped_column(String(20), nullable=True, comment="direct / regular")
    option_type: Mapped[str | None] = mapped_column(String(20), nullable=True, comment="growth / idcw")

    def __repr__(self) -> str:
        return f"<MutualFund {self.folio_number} {self.fund_name}>"


class FixedDeposit(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SourceTrackedMixin):
    """Bank fixed deposit."""

    __tablename__ = "fixed_deposits"

    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    fd_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    principal_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    interest_rate: Mapped[Decimal | None] = mapped_column(Numeric(6, 3), nullable=True)
    tenure_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    maturity_date: Mapped[date] = mapped_column(Date, nullable=False)
    maturity_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True, default="active")

    def __repr__(self) -> str:
        return f"<FixedDeposit {self.bank_name} {self.principal_amount} -> {self.maturity_date}>"


class LongTermFund(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SourceTrackedMixin):
    """Retirement / long-term savings account (PPF, EPF, NPS)."""

    __tablename__ = "long_term_funds"

    fund_type: Mapped[str] = mapped_column(String(30), nullable=False, comment="ppf, epf, nps, ...")
    account_number: Mapped[str] = mapped_column(String(64), nullable=False)
    organization_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    def __repr__(self) -> str:
        return f"<LongTermFund {self.fund_type} {self.account_number}>"
