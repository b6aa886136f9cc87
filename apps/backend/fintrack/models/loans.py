"""EMI (equated monthly instalment) loans."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from fintrack.database import Base
from fintrack.models.base import SourceTrackedMixin, TimestampMixin, UserOwnedMixin, UUIDMixin


class Emi(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SourceTrackedMixin):
    """Loan repaid in fixed monthly instalments."""

    __tablename__ = "emis"

    loan_name: Mapped[str] = mapped_column(String(255), nullable=False)
    loan_type: Mapped[str | None] = mapped_column(String(30), nullable=True, comment="home, car, personal, ...")
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    principal_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    interest_rate: Mapped[Decimal | None] = mapped_column(Numeric(6, 3), nullable=True)
    tenure_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    emi_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True, default="active")

    def __repr__(self) -> str:
        return f"<Emi {self.loan_name} {self.emi_amount} from {self.start_date}>"
