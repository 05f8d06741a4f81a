"""Expense and expense category models."""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy import Uuid

from charmshop.models.base import Base


class ExpenseCategory(Base):
    """Expense category (materials, packaging, shipping, ...)."""

    __tablename__ = "expense_categories"

    name = Column(String(100), nullable=False, unique=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<ExpenseCategory(id={self.id}, name={self.name})>"


class Expense(Base):
    """Business expense recorded by an admin."""

    __tablename__ = "expenses"

    title = Column(String(200), nullable=False)
    amount = Column(Numeric(precision=10, scale=2), nullable=False)
    category_id = Column(Uuid(as_uuid=True), ForeignKey("expense_categories.id"), nullable=False, index=True)
    expense_date = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Expense(id={self.id}, title={self.title}, amount={self.amount})>"
