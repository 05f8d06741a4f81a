"""Product model (complete charm + chain jewelry pieces)."""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Numeric, String

from charmshop.models.base import Base


class Product(Base):
    """
    Catalog product.

    Only the columns read by analytics and dashboard widgets are mapped here;
    catalog management lives in the storefront CRUD layer.
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False)
    product_code = Column(String(50), nullable=True, unique=True)
    base_price = Column(Numeric(precision=10, scale=2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name}, active={self.is_active})>"
