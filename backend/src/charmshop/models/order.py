"""Order and order line item models."""
import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy import Uuid
from sqlalchemy.orm import relationship

from charmshop.models.base import Base, JSONType


class OrderStatus(str, enum.Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    PAYMENT_PENDING = "payment_pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Statuses that count as realized revenue on dashboard widgets
REVENUE_STATUSES = [
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]


class Order(Base):
    """Customer order."""

    __tablename__ = "orders"

    order_number = Column(String(20), nullable=False, unique=True)
    customer_name = Column(String(100), nullable=False)
    total_amount = Column(Numeric(precision=10, scale=2), nullable=False)
    status = Column(
        Enum(OrderStatus, values_callable=lambda x: [e.value for e in x], native_enum=False, length=20),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    )
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number={self.order_number}, status={self.status})>"


class OrderItem(Base):
    """
    Order line item.

    product_snapshot is a denormalized copy of the product taken at checkout,
    so analytics never depend on the current catalog row.
    """

    __tablename__ = "order_items"

    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=True, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(precision=10, scale=2), nullable=False)
    total_price = Column(Numeric(precision=10, scale=2), nullable=True)
    product_snapshot = Column(JSONType, nullable=False, default=dict)

    order = relationship("Order", back_populates="items")

    def __repr__(self) -> str:
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, quantity={self.quantity})>"
