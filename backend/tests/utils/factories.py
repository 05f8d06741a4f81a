"""Test data factories using Faker for generating realistic test data."""
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from faker import Faker
from sqlalchemy.ext.asyncio import AsyncSession

from charmshop.models import Expense, ExpenseCategory, Order, OrderItem, OrderStatus, Product

fake = Faker()

CHARM_NAMES = ["Heart Charm", "Star Charm", "Moon Charm", "Evil Eye Charm", "Butterfly Charm", "Clover Charm"]


class ProductFactory:
    """Factory for creating test product data."""

    @staticmethod
    def create(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        data = {
            "id": uuid4(),
            "name": f"{fake.random_element(CHARM_NAMES)} {fake.color_name()}",
            "product_code": f"CS-{fake.unique.random_int(min=1000, max=99999)}",
            "base_price": Decimal(fake.random_int(min=199, max=4999)),
            "is_active": True,
            "created_at": datetime.utcnow(),
        }
        if overrides:
            data.update(overrides)
        return data


class OrderFactory:
    """Factory for creating test order data."""

    @staticmethod
    def create(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        data = {
            "id": uuid4(),
            "order_number": f"ORD-{fake.unique.random_int(min=100000, max=999999)}",
            "customer_name": fake.name(),
            "total_amount": Decimal(fake.random_int(min=300, max=9000)),
            "status": OrderStatus.DELIVERED,
            "created_at": datetime.utcnow(),
        }
        if overrides:
            data.update(overrides)
        return data


class OrderItemFactory:
    """Factory for order line items. The product snapshot carries the product name."""

    @staticmethod
    def create(overrides: dict[str, Any] | None = None, product_name: str | None = None) -> dict[str, Any]:
        quantity = fake.random_int(min=1, max=4)
        unit_price = Decimal(fake.random_int(min=199, max=2999))
        data = {
            "id": uuid4(),
            "quantity": quantity,
            "unit_price": unit_price,
            "total_price": unit_price * quantity,
            "product_snapshot": {"product": {"name": product_name or fake.random_element(CHARM_NAMES)}},
        }
        if overrides:
            data.update(overrides)
        return data


class ExpenseCategoryFactory:
    @staticmethod
    def create(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        data = {
            "id": uuid4(),
            "name": f"{fake.unique.word().title()} Supplies",
            "is_active": True,
        }
        if overrides:
            data.update(overrides)
        return data


class ExpenseFactory:
    @staticmethod
    def create(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        data = {
            "id": uuid4(),
            "title": fake.sentence(nb_words=3),
            "amount": Decimal(fake.random_int(min=100, max=5000)),
            "expense_date": datetime.utcnow(),
            "created_at": datetime.utcnow(),
        }
        if overrides:
            data.update(overrides)
        return data


async def create_product(db: AsyncSession, **overrides: Any) -> Product:
    product = Product(**ProductFactory.create(overrides))
    db.add(product)
    await db.commit()
    return product


async def create_order(
    db: AsyncSession,
    items: list[dict[str, Any]] | None = None,
    **overrides: Any,
) -> Order:
    """Create an order and its line items. Each item dict overrides OrderItemFactory fields."""
    order = Order(**OrderFactory.create(overrides))
    for item in items or []:
        item = dict(item)
        product_name = item.pop("product_name", None)
        order.items.append(OrderItem(**OrderItemFactory.create(item, product_name=product_name)))
    db.add(order)
    await db.commit()
    return order


async def create_category(db: AsyncSession, **overrides: Any) -> ExpenseCategory:
    category = ExpenseCategory(**ExpenseCategoryFactory.create(overrides))
    db.add(category)
    await db.commit()
    return category


async def create_expense(db: AsyncSession, category: ExpenseCategory, **overrides: Any) -> Expense:
    expense = Expense(**ExpenseFactory.create({"category_id": category.id, **overrides}))
    db.add(expense)
    await db.commit()
    return expense
