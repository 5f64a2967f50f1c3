"""
Test Models

Order schema exercising every kind of association the cascade handles.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table
from sqlalchemy.orm import declarative_base, relationship

from soft_delete import CASCADE_CALLBACKS, SoftDeleteMixin

Base = declarative_base()


order_tags = Table(
    "order_tags",
    Base.metadata,
    Column("order_id", Integer, ForeignKey("orders.id"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id"), primary_key=True),
)


class Customer(Base):
    """No soft-delete column"""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)


class Order(Base, SoftDeleteMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    status = Column(String(20), nullable=False, default="open")

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    notes = relationship("OrderNote", cascade="all, delete-orphan")
    shipments = relationship("Shipment", cascade="all, delete-orphan", info={CASCADE_CALLBACKS: True})
    tags = relationship("Tag", secondary=order_tags)

    def __repr__(self) -> str:
        return f"<Order {self.id} {self.status}>"


class OrderItem(Base, SoftDeleteMixin):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    sku = Column(String(50), nullable=False)

    order = relationship("Order", back_populates="items")


class OrderNote(Base):
    """Dependent without a repository; cascades remove it outright"""

    __tablename__ = "order_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    body = Column(String(255), nullable=False)


class Shipment(Base):
    """Soft deletes into a custom column"""

    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    carrier = Column(String(50), nullable=False)
    removed_at = Column(DateTime, nullable=True)


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)


class OrderLine(Base, SoftDeleteMixin):
    """Composite primary key"""

    __tablename__ = "order_lines"

    order_id = Column(Integer, ForeignKey("orders.id"), primary_key=True)
    line_no = Column(Integer, primary_key=True)
    sku = Column(String(50), nullable=False)
