"""
Catalog Module - Models
========================
Product with live price and stock. The catalog is the source of truth for
availability; cart entries and order lines keep their own snapshots.
"""

from sqlalchemy import Column, Integer, String, Numeric, Text, DateTime
from sqlalchemy.sql import func
from config.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, default=0, nullable=False)     # stock on hand
    image = Column(String, nullable=True)
    category = Column(String, nullable=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def in_stock(self) -> bool:
        return (self.quantity or 0) > 0

    def __repr__(self):
        return f"<Product {self.name}>"
