"""
Master Tables: Company, Warehouse, Product, Counterparty
"""
from sqlalchemy import Column, String, Boolean, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship
import enum

from stockflow.core import Base
from .base import UUIDMixin, TimestampMixin


class CounterpartyKind(str, enum.Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


class Company(Base, UUIDMixin, TimestampMixin):
    """Company/Tenant"""
    __tablename__ = "company"

    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    invoice_prefix = Column(String(20))  # Used for sale / sale return numbering

    # Relationships
    warehouses = relationship("Warehouse", back_populates="company")
    orders = relationship("OrderHeader", back_populates="company")

class Warehouse(Base, UUIDMixin, TimestampMixin):
    """Warehouse / Shop"""
    __tablename__ = "warehouse"

    company_id = Column(Uuid(as_uuid=True), ForeignKey("company.id"), nullable=False)
    code = Column(String(20), nullable=False)
    name = Column(String(200), nullable=False)
    address = Column(Text)
    invoice_prefix = Column(String(20))  # Used for proforma numbering
    is_active = Column(Boolean, default=True)

    # Relationships
    company = relationship("Company", back_populates="warehouses")
    stock = relationship("ProductStock", back_populates="warehouse")

class Product(Base, UUIDMixin, TimestampMixin):
    """Product Master"""
    __tablename__ = "product"

    sku = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(300), nullable=False)
    is_active = Column(Boolean, default=True)

    # Relationships
    stock = relationship("ProductStock", back_populates="product")

class Counterparty(Base, UUIDMixin, TimestampMixin):
    """Customer or Supplier"""
    __tablename__ = "counterparty"

    name = Column(String(200), nullable=False)
    kind = Column(String(20), default=CounterpartyKind.CUSTOMER.value, nullable=False)
    phone = Column(String(30))
    email = Column(String(200))

    # Relationships
    orders = relationship("OrderHeader", back_populates="counterparty")
