from datetime import date
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from stockflow.application import create_app
from stockflow.core import Database
from stockflow.models import Company, Warehouse, Product, Counterparty, CounterpartyKind
from stockflow.services import StockService

ORDER_DATE = date(2026, 3, 15)


@pytest.fixture
def database(tmp_path):
    # File-backed so every session gets its own connection, like production
    database = Database(f"sqlite:///{tmp_path / 'stockflow.db'}")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def seed(database):
    with database.session() as db:
        company = Company(code="ACME", name="Acme Trading")
        db.add(company)
        db.flush()

        warehouse_a = Warehouse(company_id=company.id, code="WA", name="Main Shop", invoice_prefix="WA")
        warehouse_b = Warehouse(company_id=company.id, code="WB", name="Depot")
        product_1 = Product(sku="SKU-001", name="Olive Oil 1L")
        product_2 = Product(sku="SKU-002", name="Couscous 500g")
        customer = Counterparty(name="Walk-in Customer", kind=CounterpartyKind.CUSTOMER.value)
        supplier = Counterparty(name="Atlas Wholesale", kind=CounterpartyKind.SUPPLIER.value)
        db.add_all([warehouse_a, warehouse_b, product_1, product_2, customer, supplier])
        db.commit()

        return SimpleNamespace(
            company_id=company.id,
            warehouse_a=warehouse_a.id,
            warehouse_b=warehouse_b.id,
            product_1=product_1.id,
            product_2=product_2.id,
            customer_id=customer.id,
            supplier_id=supplier.id,
        )


@pytest.fixture
def db(database, seed):
    with database.session() as session:
        yield session


@pytest.fixture
def client(database, seed):
    app = create_app(database)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def order_payload(seed):
    """Builds a JSON-style order body; counterparty filled in for the types that need one"""
    def build(order_type="sale", items=None, **overrides):
        payload = {
            "company_id": str(seed.company_id),
            "warehouse_id": str(seed.warehouse_a),
            "order_type": order_type,
            "order_date": ORDER_DATE.isoformat(),
            "items": items if items is not None else [
                {"product_id": str(seed.product_1), "quantity": 5, "unit_price": "10.00"}
            ],
        }
        if order_type in ("sale", "sale_return", "proforma"):
            payload["counterparty_id"] = str(seed.customer_id)
        elif order_type in ("purchase", "purchase_return"):
            payload["counterparty_id"] = str(seed.supplier_id)
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def stock_level(database):
    """Reads stock in a short-lived session of its own"""
    def read(product_id, warehouse_id):
        with database.session() as session:
            return StockService.get_quantity(session, product_id, warehouse_id)
    return read
