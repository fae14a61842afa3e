from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import backoffice.persistence.pg as pg
from backoffice.core.config import get_settings
from backoffice.domain.orders.commands import CreateOrderInput
from backoffice.persistence.models import Base, CustomerModel, OrganizationModel, ProductVariantModel

ORG_ID = "org-test"
ADDRESS = {"postal_code": "150-0001", "prefecture": "Tokyo", "city": "Shibuya-ku", "line1": "1-2-3 Jingumae"}


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite"


@pytest.fixture(scope="session", autouse=True)
def configure_test_engine(test_db_path: Path):
    settings = get_settings()
    settings.bootstrap_demo_on_startup = False

    engine = create_engine(
        f"sqlite+pysqlite:///{test_db_path}",
        future=True,
        connect_args={"check_same_thread": False, "timeout": settings.db_lock_timeout_seconds},
    )
    TestSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    pg.engine = engine
    pg.SessionLocal = TestSessionLocal

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables(configure_test_engine):
    yield
    with pg.engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def client(configure_test_engine):
    from backoffice.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def session(configure_test_engine):
    with pg.session_scope() as s:
        yield s


@pytest.fixture()
def make_catalog(configure_test_engine):
    """Commit an organization plus variants given as ``{variant_id: stock}``."""

    def _make(
        stocks: dict[str, int],
        organization_id: str = ORG_ID,
        price: int = 1000,
        free_shipping_threshold: int | None = None,
        flat_shipping_fee: int | None = None,
        tax_rate_bps: int | None = None,
    ) -> dict[str, int]:
        now = datetime.now(timezone.utc)
        with pg.session_scope() as s:
            if s.get(OrganizationModel, organization_id) is None:
                s.add(
                    OrganizationModel(
                        id=organization_id,
                        name=f"Shop {organization_id}",
                        free_shipping_threshold=free_shipping_threshold,
                        flat_shipping_fee=flat_shipping_fee,
                        tax_rate_bps=tax_rate_bps,
                        created_at=now,
                    )
                )
            for variant_id, stock in stocks.items():
                s.add(
                    ProductVariantModel(
                        id=variant_id,
                        organization_id=organization_id,
                        product_id=f"prod-{variant_id}",
                        product_name=f"Product {variant_id}",
                        name=f"Variant {variant_id}",
                        sku=f"SKU-{variant_id}".upper(),
                        price=price,
                        stock=stock,
                        low_stock_threshold=5,
                        lock_version=0,
                        updated_at=now,
                    )
                )
        return stocks

    return _make


@pytest.fixture()
def make_customer(configure_test_engine):
    def _make(customer_id: str = "cus-1", organization_id: str = ORG_ID, name: str = "Taro Sato", email: str = "taro@example.com"):
        with pg.session_scope() as s:
            s.add(
                CustomerModel(
                    id=customer_id,
                    organization_id=organization_id,
                    name=name,
                    email=email,
                    created_at=datetime.now(timezone.utc),
                )
            )
        return customer_id

    return _make


def order_input(items: list[tuple[str, int]], organization_id: str = ORG_ID, **overrides) -> CreateOrderInput:
    payload = {
        "organization_id": organization_id,
        "customer_name": "Guest Buyer",
        "customer_email": "guest@example.com",
        "items": [{"variant_id": variant_id, "quantity": quantity} for variant_id, quantity in items],
        "shipping_address": ADDRESS,
        "payment_method": "credit_card",
    }
    payload.update(overrides)
    return CreateOrderInput.model_validate(payload)


@pytest.fixture()
def new_order():
    return order_input
