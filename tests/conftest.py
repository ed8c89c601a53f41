from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import ordersync.persistence.db as db
from ordersync.domain.orders import Order, OrderItem
from ordersync.domain.products import Catalog, Product, ProductBundleItem, ProductKind, ProductVariation
from ordersync.persistence.models import Base
from ordersync.persistence.storage import SqlAlchemyStorage


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite"


@pytest.fixture(scope="session")
def test_engine(test_db_path: Path):
    engine = create_engine(
        f"sqlite+pysqlite:///{test_db_path}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    TestSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    db.engine = engine
    db.SessionLocal = TestSessionLocal
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def fresh_schema(test_engine):
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture()
def client(fresh_schema):
    from ordersync.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def session(fresh_schema):
    with db.session_scope() as s:
        yield s


@pytest.fixture()
def storage(session):
    return SqlAlchemyStorage(session)


@pytest.fixture()
def simple_product() -> Product:
    return Product(product_id=10, site_id=1, name="Coffee beans", price="5.00")


@pytest.fixture()
def variation() -> ProductVariation:
    return ProductVariation(product_variation_id=21, product_id=20, site_id=1, price="12.50")


@pytest.fixture()
def bundle_product() -> Product:
    return Product(
        product_id=30,
        site_id=1,
        name="Breakfast box",
        product_type=ProductKind.BUNDLE,
        price="40",
        bundled_items=(
            ProductBundleItem(bundled_item_id=301, product_id=10, title="Coffee beans"),
            ProductBundleItem(bundled_item_id=302, product_id=11, title="Mug", is_optional=True),
        ),
    )


@pytest.fixture()
def catalog(simple_product, variation, bundle_product) -> Catalog:
    return Catalog(
        products=(
            simple_product,
            Product(product_id=20, site_id=1, name="T-shirt", product_type=ProductKind.VARIABLE, price="12.50"),
            bundle_product,
        ),
        variations=(variation,),
    )


@pytest.fixture()
def order() -> Order:
    return Order(
        site_id=1,
        order_id=100,
        items=(
            OrderItem(
                item_id=1,
                product_id=10,
                quantity=Decimal("2"),
                price=Decimal("5"),
                subtotal="10",
                total="10",
            ),
        ),
    )
