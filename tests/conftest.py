from decimal import Decimal

import pytest

from app import create_app
from config import StorefrontConfig
from storefront.config import AppConfig
from storefront.db.session import Database
from storefront.models import Category, Customer, Product
from storefront.services.catalog_service import CatalogService
from storefront.services.category_service import CategoryService
from storefront.services.customer_service import CustomerService
from storefront.services.logging import configure_logging
from storefront.services.order_service import OrderService


@pytest.fixture(autouse=True)
def quiet_logs():
    configure_logging("error")
    yield
    configure_logging("info")


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'store.db'}")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def order_service(database):
    return OrderService(database.session, currency="COP")


@pytest.fixture
def catalog_service(database):
    return CatalogService(database.session, currency="COP")


@pytest.fixture
def category_service(database):
    return CategoryService(database.session)


@pytest.fixture
def customer_service(database):
    return CustomerService(database.session, jwt_secret="test-secret")


@pytest.fixture
def make_category(database):
    def _make(**overrides):
        fields = {"name": "Shirts", "slug": f"shirts-{len(created)}", "is_active": True}
        fields.update(overrides)
        with database.session() as session:
            category = Category(**fields)
            session.add(category)
            session.flush()
            created.append(category.id)
            return category.id

    created = []
    return _make


@pytest.fixture
def make_product(database):
    def _make(**overrides):
        fields = {
            "sku": f"SKU-{len(created) + 1}",
            "name": f"Product {len(created) + 1}",
            "price": Decimal("100000"),
            "currency": "COP",
            "stock": 5,
            "is_active": True,
        }
        fields.update(overrides)
        with database.session() as session:
            product = Product(**fields)
            session.add(product)
            session.flush()
            created.append(product.id)
            return product.id

    created = []
    return _make


@pytest.fixture
def customer_id(database):
    with database.session() as session:
        customer = Customer(first_name="Ana", last_name="Gomez", email="ana@example.com", role="customer")
        session.add(customer)
        session.flush()
        return customer.id


@pytest.fixture
def app(tmp_path):
    config = StorefrontConfig(
        secret_key="test",
        jwt_secret="test-secret",
        jwt_ttl_hours=1,
        admin_email="admin@test.local",
        admin_password="admin123",
        host="127.0.0.1",
        port=0,
        project_root=tmp_path,
    )
    app_config = AppConfig(
        database_url=f"sqlite:///{tmp_path / 'app.db'}",
        log_level="ERROR",
        currency="COP",
    )
    flask_app = create_app(config, app_config)
    flask_app.config["TESTING"] = True
    yield flask_app
    flask_app.extensions["storefront_components"]["database"].dispose()


@pytest.fixture
def client(app):
    return app.test_client()
