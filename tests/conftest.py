import pytest
import uuid
from decimal import Decimal

from config import TestingConfig
from storepos import create_app
from storepos.database import create_tables, drop_tables, get_session
from storepos.models import AppUser, Customer, Product
from storepos.services.draft_sale import DraftSale, DraftSessionStore


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application instance for testing on a throwaway SQLite file."""
    db_file = tmp_path_factory.mktemp('db') / 'storepos_test.db'

    class _TestConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f'sqlite:///{db_file}'

    return create_app(_TestConfig)


@pytest.fixture(autouse=True)
def database(app):
    """Fresh schema and an empty draft store for every test."""
    app.extensions['draft_store'] = DraftSessionStore()
    create_tables()
    yield
    get_session().remove()
    drop_tables()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(scope='function')
def customer(session):
    """Create an active customer."""
    suffix = str(uuid.uuid4())[:8]
    customer = Customer(name=f'Cliente {suffix}', id_number=f'DNI-{suffix}', active=True)
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def seller(session):
    """Create an active seller."""
    suffix = str(uuid.uuid4())[:8]
    user = AppUser(email=f'seller-{suffix}@test.com', full_name='Seller One', active=True)
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def make_product(session):
    """Factory for products with a given price and stock."""
    def _make(price='10.00', stock=5, min_stock=0, name=None):
        suffix = str(uuid.uuid4())[:8]
        product = Product(
            sku=f'SKU-{suffix}',
            name=name or f'Producto {suffix}',
            price=Decimal(price),
            stock=stock,
            min_stock=min_stock,
            active=True
        )
        session.add(product)
        session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product priced 10.00 with 5 units on hand."""
    return make_product(price='10.00', stock=5)


@pytest.fixture(scope='function')
def engine(app):
    """Commit engine configured from TestingConfig."""
    return app.extensions['commit_engine']


@pytest.fixture(scope='function')
def ready_draft(customer, product):
    """Complete draft: customer, 2 x product at 10.00, paid CASH."""
    draft = DraftSale()
    draft.select_customer(customer)
    draft.add_item(product.id, 2, Decimal('10.00'))
    draft.set_payment_method('CASH')
    return draft


@pytest.fixture(scope='function')
def auth_client(client, seller):
    """Test client logged in as ``seller``."""
    seller_id = seller.id
    with client.session_transaction() as sess:
        sess['user_id'] = seller_id
    return client
