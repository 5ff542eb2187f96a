import os

os.environ.update({
    'SECRET_KEY': 'test-secret',
    'DATABASE_URL': 'sqlite://',
    'ENDPOINT_URL': 'http://testserver',
    'SESSION_COOKIE_SECURE': 'false',
    'WTF_CSRF_ENABLED': 'false',
    'RATELIMIT_ENABLED': 'false',
    'BCRYPT_LOG_ROUNDS': '4',
    'LOG_FILE': '',
})

import pytest

from app import app as flask_app
from models import db, User, Role, Product, Address, CartItem, money
from auth import hash_password

PASSWORD = 'secret123'


@pytest.fixture
def app(tmp_path):
    flask_app.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')
    with flask_app.app_context():
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """An application context for calling the service layer directly."""
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user():
    def _make(username, role=Role.BUYER, **fields):
        user = User(username=username, password_hash=hash_password(PASSWORD), role=role, **fields)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def buyer(ctx, make_user):
    return make_user('buyer1')


@pytest.fixture
def seller(ctx, make_user):
    return make_user('seller1', role=Role.SELLER)


@pytest.fixture
def make_product():
    def _make(seller, name='Widget', price='10.00', stock=5, category='Gadgets', **fields):
        product = Product(name=name, price=money(price), stock=stock, category=category,
                          seller_id=seller.id, **fields)
        product.image_list = ['http://testserver/api/images/widget']
        db.session.add(product)
        db.session.commit()
        return product
    return _make


@pytest.fixture
def make_address():
    def _make(user, is_default=False, detail='1 Main Street'):
        address = Address(user_id=user.id, receiver_name='Receiver', phone='13800138000',
                          province='Guangdong', city='Shenzhen', district='Nanshan',
                          detail=detail, is_default=is_default)
        db.session.add(address)
        db.session.commit()
        return address
    return _make


@pytest.fixture
def put_in_cart():
    """Insert a cart row directly, bypassing the stock ceiling."""
    def _put(user, product, quantity):
        item = CartItem(user_id=user.id, product_id=product.id, quantity=quantity)
        db.session.add(item)
        db.session.commit()
        return item
    return _put


def login(client, username, password=PASSWORD):
    return client.post('/auth/login', json={'username': username, 'password': password})
