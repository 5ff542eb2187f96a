import pytest
from flask_login import AnonymousUserMixin

from models import Role, User
from errors import BusinessRuleError
import auth


def test_register_hashes_password(ctx):
    user = auth.register('newbie', 'secret123', 'SELLER')

    assert user.role is Role.SELLER
    assert user.password_hash != 'secret123'
    assert auth.check_password(user, 'secret123')


def test_register_rejects_duplicate_username(buyer):
    with pytest.raises(BusinessRuleError) as excinfo:
        auth.register('buyer1', 'secret123', 'BUYER')
    assert excinfo.value.message == 'Username already exists'


def test_authenticate_uses_one_message_for_all_failures(buyer):
    assert auth.authenticate('buyer1', 'secret123').id == buyer.id

    with pytest.raises(BusinessRuleError) as wrong_password:
        auth.authenticate('buyer1', 'nope-nope')
    with pytest.raises(BusinessRuleError) as unknown_user:
        auth.authenticate('ghost', 'secret123')
    assert wrong_password.value.message == unknown_user.value.message


ANON = AnonymousUserMixin()
BUYER = User(id=1, username='b', role=Role.BUYER)
SELLER = User(id=2, username='s', role=Role.SELLER)


@pytest.mark.parametrize('path, user, expected', [
    ('/', ANON, None),
    ('/products/3', ANON, None),
    ('/manage', ANON, '/auth/login'),
    ('/manage/orders', ANON, '/auth/login'),
    ('/auth/login', ANON, None),
    ('/auth/register', ANON, None),
    ('/auth/other', ANON, '/auth/login'),
    ('/', SELLER, '/manage'),
    ('/cart', SELLER, '/manage'),
    ('/auth/login', SELLER, '/manage'),
    ('/manage/products', SELLER, None),
    ('/auth/login', BUYER, '/'),
    ('/cart', BUYER, None),
    ('/manage', BUYER, None),
    ('/api/upload', SELLER, None),
    ('/cartography', SELLER, None),
])
def test_route_guard(path, user, expected):
    assert auth.resolve_redirect(path, user) == expected


@pytest.mark.parametrize('path, user, expected', [
    ('/cart/checkout', SELLER, None),
    ('/products/3/cart', SELLER, None),
    ('/cart', SELLER, None),
    ('/auth/login', SELLER, '/manage'),
    ('/manage', ANON, '/auth/login'),
])
def test_route_guard_on_writes(path, user, expected):
    assert auth.resolve_redirect(path, user, 'POST') == expected
