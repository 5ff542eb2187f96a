import pytest

from models import db, CartItem
from errors import AuthenticationError, BusinessRuleError, NotFound, PermissionDenied, ValidationFailed
import cart


def test_add_creates_then_increments(buyer, seller, make_product):
    product = make_product(seller, stock=5)

    cart.add_to_cart(buyer, product.id, 2)
    item = cart.add_to_cart(buyer, product.id, 1)

    assert item.quantity == 3
    assert CartItem.query.filter_by(user_id=buyer.id).count() == 1
    assert cart.is_in_cart(buyer, product.id)


def test_add_respects_stock_including_existing_quantity(buyer, seller, make_product):
    product = make_product(seller, stock=3)

    with pytest.raises(BusinessRuleError):
        cart.add_to_cart(buyer, product.id, 4)

    cart.add_to_cart(buyer, product.id, 2)
    with pytest.raises(BusinessRuleError):
        cart.add_to_cart(buyer, product.id, 2)
    assert CartItem.query.filter_by(user_id=buyer.id).one().quantity == 2


def test_inactive_products_cannot_be_added(buyer, seller, make_product):
    product = make_product(seller, is_active=False)
    with pytest.raises(NotFound):
        cart.add_to_cart(buyer, product.id, 1)


def test_quantity_must_be_positive(buyer, seller, make_product):
    product = make_product(seller)
    with pytest.raises(ValidationFailed):
        cart.add_to_cart(buyer, product.id, 0)

    item = cart.add_to_cart(buyer, product.id, 1)
    with pytest.raises(ValidationFailed):
        cart.update_quantity(buyer, item.id, 0)


def test_update_quantity_is_capped_by_stock(buyer, seller, make_product):
    product = make_product(seller, stock=4)
    item = cart.add_to_cart(buyer, product.id, 1)

    assert cart.update_quantity(buyer, item.id, 4).quantity == 4
    with pytest.raises(BusinessRuleError):
        cart.update_quantity(buyer, item.id, 5)


def test_cart_rows_are_private(ctx, make_user, buyer, seller, make_product):
    item = cart.add_to_cart(buyer, make_product(seller).id, 1)
    other = make_user('other')

    with pytest.raises(NotFound):
        cart.update_quantity(other, item.id, 2)
    with pytest.raises(NotFound):
        cart.remove_item(other, item.id)
    assert db.session.get(CartItem, item.id) is not None


def test_remove_and_clear(buyer, seller, make_product):
    first = cart.add_to_cart(buyer, make_product(seller, name='One').id, 1)
    cart.add_to_cart(buyer, make_product(seller, name='Two').id, 1)
    cart.add_to_cart(buyer, make_product(seller, name='Three').id, 1)

    cart.remove_item(buyer, first.id)
    assert len(cart.list_cart(buyer)) == 2

    cart.clear_cart(buyer)
    assert cart.list_cart(buyer) == []


def test_list_is_newest_first(buyer, seller, make_product):
    cart.add_to_cart(buyer, make_product(seller, name='Older').id, 1)
    cart.add_to_cart(buyer, make_product(seller, name='Newer').id, 1)

    names = [item.product.name for item in cart.list_cart(buyer)]
    assert names == ['Newer', 'Older']
    assert cart.list_cart(buyer)[0].to_dict()['product']['seller']['username'] == 'seller1'


def test_anonymous_users_have_no_cart(ctx):
    assert cart.is_in_cart(None, 1) is False
    with pytest.raises(AuthenticationError):
        cart.list_cart(None)


def test_sellers_cannot_add_to_cart(seller, make_product):
    product = make_product(seller)
    with pytest.raises(PermissionDenied):
        cart.add_to_cart(seller, product.id, 1)
    assert CartItem.query.count() == 0
