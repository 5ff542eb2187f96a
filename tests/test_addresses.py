import pytest

from models import Address
from errors import BusinessRuleError, NotFound
import addresses
import cart
import orders

DATA = {
    'receiver_name': 'Li Lei',
    'phone': '13900139000',
    'province': 'Zhejiang',
    'city': 'Hangzhou',
    'district': 'Xihu',
    'detail': '18 Lake Road',
}


def defaults(user):
    return Address.query.filter_by(user_id=user.id, is_default=True).count()


def test_create_with_default_replaces_previous(buyer):
    first = addresses.create_address(buyer, dict(DATA, is_default=True))
    second = addresses.create_address(buyer, dict(DATA, is_default=True))

    assert defaults(buyer) == 1
    assert second.is_default
    assert not first.is_default


def test_create_without_default_keeps_existing(buyer):
    first = addresses.create_address(buyer, dict(DATA, is_default=True))
    addresses.create_address(buyer, DATA)

    assert defaults(buyer) == 1
    assert first.is_default


def test_update_and_set_default_keep_single_default(buyer):
    first = addresses.create_address(buyer, dict(DATA, is_default=True))
    second = addresses.create_address(buyer, DATA)
    third = addresses.create_address(buyer, DATA)

    addresses.update_address(buyer, second.id, {'is_default': True, 'city': 'Ningbo'})
    assert defaults(buyer) == 1
    assert second.is_default and second.city == 'Ningbo'

    addresses.set_default_address(buyer, third.id)
    assert defaults(buyer) == 1
    assert third.is_default
    assert not first.is_default and not second.is_default


def test_update_without_default_flag_leaves_it_alone(buyer):
    address = addresses.create_address(buyer, dict(DATA, is_default=True))
    addresses.update_address(buyer, address.id, {'detail': '20 Lake Road'})

    assert address.is_default
    assert address.detail == '20 Lake Road'


def test_default_is_per_user(ctx, make_user, buyer):
    other = make_user('other')
    addresses.create_address(buyer, dict(DATA, is_default=True))
    addresses.create_address(other, dict(DATA, is_default=True))

    assert defaults(buyer) == 1
    assert defaults(other) == 1


def test_list_puts_default_first(buyer):
    default = addresses.create_address(buyer, dict(DATA, is_default=True))
    addresses.create_address(buyer, DATA)

    assert addresses.list_addresses(buyer)[0].id == default.id


def test_foreign_addresses_are_not_found(ctx, make_user, buyer):
    address = addresses.create_address(buyer, DATA)
    other = make_user('other')

    with pytest.raises(NotFound):
        addresses.update_address(other, address.id, {'city': 'X'})
    with pytest.raises(NotFound):
        addresses.set_default_address(other, address.id)
    with pytest.raises(NotFound):
        addresses.delete_address(other, address.id)


def test_delete_refused_while_referenced_by_order(buyer, seller, make_product):
    used = addresses.create_address(buyer, dict(DATA, is_default=True))
    spare = addresses.create_address(buyer, DATA)
    cart.add_to_cart(buyer, make_product(seller).id, 1)
    orders.checkout(buyer)

    with pytest.raises(BusinessRuleError):
        addresses.delete_address(buyer, used.id)

    addresses.delete_address(buyer, spare.id)
    assert [a.id for a in addresses.list_addresses(buyer)] == [used.id]
