import pytest

from errors import BusinessRuleError, ValidationFailed
from auth import check_password
import accounts


def test_update_profile_sets_and_clears_fields(buyer):
    accounts.update_profile(buyer, {'real_name': ' Han Meimei ', 'email': 'han@example.com',
                                    'phone': '13700137000', 'avatar': 'http://testserver/a.png'})
    assert buyer.real_name == 'Han Meimei'
    assert buyer.email == 'han@example.com'

    accounts.update_profile(buyer, {'phone': '', 'avatar': ''})
    assert buyer.phone is None
    assert buyer.avatar is None
    assert buyer.email == 'han@example.com'


def test_contact_details_must_be_unique(ctx, make_user, buyer):
    make_user('taken', email='taken@example.com', phone='13600136000')

    with pytest.raises(BusinessRuleError):
        accounts.update_profile(buyer, {'email': 'taken@example.com'})
    with pytest.raises(BusinessRuleError):
        accounts.update_profile(buyer, {'phone': '13600136000'})


def test_change_password(buyer):
    with pytest.raises(BusinessRuleError):
        accounts.change_password(buyer, 'wrong-password', 'newpass1', 'newpass1')
    with pytest.raises(ValidationFailed):
        accounts.change_password(buyer, 'secret123', 'newpass1', 'newpass2')

    accounts.change_password(buyer, 'secret123', 'newpass1', 'newpass1')
    assert check_password(buyer, 'newpass1')


def test_profile_hides_password(buyer):
    data = accounts.profile(buyer)
    assert data['username'] == 'buyer1'
    assert data['role'] == 'BUYER'
    assert 'password_hash' not in data
