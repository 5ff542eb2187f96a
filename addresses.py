from sqlalchemy.exc import SQLAlchemyError
from models import db, Address, Order
from errors import NotFound, BusinessRuleError
from auth import require_user

ADDRESS_FIELDS = ('receiver_name', 'phone', 'province', 'city', 'district', 'detail')


def _owned_address(user, address_id):
    address = Address.query.filter_by(id=address_id, user_id=user.id).first()
    if address is None:
        raise NotFound('Address not found')
    return address


def _clear_default(user, keep_id=None):
    query = Address.query.filter(Address.user_id == user.id, Address.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(Address.id != keep_id)
    query.update({Address.is_default: False}, synchronize_session='fetch')


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


def list_addresses(user):
    require_user(user)
    return (
        Address.query.filter_by(user_id=user.id)
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
        .all()
    )


def create_address(user, data):
    require_user(user)
    address = Address(user_id=user.id, is_default=bool(data.get('is_default')))
    for field in ADDRESS_FIELDS:
        setattr(address, field, data[field])

    # Clearing the old default and writing the new one share a commit.
    if address.is_default:
        _clear_default(user)
    db.session.add(address)
    _commit()
    return address


def update_address(user, address_id, data):
    require_user(user)
    address = _owned_address(user, address_id)
    for field in ADDRESS_FIELDS:
        if field in data:
            setattr(address, field, data[field])

    if 'is_default' in data:
        if data['is_default'] and not address.is_default:
            _clear_default(user, keep_id=address.id)
        address.is_default = bool(data['is_default'])
    _commit()
    return address


def set_default_address(user, address_id):
    require_user(user)
    address = _owned_address(user, address_id)
    _clear_default(user, keep_id=address.id)
    address.is_default = True
    _commit()
    return address


def delete_address(user, address_id):
    require_user(user)
    address = _owned_address(user, address_id)
    if Order.query.filter_by(address_id=address.id).count() > 0:
        raise BusinessRuleError('Address is used by an order and cannot be deleted')

    db.session.delete(address)
    _commit()
