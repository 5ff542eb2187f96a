from models import db, CartItem, Product
from errors import NotFound, ValidationFailed, BusinessRuleError
from auth import require_user, require_buyer
import logging


def _owned_item(user, cart_id):
    item = CartItem.query.filter_by(id=cart_id, user_id=user.id).first()
    if item is None:
        raise NotFound('Cart item not found')
    return item


def list_cart(user):
    require_user(user)
    items = (
        CartItem.query.filter_by(user_id=user.id)
        .order_by(CartItem.created_at.desc(), CartItem.id.desc())
        .all()
    )
    return items


def is_in_cart(user, product_id):
    if user is None or not user.is_authenticated:
        return False
    return CartItem.query.filter_by(user_id=user.id, product_id=product_id).first() is not None


def add_to_cart(user, product_id, quantity=1):
    require_buyer(user, 'add items to the cart')
    if quantity <= 0:
        raise ValidationFailed('Quantity must be greater than 0')

    product = Product.query.filter_by(id=product_id, is_active=True).first()
    if product is None:
        raise NotFound('Product does not exist or is no longer available')

    if product.stock < quantity:
        raise BusinessRuleError('Insufficient stock')

    item = CartItem.query.filter_by(user_id=user.id, product_id=product.id).first()
    if item:
        new_quantity = item.quantity + quantity
        if new_quantity > product.stock:
            raise BusinessRuleError('Quantity exceeds available stock')
        item.quantity = new_quantity
    else:
        item = CartItem(user_id=user.id, product_id=product.id, quantity=quantity)
        db.session.add(item)

    db.session.commit()
    logging.info(f"User {user.id} added {quantity} x product {product.id} to cart")
    return item


def update_quantity(user, cart_id, quantity):
    require_user(user)
    if quantity <= 0:
        raise ValidationFailed('Quantity must be greater than 0')

    item = _owned_item(user, cart_id)
    if quantity > item.product.stock:
        raise BusinessRuleError('Quantity exceeds available stock')

    item.quantity = quantity
    db.session.commit()
    return item


def remove_item(user, cart_id):
    require_user(user)
    item = _owned_item(user, cart_id)
    db.session.delete(item)
    db.session.commit()


def clear_cart(user):
    require_user(user)
    CartItem.query.filter_by(user_id=user.id).delete()
    db.session.commit()
