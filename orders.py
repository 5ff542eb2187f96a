"""Order lifecycle: cart checkout, payment, shipping, receipt and cancellation.

Stock leaves inventory exactly once per order, when it is paid. Checkout and
payment are each a single transaction: either every order moves or none do.
"""
from collections import OrderedDict
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from models import db, Order, OrderStatus, CartItem, Address, Product, Review, money
from errors import NotFound, ValidationFailed, BusinessRuleError, InsufficientStock, AddressRequired
from auth import require_buyer, require_seller, require_user
import logging

PAYMENT_METHODS = {
    'wechat': 'Paid with WeChat Pay',
    'alipay': 'Paid with Alipay',
}


def _shipping_address(buyer):
    address = Address.query.filter_by(user_id=buyer.id, is_default=True).first()
    if address is None:
        address = (
            Address.query.filter_by(user_id=buyer.id)
            .order_by(Address.created_at.desc(), Address.id.desc())
            .first()
        )
    if address is None:
        raise AddressRequired()
    return address


def checkout(buyer):
    """Turn every cart line into a PENDING order and empty the cart."""
    require_buyer(buyer, 'place orders')

    items = CartItem.query.filter_by(user_id=buyer.id).order_by(CartItem.created_at, CartItem.id).all()
    if not items:
        raise BusinessRuleError('Your cart is empty')

    for item in items:
        if not item.product.is_active or item.product.stock < item.quantity:
            raise InsufficientStock(item.product.name)

    address = _shipping_address(buyer)

    orders = []
    try:
        for item in items:
            order = Order(
                buyer_id=buyer.id,
                product_id=item.product_id,
                address_id=address.id,
                quantity=item.quantity,
                total_price=money(item.product.price * item.quantity),
                status=OrderStatus.PENDING,
            )
            db.session.add(order)
            orders.append(order)
        CartItem.query.filter_by(user_id=buyer.id).delete()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise

    logging.info(f"Buyer {buyer.id} checked out {len(orders)} order(s)")
    return orders


def pending_orders(buyer):
    require_buyer(buyer, 'view pending orders')
    return (
        Order.query.filter_by(buyer_id=buyer.id, status=OrderStatus.PENDING)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def pending_total(buyer):
    return sum((order.total_price for order in pending_orders(buyer)), money(0))


def pay_orders(buyer, address_id, payment_method, order_ids=None):
    """Pay the buyer's pending orders, decrementing stock as one unit of work."""
    require_buyer(buyer, 'pay for orders')

    if payment_method not in PAYMENT_METHODS:
        raise ValidationFailed('Unsupported payment method', field='payment_method')

    address = Address.query.filter_by(id=address_id, user_id=buyer.id).first()
    if address is None:
        raise NotFound('Address not found')

    query = Order.query.filter_by(buyer_id=buyer.id, status=OrderStatus.PENDING)
    if order_ids is not None:
        query = query.filter(Order.id.in_(order_ids))
    orders = query.order_by(Order.created_at, Order.id).all()
    if not orders:
        raise BusinessRuleError('There are no pending orders to pay')

    demand = OrderedDict()
    for order in orders:
        demand[order.product] = demand.get(order.product, 0) + order.quantity
    for product, quantity in demand.items():
        if product.stock < quantity:
            raise InsufficientStock(product.name)

    note = PAYMENT_METHODS[payment_method]
    try:
        for order in orders:
            # Conditional decrement closes the gap between the check above and the write.
            result = db.session.execute(
                update(Product)
                .where(Product.id == order.product_id, Product.stock >= order.quantity)
                .values(
                    stock=Product.stock - order.quantity,
                    sales_count=Product.sales_count + order.quantity,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InsufficientStock(order.product.name)

            order.transition_to(OrderStatus.PAID)
            order.address_id = address.id
            order.note = note
        db.session.commit()
    except (InsufficientStock, SQLAlchemyError):
        db.session.rollback()
        raise

    for product in demand:
        db.session.refresh(product)

    logging.info(f"Buyer {buyer.id} paid {len(orders)} order(s) via {payment_method}")
    return orders


def _buyer_order(buyer, order_id):
    order = Order.query.filter_by(id=order_id, buyer_id=buyer.id).first()
    if order is None:
        raise NotFound('Order not found')
    return order


def _seller_order(seller, order_id):
    order = (
        Order.query.join(Product, Order.product_id == Product.id)
        .filter(Order.id == order_id, Product.seller_id == seller.id)
        .first()
    )
    if order is None:
        raise NotFound('Order not found')
    return order


def ship_order(seller, order_id, tracking_number):
    require_seller(seller, 'ship orders')
    order = _seller_order(seller, order_id)

    tracking_number = (tracking_number or '').strip()
    if not tracking_number:
        raise ValidationFailed('A tracking number is required to ship an order', field='tracking_number')

    order.transition_to(OrderStatus.SHIPPED)
    order.tracking_number = tracking_number
    db.session.commit()
    logging.info(f"Seller {seller.id} shipped order {order.id} ({tracking_number})")
    return order


def confirm_receipt(buyer, order_id):
    require_buyer(buyer, 'confirm receipt')
    order = _buyer_order(buyer, order_id)
    order.transition_to(OrderStatus.COMPLETED)
    db.session.commit()
    return order


def cancel_order(actor, order_id):
    """Cancel an order. Stock already taken at payment is not put back."""
    require_user(actor)
    if actor.is_seller:
        order = _seller_order(actor, order_id)
        if order.status is not OrderStatus.PENDING:
            raise BusinessRuleError('Sellers can only cancel orders that have not been paid')
    else:
        order = _buyer_order(actor, order_id)

    order.transition_to(OrderStatus.CANCELED)
    db.session.commit()
    logging.info(f"User {actor.id} canceled order {order.id}")
    return order


def _address_dict(order):
    return order.address.to_dict() if order.address else None


def buyer_orders(buyer):
    require_buyer(buyer, 'view orders')
    orders = Order.query.filter_by(buyer_id=buyer.id).order_by(Order.created_at.desc(), Order.id.desc()).all()
    reviews = {review.product_id: review for review in Review.query.filter_by(user_id=buyer.id)}

    results = []
    for order in orders:
        item = order.to_dict()
        product = order.product
        review = reviews.get(product.id)
        item['product'] = {
            'id': product.id,
            'name': product.name,
            'price': str(product.price),
            'images': product.image_list,
            'seller': product.seller.summary(),
            'review': review.to_dict() if review else None,
        }
        item['address'] = _address_dict(order)
        results.append(item)
    return results


def _seller_view(order):
    item = order.to_dict()
    buyer = order.buyer
    item['buyer'] = {
        'id': buyer.id,
        'username': buyer.username,
        'email': buyer.email,
        'phone': buyer.phone,
        'real_name': buyer.real_name,
        'avatar': buyer.avatar,
    }
    item['product'] = {
        'id': order.product.id,
        'name': order.product.name,
        'description': order.product.description,
        'price': str(order.product.price),
        'images': order.product.image_list,
        'category': order.product.category,
    }
    item['address'] = _address_dict(order)
    return item


def seller_orders(seller):
    require_seller(seller, 'view orders')
    orders = (
        Order.query.join(Product, Order.product_id == Product.id)
        .filter(Product.seller_id == seller.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [_seller_view(order) for order in orders]


def seller_order(seller, order_id):
    require_seller(seller, 'view order details')
    return _seller_view(_seller_order(seller, order_id))
