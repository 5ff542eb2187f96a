"""Seller-side product management and dashboard numbers."""
from sqlalchemy import func
from models import db, Product, Order, OrderStatus, Review, money
from errors import NotFound
from auth import require_seller
from catalog import average_rating
import logging

REVENUE_STATUSES = (OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.COMPLETED)
RECENT_ORDERS_LIMIT = 5


def _owned_product(seller, product_id):
    product = Product.query.filter_by(id=product_id, seller_id=seller.id).first()
    if product is None:
        raise NotFound('Product not found')
    return product


def _apply(product, data):
    product.name = data['name'].strip()
    product.description = (data.get('description') or '').strip() or None
    product.price = money(data['price'])
    product.stock = data['stock']
    product.category = (data.get('category') or '').strip() or None
    product.image_list = data['images']


def create_product(seller, data):
    require_seller(seller, 'create products')
    product = Product(seller_id=seller.id, is_active=True)
    _apply(product, data)
    db.session.add(product)
    db.session.commit()
    logging.info(f"Seller {seller.id} listed product {product.id}")
    return product


def update_product(seller, product_id, data):
    require_seller(seller, 'edit products')
    product = _owned_product(seller, product_id)
    _apply(product, data)
    if data.get('is_active') is not None:
        product.is_active = bool(data['is_active'])
    db.session.commit()
    return product


def seller_products(seller):
    require_seller(seller, 'manage products')
    return (
        Product.query.filter_by(seller_id=seller.id)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )


def product_orders(product):
    results = []
    orders = Order.query.filter_by(product_id=product.id).order_by(Order.created_at.desc(), Order.id.desc())
    for order in orders:
        item = order.to_dict()
        item['buyer'] = {
            'id': order.buyer.id,
            'username': order.buyer.username,
            'email': order.buyer.email,
            'avatar': order.buyer.avatar,
        }
        item['address'] = order.address.to_dict() if order.address else None
        results.append(item)
    return results


def product_stats(product):
    total_orders = Order.query.filter_by(product_id=product.id).count()
    revenue = (
        db.session.query(func.coalesce(func.sum(Order.total_price), 0))
        .filter(Order.product_id == product.id, Order.status != OrderStatus.CANCELED)
        .scalar()
    )
    return {
        'total_orders': total_orders,
        'total_revenue': str(money(revenue)),
        'average_rating': average_rating(product.id),
    }


def seller_product(seller, product_id):
    require_seller(seller, 'manage products')
    product = _owned_product(seller, product_id)

    item = product.to_dict()
    item['reviews'] = []
    for review in product.reviews:
        entry = review.to_dict()
        entry['user'] = {'id': review.user.id, 'username': review.user.username, 'avatar': review.user.avatar}
        item['reviews'].append(entry)
    item['review_count'] = Review.query.filter_by(product_id=product.id).count()
    item['orders'] = product_orders(product)
    item['stats'] = product_stats(product)
    return item


def recent_orders(seller, limit=RECENT_ORDERS_LIMIT):
    orders = (
        Order.query.join(Product, Order.product_id == Product.id)
        .filter(Product.seller_id == seller.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )
    results = []
    for order in orders:
        item = order.to_dict()
        item['product'] = {'id': order.product.id, 'name': order.product.name}
        item['buyer'] = {'id': order.buyer.id, 'username': order.buyer.username}
        results.append(item)
    return results


def dashboard_stats(seller):
    require_seller(seller, 'view the dashboard')
    products = Product.query.filter_by(seller_id=seller.id)
    seller_orders = Order.query.join(Product, Order.product_id == Product.id).filter(Product.seller_id == seller.id)
    revenue = (
        db.session.query(func.coalesce(func.sum(Order.total_price), 0))
        .join(Product, Order.product_id == Product.id)
        .filter(Product.seller_id == seller.id, Order.status.in_(REVENUE_STATUSES))
        .scalar()
    )
    return {
        'total_products': products.count(),
        'active_products': products.filter_by(is_active=True).count(),
        'total_orders': seller_orders.count(),
        'awaiting_shipment': seller_orders.filter(Order.status == OrderStatus.PAID).count(),
        'total_revenue': str(money(revenue)),
        'recent_orders': recent_orders(seller),
    }
