from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime
from decimal import Decimal
import enum
import json

from errors import InvalidTransition

db = SQLAlchemy()


class Role(enum.Enum):
    BUYER = 'BUYER'
    SELLER = 'SELLER'


class OrderStatus(enum.Enum):
    PENDING = 'PENDING'
    PAID = 'PAID'
    SHIPPED = 'SHIPPED'
    COMPLETED = 'COMPLETED'
    CANCELED = 'CANCELED'

    def can_become(self, target):
        return target in ORDER_TRANSITIONS[self]


ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELED},
    OrderStatus.PAID: {OrderStatus.SHIPPED, OrderStatus.CANCELED},
    OrderStatus.SHIPPED: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELED: set(),
}


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(20), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    role = db.Column(db.Enum(Role), nullable=False, default=Role.BUYER)
    email = db.Column(db.String(100), unique=True, nullable=True)
    phone = db.Column(db.String(20), unique=True, nullable=True)
    real_name = db.Column(db.String(50), nullable=True)
    avatar = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = db.relationship('Product', backref='seller', lazy=True)
    addresses = db.relationship('Address', backref='user', lazy=True)

    @property
    def is_buyer(self):
        return self.role is Role.BUYER

    @property
    def is_seller(self):
        return self.role is Role.SELLER

    def summary(self):
        return {'id': self.id, 'username': self.username, 'real_name': self.real_name, 'avatar': self.avatar}

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'phone': self.phone,
            'role': self.role.value,
            'avatar': self.avatar,
            'real_name': self.real_name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class Product(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    images = db.Column(db.Text, nullable=False, default='[]') # JSON list of URLs
    category = db.Column(db.String(100), nullable=True)
    sales_count = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    seller_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('stock >= 0', name='ck_product_stock_non_negative'),
    )

    reviews = db.relationship('Review', backref='product', lazy=True, order_by='Review.created_at.desc()')

    @property
    def image_list(self):
        try:
            return json.loads(self.images or '[]')
        except ValueError:
            return []

    @image_list.setter
    def image_list(self, urls):
        self.images = json.dumps(list(urls))

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': str(self.price),
            'stock': self.stock,
            'images': self.image_list,
            'category': self.category,
            'sales_count': self.sales_count,
            'is_active': self.is_active,
            'seller_id': self.seller_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class CartItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'product_id', name='uq_cart_user_product'),
    )

    product = db.relationship('Product')

    def to_dict(self):
        product = self.product.to_dict()
        product['seller'] = {'username': self.product.seller.username}
        return {
            'id': self.id,
            'product_id': self.product_id,
            'quantity': self.quantity,
            'subtotal': str(self.product.price * self.quantity),
            'product': product,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Address(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    receiver_name = db.Column(db.String(50), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    province = db.Column(db.String(50), nullable=False)
    city = db.Column(db.String(50), nullable=False)
    district = db.Column(db.String(50), nullable=False)
    detail = db.Column(db.String(200), nullable=False)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'receiver_name': self.receiver_name,
            'phone': self.phone,
            'province': self.province,
            'city': self.city,
            'district': self.district,
            'detail': self.detail,
            'is_default': self.is_default,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Order(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    address_id = db.Column(db.Integer, db.ForeignKey('address.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False) # unit price * quantity at creation
    status = db.Column(db.Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    tracking_number = db.Column(db.String(100), nullable=True)
    note = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    buyer = db.relationship('User', foreign_keys=[buyer_id])
    product = db.relationship('Product', backref=db.backref('orders', lazy=True))
    address = db.relationship('Address')

    def transition_to(self, target):
        if not self.status.can_become(target):
            raise InvalidTransition(self.status.value, target.value)
        self.status = target

    def to_dict(self):
        return {
            'id': self.id,
            'buyer_id': self.buyer_id,
            'product_id': self.product_id,
            'address_id': self.address_id,
            'quantity': self.quantity,
            'total_price': str(self.total_price),
            'status': self.status.value,
            'tracking_number': self.tracking_number,
            'note': self.note,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class Review(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'product_id', name='uq_review_user_product'),
        db.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_review_rating_range'),
    )

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'product_id': self.product_id,
            'rating': self.rating,
            'comment': self.comment,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


def money(value):
    """Normalise a price to two decimal places."""
    return Decimal(str(value)).quantize(Decimal('0.01'))
