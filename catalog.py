from sqlalchemy import func, or_
from models import db, Product, Review, User
from errors import NotFound

RECOMMENDED_LIMIT = 12
SEARCH_LIMIT = 20
RELATED_LIMIT = 4


def _listing(query, limit):
    review_counts = (
        db.session.query(Review.product_id, func.count(Review.id).label('review_count'))
        .group_by(Review.product_id)
        .subquery()
    )
    rows = (
        db.session.query(Product, User.username, func.coalesce(review_counts.c.review_count, 0))
        .join(User, Product.seller_id == User.id)
        .outerjoin(review_counts, review_counts.c.product_id == Product.id)
        .filter(Product.id.in_(query.with_entities(Product.id).statement))
        .order_by(Product.sales_count.desc(), Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )
    results = []
    for product, seller_name, review_count in rows:
        item = product.to_dict()
        item['seller'] = {'username': seller_name}
        item['review_count'] = review_count
        results.append(item)
    return results


def recommended_products():
    return _listing(Product.query.filter_by(is_active=True), RECOMMENDED_LIMIT)


def search_products(query):
    if not query or not query.strip():
        return []

    query = query.strip()
    matches = Product.query.filter(
        Product.is_active.is_(True),
        or_(
            Product.name.contains(query, autoescape=True),
            Product.description.contains(query, autoescape=True),
            Product.category.contains(query, autoescape=True),
        ),
    )
    return _listing(matches, SEARCH_LIMIT)


def related_products(product_id, category=None):
    candidates = Product.query.filter(Product.id != product_id, Product.is_active.is_(True))
    if category:
        candidates = candidates.filter(Product.category == category)
    return _listing(candidates, RELATED_LIMIT)


def average_rating(product_id):
    value = db.session.query(func.avg(Review.rating)).filter(Review.product_id == product_id).scalar()
    return round(float(value), 2) if value is not None else 0


def get_product(product_id):
    product = Product.query.filter_by(id=product_id, is_active=True).first()
    if product is None:
        raise NotFound('Product does not exist or is no longer available')

    item = product.to_dict()
    item['seller'] = product.seller.summary()
    item['review_count'] = Review.query.filter_by(product_id=product.id).count()
    item['average_rating'] = average_rating(product.id)
    return item


def product_reviews(product_id):
    reviews = (
        Review.query.filter_by(product_id=product_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    results = []
    for review in reviews:
        item = review.to_dict()
        item['user'] = {'username': review.user.username, 'avatar': review.user.avatar}
        results.append(item)
    return results
