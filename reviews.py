from models import db, Review, Order, OrderStatus
from errors import NotFound, ValidationFailed, BusinessRuleError
from auth import require_buyer, require_user


def _check_rating(rating):
    if rating is None or not 1 <= rating <= 5:
        raise ValidationFailed('Rating must be between 1 and 5', field='rating')


def _clean_comment(comment):
    comment = (comment or '').strip()
    return comment or None


def _owned_review(user, review_id):
    review = Review.query.filter_by(id=review_id, user_id=user.id).first()
    if review is None:
        raise NotFound('Review not found')
    return review


def has_completed_order(buyer, product_id):
    return Order.query.filter_by(
        buyer_id=buyer.id, product_id=product_id, status=OrderStatus.COMPLETED
    ).first() is not None


def reviewable(buyer, product_id):
    """Whether the review form should be offered for this product."""
    if buyer is None or not buyer.is_authenticated or not buyer.is_buyer:
        return False
    if Review.query.filter_by(user_id=buyer.id, product_id=product_id).first():
        return False
    return has_completed_order(buyer, product_id)


def create_review(buyer, product_id, rating, comment=None):
    require_buyer(buyer, 'review products')
    _check_rating(rating)

    if Review.query.filter_by(user_id=buyer.id, product_id=product_id).first():
        raise BusinessRuleError('You have already reviewed this product')

    if not has_completed_order(buyer, product_id):
        raise BusinessRuleError('Only products from completed orders can be reviewed')

    review = Review(user_id=buyer.id, product_id=product_id, rating=rating, comment=_clean_comment(comment))
    db.session.add(review)
    db.session.commit()
    return review


def my_reviews(user):
    require_user(user)
    reviews = (
        Review.query.filter_by(user_id=user.id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    results = []
    for review in reviews:
        item = review.to_dict()
        item['product'] = {
            'id': review.product.id,
            'name': review.product.name,
            'price': str(review.product.price),
            'images': review.product.image_list,
        }
        results.append(item)
    return results


def update_review(user, review_id, rating, comment=None):
    require_user(user)
    review = _owned_review(user, review_id)
    _check_rating(rating)

    review.rating = rating
    review.comment = _clean_comment(comment)
    db.session.commit()
    return review


def delete_review(user, review_id):
    require_user(user)
    review = _owned_review(user, review_id)
    db.session.delete(review)
    db.session.commit()
