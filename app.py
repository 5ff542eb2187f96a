from flask import Flask, redirect, request, jsonify, session, send_file
from flask_login import LoginManager, login_user, logout_user, login_required, current_user
from flask_wtf.csrf import CSRFProtect, CSRFError, generate_csrf
from flask_talisman import Talisman
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError
from dotenv import load_dotenv
from datetime import timedelta
from models import db, User
from errors import MallError, AuthenticationError, NotFound, ValidationFailed
from auth import bcrypt, resolve_redirect, landing_page
from forms import (LoginForm, RegisterForm, AddToCartForm, CartQuantityForm, PaymentForm, ShipForm,
                   AddressForm, ReviewForm, ProductForm, ProfileForm, ChangePasswordForm)
import auth
import catalog
import cart
import orders
import addresses
import reviews
import products
import accounts
import uploads
import seed
import os
import logging

# Load environment variables
load_dotenv()


def env_flag(name, default):
    return os.getenv(name, str(default)).strip().lower() in ('1', 'true', 'yes', 'on')


app = Flask(__name__)

# --- Configuration ---
app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'fallback_secret_key_CHANGE_THIS')
app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URL', 'sqlite:///database.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['ENDPOINT_URL'] = os.getenv('ENDPOINT_URL', 'http://localhost:5000')
app.config['UPLOAD_FOLDER'] = os.getenv('UPLOAD_FOLDER', os.path.join(app.root_path, 'uploads'))
app.config['MAX_CONTENT_LENGTH'] = 6 * 1024 * 1024 # images are capped at 5MB, leave room for the form
app.config['WTF_CSRF_ENABLED'] = env_flag('WTF_CSRF_ENABLED', True)
app.config['RATELIMIT_ENABLED'] = env_flag('RATELIMIT_ENABLED', True)
app.config['BCRYPT_LOG_ROUNDS'] = int(os.getenv('BCRYPT_LOG_ROUNDS', '12'))

# Session cookie: signed by Flask, expires after a week
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=7)
app.config['SESSION_COOKIE_SECURE'] = env_flag('SESSION_COOKIE_SECURE', True)
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Strict'
app.config['REMEMBER_COOKIE_SECURE'] = app.config['SESSION_COOKIE_SECURE']
app.config['REMEMBER_COOKIE_HTTPONLY'] = True

# Initialize Extensions
db.init_app(app)
bcrypt.init_app(app)
csrf = CSRFProtect(app)
login_manager = LoginManager(app)
login_manager.session_protection = 'strong' # Protect against session hijacking

csp = {
    'default-src': '\'self\'',
    'img-src': ['\'self\'', 'data:', 'https://picsum.photos', 'https://i.pravatar.cc'],
}

talisman = Talisman(
    app,
    content_security_policy=csp,
    force_https=False, # TLS is terminated in front of the app
    strict_transport_security=True,
    session_cookie_secure=app.config['SESSION_COOKIE_SECURE'],
    session_cookie_samesite='Strict',
    frame_options='DENY'
)

# Rate Limiting
limiter = Limiter(
    get_remote_address,
    app=app,
    default_limits=["1000 per day", "200 per hour"],
    storage_uri="memory://"
)

# Logging
log_file = os.getenv('LOG_FILE', 'mall.log')
logging.basicConfig(filename=log_file or None, level=logging.INFO)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    raise AuthenticationError()


def acting_user():
    """The user behind this request, handed explicitly to the service layer."""
    return current_user._get_current_object()


def validated(form):
    if not form.validate_on_submit():
        raise ValidationFailed.from_form(form)
    return form


def submitted(name):
    payload = request.get_json(silent=True) if request.is_json else request.form
    return bool(payload) and name in payload


def ok(status=200, **payload):
    body = {'success': True}
    body.update(payload)
    return jsonify(body), status


# --- Route guard ---

@app.before_request
def guard_routes():
    if request.endpoint == 'static':
        return None
    target = resolve_redirect(request.path, current_user, request.method)
    if target:
        logging.info(f"Route guard: {request.path} -> {target} (user={current_user.get_id()})")
        return redirect(target)
    return None


# --- Auth ---

@app.route('/auth/login', methods=['GET', 'POST'])
@limiter.limit("5 per minute", methods=['POST'])
def login():
    if request.method == 'GET':
        return ok(csrf_token=generate_csrf())

    form = validated(LoginForm())
    # Honeypot check
    if form.honeypot.data:
        logging.warning(f"Bot detected via honeypot from {request.remote_addr}")
        return ok(redirect='/') # Silent fail for bots

    user = auth.authenticate(form.username.data, form.password.data, request.remote_addr)
    _start_session(user)
    return ok(user=user.to_dict(), redirect=landing_page(user))


@app.route('/auth/register', methods=['GET', 'POST'])
def register():
    if request.method == 'GET':
        return ok(csrf_token=generate_csrf())

    form = validated(RegisterForm())
    user = auth.register(form.username.data, form.password.data, form.role.data)
    _start_session(user)
    return ok(201, user=user.to_dict(), redirect=landing_page(user))


def _start_session(user):
    login_user(user)
    session.permanent = True
    session['role'] = user.role.value


@app.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    session.pop('role', None)
    return ok(redirect='/')


@app.route('/api/csrf-token')
def csrf_token():
    return ok(csrf_token=generate_csrf())


# --- Catalog ---

@app.route('/')
def index():
    return ok(products=catalog.recommended_products())


@app.route('/search')
def search():
    query = request.args.get('q', '')
    return ok(query=query, products=catalog.search_products(query))


@app.route('/products/<int:product_id>')
def product_detail(product_id):
    product = catalog.get_product(product_id)
    user = acting_user()
    return ok(
        product=product,
        reviews=catalog.product_reviews(product_id),
        related=catalog.related_products(product_id, product['category']),
        in_cart=cart.is_in_cart(user, product_id),
        can_review=reviews.reviewable(user, product_id),
    )


# --- Cart ---

@app.route('/products/<int:product_id>/cart', methods=['POST'])
@login_required
def add_to_cart(product_id):
    form = validated(AddToCartForm())
    item = cart.add_to_cart(acting_user(), product_id, form.quantity.data or 1)
    return ok(message='Added to cart', item=item.to_dict())


@app.route('/cart', methods=['GET'])
@login_required
def view_cart():
    items = cart.list_cart(acting_user())
    return ok(items=[item.to_dict() for item in items])


@app.route('/cart', methods=['DELETE'])
@login_required
def clear_cart():
    cart.clear_cart(acting_user())
    return ok()


@app.route('/cart/<int:cart_id>', methods=['PATCH'])
@login_required
def update_cart_item(cart_id):
    form = validated(CartQuantityForm())
    item = cart.update_quantity(acting_user(), cart_id, form.quantity.data)
    return ok(item=item.to_dict())


@app.route('/cart/<int:cart_id>', methods=['DELETE'])
@login_required
def remove_cart_item(cart_id):
    cart.remove_item(acting_user(), cart_id)
    return ok()


@app.route('/cart/checkout', methods=['POST'])
@login_required
def checkout():
    created = orders.checkout(acting_user())
    return ok(201, orders=[order.to_dict() for order in created], redirect='/confirm')


# --- Confirm & pay ---

@app.route('/confirm')
@login_required
def confirm():
    user = acting_user()
    return ok(
        orders=[order.to_dict() for order in orders.pending_orders(user)],
        addresses=[address.to_dict() for address in addresses.list_addresses(user)],
        total=str(orders.pending_total(user)),
    )


@app.route('/confirm/pay', methods=['POST'])
@login_required
def pay():
    form = validated(PaymentForm())
    paid = orders.pay_orders(acting_user(), form.address_id.data, form.payment_method.data)
    return ok(message='Payment successful', orders=[order.to_dict() for order in paid])


# --- My orders ---

@app.route('/my/orders')
@login_required
def my_orders():
    return ok(orders=orders.buyer_orders(acting_user()))


@app.route('/my/orders/<int:order_id>/pay', methods=['POST'])
@login_required
def pay_order(order_id):
    form = validated(PaymentForm())
    paid = orders.pay_orders(acting_user(), form.address_id.data, form.payment_method.data, order_ids=[order_id])
    return ok(order=paid[0].to_dict())


@app.route('/my/orders/<int:order_id>/confirm', methods=['POST'])
@login_required
def confirm_receipt(order_id):
    order = orders.confirm_receipt(acting_user(), order_id)
    return ok(order=order.to_dict())


@app.route('/my/orders/<int:order_id>/cancel', methods=['POST'])
@login_required
def cancel_my_order(order_id):
    order = orders.cancel_order(acting_user(), order_id)
    return ok(order=order.to_dict())


# --- Addresses ---

def _address_data(form, partial=False):
    data = {field: getattr(form, field).data.strip() for field in addresses.ADDRESS_FIELDS}
    if not partial or submitted('is_default'):
        data['is_default'] = form.is_default.data
    return data


@app.route('/my/addresses', methods=['GET'])
@login_required
def list_addresses():
    return ok(addresses=[address.to_dict() for address in addresses.list_addresses(acting_user())])


@app.route('/my/addresses', methods=['POST'])
@login_required
def create_address():
    form = validated(AddressForm())
    address = addresses.create_address(acting_user(), _address_data(form))
    return ok(201, address=address.to_dict())


@app.route('/my/addresses/<int:address_id>', methods=['PUT'])
@login_required
def update_address(address_id):
    form = validated(AddressForm())
    address = addresses.update_address(acting_user(), address_id, _address_data(form, partial=True))
    return ok(address=address.to_dict())


@app.route('/my/addresses/<int:address_id>', methods=['DELETE'])
@login_required
def delete_address(address_id):
    addresses.delete_address(acting_user(), address_id)
    return ok()


@app.route('/my/addresses/<int:address_id>/default', methods=['POST'])
@login_required
def set_default_address(address_id):
    address = addresses.set_default_address(acting_user(), address_id)
    return ok(address=address.to_dict())


# --- Reviews ---

@app.route('/my/reviews', methods=['GET'])
@login_required
def my_reviews():
    return ok(reviews=reviews.my_reviews(acting_user()))


@app.route('/my/reviews', methods=['POST'])
@login_required
def create_review():
    form = validated(ReviewForm())
    if form.product_id.data is None:
        raise ValidationFailed('Product is required', field='product_id')
    review = reviews.create_review(acting_user(), form.product_id.data, form.rating.data, form.comment.data)
    return ok(201, review=review.to_dict())


@app.route('/my/reviews/<int:review_id>', methods=['PUT'])
@login_required
def update_review(review_id):
    form = validated(ReviewForm())
    review = reviews.update_review(acting_user(), review_id, form.rating.data, form.comment.data)
    return ok(review=review.to_dict(), message='Review updated')


@app.route('/my/reviews/<int:review_id>', methods=['DELETE'])
@login_required
def delete_review(review_id):
    reviews.delete_review(acting_user(), review_id)
    return ok(message='Review deleted')


# --- Profile (buyers at /profile, sellers at /manage/settings) ---

@app.route('/profile', methods=['GET'])
@app.route('/manage/settings', methods=['GET'])
@login_required
def view_profile():
    return ok(user=accounts.profile(acting_user()))


@app.route('/profile', methods=['POST'])
@app.route('/manage/settings', methods=['POST'])
@login_required
def update_profile():
    form = validated(ProfileForm())
    user = accounts.update_profile(acting_user(), form.data)
    return ok(user=user.to_dict(), message='Profile updated')


@app.route('/profile/password', methods=['POST'])
@app.route('/manage/settings/password', methods=['POST'])
@login_required
def change_password():
    form = validated(ChangePasswordForm())
    accounts.change_password(acting_user(), form.current_password.data, form.new_password.data,
                             form.confirm_password.data)
    return ok(message='Password changed')


# --- Seller management ---

@app.route('/manage')
@login_required
def manage():
    return ok(stats=products.dashboard_stats(acting_user()))


def _product_data(form):
    data = {
        'name': form.name.data,
        'description': form.description.data,
        'price': form.price.data,
        'stock': form.stock.data,
        'category': form.category.data,
        'images': form.images.data,
    }
    if submitted('is_active'):
        data['is_active'] = form.is_active.data
    return data


@app.route('/manage/products', methods=['GET'])
@login_required
def manage_products():
    return ok(products=[product.to_dict() for product in products.seller_products(acting_user())])


@app.route('/manage/products', methods=['POST'])
@login_required
def create_product():
    form = validated(ProductForm())
    product = products.create_product(acting_user(), _product_data(form))
    return ok(201, product={'id': product.id, 'name': product.name})


@app.route('/manage/products/<int:product_id>', methods=['GET'])
@login_required
def manage_product(product_id):
    return ok(product=products.seller_product(acting_user(), product_id))


@app.route('/manage/products/<int:product_id>', methods=['PUT'])
@login_required
def update_product(product_id):
    form = validated(ProductForm())
    product = products.update_product(acting_user(), product_id, _product_data(form))
    return ok(product={'id': product.id, 'name': product.name})


@app.route('/manage/orders')
@login_required
def manage_orders():
    return ok(orders=orders.seller_orders(acting_user()))


@app.route('/manage/orders/<int:order_id>')
@login_required
def manage_order(order_id):
    return ok(order=orders.seller_order(acting_user(), order_id))


@app.route('/manage/orders/<int:order_id>/ship', methods=['POST'])
@login_required
def ship_order(order_id):
    form = validated(ShipForm())
    order = orders.ship_order(acting_user(), order_id, form.tracking_number.data)
    return ok(order=order.to_dict())


@app.route('/manage/orders/<int:order_id>/cancel', methods=['POST'])
@login_required
def cancel_order(order_id):
    order = orders.cancel_order(acting_user(), order_id)
    return ok(order=order.to_dict())


# --- Images ---

@app.route('/api/upload', methods=['POST'])
@login_required
def upload_image():
    data = uploads.save_image(request.files.get('file'))
    return ok(message='Image uploaded', data=data)


@app.route('/api/images/<uuid:image_id>')
def get_image(image_id):
    found = uploads.find_image(str(image_id))
    if found is None:
        raise NotFound('Image not found')
    path, mimetype = found
    return send_file(path, mimetype=mimetype, max_age=86400)


# --- Error Handlers ---

@app.errorhandler(MallError)
def mall_error(e):
    return jsonify(e.to_dict()), e.status_code


@app.errorhandler(CSRFError)
def csrf_error(e):
    logging.warning(f"CSRF failure on {request.path} from {request.remote_addr}: {e.description}")
    return jsonify({'success': False, 'error': 'Your session has expired, please reload the page'}), 400


@app.errorhandler(SQLAlchemyError)
def storage_error(e):
    db.session.rollback()
    logging.exception(f"Storage failure on {request.method} {request.path}")
    return jsonify({'success': False, 'error': 'Something went wrong, please try again later'}), 500


@app.errorhandler(404)
def page_not_found(e):
    return jsonify({'success': False, 'error': 'Not found'}), 404


@app.errorhandler(413)
def too_large(e):
    return jsonify({'success': False, 'error': 'File is too large, the limit is 5MB'}), 413


@app.errorhandler(429)
def rate_limited(e):
    logging.warning(f"Rate limit hit on {request.path} from {request.remote_addr}")
    return jsonify({'success': False, 'error': 'Too many attempts, please wait a moment'}), 429


@app.errorhandler(500)
def internal_server_error(e):
    return jsonify({'success': False, 'error': 'Something went wrong, please try again later'}), 500


# --- Database Setup ---

@app.cli.command('init-db')
def init_db_command():
    """Create all tables."""
    db.create_all()
    print('Database initialised.')


@app.cli.command('seed')
def seed_command():
    """Load demo buyer, seller, products and an address."""
    db.create_all()
    seed.load_demo_data()
    print('Demo data loaded.')


if __name__ == '__main__':
    with app.app_context():
        db.create_all()
    # In production, debug must be False
    app.run(debug=False)
