from flask_bcrypt import Bcrypt
from models import db, User, Role
from errors import AuthenticationError, PermissionDenied, BusinessRuleError
import logging

bcrypt = Bcrypt()

BUYER_PREFIXES = ('/products', '/search', '/cart', '/confirm', '/my', '/profile')
OPEN_AUTH_PATHS = ('/auth/login', '/auth/register')
SAFE_METHODS = ('GET', 'HEAD')


def hash_password(password):
    return bcrypt.generate_password_hash(password).decode('utf-8')


def check_password(user, password):
    return bcrypt.check_password_hash(user.password_hash, password)


def require_user(user):
    if user is None or not user.is_authenticated:
        raise AuthenticationError()
    return user


def require_buyer(user, action='do this'):
    require_user(user)
    if not user.is_buyer:
        raise PermissionDenied(f'Only buyers can {action}')
    return user


def require_seller(user, action='do this'):
    require_user(user)
    if not user.is_seller:
        raise PermissionDenied(f'Only sellers can {action}')
    return user


def register(username, password, role):
    if User.query.filter_by(username=username).first():
        raise BusinessRuleError('Username already exists')

    user = User(username=username, password_hash=hash_password(password), role=Role(role))
    db.session.add(user)
    db.session.commit()
    logging.info(f"Registered {user.role.value.lower()} account: {username}")
    return user


def authenticate(username, password, remote_addr=None):
    user = User.query.filter_by(username=username).first()
    if user and check_password(user, password):
        logging.info(f"Successful login for user: {username}")
        return user

    logging.warning(f"Failed login attempt for user: {username} from {remote_addr}")
    raise BusinessRuleError('Invalid username or password')


def landing_page(user):
    return '/manage' if user.is_seller else '/'


def _is_buyer_path(path):
    if path == '/':
        return True
    return any(path == prefix or path.startswith(prefix + '/') for prefix in BUYER_PREFIXES)


def resolve_redirect(path, user, method='GET'):
    """Decide where the route guard sends a request, or None to let it through.

    Sellers live under /manage, buyers everywhere else. Anonymous visitors may
    browse the shop and reach the login and register pages only. Sellers are
    only redirected away from buyer pages on reads, so a mutation reaches the
    view and gets its role error.
    """
    authenticated = user is not None and user.is_authenticated
    is_auth_path = path == '/auth' or path.startswith('/auth/')
    is_manage_path = path == '/manage' or path.startswith('/manage/')

    if authenticated and user.is_seller and (is_auth_path or (method in SAFE_METHODS and _is_buyer_path(path))):
        return '/manage'

    if is_manage_path and not authenticated:
        return '/auth/login'

    if is_auth_path and authenticated:
        return landing_page(user)

    if is_auth_path and not authenticated and path not in OPEN_AUTH_PATHS:
        return '/auth/login'

    return None
