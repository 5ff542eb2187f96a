from models import db, User
from errors import BusinessRuleError, ValidationFailed
from auth import require_user, check_password, hash_password


def profile(user):
    require_user(user)
    return user.to_dict()


def _taken(column, value, user):
    return User.query.filter(column == value, User.id != user.id).first() is not None


def update_profile(user, data):
    """Apply profile edits; blank contact fields are cleared rather than stored."""
    require_user(user)

    email = (data.get('email') or '').strip()
    phone = (data.get('phone') or '').strip()
    if email and _taken(User.email, email, user):
        raise BusinessRuleError('This email is already used by another account')
    if phone and _taken(User.phone, phone, user):
        raise BusinessRuleError('This phone number is already used by another account')

    real_name = (data.get('real_name') or '').strip()
    if real_name:
        user.real_name = real_name
    if data.get('email') is not None:
        user.email = email or None
    if data.get('phone') is not None:
        user.phone = phone or None
    if data.get('avatar') is not None:
        user.avatar = data['avatar'].strip() or None

    db.session.commit()
    return user


def change_password(user, current_password, new_password, confirm_password):
    require_user(user)
    if new_password != confirm_password:
        raise ValidationFailed('The new passwords do not match', field='confirm_password')
    if not check_password(user, current_password):
        raise BusinessRuleError('Current password is incorrect')

    user.password_hash = hash_password(new_password)
    db.session.commit()
