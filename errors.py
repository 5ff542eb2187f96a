class MallError(Exception):
    """Base class for failures that are reported back to the caller."""

    status_code = 400
    default_message = 'Request could not be processed'

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self):
        body = {'success': False, 'error': self.message}
        body.update(self.extra)
        return body


class AuthenticationError(MallError):
    # Never say why: missing, tampered and expired sessions all look the same.
    status_code = 401
    default_message = 'Please log in'


class PermissionDenied(MallError):
    status_code = 403
    default_message = 'You do not have permission to do this'


class NotFound(MallError):
    status_code = 404
    default_message = 'Not found'


class ValidationFailed(MallError):
    status_code = 400
    default_message = 'Invalid input'

    @classmethod
    def from_form(cls, form):
        for field_name, messages in form.errors.items():
            if messages:
                message = messages[0]
                if isinstance(message, dict):
                    message = next(iter(message.values()))[0]
                return cls(message, field=field_name)
        return cls()


class BusinessRuleError(MallError):
    status_code = 409


class InsufficientStock(BusinessRuleError):
    def __init__(self, product_name):
        super().__init__(f'Insufficient stock for {product_name}', product=product_name)


class AddressRequired(BusinessRuleError):
    def __init__(self):
        super().__init__('Please add a shipping address first', code='needs_address')


class InvalidTransition(BusinessRuleError):
    def __init__(self, current, target):
        super().__init__(f'Cannot change an order from {current} to {target}', status=current)
