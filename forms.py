from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, IntegerField, DecimalField, BooleanField, SelectField, TextAreaField, Field
from wtforms.validators import DataRequired, InputRequired, Length, Email, Regexp, EqualTo, NumberRange, Optional, ValidationError

USERNAME_RULES = [
    DataRequired(message="Username is required"),
    Length(min=3, max=20, message="Username must be between 3 and 20 characters"),
]
PASSWORD_RULES = [
    DataRequired(message="Password is required"),
    Length(min=6, max=100, message="Password must be between 6 and 100 characters"),
]
MOBILE_PATTERN = r'^1[3-9]\d{9}$'


class ImageListField(Field):
    """A repeated form key (or JSON array) collected into a list of URLs."""

    def process_formdata(self, valuelist):
        self.data = [str(value).strip() for value in valuelist if str(value).strip()]


class LoginForm(FlaskForm):
    username = StringField('Username', validators=USERNAME_RULES)
    password = PasswordField('Password', validators=PASSWORD_RULES)
    # Honeypot field - should be left empty by humans
    honeypot = StringField('Middle Name', validators=[Length(max=0, message="Bot detected")])


class RegisterForm(FlaskForm):
    username = StringField('Username', validators=USERNAME_RULES + [
        Regexp(r'^[a-zA-Z0-9_]+$', message="Username may only contain letters, digits and underscores")
    ])
    password = PasswordField('Password', validators=PASSWORD_RULES)
    confirm_password = PasswordField('Confirm password', validators=[
        EqualTo('password', message="The passwords do not match")
    ])
    role = SelectField('Account type', choices=[('BUYER', 'Buyer'), ('SELLER', 'Seller')],
                       validators=[DataRequired(message="Please choose an account type")])


class AddToCartForm(FlaskForm):
    quantity = IntegerField('Quantity', default=1, validators=[
        Optional(), NumberRange(min=1, message="Quantity must be greater than 0")
    ])


class CartQuantityForm(FlaskForm):
    quantity = IntegerField('Quantity', validators=[
        InputRequired(message="Quantity is required"),
        NumberRange(min=1, message="Quantity must be greater than 0")
    ])


class PaymentForm(FlaskForm):
    address_id = IntegerField('Address', validators=[InputRequired(message="Please choose an address")])
    payment_method = SelectField('Payment method', choices=[('wechat', 'WeChat Pay'), ('alipay', 'Alipay')],
                                 validators=[DataRequired(message="Please choose a payment method")])


class ShipForm(FlaskForm):
    tracking_number = StringField('Tracking number', validators=[
        DataRequired(message="A tracking number is required to ship an order"),
        Length(max=100)
    ])


class AddressForm(FlaskForm):
    receiver_name = StringField('Receiver', validators=[DataRequired(message="Receiver name is required"), Length(max=50)])
    phone = StringField('Phone', validators=[DataRequired(message="Phone number is required"), Length(max=20)])
    province = StringField('Province', validators=[DataRequired(message="Province is required"), Length(max=50)])
    city = StringField('City', validators=[DataRequired(message="City is required"), Length(max=50)])
    district = StringField('District', validators=[DataRequired(message="District is required"), Length(max=50)])
    detail = StringField('Detail', validators=[DataRequired(message="Detailed address is required"), Length(max=200)])
    is_default = BooleanField('Default address')


class ReviewForm(FlaskForm):
    product_id = IntegerField('Product', validators=[Optional()])
    rating = IntegerField('Rating', validators=[
        InputRequired(message="Rating is required"),
        NumberRange(min=1, max=5, message="Rating must be between 1 and 5")
    ])
    comment = TextAreaField('Comment', validators=[Optional(), Length(max=1000)])


class ProductForm(FlaskForm):
    name = StringField('Name', validators=[
        DataRequired(message="Product name is required"),
        Length(max=100, message="Product name cannot exceed 100 characters")
    ])
    description = TextAreaField('Description', validators=[Optional()])
    price = DecimalField('Price', places=2, validators=[
        InputRequired(message="Price is required"),
        NumberRange(min=0.01, message="Price must be greater than 0")
    ])
    stock = IntegerField('Stock', validators=[
        InputRequired(message="Stock is required"),
        NumberRange(min=0, message="Stock cannot be negative")
    ])
    category = StringField('Category', validators=[Optional(), Length(max=100)])
    images = ImageListField('Images')
    is_active = BooleanField('On sale', default=True)

    def validate_images(self, field):
        if not field.data:
            raise ValidationError("At least one product image is required")


class ProfileForm(FlaskForm):
    real_name = StringField('Real name', validators=[Optional(), Length(max=50, message="Real name cannot exceed 50 characters")])
    email = StringField('Email', validators=[
        Optional(),
        Email(message="Email address is not valid"),
        Length(max=100, message="Email cannot exceed 100 characters")
    ])
    phone = StringField('Phone', validators=[Optional(), Regexp(MOBILE_PATTERN, message="Phone number is not valid")])
    avatar = StringField('Avatar', validators=[Optional(), Length(max=500, message="Avatar URL cannot exceed 500 characters")])


class ChangePasswordForm(FlaskForm):
    current_password = PasswordField('Current password', validators=[DataRequired(message="Please enter your current password")])
    new_password = PasswordField('New password', validators=[
        DataRequired(message="Please enter a new password"),
        Length(min=6, max=100, message="New password must be between 6 and 100 characters")
    ])
    confirm_password = PasswordField('Confirm new password', validators=[
        EqualTo('new_password', message="The new passwords do not match")
    ])
