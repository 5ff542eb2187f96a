from models import db, User, Role, Product, Address, money
from auth import hash_password
import logging

DEMO_PASSWORD = '123456'

DEMO_PRODUCTS = [
    ('iPhone 15 Pro', 'Flagship phone with the A17 Pro chip and 5G', '7999.00', 50, 'Electronics'),
    ('MacBook Air M3', '13-inch laptop, 16GB memory, 512GB storage', '9499.00', 20, 'Electronics'),
    ('Noise Cancelling Headphones', 'Over-ear wireless headphones with 30h battery', '1299.00', 80, 'Audio'),
    ('Running Shoes', 'Lightweight cushioned trainers', '599.00', 120, 'Sports'),
    ('Backpack', 'Water resistant everyday backpack', '259.00', 200, 'Fashion'),
    ('Pour-over Coffee Set', 'Ceramic dripper, glass server and filters', '189.00', 60, 'Home'),
]


def load_demo_data():
    """Create the demo buyer and seller with a small catalog, once."""
    if User.query.filter_by(username='seller001').first():
        logging.info("Demo data already present, skipping seed")
        return

    password_hash = hash_password(DEMO_PASSWORD)
    buyer = User(username='buyer001', email='buyer@example.com', phone='13800138001',
                 password_hash=password_hash, role=Role.BUYER, real_name='Demo Buyer')
    seller = User(username='seller001', email='seller@example.com', phone='13800138002',
                  password_hash=password_hash, role=Role.SELLER, real_name='Demo Seller')
    db.session.add_all([buyer, seller])
    db.session.flush()

    for index, (name, description, price, stock, category) in enumerate(DEMO_PRODUCTS, start=1):
        product = Product(name=name, description=description, price=money(price), stock=stock,
                          category=category, seller_id=seller.id)
        product.image_list = [f"https://picsum.photos/400/400?random={index}"]
        db.session.add(product)

    db.session.add(Address(user_id=buyer.id, receiver_name='Demo Buyer', phone='13800138001',
                           province='Guangdong', city='Shenzhen', district='Nanshan',
                           detail='1 Science Park Road', is_default=True))
    db.session.commit()
    logging.info(f"Seeded {len(DEMO_PRODUCTS)} demo products")
