import sys
import os
from decimal import Decimal

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from pos_pricing.config.settings import Settings
from pos_pricing.engine.models import DiscountRule, Product


PRODUCTS_CSV = """product_id,name,price,stock,category,is_active,unit
P1,Bottled Water,100.00,10,Beverages,true,case
P2,Instant Noodles,250.50,40,Groceries,true,box
P3,Cooking Oil,89.75,25,Groceries,yes,pcs
P5,Old Soap,20.00,100,Household,false,pcs
"""

DISCOUNTS_CSV = """discount_id,name,type,value,is_active,price_level_id,priority
D-L1,Wholesale 10%,PERCENTAGE,10,true,L1,50
D-L1-P2,Wholesale Noodles,FIXED_AMOUNT,30.00,true,L1,50
D-PROMO-P3,Oil Promo,FIXED_AMOUNT,5.00,true,,50
D-BAD,Broken,PERCENTAGE,150,true,L2,50
"""

ASSIGNMENTS_CSV = """discount_id,product_id
D-L1-P2,P2
D-PROMO-P3,P3
"""

PRICE_LEVELS_CSV = """price_level_id,name,description
L1,Wholesale,Negotiated wholesale rate
L2,Dealer,
"""

CUSTOMERS_CSV = """customer_id,name,price_level_id
C100,Santos Store,L1
C300,Walk-in Regular,
"""


@pytest.fixture
def catalog():
    return {
        'P1': Product(product_id='P1', name='Bottled Water', price=Decimal('100.00'), stock=10),
        'P2': Product(product_id='P2', name='Instant Noodles', price=Decimal('250.50'), stock=40),
        'P3': Product(product_id='P3', name='Cooking Oil', price=Decimal('89.75'), stock=25),
        'P5': Product(product_id='P5', name='Old Soap', price=Decimal('20.00'), stock=100, active=False),
    }


@pytest.fixture
def level_rule():
    return DiscountRule(rule_id='R-L1', name='Wholesale 10%', kind='PERCENTAGE', value=Decimal('10'), price_level_id='L1')


@pytest.fixture
def data_dir(tmp_path):
    """A data directory populated with a small, consistent data set."""
    (tmp_path / 'products.csv').write_text(PRODUCTS_CSV, encoding='utf-8')
    (tmp_path / 'discounts.csv').write_text(DISCOUNTS_CSV, encoding='utf-8')
    (tmp_path / 'discount_assignments.csv').write_text(ASSIGNMENTS_CSV, encoding='utf-8')
    (tmp_path / 'price_levels.csv').write_text(PRICE_LEVELS_CSV, encoding='utf-8')
    (tmp_path / 'customers.csv').write_text(CUSTOMERS_CSV, encoding='utf-8')
    return tmp_path


@pytest.fixture
def settings(data_dir):
    return Settings.load(project_root=data_dir, data_dir=data_dir)
