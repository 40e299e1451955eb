"""Engine subpackage - core pricing and discount resolution."""
from .pricing_engine import PricingEngine, price
from .models import CartLine, DiscountKind, DiscountRule, PricedLine, PricingContext, Product, Quote, Request
from .supersession import LatestCallGate

__all__ = [
    'PricingEngine', 'price', 'CartLine', 'DiscountKind', 'DiscountRule', 'PricedLine',
    'PricingContext', 'Product', 'Quote', 'Request', 'LatestCallGate',
]
