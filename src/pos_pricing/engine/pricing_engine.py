"""
Pricing Engine - Cart pricing and discount resolution with traceability.

`price()` is a pure function over a snapshot of cart, context, catalog and
rules. `PricingEngine` owns the loaded data and turns a POS `Request`
(customer + cart) into a call to `price()`.

Discount precedence per line (first match wins, never stacked):
1. Manual per-unit override, when supplied and nonzero
2. Rule scoped to the product and the customer's price level
3. Rule scoped to the customer's price level for all products
4. Promotion without price level scope: product-specific, then store-wide
5. No discount
"""
import logging
from decimal import Decimal
from typing import Iterable, Optional, Protocol, Union

from ..config.settings import get_settings, Settings
from .errors import (
    InsufficientStockError,
    InvalidCartError,
    PriceLevelNotFoundError,
    ProductInactiveError,
    ProductNotFoundError,
)
from .models import (
    CENT,
    CartLine,
    DiscountRule,
    DiscountSource,
    PricedLine,
    PricingContext,
    Product,
    Quote,
    Request,
    ZERO,
    round_money,
)
from .rule_matcher import RuleMatcher, clamp_discount


logger = logging.getLogger(__name__)


class ProductLookup(Protocol):
    def get(self, product_id: str) -> Optional[Product]: ...


def price(
    cart: Iterable[CartLine],
    context: Optional[PricingContext],
    catalog: ProductLookup,
    rules: Union[RuleMatcher, Iterable[DiscountRule]],
    quantum: Decimal = CENT,
) -> Quote:
    """
    Price a cart.

    Args:
        cart: Non-empty sequence of CartLine
        context: Customer context (price level); None means no price level
        catalog: Anything with get(product_id) -> Product | None
        rules: Discount rules, or a RuleMatcher already built from them;
            malformed rules are skipped and reported
        quantum: Currency rounding step

    Returns:
        Quote with priced lines and totals

    Raises:
        InvalidCartError, ProductNotFoundError, ProductInactiveError,
        InsufficientStockError. Nothing is returned for a partially
        valid cart.
    """
    cart = list(cart)
    if not cart:
        raise InvalidCartError("Cart is empty")

    context = context or PricingContext()
    matcher = rules if isinstance(rules, RuleMatcher) else RuleMatcher(rules)

    quote = Quote(
        lines=[],
        subtotal=ZERO,
        total_discount=ZERO,
        grand_total=ZERO,
        price_level_id=context.price_level_id,
    )
    if context.price_level_id:
        quote.add_trace("Price Level", "Pricing for price level", context.price_level_id)
    else:
        quote.add_trace("Price Level", "No price level, promotions only")
    quote.add_trace("Rules", "Active discount rules", str(len(matcher.rules)))

    for rule_id in matcher.rejected_ids:
        quote.add_warning(f"Discount rule {rule_id} skipped (invalid)")

    # Resolve every product before pricing anything (all-or-nothing)
    products = [_resolve_product(line, catalog) for line in cart]

    for line, product in zip(cart, products):
        priced = _price_line(line, product, context, matcher, quantum)
        quote.lines.append(priced)
        quote.subtotal += priced.line_subtotal
        quote.total_discount += priced.line_discount
        quote.grand_total += priced.line_total

    quote.add_trace("Totals", "Subtotal", f"{quote.subtotal}")
    quote.add_trace("Totals", "Total discount", f"{quote.total_discount}")
    quote.add_trace("Totals", "Grand total", f"{quote.grand_total}")
    return quote


def _resolve_product(line: CartLine, catalog: ProductLookup) -> Product:
    """Look up a line's product and verify it can be sold in that quantity."""
    product = catalog.get(line.product_id)
    if product is None:
        raise ProductNotFoundError(line.product_id)
    if not product.active:
        raise ProductInactiveError(product.product_id)
    if line.quantity > product.stock:
        raise InsufficientStockError(product.product_id, line.quantity, product.stock)
    return product


def _price_line(
    line: CartLine,
    product: Product,
    context: PricingContext,
    matcher: RuleMatcher,
    quantum: Decimal,
) -> PricedLine:
    """Calculate a single line with trace."""
    unit_price = product.price
    qty = line.quantity

    priced = PricedLine(
        product_id=product.product_id,
        name=product.name,
        quantity=qty,
        unit_price=unit_price,
        discount_per_unit=ZERO,
        final_unit_price=unit_price,
        line_subtotal=ZERO,
        line_discount=ZERO,
        line_total=ZERO,
    )
    priced.add_trace("Product Lookup", f"{product.name} (stock {product.stock})", product.product_id)
    priced.add_trace("Base Price", "Catalog unit price", f"{unit_price}")

    if line.manual_discount:
        priced.discount_source = DiscountSource.MANUAL
        priced.discount_per_unit = clamp_discount(line.manual_discount, unit_price)
        priced.add_trace("Manual Override", "Cashier discount per unit", f"{priced.discount_per_unit}")
        if priced.discount_per_unit != line.manual_discount:
            priced.add_trace("Clamp", f"Manual discount {line.manual_discount} capped at unit price")
    else:
        rule, tier = matcher.find_rule(product.product_id, context.price_level_id)
        if rule is not None:
            priced.discount_source = DiscountSource.RULE
            priced.applied_rule_id = rule.rule_id
            priced.applied_rule_name = rule.name
            priced.discount_per_unit = matcher.discount_per_unit(rule, unit_price)
            priced.add_trace("Rule Applied", f"{rule.name} ({rule.rule_id}) via {tier}", f"{priced.discount_per_unit}")
        else:
            priced.add_trace("Discount", "No applicable discount")

    priced.final_unit_price = unit_price - priced.discount_per_unit
    priced.line_subtotal = round_money(unit_price * qty, quantum)
    priced.line_total = round_money(priced.final_unit_price * qty, quantum)
    priced.line_discount = priced.line_subtotal - priced.line_total
    priced.add_trace("Extension", f"Quantity {qty} × {priced.final_unit_price}", f"{priced.line_total}")

    logger.debug(
        "Priced %s x%d: unit=%s discount=%s total=%s (%s)",
        product.product_id, qty, unit_price, priced.discount_per_unit,
        priced.line_total, priced.discount_source.value,
    )
    return priced


class PricingEngine:
    """
    Pricing engine bound to a loaded catalog, rule set and customer directory.

    Resolution order for a request:
    1. Explicit price level on the request
    2. Price level assigned to the customer
    3. No price level (COD default)
    then `price()` on a snapshot of the loaded data.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        catalog=None,
        rules: Optional[list[DiscountRule]] = None,
        price_levels=None,
        customers=None,
    ):
        """Initialize engine, loading from disk whatever was not passed in."""
        self.settings = settings or get_settings()
        self._injected = dict(catalog=catalog, rules=rules, price_levels=price_levels, customers=customers)
        self._load()

    def _load(self):
        """Load catalog, rules and customer directory, keeping injected tables."""
        from ..data import loader

        injected = self._injected
        self.catalog = injected["catalog"] if injected["catalog"] is not None else loader.load_products(self.settings)
        self.rules = list(injected["rules"]) if injected["rules"] is not None else loader.load_discount_rules(self.settings)
        self.directory = loader.CustomerDirectory(
            injected["customers"] if injected["customers"] is not None else loader.load_customers(self.settings),
            injected["price_levels"] if injected["price_levels"] is not None else loader.load_price_levels(self.settings),
        )
        self.rule_matcher = RuleMatcher(self.rules)

        if self.rule_matcher.rejected:
            logger.warning("%d discount rule(s) invalid and ignored", len(self.rule_matcher.rejected))

    def reload_data(self):
        """Reload all tables from disk (injected tables are kept)."""
        self._load()
        logger.info("Pricing data reloaded")

    def resolve_price_level(self, customer_id: Optional[str]) -> tuple[Optional[str], list]:
        """
        Resolve the price level for a customer with trace of resolution steps.

        Returns (price_level_id or None, trace_steps).
        """
        trace = []
        if not customer_id:
            trace.append(("Customer Lookup", "Walk-in customer", None))
            trace.append(("Fallback", "Using COD default (no price level)", None))
            return None, trace

        customer_id = str(customer_id).strip()
        trace.append(("Customer Lookup", f"Resolving price level for customer {customer_id}", None))

        customer = self.directory.get_customer(customer_id)
        if customer is None:
            trace.append(("Customer Lookup", "Customer not found", None))
        elif customer.price_level_id:
            trace.append(("Price Level", f"Assigned to {customer.name}", customer.price_level_id))
            return customer.price_level_id, trace
        else:
            trace.append(("Price Level", f"No price level assigned to {customer.name}", None))

        trace.append(("Fallback", "Using COD default (no price level)", None))
        return None, trace

    def calculate(self, request: Request) -> Quote:
        """
        Calculate a quote with full traceability.

        Args:
            request: Request with cart and customer context

        Returns:
            Quote with lines, totals, trace and warnings
        """
        if request.price_level_id:
            price_level_id = str(request.price_level_id).strip()
            if self.directory.price_levels and self.directory.get_price_level(price_level_id) is None:
                raise PriceLevelNotFoundError(price_level_id)
            trace = [("Price Level", "Explicit price level on request", price_level_id)]
        else:
            price_level_id, trace = self.resolve_price_level(request.customer_id)

        quote = price(
            request.cart,
            PricingContext(price_level_id=price_level_id),
            self.catalog,
            self.rule_matcher,
            self.settings.currency_quantum,
        )

        resolved = list(quote.trace)
        quote.trace = []
        for step, desc, val in trace:
            quote.add_trace(step, desc, val)
        quote.trace.extend(resolved)
        return quote
