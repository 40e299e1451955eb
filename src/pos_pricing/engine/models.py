"""
Data models for the pricing engine.

Inputs are frozen dataclasses; a pricing call cannot alter the
catalog, the rule set or the cart it was given. Money is carried as
Decimal end to end.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from .errors import InvalidCartError


CENT = Decimal('0.01')
ZERO = Decimal('0')


def to_decimal(value) -> Decimal:
    """Convert a CSV/JSON value to Decimal (floats go through str)."""
    if isinstance(value, Decimal):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidOperation(f"Cannot convert {value!r} to Decimal")
    return Decimal(str(value).strip())


def round_money(value: Decimal, quantum: Decimal = CENT) -> Decimal:
    """Round half-up to the currency quantum."""
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


class DiscountKind(str, Enum):
    """How a discount rule's value is interpreted."""
    PERCENTAGE = 'PERCENTAGE'
    FIXED_AMOUNT = 'FIXED_AMOUNT'


class DiscountSource(str, Enum):
    """Where a priced line's discount came from."""
    MANUAL = 'manual'
    RULE = 'rule'
    NONE = 'none'


@dataclass(frozen=True)
class Product:
    """A sellable catalog entry."""
    product_id: str
    name: str
    price: Decimal
    stock: int
    category: str = ""
    active: bool = True
    unit: Optional[str] = None


@dataclass(frozen=True)
class DiscountRule:
    """
    A discount rule as stored by the back office.

    `kind` is kept as the raw tag so that rows with an unknown tag still
    load; the rule matcher rejects them. An empty `product_ids` means the
    rule covers every product. A set `price_level_id` ties the rule to
    customers on that price level.
    """
    rule_id: str
    name: str
    kind: str
    value: Decimal
    active: bool = True
    product_ids: frozenset = frozenset()
    price_level_id: Optional[str] = None
    priority: int = 50

    @property
    def is_product_scoped(self) -> bool:
        return bool(self.product_ids)


@dataclass(frozen=True)
class PriceLevel:
    """A named price tier a customer can be assigned to."""
    price_level_id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class Customer:
    """A customer and the price level negotiated for them."""
    customer_id: str
    name: str
    price_level_id: Optional[str] = None


@dataclass(frozen=True)
class CartLine:
    """One requested product in an in-progress order."""
    product_id: str
    quantity: int
    manual_discount: Optional[Decimal] = None

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidCartError(
                f"Quantity for {self.product_id} must be an integer",
                {'product_id': self.product_id, 'quantity': str(self.quantity)},
            )
        if self.quantity <= 0:
            raise InvalidCartError(
                f"Quantity for {self.product_id} must be greater than 0",
                {'product_id': self.product_id, 'quantity': self.quantity},
            )
        if self.manual_discount is not None:
            try:
                manual = to_decimal(self.manual_discount)
            except InvalidOperation:
                raise InvalidCartError(
                    f"Manual discount for {self.product_id} is not a number",
                    {'product_id': self.product_id},
                )
            if not manual.is_finite() or manual < ZERO:
                raise InvalidCartError(
                    f"Manual discount for {self.product_id} must be 0 or more",
                    {'product_id': self.product_id, 'manual_discount': str(manual)},
                )
            object.__setattr__(self, 'manual_discount', manual)


@dataclass(frozen=True)
class PricingContext:
    """Customer context for a pricing call."""
    price_level_id: Optional[str] = None


@dataclass
class TraceStep:
    """A single step in the pricing resolution trace."""
    step: str
    description: str
    value: Optional[str] = None

    def to_dict(self) -> dict:
        return {'step': self.step, 'description': self.description, 'value': self.value}


def _trace_text(trace: list[TraceStep], bullet: str) -> str:
    lines = []
    for t in trace:
        if t.value:
            lines.append(f"{bullet} {t.step}: {t.description} = {t.value}")
        else:
            lines.append(f"{bullet} {t.step}: {t.description}")
    return "\n".join(lines)


@dataclass
class PricedLine:
    """A cart line after discount resolution."""
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    discount_per_unit: Decimal
    final_unit_price: Decimal
    line_subtotal: Decimal
    line_discount: Decimal
    line_total: Decimal
    discount_source: DiscountSource = DiscountSource.NONE
    applied_rule_id: Optional[str] = None
    applied_rule_name: Optional[str] = None
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace for this line."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        return _trace_text(self.trace, "→")

    def to_dict(self) -> dict:
        return {
            'product_id': self.product_id,
            'name': self.name,
            'quantity': self.quantity,
            'unit_price': str(round_money(self.unit_price)),
            'discount_per_unit': str(self.discount_per_unit),
            'final_unit_price': str(self.final_unit_price),
            'line_subtotal': str(self.line_subtotal),
            'line_discount': str(self.line_discount),
            'line_total': str(self.line_total),
            'discount_source': self.discount_source.value,
            'applied_rule_id': self.applied_rule_id,
            'applied_rule_name': self.applied_rule_name,
            'trace': [t.to_dict() for t in self.trace],
        }


@dataclass
class Quote:
    """Complete result of a pricing call."""
    lines: list[PricedLine]
    subtotal: Decimal
    total_discount: Decimal
    grand_total: Decimal
    price_level_id: Optional[str] = None
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the quote-level trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        if warning not in self.warnings:
            self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable quote trace as formatted text."""
        return _trace_text(self.trace, "•")

    def to_dict(self) -> dict:
        return {
            'price_level_id': self.price_level_id,
            'subtotal': str(self.subtotal),
            'total_discount': str(self.total_discount),
            'grand_total': str(self.grand_total),
            'lines': [line.to_dict() for line in self.lines],
            'warnings': list(self.warnings),
            'trace': [t.to_dict() for t in self.trace],
        }


@dataclass
class Request:
    """A pricing request as received from the POS screen."""
    cart: list[CartLine]
    customer_id: Optional[str] = None

    # Explicit override of the customer's assigned price level
    price_level_id: Optional[str] = None
