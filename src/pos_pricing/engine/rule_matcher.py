"""
Rule Matcher - Selects and applies the discount rule for a cart line.

Used by the pricing engine after a manual override has been ruled out.
At most one rule applies per line; rules never stack.
"""
import logging
from decimal import Decimal
from typing import Iterable, Optional

from .errors import InvalidDiscountRuleError
from .models import DiscountKind, DiscountRule, ZERO


logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')

# Precedence tiers, highest first
TIER_LEVEL_PRODUCT = "price level + product"
TIER_LEVEL_ALL = "price level, all products"
TIER_PROMO_PRODUCT = "promotion, product"
TIER_PROMO_ALL = "promotion, all products"


def validate_rule(rule: DiscountRule) -> DiscountKind:
    """
    Check a rule's kind and value range.

    Returns the parsed kind; raises InvalidDiscountRuleError otherwise.
    """
    try:
        kind = DiscountKind(rule.kind)
    except ValueError:
        raise InvalidDiscountRuleError(rule.rule_id, f"unsupported discount kind '{rule.kind}'")

    value = rule.value
    if not isinstance(value, Decimal) or not value.is_finite():
        raise InvalidDiscountRuleError(rule.rule_id, f"value {value!r} is not a number")

    if kind is DiscountKind.PERCENTAGE:
        if value < ZERO or value > HUNDRED:
            raise InvalidDiscountRuleError(rule.rule_id, f"percentage {value} outside 0-100")
    elif kind is DiscountKind.FIXED_AMOUNT:
        if value < ZERO:
            raise InvalidDiscountRuleError(rule.rule_id, f"fixed amount {value} is negative")
    else:
        raise InvalidDiscountRuleError(rule.rule_id, f"unhandled discount kind '{kind}'")

    return kind


def clamp_discount(amount: Decimal, unit_price: Decimal) -> Decimal:
    """Clamp a per-unit discount to [0, unit_price]."""
    return min(max(amount, ZERO), unit_price)


class RuleMatcher:
    """
    Holds the usable subset of a rule set and matches it against lines.

    Inactive rules are dropped silently. Malformed rules are dropped with a
    warning and kept in `rejected` so callers can report them.
    """

    def __init__(self, rules: Iterable[DiscountRule]):
        self.rules: list[DiscountRule] = []
        self.rejected: list[InvalidDiscountRuleError] = []

        for rule in rules:
            if not rule.active:
                continue
            try:
                validate_rule(rule)
            except InvalidDiscountRuleError as e:
                logger.warning("Skipping discount rule: %s", e.message)
                self.rejected.append(e)
                continue
            self.rules.append(rule)

        # Sort by priority (lower = higher priority), then id for determinism
        self.rules.sort(key=lambda r: (r.priority, r.rule_id))

    @property
    def rejected_ids(self) -> list[str]:
        return [e.rule_id for e in self.rejected]

    def find_rule(self, product_id: str, price_level_id: Optional[str]) -> tuple[Optional[DiscountRule], Optional[str]]:
        """
        Find the single rule that applies to a product for a price level.

        Returns (rule, tier_label) or (None, None).
        """
        # A level without a matching rule still falls through to promotions
        tiers = []
        if price_level_id:
            tiers.append((TIER_LEVEL_PRODUCT, price_level_id, True))
            tiers.append((TIER_LEVEL_ALL, price_level_id, False))
        tiers.append((TIER_PROMO_PRODUCT, None, True))
        tiers.append((TIER_PROMO_ALL, None, False))

        for label, level, product_scoped in tiers:
            for rule in self.rules:
                if rule.price_level_id != level:
                    continue
                if rule.is_product_scoped != product_scoped:
                    continue
                if product_scoped and product_id not in rule.product_ids:
                    continue
                return rule, label

        return None, None

    def discount_per_unit(self, rule: DiscountRule, unit_price: Decimal) -> Decimal:
        """Per-unit discount a rule grants at a unit price, clamped to the price."""
        kind = validate_rule(rule)

        if kind is DiscountKind.PERCENTAGE:
            amount = unit_price * rule.value / HUNDRED
        elif kind is DiscountKind.FIXED_AMOUNT:
            amount = rule.value
        else:
            raise InvalidDiscountRuleError(rule.rule_id, f"unhandled discount kind '{kind}'")

        return clamp_discount(amount, unit_price)
