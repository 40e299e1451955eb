from decimal import Decimal

import pytest

from pos_pricing.engine.errors import InvalidDiscountRuleError
from pos_pricing.engine.models import DiscountKind, DiscountRule
from pos_pricing.engine.rule_matcher import (
    TIER_LEVEL_ALL,
    TIER_LEVEL_PRODUCT,
    TIER_PROMO_ALL,
    TIER_PROMO_PRODUCT,
    RuleMatcher,
    validate_rule,
)


def make_rule(rule_id, kind='PERCENTAGE', value='10', level=None, products=(), priority=50, active=True):
    return DiscountRule(
        rule_id=rule_id, name=rule_id, kind=kind, value=Decimal(value), active=active,
        product_ids=frozenset(products), price_level_id=level, priority=priority,
    )


@pytest.mark.parametrize("kind, value, expected", [
    ('PERCENTAGE', '0', DiscountKind.PERCENTAGE),
    ('PERCENTAGE', '100', DiscountKind.PERCENTAGE),
    ('FIXED_AMOUNT', '0', DiscountKind.FIXED_AMOUNT),
    ('FIXED_AMOUNT', '9999', DiscountKind.FIXED_AMOUNT),
])
def test_validate_accepts_in_range_values(kind, value, expected):
    assert validate_rule(make_rule('R', kind, value)) is expected


@pytest.mark.parametrize("kind, value, reason", [
    ('PERCENTAGE', '-1', 'outside 0-100'),
    ('PERCENTAGE', '100.01', 'outside 0-100'),
    ('FIXED_AMOUNT', '-0.01', 'negative'),
    ('FIXED_AMOUNT', 'NaN', 'not a number'),
    ('BUY_GET', '1', 'unsupported discount kind'),
])
def test_validate_rejects_out_of_range_values(kind, value, reason):
    with pytest.raises(InvalidDiscountRuleError) as exc_info:
        validate_rule(make_rule('R', kind, value))
    assert exc_info.value.rule_id == 'R'
    assert reason in exc_info.value.reason


def test_matcher_partitions_rules(caplog):
    matcher = RuleMatcher([
        make_rule('OK'),
        make_rule('BAD', value='120'),
        make_rule('OFF', active=False),
    ])
    assert [r.rule_id for r in matcher.rules] == ['OK']
    assert matcher.rejected_ids == ['BAD']
    assert "BAD" in caplog.text


def test_find_rule_follows_tier_order():
    matcher = RuleMatcher([
        make_rule('PROMO-ALL'),
        make_rule('PROMO-P1', products=['P1']),
        make_rule('L1-ALL', level='L1'),
        make_rule('L1-P1', level='L1', products=['P1']),
    ])

    assert matcher.find_rule('P1', 'L1')[0].rule_id == 'L1-P1'
    assert matcher.find_rule('P1', 'L1')[1] == TIER_LEVEL_PRODUCT
    assert matcher.find_rule('P2', 'L1')[0].rule_id == 'L1-ALL'
    assert matcher.find_rule('P2', 'L1')[1] == TIER_LEVEL_ALL
    assert matcher.find_rule('P1', None)[0].rule_id == 'PROMO-P1'
    assert matcher.find_rule('P1', None)[1] == TIER_PROMO_PRODUCT
    assert matcher.find_rule('P2', None)[0].rule_id == 'PROMO-ALL'
    assert matcher.find_rule('P2', None)[1] == TIER_PROMO_ALL


def test_find_rule_falls_back_to_promotions_for_a_level_without_rules():
    matcher = RuleMatcher([make_rule('PROMO-ALL'), make_rule('L1-ALL', level='L1')])
    assert matcher.find_rule('P1', 'L2')[0].rule_id == 'PROMO-ALL'


def test_find_rule_returns_none_when_nothing_matches():
    matcher = RuleMatcher([make_rule('L1-P1', level='L1', products=['P1'])])
    assert matcher.find_rule('P2', 'L1') == (None, None)
    assert matcher.find_rule('P1', None) == (None, None)


def test_priority_then_id_orders_rules():
    matcher = RuleMatcher([
        make_rule('B', level='L1', priority=10),
        make_rule('A', level='L1', priority=10),
        make_rule('C', level='L1', priority=1),
    ])
    assert [r.rule_id for r in matcher.rules] == ['C', 'A', 'B']
    assert matcher.find_rule('P1', 'L1')[0].rule_id == 'C'


@pytest.mark.parametrize("kind, value, unit_price, expected", [
    ('PERCENTAGE', '10', '100.00', '10.00'),
    ('PERCENTAGE', '100', '19.99', '19.99'),
    ('PERCENTAGE', '12.5', '80.00', '10.00'),
    ('FIXED_AMOUNT', '5.00', '89.75', '5.00'),
    ('FIXED_AMOUNT', '120', '100.00', '100.00'),
])
def test_discount_per_unit(kind, value, unit_price, expected):
    rule = make_rule('R', kind, value)
    matcher = RuleMatcher([rule])
    assert matcher.discount_per_unit(rule, Decimal(unit_price)) == Decimal(expected)


def test_rules_sharing_an_id_keep_their_own_kind():
    pct = make_rule('X', 'PERCENTAGE', '10', level='L1', priority=1)
    fixed = make_rule('X', 'FIXED_AMOUNT', '3', level='L2')
    matcher = RuleMatcher([pct, fixed])

    rule, _ = matcher.find_rule('P2', 'L1')
    assert rule is pct
    assert matcher.discount_per_unit(rule, Decimal('250.50')) == Decimal('25.05')

    rule, _ = matcher.find_rule('P2', 'L2')
    assert rule is fixed
    assert matcher.discount_per_unit(rule, Decimal('250.50')) == Decimal('3')
