"""
Golden test cases for pricing engine regression testing.
These tests capture the expected behavior of the pricing engine against the
shared test data set and should fail if pricing logic changes unexpectedly.
"""
import csv
import os
from decimal import Decimal

import pytest

from pos_pricing.engine import CartLine, PricingEngine, Request


@pytest.fixture
def engine(settings):
    return PricingEngine(settings)


def load_golden_cases():
    """Load golden test cases from CSV."""
    cases_path = os.path.join(os.path.dirname(__file__), 'golden_cases.csv')

    cases = []
    with open(cases_path, 'r', newline='', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for row in reader:
            cases.append(row)

    return cases


def case_id(case):
    who = case['customer'] or case['price_level'] or 'walkin'
    manual = f"-manual{case['manual_discount']}" if case['manual_discount'] else ""
    return f"{who}-{case['product_id']}-qty{case['qty']}{manual}"


@pytest.mark.parametrize("case", load_golden_cases(), ids=case_id)
def test_golden_case(engine, case):
    """Test that pricing matches expected golden case."""
    line = CartLine(
        product_id=case['product_id'],
        quantity=int(case['qty']),
        manual_discount=case['manual_discount'] or None,
    )
    request = Request(
        cart=[line],
        customer_id=case['customer'] or None,
        price_level_id=case['price_level'] or None,
    )

    quote = engine.calculate(request)

    assert len(quote.lines) == 1, \
        f"Expected 1 line, got {len(quote.lines)}"

    priced = quote.lines[0]

    assert priced.final_unit_price == Decimal(case['expected_final_unit']), \
        f"Unit price mismatch: expected {case['expected_final_unit']}, got {priced.final_unit_price}"

    assert priced.line_total == Decimal(case['expected_line_total']), \
        f"Line total mismatch: expected {case['expected_line_total']}, got {priced.line_total}"

    assert priced.discount_source.value == case['expected_source'], \
        f"Source mismatch: expected {case['expected_source']}, got {priced.discount_source.value}"

    assert priced.applied_rule_id == (case['expected_rule'] or None)

    assert quote.grand_total == quote.subtotal - quote.total_discount
