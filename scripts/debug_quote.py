#!/usr/bin/env python
"""
Price a cart from the command line and print the resolution trace.

Usage:
    python scripts/debug_quote.py P1:3 P2:1:5.00 --customer C100
    python scripts/debug_quote.py P1:3 --price-level L1
"""
import argparse
import logging
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from pos_pricing.engine import CartLine, PricingEngine, Request
from pos_pricing.engine.errors import PricingError


def parse_item(text: str) -> CartLine:
    """Parse PRODUCT:QTY[:MANUAL_DISCOUNT]."""
    parts = text.split(':')
    if len(parts) not in (2, 3):
        raise argparse.ArgumentTypeError(f"Expected PRODUCT:QTY[:DISCOUNT], got '{text}'")
    manual = parts[2] if len(parts) == 3 else None
    return CartLine(product_id=parts[0], quantity=int(parts[1]), manual_discount=manual)


def debug():
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument('items', nargs='+', type=parse_item)
    parser.add_argument('--customer', default=None)
    parser.add_argument('--price-level', default=None)
    parser.add_argument('-v', '--verbose', action='store_true')
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    engine = PricingEngine()
    print(f"Loaded {len(engine.catalog)} products, {len(engine.rule_matcher.rules)} rules")

    try:
        quote = engine.calculate(Request(cart=args.items, customer_id=args.customer, price_level_id=args.price_level))
    except PricingError as e:
        print(f"\n❌ {type(e).__name__}: {e.message}")
        sys.exit(1)

    print("\n--- Quote Trace ---")
    print(quote.get_trace_text())
    for line in quote.lines:
        print(f"\n--- {line.product_id} ---")
        print(line.get_trace_text())

    print()
    print(f"Subtotal:       {quote.subtotal}")
    print(f"Total discount: {quote.total_discount}")
    print(f"Grand total:    {quote.grand_total}")
    for warning in quote.warnings:
        print(f"  WARNING: {warning}")


if __name__ == "__main__":
    debug()
