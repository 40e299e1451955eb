"""
Data Loader - Reads products, discount rules, price levels and customers.

Each table comes from a sheet of the optional rules workbook, with rows
from the matching CSV file appended as overrides (later rows win per id).
Values are read as strings and converted explicitly so prices keep their
exact decimal form.
"""
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterator, Optional

import pandas as pd

from ..config.settings import Settings
from ..engine.errors import DataLoadError
from ..engine.models import Customer, DiscountRule, PriceLevel, Product, to_decimal


logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = ['product_id', 'name', 'price', 'stock', 'category', 'is_active', 'unit']
DISCOUNT_COLUMNS = ['discount_id', 'name', 'type', 'value', 'is_active', 'price_level_id', 'priority']
ASSIGNMENT_COLUMNS = ['discount_id', 'product_id']
PRICE_LEVEL_COLUMNS = ['price_level_id', 'name', 'description']
CUSTOMER_COLUMNS = ['customer_id', 'name', 'price_level_id']


def parse_bool(value: str, default: bool = True) -> bool:
    """Parse a boolean from a table cell (empty = default)."""
    value = str(value).strip().lower()
    if not value:
        return default
    return value in ('true', '1', 'yes', 'on', 'active')


def parse_optional_str(value) -> Optional[str]:
    """Parse optional string (empty = None)."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def read_table(
    sheet_name: str,
    csv_path: Path,
    columns: list[str],
    workbook: Optional[Path] = None,
    key: Optional[str] = None,
) -> pd.DataFrame:
    """
    Read one logical table from the workbook sheet and/or CSV override.

    Missing sources yield an empty frame with the expected columns.
    """
    frames = []

    if workbook is not None and workbook.exists():
        try:
            frames.append(pd.read_excel(workbook, sheet_name=sheet_name, dtype=str))
        except ValueError:
            logger.debug("Workbook %s has no sheet '%s'", workbook, sheet_name)

    if csv_path.exists():
        frames.append(pd.read_csv(csv_path, dtype=str, keep_default_na=False))

    if not frames:
        return pd.DataFrame(columns=columns)

    df = pd.concat(frames, ignore_index=True).fillna('')

    # Normalize headers and cells
    df.columns = [str(c).strip() for c in df.columns]
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()
    for col in columns:
        if col not in df.columns:
            df[col] = ''

    if key:
        df = df[df[key] != '']
        df = df.drop_duplicates(subset=[key], keep='last')
    else:
        df = df.drop_duplicates(keep='last')

    return df[columns].reset_index(drop=True)


class Catalog:
    """
    Product lookup keyed by product id.

    Behaves like a read-only mapping for the engine (`get`, `in`, `len`)
    and keeps the normalized frame for text search.
    """

    def __init__(self, products: Optional[list[Product]] = None, frame: Optional[pd.DataFrame] = None):
        self._products = {p.product_id: p for p in (products or [])}
        if frame is None:
            frame = pd.DataFrame(
                [[p.product_id, p.name, p.category] for p in self._products.values()],
                columns=['product_id', 'name', 'category'],
            )
        self.frame = frame

    def get(self, product_id: str) -> Optional[Product]:
        return self._products.get(str(product_id).strip())

    def __contains__(self, product_id) -> bool:
        return str(product_id).strip() in self._products

    def __len__(self) -> int:
        return len(self._products)

    def __iter__(self) -> Iterator[Product]:
        return iter(self._products.values())

    def search(self, text: Optional[str] = None, limit: int = 100, active_only: bool = False) -> list[Product]:
        """Find products whose id, name or category contains `text`."""
        df = self.frame
        if text:
            mask = (
                df['product_id'].str.contains(text, case=False, na=False, regex=False) |
                df['name'].str.contains(text, case=False, na=False, regex=False) |
                df['category'].str.contains(text, case=False, na=False, regex=False)
            )
            df = df[mask]

        results = []
        for product_id in df['product_id']:
            product = self._products.get(product_id)
            if product is None or (active_only and not product.active):
                continue
            results.append(product)
            if len(results) >= limit:
                break
        return results


class CustomerDirectory:
    """Customers and price levels, for customer → price level resolution."""

    def __init__(self, customers: Optional[list[Customer]] = None, price_levels: Optional[list[PriceLevel]] = None):
        self.customers = {c.customer_id: c for c in (customers or [])}
        self.price_levels = {pl.price_level_id: pl for pl in (price_levels or [])}

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        return self.customers.get(str(customer_id).strip())

    def get_price_level(self, price_level_id: str) -> Optional[PriceLevel]:
        return self.price_levels.get(str(price_level_id).strip())


def _product_from_row(row: dict) -> Product:
    product_id = row['product_id']
    try:
        price = to_decimal(row['price'])
    except InvalidOperation:
        raise DataLoadError(f"Product '{product_id}' has an invalid price: {row['price']!r}")
    if not price.is_finite() or price < 0:
        raise DataLoadError(f"Product '{product_id}' has a negative price: {price}")

    try:
        stock = int(Decimal(row['stock'] or '0'))
    except (InvalidOperation, ValueError):
        raise DataLoadError(f"Product '{product_id}' has an invalid stock: {row['stock']!r}")
    if stock < 0:
        raise DataLoadError(f"Product '{product_id}' has negative stock: {stock}")

    return Product(
        product_id=product_id,
        name=row['name'] or product_id,
        price=price,
        stock=stock,
        category=row['category'],
        active=parse_bool(row['is_active']),
        unit=parse_optional_str(row['unit']),
    )


def load_products(settings: Settings) -> Catalog:
    """Load the product catalog."""
    df = read_table('Products', settings.products_csv, PRODUCT_COLUMNS, settings.rules_workbook, key='product_id')
    products = [_product_from_row(row) for row in df.to_dict(orient='records')]
    logger.info("Loaded %d products", len(products))
    return Catalog(products, df)


def load_discount_rules(settings: Settings) -> list[DiscountRule]:
    """
    Load discount rules with their product assignments.

    Values that are not numbers are carried as NaN so the rule matcher
    rejects the rule instead of the whole load failing.
    """
    df = read_table('Discounts', settings.discounts_csv, DISCOUNT_COLUMNS, settings.rules_workbook, key='discount_id')
    assignments = read_table('Assignments', settings.assignments_csv, ASSIGNMENT_COLUMNS, settings.rules_workbook)

    scope: dict[str, set] = {}
    for row in assignments.to_dict(orient='records'):
        if row['discount_id'] and row['product_id']:
            scope.setdefault(row['discount_id'], set()).add(row['product_id'])

    rules = []
    for row in df.to_dict(orient='records'):
        rule_id = row['discount_id']
        try:
            value = to_decimal(row['value'])
        except InvalidOperation:
            logger.warning("Discount rule '%s' has a non-numeric value %r", rule_id, row['value'])
            value = Decimal('NaN')
        try:
            priority = int(row['priority']) if row['priority'] else 50
        except ValueError:
            logger.warning("Discount rule '%s' has an invalid priority %r, using 50", rule_id, row['priority'])
            priority = 50

        rules.append(DiscountRule(
            rule_id=rule_id,
            name=row['name'] or rule_id,
            kind=row['type'].upper(),
            value=value,
            active=parse_bool(row['is_active']),
            product_ids=frozenset(scope.get(rule_id, ())),
            price_level_id=parse_optional_str(row['price_level_id']),
            priority=priority,
        ))

    logger.info("Loaded %d discount rules (%d assignments)", len(rules), len(assignments))
    return rules


def load_price_levels(settings: Settings) -> list[PriceLevel]:
    """Load the price level list."""
    df = read_table('Price Levels', settings.price_levels_csv, PRICE_LEVEL_COLUMNS, settings.rules_workbook, key='price_level_id')
    return [
        PriceLevel(
            price_level_id=row['price_level_id'],
            name=row['name'] or row['price_level_id'],
            description=row['description'],
        )
        for row in df.to_dict(orient='records')
    ]


def load_customers(settings: Settings) -> list[Customer]:
    """Load customers and their assigned price levels."""
    df = read_table('Customers', settings.customers_csv, CUSTOMER_COLUMNS, settings.rules_workbook, key='customer_id')
    return [
        Customer(
            customer_id=row['customer_id'],
            name=row['name'],
            price_level_id=parse_optional_str(row['price_level_id']),
        )
        for row in df.to_dict(orient='records')
    ]
