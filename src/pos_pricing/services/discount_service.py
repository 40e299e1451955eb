"""
Discount Service - CRUD operations for discount rules.
Handles reading/writing discounts.csv and discount_assignments.csv.
"""
import csv
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from ..data.loader import parse_bool, parse_optional_str
from ..engine.errors import InvalidDiscountRuleError
from ..engine.models import DiscountRule, to_decimal
from ..engine.rule_matcher import validate_rule


logger = logging.getLogger(__name__)


@dataclass
class Discount:
    """Represents a discount rule as edited in the back office."""
    discount_id: str
    name: str
    type: str = "FIXED_AMOUNT"
    value: str = ""
    is_active: bool = True
    price_level_id: Optional[str] = None
    priority: int = 50
    product_ids: list[str] = field(default_factory=list)

    def to_csv_row(self) -> dict:
        """Convert to CSV row format."""
        return {
            'discount_id': self.discount_id,
            'name': self.name,
            'type': self.type,
            'value': str(self.value),
            'is_active': 'true' if self.is_active else 'false',
            'price_level_id': self.price_level_id or '',
            'priority': str(self.priority),
        }

    @classmethod
    def from_csv_row(cls, row: dict, product_ids: Optional[list[str]] = None) -> 'Discount':
        """Create Discount from CSV row (cells parsed the way the loader parses them)."""
        row = {key: (value or '').strip() for key, value in row.items() if key}
        discount_id = row.get('discount_id', '')
        try:
            priority = int(row.get('priority') or 50)
        except ValueError:
            logger.warning("Discount '%s' has an invalid priority %r, using 50", discount_id, row.get('priority'))
            priority = 50

        return cls(
            discount_id=discount_id,
            name=row.get('name', ''),
            type=(row.get('type') or 'FIXED_AMOUNT').upper(),
            value=row.get('value', ''),
            is_active=parse_bool(row.get('is_active', '')),
            price_level_id=parse_optional_str(row.get('price_level_id')),
            priority=priority,
            product_ids=list(product_ids or []),
        )

    def to_rule(self) -> DiscountRule:
        """Convert to the engine's rule model."""
        try:
            value = to_decimal(self.value)
        except InvalidOperation:
            value = Decimal('NaN')
        return DiscountRule(
            rule_id=self.discount_id,
            name=self.name,
            kind=self.type,
            value=value,
            active=self.is_active,
            product_ids=frozenset(self.product_ids),
            price_level_id=self.price_level_id,
            priority=self.priority,
        )


@dataclass
class ValidationResult:
    """Result of discount validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    matching_products: int = 0


class DiscountService:
    """Service for managing discount rules."""

    CSV_COLUMNS = ['discount_id', 'name', 'type', 'value', 'is_active', 'price_level_id', 'priority']
    ASSIGNMENT_COLUMNS = ['discount_id', 'product_id']

    def __init__(
        self,
        discounts_csv_path: Path,
        assignments_csv_path: Path,
        product_ids: Optional[set[str]] = None,
        price_level_ids: Optional[set[str]] = None,
    ):
        self.discounts_csv_path = discounts_csv_path
        self.assignments_csv_path = assignments_csv_path
        self._product_ids: set[str] = set(product_ids or ())
        self._price_level_ids: set[str] = set(price_level_ids or ())

    def _read_assignments(self) -> dict[str, list[str]]:
        assignments: dict[str, list[str]] = {}
        if not self.assignments_csv_path.exists():
            return assignments

        with open(self.assignments_csv_path, 'r', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            for row in reader:
                discount_id = (row.get('discount_id') or '').strip()
                product_id = (row.get('product_id') or '').strip()
                if discount_id and product_id:
                    ids = assignments.setdefault(discount_id, [])
                    if product_id not in ids:
                        ids.append(product_id)
        return assignments

    def list_discounts(self, include_inactive: bool = True) -> list[Discount]:
        """List all discounts from CSV."""
        discounts = []
        if not self.discounts_csv_path.exists():
            return discounts

        assignments = self._read_assignments()
        with open(self.discounts_csv_path, 'r', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            for row in reader:
                discount_id = (row.get('discount_id') or '').strip()
                if not discount_id:
                    continue
                discount = Discount.from_csv_row(row, assignments.get(discount_id))
                if include_inactive or discount.is_active:
                    discounts.append(discount)

        return discounts

    def get_discount(self, discount_id: str) -> Optional[Discount]:
        """Get a single discount by ID."""
        for discount in self.list_discounts():
            if discount.discount_id == discount_id:
                return discount
        return None

    def create_discount(self, discount: Discount) -> Discount:
        """Create a new discount."""
        if not discount.discount_id:
            discount.discount_id = self._generate_discount_id(discount)

        if self.get_discount(discount.discount_id):
            raise ValueError(f"Discount with ID '{discount.discount_id}' already exists")

        discounts = self.list_discounts()
        discounts.append(discount)
        self._write_discounts(discounts)
        logger.info("Created discount %s", discount.discount_id)

        return discount

    def update_discount(self, discount_id: str, updates: dict) -> Discount:
        """Update an existing discount."""
        discounts = self.list_discounts()
        found = None

        for discount in discounts:
            if discount.discount_id == discount_id:
                for key, value in updates.items():
                    if key != 'discount_id' and hasattr(discount, key):
                        setattr(discount, key, value)
                found = discount
                break

        if found is None:
            raise ValueError(f"Discount with ID '{discount_id}' not found")

        self._write_discounts(discounts)
        logger.info("Updated discount %s", discount_id)
        return found

    def delete_discount(self, discount_id: str) -> bool:
        """Delete a discount and its product assignments."""
        discounts = self.list_discounts()
        original_count = len(discounts)
        discounts = [d for d in discounts if d.discount_id != discount_id]

        if len(discounts) == original_count:
            raise ValueError(f"Discount with ID '{discount_id}' not found")

        self._write_discounts(discounts)
        logger.info("Deleted discount %s", discount_id)
        return True

    def validate_discount(self, discount: Discount) -> ValidationResult:
        """Validate a discount before saving."""
        result = ValidationResult(valid=True)

        if not discount.name:
            result.errors.append("Name is required")
            result.valid = False

        if not discount.type:
            result.errors.append("Type is required")
            result.valid = False

        if not isinstance(discount.is_active, bool):
            result.errors.append("is_active must be true or false")
            result.valid = False

        if isinstance(discount.priority, bool) or not isinstance(discount.priority, int):
            result.errors.append("Priority must be an integer")
            result.valid = False

        if discount.value in (None, ''):
            result.errors.append("Value is required")
            result.valid = False
        else:
            try:
                validate_rule(discount.to_rule())
            except InvalidDiscountRuleError as e:
                result.errors.append(e.reason)
                result.valid = False

        # Unknown product assignments
        if discount.product_ids and self._product_ids:
            unknown = [pid for pid in discount.product_ids if pid not in self._product_ids]
            for pid in unknown:
                result.warnings.append(f"Product '{pid}' not found in catalog")
            result.matching_products = len(discount.product_ids) - len(unknown)
        elif not discount.product_ids:
            result.matching_products = len(self._product_ids)

        if discount.price_level_id and self._price_level_ids:
            if discount.price_level_id not in self._price_level_ids:
                result.warnings.append(f"Price level '{discount.price_level_id}' not found")

        # Check for potential conflicts
        if result.valid:
            result.warnings.extend(self._check_conflicts(discount))

        return result

    def _check_conflicts(self, discount: Discount) -> list[str]:
        """Check for discounts competing for the same precedence tier."""
        warnings = []

        for existing in self.list_discounts(include_inactive=False):
            if existing.discount_id == discount.discount_id:
                continue
            if existing.price_level_id != discount.price_level_id:
                continue

            both_global = not existing.product_ids and not discount.product_ids
            overlap = set(existing.product_ids) & set(discount.product_ids)

            if both_global or overlap:
                warnings.append(
                    f"Potential conflict with discount '{existing.discount_id}' "
                    f"(priority {existing.priority} vs {discount.priority})"
                )

        return warnings

    def _generate_discount_id(self, discount: Discount) -> str:
        """Generate a unique discount ID."""
        if discount.price_level_id:
            base = f"PL{discount.price_level_id}".upper()[:8]
        else:
            base = "DISC"

        if discount.type == 'PERCENTAGE':
            base += "-PCT"
        else:
            base += "-AMT"

        # Ensure uniqueness
        existing_ids = {d.discount_id for d in self.list_discounts()}
        candidate = base
        counter = 1
        while candidate in existing_ids:
            candidate = f"{base}-{counter}"
            counter += 1

        return candidate

    def _write_discounts(self, discounts: list[Discount]):
        """Write discounts and assignments back to CSV."""
        self.discounts_csv_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.discounts_csv_path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=self.CSV_COLUMNS)
            writer.writeheader()
            for discount in discounts:
                writer.writerow(discount.to_csv_row())

        with open(self.assignments_csv_path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=self.ASSIGNMENT_COLUMNS)
            writer.writeheader()
            for discount in discounts:
                for product_id in discount.product_ids:
                    writer.writerow({'discount_id': discount.discount_id, 'product_id': product_id})

    def get_stats(self) -> dict:
        """Get statistics about discounts."""
        discounts = self.list_discounts()

        active = [d for d in discounts if d.is_active]
        by_type = {}
        by_price_level = {}
        for d in discounts:
            by_type[d.type] = by_type.get(d.type, 0) + 1
            level = d.price_level_id or 'Promotion'
            by_price_level[level] = by_price_level.get(level, 0) + 1

        return {
            'total': len(discounts),
            'active': len(active),
            'inactive': len(discounts) - len(active),
            'product_scoped': sum(1 for d in discounts if d.product_ids),
            'by_type': by_type,
            'by_price_level': by_price_level,
        }
