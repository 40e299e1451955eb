"""
Centralized settings and path configuration for the pricing service.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


DATA_DIR_ENV = 'POS_PRICING_DATA_DIR'


def get_project_root() -> Path:
    """Get the project root directory (where the data/ folder lives)."""
    # Walk up from this file to find the project root
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'data' / 'products.csv').exists() or (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 4 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Optional workbook with one sheet per table
    rules_workbook: Path

    # CSV tables (appended over the workbook sheets)
    products_csv: Path
    discounts_csv: Path
    assignments_csv: Path
    price_levels_csv: Path
    customers_csv: Path

    # Currency rounding step
    currency_quantum: Decimal = Decimal('0.01')

    # Advisory delay callers should wait after the last cart edit
    debounce_ms: int = 300

    @classmethod
    def load(cls, project_root: Optional[Path] = None, data_dir: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure."""
        root = project_root or get_project_root()

        if data_dir is None:
            env_dir = os.environ.get(DATA_DIR_ENV)
            data_dir = Path(env_dir) if env_dir else root / 'data'

        return cls(
            project_root=root,
            data_dir=data_dir,
            rules_workbook=data_dir / 'pricing_rules.xlsx',
            products_csv=data_dir / 'products.csv',
            discounts_csv=data_dir / 'discounts.csv',
            assignments_csv=data_dir / 'discount_assignments.csv',
            price_levels_csv=data_dir / 'price_levels.csv',
            customers_csv=data_dir / 'customers.csv',
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings():
    """Forget the cached settings (used when the environment changes)."""
    global _settings
    _settings = None
