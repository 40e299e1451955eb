"""
Shared engine and service instances for the API.

The engine is swapped wholesale on reload, so in-flight requests keep
pricing against the snapshot they started with.
"""
import logging
from typing import Optional

from ..config.settings import get_settings
from ..engine import PricingEngine
from ..services.discount_service import DiscountService


logger = logging.getLogger(__name__)

_engine: Optional[PricingEngine] = None


def get_engine() -> PricingEngine:
    """Get the shared engine, loading it on first use."""
    global _engine
    if _engine is None:
        _engine = PricingEngine(get_settings())
    return _engine


def set_engine(engine: Optional[PricingEngine]):
    """Replace the shared engine (None forces a reload on next use)."""
    global _engine
    _engine = engine


def reload_engine() -> PricingEngine:
    """Load a fresh engine from disk and make it the shared one."""
    engine = PricingEngine(get_engine().settings)
    set_engine(engine)
    logger.info("Engine reloaded: %d products, %d rules", len(engine.catalog), len(engine.rule_matcher.rules))
    return engine


def get_discount_service() -> DiscountService:
    """Build a discount service bound to the current engine's data."""
    engine = get_engine()
    return DiscountService(
        discounts_csv_path=engine.settings.discounts_csv,
        assignments_csv_path=engine.settings.assignments_csv,
        product_ids={p.product_id for p in engine.catalog},
        price_level_ids=set(engine.directory.price_levels),
    )
