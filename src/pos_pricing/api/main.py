from decimal import Decimal
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..engine import CartLine, Request
from ..engine.errors import PricingError
from .discounts_api import router as discounts_router
from .state import get_engine

app = FastAPI(
    title="POS Pricing API",
    description="Cart pricing and discount management for the point-of-sale back office",
    version="1.0.0"
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include discount management API
app.include_router(discounts_router)


class CartItem(BaseModel):
    id: str
    quantity: int
    discount_per_unit: Optional[Decimal] = None


class CalcRequest(BaseModel):
    cart: List[CartItem] = Field(default_factory=list)
    customer_id: Optional[str] = None
    price_level_id: Optional[str] = None


@app.get("/")
async def root():
    return {"status": "online", "message": "POS Pricing API Active"}


@app.post("/api/pricing/calculate")
async def calculate_prices(req: CalcRequest):
    try:
        request = Request(
            cart=[
                CartLine(product_id=item.id, quantity=item.quantity, manual_discount=item.discount_per_unit)
                for item in req.cart
            ],
            customer_id=req.customer_id,
            price_level_id=req.price_level_id,
        )
        quote = get_engine().calculate(request)
        return quote.to_dict()
    except PricingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@app.get("/api/products")
async def get_products(search: Optional[str] = None, active_only: bool = False):
    engine = get_engine()
    limit = 200 if search else 100
    return [
        {
            "product_id": p.product_id,
            "name": p.name,
            "category": p.category,
            "price": str(p.price),
            "stock": p.stock,
            "is_active": p.active,
            "unit": p.unit,
        }
        for p in engine.catalog.search(search, limit=limit, active_only=active_only)
    ]


@app.get("/api/price-levels")
async def get_price_levels():
    engine = get_engine()
    return [
        {"price_level_id": pl.price_level_id, "name": pl.name, "description": pl.description}
        for pl in engine.directory.price_levels.values()
    ]


@app.get("/api/customers/{customer_id}/price-level")
async def get_customer_price_level(customer_id: str):
    engine = get_engine()
    price_level_id, trace = engine.resolve_price_level(customer_id)
    return {
        "customer_id": customer_id,
        "price_level_id": price_level_id,
        "trace": trace,
    }


@app.get("/system/status")
async def get_status():
    engine = get_engine()
    return {
        "engine_active": True,
        "products_count": len(engine.catalog),
        "rules_count": len(engine.rule_matcher.rules),
        "rules_rejected": engine.rule_matcher.rejected_ids,
        "price_levels_count": len(engine.directory.price_levels),
        "debounce_ms": engine.settings.debounce_ms,
    }
