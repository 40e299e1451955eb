"""
Discounts API - FastAPI router for discount rule management.
"""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Optional, Union

from ..services.discount_service import Discount
from .state import get_discount_service, reload_engine

router = APIRouter(prefix="/api/discounts", tags=["discounts"])


# Pydantic models for API
class Assignment(BaseModel):
    """A product a discount is assigned to."""
    type: str = "product"
    id: str
    name: Optional[str] = None


class DiscountCreate(BaseModel):
    """Request model for creating a discount."""
    discount_id: Optional[str] = None
    name: str
    type: str = "FIXED_AMOUNT"
    value: Union[float, str]
    is_active: bool = True
    price_level_id: Optional[str] = None
    priority: int = 50
    product_ids: list[str] = []


class AdvancedDiscountCreate(BaseModel):
    """Request model for a discount with product assignments."""
    discount_id: Optional[str] = None
    name: str
    type: str = "FIXED_AMOUNT"
    value: Union[float, str]
    is_active: bool = True
    price_level_id: Optional[str] = None
    priority: int = 50
    assignments: list[Assignment] = []


class DiscountUpdate(BaseModel):
    """Request model for updating a discount."""
    name: Optional[str] = None
    type: Optional[str] = None
    value: Optional[Union[float, str]] = None
    is_active: Optional[bool] = None
    price_level_id: Optional[str] = None
    priority: Optional[int] = None
    product_ids: Optional[list[str]] = None


class DiscountResponse(BaseModel):
    """Response model for a discount."""
    discount_id: str
    name: str
    type: str
    value: str
    is_active: bool
    price_level_id: Optional[str]
    priority: int
    product_ids: list[str]


class ValidationResponse(BaseModel):
    """Response model for validation."""
    valid: bool
    errors: list[str]
    warnings: list[str]
    matching_products: int


def _to_discount(data: dict) -> Discount:
    data['value'] = str(data['value'])
    data['type'] = data['type'].upper()
    data['discount_id'] = data.get('discount_id') or ''
    return Discount(**data)


def _to_response(discount: Discount) -> DiscountResponse:
    return DiscountResponse(**{**discount.__dict__, 'value': str(discount.value)})


def _create(discount: Discount) -> DiscountResponse:
    service = get_discount_service()

    validation = service.validate_discount(discount)
    if not validation.valid:
        raise HTTPException(status_code=400, detail={"errors": validation.errors})

    try:
        created = service.create_discount(discount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    reload_engine()
    return _to_response(created)


# Endpoints

@router.get("", response_model=list[DiscountResponse])
async def list_discounts(include_inactive: bool = True):
    """List all discounts."""
    discounts = get_discount_service().list_discounts(include_inactive=include_inactive)
    return [_to_response(d) for d in discounts]


@router.get("/stats")
async def get_stats():
    """Get discount statistics."""
    return get_discount_service().get_stats()


@router.get("/{discount_id}", response_model=DiscountResponse)
async def get_discount(discount_id: str):
    """Get a single discount by ID."""
    discount = get_discount_service().get_discount(discount_id)
    if not discount:
        raise HTTPException(status_code=404, detail=f"Discount '{discount_id}' not found")
    return _to_response(discount)


@router.post("", response_model=DiscountResponse)
async def create_discount(discount_data: DiscountCreate):
    """Create a new discount."""
    return _create(_to_discount(discount_data.model_dump()))


@router.post("/advanced", response_model=DiscountResponse)
async def create_advanced_discount(discount_data: AdvancedDiscountCreate):
    """Create a discount assigned to specific products."""
    data = discount_data.model_dump()
    assignments = data.pop('assignments')
    data['product_ids'] = list(dict.fromkeys(a['id'] for a in assignments if a['type'] == 'product'))
    return _create(_to_discount(data))


@router.put("/{discount_id}", response_model=DiscountResponse)
async def update_discount(discount_id: str, updates: DiscountUpdate):
    """Update an existing discount."""
    # Only fields present in the request body, including explicit nulls
    update_dict = updates.model_dump(exclude_unset=True)
    if 'value' in update_dict and update_dict['value'] is not None:
        update_dict['value'] = str(update_dict['value'])
    if update_dict.get('type'):
        update_dict['type'] = update_dict['type'].upper()
    if 'product_ids' in update_dict and update_dict['product_ids'] is None:
        update_dict['product_ids'] = []

    service = get_discount_service()
    current = service.get_discount(discount_id)
    if current is None:
        raise HTTPException(status_code=404, detail=f"Discount with ID '{discount_id}' not found")

    candidate = Discount(**{**current.__dict__, **update_dict})
    validation = service.validate_discount(candidate)
    if not validation.valid:
        raise HTTPException(status_code=400, detail={"errors": validation.errors})

    updated = service.update_discount(discount_id, update_dict)
    reload_engine()
    return _to_response(updated)


@router.delete("/{discount_id}")
async def delete_discount(discount_id: str):
    """Delete a discount."""
    try:
        get_discount_service().delete_discount(discount_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    reload_engine()
    return {"success": True, "message": f"Discount '{discount_id}' deleted"}


@router.post("/validate", response_model=ValidationResponse)
async def validate_discount(discount_data: DiscountCreate):
    """Validate a discount without saving."""
    discount = _to_discount(discount_data.model_dump())
    result = get_discount_service().validate_discount(discount)
    return ValidationResponse(
        valid=result.valid,
        errors=result.errors,
        warnings=result.warnings,
        matching_products=result.matching_products
    )
