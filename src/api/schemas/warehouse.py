from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional
from datetime import date, datetime
from uuid import UUID

# Valid reasons for taking stock out of a warehouse
RemovalReason = Literal["sold", "damaged", "used", "other"]


class InventoryCreate(BaseModel):
    """Schema for storing part of a harvest"""
    productivity_id: UUID
    quantity_stored: float = Field(..., gt=0)
    storage_location: str = Field(..., min_length=1, max_length=255)
    date_stored: date
    notes: Optional[str] = None

    @field_validator("storage_location")
    @classmethod
    def strip_location(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Storage location is required")
        return v


class InventoryUpdate(BaseModel):
    """Schema for updating an inventory entry; removals go through /remove"""
    quantity_stored: Optional[float] = Field(None, gt=0)
    storage_location: Optional[str] = Field(None, min_length=1, max_length=255)
    date_stored: Optional[date] = None
    notes: Optional[str] = None


class RemovalCreate(BaseModel):
    """Schema for one stock-out transaction"""
    quantity_removed: float = Field(..., gt=0)
    removal_reason: RemovalReason = "sold"
    date_removed: date
    buyer_info: Optional[str] = Field(None, max_length=255)


class RemovalResponse(BaseModel):
    id: UUID
    inventory_id: UUID
    quantity: float
    reason: str
    date_removed: date
    buyer_info: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class InventoryResponse(BaseModel):
    """Schema for inventory entry response"""
    id: UUID
    productivity_id: UUID
    quantity_stored: float
    storage_location: str
    date_stored: date
    quantity_removed: float
    available_stock: float
    notes: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    selling_price: Optional[float] = None
    removals: List[RemovalResponse] = []

    class Config:
        from_attributes = True

    @classmethod
    def from_entry(cls, entry) -> "InventoryResponse":
        response = cls.model_validate(entry)
        if entry.productivity is not None:
            response.selling_price = entry.productivity.selling_price
        return response


class InventorySummary(BaseModel):
    """Stock position across inventory entries"""
    entry_count: int
    total_stored: float
    total_removed: float
    current_stock: float
    total_revenue: float


class FacilityCreate(BaseModel):
    """Schema for registering a warehouse facility"""
    warehouse_name: str = Field(..., min_length=1, max_length=255)
    location: str = Field(..., min_length=1, max_length=255)


class FacilityUpdate(BaseModel):
    warehouse_name: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[str] = Field(None, min_length=1, max_length=255)


class FacilityResponse(BaseModel):
    id: UUID
    warehouse_name: str
    location: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
