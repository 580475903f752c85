from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from uuid import UUID


class ProductivityCreate(BaseModel):
    """Schema for creating a harvest record"""
    farm_id: UUID
    harvest_date: date
    production_amount: float = Field(..., ge=0, description="Kilograms harvested")
    selling_price: float = Field(..., ge=0, description="Price per kilogram")
    # Client-side yield figure; checked against production_amount / farm_area
    productivity: Optional[float] = Field(None, ge=0)


class ProductivityUpdate(BaseModel):
    """Schema for updating a harvest record"""
    harvest_date: Optional[date] = None
    production_amount: Optional[float] = Field(None, ge=0)
    selling_price: Optional[float] = Field(None, ge=0)
    productivity: Optional[float] = Field(None, ge=0)


class FarmBrief(BaseModel):
    id: UUID
    farmer_id: UUID
    district_id: UUID
    farm_area: float
    status: str

    class Config:
        from_attributes = True


class ProductivityResponse(BaseModel):
    """Schema for harvest record response"""
    id: UUID
    farm_id: UUID
    harvest_date: date
    production_amount: float
    selling_price: float
    productivity: float
    revenue: float = 0.0
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    farm: Optional[FarmBrief] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, record) -> "ProductivityResponse":
        response = cls.model_validate(record)
        response.revenue = record.production_amount * record.selling_price
        return response


class ProductivitySummary(BaseModel):
    """Aggregate figures over a set of harvest records"""
    record_count: int
    total_production: float
    total_revenue: float
    avg_productivity: float
    avg_price: float
