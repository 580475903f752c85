from pydantic import AfterValidator, BaseModel, Field
from typing import Annotated, Optional
from datetime import datetime
from uuid import UUID


def _normalize_code(value: str) -> str:
    value = value.strip().upper()
    if not value:
        raise ValueError("District code must not be blank")
    return value


def _normalize_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("District name must not be blank")
    return value


DistrictCode = Annotated[str, Field(max_length=20), AfterValidator(_normalize_code)]
DistrictName = Annotated[str, Field(max_length=100), AfterValidator(_normalize_name)]


class DistrictCreate(BaseModel):
    """Schema for creating a district"""
    district_code: DistrictCode
    district_name: DistrictName


class DistrictUpdate(BaseModel):
    """Schema for updating a district"""
    district_code: Optional[DistrictCode] = None
    district_name: Optional[DistrictName] = None


class DistrictResponse(BaseModel):
    """Schema for district response"""
    id: UUID
    district_code: str
    district_name: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class DistrictSummary(BaseModel):
    id: UUID
    district_code: str
    district_name: str

    class Config:
        from_attributes = True
