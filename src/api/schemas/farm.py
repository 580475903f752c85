from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Literal, Optional, Union
from datetime import datetime
from uuid import UUID

from src.api.core import geometry as geo
from src.api.core.workflow import allowed_events
from src.api.schemas.district import DistrictSummary
from src.api.schemas.user import UserSummary

GeoJSONInput = Union[str, Dict[str, Any]]


class FarmCreate(BaseModel):
    """Schema for registering a farm"""
    district_id: UUID
    farm_area: float = Field(..., gt=0, description="Hectares")
    elevation: float = Field(..., description="Metres above sea level")
    planting_year: int = Field(..., ge=1900, le=2100)
    input_coordinates: Optional[GeoJSONInput] = None
    description: Optional[str] = None
    # Only honoured for administrators registering on a farmer's behalf
    farmer_id: Optional[UUID] = None


class FarmUpdate(BaseModel):
    """Schema for updating farm attributes"""
    district_id: Optional[UUID] = None
    farm_area: Optional[float] = Field(None, gt=0)
    elevation: Optional[float] = None
    planting_year: Optional[int] = Field(None, ge=1900, le=2100)
    input_coordinates: Optional[GeoJSONInput] = None
    description: Optional[str] = None
    event: Optional[Literal["farmer_resubmit"]] = None


class FarmVerify(BaseModel):
    """Schema for verifying a farm with a captured boundary"""
    verified_geometry: GeoJSONInput
    farm_area: Optional[float] = Field(None, gt=0)
    notes: Optional[str] = None


class FarmReject(BaseModel):
    """Schema for rejecting a farm or sending it back for update"""
    reason: str

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Rejection reason is required")
        return v


class BulkVerifyRequest(BaseModel):
    """FeatureCollection whose features name their farmer in properties.Pemilik"""
    feature_collection: GeoJSONInput


class DisplayGeometry(BaseModel):
    kind: Literal["verified", "unverified"]
    geometry: Dict[str, Any]
    centroid: Optional[Dict[str, float]] = None


class FarmResponse(BaseModel):
    """Schema for farm response"""
    id: UUID
    farmer_id: UUID
    district_id: UUID
    farm_area: float
    elevation: float
    planting_year: int
    input_coordinates: Optional[str]
    verified_geometry: Optional[str]
    status: str
    verified_at: Optional[datetime]
    verified_by: Optional[UUID]
    description: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    farmer: Optional[UserSummary] = None
    district: Optional[DistrictSummary] = None
    display_geometry: Optional[DisplayGeometry] = None
    allowed_events: List[str] = []
    productivity_count: Optional[int] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_farm(cls, farm, productivity_count: Optional[int] = None) -> "FarmResponse":
        response = cls.model_validate(farm)
        shown = geo.display_geometry(farm.status, farm.verified_geometry, farm.input_coordinates)
        summary = geo.describe(shown)
        response.display_geometry = DisplayGeometry(**summary) if summary else None
        response.allowed_events = [event.value for event in allowed_events(farm.status)]
        response.productivity_count = productivity_count
        return response


class BulkVerifySuccess(BaseModel):
    farmer_name: str
    farm_id: UUID
    farmer_id: UUID
    status: str


class BulkVerifyFailure(BaseModel):
    farmer_name: str
    error: str


class BulkVerifyResult(BaseModel):
    total: int
    success_count: int
    failure_count: int
    successful: List[BulkVerifySuccess]
    failed: List[BulkVerifyFailure]
