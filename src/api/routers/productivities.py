from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID

from src.api.core.database import get_db
from src.api.schemas.common import ApiResponse
from src.api.schemas.productivity import (
    ProductivityCreate,
    ProductivityUpdate,
    ProductivityResponse,
    ProductivitySummary,
)
from src.api.services.productivity import ProductivityService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[ProductivityResponse]])
async def list_productivities(
    farm_id: Optional[UUID] = None,
    farmer_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    List harvest records, latest harvest first

    Filters:
    - farm_id: records of one farm
    - farmer_id: records of every farm owned by one farmer
    """
    records = await ProductivityService(db).list_records(farm_id=farm_id, farmer_id=farmer_id)
    return ApiResponse(
        data=[ProductivityResponse.from_record(r) for r in records],
        count=len(records),
    )


@router.get("/summary", response_model=ApiResponse[ProductivitySummary])
async def get_productivity_summary(
    farm_id: Optional[UUID] = None,
    farmer_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    Production and revenue totals with average yield and price
    """
    summary = await ProductivityService(db).summary(farm_id=farm_id, farmer_id=farmer_id)
    return ApiResponse(data=summary)


@router.post("", response_model=ApiResponse[ProductivityResponse], status_code=status.HTTP_201_CREATED)
async def create_productivity(record_data: ProductivityCreate, db: AsyncSession = Depends(get_db)):
    """
    Record a harvest

    Yield (kg/ha) is derived from production_amount and the farm's area. A
    ``productivity`` value sent by the client that disagrees is reported in
    ``warnings``; the record is still created.
    """
    result = await ProductivityService(db).create_record(record_data)
    return ApiResponse(
        message="Productivity record created successfully",
        data=ProductivityResponse.from_record(result.record),
        warnings=result.warnings or None,
    )


@router.get("/{record_id}", response_model=ApiResponse[ProductivityResponse])
async def get_productivity(record_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    Get a single harvest record
    """
    record = await ProductivityService(db).get_record(record_id)
    return ApiResponse(data=ProductivityResponse.from_record(record))


@router.put("/{record_id}", response_model=ApiResponse[ProductivityResponse])
async def update_productivity(
    record_id: UUID,
    record_data: ProductivityUpdate,
    db: AsyncSession = Depends(get_db)
):
    """
    Update a harvest record
    """
    result = await ProductivityService(db).update_record(record_id, record_data)
    return ApiResponse(
        message="Productivity record updated successfully",
        data=ProductivityResponse.from_record(result.record),
        warnings=result.warnings or None,
    )


@router.delete("/{record_id}", response_model=ApiResponse[None])
async def delete_productivity(record_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    Delete a harvest record

    Refused while warehouse inventory still references it.
    """
    await ProductivityService(db).delete_record(record_id)
    return ApiResponse(message="Productivity record deleted successfully")
