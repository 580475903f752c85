from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from uuid import UUID
import logging

from src.api.core.database import get_db
from src.api.core.errors import NotFoundError
from src.api.models.warehouse import WarehouseFacility
from src.api.schemas.common import ApiResponse
from src.api.schemas.warehouse import FacilityCreate, FacilityUpdate, FacilityResponse

router = APIRouter()
logger = logging.getLogger(__name__)


async def _get_facility(db: AsyncSession, facility_id: UUID) -> WarehouseFacility:
    facility = await db.get(WarehouseFacility, facility_id)
    if facility is None:
        raise NotFoundError("Warehouse not found")
    return facility


@router.get("", response_model=ApiResponse[list[FacilityResponse]])
async def list_facilities(db: AsyncSession = Depends(get_db)):
    """
    List warehouse facilities by name
    """
    result = await db.execute(select(WarehouseFacility).order_by(WarehouseFacility.warehouse_name))
    facilities = result.scalars().all()
    return ApiResponse(
        data=[FacilityResponse.model_validate(f) for f in facilities],
        count=len(facilities),
    )


@router.post("", response_model=ApiResponse[FacilityResponse], status_code=status.HTTP_201_CREATED)
async def create_facility(facility_data: FacilityCreate, db: AsyncSession = Depends(get_db)):
    facility = WarehouseFacility(**facility_data.model_dump())
    db.add(facility)
    await db.commit()
    logger.info(f"Warehouse facility {facility.warehouse_name} created")
    return ApiResponse(
        message="Warehouse created successfully",
        data=FacilityResponse.model_validate(facility),
    )


@router.get("/{facility_id}", response_model=ApiResponse[FacilityResponse])
async def get_facility(facility_id: UUID, db: AsyncSession = Depends(get_db)):
    facility = await _get_facility(db, facility_id)
    return ApiResponse(data=FacilityResponse.model_validate(facility))


@router.put("/{facility_id}", response_model=ApiResponse[FacilityResponse])
async def update_facility(
    facility_id: UUID,
    facility_data: FacilityUpdate,
    db: AsyncSession = Depends(get_db)
):
    facility = await _get_facility(db, facility_id)
    for field, value in facility_data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(facility, field, value)
    await db.commit()
    return ApiResponse(
        message="Warehouse updated successfully",
        data=FacilityResponse.model_validate(facility),
    )


@router.delete("/{facility_id}", response_model=ApiResponse[None])
async def delete_facility(facility_id: UUID, db: AsyncSession = Depends(get_db)):
    facility = await _get_facility(db, facility_id)
    await db.delete(facility)
    await db.commit()
    return ApiResponse(message="Warehouse deleted successfully")
