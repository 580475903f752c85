from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID

from src.api.core.database import get_db
from src.api.core.security import SessionContext, get_session_context, require_admin
from src.api.core.workflow import FarmStatus
from src.api.schemas.common import ApiResponse
from src.api.schemas.farm import FarmCreate, FarmUpdate, FarmResponse
from src.api.services.farm_verification import FarmVerificationService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[FarmResponse]])
async def list_farms(
    status_filter: Optional[FarmStatus] = Query(None, alias="status"),
    district_id: Optional[UUID] = None,
    farmer_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    List farms, newest first

    Filters:
    - status: PENDING_VERIFICATION, VERIFIED, REJECTED or NEEDS_UPDATE
    - district_id: farms of one district
    - farmer_id: farms of one farmer
    """
    service = FarmVerificationService(db)
    farms = await service.list_farms(status=status_filter, district_id=district_id, farmer_id=farmer_id)
    counts = await service.productivity_counts([f.id for f in farms])
    return ApiResponse(
        data=[FarmResponse.from_farm(f, counts.get(f.id)) for f in farms],
        count=len(farms),
    )


@router.post("", response_model=ApiResponse[FarmResponse], status_code=status.HTTP_201_CREATED)
async def create_farm(
    farm_data: FarmCreate,
    session: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a farm

    The farm belongs to the caller and starts in PENDING_VERIFICATION.
    Administrators may register on behalf of a farmer with farmer_id.
    """
    farm = await FarmVerificationService(db).create_farm(farm_data, session)
    return ApiResponse(
        message="Farm created successfully",
        data=FarmResponse.from_farm(farm, 0),
    )


@router.get("/{farm_id}", response_model=ApiResponse[FarmResponse])
async def get_farm(farm_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    Get details for a specific farm
    """
    service = FarmVerificationService(db)
    farm = await service.get_farm(farm_id)
    counts = await service.productivity_counts([farm.id])
    return ApiResponse(data=FarmResponse.from_farm(farm, counts[farm.id]))


@router.put("/{farm_id}", response_model=ApiResponse[FarmResponse])
async def update_farm(
    farm_id: UUID,
    farm_data: FarmUpdate,
    session: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Update farm attributes

    Only the owning farmer or an administrator may edit. Status is left as
    it is unless ``event`` is given; send ``"farmer_resubmit"`` to return a
    NEEDS_UPDATE farm to the verification queue.
    """
    farm = await FarmVerificationService(db).update_farm(farm_id, farm_data, session)
    return ApiResponse(
        message="Farm updated successfully",
        data=FarmResponse.from_farm(farm),
    )


@router.delete("/{farm_id}", response_model=ApiResponse[None])
async def delete_farm(
    farm_id: UUID,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a farm

    Refused while harvest records still reference it.
    """
    await FarmVerificationService(db).delete_farm(farm_id)
    return ApiResponse(message="Farm deleted successfully")
