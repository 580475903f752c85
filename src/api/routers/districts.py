from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from uuid import UUID
import logging

from src.api.core.database import get_db
from src.api.core.errors import ConflictError, NotFoundError
from src.api.core.security import SessionContext, require_admin
from src.api.models.district import District
from src.api.models.farm import Farm
from src.api.schemas.common import ApiResponse
from src.api.schemas.district import DistrictCreate, DistrictUpdate, DistrictResponse
from src.api.schemas.farm import FarmResponse
from src.api.services.farm_verification import FarmVerificationService

router = APIRouter()
logger = logging.getLogger(__name__)


async def _get_district(db: AsyncSession, district_id: UUID) -> District:
    district = await db.get(District, district_id)
    if district is None:
        raise NotFoundError("District not found")
    return district


async def _ensure_code_free(db: AsyncSession, code: str, current_id: UUID | None = None) -> None:
    query = select(District.id).where(District.district_code == code)
    if current_id is not None:
        query = query.where(District.id != current_id)
    if (await db.execute(query)).first() is not None:
        raise ConflictError(f"District code {code} already exists")


@router.get("", response_model=ApiResponse[list[DistrictResponse]])
async def list_districts(db: AsyncSession = Depends(get_db)):
    """
    List all districts ordered by code
    """
    result = await db.execute(select(District).order_by(District.district_code))
    districts = result.scalars().all()
    return ApiResponse(
        data=[DistrictResponse.model_validate(d) for d in districts],
        count=len(districts),
    )


@router.post("", response_model=ApiResponse[DistrictResponse], status_code=status.HTTP_201_CREATED)
async def create_district(
    district_data: DistrictCreate,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a district

    The code is stored upper-cased and must be unique.
    """
    await _ensure_code_free(db, district_data.district_code)

    district = District(
        district_code=district_data.district_code,
        district_name=district_data.district_name,
    )
    db.add(district)
    await db.commit()

    logger.info(f"District {district.district_code} created by {admin.user_id}")
    return ApiResponse(
        message="District created successfully",
        data=DistrictResponse.model_validate(district),
    )


@router.get("/{district_id}", response_model=ApiResponse[DistrictResponse])
async def get_district(district_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    Get details for a specific district
    """
    district = await _get_district(db, district_id)
    return ApiResponse(data=DistrictResponse.model_validate(district))


@router.get("/{district_id}/farms", response_model=ApiResponse[list[FarmResponse]])
async def list_district_farms(district_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    List the farms of a district, newest first
    """
    await _get_district(db, district_id)
    service = FarmVerificationService(db)
    farms = await service.list_farms(district_id=district_id)
    counts = await service.productivity_counts([f.id for f in farms])
    return ApiResponse(
        data=[FarmResponse.from_farm(f, counts.get(f.id)) for f in farms],
        count=len(farms),
    )


@router.put("/{district_id}", response_model=ApiResponse[DistrictResponse])
async def update_district(
    district_id: UUID,
    district_data: DistrictUpdate,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a district's code and/or name
    """
    district = await _get_district(db, district_id)

    update_data = district_data.model_dump(exclude_unset=True, exclude_none=True)
    if "district_code" in update_data:
        await _ensure_code_free(db, update_data["district_code"], current_id=district.id)

    for field, value in update_data.items():
        setattr(district, field, value)

    await db.commit()
    return ApiResponse(
        message="District updated successfully",
        data=DistrictResponse.model_validate(district),
    )


@router.delete("/{district_id}", response_model=ApiResponse[None])
async def delete_district(
    district_id: UUID,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a district

    Refused while any farm still references it.
    """
    district = await _get_district(db, district_id)

    farm_count = await db.scalar(
        select(func.count(Farm.id)).where(Farm.district_id == district.id)
    )
    if farm_count:
        raise ConflictError(
            f"Cannot delete district. It is referenced by {farm_count} farm(s)."
        )

    await db.delete(district)
    await db.commit()

    logger.info(f"District {district.district_code} deleted by {admin.user_id}")
    return ApiResponse(message="District deleted successfully")
